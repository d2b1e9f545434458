"""Product catalog: CRUD, filters, stock flags and images."""

from types import SimpleNamespace

import pytest

from shopstar.services import product_service
from shopstar.services.product_service import compute_stock_status


def _product(quantity, threshold=10, track=True):
    return SimpleNamespace(
        inventory_quantity=quantity,
        low_stock_threshold=threshold,
        track_quantity=track,
    )


class TestComputeStockStatus:
    @pytest.mark.parametrize(
        "quantity, expected",
        [
            (0, (False, True)),
            (5, (True, True)),
            (10, (True, True)),
            (11, (True, False)),
        ],
    )
    def test_tracked(self, quantity, expected):
        assert compute_stock_status(_product(quantity)) == expected

    def test_untracked_is_always_in_stock(self):
        assert compute_stock_status(_product(0, track=False)) == (True, False)


class TestCreateProduct:
    def test_create(self, make_product, category):
        body = make_product(name="Headphones", price=59.5, quantity=3, tags=["audio", "wireless"])
        assert body["name"] == "Headphones"
        assert body["category_id"] == category["id"]
        assert body["inventory"] == {"quantity": 3, "low_stock_threshold": 10, "track_quantity": True}
        assert body["in_stock"] is True
        assert body["is_low_stock"] is True
        assert body["views"] == 0

    def test_sku_is_uppercased_and_unique(self, client, admin, category):
        payload = {
            "name": "Lamp",
            "description": "Bright",
            "price": 10,
            "sku": "lamp-01",
            "category_id": category["id"],
            "inventory": {"quantity": 1},
        }
        first = client.post("/api/products", json=payload, headers=admin["headers"])
        assert first.status_code == 201
        assert first.json()["sku"] == "LAMP-01"

        second = client.post(
            "/api/products", json={**payload, "sku": "LAMP-01"}, headers=admin["headers"]
        )
        assert second.status_code == 400
        assert second.json()["detail"] == "Product with this SKU already exists"

    def test_unknown_category(self, client, admin):
        response = client.post(
            "/api/products",
            json={
                "name": "Ghost",
                "description": "Nowhere",
                "price": 1,
                "sku": "GHOST",
                "category_id": "00000000-0000-0000-0000-000000000000",
                "inventory": {"quantity": 1},
            },
            headers=admin["headers"],
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Category not found"

    def test_missing_inventory_rejected(self, client, admin, category):
        response = client.post(
            "/api/products",
            json={
                "name": "Thing",
                "description": "Stuff",
                "price": 1,
                "sku": "THING",
                "category_id": category["id"],
            },
            headers=admin["headers"],
        )
        assert response.status_code == 400

    def test_untracked_product_in_stock_with_zero_quantity(self, make_product):
        body = make_product(quantity=0, track_quantity=False)
        assert body["in_stock"] is True
        assert body["is_low_stock"] is False

    def test_requires_admin(self, client, customer, category):
        response = client.post("/api/products", json={}, headers=customer["headers"])
        assert response.status_code == 403


class TestListProducts:
    def test_defaults_to_active_only(self, client, make_product):
        make_product(name="Visible")
        make_product(name="Hidden", status="draft")

        body = client.get("/api/products").json()
        assert body["total"] == 1
        assert [p["name"] for p in body["products"]] == ["Visible"]

    def test_status_filter(self, client, make_product):
        make_product(name="Visible")
        make_product(name="Hidden", status="draft")

        body = client.get("/api/products", params={"status": "draft"}).json()
        assert [p["name"] for p in body["products"]] == ["Hidden"]

    def test_search_name_description_and_tags(self, client, make_product):
        make_product(name="Red Kettle")
        make_product(name="Mug", tags=["Kitchen"])
        make_product(name="Chair", description="Sturdy oak chair")

        assert client.get("/api/products", params={"search": "kettle"}).json()["total"] == 1
        assert client.get("/api/products", params={"search": "kitchen"}).json()["total"] == 1
        assert client.get("/api/products", params={"search": "OAK"}).json()["total"] == 1

    def test_price_range(self, client, make_product):
        make_product(name="Cheap", price=5)
        make_product(name="Mid", price=50)
        make_product(name="Pricey", price=500)

        body = client.get("/api/products", params={"min_price": 10, "max_price": 100}).json()
        assert [p["name"] for p in body["products"]] == ["Mid"]

    def test_category_and_featured(self, client, make_product, make_category):
        other = make_category("Garden")
        make_product(name="Featured", featured=True)
        make_product(name="Plain")
        make_product(name="Shovel", category_id=other["id"])

        featured = client.get("/api/products", params={"featured": "true"}).json()
        assert [p["name"] for p in featured["products"]] == ["Featured"]

        garden = client.get("/api/products", params={"category": other["id"]}).json()
        assert [p["name"] for p in garden["products"]] == ["Shovel"]

    def test_pagination(self, client, make_product):
        for i in range(5):
            make_product(name=f"Item {i}")

        body = client.get("/api/products", params={"page": 2, "limit": 2}).json()
        assert body["count"] == 2
        assert body["total"] == 5
        assert body["page"] == 2
        assert body["pages"] == 3


class TestSingleProduct:
    def test_get_increments_views(self, client, make_product):
        product = make_product()
        client.get(f"/api/products/{product['id']}")
        response = client.get(f"/api/products/{product['id']}")
        assert response.status_code == 200
        assert response.json()["views"] == 2

    def test_missing(self, client):
        response = client.get("/api/products/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404

    def test_update(self, client, admin, make_product):
        product = make_product(price=10)
        response = client.put(
            f"/api/products/{product['id']}",
            json={"price": 12.5, "inventory": {"quantity": 50}},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        body = response.json()
        assert body["price"] == 12.5
        assert body["inventory"]["quantity"] == 50
        assert body["is_low_stock"] is False

    def test_update_to_taken_sku(self, client, admin, make_product):
        first = make_product()
        second = make_product()
        response = client.put(
            f"/api/products/{second['id']}",
            json={"sku": first["sku"].lower()},
            headers=admin["headers"],
        )
        assert response.status_code == 400

    def test_delete_archives(self, client, admin, make_product):
        product = make_product()
        response = client.delete(f"/api/products/{product['id']}", headers=admin["headers"])
        assert response.status_code == 200

        assert client.get("/api/products").json()["total"] == 0
        assert client.get(f"/api/products/{product['id']}").json()["status"] == "archived"


class TestImages:
    def test_storage_not_configured(self, client, admin, make_product):
        product = make_product()
        response = client.post(
            f"/api/products/{product['id']}/images",
            files={"file": ("photo.png", b"\x89PNG fake", "image/png")},
            headers=admin["headers"],
        )
        assert response.status_code == 503

    def test_rejects_unsupported_type(self, client, admin, make_product):
        product = make_product()
        response = client.post(
            f"/api/products/{product['id']}/images",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=admin["headers"],
        )
        assert response.status_code == 400

    def test_upload_and_remove(self, app, client, admin, make_product, monkeypatch):
        app.state.settings = app.state.settings.model_copy(
            update={"SUPABASE_URL": "https://demo.supabase.co", "SUPABASE_SERVICE_ROLE_KEY": "key"}
        )
        uploaded, deleted = [], []

        def fake_upload(settings, path, file_bytes, content_type):
            uploaded.append((path, content_type))
            return f"https://cdn.example.com/{path}"

        monkeypatch.setattr(product_service, "upload_to_storage", fake_upload)
        monkeypatch.setattr(
            product_service, "delete_public_url", lambda settings, url: deleted.append(url)
        )

        product = make_product()
        response = client.post(
            f"/api/products/{product['id']}/images",
            files={"file": ("photo.jpg", b"\xff\xd8jpeg", "image/jpeg")},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        images = response.json()["images"]
        assert len(images) == 1
        assert uploaded[0][0].startswith(f"products/{product['id']}/")
        assert uploaded[0][0].endswith(".jpg")

        response = client.delete(
            f"/api/products/{product['id']}/images",
            params={"url": images[0]},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        assert response.json()["images"] == []
        assert deleted == images
