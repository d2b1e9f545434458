"""Checkout, payment confirmation and order management."""

import re
import uuid
from datetime import datetime

import pytest

from shopstar.core.payment_gateway import normalize_payment_intent_id, to_minor_units
from shopstar.models.order import Order
from shopstar.services.order_service import calculate_totals, generate_order_number

ADDRESS = {
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "country": "USA",
}

ORDER_NUMBER = re.compile(r"^ORD-\d{8}-\d{6}-\d{4}$")


@pytest.fixture()
def headers(customer):
    return customer["headers"]


@pytest.fixture()
def fill_cart(client, headers):
    def _fill(*lines):
        for product, quantity in lines:
            response = client.post(
                "/api/cart",
                json={"product_id": product["id"], "quantity": quantity},
                headers=headers,
            )
            assert response.status_code == 200, response.text

    return _fill


@pytest.fixture()
def place_order(client, headers):
    def _place(**extra):
        response = client.post(
            "/api/orders",
            json={"shipping_address": ADDRESS, **extra},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _place


@pytest.fixture()
def stocked_order(make_product, fill_cart, place_order):
    """One product (qty 10) with 2 units in a placed, unpaid order."""
    product = make_product(price=25.0, quantity=10)
    fill_cart((product, 2))
    created = place_order()
    return product, created


def _inventory(client, product_id):
    return client.get(f"/api/products/{product_id}").json()["inventory"]["quantity"]


class TestPureFunctions:
    def test_calculate_totals(self):
        assert calculate_totals(119.95) == (119.95, 9.6, 5.99, 135.54)

    def test_float_noise_is_rounded_to_cents(self):
        # float products may carry binary noise past the cent
        assert calculate_totals(19.99 * 3) == (59.97, 4.8, 5.99, 70.76)

    def test_order_number_format(self):
        number = generate_order_number(datetime(2024, 1, 2, 3, 4, 5))
        assert number.startswith("ORD-20240102-030405-")
        assert ORDER_NUMBER.match(number)

    def test_normalize_payment_intent_id(self):
        assert normalize_payment_intent_id("pi_123_secret_abc") == "pi_123"
        assert normalize_payment_intent_id(" pi_123 ") == "pi_123"

    def test_to_minor_units(self):
        assert to_minor_units(135.54) == 13554
        assert to_minor_units(0.005) == 1


class TestCreateOrder:
    def test_totals_and_snapshot(self, client, make_product, fill_cart, place_order, gateway):
        a = make_product(name="Tee", price=29.99)
        b = make_product(name="Cap", price=19.99)
        fill_cart((a, 2), (b, 3))

        created = place_order(notes="Leave at door")
        order = created["order"]

        assert order["subtotal"] == 119.95
        assert order["tax"] == 9.6
        assert order["shipping"] == 5.99
        assert order["total"] == 135.54
        assert order["status"] == "pending"
        assert order["payment_status"] == "pending"
        assert order["notes"] == "Leave at door"
        assert order["shipping_address"] == ADDRESS
        assert ORDER_NUMBER.match(order["order_number"])
        assert {(i["name"], i["quantity"]) for i in order["items"]} == {("Tee", 2), ("Cap", 3)}

        assert created["client_secret"] == f"{order['payment_intent_id']}_secret_xyz"
        intent = gateway.intents[order["payment_intent_id"]]
        assert intent.amount == 13554
        assert intent.metadata["order_id"] == order["id"]
        assert intent.metadata["order_number"] == order["order_number"]

    def test_cart_and_inventory_untouched_until_paid(self, client, headers, stocked_order):
        product, _ = stocked_order
        assert client.get("/api/cart", headers=headers).json()["item_count"] == 2
        assert _inventory(client, product["id"]) == 10

    def test_snapshot_survives_price_change(self, client, admin, headers, stocked_order):
        product, created = stocked_order
        client.put(
            f"/api/products/{product['id']}", json={"price": 99.0}, headers=admin["headers"]
        )
        order = client.get(f"/api/orders/{created['order']['id']}", headers=headers).json()
        assert order["items"][0]["price"] == 25.0

    def test_order_numbers_unique(self, make_product, fill_cart, place_order):
        fill_cart((make_product(), 1))
        numbers = {place_order()["order"]["order_number"] for _ in range(8)}
        assert len(numbers) == 8

    def test_empty_cart(self, client, headers):
        response = client.post("/api/orders", json={"shipping_address": ADDRESS}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cart is empty"

    def test_missing_address_field(self, client, headers, make_product, fill_cart):
        fill_cart((make_product(), 1))
        address = {**ADDRESS, "city": "  "}
        response = client.post("/api/orders", json={"shipping_address": address}, headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    def test_product_no_longer_available(self, client, admin, headers, make_product, fill_cart):
        product = make_product(name="Vanishing")
        fill_cart((product, 1))
        client.delete(f"/api/products/{product['id']}", headers=admin["headers"])

        response = client.post("/api/orders", json={"shipping_address": ADDRESS}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Product Vanishing is no longer available"

    def test_insufficient_inventory(self, client, admin, headers, make_product, fill_cart):
        product = make_product(name="Scarce", quantity=5)
        fill_cart((product, 4))
        client.put(
            f"/api/products/{product['id']}",
            json={"inventory": {"quantity": 2}},
            headers=admin["headers"],
        )

        response = client.post("/api/orders", json={"shipping_address": ADDRESS}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient inventory for Scarce. Only 2 available"

    def test_gateway_failure_still_creates_order(self, gateway, make_product, fill_cart, place_order):
        gateway.fail_create = True
        fill_cart((make_product(), 1))

        created = place_order()
        assert created["client_secret"] is None
        assert created["order"]["payment_intent_id"] is None
        assert "manually" in created["message"]

    def test_no_gateway_configured(self, app, make_product, fill_cart, place_order):
        app.state.payment_gateway = None
        fill_cart((make_product(), 1))

        created = place_order()
        assert created["client_secret"] is None


class TestConfirmPayment:
    def test_confirm_marks_paid_and_applies_side_effects(
        self, client, headers, gateway, notifier, stocked_order
    ):
        product, created = stocked_order
        order = created["order"]
        gateway.succeed(order["payment_intent_id"])

        response = client.post(
            f"/api/orders/{order['id']}/confirm-payment",
            json={"payment_intent_id": created["client_secret"]},
            headers=headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["order"]["payment_status"] == "paid"
        assert body["order"]["status"] == "processing"
        assert body["message"] == "Payment confirmed. Order is being processed."

        assert _inventory(client, product["id"]) == 8
        assert client.get(f"/api/products/{product['id']}").json()["sales_count"] == 2
        assert client.get("/api/cart", headers=headers).json()["items"] == []

        subjects = [subject for _, subject, _ in notifier.sent]
        assert subjects == [f"Order Confirmation - {order['order_number']}"]

    def test_double_confirm_decrements_once(self, client, headers, gateway, notifier, stocked_order):
        product, created = stocked_order
        order = created["order"]
        gateway.succeed(order["payment_intent_id"])

        for _ in range(2):
            response = client.post(
                f"/api/orders/{order['id']}/confirm-payment",
                json={"payment_intent_id": order["payment_intent_id"]},
                headers=headers,
            )
            assert response.status_code == 200

        assert response.json()["message"] == "Payment already confirmed."
        assert _inventory(client, product["id"]) == 8
        assert len(notifier.sent) == 1

    def test_payment_not_completed(self, client, headers, stocked_order):
        _, created = stocked_order
        order = created["order"]
        response = client.post(
            f"/api/orders/{order['id']}/confirm-payment",
            json={"payment_intent_id": order["payment_intent_id"]},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Payment not completed. Status: requires_payment_method"

    def test_intent_from_another_order(self, client, headers, gateway, stocked_order, place_order):
        _, first = stocked_order
        second = place_order()
        gateway.succeed(second["order"]["payment_intent_id"])

        response = client.post(
            f"/api/orders/{first['order']['id']}/confirm-payment",
            json={"payment_intent_id": second["order"]["payment_intent_id"]},
            headers=headers,
        )
        assert response.status_code == 400

    def test_not_owner(self, client, register, gateway, stocked_order):
        _, created = stocked_order
        other = register()
        response = client.post(
            f"/api/orders/{created['order']['id']}/confirm-payment",
            json={"payment_intent_id": created["order"]["payment_intent_id"]},
            headers=other["headers"],
        )
        assert response.status_code == 403

    def test_unknown_order(self, client, headers):
        response = client.post(
            "/api/orders/00000000-0000-0000-0000-000000000000/confirm-payment",
            json={"payment_intent_id": "pi_x"},
            headers=headers,
        )
        assert response.status_code == 404

    def test_no_gateway(self, app, client, headers, stocked_order):
        _, created = stocked_order
        app.state.payment_gateway = None
        response = client.post(
            f"/api/orders/{created['order']['id']}/confirm-payment",
            json={"payment_intent_id": created["order"]["payment_intent_id"]},
            headers=headers,
        )
        assert response.status_code == 503

    def test_order_created_without_intent_accepts_later_intent(
        self, client, headers, gateway, make_product, fill_cart, place_order
    ):
        gateway.fail_create = True
        product = make_product(price=25.0, quantity=10)
        fill_cart((product, 2))
        order = place_order()["order"]
        assert order["payment_intent_id"] is None

        gateway.fail_create = False
        intent = gateway.create_payment_intent(to_minor_units(order["total"]), "usd", {})
        gateway.succeed(intent.id)

        response = client.post(
            f"/api/orders/{order['id']}/confirm-payment",
            json={"payment_intent_id": intent.client_secret},
            headers=headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["order"]["payment_intent_id"] == intent.id
        assert body["order"]["payment_status"] == "paid"
        assert _inventory(client, product["id"]) == 8

    def test_refunded_order_cannot_be_confirmed(self, app, client, headers, gateway, stocked_order):
        product, created = stocked_order
        order = created["order"]
        with app.state.db.session() as session:
            row = session.get(Order, uuid.UUID(order["id"]))
            row.payment_status = "refunded"
            session.add(row)
            session.commit()
        gateway.succeed(order["payment_intent_id"])

        response = client.post(
            f"/api/orders/{order['id']}/confirm-payment",
            json={"payment_intent_id": order["payment_intent_id"]},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Payment cannot be confirmed. Status: refunded"
        assert _inventory(client, product["id"]) == 10


class TestReadOrders:
    def test_list_my_orders_newest_first(self, client, headers, make_product, fill_cart, place_order):
        fill_cart((make_product(), 1))
        first = place_order()["order"]["id"]
        second = place_order()["order"]["id"]

        body = client.get("/api/orders", headers=headers).json()
        assert body["count"] == 2
        assert {o["id"] for o in body["orders"]} == {first, second}

    def test_other_customer_forbidden_admin_allowed(self, client, admin, register, stocked_order):
        _, created = stocked_order
        order_id = created["order"]["id"]

        other = register()
        assert client.get(f"/api/orders/{order_id}", headers=other["headers"]).status_code == 403
        assert client.get(f"/api/orders/{order_id}", headers=admin["headers"]).status_code == 200

    def test_missing_order(self, client, headers):
        response = client.get("/api/orders/00000000-0000-0000-0000-000000000000", headers=headers)
        assert response.status_code == 404


class TestCancelOrder:
    def test_cancel_pending_deletes(self, client, headers, stocked_order):
        _, created = stocked_order
        order_id = created["order"]["id"]

        response = client.delete(f"/api/orders/{order_id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Order cancelled successfully"
        assert client.get(f"/api/orders/{order_id}", headers=headers).status_code == 404

    def test_cannot_cancel_paid(self, client, headers, gateway, stocked_order):
        _, created = stocked_order
        order = created["order"]
        gateway.succeed(order["payment_intent_id"])
        client.post(
            f"/api/orders/{order['id']}/confirm-payment",
            json={"payment_intent_id": order["payment_intent_id"]},
            headers=headers,
        )

        response = client.delete(f"/api/orders/{order['id']}", headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Cannot cancel paid orders")

    def test_cannot_cancel_shipped(self, client, admin, headers, stocked_order):
        _, created = stocked_order
        order_id = created["order"]["id"]
        client.put(
            f"/api/orders/{order_id}/status", json={"status": "shipped"}, headers=admin["headers"]
        )

        response = client.delete(f"/api/orders/{order_id}", headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot cancel shipped or delivered orders"

    def test_not_owner(self, client, register, stocked_order):
        _, created = stocked_order
        other = register()
        response = client.delete(f"/api/orders/{created['order']['id']}", headers=other["headers"])
        assert response.status_code == 403


class TestAdminOrders:
    def test_update_status_sets_timestamps_and_notifies(
        self, client, admin, notifier, stocked_order
    ):
        _, created = stocked_order
        order_id = created["order"]["id"]

        shipped = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "shipped", "tracking_number": "1Z999"},
            headers=admin["headers"],
        ).json()["order"]
        assert shipped["status"] == "shipped"
        assert shipped["tracking_number"] == "1Z999"
        assert shipped["shipped_at"] is not None
        assert shipped["delivered_at"] is None

        delivered = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "delivered"},
            headers=admin["headers"],
        ).json()["order"]
        assert delivered["delivered_at"] is not None
        assert delivered["tracking_number"] == "1Z999"

        texts = [text for _, _, text in notifier.sent]
        assert len(texts) == 2
        assert "1Z999" in texts[0]

    def test_processing_does_not_notify(self, client, admin, notifier, stocked_order):
        _, created = stocked_order
        client.put(
            f"/api/orders/{created['order']['id']}/status",
            json={"status": "processing"},
            headers=admin["headers"],
        )
        assert notifier.sent == []

    def test_invalid_status(self, client, admin, stocked_order):
        _, created = stocked_order
        response = client.put(
            f"/api/orders/{created['order']['id']}/status",
            json={"status": "teleported"},
            headers=admin["headers"],
        )
        assert response.status_code == 400

    def test_status_update_requires_admin(self, client, headers, stocked_order):
        _, created = stocked_order
        response = client.put(
            f"/api/orders/{created['order']['id']}/status",
            json={"status": "shipped"},
            headers=headers,
        )
        assert response.status_code == 403

    def test_list_all_with_filters(self, client, admin, headers, gateway, stocked_order, place_order):
        _, first = stocked_order
        place_order()
        gateway.succeed(first["order"]["payment_intent_id"])
        client.post(
            f"/api/orders/{first['order']['id']}/confirm-payment",
            json={"payment_intent_id": first["order"]["payment_intent_id"]},
            headers=headers,
        )

        everything = client.get("/api/orders/admin/all", headers=admin["headers"]).json()
        assert everything["total"] == 2
        assert everything["pages"] == 1

        paid = client.get(
            "/api/orders/admin/all",
            params={"payment_status": "paid"},
            headers=admin["headers"],
        ).json()
        assert [o["id"] for o in paid["orders"]] == [first["order"]["id"]]

        processing = client.get(
            "/api/orders/admin/all",
            params={"status": "processing"},
            headers=admin["headers"],
        ).json()
        assert processing["count"] == 1

    def test_list_all_requires_admin(self, client, headers):
        response = client.get("/api/orders/admin/all", headers=headers)
        assert response.status_code == 403

    def test_cancel_records_reason(self, client, admin, notifier, stocked_order):
        _, created = stocked_order
        response = client.put(
            f"/api/orders/{created['order']['id']}/status",
            json={"status": "cancelled", "cancellation_reason": "  Customer request "},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        cancelled = response.json()["order"]
        assert cancelled["cancelled_at"] is not None
        assert cancelled["cancellation_reason"] == "Customer request"
        assert len(notifier.sent) == 1
