# shopstar/services/product_service.py
import logging
import math
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from shopstar.core.config import Settings
from shopstar.core.storage_utils import (
    upload_to_storage,
    delete_public_url,
    generate_filename,
)
from shopstar.models.product import Product
from shopstar.repositories.category_repo import CategoryRepository
from shopstar.repositories.product_repo import ProductRepository
from shopstar.schemas.product import (
    InventoryRead,
    ProductCreate,
    ProductListResponse,
    ProductRead,
    ProductUpdate,
)

logger = logging.getLogger(__name__)

# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def compute_stock_status(product: Product) -> tuple[bool, bool]:
    """
    Return (in_stock, is_low_stock) for a product.

    A product that does not track quantity is always in stock and
    never low, whatever its quantity field says.
    """
    if not product.track_quantity:
        return True, False
    in_stock = product.inventory_quantity > 0
    is_low_stock = product.inventory_quantity <= product.low_stock_threshold
    return in_stock, is_low_stock


def to_product_read(product: Product) -> ProductRead:
    in_stock, is_low_stock = compute_stock_status(product)
    return ProductRead(
        id=product.id,
        name=product.name,
        description=product.description,
        price=product.price,
        compare_at_price=product.compare_at_price,
        sku=product.sku,
        category_id=product.category_id,
        images=list(product.images or []),
        variants=list(product.variants or []),
        inventory=InventoryRead(
            quantity=product.inventory_quantity,
            low_stock_threshold=product.low_stock_threshold,
            track_quantity=product.track_quantity,
        ),
        status=product.status,
        featured=product.featured,
        tags=list(product.tags or []),
        sales_count=product.sales_count,
        views=product.views,
        in_stock=in_stock,
        is_low_stock=is_low_stock,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


class ProductService:
    """
    Business logic for products.

    Responsibilities:
      - sku uniqueness and category existence
      - filtered listing with pagination metadata
      - soft delete (archive)
      - image upload/delete orchestration with Supabase Storage
    """

    def __init__(self, repo: ProductRepository, category_repo: CategoryRepository):
        self.repo = repo
        self.category_repo = category_repo

    # ----- Helpers -----

    def _ensure_category_exists(self, session: Session, category_id: uuid.UUID) -> None:
        if self.category_repo.get_by_id(session, category_id) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Category not found",
            )

    def _ensure_unique_sku(
        self,
        session: Session,
        sku: str,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        existing = self.repo.get_by_sku(session, sku)
        if existing is not None and existing.id != exclude_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Product with this SKU already exists",
            )

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported image type. Allowed: JPEG, PNG, WEBP.",
            )

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Image too large (max 5MB).",
            )

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    # ----- Products -----

    def list_products(
        self,
        session: Session,
        *,
        category_id: uuid.UUID | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        status_filter: str | None = "active",
        featured: bool | None = None,
        page: int = 1,
        limit: int = 12,
    ) -> ProductListResponse:
        skip = (page - 1) * limit
        products, total = self.repo.search(
            session,
            category_id=category_id,
            search=search.strip() if search else None,
            min_price=min_price,
            max_price=max_price,
            status=status_filter,
            featured=featured,
            skip=skip,
            limit=limit,
        )
        return ProductListResponse(
            count=len(products),
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
            products=[to_product_read(p) for p in products],
        )

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product

    def view_product(self, session: Session, product_id: uuid.UUID) -> Product:
        """
        Public product view; counts the visit.
        """
        product = self.get_product(session, product_id)
        self.repo.increment_views(session, product.id)
        session.refresh(product)
        return product

    def create_product(
        self,
        session: Session,
        payload: ProductCreate,
    ) -> Product:
        self._ensure_unique_sku(session, payload.sku)
        self._ensure_category_exists(session, payload.category_id)

        product = Product(
            name=payload.name,
            description=payload.description,
            price=payload.price,
            compare_at_price=payload.compare_at_price,
            sku=payload.sku,
            category_id=payload.category_id,
            images=list(payload.images),
            variants=[v.model_dump() for v in payload.variants],
            inventory_quantity=payload.inventory.quantity,
            low_stock_threshold=payload.inventory.low_stock_threshold,
            track_quantity=payload.inventory.track_quantity,
            status=payload.status,
            featured=payload.featured,
            tags=list(payload.tags),
        )
        return self.repo.create(session, product)

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> Product:
        """
        Partial update of a product.

        - If sku is changed, enforce uniqueness.
        - If category is changed, it must exist.
        """
        product = self.get_product(session, product_id)
        data = payload.model_dump(exclude_unset=True, exclude={"inventory", "variants"})

        if data.get("sku") is not None and data["sku"] != product.sku:
            self._ensure_unique_sku(session, data["sku"], exclude_id=product.id)

        if data.get("category_id") is not None:
            self._ensure_category_exists(session, data["category_id"])

        for key, value in data.items():
            if value is None and key not in ("compare_at_price",):
                continue
            setattr(product, key, value)

        if payload.variants is not None:
            product.variants = [v.model_dump() for v in payload.variants]

        if payload.inventory is not None:
            inv = payload.inventory
            if inv.quantity is not None:
                product.inventory_quantity = inv.quantity
            if inv.low_stock_threshold is not None:
                product.low_stock_threshold = inv.low_stock_threshold
            if inv.track_quantity is not None:
                product.track_quantity = inv.track_quantity

        return self.repo.update(session, product)

    def archive_product(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> None:
        """
        Soft delete: set status to archived instead of removing the row.
        """
        product = self.get_product(session, product_id)
        product.status = "archived"
        self.repo.update(session, product)

    # ----- Images -----

    def add_image(
        self,
        session: Session,
        settings: Settings,
        product_id: uuid.UUID,
        content_type: str,
        file_bytes: bytes,
    ) -> Product:
        """
        Upload an image and append its public URL to the product.

        Path pattern:
            products/<product_id>/<uuid>.<ext>
        """
        product = self.get_product(session, product_id)
        ext = self._validate_and_get_ext(content_type, file_bytes)

        if not settings.storage_enabled:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Image storage is not configured",
            )

        path = f"products/{product.id}/{generate_filename(ext)}"
        url = upload_to_storage(settings, path, file_bytes, content_type)

        product.images = [*(product.images or []), url]
        return self.repo.update(session, product)

    def remove_image(
        self,
        session: Session,
        settings: Settings,
        product_id: uuid.UUID,
        url: str,
    ) -> Product:
        """
        Remove an image URL from the product and delete the stored file.
        Storage cleanup is best-effort.
        """
        product = self.get_product(session, product_id)
        images = list(product.images or [])
        if url not in images:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Image not found for this product",
            )

        if settings.storage_enabled:
            try:
                delete_public_url(settings, url)
            except Exception as e:
                logger.warning(f"Could not delete stored image {url}: {e}")

        product.images = [i for i in images if i != url]
        return self.repo.update(session, product)
