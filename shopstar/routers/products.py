# shopstar/routers/products.py
import uuid

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from sqlmodel import Session

from shopstar.core.auth import require_admin
from shopstar.core.config import Settings, get_app_settings
from shopstar.database import get_session
from shopstar.repositories.category_repo import CategoryRepository
from shopstar.repositories.product_repo import ProductRepository
from shopstar.schemas.product import (
    ProductCreate,
    ProductListResponse,
    ProductRead,
    ProductStatus,
    ProductUpdate,
)
from shopstar.services.product_service import ProductService, to_product_read

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo, CategoryRepository())


# -------- Public endpoints --------


@router.get("", response_model=ProductListResponse)
def list_products(
    session: Session = Depends(get_session),
    category: uuid.UUID | None = None,
    search: str | None = None,
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    status_filter: ProductStatus = Query("active", alias="status"),
    featured: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
):
    """
    List products with filters and pagination.

    - Public endpoint.
    - `search` matches name, description and tags (case-insensitive).
    - Newest first.
    """
    return service.list_products(
        session,
        category_id=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
        status_filter=status_filter,
        featured=featured,
        page=page,
        limit=limit,
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get a single product by id and count the view.

    - Public endpoint.
    """
    return to_product_read(service.view_product(session, product_id))


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
):
    """
    Create a new product (admin only).
    """
    return to_product_read(service.create_product(session, payload))


@router.put(
    "/{product_id}",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
):
    """
    Update an existing product (admin only).
    """
    return to_product_read(service.update_product(session, product_id, payload))


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def delete_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
) -> dict[str, str]:
    """
    Archive a product (admin only). The row is kept so past orders
    still resolve.
    """
    service.archive_product(session, product_id)
    return {"message": "Product archived successfully"}


@router.post(
    "/{product_id}/images",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
    summary="Upload an image for a product",
)
def upload_product_image(
    product_id: uuid.UUID,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """
    Upload an image and append it to the product's images.

    - Accepts JPEG, PNG, WEBP up to 5MB.
    """
    if not file.content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing content-type for uploaded file",
        )

    file_bytes = file.file.read()
    product = service.add_image(
        session=session,
        settings=settings,
        product_id=product_id,
        content_type=file.content_type,
        file_bytes=file_bytes,
    )
    return to_product_read(product)


@router.delete(
    "/{product_id}/images",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
    summary="Remove an image URL from a product",
)
def delete_product_image(
    product_id: uuid.UUID,
    url: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """
    Remove an image from a product (admin only).

    - Also deletes the underlying file from Storage (best-effort).
    """
    return to_product_read(service.remove_image(session, settings, product_id, url))
