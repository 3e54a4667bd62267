from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from shopbooks.database import get_db
from shopbooks.services.exceptions import InsufficientStockError, ProductNotFoundError
from shopbooks.services.product_service import ProductService
from shopbooks.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse,
    StockAdjustment,
)

router = APIRouter(prefix="/products", tags=["Products"])


@router.post(
    "/",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a new product with prices, initial stock and a low-stock threshold."
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db)
):
    """
    Create a new product.

    - **shop_id**: Owning shop (required)
    - **name**: Product name (required)
    - **cost_price** / **selling_price**: Unit prices, non-negative (required)
    - **stock**: Initial stock quantity, must be non-negative (required)
    - **min_stock_alert**: Low stock threshold (optional)
    """
    service = ProductService(db)
    return service.create(product_data)


@router.get(
    "/",
    response_model=ProductListResponse,
    summary="List products",
    description="Get a paginated list of a shop's products with optional search and low-stock filter."
)
def list_products(
    shop_id: Optional[str] = Query(None, description="Filter by owning shop"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Search by product name"),
    low_stock: bool = Query(False, description="Only products at or below their alert threshold"),
    db: Session = Depends(get_db)
):
    """Get paginated list of products."""
    service = ProductService(db)
    products, total, total_pages = service.get_all(shop_id, page, page_size, search, low_stock)

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product by ID",
    description="Get detailed information about a specific product. The result is cached in Redis."
)
def get_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    """Get a product by ID."""
    service = ProductService(db)
    product = service.get_by_id(product_id)

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID {product_id} not found"
        )

    return product


@router.get(
    "/{product_id}/cached",
    summary="Get product from cache",
    description="Get product details from Redis cache (or database if not cached)."
)
def get_product_cached(
    product_id: int,
    db: Session = Depends(get_db)
):
    """
    Get product from cache.

    Cached entries are dropped after every stock change, so stock shown here
    is at most one request stale.
    """
    service = ProductService(db)
    product_data = service.get_by_id_cached(product_id)

    if not product_data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID {product_id} not found"
        )

    return product_data


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update a product",
    description="Save product edits. A higher stock value counts as a restock and stamps the restock date."
)
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db)
):
    """
    Update a product.

    Partial updates are supported - only include fields you want to change.
    Cache is automatically invalidated after update.
    """
    service = ProductService(db)

    try:
        return service.update(product_id, product_data)
    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )


@router.post(
    "/{product_id}/stock-adjustments",
    response_model=ProductResponse,
    summary="Adjust stock",
    description="Add (restock) or remove units. Removing more than is on hand is rejected."
)
def adjust_stock(
    product_id: int,
    adjustment: StockAdjustment,
    db: Session = Depends(get_db)
):
    """Apply a relative stock change."""
    service = ProductService(db)

    try:
        return service.adjust_stock(product_id, adjustment.delta)
    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except InsufficientStockError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product",
    description="Delete a product by ID. Past sales and debts keep the product name."
)
def delete_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    """Delete a product."""
    service = ProductService(db)
    deleted = service.delete(product_id)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID {product_id} not found"
        )

    return None
