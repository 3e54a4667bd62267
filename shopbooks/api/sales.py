from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from shopbooks.database import get_db
from shopbooks.services.exceptions import (
    InsufficientStockError,
    InvalidAmountError,
    ProductNotFoundError,
)
from shopbooks.services.sale_service import SaleService
from shopbooks.schemas.sale import SaleCreate, SaleResponse, SaleListResponse
from shopbooks.tasks.ledger_tasks import check_stock_level, dispatch

router = APIRouter(prefix="/sales", tags=["Sales"])


@router.post(
    "/",
    response_model=SaleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a sale",
    description="""
    Sell units of a product.

    **Race Condition Handling:**
    The stock check and decrement happen in the same transaction as the sale
    insert. When two terminals sell the last units simultaneously:
    - Only one transaction succeeds
    - The other receives a 400 error with an 'Insufficient stock' message

    After the sale commits, a background Celery task checks whether the
    product dropped below its low-stock threshold.
    """
)
def create_sale(
    sale_data: SaleCreate,
    db: Session = Depends(get_db)
):
    """
    Record a sale.

    - **shop_id**: Owning shop (required)
    - **product_id**: ID of the product sold (required)
    - **quantity**: Units sold, at least 1 (required)
    - **unit_price**: Price charged per unit, defaults to the product's selling price
    - **sold_at**: When the sale happened, defaults to now
    """
    service = SaleService(db)

    try:
        sale = service.record_sale(sale_data)
    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except (InsufficientStockError, InvalidAmountError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    # Sequenced after the commit; never part of the ledger transaction
    dispatch(check_stock_level, sale.product_id)

    return sale


@router.get(
    "/",
    response_model=SaleListResponse,
    summary="List sales",
    description="Get a paginated list of sales, including debt-payment sales, newest first."
)
def list_sales(
    shop_id: Optional[str] = Query(None, description="Filter by owning shop"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    product_id: Optional[int] = Query(None, description="Filter by product"),
    day: Optional[date] = Query(None, description="Only sales made on this day (YYYY-MM-DD)"),
    db: Session = Depends(get_db)
):
    """Get paginated list of sales."""
    service = SaleService(db)
    sales, total, total_pages = service.get_sales(shop_id, page, page_size, product_id, day)

    return SaleListResponse(
        items=[SaleResponse.model_validate(s) for s in sales],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get(
    "/{sale_id}",
    response_model=SaleResponse,
    summary="Get sale by ID",
    description="Get detailed information about a specific sale."
)
def get_sale(
    sale_id: int,
    db: Session = Depends(get_db)
):
    """Get a sale by ID."""
    service = SaleService(db)
    sale = service.get_sale(sale_id)

    if not sale:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Sale with ID {sale_id} not found"
        )

    return sale
