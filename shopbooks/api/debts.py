from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from datetime import date
from typing import Literal, Optional

from shopbooks.database import get_db
from shopbooks.services.debt_service import DebtService, DebtStatus
from shopbooks.services.exceptions import (
    DebtAlreadyPaidError,
    DebtNotFoundError,
    InsufficientStockError,
    InvalidAmountError,
    OverPaymentError,
    ProductNotFoundError,
)
from shopbooks.schemas.debt import (
    DebtCreate,
    DebtResponse,
    DebtListResponse,
    PaymentCreate,
)
from shopbooks.tasks.ledger_tasks import check_stock_level, dispatch, notify_debt_settled

router = APIRouter(prefix="/debts", tags=["Debts"])


@router.post(
    "/",
    response_model=DebtResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a debt",
    description="""
    Extend credit to a debtor.

    The **source** is either `{"kind": "inventory", "product_id": ...}`, which
    takes the loaned units out of stock in the same transaction, or
    `{"kind": "custom", "description": ...}`, which has no stock effect.
    If stock is short, no debt is created.
    """
)
def create_debt(
    debt_data: DebtCreate,
    db: Session = Depends(get_db)
):
    """Issue a new debt."""
    service = DebtService(db)

    try:
        debt = service.issue_debt(debt_data)
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

    if debt.product_id is not None:
        dispatch(check_stock_level, debt.product_id)

    return debt


@router.get(
    "/",
    response_model=DebtListResponse,
    summary="List debts",
    description="Get a paginated list of debts. Settled debts are hidden unless status is 'paid' or 'all'."
)
def list_debts(
    shop_id: Optional[str] = Query(None, description="Filter by owning shop"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    status_filter: Literal["active", "paid", "all"] = Query(
        DebtStatus.ACTIVE, alias="status", description="Filter by repayment status"
    ),
    overdue: bool = Query(False, description="Only unpaid debts past their due date"),
    day: Optional[date] = Query(None, description="Only debts borrowed on this day (YYYY-MM-DD)"),
    db: Session = Depends(get_db)
):
    """Get paginated list of debts with the outstanding total."""
    service = DebtService(db)
    debts, total, total_pages, outstanding = service.get_debts(
        shop_id, page, page_size, status_filter, overdue, day
    )

    return DebtListResponse(
        items=[DebtResponse.model_validate(d) for d in debts],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        total_outstanding=outstanding
    )


@router.get(
    "/{debt_id}",
    response_model=DebtResponse,
    summary="Get debt by ID",
    description="Get a debt with its full payment history."
)
def get_debt(
    debt_id: int,
    db: Session = Depends(get_db)
):
    """Get a debt by ID."""
    service = DebtService(db)
    debt = service.get_debt(debt_id)

    if not debt:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Debt with ID {debt_id} not found"
        )

    return debt


@router.post(
    "/{debt_id}/payments",
    response_model=DebtResponse,
    summary="Pay against a debt",
    description="""
    Record a partial or full payment.

    The payment is appended to the debt's history, the remaining balance goes
    down, and a zero-quantity sale recognizes the recovered cash as revenue.
    Paying more than the remaining balance is rejected.
    """
)
def pay_debt(
    debt_id: int,
    payment: PaymentCreate,
    db: Session = Depends(get_db)
):
    """Record a payment."""
    service = DebtService(db)

    try:
        debt = service.pay_debt(debt_id, payment.amount)
    except DebtNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except (OverPaymentError, DebtAlreadyPaidError, InvalidAmountError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    if debt.is_paid:
        dispatch(notify_debt_settled, debt.id)

    return debt


@router.delete(
    "/{debt_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a debt",
    description="Remove a debt. Loaned stock is not returned and recorded payments stay in sales."
)
def delete_debt(
    debt_id: int,
    db: Session = Depends(get_db)
):
    """Delete a debt."""
    service = DebtService(db)
    deleted = service.delete_debt(debt_id)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Debt with ID {debt_id} not found"
        )

    return None
