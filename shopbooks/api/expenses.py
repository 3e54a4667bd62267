from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from shopbooks.database import get_db
from shopbooks.services.expense_service import ExpenseService
from shopbooks.schemas.expense import ExpenseCreate, ExpenseResponse, ExpenseListResponse

router = APIRouter(prefix="/expenses", tags=["Expenses"])


@router.post(
    "/",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record an expense"
)
def create_expense(
    expense_data: ExpenseCreate,
    db: Session = Depends(get_db)
):
    service = ExpenseService(db)
    return service.create(expense_data)


@router.get(
    "/",
    response_model=ExpenseListResponse,
    summary="List expenses",
    description="Get a paginated list of expenses with the total spent."
)
def list_expenses(
    shop_id: Optional[str] = Query(None, description="Filter by owning shop"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    day: Optional[date] = Query(None, description="Only expenses of this day (YYYY-MM-DD)"),
    db: Session = Depends(get_db)
):
    service = ExpenseService(db)
    expenses, total, total_pages, total_amount = service.get_all(shop_id, page, page_size, day)

    return ExpenseListResponse(
        items=[ExpenseResponse.model_validate(e) for e in expenses],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        total_amount=total_amount
    )


@router.get("/{expense_id}", response_model=ExpenseResponse, summary="Get expense by ID")
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db)
):
    service = ExpenseService(db)
    expense = service.get_by_id(expense_id)

    if not expense:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Expense with ID {expense_id} not found"
        )

    return expense


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an expense")
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db)
):
    service = ExpenseService(db)

    if not service.delete(expense_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Expense with ID {expense_id} not found"
        )

    return None
