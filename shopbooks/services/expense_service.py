from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
from typing import Optional, List, Tuple
import math

from shopbooks.models.expense import Expense
from shopbooks.schemas.expense import ExpenseCreate
from shopbooks.services.transaction import TransactionCoordinator
from shopbooks.utils.clock import day_bounds, utcnow


class ExpenseService:
    """Service class for Expense CRUD operations."""

    def __init__(self, db: Session):
        self.db = db
        self.coordinator = TransactionCoordinator(db)

    def create(self, expense_data: ExpenseCreate) -> Expense:
        expense = Expense(
            shop_id=expense_data.shop_id,
            category=expense_data.category,
            description=expense_data.description,
            amount=expense_data.amount,
            spent_at=expense_data.spent_at or utcnow(),
        )

        def _create():
            self.db.add(expense)
            self.db.flush()
            return expense

        expense = self.coordinator.run_atomic(_create, name="Record expense")
        self.db.refresh(expense)
        return expense

    def get_by_id(self, expense_id: int) -> Optional[Expense]:
        return self.db.query(Expense).filter(Expense.id == expense_id).first()

    def get_all(
        self,
        shop_id: str = None,
        page: int = 1,
        page_size: int = 10,
        day: date = None,
    ) -> Tuple[List[Expense], int, int, Decimal]:
        """
        Get paginated list of expenses, newest first.

        Returns:
            Tuple of (expenses list, total count, total pages, summed amount
            across all matching expenses)
        """
        query = self.db.query(Expense)

        if shop_id:
            query = query.filter(Expense.shop_id == shop_id)
        if day:
            start, end = day_bounds(day)
            query = query.filter(Expense.spent_at >= start, Expense.spent_at < end)

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        total_amount = query.with_entities(func.coalesce(func.sum(Expense.amount), 0)).scalar()

        offset = (page - 1) * page_size
        expenses = query.order_by(Expense.spent_at.desc(), Expense.id.desc()).offset(offset).limit(page_size).all()

        return expenses, total, total_pages, Decimal(total_amount)

    def delete(self, expense_id: int) -> bool:
        """Delete an expense. Returns False if it doesn't exist."""
        def _delete():
            expense = self.db.query(Expense).filter(Expense.id == expense_id).first()
            if not expense:
                return False
            self.db.delete(expense)
            return True

        return self.coordinator.run_atomic(_delete, name=f"Delete expense #{expense_id}")
