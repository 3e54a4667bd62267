from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
from typing import Optional, List, Tuple
import math
import logging

from shopbooks.models.debt import Debt, DebtPayment, DebtSourceKind
from shopbooks.schemas.debt import DebtCreate, InventorySource
from shopbooks.services.exceptions import (
    DebtAlreadyPaidError,
    DebtNotFoundError,
    InvalidAmountError,
    OverPaymentError,
)
from shopbooks.services.sale_service import SaleService
from shopbooks.services.stock_ledger import StockLedger
from shopbooks.services.transaction import TransactionCoordinator
from shopbooks.utils.cache import cache_service
from shopbooks.utils.clock import day_bounds, utcnow

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class DebtStatus:
    """Listing filters for the debt book."""
    ACTIVE = "active"
    PAID = "paid"
    ALL = "all"


class DebtService:
    """
    Service class for the debt ledger (informal customer credit).

    Invariants kept by every write:
    - ``0 <= amount_owed <= total_amount``
    - ``sum(payments.amount) == total_amount - amount_owed``
    - ``is_paid == (amount_owed == 0)``

    Fully paid debts are retained with ``is_paid = True`` and drop out of
    the default (active) listing.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedger(db)
        self.sales = SaleService(db)
        self.coordinator = TransactionCoordinator(db)

    def issue_debt(self, debt_data: DebtCreate) -> Debt:
        """
        Extend credit to a debtor.

        Inventory-backed debts take the loaned units out of stock in the
        same atomic unit as the debt insert; if stock is short no debt is
        created. Custom debts have no stock effect.

        Args:
            debt_data: Debt creation data

        Returns:
            Created debt instance

        Raises:
            InvalidAmountError: If amount or quantity is not positive
            ProductNotFoundError: If the loaned product doesn't exist in the shop
            InsufficientStockError: If the product has fewer units than loaned
        """
        if debt_data.amount_owed <= 0:
            raise InvalidAmountError("Debt amount must be positive")
        if debt_data.quantity <= 0:
            raise InvalidAmountError("Debt quantity must be positive")

        source = debt_data.source

        def _issue():
            if isinstance(source, InventorySource):
                product = self.ledger.apply_stock_delta(
                    source.product_id, -debt_data.quantity, shop_id=debt_data.shop_id
                )
                source_kind = DebtSourceKind.INVENTORY
                product_id = product.id
                product_name = product.name
            else:
                source_kind = DebtSourceKind.CUSTOM
                product_id = None
                product_name = source.description

            debt = Debt(
                shop_id=debt_data.shop_id,
                debtor_name=debt_data.debtor_name,
                source_kind=source_kind,
                product_id=product_id,
                product_name=product_name,
                quantity=debt_data.quantity,
                total_amount=debt_data.amount_owed,
                amount_owed=debt_data.amount_owed,
                borrow_date=debt_data.borrow_date,
                due_date=debt_data.due_date,
                is_paid=False,
            )
            self.db.add(debt)
            self.db.flush()
            return debt

        debt = self.coordinator.run_atomic(
            _issue, name=f"Debt issue for {debt_data.debtor_name}"
        )
        self.db.refresh(debt)

        if debt.product_id is not None:
            cache_service.delete("product", str(debt.product_id))

        logger.info(
            f"Debt #{debt.id} issued to {debt.debtor_name} for {debt.total_amount} "
            f"({debt.source_kind.value})"
        )
        return debt

    def pay_debt(self, debt_id: int, amount: Decimal) -> Debt:
        """
        Record a (partial) payment against a debt.

        As one atomic unit: append the payment, reduce ``amount_owed``, flip
        ``is_paid`` at zero, and add a zero-quantity sale so the recovered
        cash shows up in revenue.

        Args:
            debt_id: Debt being paid
            amount: Amount paid, must not exceed the remaining balance

        Returns:
            The updated debt

        Raises:
            InvalidAmountError: If amount is not positive
            DebtNotFoundError: If the debt doesn't exist
            DebtAlreadyPaidError: If the debt is already settled
            OverPaymentError: If amount exceeds the remaining balance
        """
        amount = Decimal(str(amount)).quantize(CENTS)
        if amount <= 0:
            raise InvalidAmountError("Payment amount must be positive")

        def _pay():
            debt = (
                self.db.query(Debt)
                .filter(Debt.id == debt_id)
                .with_for_update()
                .first()
            )
            if not debt:
                raise DebtNotFoundError(debt_id)
            if debt.is_paid:
                raise DebtAlreadyPaidError(debt_id)
            if amount > debt.amount_owed:
                raise OverPaymentError(debt_id, debt.amount_owed, amount)

            paid_at = utcnow()
            debt.payments.append(
                DebtPayment(shop_id=debt.shop_id, amount=amount, paid_at=paid_at)
            )
            debt.amount_owed = debt.amount_owed - amount
            debt.is_paid = debt.amount_owed == 0

            self.sales.record_payment_sale(debt, amount, paid_at)
            self.db.flush()
            return debt

        debt = self.coordinator.run_atomic(_pay, name=f"Payment on debt #{debt_id}")
        self.db.refresh(debt)

        logger.info(
            f"Debt #{debt.id} paid {amount}, remaining {debt.amount_owed}"
            + (" (settled)" if debt.is_paid else "")
        )
        return debt

    def delete_debt(self, debt_id: int) -> bool:
        """
        Delete a debt and its payment history.

        Stock is not restored and synthetic payment sales stay in the books.

        Returns:
            True if deleted, False if not found
        """
        def _delete():
            debt = self.db.query(Debt).filter(Debt.id == debt_id).first()
            if not debt:
                return False
            self.db.delete(debt)
            return True

        deleted = self.coordinator.run_atomic(_delete, name=f"Delete debt #{debt_id}")
        if deleted:
            logger.info(f"Debt #{debt_id} deleted")
        return deleted

    def get_debt(self, debt_id: int) -> Optional[Debt]:
        """Get a debt by ID."""
        return self.db.query(Debt).filter(Debt.id == debt_id).first()

    def get_debts(
        self,
        shop_id: str = None,
        page: int = 1,
        page_size: int = 10,
        status: str = DebtStatus.ACTIVE,
        overdue: bool = False,
        day: date = None,
    ) -> Tuple[List[Debt], int, int, Decimal]:
        """
        Get paginated list of debts.

        Args:
            shop_id: Only debts of this shop
            page: Page number
            page_size: Items per page
            status: 'active' (unpaid), 'paid' or 'all'
            overdue: Only unpaid debts past their due date
            day: Only debts borrowed on this calendar day (UTC)

        Returns:
            Tuple of (debts list, total count, total pages, outstanding balance
            across all matching debts)
        """
        query = self.db.query(Debt)

        if shop_id:
            query = query.filter(Debt.shop_id == shop_id)
        if status == DebtStatus.ACTIVE:
            query = query.filter(Debt.is_paid.is_(False))
        elif status == DebtStatus.PAID:
            query = query.filter(Debt.is_paid.is_(True))
        if overdue:
            query = query.filter(Debt.is_paid.is_(False), Debt.due_date < utcnow())
        if day:
            start, end = day_bounds(day)
            query = query.filter(Debt.borrow_date >= start, Debt.borrow_date < end)

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        outstanding = query.with_entities(func.coalesce(func.sum(Debt.amount_owed), 0)).scalar()

        offset = (page - 1) * page_size
        debts = query.order_by(Debt.due_date.asc(), Debt.id.asc()).offset(offset).limit(page_size).all()

        return debts, total, total_pages, Decimal(outstanding)
