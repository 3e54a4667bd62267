from sqlalchemy.orm import Session
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Tuple
import math
import logging

from shopbooks.models.debt import Debt
from shopbooks.models.sale import Sale
from shopbooks.schemas.sale import SaleCreate
from shopbooks.services.exceptions import InvalidAmountError
from shopbooks.services.stock_ledger import StockLedger
from shopbooks.services.transaction import TransactionCoordinator
from shopbooks.utils.cache import cache_service
from shopbooks.utils.clock import day_bounds, utcnow

logger = logging.getLogger(__name__)


class SaleService:
    """
    Service class for Sale records.

    Sales are immutable: this service only creates and reads them. A real
    sale decrements stock through the Stock Ledger in the same atomic unit
    as the sale insert, so two terminals selling the last units of a product
    can never both succeed.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedger(db)
        self.coordinator = TransactionCoordinator(db)

    def record_sale(self, sale_data: SaleCreate) -> Sale:
        """
        Record a sale with atomic stock decrement.

        Algorithm:
        1. Lock the product row (FOR UPDATE where supported)
        2. Check and decrement stock via the Stock Ledger
        3. Snapshot the product's current cost price
        4. Insert the sale and commit both writes together

        Profit may be negative for a below-cost sale; that is allowed.

        Args:
            sale_data: Sale data with product_id, quantity and optional price

        Returns:
            Created sale instance

        Raises:
            InvalidAmountError: If quantity is not positive
            ProductNotFoundError: If the product doesn't exist in the shop
            InsufficientStockError: If not enough stock is available at commit
            ConflictError: If concurrent writers kept winning the race
        """
        if sale_data.quantity <= 0:
            raise InvalidAmountError("Sale quantity must be positive")

        quantity = sale_data.quantity
        sold_at = sale_data.sold_at or utcnow()

        def _record():
            product = self.ledger.apply_stock_delta(
                sale_data.product_id, -quantity, shop_id=sale_data.shop_id
            )

            unit_price = (
                sale_data.unit_price
                if sale_data.unit_price is not None
                else Decimal(product.selling_price)
            )
            cost_price = Decimal(product.cost_price)

            sale = Sale(
                shop_id=product.shop_id,
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                selling_price_snapshot=unit_price,
                cost_price_snapshot=cost_price,
                total_amount=unit_price * quantity,
                profit=(unit_price - cost_price) * quantity,
                sold_at=sold_at,
            )
            self.db.add(sale)
            self.db.flush()
            return sale

        sale = self.coordinator.run_atomic(
            _record, name=f"Sale of product #{sale_data.product_id}"
        )
        self.db.refresh(sale)

        # Invalidate product cache since stock changed
        cache_service.delete("product", str(sale_data.product_id))

        logger.info(
            f"Sale #{sale.id} recorded: {quantity} x product #{sale.product_id} "
            f"for {sale.total_amount} (profit {sale.profit})"
        )
        return sale

    def record_payment_sale(self, debt: Debt, amount: Decimal, paid_at: datetime) -> Sale:
        """
        Add the synthetic sale that recognizes cash recovered from a debt.

        The sale has zero quantity and never touches stock; its whole amount
        counts as profit since the goods' cost left the books when the loan
        was issued. Must be called inside the payment's atomic unit.
        """
        sale = Sale(
            shop_id=debt.shop_id,
            product_id=debt.product_id,
            debt_id=debt.id,
            product_name=f"Debt payment: {debt.debtor_name} ({debt.product_name})",
            quantity=0,
            selling_price_snapshot=amount,
            cost_price_snapshot=Decimal("0"),
            total_amount=amount,
            profit=amount,
            sold_at=paid_at,
        )
        self.db.add(sale)
        return sale

    def get_sale(self, sale_id: int) -> Optional[Sale]:
        """Get a sale by ID."""
        return self.db.query(Sale).filter(Sale.id == sale_id).first()

    def get_sales(
        self,
        shop_id: str = None,
        page: int = 1,
        page_size: int = 10,
        product_id: int = None,
        day: date = None,
    ) -> Tuple[List[Sale], int, int]:
        """
        Get paginated list of sales, newest first.

        Args:
            shop_id: Only sales of this shop
            page: Page number
            page_size: Items per page
            product_id: Only sales of this product
            day: Only sales made on this calendar day (UTC)

        Returns:
            Tuple of (sales list, total count, total pages)
        """
        query = self.db.query(Sale)

        if shop_id:
            query = query.filter(Sale.shop_id == shop_id)
        if product_id:
            query = query.filter(Sale.product_id == product_id)
        if day:
            start, end = day_bounds(day)
            query = query.filter(Sale.sold_at >= start, Sale.sold_at < end)

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        sales = query.order_by(Sale.sold_at.desc(), Sale.id.desc()).offset(offset).limit(page_size).all()

        return sales, total, total_pages
