from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
import logging

from shopbooks.models.product import Product
from shopbooks.services.exceptions import InsufficientStockError, ProductNotFoundError
from shopbooks.utils.clock import utcnow

logger = logging.getLogger(__name__)


class StockLedger:
    """
    The only writer of ``Product.stock``.

    Sales and loans consume stock through ``apply_stock_delta`` with a
    negative delta, restocks and edit-form saves increase or set it. All
    methods run inside a caller's TransactionCoordinator unit and never
    commit themselves.

    Restock rule: ``last_restock_date`` is stamped if and only if the new
    stock exceeds the previously committed stock. Decrementing or unchanged
    writes carry the existing date forward.
    """

    def __init__(self, db: Session):
        self.db = db

    def lock_product(self, product_id: int, shop_id: Optional[str] = None) -> Product:
        """
        Load a product with a row-level lock for the rest of the transaction.

        Args:
            product_id: Product to load
            shop_id: When given, the product must belong to this shop

        Raises:
            ProductNotFoundError: If the product doesn't exist (in that shop)
        """
        query = self.db.query(Product).filter(Product.id == product_id)
        if shop_id is not None:
            query = query.filter(Product.shop_id == shop_id)

        # Pessimistic locking where the store supports it
        product = query.with_for_update().first()

        if not product:
            raise ProductNotFoundError(product_id)
        return product

    def apply_stock_delta(self, product_id: int, delta: int, shop_id: Optional[str] = None) -> Product:
        """
        Change a product's stock by ``delta`` units.

        Args:
            product_id: Product to change
            delta: Negative for consumption (sale, loan), positive for restock
            shop_id: Optional owning shop to enforce

        Returns:
            The updated (flushed, uncommitted) product

        Raises:
            ProductNotFoundError: If the product doesn't exist
            InsufficientStockError: If the resulting stock would be negative
        """
        product = self.lock_product(product_id, shop_id)
        if product.stock + delta < 0:
            raise InsufficientStockError(product.id, product.stock, -delta)
        return self.set_stock(product, product.stock + delta)

    def set_stock(self, product: Product, new_stock: int) -> Product:
        """
        Write an absolute stock value on an already loaded product.

        Raises:
            InsufficientStockError: If ``new_stock`` is negative
        """
        previous = product.stock
        if new_stock < 0:
            raise InsufficientStockError(product.id, previous, previous - new_stock)

        if new_stock > previous:
            product.last_restock_date = utcnow()
        product.stock = new_stock

        try:
            # Flush now so a stale version surfaces inside the unit of work
            self.db.flush()
        except IntegrityError as e:
            logger.error(f"Stock constraint violated for product #{product.id}: {e}")
            raise InsufficientStockError(product.id, previous, previous - new_stock) from e

        if new_stock != previous:
            logger.info(f"Product #{product.id} stock {previous} -> {new_stock}")
        return product
