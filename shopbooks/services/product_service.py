from sqlalchemy.orm import Session
from typing import Optional, List
import math
import logging

from shopbooks.models.product import Product
from shopbooks.schemas.product import ProductCreate, ProductUpdate, ProductResponse
from shopbooks.services.stock_ledger import StockLedger
from shopbooks.services.transaction import TransactionCoordinator
from shopbooks.utils.cache import cache_service
from shopbooks.utils.clock import utcnow

logger = logging.getLogger(__name__)


class ProductService:
    """
    Service class for Product operations.

    This service handles:
    - Creating new products
    - Reading products (with caching)
    - Edit-form saves, routing stock changes through the Stock Ledger
    - Relative stock adjustments (restock / write-off)
    - Deleting products
    - Cache invalidation
    """

    CACHE_PREFIX = "product"

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedger(db)
        self.coordinator = TransactionCoordinator(db)

    def create(self, product_data: ProductCreate) -> Product:
        """
        Create a new product.

        A product created with stock on hand counts as restocked now.

        Args:
            product_data: Product creation data

        Returns:
            Created product instance
        """
        product = Product(
            shop_id=product_data.shop_id,
            name=product_data.name,
            category=product_data.category,
            cost_price=product_data.cost_price,
            selling_price=product_data.selling_price,
            stock=product_data.stock,
            min_stock_alert=product_data.min_stock_alert,
            last_restock_date=utcnow() if product_data.stock > 0 else None,
        )

        def _create():
            self.db.add(product)
            self.db.flush()
            return product

        product = self.coordinator.run_atomic(_create, name="Create product")
        self.db.refresh(product)

        logger.info(f"Product #{product.id} '{product.name}' created for shop {product.shop_id}")
        return product

    def get_by_id(self, product_id: int) -> Optional[Product]:
        """
        Get a product by ID and refresh its cache entry.

        Args:
            product_id: Product ID to look up

        Returns:
            Product instance or None if not found
        """
        product = self.db.query(Product).filter(Product.id == product_id).first()

        if product:
            self._cache_product(product)

        return product

    def get_by_id_cached(self, product_id: int) -> Optional[dict]:
        """
        Get product details from cache or database.
        Returns a dictionary (suitable for API response).

        Args:
            product_id: Product ID to look up

        Returns:
            Product data as dictionary or None
        """
        cached = cache_service.get(self.CACHE_PREFIX, str(product_id))
        if cached:
            return cached

        product = self.db.query(Product).filter(Product.id == product_id).first()

        if product:
            return self._cache_product(product)

        return None

    def get_all(
        self,
        shop_id: str = None,
        page: int = 1,
        page_size: int = 10,
        search: str = None,
        low_stock: bool = False,
    ) -> tuple[List[Product], int, int]:
        """
        Get paginated list of products.

        Args:
            shop_id: Only products of this shop
            page: Page number (1-indexed)
            page_size: Number of items per page
            search: Optional search term for product name
            low_stock: Only products at or below their stock alert threshold

        Returns:
            Tuple of (products list, total count, total pages)
        """
        query = self.db.query(Product)

        if shop_id:
            query = query.filter(Product.shop_id == shop_id)
        if search:
            query = query.filter(Product.name.ilike(f"%{search}%"))
        if low_stock:
            query = query.filter(Product.stock <= Product.min_stock_alert)

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        products = query.order_by(Product.id.desc()).offset(offset).limit(page_size).all()

        return products, total, total_pages

    def update(self, product_id: int, product_data: ProductUpdate) -> Product:
        """
        Save an edited product.

        Non-stock fields are last-write-wins. A provided ``stock`` is written
        through the Stock Ledger under lock, which stamps ``last_restock_date``
        when it went up.

        Args:
            product_id: ID of product to update
            product_data: Update data (only non-None fields are updated)

        Returns:
            Updated product

        Raises:
            ProductNotFoundError: If the product doesn't exist
        """
        update_data = product_data.model_dump(exclude_unset=True)
        new_stock = update_data.pop("stock", None)

        def _save():
            product = self.ledger.lock_product(product_id)
            for field, value in update_data.items():
                if value is not None:
                    setattr(product, field, value)
            if new_stock is not None:
                self.ledger.set_stock(product, new_stock)
            return product

        product = self.coordinator.run_atomic(_save, name=f"Update product #{product_id}")
        self.db.refresh(product)

        self._invalidate_cache(product_id)

        return product

    def adjust_stock(self, product_id: int, delta: int) -> Product:
        """
        Apply a relative stock change as its own atomic unit.

        Raises:
            ProductNotFoundError: If the product doesn't exist
            InsufficientStockError: If a negative delta exceeds the stock on hand
        """
        product = self.coordinator.run_atomic(
            lambda: self.ledger.apply_stock_delta(product_id, delta),
            name=f"Adjust stock of product #{product_id}",
        )
        self.db.refresh(product)

        self._invalidate_cache(product_id)

        return product

    def delete(self, product_id: int) -> bool:
        """
        Delete a product.

        Historical sales and debts keep their denormalized product name; their
        product reference is cleared.

        Args:
            product_id: ID of product to delete

        Returns:
            True if deleted, False if not found
        """
        def _delete():
            product = self.db.query(Product).filter(Product.id == product_id).first()
            if not product:
                return False
            self.db.delete(product)
            return True

        deleted = self.coordinator.run_atomic(_delete, name=f"Delete product #{product_id}")
        if not deleted:
            return False

        self._invalidate_cache(product_id)
        logger.info(f"Product #{product_id} deleted")

        return True

    def _cache_product(self, product: Product) -> dict:
        """Cache a product instance and return the cached payload."""
        product_dict = ProductResponse.model_validate(product).model_dump(mode="json")
        cache_service.set(self.CACHE_PREFIX, str(product.id), product_dict)
        return product_dict

    def _invalidate_cache(self, product_id: int) -> None:
        """Invalidate cache for a product."""
        cache_service.delete(self.CACHE_PREFIX, str(product_id))
