from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func

from shopbooks.database import Base


class Product(Base):
    """
    Product model representing a sellable or loanable item owned by a shop.

    Attributes:
        id: Unique identifier for the product
        shop_id: Identifier of the owning shop
        name: Product name
        category: Free-form product category
        cost_price: Unit acquisition cost
        selling_price: Default unit selling price
        stock: On-hand unit count (must be non-negative)
        min_stock_alert: Threshold at or below which the product is low on stock
        last_restock_date: When stock last increased, None if never
        version_id: Optimistic concurrency counter, bumped on every write
        created_at: Timestamp when product was created
        updated_at: Timestamp when product was last updated
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(120), nullable=False, default="")
    cost_price = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    min_stock_alert = Column(Integer, nullable=False, default=0)
    last_restock_date = Column(DateTime(timezone=True), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint('cost_price >= 0', name='check_cost_price_non_negative'),
        CheckConstraint('selling_price >= 0', name='check_selling_price_non_negative'),
        CheckConstraint('stock >= 0', name='check_stock_non_negative'),
    )

    # A write against a stale version raises StaleDataError instead of
    # silently overwriting a concurrent stock change.
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock_alert

    def __repr__(self):
        return f"<Product(id={self.id}, shop_id='{self.shop_id}', name='{self.name}', stock={self.stock})>"
