from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from shopbooks.database import Base


class Sale(Base):
    """
    Sale model representing an immutable record of a completed transaction.

    Prices are snapshotted at the time of the sale so later product edits
    never alter historical totals. A sale with ``quantity == 0`` and a
    ``debt_id`` is the cash-recognition record of a debt payment.

    Attributes:
        id: Unique identifier for the sale
        shop_id: Identifier of the owning shop
        product_id: Reference to the sold product (None for custom debt payments
            or once the product was deleted)
        debt_id: Debt whose payment produced this sale, if any. Kept after
            the debt is deleted.
        product_name: Product name at the time of sale
        quantity: Number of units sold
        selling_price_snapshot: Unit price charged
        cost_price_snapshot: Unit cost at the time of sale
        total_amount: selling_price_snapshot * quantity
        profit: (selling_price_snapshot - cost_price_snapshot) * quantity
        sold_at: When the sale happened
        created_at: Timestamp when the record was written
    """
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String(64), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    # Plain reference: payment sales outlive a deleted debt
    debt_id = Column(Integer, nullable=True, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    selling_price_snapshot = Column(Numeric(12, 2), nullable=False)
    cost_price_snapshot = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    profit = Column(Numeric(12, 2), nullable=False)
    sold_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='check_sale_quantity_non_negative'),
    )

    # Relationship to Product
    product = relationship("Product", backref="sales")

    @property
    def is_debt_payment(self) -> bool:
        return self.debt_id is not None and self.quantity == 0

    def __repr__(self):
        return f"<Sale(id={self.id}, product_id={self.product_id}, quantity={self.quantity}, total={self.total_amount})>"
