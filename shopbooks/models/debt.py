from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from shopbooks.database import Base
from shopbooks.utils.clock import utcnow


class DebtSourceKind(str, enum.Enum):
    """What a debt was extended against."""
    INVENTORY = "inventory"
    CUSTOM = "custom"


class Debt(Base):
    """
    Debt model representing a line of credit extended to a debtor.

    ``total_amount`` is fixed at creation; ``amount_owed`` only ever goes down
    through payments, and ``is_paid`` flips once it reaches zero. Settled
    debts are kept for auditability.

    Attributes:
        id: Unique identifier for the debt
        shop_id: Identifier of the owning shop
        debtor_name: Who owes the money
        source_kind: INVENTORY for a product loan, CUSTOM for a non-inventory debt
        product_id: Loaned product (None for custom debts)
        product_name: Product name or custom description
        quantity: Units loaned (informational for custom debts)
        total_amount: Original principal
        amount_owed: Remaining balance
        borrow_date: When the credit was extended
        due_date: When repayment is expected
        is_paid: True once amount_owed reached zero
        version_id: Optimistic concurrency counter, bumped on every write
    """
    __tablename__ = "debts"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String(64), nullable=False, index=True)
    debtor_name = Column(String(255), nullable=False, index=True)
    source_kind = Column(Enum(DebtSourceKind), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(12, 2), nullable=False)
    amount_owed = Column(Numeric(12, 2), nullable=False)
    borrow_date = Column(DateTime(timezone=True), nullable=False, index=True)
    due_date = Column(DateTime(timezone=True), nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False, index=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('amount_owed >= 0', name='check_amount_owed_non_negative'),
        CheckConstraint('amount_owed <= total_amount', name='check_amount_owed_within_total'),
        CheckConstraint('quantity >= 0', name='check_debt_quantity_non_negative'),
    )

    __mapper_args__ = {"version_id_col": version_id}

    product = relationship("Product", backref="debts")
    payments = relationship(
        "DebtPayment",
        back_populates="debt",
        order_by="DebtPayment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def amount_paid(self):
        return self.total_amount - self.amount_owed

    @property
    def is_overdue(self) -> bool:
        if self.is_paid or self.due_date is None:
            return False
        due = self.due_date
        # SQLite hands back naive datetimes; they are stored as UTC.
        if due.tzinfo is None:
            return due < utcnow().replace(tzinfo=None)
        return due < utcnow()

    def __repr__(self):
        return f"<Debt(id={self.id}, debtor='{self.debtor_name}', owed={self.amount_owed}, paid={self.is_paid})>"


class DebtPayment(Base):
    """
    Immutable payment entry appended to a debt's history.

    Attributes:
        id: Unique identifier for the payment
        debt_id: Owning debt
        shop_id: Identifier of the owning shop
        amount: Amount paid (must be positive)
        paid_at: When the payment was received
    """
    __tablename__ = "debt_payments"

    id = Column(Integer, primary_key=True, index=True)
    debt_id = Column(Integer, ForeignKey("debts.id", ondelete="CASCADE"), nullable=False, index=True)
    shop_id = Column(String(64), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='check_payment_amount_positive'),
    )

    debt = relationship("Debt", back_populates="payments")

    def __repr__(self):
        return f"<DebtPayment(id={self.id}, debt_id={self.debt_id}, amount={self.amount})>"
