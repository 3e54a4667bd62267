from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func

from shopbooks.database import Base


class Expense(Base):
    """Operating expense recorded by a shop (rent, transport, wages...)."""
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String(64), nullable=False, index=True)
    category = Column(String(120), nullable=False)
    description = Column(String(500), nullable=False, default="")
    amount = Column(Numeric(12, 2), nullable=False)
    spent_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint('amount > 0', name='check_expense_amount_positive'),
    )

    def __repr__(self):
        return f"<Expense(id={self.id}, category='{self.category}', amount={self.amount})>"
