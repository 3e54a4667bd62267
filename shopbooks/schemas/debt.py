from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from shopbooks.models.debt import DebtSourceKind


class InventorySource(BaseModel):
    """Debt backed by goods taken out of stock."""
    kind: Literal["inventory"] = "inventory"
    product_id: int = Field(..., description="ID of the loaned product")


class CustomSource(BaseModel):
    """Debt with no inventory effect (cash loan, service, untracked goods)."""
    kind: Literal["custom"] = "custom"
    description: str = Field(..., min_length=1, max_length=255, description="What was lent")


DebtSource = Annotated[Union[InventorySource, CustomSource], Field(discriminator="kind")]


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes from the client are taken as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class DebtCreate(BaseModel):
    """Schema for issuing a new debt."""
    shop_id: str = Field(..., min_length=1, max_length=64, description="Owning shop")
    debtor_name: str = Field(..., min_length=1, max_length=255, description="Who owes the money")
    source: DebtSource
    quantity: int = Field(default=1, ge=1, description="Units loaned")
    amount_owed: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Principal owed")
    borrow_date: datetime = Field(..., description="When the credit was extended")
    due_date: datetime = Field(..., description="When repayment is expected")

    @model_validator(mode="after")
    def due_after_borrow(self):
        if _as_utc(self.due_date) < _as_utc(self.borrow_date):
            raise ValueError("due_date must not be before borrow_date")
        return self


class PaymentCreate(BaseModel):
    """Schema for a (partial) payment against a debt."""
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount paid")


class PaymentRecordResponse(BaseModel):
    """Schema for one entry of a debt's payment history."""
    id: int
    amount: float
    paid_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DebtResponse(BaseModel):
    """Schema for debt response including its payment history."""
    id: int
    shop_id: str
    debtor_name: str
    source_kind: DebtSourceKind
    product_id: Optional[int] = None
    product_name: str
    quantity: int
    total_amount: float
    amount_owed: float
    amount_paid: float
    borrow_date: datetime
    due_date: datetime
    is_paid: bool
    is_overdue: bool
    payments: list[PaymentRecordResponse]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DebtListResponse(BaseModel):
    """Schema for paginated debt list response."""
    items: list[DebtResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    total_outstanding: float
