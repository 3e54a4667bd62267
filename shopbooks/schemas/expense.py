from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from decimal import Decimal
from typing import Optional


class ExpenseCreate(BaseModel):
    """Schema for recording an expense."""
    shop_id: str = Field(..., min_length=1, max_length=64, description="Owning shop")
    category: str = Field(..., min_length=1, max_length=120, description="Expense type, e.g. rent")
    description: str = Field(default="", max_length=500)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount spent")
    spent_at: Optional[datetime] = Field(None, description="When the money was spent; defaults to now")


class ExpenseResponse(BaseModel):
    """Schema for expense response."""
    id: int
    shop_id: str
    category: str
    description: str
    amount: float
    spent_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExpenseListResponse(BaseModel):
    """Schema for paginated expense list response."""
    items: list[ExpenseResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    total_amount: float
