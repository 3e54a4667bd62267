from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from decimal import Decimal
from typing import Optional


class SaleCreate(BaseModel):
    """Schema for recording a sale (checkout)."""
    shop_id: str = Field(..., min_length=1, max_length=64, description="Owning shop")
    product_id: int = Field(..., description="ID of the product sold")
    quantity: int = Field(..., ge=1, description="Units sold")
    unit_price: Optional[Decimal] = Field(
        None,
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Unit price charged; defaults to the product's selling price",
    )
    sold_at: Optional[datetime] = Field(None, description="When the sale happened; defaults to now")


class SaleResponse(BaseModel):
    """Schema for sale response."""
    id: int
    shop_id: str
    product_id: Optional[int] = None
    debt_id: Optional[int] = None
    product_name: str
    quantity: int
    selling_price_snapshot: float
    cost_price_snapshot: float
    total_amount: float
    profit: float
    is_debt_payment: bool
    sold_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SaleListResponse(BaseModel):
    """Schema for paginated sale list response."""
    items: list[SaleResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
