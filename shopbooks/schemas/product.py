from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional


class ProductBase(BaseModel):
    """Base schema for Product with common attributes."""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    category: str = Field(default="", max_length=120, description="Product category")
    cost_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Unit acquisition cost")
    selling_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Default unit selling price")
    stock: int = Field(..., ge=0, description="Available stock (must be non-negative)")
    min_stock_alert: int = Field(default=0, ge=0, description="Low stock threshold")


class ProductCreate(ProductBase):
    """Schema for creating a new product."""
    shop_id: str = Field(..., min_length=1, max_length=64, description="Owning shop")


class ProductUpdate(BaseModel):
    """
    Schema for updating an existing product (edit-form save).
    All fields are optional. A higher ``stock`` counts as a restock.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255, description="Product name")
    category: Optional[str] = Field(None, max_length=120, description="Product category")
    cost_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2, description="Unit cost")
    selling_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2, description="Unit price")
    stock: Optional[int] = Field(None, ge=0, description="Available stock")
    min_stock_alert: Optional[int] = Field(None, ge=0, description="Low stock threshold")


class StockAdjustment(BaseModel):
    """Schema for a relative stock change (restock or write-off)."""
    delta: int = Field(..., description="Units to add (positive) or remove (negative)")

    @field_validator("delta")
    @classmethod
    def delta_not_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("delta must not be zero")
        return value


class ProductResponse(BaseModel):
    """Schema for product response including all fields."""
    id: int
    shop_id: str
    name: str
    category: str
    cost_price: float
    selling_price: float
    stock: int
    min_stock_alert: int
    is_low_stock: bool
    last_restock_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    """Schema for paginated product list response."""
    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
