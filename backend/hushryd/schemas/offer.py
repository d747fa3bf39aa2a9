"""
Pydantic schemas for offer management and coupon verification.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from hushryd.models.offer import DiscountType, OfferAudience


class OfferCreate(BaseModel):
    code: str = Field(..., min_length=2, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    min_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount: Optional[Decimal] = Field(None, gt=0)
    max_uses: Optional[int] = Field(None, gt=0)
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True
    applicable_to: OfferAudience = OfferAudience.ALL

    @model_validator(mode="after")
    def check_window(self):
        if self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self


class OfferUpdate(BaseModel):
    """Every field optional; the code itself is fixed once created."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    min_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, gt=0)
    max_uses: Optional[int] = Field(None, gt=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None
    applicable_to: Optional[OfferAudience] = None


class OfferResponse(BaseModel):
    id: str
    code: str
    title: str
    description: Optional[str]
    discount_type: str
    discount_value: Decimal
    min_amount: Decimal
    max_discount: Optional[Decimal]
    max_uses: Optional[int]
    used_count: int
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    applicable_to: str
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OfferListResponse(BaseModel):
    offers: list[OfferResponse]
    page: int
    limit: int
    total: int


class OfferUsageStats(BaseModel):
    total_uses: int
    total_discount: Decimal
    total_revenue: Decimal


class OfferDetailResponse(BaseModel):
    offer: OfferResponse
    stats: OfferUsageStats


class OfferUsageResponse(BaseModel):
    id: str
    offer_id: str
    user_id: str
    booking_id: Optional[str]
    discount_amount: Decimal
    original_amount: Decimal
    final_amount: Decimal
    used_at: datetime

    model_config = {"from_attributes": True}


class OfferVerifyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    amount: Optional[Decimal] = Field(None, ge=0)


class OfferVerifyResponse(BaseModel):
    offer: OfferResponse
    discount: Optional[Decimal]
    final_amount: Optional[Decimal]
