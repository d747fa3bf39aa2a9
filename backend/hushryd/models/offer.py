"""
Offer (coupon) model and its redemption ledger.

- `code` is stored upper-case and unique; lookups upper-case the input.
- `used_count` is bumped by a guarded UPDATE in the offer service, so
  `max_uses` holds under concurrent redemptions the same way seats do.
- Every redemption writes an `OfferUsage` row tying offer, user and booking.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
    func,
)
from sqlalchemy.orm import relationship

from hushryd.db.base import Base, TimestampMixin, new_id

CENT = Decimal("0.01")


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class OfferAudience(str, Enum):
    ALL = "all"
    NEW_USERS = "new_users"
    SPECIFIC_USERS = "specific_users"


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Offer(Base, TimestampMixin):
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(50), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_amount = Column(Numeric(10, 2), nullable=False, default=0)
    max_discount = Column(Numeric(10, 2), nullable=True)
    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    applicable_to = Column(String(20), nullable=False, default=OfferAudience.ALL.value)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    usages = relationship("OfferUsage", back_populates="offer", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("discount_value > 0", name="check_offer_discount_positive"),
        CheckConstraint("used_count >= 0", name="check_offer_used_count_non_negative"),
        CheckConstraint(
            "max_uses IS NULL OR used_count <= max_uses",
            name="check_offer_used_lte_max",
        ),
        CheckConstraint("discount_type IN ('percentage', 'fixed')", name="check_offer_discount_type"),
        CheckConstraint(
            "applicable_to IN ('all', 'new_users', 'specific_users')",
            name="check_offer_applicable_to",
        ),
        Index("ix_offers_validity", "valid_from", "valid_until", "is_active"),
    )

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return (
            bool(self.is_active)
            and as_utc(self.valid_from) <= now <= as_utc(self.valid_until)
            and (self.max_uses is None or self.used_count < self.max_uses)
        )

    def calculate_discount(self, amount: Decimal) -> Decimal:
        """Discount for `amount`, capped by max_discount and never above the amount."""
        amount = Decimal(amount)
        if self.discount_type == DiscountType.PERCENTAGE.value:
            discount = amount * Decimal(self.discount_value) / 100
            if self.max_discount is not None:
                discount = min(discount, Decimal(self.max_discount))
        else:
            discount = Decimal(self.discount_value)
        discount = max(Decimal(0), min(discount, amount))
        return discount.quantize(CENT, rounding=ROUND_HALF_UP)

    def __repr__(self) -> str:
        return f"<Offer(code={self.code}, used={self.used_count}/{self.max_uses})>"


class OfferUsage(Base):
    __tablename__ = "offer_usage"

    id = Column(String(36), primary_key=True, default=new_id)
    offer_id = Column(String(36), ForeignKey("offers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    original_amount = Column(Numeric(10, 2), nullable=False)
    final_amount = Column(Numeric(10, 2), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    offer = relationship("Offer", back_populates="usages")
