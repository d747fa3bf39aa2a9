"""
Offer service: coupon CRUD, verification and redemption.

Redemption runs inside the caller's booking transaction. The offer row is
locked and `used_count` is bumped with the same guarded-UPDATE pattern the
booking service uses for seats:

  UPDATE offers SET used_count = used_count + 1
  WHERE id = :id AND (max_uses IS NULL OR used_count < max_uses)

so the last use of a limited offer goes to exactly one booking.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from hushryd.models.booking import Booking
from hushryd.models.offer import Offer, OfferUsage, as_utc
from hushryd.schemas.offer import OfferCreate
from hushryd.core.exceptions import ConflictError, NotFoundError, NoFieldsError, OfferNotValidError
from hushryd.core.logging import get_logger
from hushryd.db.session import transaction

logger = get_logger(__name__)

OFFER_UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "discount_type",
    "discount_value",
    "min_amount",
    "max_discount",
    "max_uses",
    "valid_from",
    "valid_until",
    "is_active",
    "applicable_to",
})
_DATETIME_FIELDS = ("valid_from", "valid_until")


def _normalize_code(code: str) -> str:
    return code.strip().upper()


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


async def create_offer(db: AsyncSession, offer_data: OfferCreate, created_by: Optional[str]) -> Offer:
    code = _normalize_code(offer_data.code)
    async with transaction(db):
        existing = await db.execute(select(Offer.id).where(Offer.code == code))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("offer", "code", code)

        offer = Offer(
            code=code,
            title=offer_data.title,
            description=offer_data.description,
            discount_type=offer_data.discount_type.value,
            discount_value=offer_data.discount_value,
            min_amount=offer_data.min_amount,
            max_discount=offer_data.max_discount,
            max_uses=offer_data.max_uses,
            valid_from=as_utc(offer_data.valid_from),
            valid_until=as_utc(offer_data.valid_until),
            is_active=offer_data.is_active,
            applicable_to=offer_data.applicable_to.value,
            created_by=created_by,
        )
        db.add(offer)
        await db.flush()
        await db.refresh(offer)

    logger.info("offer_created", offer_id=offer.id, code=code)
    return offer


async def get_offer(db: AsyncSession, offer_id: str) -> Offer:
    result = await db.execute(
        select(Offer).where(Offer.id == offer_id).execution_options(populate_existing=True)
    )
    offer = result.scalar_one_or_none()
    if offer is None:
        raise NotFoundError("offer", offer_id)
    return offer


async def get_offer_by_code(db: AsyncSession, code: str) -> Offer:
    code = _normalize_code(code)
    result = await db.execute(
        select(Offer).where(Offer.code == code).execution_options(populate_existing=True)
    )
    offer = result.scalar_one_or_none()
    if offer is None:
        raise NotFoundError("offer", code)
    return offer


async def list_offers(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    is_active: Optional[bool] = None,
    applicable_to: Optional[str] = None,
) -> tuple[list[Offer], int]:
    query = select(Offer)
    if is_active is not None:
        query = query.where(Offer.is_active == is_active)
    if applicable_to:
        query = query.where(Offer.applicable_to == applicable_to)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(Offer.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def list_active_offers(db: AsyncSession, now: Optional[datetime] = None) -> list[Offer]:
    """Offers a customer could use right now."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Offer)
        .where(
            Offer.is_active.is_(True),
            or_(Offer.max_uses.is_(None), Offer.used_count < Offer.max_uses),
        )
        .order_by(Offer.created_at.desc())
        .execution_options(populate_existing=True)
    )
    # SQLite compares stored datetimes as text, so the window is checked here
    return [offer for offer in result.scalars().all() if offer.is_valid(now)]


async def update_offer(db: AsyncSession, offer_id: str, fields: Mapping[str, Any]) -> Offer:
    """Write allow-listed fields. None values are ignored, as is the code."""
    updates = {
        key: _plain(value) for key, value in fields.items()
        if key in OFFER_UPDATABLE_FIELDS and value is not None
    }
    if not updates:
        raise NoFieldsError(OFFER_UPDATABLE_FIELDS)
    for key in _DATETIME_FIELDS:
        if key in updates:
            updates[key] = as_utc(updates[key])

    async with transaction(db):
        offer = await get_offer(db, offer_id)
        for key, value in updates.items():
            setattr(offer, key, value)
        if as_utc(offer.valid_until) <= as_utc(offer.valid_from):
            raise ValueError("valid_until must be after valid_from")
        await db.flush()
        await db.refresh(offer)

    logger.info("offer_updated", offer_id=offer_id, fields=sorted(updates))
    return offer


async def delete_offer(db: AsyncSession, offer_id: str) -> None:
    async with transaction(db):
        offer = await get_offer(db, offer_id)
        await db.delete(offer)
        await db.flush()
    logger.info("offer_deleted", offer_id=offer_id)


def _check_applicable(offer: Offer, amount: Optional[Decimal], now: datetime) -> None:
    if not offer.is_valid(now):
        raise OfferNotValidError(offer.code, "not valid or has expired")
    if amount is not None and amount < Decimal(offer.min_amount):
        raise OfferNotValidError(offer.code, f"minimum amount of {offer.min_amount} required")


async def verify_offer(
    db: AsyncSession,
    code: str,
    amount: Optional[Decimal] = None,
) -> tuple[Offer, Optional[Decimal], Optional[Decimal]]:
    """
    Check a code without using it up.
    Returns (offer, discount, final_amount); the last two are None without an amount.
    """
    offer = await get_offer_by_code(db, code)
    _check_applicable(offer, amount, datetime.now(timezone.utc))
    if amount is None:
        return offer, None, None
    discount = offer.calculate_discount(amount)
    return offer, discount, Decimal(amount) - discount


async def redeem_offer(db: AsyncSession, code: str, user_id: str, booking: Booking) -> OfferUsage:
    """
    Apply an offer to a freshly flushed booking inside the caller's
    transaction. Rewrites `booking.total_price` to the discounted amount.
    """
    code = _normalize_code(code)
    result = await db.execute(
        select(Offer)
        .where(Offer.code == code)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    offer = result.scalar_one_or_none()
    if offer is None:
        raise NotFoundError("offer", code)

    original = Decimal(booking.total_price)
    _check_applicable(offer, original, datetime.now(timezone.utc))

    bumped = await db.execute(
        update(Offer)
        .where(
            Offer.id == offer.id,
            or_(Offer.max_uses.is_(None), Offer.used_count < Offer.max_uses),
        )
        .values(used_count=Offer.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount == 0:
        raise OfferNotValidError(code, "usage limit reached")

    discount = offer.calculate_discount(original)
    usage = OfferUsage(
        offer_id=offer.id,
        user_id=user_id,
        booking_id=booking.id,
        discount_amount=discount,
        original_amount=original,
        final_amount=original - discount,
    )
    booking.total_price = original - discount
    db.add(usage)
    await db.flush()

    logger.info("offer_redeemed", code=code, booking_id=booking.id, discount=str(discount))
    return usage


async def get_offer_usage_stats(db: AsyncSession, offer_id: str) -> dict:
    row = (await db.execute(
        select(
            func.count(OfferUsage.id),
            func.coalesce(func.sum(OfferUsage.discount_amount), 0),
            func.coalesce(func.sum(OfferUsage.final_amount), 0),
        ).where(OfferUsage.offer_id == offer_id)
    )).one()
    return {
        "total_uses": row[0],
        "total_discount": Decimal(str(row[1])).quantize(Decimal("0.01")),
        "total_revenue": Decimal(str(row[2])).quantize(Decimal("0.01")),
    }


async def list_offer_usage(db: AsyncSession, offer_id: str) -> list[OfferUsage]:
    await get_offer(db, offer_id)
    result = await db.execute(
        select(OfferUsage)
        .where(OfferUsage.offer_id == offer_id)
        .order_by(OfferUsage.used_at.desc())
    )
    return list(result.scalars().all())
