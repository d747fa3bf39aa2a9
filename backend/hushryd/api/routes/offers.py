"""
Offer endpoints: admin coupon management plus public listing and verification.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hushryd.db.session import get_db
from hushryd.models.offer import OfferAudience
from hushryd.models.user import User
from hushryd.schemas.offer import (
    OfferCreate,
    OfferUpdate,
    OfferResponse,
    OfferListResponse,
    OfferDetailResponse,
    OfferUsageResponse,
    OfferVerifyRequest,
    OfferVerifyResponse,
)
from hushryd.services.offer_service import (
    create_offer,
    get_offer,
    list_offers,
    list_active_offers,
    update_offer,
    delete_offer,
    verify_offer,
    get_offer_usage_stats,
    list_offer_usage,
)
from hushryd.core.security import require_admin

router = APIRouter(prefix="/offers", tags=["Offers"])


@router.get("/", response_model=OfferListResponse)
async def list_offers_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    is_active: Optional[bool] = Query(None),
    applicable_to: Optional[OfferAudience] = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    offers, total = await list_offers(
        db, page, limit, is_active, applicable_to.value if applicable_to else None
    )
    return OfferListResponse(
        offers=[OfferResponse.model_validate(o) for o in offers],
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/active", response_model=list[OfferResponse])
async def active_offers(db: AsyncSession = Depends(get_db)):
    """Offers usable right now. Public."""
    return await list_active_offers(db)


@router.post("/verify", response_model=OfferVerifyResponse)
async def verify_offer_endpoint(body: OfferVerifyRequest, db: AsyncSession = Depends(get_db)):
    """
    Check a coupon code and preview the discount for `amount`. Public, and
    does not consume a use; redemption happens when booking with `offer_code`.
    """
    offer, discount, final_amount = await verify_offer(db, body.code, body.amount)
    return OfferVerifyResponse(
        offer=OfferResponse.model_validate(offer),
        discount=discount,
        final_amount=final_amount,
    )


@router.post("/", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer_endpoint(
    offer_data: OfferCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await create_offer(db, offer_data, created_by=admin.id)


@router.get("/{offer_id}", response_model=OfferDetailResponse)
async def get_offer_endpoint(
    offer_id: str,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    offer = await get_offer(db, offer_id)
    stats = await get_offer_usage_stats(db, offer_id)
    return OfferDetailResponse(offer=OfferResponse.model_validate(offer), stats=stats)


@router.get("/{offer_id}/usage", response_model=list[OfferUsageResponse])
async def offer_usage(
    offer_id: str,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await list_offer_usage(db, offer_id)


@router.put("/{offer_id}", response_model=OfferResponse)
async def update_offer_endpoint(
    offer_id: str,
    offer_data: OfferUpdate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await update_offer(db, offer_id, offer_data.model_dump(exclude_unset=True))


@router.delete("/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_offer_endpoint(
    offer_id: str,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_offer(db, offer_id)
