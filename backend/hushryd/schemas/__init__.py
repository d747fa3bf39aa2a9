from hushryd.schemas.user import (
    UserCreate,
    UserAdminCreate,
    UserUpdate,
    UserResponse,
    UserListResponse,
    UserStats,
    UserLogin,
    Token,
)
from hushryd.schemas.ride import RideCreate, RideUpdate, RideResponse, RideListResponse, RideStats
from hushryd.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingResponse,
    BookingListResponse,
    BookingDeleteResponse,
    BookingStats,
)
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

__all__ = [
    "UserCreate", "UserAdminCreate", "UserUpdate", "UserResponse", "UserListResponse",
    "UserStats", "UserLogin", "Token",
    "RideCreate", "RideUpdate", "RideResponse", "RideListResponse", "RideStats",
    "BookingCreate", "BookingUpdate", "BookingResponse", "BookingListResponse",
    "BookingDeleteResponse", "BookingStats",
    "OfferCreate", "OfferUpdate", "OfferResponse", "OfferListResponse", "OfferDetailResponse",
    "OfferUsageResponse", "OfferVerifyRequest", "OfferVerifyResponse",
]
