from hushryd.models.user import User
from hushryd.models.ride import Ride, RideStatus
from hushryd.models.booking import Booking, BookingStatus, PaymentStatus
from hushryd.models.offer import Offer, OfferUsage, DiscountType, OfferAudience

__all__ = [
    "User", "Ride", "RideStatus", "Booking", "BookingStatus", "PaymentStatus",
    "Offer", "OfferUsage", "DiscountType", "OfferAudience",
]
