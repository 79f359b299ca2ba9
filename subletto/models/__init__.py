"""Expose ORM models."""
from .booking import Booking, BookingStatus
from .checkout_session import CheckoutSession, CheckoutState
from .commitment import Commitment, CommitmentStatus
from .interest import Interest
from .listing import Listing
from .slot import RoomSlot, SlotStatus

__all__ = [
    "Booking",
    "BookingStatus",
    "CheckoutSession",
    "CheckoutState",
    "Commitment",
    "CommitmentStatus",
    "Interest",
    "Listing",
    "RoomSlot",
    "SlotStatus",
]
