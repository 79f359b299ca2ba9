"""Typed failures raised by the reservation services.

Every kind carries a stable ``code`` for clients, the HTTP status the API
answers with, and a distinct user-facing message.
"""
from __future__ import annotations

from fastapi import status


class ReservationError(Exception):
    """Base class for reservation failures."""

    code = "reservation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "The reservation request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class SlotUnavailable(ReservationError):
    code = "slot_unavailable"
    status_code = status.HTTP_409_CONFLICT
    message = "This spot is no longer available. Please pick another one."


class ListingUnavailable(ReservationError):
    code = "listing_unavailable"
    status_code = status.HTTP_409_CONFLICT
    message = "All spots in this room are taken or on hold right now."


class NotAvailable(ReservationError):
    code = "not_available"
    status_code = status.HTTP_409_CONFLICT
    message = "This room is no longer available."


class UserHasActiveCommitment(ReservationError):
    code = "user_has_active_commitment"
    status_code = status.HTTP_409_CONFLICT
    message = "You can only have one active commitment at a time. Cancel it first to commit to a new spot."


class AlreadyInCheckout(ReservationError):
    code = "already_in_checkout"
    status_code = status.HTTP_409_CONFLICT
    message = "You have an active checkout session. Complete or cancel it first."


class OwnListing(ReservationError):
    code = "own_listing"
    status_code = status.HTTP_403_FORBIDDEN
    message = "You can't book your own listing."


class ListingInactive(ReservationError):
    code = "listing_inactive"
    status_code = status.HTTP_409_CONFLICT
    message = "Listing is not active."


class NotOwner(ReservationError):
    code = "not_owner"
    status_code = status.HTTP_403_FORBIDDEN
    message = "This hold belongs to another user."


class NotActive(ReservationError):
    code = "not_active"
    status_code = status.HTTP_409_CONFLICT
    message = "This commitment is no longer active."


class SessionNotActive(ReservationError):
    code = "session_not_active"
    status_code = status.HTTP_409_CONFLICT
    message = "This checkout session is no longer active."


class SessionExpired(ReservationError):
    code = "session_expired"
    status_code = status.HTTP_410_GONE
    message = "Your checkout session has expired. Please start again."


class NotFound(ReservationError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    message = "The requested item no longer exists."


class InvalidRequest(ReservationError):
    code = "invalid_request"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "The request is invalid."


class AuthenticationRequired(ReservationError):
    code = "authentication_required"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Sign in to book."
