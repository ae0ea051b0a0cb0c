"""
Job management service - booking lifecycle and settlement.

This module handles:
    - Creating and cancelling bookings (customer side)
    - Assigning, starting, completing and cancelling jobs (technician side)
    - Customer ratings
"""

from .exceptions import (
    ServiceError,
    InvalidAmountError,
    InvalidCommissionRateError,
    InvalidRatingError,
    AlreadyRatedError,
    OfferNotFoundError,
    OfferExpiredError,
    DuplicatePendingOfferError,
    DispatchAlreadyInProgressError,
    BookingNotFoundError,
    TechnicianNotFoundError,
    NotAssignedToYouError,
    InvalidStateError,
    TechnicianUnavailableError,
    NotActiveError,
    TechnicianNotQualifiedError,
    InvalidStatusFilterError,
)
from .lookups import get_booking, get_technician_for
from .settlement import (
    SettlementResult,
    claim_booking,
    assign_on_accept,
    start_booking,
    complete_booking,
    cancel_assigned,
)
from .booking_lifecycle import (
    BookingResult,
    create_booking,
    get_customer_bookings,
    cancel_by_customer,
    dispatch_booking,
)
from .ratings import submit_rating

__all__ = [
    # Lifecycle operations
    "create_booking",
    "get_customer_bookings",
    "cancel_by_customer",
    "dispatch_booking",
    "claim_booking",
    "assign_on_accept",
    "start_booking",
    "complete_booking",
    "cancel_assigned",
    "submit_rating",
    "get_booking",
    "get_technician_for",
    "BookingResult",
    "SettlementResult",
    # Exceptions
    "ServiceError",
    "InvalidAmountError",
    "InvalidCommissionRateError",
    "InvalidRatingError",
    "AlreadyRatedError",
    "OfferNotFoundError",
    "OfferExpiredError",
    "DuplicatePendingOfferError",
    "DispatchAlreadyInProgressError",
    "BookingNotFoundError",
    "TechnicianNotFoundError",
    "NotAssignedToYouError",
    "InvalidStateError",
    "TechnicianUnavailableError",
    "NotActiveError",
    "TechnicianNotQualifiedError",
    "InvalidStatusFilterError",
]
