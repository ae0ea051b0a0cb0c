"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - job_management: Booking lifecycle, settlement and ratings
    - commission: Commission percentage and earnings split
    - matching: Technician directory and job offer dispatch
"""

# job_management first: commission and matching import its exceptions
from .job_management import (
    create_booking,
    cancel_by_customer,
    dispatch_booking,
    start_booking,
    complete_booking,
    cancel_assigned,
    submit_rating,
    ServiceError,
)
from .commission import resolve_commission, update_commission_rate
from .matching import (
    start_dispatch,
    accept_offer,
    reject_offer,
    expire_offer_and_dispatch,
    process_offer_timeouts,
)

__all__ = [
    # Job management
    "create_booking",
    "cancel_by_customer",
    "dispatch_booking",
    "start_booking",
    "complete_booking",
    "cancel_assigned",
    "submit_rating",
    "ServiceError",
    # Commission
    "resolve_commission",
    "update_commission_rate",
    # Matching
    "start_dispatch",
    "accept_offer",
    "reject_offer",
    "expire_offer_and_dispatch",
    "process_offer_timeouts",
]
