"""
Technician matching and job offer dispatch.

This module handles:
    - Finding eligible technicians for a booking (directory)
    - Persisting offers and applying technician responses (offer_store)
    - Dispatching offers one technician at a time and cascading on
      rejection or expiry (offer_dispatch)
    - Manual assignment of open bookings by an admin
"""

from .directory import find_candidates
from .offer_store import create_offer, respond, mark_expired, sweep_expired, get_pending_offers_for
from .offer_dispatch import (
    DispatchResult,
    get_dispatch_state,
    start_dispatch,
    accept_offer,
    reject_offer,
    expire_offer_and_dispatch,
    process_offer_timeouts,
    get_assignment_candidates,
    assign_by_admin,
)

__all__ = [
    "find_candidates",
    "create_offer",
    "respond",
    "mark_expired",
    "sweep_expired",
    "get_pending_offers_for",
    "DispatchResult",
    "get_dispatch_state",
    "start_dispatch",
    "accept_offer",
    "reject_offer",
    "expire_offer_and_dispatch",
    "process_offer_timeouts",
    "get_assignment_candidates",
    "assign_by_admin",
]
