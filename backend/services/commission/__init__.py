"""
Commission service.

Resolves the admin/technician split of a booking total and manages the
configured commission percentage.
"""

from .resolver import (
    CommissionSplit,
    resolve_commission,
    get_commission_percentage,
    update_commission_rate,
    get_commission_history,
)

__all__ = [
    "CommissionSplit",
    "resolve_commission",
    "get_commission_percentage",
    "update_commission_rate",
    "get_commission_history",
]
