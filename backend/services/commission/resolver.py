"""
Commission resolution.

Splits a booking total into the technician's earnings and the platform's
commission using the currently configured percentage. The admin share is
rounded half-up to whole currency units, never above the total, and the
technician receives the remainder, so the two parts always sum back to the
total.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from django.conf import settings
from django.db import transaction

from commissions.models import CommissionSetting, CommissionRateChange
from services.job_management.exceptions import InvalidAmountError, InvalidCommissionRateError

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
WHOLE_UNIT = Decimal("1")
RATE_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class CommissionSplit:
    """Result of splitting a booking total."""
    total_amount: Decimal
    technician_earnings: Decimal
    admin_commission: Decimal
    percentage_used: Decimal

    def as_dict(self):
        return {
            "totalAmount": _plain_number(self.total_amount),
            "technicianEarnings": _plain_number(self.technician_earnings),
            "adminCommission": _plain_number(self.admin_commission),
            "commissionPercentage": _plain_number(self.percentage_used),
        }


def _plain_number(value: Decimal):
    return int(value) if value == value.to_integral_value() else float(value)


def default_percentage() -> Decimal:
    return Decimal(str(getattr(settings, "DEFAULT_COMMISSION_PERCENTAGE", 30)))


def _valid_percentage(value) -> Optional[Decimal]:
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        return None
    return pct


def get_commission_percentage() -> Decimal:
    """Current commission percentage, falling back to the default."""
    stored = (
        CommissionSetting.objects
        .filter(key=CommissionSetting.COMMISSION_KEY)
        .values_list("percentage", flat=True)
        .first()
    )
    if stored is None:
        return default_percentage()

    pct = _valid_percentage(stored)
    if pct is None:
        logger.warning("Ignoring invalid stored commission percentage %r", stored)
        return default_percentage()
    return pct


def to_amount(total_amount) -> Decimal:
    """Coerce a booking total to Decimal or raise InvalidAmountError."""
    if total_amount is None or isinstance(total_amount, bool):
        raise InvalidAmountError()
    try:
        amount = Decimal(str(total_amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError()
    if not amount.is_finite() or amount < 0:
        raise InvalidAmountError()
    return amount


def resolve_commission(total_amount, percentage=None) -> CommissionSplit:
    """
    Split `total_amount` into technician earnings and admin commission.

    Args:
        total_amount: booking total (number or numeric string)
        percentage: explicit percentage; the configured one is used when omitted

    Returns:
        CommissionSplit with technician_earnings + admin_commission == total

    Raises:
        InvalidAmountError: If the total is missing, negative or not finite
    """
    amount = to_amount(total_amount)

    pct = _valid_percentage(percentage) if percentage is not None else None
    if pct is None:
        pct = get_commission_percentage()

    admin_commission = (amount * pct / HUNDRED).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)
    # Rounding up must never take more than the whole total
    admin_commission = min(admin_commission, amount)
    technician_earnings = amount - admin_commission

    return CommissionSplit(
        total_amount=amount,
        technician_earnings=technician_earnings,
        admin_commission=admin_commission,
        percentage_used=pct,
    )


@transaction.atomic
def update_commission_rate(caller, rate) -> CommissionSetting:
    """
    Set the platform commission percentage and record the change.

    Raises:
        InvalidCommissionRateError: If rate is not a number in 0-100
    """
    if isinstance(rate, bool):
        raise InvalidCommissionRateError()
    pct = _valid_percentage(rate)
    if pct is None:
        raise InvalidCommissionRateError()
    # Stored with two decimal places
    pct = pct.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)

    setting = (
        CommissionSetting.objects
        .select_for_update()
        .filter(key=CommissionSetting.COMMISSION_KEY)
        .first()
    )
    old_rate = setting.percentage if setting else None

    if setting is None:
        setting = CommissionSetting(key=CommissionSetting.COMMISSION_KEY)
    setting.percentage = pct
    setting.updated_by_id = caller.user_id
    setting.save()

    CommissionRateChange.objects.create(
        old_rate=old_rate,
        new_rate=pct,
        changed_by_id=caller.user_id,
    )

    logger.info("Commission rate changed from %s to %s by user %s", old_rate, pct, caller.user_id)
    return setting


def get_commission_history(limit: int = 20):
    return list(
        CommissionRateChange.objects
        .select_related("changed_by")
        .order_by("-changed_at", "-id")[:limit]
    )
