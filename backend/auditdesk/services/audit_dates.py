"""
Audit date calculation.

Cadence by tier:
- TIER_2 (new companies): every week
- TIER_3 (established, low ad spend): every calendar month
- TIER_1 (established, high ad spend) and anything unrecognised: every 3 calendar months

Every computed date is then moved forward onto AUDIT_WEEKDAY so all audits
land on the same day of the week.
"""
from datetime import datetime, timedelta
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from auditdesk.core.clock import to_naive_utc, utcnow
from auditdesk.db.models import CompanyTier

AUDIT_WEEKDAY = 2  # Wednesday (Monday == 0)

# Existing audits within this many days of the expected date are left alone
RESCHEDULE_TOLERANCE_DAYS = 3

_CADENCE = {
    CompanyTier.TIER_2: relativedelta(days=7),
    CompanyTier.TIER_3: relativedelta(months=1),
    CompanyTier.TIER_1: relativedelta(months=3),
}


def align_to_audit_weekday(date: datetime) -> datetime:
    """
    Move date forward to the nearest AUDIT_WEEKDAY.

    A date already on the weekday is kept; earlier in the week moves to this
    week's occurrence; later in the week moves to next week's.
    Offset-aware dates are converted to naive UTC first.
    """
    date = to_naive_utc(date)
    days_ahead = (AUDIT_WEEKDAY - date.weekday()) % 7
    return date + timedelta(days=days_ahead)


def calculate_next_audit_date(
    tier: Union[CompanyTier, str],
    from_date: Optional[datetime] = None,
) -> datetime:
    """Next audit date for a company in `tier`, counted from `from_date` (default: now)."""
    from_date = to_naive_utc(from_date) if from_date else utcnow()
    try:
        cadence = _CADENCE[CompanyTier(tier)]
    except ValueError:
        cadence = _CADENCE[CompanyTier.TIER_1]
    return align_to_audit_weekday(from_date + cadence)


def days_between(a: datetime, b: datetime) -> float:
    return abs((a - b).total_seconds()) / 86400


def should_reschedule_based_on_tier(
    tier: Union[CompanyTier, str],
    current_scheduled_date: datetime,
    now: Optional[datetime] = None,
) -> bool:
    """True when the audit is more than RESCHEDULE_TOLERANCE_DAYS away from where the tier puts it."""
    expected = calculate_next_audit_date(tier, now)
    return days_between(expected, to_naive_utc(current_scheduled_date)) > RESCHEDULE_TOLERANCE_DAYS
