"""
SLA deadline calculator.

The SLA deadline ("calculated NBD") is the POD workable date plus a number of
business days that depends on the POD category (``pod_type_original``).
Unknown categories get no automatic deadline; whatever the caller supplied
passes through unchanged.
"""

from datetime import date

from podtracker.services.business_days import add_business_days
from podtracker.utils.helpers import parse_date

SLA_BUSINESS_DAYS = {
    "FFA": 22,
    "Greenfield": 10,
    "Brownfield Upgrades": 15,
}


def compute_deadline(category, workable_date, supplied_deadline=None) -> date | None:
    """Return the SLA deadline for ``category`` counted from ``workable_date``.

    Pure: interactive updates and bulk imports call it identically.
    """
    days = SLA_BUSINESS_DAYS.get((category or "").strip())
    workable = parse_date(workable_date)
    if not days or workable is None:
        return supplied_deadline
    return add_business_days(workable, days)


def should_recompute(payload: dict) -> bool:
    """A mutation recomputes the deadline only when it carries both SLA inputs.

    An update touching only other milestone dates must leave a manually
    overridden deadline alone.
    """
    if payload.get("pod_workable_date_is_na"):
        return False
    return bool(payload.get("pod_type_original")) and bool(payload.get("pod_workable_date"))
