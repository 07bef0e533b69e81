"""
Device service - Service history fields written when an appointment completes.

Cleaning services move the device's cleaning due dates forward; repair and
maintenance services record the repair date. Other services leave devices
untouched.
"""

from datetime import date

from dateutil.relativedelta import relativedelta

DUE_MONTHS = (3, 4, 6)


def compute_due_dates(last_cleaning_date: date) -> dict[str, date]:
    """Next cleaning due dates 3, 4 and 6 calendar months after a cleaning."""
    return {
        f"due_{months}_months": last_cleaning_date + relativedelta(months=months)
        for months in DUE_MONTHS
    }


def build_service_history_update(service_name: str | None, completed_on: date) -> dict:
    """
    Device fields to update after a completed service.

    Args:
        service_name: Name of the completed service
        completed_on: Date the service was performed

    Returns:
        Partial device fields (empty when the service keeps no history)
    """
    lowered = (service_name or "").lower()

    if "cleaning" in lowered:
        return {"last_cleaning_date": completed_on, **compute_due_dates(completed_on)}

    if "repair" in lowered or "maintenance" in lowered:
        return {"last_repair_date": completed_on}

    return {}
