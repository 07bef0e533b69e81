"""
Scheduling services module.

Business logic behind the admin calendar and appointment completion.

Services:
- pricing_service: Unit prices, discounts and totals at current rates
- slot_service: Deterministic calendar slots per date
- blocked_date_service: Per-day entries for closure ranges
- calendar_service: Merged calendar events and board state
- reschedule_service: Optimistic drag-and-drop rescheduling
- settlement_service: Completion saga and device correction
- device_service: Service history fields on completion
- notification_service: Admin and client notification feeds
"""

from scheduling.services.blocked_date_service import (
    expand_blocked_date,
    expand_blocked_dates,
)
from scheduling.services.calendar_service import CalendarBoard, build_calendar_events
from scheduling.services.device_service import (
    build_service_history_update,
    compute_due_dates,
)
from scheduling.services.notification_service import (
    admin_feed,
    client_feed,
    render_template,
)
from scheduling.services.pricing_service import (
    compute_discount,
    compute_final_total,
    compute_subtotal,
    load_rate_settings,
    parse_horsepower,
    quote_appointment,
    round_currency,
    unit_price,
)
from scheduling.services.reschedule_service import RescheduleCoordinator, RescheduleResult
from scheduling.services.settlement_service import (
    CompletionSettlement,
    CorrectionResult,
    SettlementResult,
)
from scheduling.services.slot_service import Slot, assign_slots, parse_explicit_time

__all__ = [
    # Pricing service
    "compute_discount",
    "compute_final_total",
    "compute_subtotal",
    "load_rate_settings",
    "parse_horsepower",
    "quote_appointment",
    "round_currency",
    "unit_price",
    # Slot service
    "Slot",
    "assign_slots",
    "parse_explicit_time",
    # Blocked date service
    "expand_blocked_date",
    "expand_blocked_dates",
    # Calendar service
    "CalendarBoard",
    "build_calendar_events",
    # Reschedule service
    "RescheduleCoordinator",
    "RescheduleResult",
    # Settlement service
    "CompletionSettlement",
    "CorrectionResult",
    "SettlementResult",
    # Device service
    "build_service_history_update",
    "compute_due_dates",
    # Notification service
    "admin_feed",
    "client_feed",
    "render_template",
]
