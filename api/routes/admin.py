"""
Admin API Endpoints for the scheduling panel

Provides REST endpoints for:
- Calendar events (appointment slots and blocked days)
- Drag-and-drop rescheduling
- Appointment completion and settlement resume
- Post-completion device correction and price quotes
- Admin notification feed
"""

import logging
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from api.dependencies import (
    AppointmentStoreDep,
    BlockedDateStoreDep,
    ClientStoreDep,
    NotificationStoreDep,
    SettingsStoreDep,
    SettlementDep,
)
from database.models import AppointmentStatus
from scheduling.services.calendar_service import VISIBLE_STATUSES, CalendarBoard
from scheduling.services.notification_service import NOTIFICATION_CATEGORY, admin_feed
from scheduling.services.pricing_service import load_rate_settings, quote_appointment
from scheduling.services.reschedule_service import RescheduleCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

# Business error codes that map to something other than 409 Conflict
ERROR_STATUS_CODES = {
    "APPOINTMENT_NOT_FOUND": 404,
    "PERSISTENCE_FAILED": 503,
}


# =============================================================================
# Request Models
# =============================================================================


class RescheduleRequest(BaseModel):
    start: datetime = Field(..., description="New start; naive values are local time")


class DeviceEditRequest(BaseModel):
    device_id: UUID
    brand_id: UUID | None = None
    ac_type_id: UUID | None = None
    horsepower_id: UUID | None = None


class DeviceCorrectionRequest(BaseModel):
    devices: list[DeviceEditRequest] = Field(..., min_length=1)


def _raise_for_result(result) -> None:
    if result.success:
        return
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(result.error_code, 409),
        detail={"error_code": result.error_code, "message": result.error_message},
    )


def _parse_statuses(status: str | None) -> list[str]:
    if not status:
        return list(VISIBLE_STATUSES)
    statuses = [s.strip().lower() for s in status.split(",") if s.strip()]
    invalid = [s for s in statuses if s not in VISIBLE_STATUSES]
    if invalid:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status filter: {', '.join(invalid)}",
        )
    return statuses


# =============================================================================
# Calendar
# =============================================================================


@router.get("/calendar/events")
async def get_calendar_events(
    appointment_store: AppointmentStoreDep,
    blocked_date_store: BlockedDateStoreDep,
    status: str | None = None,  # Comma-separated statuses
    date_from: date | None = None,
    date_to: date | None = None,
):
    """
    Get calendar events for the admin panel.

    Args:
        status: Comma-separated statuses (pending, confirmed, completed); all non-voided if omitted
        date_from: First date shown (inclusive)
        date_to: Last date shown (inclusive)

    Returns:
        Appointment slots and blocked days, with colour and draggable flag
    """
    statuses = _parse_statuses(status)
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to")

    board = CalendarBoard(
        appointment_store,
        blocked_date_store,
        statuses=statuses,
        date_from=date_from,
        date_to=date_to,
    )
    await board.load()
    events = board.events()

    logger.info(f"Calendar events: {len(events)} (statuses={statuses}, {date_from}..{date_to})")
    return {"events": jsonable_encoder(events)}


@router.patch("/appointments/{appointment_id}/schedule")
async def reschedule_appointment(
    appointment_id: UUID,
    request: RescheduleRequest,
    appointment_store: AppointmentStoreDep,
    blocked_date_store: BlockedDateStoreDep,
):
    """Move a confirmed appointment to a new start (calendar drag-and-drop)."""
    board = CalendarBoard(appointment_store, blocked_date_store)
    coordinator = RescheduleCoordinator(board, appointment_store)

    result = await coordinator.reschedule(appointment_id, request.start)
    _raise_for_result(result)

    return {"success": True, "appointment": jsonable_encoder(result.appointment)}


# =============================================================================
# Completion & Settlement
# =============================================================================


@router.post("/appointments/{appointment_id}/complete")
async def complete_appointment(appointment_id: UUID, settlement: SettlementDep):
    """Mark a confirmed appointment completed and run its settlement."""
    result = await settlement.complete(appointment_id)
    _raise_for_result(result)
    return jsonable_encoder(asdict(result))


@router.post("/appointments/{appointment_id}/settlement/resume")
async def resume_settlement(appointment_id: UUID, settlement: SettlementDep):
    """Continue a completed appointment's settlement from its last checkpoint."""
    result = await settlement.resume(appointment_id)
    _raise_for_result(result)
    return jsonable_encoder(asdict(result))


@router.put("/appointments/{appointment_id}/devices")
async def correct_appointment_devices(
    appointment_id: UUID,
    request: DeviceCorrectionRequest,
    settlement: SettlementDep,
):
    """
    Correct brand/type/horsepower of an appointment's devices.

    Recomputes the amount at current rates; points and notifications are
    left as they are.
    """
    edits = [edit.model_dump(exclude_unset=True) for edit in request.devices]
    result = await settlement.correct_devices(appointment_id, edits)
    _raise_for_result(result)

    return {
        "success": True,
        "amount": str(result.amount),
        "discount_value": str(result.discount.value),
        "discount_type": result.discount.type,
        "appointment": jsonable_encoder(result.appointment),
    }


@router.get("/appointments/{appointment_id}/quote")
async def get_appointment_quote(
    appointment_id: UUID,
    appointment_store: AppointmentStoreDep,
    client_store: ClientStoreDep,
    settings_store: SettingsStoreDep,
):
    """Price breakdown of an appointment at current rates."""
    appointment = await appointment_store.get(appointment_id)
    if appointment is None:
        raise HTTPException(status_code=404, detail=f"Appointment {appointment_id} not found")

    client = await client_store.get(appointment.client_id)
    rate_settings = await load_rate_settings(settings_store)
    quote = quote_appointment(appointment, client, rate_settings)

    if appointment.status == AppointmentStatus.COMPLETED:
        quote["persisted_amount"] = appointment.amount

    return jsonable_encoder(quote, custom_encoder={Decimal: str})


# =============================================================================
# Notifications
# =============================================================================


@router.get("/notifications")
async def list_admin_notifications(
    notification_store: NotificationStoreDep,
    client_store: ClientStoreDep,
    settings_store: SettingsStoreDep,
):
    """Notifications addressed to the admin panel, newest first."""
    notifications = await notification_store.list()
    templates = await settings_store.get_all(NOTIFICATION_CATEGORY)
    names = await client_store.names({n.client_id for n in notifications})

    return {"data": admin_feed(notifications, templates, names)}
