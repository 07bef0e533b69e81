"""
Settlement service - Completes appointments and settles their side effects.

Completion is a saga over independent store writes. The appointment's
settlement_status records the last step that finished:

    not_started -> points_awarded -> notified -> done

Steps:
1. Status transition confirmed -> completed (never rolled back)
2. Device service history (best-effort, logged on failure)
3. Points: +POINTS_PER_COMPLETION to the client, and to the referrer when
   the client has one (one level only). Each credit is a loyalty ledger
   row written together with the points; the client's ref_id is cleared
   in the same write as its own credit. Credits already in the ledger are
   skipped, so a resumed step never pays twice. Checkpoint: points_awarded
4. Client notification row carrying is_referral. Checkpoint: notified
5. Checkpoint: done, then the client push is scheduled as a background
   task (failures logged, never awaited by the request)
6. Calendar board reload

A failure in step 3 or 4 stops the saga at the previous checkpoint and is
reported as SETTLEMENT_INCOMPLETE; resume() continues from there. Because
complete() only accepts confirmed appointments, a settlement never starts
twice for the same appointment.

The device correction flow (correct_devices) recomputes the amount at
current rates and never touches points, notifications or the checkpoint.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from database.models import AppointmentStatus, LoyaltyPointStatus, SettlementStatus
from scheduling.errors import AppointmentValidationError
from scheduling.models import AppointmentRecord, DiscountResult
from scheduling.services.calendar_service import CalendarBoard
from scheduling.services.device_service import build_service_history_update
from scheduling.services.notification_service import (
    NOTIFICATION_CATEGORY,
    client_template_key,
    render_template,
)
from scheduling.services.pricing_service import (
    compute_discount,
    compute_final_total,
    compute_subtotal,
    load_rate_settings,
    round_currency,
)
from scheduling.stores import (
    AppointmentStore,
    ClientStore,
    DeviceStore,
    LoyaltyStore,
    NotificationStore,
    PushDispatcher,
    RateSettingsStore,
)
from shared.config import get_settings

logger = logging.getLogger(__name__)

PUSH_TITLE = "Appointment completed"

# Strong references to in-flight push tasks until they finish
background_tasks: set[asyncio.Task] = set()

CORRECTABLE_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)
DEVICE_EDIT_FIELDS = ("brand_id", "ac_type_id", "horsepower_id")


@dataclass
class SettlementResult:
    """
    Result of completing or resuming a settlement.

    Attributes:
        success: True when the saga reached "done"
        appointment_id: Appointment that was targeted
        error_code: APPOINTMENT_NOT_FOUND, ALREADY_COMPLETED, NOT_COMPLETABLE,
            NOT_COMPLETED or SETTLEMENT_INCOMPLETE
        error_message: Human readable reason if success is False
        settlement_status: Last checkpoint reached
        is_referral: Whether the completion credited a referrer
        push_sent: Whether a client push was scheduled
    """
    success: bool
    appointment_id: Optional[UUID] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    settlement_status: Optional[SettlementStatus] = None
    is_referral: Optional[bool] = None
    push_sent: bool = False


@dataclass
class CorrectionResult:
    """
    Result of a post-completion device correction.

    Attributes:
        success: Whether devices and amount were updated
        appointment_id: Appointment that was targeted
        error_code: APPOINTMENT_NOT_FOUND or NOT_CORRECTABLE
        error_message: Human readable reason if success is False
        amount: New persisted amount
        discount: Discount applied to the new amount
        appointment: Appointment after the correction
    """
    success: bool
    appointment_id: Optional[UUID] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    amount: Optional[Decimal] = None
    discount: Optional[DiscountResult] = None
    appointment: Optional[AppointmentRecord] = None


class CompletionSettlement:
    """Operator-triggered completion of appointments."""

    def __init__(
        self,
        appointment_store: AppointmentStore,
        client_store: ClientStore,
        device_store: DeviceStore,
        notification_store: NotificationStore,
        settings_store: RateSettingsStore,
        loyalty_store: LoyaltyStore,
        push_dispatcher: PushDispatcher | None = None,
        board: CalendarBoard | None = None,
    ):
        self.appointment_store = appointment_store
        self.client_store = client_store
        self.device_store = device_store
        self.notification_store = notification_store
        self.settings_store = settings_store
        self.loyalty_store = loyalty_store
        self.push_dispatcher = push_dispatcher
        self.board = board

    # =========================================================================
    # Completion
    # =========================================================================

    async def complete(self, appointment_id: UUID | None) -> SettlementResult:
        """
        Mark a confirmed appointment completed and settle it.

        Raises:
            AppointmentValidationError: If appointment_id is missing
        """
        if appointment_id is None:
            raise AppointmentValidationError("appointment_id is required")

        appointment = await self.appointment_store.get(appointment_id)
        if appointment is None:
            return _not_found(appointment_id)

        if appointment.status == AppointmentStatus.COMPLETED:
            return SettlementResult(
                success=False,
                appointment_id=appointment_id,
                error_code="ALREADY_COMPLETED",
                error_message="Appointment is already completed",
                settlement_status=appointment.settlement_status,
            )
        if appointment.status != AppointmentStatus.CONFIRMED:
            return SettlementResult(
                success=False,
                appointment_id=appointment_id,
                error_code="NOT_COMPLETABLE",
                error_message=f"Only confirmed appointments can be completed (status: {appointment.status.value})",
                settlement_status=appointment.settlement_status,
            )

        appointment = await self.appointment_store.update(
            appointment_id,
            {
                "status": AppointmentStatus.COMPLETED,
                "settlement_status": SettlementStatus.NOT_STARTED,
            },
        )
        self._log_step(appointment_id, "status", "Appointment marked completed")

        await self._update_device_history(appointment)

        return await self._run_saga(appointment)

    async def resume(self, appointment_id: UUID | None) -> SettlementResult:
        """
        Continue an unfinished settlement from its last checkpoint.

        Already settled appointments are reported as successful without
        running any step again.

        Raises:
            AppointmentValidationError: If appointment_id is missing
        """
        if appointment_id is None:
            raise AppointmentValidationError("appointment_id is required")

        appointment = await self.appointment_store.get(appointment_id)
        if appointment is None:
            return _not_found(appointment_id)

        if appointment.status != AppointmentStatus.COMPLETED:
            return SettlementResult(
                success=False,
                appointment_id=appointment_id,
                error_code="NOT_COMPLETED",
                error_message="Only completed appointments have a settlement to resume",
                settlement_status=appointment.settlement_status,
            )

        if appointment.settlement_status == SettlementStatus.DONE:
            return SettlementResult(
                success=True,
                appointment_id=appointment_id,
                settlement_status=SettlementStatus.DONE,
                is_referral=appointment.settled_as_referral,
            )

        logger.info(
            f"Resuming settlement of appointment {appointment_id} "
            f"from {appointment.settlement_status.value}",
            extra={"appointment_id": str(appointment_id)},
        )
        return await self._run_saga(appointment)

    async def _run_saga(self, appointment: AppointmentRecord) -> SettlementResult:
        appointment_id = appointment.id
        checkpoint = appointment.settlement_status
        is_referral = appointment.settled_as_referral
        push_sent = False

        if checkpoint == SettlementStatus.NOT_STARTED:
            try:
                is_referral = await self._award_points(appointment)
                await self._checkpoint(
                    appointment_id,
                    SettlementStatus.POINTS_AWARDED,
                    settled_as_referral=is_referral,
                )
            except Exception as e:
                return self._halt(appointment_id, checkpoint, "points", e)
            checkpoint = SettlementStatus.POINTS_AWARDED

        if checkpoint == SettlementStatus.POINTS_AWARDED:
            try:
                await self._insert_notification(appointment, bool(is_referral))
                await self._checkpoint(appointment_id, SettlementStatus.NOTIFIED)
            except Exception as e:
                return self._halt(appointment_id, checkpoint, "notification", e)
            checkpoint = SettlementStatus.NOTIFIED

        if checkpoint == SettlementStatus.NOTIFIED:
            try:
                await self._checkpoint(appointment_id, SettlementStatus.DONE)
            except Exception as e:
                return self._halt(appointment_id, checkpoint, "done", e)
            checkpoint = SettlementStatus.DONE
            push_sent = self._schedule_push(appointment, bool(is_referral))

        await self._reload_board()

        logger.info(
            f"Settlement of appointment {appointment_id} done (is_referral={is_referral})",
            extra={"appointment_id": str(appointment_id)},
        )
        return SettlementResult(
            success=True,
            appointment_id=appointment_id,
            settlement_status=checkpoint,
            is_referral=is_referral,
            push_sent=push_sent,
        )

    def _halt(
        self,
        appointment_id: UUID,
        checkpoint: SettlementStatus,
        step: str,
        error: Exception,
    ) -> SettlementResult:
        logger.exception(
            f"Settlement step '{step}' failed for appointment {appointment_id}: {error}",
            extra={"appointment_id": str(appointment_id), "settlement_step": step},
        )
        return SettlementResult(
            success=False,
            appointment_id=appointment_id,
            error_code="SETTLEMENT_INCOMPLETE",
            error_message=f"Settlement stopped at '{checkpoint.value}': {error}",
            settlement_status=checkpoint,
        )

    def _log_step(self, appointment_id: UUID, step: str, message: str) -> None:
        logger.info(
            f"{message} (appointment {appointment_id})",
            extra={"appointment_id": str(appointment_id), "settlement_step": step},
        )

    async def _checkpoint(
        self,
        appointment_id: UUID,
        status: SettlementStatus,
        **extra_fields: Any,
    ) -> None:
        await self.appointment_store.update(
            appointment_id, {"settlement_status": status, **extra_fields}
        )

    # =========================================================================
    # Steps
    # =========================================================================

    async def _update_device_history(self, appointment: AppointmentRecord) -> None:
        fields = build_service_history_update(
            appointment.service_name, appointment.appointment_date
        )
        if not fields:
            return

        for device in appointment.devices:
            try:
                await self.device_store.update(device.id, fields)
            except Exception as e:
                logger.error(
                    f"Failed to update service history of device {device.id}: {e}",
                    extra={
                        "appointment_id": str(appointment.id),
                        "settlement_step": "device_history",
                    },
                )
        self._log_step(appointment.id, "device_history", f"Updated {len(appointment.devices)} device(s)")

    async def _award_points(self, appointment: AppointmentRecord) -> bool:
        """
        Credit completion points to the client and its referrer.

        Every credit goes through the loyalty ledger, which skips clients
        already credited for this appointment, so a resumed step only
        writes the credits that are still missing. The referrer is credited
        before the client because the client's credit clears its ref_id.

        Returns:
            True when the settlement is a referral
        """
        points = get_settings().POINTS_PER_COMPLETION
        credited = await self.loyalty_store.credited(appointment.id)

        client = await self.client_store.get(appointment.client_id)
        if client is None:
            raise LookupError(f"Client {appointment.client_id} not found")

        if client.id in credited:
            # Client credit (and ref_id reset) already landed on an earlier run
            is_referral = any(cid != client.id for cid in credited)
            self._log_step(appointment.id, "points", f"Points already credited to client {client.id}")
            return is_referral

        referrer_id = client.ref_id
        is_referral = False
        if referrer_id is not None:
            if referrer_id in credited:
                is_referral = True
            else:
                referrer = await self.client_store.get(referrer_id)
                if referrer is None:
                    logger.warning(
                        f"Referrer {referrer_id} of client {client.id} not found, "
                        f"settling without referral credit",
                        extra={"appointment_id": str(appointment.id), "client_id": str(client.id)},
                    )
                else:
                    await self._credit(appointment, referrer.id, points, is_referral=True)
                    is_referral = True

        await self._credit(
            appointment,
            client.id,
            points,
            is_referral=is_referral,
            clear_referral=referrer_id is not None,
        )

        self._log_step(
            appointment.id,
            "points",
            f"Awarded {points} point(s) to client {client.id}"
            + (f" and referrer {referrer_id}" if is_referral else ""),
        )
        return is_referral

    async def _credit(
        self,
        appointment: AppointmentRecord,
        client_id: UUID,
        points: int,
        is_referral: bool,
        clear_referral: bool = False,
    ) -> None:
        earned: date = appointment.appointment_date
        expiry_days = get_settings().LOYALTY_POINT_EXPIRY_DAYS
        written = await self.loyalty_store.credit(
            {
                "client_id": client_id,
                "appointment_id": appointment.id,
                "points": points,
                "status": LoyaltyPointStatus.EARNED,
                "is_referral": is_referral,
                "date_earned": earned,
                "date_expiry": earned + timedelta(days=expiry_days),
            },
            clear_referral=clear_referral,
        )
        if not written:
            logger.info(
                f"Client {client_id} already credited for appointment {appointment.id}",
                extra={"appointment_id": str(appointment.id), "client_id": str(client_id)},
            )

    async def _insert_notification(self, appointment: AppointmentRecord, is_referral: bool) -> None:
        await self.notification_store.insert({
            "client_id": appointment.client_id,
            "send_to_admin": False,
            "send_to_client": True,
            "is_referral": is_referral,
            "date": appointment.appointment_date,
        })
        self._log_step(appointment.id, "notification", "Client notification inserted")

    def _schedule_push(self, appointment: AppointmentRecord, is_referral: bool) -> bool:
        """Fire-and-forget push to the client; True when one was scheduled."""
        if self.push_dispatcher is None:
            return False

        task = asyncio.create_task(self._safe_send_push(appointment, is_referral))
        background_tasks.add(task)
        task.add_done_callback(background_tasks.discard)
        return True

    async def _safe_send_push(self, appointment: AppointmentRecord, is_referral: bool) -> None:
        try:
            templates = await self.settings_store.get_all(NOTIFICATION_CATEGORY)
            body = render_template(
                templates.get(client_template_key(is_referral)), appointment.client_name
            )
            if not body:
                body = (
                    f"Your appointment on {appointment.appointment_date:%b %d, %Y} "
                    f"has been completed."
                )
            await self.push_dispatcher.send({
                "audience": {"client_id": str(appointment.client_id)},
                "title": PUSH_TITLE,
                "body": body,
            })
        except Exception as e:
            logger.warning(
                f"Push for appointment {appointment.id} failed: {e}",
                extra={"appointment_id": str(appointment.id), "settlement_step": "push"},
            )
            return

        self._log_step(appointment.id, "push", "Client push sent")

    async def _reload_board(self) -> None:
        if self.board is None:
            return
        try:
            await self.board.load()
        except Exception as e:
            logger.warning(f"Calendar reload after settlement failed: {e}")

    # =========================================================================
    # Device correction
    # =========================================================================

    async def correct_devices(
        self,
        appointment_id: UUID | None,
        edits: list[dict[str, Any]],
    ) -> CorrectionResult:
        """
        Edit brand/type/horsepower of an appointment's devices and reprice it.

        Args:
            appointment_id: Appointment whose devices are corrected
            edits: One dict per device with device_id and any of
                brand_id, ac_type_id, horsepower_id

        Returns:
            CorrectionResult with the new amount

        Raises:
            AppointmentValidationError: If the id is missing or an edit has no device_id
        """
        if appointment_id is None:
            raise AppointmentValidationError("appointment_id is required")
        for edit in edits:
            if edit.get("device_id") is None:
                raise AppointmentValidationError("Each device edit needs a device_id")

        appointment = await self.appointment_store.get(appointment_id)
        if appointment is None:
            return CorrectionResult(
                success=False,
                appointment_id=appointment_id,
                error_code="APPOINTMENT_NOT_FOUND",
                error_message=f"Appointment {appointment_id} not found",
            )

        if appointment.status not in CORRECTABLE_STATUSES:
            return CorrectionResult(
                success=False,
                appointment_id=appointment_id,
                error_code="NOT_CORRECTABLE",
                error_message=f"Devices of a {appointment.status.value} appointment cannot be corrected",
            )

        linked = {device.id for device in appointment.devices}
        for edit in edits:
            if edit["device_id"] not in linked:
                raise AppointmentValidationError(
                    f"Device {edit['device_id']} is not part of appointment {appointment_id}"
                )

        for edit in edits:
            fields = {key: edit[key] for key in DEVICE_EDIT_FIELDS if key in edit}
            if fields:
                await self.device_store.update(edit["device_id"], fields)

        refreshed = await self.appointment_store.get(appointment_id) or appointment
        rate_settings = await load_rate_settings(self.settings_store)
        client = await self.client_store.get(refreshed.client_id)

        subtotal = compute_subtotal(refreshed.devices, rate_settings, refreshed.service_name)
        discount = compute_discount(client, rate_settings)
        amount = round_currency(compute_final_total(subtotal, discount))

        updated = await self.appointment_store.update(
            appointment_id,
            {
                "amount": amount,
                "stored_discount": discount.value,
                "discount_type": discount.type,
            },
        )
        await self._reload_board()

        logger.info(
            f"Corrected devices of appointment {appointment_id}: amount {amount} "
            f"({discount.type} {discount.value}%)",
            extra={"appointment_id": str(appointment_id)},
        )
        return CorrectionResult(
            success=True,
            appointment_id=appointment_id,
            amount=amount,
            discount=discount,
            appointment=updated,
        )


def _not_found(appointment_id: UUID) -> SettlementResult:
    return SettlementResult(
        success=False,
        appointment_id=appointment_id,
        error_code="APPOINTMENT_NOT_FOUND",
        error_message=f"Appointment {appointment_id} not found",
    )
