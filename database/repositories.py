"""
SQL implementations of the scheduling store protocols.

Each store opens a short-lived session per call, maps ORM rows into the
domain records of scheduling.models and wraps SQLAlchemy errors into
PersistenceFailure.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.connection import get_async_session
from database.models import (
    Appointment,
    AppointmentDevice,
    AppointmentStatus,
    BlockedDate,
    Client,
    CustomSetting,
    Device,
    LoyaltyPoint,
    Notification,
)
from scheduling.errors import (
    AppointmentNotFoundError,
    AppointmentValidationError,
    PersistenceFailure,
)
from scheduling.models import (
    AppointmentRecord,
    BlockedDateRecord,
    ClientRecord,
    DeviceRecord,
    NotificationRecord,
)

logger = logging.getLogger(__name__)

APPOINTMENT_UPDATABLE = {
    "appointment_date",
    "appointment_time",
    "status",
    "amount",
    "stored_discount",
    "discount_type",
    "total_units",
    "notes",
    "settlement_status",
    "settled_as_referral",
}
DEVICE_UPDATABLE = {
    "name",
    "brand_id",
    "ac_type_id",
    "horsepower_id",
    "last_cleaning_date",
    "last_repair_date",
    "due_3_months",
    "due_4_months",
    "due_6_months",
}
CLIENT_UPDATABLE = {"name", "mobile", "email", "ref_id", "points", "discounted"}


@asynccontextmanager
async def _session(action: str) -> AsyncIterator[AsyncSession]:
    try:
        async with get_async_session() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error(f"Database error during {action}: {e}")
        raise PersistenceFailure(f"{action} failed: {e}") from e


def _apply_fields(row: Any, fields: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise AppointmentValidationError(
            f"Cannot update {type(row).__name__} fields: {', '.join(sorted(unknown))}"
        )
    for key, value in fields.items():
        setattr(row, key, value)


# ============================================================================
# Row -> record mapping
# ============================================================================


def device_to_record(device: Device) -> DeviceRecord:
    return DeviceRecord.model_validate({
        "id": device.id,
        "client_id": device.client_id,
        "name": device.name,
        "brand_id": device.brand_id,
        "brand_name": device.brand.name if device.brand else None,
        "ac_type_id": device.ac_type_id,
        "ac_type_name": device.ac_type.name if device.ac_type else None,
        "horsepower_id": device.horsepower_id,
        "horsepower_value": device.horsepower.value if device.horsepower else None,
        "horsepower_display": device.horsepower.display_name if device.horsepower else None,
        "last_cleaning_date": device.last_cleaning_date,
        "last_repair_date": device.last_repair_date,
        "due_3_months": device.due_3_months,
        "due_4_months": device.due_4_months,
        "due_6_months": device.due_6_months,
    })


def appointment_to_record(appointment: Appointment) -> AppointmentRecord:
    return AppointmentRecord.model_validate({
        "id": appointment.id,
        "client_id": appointment.client_id,
        "client_name": appointment.client.name if appointment.client else None,
        "location_id": appointment.location_id,
        "service_id": appointment.service_id,
        "service_name": appointment.service.name if appointment.service else "",
        "appointment_date": appointment.appointment_date,
        "appointment_time": appointment.appointment_time,
        "status": appointment.status,
        "amount": appointment.amount,
        "stored_discount": appointment.stored_discount,
        "discount_type": appointment.discount_type,
        "settlement_status": appointment.settlement_status,
        "settled_as_referral": appointment.settled_as_referral,
        "devices": [device_to_record(link.device) for link in appointment.appointment_devices],
        "created_at": appointment.created_at,
    })


def notification_to_record(notification: Notification) -> NotificationRecord:
    return NotificationRecord.model_validate({
        "id": notification.id,
        "client_id": notification.client_id,
        "send_to_admin": notification.send_to_admin,
        "send_to_client": notification.send_to_client,
        "is_referral": notification.is_referral,
        "date": notification.notification_date,
        "created_at": notification.created_at,
    })


def _device_options():
    return (
        selectinload(Device.brand),
        selectinload(Device.ac_type),
        selectinload(Device.horsepower),
    )


def _appointment_options():
    return (
        selectinload(Appointment.client),
        selectinload(Appointment.service),
        selectinload(Appointment.appointment_devices)
        .selectinload(AppointmentDevice.device)
        .options(*_device_options()),
    )


# ============================================================================
# Stores
# ============================================================================


class SqlAppointmentStore:
    """Appointments with their client, service and device snapshot."""

    async def list(self, filters: dict[str, Any] | None = None) -> list[AppointmentRecord]:
        filters = filters or {}
        query = select(Appointment).options(*_appointment_options())

        statuses = filters.get("status")
        if statuses:
            if isinstance(statuses, str):
                statuses = [statuses]
            query = query.where(Appointment.status.in_([AppointmentStatus(s) for s in statuses]))
        if filters.get("date_from") is not None:
            query = query.where(Appointment.appointment_date >= filters["date_from"])
        if filters.get("date_to") is not None:
            query = query.where(Appointment.appointment_date <= filters["date_to"])
        if filters.get("client_id") is not None:
            query = query.where(Appointment.client_id == filters["client_id"])

        query = query.order_by(Appointment.appointment_date, Appointment.created_at)

        async with _session("list appointments") as session:
            result = await session.execute(query)
            return [appointment_to_record(row) for row in result.scalars().all()]

    async def get(self, appointment_id: UUID) -> AppointmentRecord | None:
        async with _session(f"get appointment {appointment_id}") as session:
            result = await session.execute(
                select(Appointment)
                .where(Appointment.id == appointment_id)
                .options(*_appointment_options())
            )
            row = result.scalar_one_or_none()
            return appointment_to_record(row) if row else None

    async def update(self, appointment_id: UUID, fields: dict[str, Any]) -> AppointmentRecord:
        async with _session(f"update appointment {appointment_id}") as session:
            row = await session.get(Appointment, appointment_id)
            if row is None:
                raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
            _apply_fields(row, fields, APPOINTMENT_UPDATABLE)
            await session.commit()

        logger.debug(f"Appointment {appointment_id} updated: {sorted(fields)}")
        updated = await self.get(appointment_id)
        if updated is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return updated


class SqlDeviceStore:
    async def update(self, device_id: UUID, fields: dict[str, Any]) -> DeviceRecord:
        async with _session(f"update device {device_id}") as session:
            row = await session.get(Device, device_id)
            if row is None:
                raise PersistenceFailure(f"Device {device_id} not found")
            _apply_fields(row, fields, DEVICE_UPDATABLE)
            await session.commit()

            result = await session.execute(
                select(Device)
                .where(Device.id == device_id)
                .options(*_device_options())
                .execution_options(populate_existing=True)
            )
            return device_to_record(result.scalar_one())


class SqlClientStore:
    async def get(self, client_id: UUID) -> ClientRecord | None:
        async with _session(f"get client {client_id}") as session:
            row = await session.get(Client, client_id)
            return ClientRecord.model_validate(row) if row else None

    async def update(self, client_id: UUID, fields: dict[str, Any]) -> ClientRecord:
        async with _session(f"update client {client_id}") as session:
            row = await session.get(Client, client_id)
            if row is None:
                raise PersistenceFailure(f"Client {client_id} not found")
            _apply_fields(row, fields, CLIENT_UPDATABLE)
            await session.commit()
            await session.refresh(row)
            return ClientRecord.model_validate(row)

    async def names(self, client_ids: set[UUID]) -> dict[UUID, str]:
        if not client_ids:
            return {}
        async with _session("get client names") as session:
            result = await session.execute(
                select(Client.id, Client.name).where(Client.id.in_(client_ids))
            )
            return {row.id: row.name for row in result.all()}


class SqlNotificationStore:
    async def insert(self, fields: dict[str, Any]) -> NotificationRecord:
        if fields.get("client_id") is None:
            raise AppointmentValidationError("client_id is required")

        async with _session("insert notification") as session:
            row = Notification(
                client_id=fields["client_id"],
                send_to_admin=bool(fields.get("send_to_admin")),
                send_to_client=bool(fields.get("send_to_client")),
                is_referral=bool(fields.get("is_referral")),
                notification_date=fields["date"],
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return notification_to_record(row)

    async def list(self, client_id: UUID | None = None) -> list[NotificationRecord]:
        query = select(Notification).order_by(Notification.created_at.desc())
        if client_id is not None:
            query = query.where(Notification.client_id == client_id)

        async with _session("list notifications") as session:
            result = await session.execute(query)
            return [notification_to_record(row) for row in result.scalars().all()]


class SqlRateSettingsStore:
    """Key/value rows of custom_settings, optionally scoped to one category."""

    async def get_all(self, category: str | None = None) -> dict[str, str | None]:
        query = select(CustomSetting.setting_key, CustomSetting.setting_value)
        if category is not None:
            query = query.where(CustomSetting.setting_category == category)

        async with _session("load custom settings") as session:
            result = await session.execute(query)
            return {row.setting_key: row.setting_value for row in result.all()}


class SqlBlockedDateStore:
    async def list(self) -> list[BlockedDateRecord]:
        async with _session("list blocked dates") as session:
            result = await session.execute(select(BlockedDate).order_by(BlockedDate.from_date))
            return [BlockedDateRecord.model_validate(row) for row in result.scalars().all()]


class SqlLoyaltyStore:
    """
    Loyalty ledger. A credit inserts the ledger row and increments
    clients.points in the same transaction; the unique
    (appointment_id, client_id) constraint keeps credits single.
    """

    async def credited(self, appointment_id: UUID) -> dict[UUID, bool]:
        async with _session(f"list loyalty credits of appointment {appointment_id}") as session:
            result = await session.execute(
                select(LoyaltyPoint.client_id, LoyaltyPoint.is_referral).where(
                    LoyaltyPoint.appointment_id == appointment_id
                )
            )
            return {row.client_id: row.is_referral for row in result.all()}

    async def credit(self, fields: dict[str, Any], clear_referral: bool = False) -> bool:
        client_id = fields["client_id"]
        appointment_id = fields["appointment_id"]

        async with _session(f"credit loyalty points to client {client_id}") as session:
            existing = await session.scalar(
                select(LoyaltyPoint.id).where(
                    LoyaltyPoint.appointment_id == appointment_id,
                    LoyaltyPoint.client_id == client_id,
                )
            )
            if existing is not None:
                return False

            values: dict[str, Any] = {"points": Client.points + fields["points"]}
            if clear_referral:
                values["ref_id"] = None
            result = await session.execute(
                update(Client).where(Client.id == client_id).values(**values)
            )
            if result.rowcount == 0:
                raise PersistenceFailure(f"Client {client_id} not found")

            session.add(LoyaltyPoint(**fields))
            await session.commit()
            return True
