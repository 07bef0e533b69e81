"""
Collaborator interfaces consumed by the scheduling services.

The services only talk to persistence and push delivery through these
protocols. database/repositories.py provides the SQL implementations and
shared/push_client.py the push dispatcher.
"""

from typing import Any, Protocol
from uuid import UUID

from scheduling.models import (
    AppointmentRecord,
    BlockedDateRecord,
    ClientRecord,
    DeviceRecord,
    NotificationRecord,
)


class AppointmentStore(Protocol):
    async def list(self, filters: dict[str, Any] | None = None) -> list[AppointmentRecord]:
        """
        Supported filters: status (str or list of str), date_from, date_to, client_id.
        """
        ...

    async def get(self, appointment_id: UUID) -> AppointmentRecord | None:
        ...

    async def update(self, appointment_id: UUID, fields: dict[str, Any]) -> AppointmentRecord:
        ...


class DeviceStore(Protocol):
    async def update(self, device_id: UUID, fields: dict[str, Any]) -> DeviceRecord:
        ...


class ClientStore(Protocol):
    async def get(self, client_id: UUID) -> ClientRecord | None:
        ...

    async def update(self, client_id: UUID, fields: dict[str, Any]) -> ClientRecord:
        ...

    async def names(self, client_ids: set[UUID]) -> dict[UUID, str]:
        ...


class NotificationStore(Protocol):
    async def insert(self, fields: dict[str, Any]) -> NotificationRecord:
        ...

    async def list(self, client_id: UUID | None = None) -> list[NotificationRecord]:
        ...


class RateSettingsStore(Protocol):
    async def get_all(self, category: str | None = None) -> dict[str, str | None]:
        ...


class BlockedDateStore(Protocol):
    async def list(self) -> list[BlockedDateRecord]:
        ...


class LoyaltyStore(Protocol):
    async def credited(self, appointment_id: UUID) -> dict[UUID, bool]:
        """Clients already credited for an appointment, mapped to is_referral."""
        ...

    async def credit(self, fields: dict[str, Any], clear_referral: bool = False) -> bool:
        """
        Append a ledger row and add its points to the client in one write.

        fields: client_id, appointment_id, points, status, is_referral,
        date_earned, date_expiry. clear_referral also resets the client's
        ref_id. Returns False without writing when the client already has a
        row for the appointment.
        """
        ...


class PushDispatcher(Protocol):
    async def send(self, message: dict[str, Any]) -> None:
        """message keys: audience (dict selector), title, body."""
        ...
