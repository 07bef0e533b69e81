"""
FastAPI dependency providers for the scheduling stores and services.

Routes receive their collaborators through Depends() so the SQL stores
can be replaced with app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends

from database.repositories import (
    SqlAppointmentStore,
    SqlBlockedDateStore,
    SqlClientStore,
    SqlDeviceStore,
    SqlLoyaltyStore,
    SqlNotificationStore,
    SqlRateSettingsStore,
)
from scheduling.services.settlement_service import CompletionSettlement
from scheduling.stores import (
    AppointmentStore,
    BlockedDateStore,
    ClientStore,
    DeviceStore,
    LoyaltyStore,
    NotificationStore,
    PushDispatcher,
    RateSettingsStore,
)
from shared.push_client import PushClient


def get_appointment_store() -> AppointmentStore:
    return SqlAppointmentStore()


def get_device_store() -> DeviceStore:
    return SqlDeviceStore()


def get_client_store() -> ClientStore:
    return SqlClientStore()


def get_notification_store() -> NotificationStore:
    return SqlNotificationStore()


def get_settings_store() -> RateSettingsStore:
    return SqlRateSettingsStore()


def get_blocked_date_store() -> BlockedDateStore:
    return SqlBlockedDateStore()


def get_loyalty_store() -> LoyaltyStore:
    return SqlLoyaltyStore()


def get_push_dispatcher() -> PushDispatcher | None:
    return PushClient()


AppointmentStoreDep = Annotated[AppointmentStore, Depends(get_appointment_store)]
ClientStoreDep = Annotated[ClientStore, Depends(get_client_store)]
NotificationStoreDep = Annotated[NotificationStore, Depends(get_notification_store)]
SettingsStoreDep = Annotated[RateSettingsStore, Depends(get_settings_store)]
BlockedDateStoreDep = Annotated[BlockedDateStore, Depends(get_blocked_date_store)]


def get_completion_settlement(
    appointment_store: AppointmentStoreDep,
    client_store: ClientStoreDep,
    notification_store: NotificationStoreDep,
    settings_store: SettingsStoreDep,
    device_store: Annotated[DeviceStore, Depends(get_device_store)],
    loyalty_store: Annotated[LoyaltyStore, Depends(get_loyalty_store)],
    push_dispatcher: Annotated[PushDispatcher | None, Depends(get_push_dispatcher)],
) -> CompletionSettlement:
    return CompletionSettlement(
        appointment_store=appointment_store,
        client_store=client_store,
        device_store=device_store,
        notification_store=notification_store,
        settings_store=settings_store,
        loyalty_store=loyalty_store,
        push_dispatcher=push_dispatcher,
    )


SettlementDep = Annotated[CompletionSettlement, Depends(get_completion_settlement)]
