"""
Domain records exchanged between the scheduling services and their stores.

Stores hand these records to the services and the services never see ORM
rows or raw JSON. AC types are normalised into AcTypeKind at this boundary
so pricing can match on an explicit enum.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from database.models import AppointmentStatus, SettlementStatus
from shared.config import get_settings

LOCAL_TZ = ZoneInfo(get_settings().TIMEZONE)


class AcTypeKind(str, Enum):
    """Pricing family of an AC unit."""

    SPLIT = "split"
    WINDOW = "window"
    UNPRICED = "unpriced"

    @classmethod
    def from_name(cls, name: str | None) -> "AcTypeKind":
        """
        Classify a free-text AC type name.

        "split" or "u" (U-shaped) anywhere in the name -> SPLIT, then
        "window" -> WINDOW, anything else -> UNPRICED.
        """
        lowered = (name or "").lower()
        if "split" in lowered or "u" in lowered:
            return cls.SPLIT
        if "window" in lowered:
            return cls.WINDOW
        return cls.UNPRICED


class DeviceRecord(BaseModel):
    """An aircon unit with the master-data names needed for pricing."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID | None = None
    name: str = ""
    brand_id: UUID | None = None
    brand_name: str | None = None
    ac_type_id: UUID | None = None
    ac_type_name: str | None = None
    ac_type: AcTypeKind = AcTypeKind.UNPRICED
    horsepower_id: UUID | None = None
    horsepower_value: str | None = None
    horsepower_display: str | None = None
    last_cleaning_date: date | None = None
    last_repair_date: date | None = None
    due_3_months: date | None = None
    due_4_months: date | None = None
    due_6_months: date | None = None

    @model_validator(mode="before")
    @classmethod
    def classify_ac_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "ac_type" not in data:
            data = {**data, "ac_type": AcTypeKind.from_name(data.get("ac_type_name"))}
        return data


class ClientRecord(BaseModel):
    """Client fields used by pricing and settlement."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str = "Client"
    ref_id: UUID | None = None
    points: int = Field(default=0, ge=0)
    discounted: bool = False

    @field_validator("points", mode="before")
    @classmethod
    def default_points(cls, v):
        return 0 if v is None else v


class AppointmentRecord(BaseModel):
    """An appointment together with its serviced-device snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    client_name: str | None = None
    location_id: UUID | None = None
    service_id: UUID | None = None
    service_name: str = ""
    appointment_date: date
    appointment_time: str | None = None
    status: AppointmentStatus
    amount: Decimal = Decimal("0")
    stored_discount: Decimal = Decimal("0")
    discount_type: str = "None"
    settlement_status: SettlementStatus = SettlementStatus.NOT_STARTED
    settled_as_referral: bool | None = None
    devices: list[DeviceRecord] = Field(default_factory=list)
    created_at: datetime | None = None


class NotificationRecord(BaseModel):
    """A notification row; audience is given by the two flags."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    client_id: UUID
    send_to_admin: bool = False
    send_to_client: bool = False
    is_referral: bool = False
    date: date
    created_at: datetime | None = None


class BlockedDateRecord(BaseModel):
    """Inclusive closure range."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    reason: str | None = None
    from_date: date
    to_date: date


class RateSettings(BaseModel):
    """
    Typed view over the pricing rows of custom_settings.

    Built once per operation from the settings store. Values arrive as
    strings and are coerced to Decimal; a missing or non-numeric key fails
    validation.
    """

    model_config = ConfigDict(frozen=True)

    split_type_price: Decimal = Field(ge=0)
    window_type_price: Decimal = Field(ge=0)
    surcharge: Decimal = Field(ge=0)
    repair_price: Decimal = Field(ge=0)
    discount: Decimal = Field(ge=0, le=100)
    family_discount: Decimal = Field(ge=0, le=100)


class DiscountResult(BaseModel):
    """Discount applicable to a client: percent value and label."""

    value: Decimal
    type: str


class CalendarEvent(BaseModel):
    """One entry of the admin calendar (appointment slot or blocked day)."""

    id: str
    title: str
    start: datetime
    end: datetime
    status: str
    draggable: bool
    color: str
    kind: str
    appointment_id: UUID | None = None
    appointment_date: date | None = None
    blocked_name: str | None = None
    blocked_reason: str | None = None
