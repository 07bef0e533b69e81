"""
Pricing service - Unit prices, discounts and totals at current rates.

Prices always come from the latest rate settings; nothing is snapshotted
per booking. A unit price depends only on the device's AC type kind, its
horsepower and the service name:

- Service name containing "repair" (any case) -> repair_price
- SPLIT  -> split_type_price (+ surcharge above 1.5 HP)
- WINDOW -> window_type_price (+ surcharge above 1.5 HP)
- UNPRICED -> 0 (logged as a pricing gap)

Amounts are Decimal and only rounded when persisted or displayed.
"""

import logging
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Iterable

from pydantic import ValidationError

from scheduling.errors import RateSettingsError
from scheduling.models import (
    AcTypeKind,
    AppointmentRecord,
    ClientRecord,
    DeviceRecord,
    DiscountResult,
    RateSettings,
)
from scheduling.stores import RateSettingsStore

logger = logging.getLogger(__name__)

PRICING_CATEGORY = "pricing"
SURCHARGE_THRESHOLD_HP = Decimal("1.5")
HUNDRED = Decimal("100")
CENTAVO = Decimal("0.01")

DISCOUNT_NONE = "None"
DISCOUNT_STANDARD = "Standard"
DISCOUNT_FAMILY = "Family/Friends"


def parse_rate_settings(raw: dict[str, str | None]) -> RateSettings:
    """
    Validate a raw key/value mapping into RateSettings.

    Raises:
        RateSettingsError: If a pricing key is missing or not numeric
    """
    try:
        return RateSettings.model_validate(raw)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise RateSettingsError(
            f"Invalid or missing rate settings: {', '.join(fields)}"
        ) from e


async def load_rate_settings(store: RateSettingsStore) -> RateSettings:
    """Read the current pricing settings from the store."""
    raw = await store.get_all(PRICING_CATEGORY)
    return parse_rate_settings(raw)


def parse_horsepower(value: str | float | None) -> Decimal:
    """
    Parse a horsepower display value ("1.5", "2.0 HP") into a number.

    Missing or non-numeric values count as 0.
    """
    if value is None:
        return Decimal("0")
    text = str(value).strip().lower().removesuffix("hp").strip()
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return Decimal("0")
    if not parsed.is_finite():
        return Decimal("0")
    return parsed


def is_repair_service(service_name: str | None) -> bool:
    return "repair" in (service_name or "").lower()


def unit_price(
    device: DeviceRecord,
    rate_settings: RateSettings,
    service_name: str | None,
) -> Decimal:
    """
    Current unit price of servicing one device.

    Args:
        device: Device with its normalised AC type kind and horsepower
        rate_settings: Current rates
        service_name: Name of the booked service

    Returns:
        Unit price (0 for unpriced AC types)
    """
    if is_repair_service(service_name):
        return rate_settings.repair_price

    if device.ac_type == AcTypeKind.SPLIT:
        base = rate_settings.split_type_price
    elif device.ac_type == AcTypeKind.WINDOW:
        base = rate_settings.window_type_price
    else:
        logger.warning(
            f"Pricing gap: device {device.id} has unpriced AC type "
            f"'{device.ac_type_name}', using 0"
        )
        return Decimal("0")

    if parse_horsepower(device.horsepower_value) > SURCHARGE_THRESHOLD_HP:
        return base + rate_settings.surcharge
    return base


def compute_discount(client: ClientRecord | None, rate_settings: RateSettings) -> DiscountResult:
    """
    Discount a client is entitled to.

    Discount-flagged clients get the larger of the family and standard
    rates ("Family/Friends" wins ties); others get the standard rate when
    it is positive.
    """
    if client is None:
        return DiscountResult(value=Decimal("0"), type=DISCOUNT_NONE)

    standard = rate_settings.discount
    family = rate_settings.family_discount

    if client.discounted:
        if family >= standard:
            return DiscountResult(value=family, type=DISCOUNT_FAMILY)
        return DiscountResult(value=standard, type=DISCOUNT_STANDARD)

    if standard > 0:
        return DiscountResult(value=standard, type=DISCOUNT_STANDARD)
    return DiscountResult(value=Decimal("0"), type=DISCOUNT_NONE)


def compute_subtotal(
    devices: Iterable[DeviceRecord],
    rate_settings: RateSettings,
    service_name: str | None,
) -> Decimal:
    """Sum of unit prices over the serviced devices."""
    return sum(
        (unit_price(device, rate_settings, service_name) for device in devices),
        Decimal("0"),
    )


def compute_final_total(subtotal: Decimal, discount: DiscountResult) -> Decimal:
    """subtotal x (1 - discount%/100), unrounded."""
    return subtotal * (1 - discount.value / HUNDRED)


def round_currency(amount: Decimal) -> Decimal:
    """Truncate to centavos for persistence and display."""
    return amount.quantize(CENTAVO, rounding=ROUND_DOWN)


def quote_appointment(
    appointment: AppointmentRecord,
    client: ClientRecord | None,
    rate_settings: RateSettings,
) -> dict:
    """
    Full price breakdown of an appointment at current rates.

    Returns:
        Dict with per-device lines, subtotal, discount, and rounded total
    """
    lines = [
        {
            "device_id": str(device.id),
            "device_name": device.name,
            "ac_type": device.ac_type.value,
            "horsepower": device.horsepower_display or device.horsepower_value,
            "unit_price": unit_price(device, rate_settings, appointment.service_name),
        }
        for device in appointment.devices
    ]
    subtotal = sum((line["unit_price"] for line in lines), Decimal("0"))
    discount = compute_discount(client, rate_settings)
    total = compute_final_total(subtotal, discount)

    return {
        "appointment_id": str(appointment.id),
        "service_name": appointment.service_name,
        "lines": lines,
        "subtotal": subtotal,
        "discount_value": discount.value,
        "discount_type": discount.type,
        "total": round_currency(total),
    }
