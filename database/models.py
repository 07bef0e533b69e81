"""
SQLAlchemy ORM models for the booking database.

This module defines the tables:
- clients: Customers with referral parent, loyalty points and discount flag
- ac_types, brands, horsepower_options, services: Master data referenced by devices/appointments
- devices: Aircon units owned by a client, with service history dates
- appointments: Bookings with scheduling, amount and settlement progress
- appointment_devices: Snapshot of which devices were serviced in a visit
- notifications: Append-only audience-flagged notification rows
- blocked_dates: Admin-defined closure ranges
- custom_settings: Category-scoped key/value rate and template settings
- loyalty_points: Ledger of earned points

All models use:
- UUID primary keys (auto-generated)
- TIMESTAMP WITH TIME ZONE for audit fields
- DATE for calendar dates
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    DATE,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ============================================================================
# Enums
# ============================================================================


class AppointmentStatus(str, PyEnum):
    """Appointment lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    VOIDED = "voided"

    def __str__(self):
        return self.value


class SettlementStatus(str, PyEnum):
    """Checkpoint reached by the completion settlement of an appointment."""

    NOT_STARTED = "not_started"
    POINTS_AWARDED = "points_awarded"
    NOTIFIED = "notified"
    DONE = "done"

    def __str__(self):
        return self.value


class LoyaltyPointStatus(str, PyEnum):
    """State of a loyalty ledger entry."""

    EARNED = "Earned"
    REDEEMED = "Redeemed"
    EXPIRED = "Expired"


# ============================================================================
# Master Data
# ============================================================================


class AcType(Base):
    """AC type master data (Split Type, Window Type, U-shaped, ...)."""

    __tablename__ = "ac_types"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<AcType(id={self.id}, name='{self.name}')>"


class Brand(Base):
    """AC brand master data."""

    __tablename__ = "brands"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Brand(id={self.id}, name='{self.name}')>"


class HorsepowerOption(Base):
    """
    Horsepower option master data.

    `value` is the numeric display value as entered by the admin ("1.5"),
    `display_name` the label shown to users ("1.5 HP").
    """

    __tablename__ = "horsepower_options"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    value: Mapped[str] = mapped_column(String(20), nullable=False)
    display_name: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<HorsepowerOption(id={self.id}, display_name='{self.display_name}')>"


class Service(Base):
    """Service offered (General Cleaning, Repair, ...)."""

    __tablename__ = "services"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    base_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name='{self.name}')>"


# ============================================================================
# Core Models
# ============================================================================


class Client(Base):
    """
    Client model - Customers booking AC services.

    `ref_id` points to the client who referred this one. It is cleared once
    the referral bonus has been settled.
    """

    __tablename__ = "clients"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(30), nullable=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    ref_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
    )
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discounted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
        nullable=False,
    )

    referrer: Mapped[Optional["Client"]] = relationship("Client", remote_side=[id])
    devices: Mapped[list["Device"]] = relationship("Device", back_populates="client")

    __table_args__ = (
        CheckConstraint("points >= 0", name="check_client_points_non_negative"),
        CheckConstraint("ref_id IS NULL OR ref_id <> id", name="check_client_not_self_referred"),
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}', points={self.points})>"


class Device(Base):
    """
    Device model - An aircon unit owned by a client.

    Service history dates are updated when an appointment containing the
    device is completed. Due dates are derived from last_cleaning_date.
    """

    __tablename__ = "devices"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    client_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    brand_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("brands.id", ondelete="SET NULL"), nullable=True
    )
    ac_type_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("ac_types.id", ondelete="SET NULL"), nullable=True
    )
    horsepower_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("horsepower_options.id", ondelete="SET NULL"),
        nullable=True,
    )

    last_cleaning_date: Mapped[date | None] = mapped_column(DATE, nullable=True)
    last_repair_date: Mapped[date | None] = mapped_column(DATE, nullable=True)
    due_3_months: Mapped[date | None] = mapped_column(DATE, nullable=True)
    due_4_months: Mapped[date | None] = mapped_column(DATE, nullable=True)
    due_6_months: Mapped[date | None] = mapped_column(DATE, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
        nullable=False,
    )

    client: Mapped["Client"] = relationship("Client", back_populates="devices")
    brand: Mapped[Optional["Brand"]] = relationship("Brand")
    ac_type: Mapped[Optional["AcType"]] = relationship("AcType")
    horsepower: Mapped[Optional["HorsepowerOption"]] = relationship("HorsepowerOption")

    def __repr__(self) -> str:
        return f"<Device(id={self.id}, client_id={self.client_id}, name='{self.name}')>"


class Appointment(Base):
    """
    Appointment model - Bookings with scheduling and settlement progress.

    appointment_time is the optional admin-set time as a 12-hour string
    ("02:30 PM"). settlement_status records how far the completion
    settlement got so an interrupted settlement can be resumed.
    """

    __tablename__ = "appointments"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )

    client_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    service_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Scheduling
    appointment_date: Mapped[date] = mapped_column(DATE, nullable=False, index=True)
    appointment_time: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Note: values_callable ensures SQLAlchemy uses enum .value ("confirmed")
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(
            AppointmentStatus,
            name="appointment_status",
            create_type=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=AppointmentStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Pricing snapshot
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), nullable=False
    )
    stored_discount: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("0.00"), nullable=False
    )
    discount_type: Mapped[str] = mapped_column(String(30), default="None", nullable=False)
    total_units: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Settlement progress
    settlement_status: Mapped[SettlementStatus] = mapped_column(
        SQLEnum(
            SettlementStatus,
            name="settlement_status",
            create_type=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=SettlementStatus.NOT_STARTED,
        server_default=SettlementStatus.NOT_STARTED.value,
        nullable=False,
    )
    settled_as_referral: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
        nullable=False,
    )

    client: Mapped["Client"] = relationship("Client")
    service: Mapped["Service"] = relationship("Service")
    appointment_devices: Mapped[list["AppointmentDevice"]] = relationship(
        "AppointmentDevice", back_populates="appointment"
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_appointment_amount_non_negative"),
        Index("idx_appointments_date_time", "appointment_date", "appointment_time"),
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, client_id={self.client_id}, status='{self.status.value}')>"


class AppointmentDevice(Base):
    """Join row linking an appointment to a device serviced in that visit."""

    __tablename__ = "appointment_devices"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    appointment_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    device_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="appointment_devices"
    )
    device: Mapped["Device"] = relationship("Device")

    __table_args__ = (
        UniqueConstraint("appointment_id", "device_id", name="uq_appointment_device"),
    )


# ============================================================================
# Admin Panel Models
# ============================================================================


class Notification(Base):
    """
    Notification model - Append-only rows feeding the admin and client feeds.

    The audience is given by two independent flags instead of a type column.
    """

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    client_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    send_to_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    send_to_client: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_referral: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notification_date: Mapped[date] = mapped_column("date", DATE, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    client: Mapped["Client"] = relationship("Client")

    __table_args__ = (
        Index("idx_notifications_audience", "send_to_admin", "send_to_client"),
        Index("idx_notifications_created_at_desc", "created_at", postgresql_ops={"created_at": "DESC"}),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, client_id={self.client_id}, "
            f"admin={self.send_to_admin}, client={self.send_to_client})>"
        )


class BlockedDate(Base):
    """
    BlockedDate model - Inclusive date range when no bookings are taken.

    Rendered on the calendar as one non-draggable entry per covered day.
    """

    __tablename__ = "blocked_dates"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_date: Mapped[date] = mapped_column(DATE, nullable=False)
    to_date: Mapped[date] = mapped_column(DATE, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("to_date >= from_date", name="check_blocked_range_ordered"),
        Index("idx_blocked_dates_range", "from_date", "to_date"),
    )

    def __repr__(self) -> str:
        return f"<BlockedDate(id={self.id}, name='{self.name}', {self.from_date}..{self.to_date})>"


class CustomSetting(Base):
    """
    CustomSetting model - Category-scoped key/value settings.

    Values are stored as strings; numeric settings are parsed by the
    pricing layer, not here.
    """

    __tablename__ = "custom_settings"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    setting_category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    setting_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    setting_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    setting_type: Mapped[str] = mapped_column(String(20), default="string", nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<CustomSetting(key='{self.setting_key}', value='{self.setting_value}')>"


class LoyaltyPoint(Base):
    """LoyaltyPoint model - Ledger row for points earned by a client."""

    __tablename__ = "loyalty_points"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    client_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    appointment_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[LoyaltyPointStatus] = mapped_column(
        SQLEnum(
            LoyaltyPointStatus,
            name="loyalty_point_status",
            create_type=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=LoyaltyPointStatus.EARNED,
        nullable=False,
    )
    is_referral: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    date_earned: Mapped[date] = mapped_column(DATE, nullable=False)
    date_expiry: Mapped[date | None] = mapped_column(DATE, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("points > 0", name="check_loyalty_points_positive"),
        UniqueConstraint("appointment_id", "client_id", name="uq_loyalty_points_appointment_client"),
    )

    def __repr__(self) -> str:
        return f"<LoyaltyPoint(client_id={self.client_id}, points={self.points}, status='{self.status.value}')>"
