from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import AuditMixin


class ShipmentStatus(str, enum.Enum):
    DRAFT = "draft"
    BOOKED = "booked"
    ERROR = "error"


class CreationMethod(str, enum.Enum):
    QUICKSHIP = "quickship"
    ADVANCED = "advanced"


class UnitSystem(str, enum.Enum):
    IMPERIAL = "imperial"
    METRIC = "metric"


class ShipmentEventType(str, enum.Enum):
    CREATED = "created"
    DRAFT_SAVED = "draft_saved"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_FAILED = "booking_failed"
    DOCUMENT_GENERATED = "document_generated"


class ShipmentRecord(AuditMixin, Base):
    """
    A shipment as persisted by the booking engine.

    The same row carries the record from its first "Ship Later" save through
    booking. Address, package and rate payloads are stored as JSON documents
    exactly as the editor produced them; totals are derived server-side.
    """

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Assigned once, never reassigned. Unique index turns a lost allocation
    # race into a write failure instead of a silent duplicate.
    shipment_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, index=True, nullable=True
    )
    company_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ShipmentStatus.DRAFT.value,
        server_default=text("'draft'"),
    )
    creation_method: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=CreationMethod.QUICKSHIP.value,
        server_default=text("'quickship'"),
    )

    shipment_info: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    ship_from: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    ship_to: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    packages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    manual_rates: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    carrier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    carrier_details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    unit_system: Mapped[str] = mapped_column(
        String(16), nullable=False, default=UnitSystem.IMPERIAL.value
    )

    # Derived at save/booking time
    total_weight: Mapped[float] = mapped_column(Numeric(15, 3), nullable=False, default=0)
    total_pieces: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_package_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_charges: Mapped[float] = mapped_column(Numeric(15, 2), nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")

    is_draft: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    draft_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    booked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_status: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_converted_from: Mapped[str | None] = mapped_column(String(16), nullable=True)

    events: Mapped[list["ShipmentEvent"]] = relationship(
        "ShipmentEvent",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="ShipmentEvent.id",
    )

    def __repr__(self) -> str:
        return f"<ShipmentRecord(id={self.id}, shipment_id={self.shipment_id}, status={self.status})>"


class ShipmentEvent(Base):
    """Booking timeline entry (created, booking confirmed, documents)."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    record_key: Mapped[int] = mapped_column(
        ForeignKey("shipment_record.id"), index=True, nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="system")
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    record: Mapped["ShipmentRecord"] = relationship("ShipmentRecord", back_populates="events")
