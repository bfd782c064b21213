"""Appointment (turno) model definition."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, FrozenSet, Optional

from sqlalchemy import Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic.models.base import Base, UTCDateTime, new_id, utc_timestamp

if TYPE_CHECKING:
    from clinic.models.patient import Patient
    from clinic.models.service import Service
else:  # pragma: no cover - typing runtime fallback
    Patient = "Patient"  # type: ignore[assignment]
    Service = "Service"  # type: ignore[assignment]


class AppointmentStatus(str, enum.Enum):
    """Appointment lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses whose appointments occupy their slot when computing availability.
BLOCKING_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}
)


class Appointment(Base):
    """Represents a booked treatment slot."""

    __tablename__ = "appointments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
    )
    service_id: Mapped[str] = mapped_column(
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
    )
    appointment_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        index=True,
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(
            AppointmentStatus,
            native_enum=False,
            length=16,
            values_callable=lambda members: [member.value for member in members],
        ),
        default=AppointmentStatus.PENDING,
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utc_timestamp,
        nullable=False,
    )

    patient: Mapped["Patient"] = relationship(back_populates="appointments")
    service: Mapped["Service"] = relationship(back_populates="appointments")
