"""Storage queries used by the booking services.

Each function issues a single statement. Callers own the commit so that the
patient upsert and the appointment insert land as two separate units.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.models.base import new_id
from clinic.models.patient import Patient
from clinic.models.service import Service
from clinic.utils.timeutils import Interval


def get_service(session: Session, service_id: str) -> Optional[Service]:
    return session.get(Service, service_id)


def get_active_service(session: Session, service_id: str) -> Optional[Service]:
    """Return the service when it exists and is bookable."""

    service = get_service(session, service_id)
    if service is None or not service.is_active:
        return None
    return service


def list_active_services(session: Session) -> Sequence[Service]:
    query = (
        sa.select(Service)
        .where(Service.is_active.is_(True))
        .order_by(Service.name.asc())
    )
    return session.execute(query).scalars().all()


def get_appointment(session: Session, appointment_id: str) -> Optional[Appointment]:
    return session.get(Appointment, appointment_id)


def list_occupied_intervals(
    session: Session,
    *,
    start_utc: datetime,
    end_utc: datetime,
    statuses: Iterable[AppointmentStatus],
) -> List[Interval]:
    """Return the time blocked by appointments starting inside ``[start_utc, end_utc)``."""

    query = (
        sa.select(Appointment.appointment_at, Service.duration_minutes)
        .join(Service, Appointment.service_id == Service.id)
        .where(
            Appointment.appointment_at >= start_utc,
            Appointment.appointment_at < end_utc,
            Appointment.status.in_(list(statuses)),
        )
        .order_by(Appointment.appointment_at.asc())
    )
    return [
        Interval(start=starts_at, end=starts_at + timedelta(minutes=duration))
        for starts_at, duration in session.execute(query).all()
    ]


def _dialect_insert(session: Session):
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


def upsert_patient(
    session: Session,
    *,
    dni: str,
    full_name: str,
    phone: str,
    email: str,
) -> str:
    """Insert the patient or refresh their contact data, returning the row id."""

    insert = _dialect_insert(session)
    statement = (
        insert(Patient)
        .values(id=new_id(), dni=dni, full_name=full_name, phone=phone, email=email)
        .on_conflict_do_update(
            index_elements=[Patient.dni],
            set_={"full_name": full_name, "phone": phone, "email": email},
        )
        .returning(Patient.id)
    )
    return session.execute(statement).scalar_one()


def insert_appointment(
    session: Session,
    *,
    patient_id: str,
    service_id: str,
    appointment_at: datetime,
    notes: Optional[str] = None,
) -> Appointment:
    appointment = Appointment(
        patient_id=patient_id,
        service_id=service_id,
        appointment_at=appointment_at,
        status=AppointmentStatus.PENDING,
        notes=notes,
    )
    session.add(appointment)
    session.flush()
    return appointment


def transition_status(
    session: Session,
    appointment_id: str,
    *,
    from_status: AppointmentStatus,
    to_status: AppointmentStatus,
) -> bool:
    """Compare-and-set an appointment's status. Returns True when a row changed."""

    result = session.execute(
        sa.update(Appointment)
        .where(
            Appointment.id == appointment_id,
            Appointment.status == from_status,
        )
        .values(status=to_status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def get_booking_details(session: Session, appointment_id: str) -> Optional[Dict[str, Any]]:
    """Return appointment, patient and service data for receipts and emails."""

    query = (
        sa.select(
            Appointment.id,
            Appointment.appointment_at,
            Appointment.status,
            Patient.full_name,
            Patient.email,
            Patient.phone,
            Service.name,
        )
        .join(Patient, Appointment.patient_id == Patient.id)
        .join(Service, Appointment.service_id == Service.id)
        .where(Appointment.id == appointment_id)
    )
    row = session.execute(query).first()
    if row is None:
        return None
    return {
        "appointment_id": row[0],
        "appointment_at": row[1],
        "status": row[2],
        "patient_name": row[3],
        "patient_email": row[4],
        "patient_phone": row[5],
        "service_name": row[6],
    }


def list_appointments_with_patients(session: Session) -> List[Dict[str, Any]]:
    """Admin listing: every appointment with its patient, newest first."""

    query = (
        sa.select(
            Appointment.id,
            Appointment.appointment_at,
            Appointment.status,
            Appointment.service_id,
            Patient.full_name,
            Patient.phone,
            Patient.email,
            Patient.dni,
        )
        .join(Patient, Appointment.patient_id == Patient.id)
        .order_by(Appointment.appointment_at.desc())
    )
    return [
        {
            "id": row.id,
            "appointment_at": row.appointment_at,
            "status": row.status,
            "service_id": row.service_id,
            "patient_name": row.full_name,
            "patient_phone": row.phone,
            "patient_email": row.email,
            "patient_dni": row.dni,
        }
        for row in session.execute(query).all()
    ]
