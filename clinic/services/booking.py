"""Booking and payment state machine.

An appointment is written as ``pending``, a Mercado Pago checkout is requested
for the deposit, and the appointment moves to ``confirmed`` only after the
payment has been re-read from Mercado Pago and found ``approved``. The move is
a compare-and-set on the status column, so a redelivered notification can
neither confirm twice nor email twice.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.models.appointment import AppointmentStatus
from clinic.services import email_templates, repository
from clinic.utils.errors import (
    InvalidInput,
    NotFound,
    PaymentGatewayError,
    Unavailable,
    VerificationFailed,
)
from clinic.utils.timeutils import format_local_datetime
from integrations.brevo_adapter import BrevoAdapter, BrevoError
from integrations.mercadopago_adapter import MercadoPagoAdapter, MercadoPagoError

LOGGER = logging.getLogger(__name__)

DEPOSIT_AMOUNT = Decimal("15000.00")

PAYMENT_EVENT = "payment"
APPROVED = "approved"

_PAYMENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


# ---------------------------------------------------------------------------
# Step A: reserve
# ---------------------------------------------------------------------------
def create_pending_booking(
    session: Session,
    *,
    full_name: Optional[str],
    phone: Optional[str],
    dni: Optional[str],
    email: Optional[str],
    service_id: Optional[str],
    appointment_at: Optional[datetime],
    notes: Optional[str] = None,
) -> str:
    """Upsert the patient and write a ``pending`` appointment. Returns its id."""

    fields = {
        "full_name": full_name,
        "phone": phone,
        "dni": dni,
        "email": email,
        "service_id": service_id,
    }
    cleaned = {name: (value or "").strip() for name, value in fields.items()}
    missing = [name for name, value in cleaned.items() if not value]
    if missing or appointment_at is None:
        LOGGER.debug("Booking rejected; missing fields=%s", missing or ["appointment_at"])
        raise InvalidInput()
    if appointment_at.tzinfo is None:
        raise InvalidInput("La fecha del turno debe incluir la zona horaria.")

    try:
        service = repository.get_active_service(session, cleaned["service_id"])
    except SQLAlchemyError as exc:
        LOGGER.error("Service lookup failed: %s", exc)
        raise Unavailable() from exc
    if service is None:
        raise NotFound("Servicio no encontrado.")

    try:
        patient_id = repository.upsert_patient(
            session,
            dni=cleaned["dni"],
            full_name=cleaned["full_name"],
            phone=cleaned["phone"],
            email=cleaned["email"],
        )
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        LOGGER.error("Patient upsert failed: dni=%s error=%s", cleaned["dni"], exc)
        raise Unavailable() from exc

    # The patient write above stays committed even if this insert fails.
    try:
        appointment = repository.insert_appointment(
            session,
            patient_id=patient_id,
            service_id=service.id,
            appointment_at=appointment_at,
            notes=notes,
        )
        appointment_id = appointment.id
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        LOGGER.error("Appointment insert rejected: patient=%s error=%s", patient_id, exc)
        raise InvalidInput("No se pudo registrar el turno.") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        LOGGER.error("Appointment insert failed: patient=%s error=%s", patient_id, exc)
        raise Unavailable() from exc

    LOGGER.info(
        "Appointment %s reserved as pending: service=%s at=%s",
        appointment_id,
        service.id,
        appointment_at.isoformat(),
    )
    return appointment_id


def send_booking_received_email(
    session: Session,
    mailer: BrevoAdapter,
    appointment_id: str,
) -> bool:
    """Best-effort 'request received' email. Never raises."""

    return _send_booking_email(session, mailer, appointment_id, confirmed=False)


# ---------------------------------------------------------------------------
# Step B: checkout
# ---------------------------------------------------------------------------
def create_checkout_session(
    gateway: MercadoPagoAdapter,
    *,
    appointment_id: str,
    payer_name: str,
    payer_email: str,
    service_name: str,
    amount: Decimal = DEPOSIT_AMOUNT,
) -> str:
    """Ask Mercado Pago for a checkout link bound to the appointment id."""

    try:
        checkout_url = gateway.create_preference(
            external_reference=appointment_id,
            title=f"Seña - {service_name}",
            amount=amount,
            payer_name=payer_name,
            payer_email=payer_email,
        )
    except MercadoPagoError as exc:
        LOGGER.error("Checkout creation failed for appointment %s: %s", appointment_id, exc)
        raise PaymentGatewayError() from exc

    LOGGER.info("Checkout created for appointment %s", appointment_id)
    return checkout_url


def checkout_for_appointment(
    session: Session,
    gateway: MercadoPagoAdapter,
    appointment_id: str,
) -> str:
    """Create a checkout for an existing, still unpaid appointment."""

    try:
        details = repository.get_booking_details(session, appointment_id)
    except SQLAlchemyError as exc:
        LOGGER.error("Appointment lookup failed: id=%s error=%s", appointment_id, exc)
        raise Unavailable() from exc

    if details is None:
        raise NotFound("Turno no encontrado.")
    if details["status"] != AppointmentStatus.PENDING:
        raise InvalidInput("El turno ya no está pendiente de pago.")

    return create_checkout_session(
        gateway,
        appointment_id=appointment_id,
        payer_name=details["patient_name"],
        payer_email=details["patient_email"],
        service_name=details["service_name"],
    )


# ---------------------------------------------------------------------------
# Step C: webhook confirmation
# ---------------------------------------------------------------------------
def handle_payment_callback(
    session: Session,
    payload: Mapping[str, Any],
    *,
    gateway: MercadoPagoAdapter,
    mailer: BrevoAdapter,
    query: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Process one Mercado Pago notification.

    Returns the acknowledgement body. Raises ``InvalidInput`` when no payment id
    can be found, ``VerificationFailed`` when Mercado Pago cannot confirm the
    payment and ``Unavailable`` when the status write cannot reach storage;
    the HTTP layer maps those to 400/500/503 so the provider knows whether to
    retry.
    """

    query = query or {}

    event_type = _event_type(payload, query)
    if event_type != PAYMENT_EVENT:
        LOGGER.debug("Ignoring Mercado Pago notification of type=%s", event_type)
        return {"success": True, "message": "Evento ignorado (no es un pago)"}

    payment_id = _payment_id(payload, query)
    if payment_id is None:
        raise InvalidInput("Falta el ID del pago.")

    # The notification body is never trusted for the payment status.
    try:
        payment = gateway.get_payment(payment_id)
    except MercadoPagoError as exc:
        LOGGER.error("Could not verify payment %s: %s", payment_id, exc)
        raise VerificationFailed() from exc

    status = payment.get("status")
    if status != APPROVED:
        LOGGER.info("Payment %s is %s; appointment left untouched", payment_id, status)
        return {"success": True, "status": status}

    appointment_id = payment.get("external_reference")
    if not appointment_id:
        LOGGER.error("Approved payment %s carries no external_reference", payment_id)
        return {"success": True, "status": status}

    try:
        confirmed = repository.transition_status(
            session,
            str(appointment_id),
            from_status=AppointmentStatus.PENDING,
            to_status=AppointmentStatus.CONFIRMED,
        )
        session.commit()
        current = None if confirmed else repository.get_appointment(session, str(appointment_id))
    except SQLAlchemyError as exc:
        session.rollback()
        LOGGER.error("Confirming appointment %s failed: %s", appointment_id, exc)
        raise Unavailable() from exc

    if not confirmed:
        if current is None:
            LOGGER.warning(
                "Payment %s references unknown appointment %s", payment_id, appointment_id
            )
        else:
            LOGGER.info(
                "Appointment %s already %s; payment %s redelivered",
                appointment_id,
                current.status.value,
                payment_id,
            )
        return {"success": True, "message": "Webhook procesado correctamente"}

    LOGGER.info("Appointment %s confirmed by payment %s", appointment_id, payment_id)
    _send_booking_email(session, mailer, str(appointment_id), confirmed=True)
    return {"success": True, "message": "Webhook procesado correctamente"}


def _event_type(payload: Mapping[str, Any], query: Mapping[str, Any]) -> Optional[str]:
    for source in (payload, query):
        value = source.get("type") or source.get("topic")
        if value:
            return str(value)
    return None


def _payment_id(payload: Mapping[str, Any], query: Mapping[str, Any]) -> Optional[str]:
    data = payload.get("data")
    candidates = [
        data.get("id") if isinstance(data, Mapping) else None,
        payload.get("id"),
        query.get("data.id"),
        query.get("id"),
    ]
    for candidate in candidates:
        if candidate is None or candidate == "":
            continue
        value = str(candidate)
        if not _PAYMENT_ID_PATTERN.match(value):
            raise InvalidInput("ID de pago inválido.")
        return value
    return None


def _send_booking_email(
    session: Session,
    mailer: BrevoAdapter,
    appointment_id: str,
    *,
    confirmed: bool,
) -> bool:
    try:
        details = repository.get_booking_details(session, appointment_id)
        if details is None:
            LOGGER.warning("No booking details for appointment %s; email skipped", appointment_id)
            return False

        when = format_local_datetime(details["appointment_at"])
        if confirmed:
            subject = email_templates.CONFIRMED_SUBJECT
            html = email_templates.booking_confirmed_email(
                full_name=details["patient_name"],
                service_name=details["service_name"],
                when=when,
                phone=details["patient_phone"],
            )
        else:
            subject = email_templates.RECEIVED_SUBJECT
            html = email_templates.booking_received_email(
                full_name=details["patient_name"],
                service_name=details["service_name"],
                when=when,
            )

        return mailer.send_email(
            to_email=details["patient_email"],
            to_name=details["patient_name"],
            subject=subject,
            html_content=html,
        )
    except (BrevoError, SQLAlchemyError) as exc:
        LOGGER.error("Email for appointment %s failed (non-fatal): %s", appointment_id, exc)
        return False
