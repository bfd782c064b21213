"""Public booking endpoints: catalogue, availability, reservation, checkout."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.services import availability, booking, providers, repository
from clinic.services.db import get_db
from clinic.utils.errors import InvalidInput, PaymentGatewayError, Unavailable
from clinic.utils.timeutils import Clock, get_clock

LOGGER = logging.getLogger(__name__)

router = APIRouter()


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, as the booking form sends them."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ServiceOut(CamelModel):
    id: str
    name: str
    duration_minutes: int


class AvailabilityResponse(CamelModel):
    available_slots: List[str]


class BookingRequest(CamelModel):
    """Reservation form payload."""

    full_name: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=1, max_length=32)
    dni: str = Field(pattern=r"^\d{7,9}$")
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    service_id: str = Field(min_length=1, max_length=64)
    appointment_date: AwareDatetime
    notes: Optional[str] = Field(default=None, max_length=2000)


class CheckoutResponse(CamelModel):
    appointment_id: str
    checkout_url: str


@router.get("/servicios", response_model=List[ServiceOut])
def list_services(session: Session = Depends(get_db)) -> List[ServiceOut]:
    """Return the active treatments."""

    try:
        services = repository.list_active_services(session)
    except SQLAlchemyError as exc:
        LOGGER.error("Listing services failed: %s", exc)
        raise Unavailable() from exc
    return [
        ServiceOut(id=item.id, name=item.name, duration_minutes=item.duration_minutes)
        for item in services
    ]


@router.get("/disponibilidad", response_model=AvailabilityResponse)
def get_availability(
    day: Optional[date] = Query(default=None, alias="date"),
    service_id: Optional[str] = Query(default=None, alias="serviceId"),
    session: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AvailabilityResponse:
    """Return the free start times for a day and treatment."""

    if day is None or not service_id:
        raise InvalidInput("Faltan parámetros de fecha o servicio.")

    slots = availability.get_available_slots(
        session,
        day=day,
        service_id=service_id,
        now=clock(),
    )
    return AvailabilityResponse(available_slots=slots)


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(payload: BookingRequest, session: Session = Depends(get_db)):
    """Reserve a pending turno and hand back the Mercado Pago checkout link."""

    appointment_id = booking.create_pending_booking(
        session,
        full_name=payload.full_name,
        phone=payload.phone,
        dni=payload.dni,
        email=payload.email,
        service_id=payload.service_id,
        appointment_at=payload.appointment_date,
        notes=payload.notes,
    )
    booking.send_booking_received_email(session, providers.email_client, appointment_id)

    try:
        checkout_url = booking.checkout_for_appointment(
            session, providers.payment_client, appointment_id
        )
    except (PaymentGatewayError, Unavailable) as exc:
        # The reservation stands; the client can retry checkout with its id.
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "appointmentId": appointment_id},
        )

    return CheckoutResponse(appointment_id=appointment_id, checkout_url=checkout_url)


@router.post("/{appointment_id}/checkout", response_model=CheckoutResponse)
def retry_checkout(appointment_id: str, session: Session = Depends(get_db)) -> CheckoutResponse:
    """Issue a fresh checkout link for an unpaid turno."""

    checkout_url = booking.checkout_for_appointment(
        session, providers.payment_client, appointment_id
    )
    return CheckoutResponse(appointment_id=appointment_id, checkout_url=checkout_url)
