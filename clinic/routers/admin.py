"""Admin login and the appointment listing it protects."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Cookie, Depends, Response
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.models.appointment import AppointmentStatus
from clinic.services import admin_session, repository
from clinic.services.db import get_db
from clinic.utils.config import Settings, get_settings
from clinic.utils.errors import BookingError, InvalidInput, Unauthorized, Unavailable

LOGGER = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    password: Optional[str] = None


class AdminAppointment(BaseModel):
    id: str
    appointment_at: datetime
    status: AppointmentStatus
    service_id: str
    patient_name: str
    patient_phone: str
    patient_email: str
    patient_dni: str


def require_admin_session(
    admin_session_token: Optional[str] = Cookie(default=None, alias=admin_session.SESSION_COOKIE_NAME),
) -> str:
    """Dependency gate: the request must carry a live admin session cookie."""

    if not admin_session.is_session_valid(admin_session_token):
        raise Unauthorized()
    return admin_session_token


@router.post("/auth/login")
def login(
    payload: LoginRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> dict[str, object]:
    """Exchange the admin password for a session cookie."""

    if not payload.password:
        raise InvalidInput("La contraseña es obligatoria.")
    if not settings.admin_password:
        LOGGER.error("ADMIN_PASSWORD is not configured")
        raise BookingError("Error de configuración del servidor.")
    if not admin_session.password_matches(payload.password, settings.admin_password):
        LOGGER.warning("Rejected admin login attempt")
        raise Unauthorized("Contraseña incorrecta.")

    token = admin_session.create_session()
    response.set_cookie(
        key=admin_session.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.admin_session_ttl_seconds,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="strict",
        path="/",
    )
    return {"success": True, "message": "Acceso autorizado"}


@router.post("/auth/logout")
def logout(
    response: Response,
    admin_session_token: Optional[str] = Cookie(default=None, alias=admin_session.SESSION_COOKIE_NAME),
) -> dict[str, object]:
    """Drop the session server-side and clear the cookie."""

    admin_session.revoke_session(admin_session_token)
    response.delete_cookie(key=admin_session.SESSION_COOKIE_NAME, path="/")
    return {"success": True}


@router.get("/admin/turnos", response_model=List[AdminAppointment])
def list_appointments(
    _: str = Depends(require_admin_session),
    session: Session = Depends(get_db),
) -> List[AdminAppointment]:
    """Every appointment with its patient, newest first."""

    try:
        rows = repository.list_appointments_with_patients(session)
    except SQLAlchemyError as exc:
        LOGGER.error("Admin listing failed: %s", exc)
        raise Unavailable("Fallo interno al extraer los registros.") from exc
    return [AdminAppointment(**row) for row in rows]
