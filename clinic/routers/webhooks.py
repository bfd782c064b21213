"""Payment provider webhook."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clinic.services import booking, providers
from clinic.services.db import get_db
from clinic.utils.errors import InvalidInput

LOGGER = logging.getLogger(__name__)

router = APIRouter()


async def read_notification(request: Request) -> Dict[str, Any]:
    """Parse the notification body; an empty body is allowed (query-only IPN)."""

    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        LOGGER.error("Webhook body is not valid JSON: %s", exc)
        raise InvalidInput("Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidInput("Invalid JSON")
    return payload


@router.post("/mercadopago")
def mercadopago_webhook(
    request: Request,
    payload: Dict[str, Any] = Depends(read_notification),
    session: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Confirm the appointment behind an approved Mercado Pago payment."""

    return booking.handle_payment_callback(
        session,
        payload,
        gateway=providers.payment_client,
        mailer=providers.email_client,
        query=dict(request.query_params),
    )
