"""Brevo transactional email adapter."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

LOGGER = logging.getLogger(__name__)


class BrevoError(Exception):
    """Raised when Brevo rejects or never receives a send request."""


class BrevoAdapter:
    """Sends HTML emails through Brevo's SMTP API."""

    def __init__(
        self,
        *,
        api_key: str,
        sender_name: str,
        sender_email: str,
        base_url: str = "https://api.brevo.com",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.sender_name = sender_name
        self.sender_email = sender_email
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    def send_email(
        self,
        *,
        to_email: str,
        to_name: str,
        subject: str,
        html_content: str,
    ) -> bool:
        """Send one email. Returns False when sending is not configured."""

        if not self.api_key:
            LOGGER.warning("BREVO_API_KEY not configured; email to %s not sent", to_email)
            return False

        payload = {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [{"email": to_email, "name": to_name}],
            "subject": subject,
            "htmlContent": html_content,
        }
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "api-key": self.api_key,
        }

        try:
            with httpx.Client(
                base_url=self.base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = client.post("/v3/smtp/email", json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise BrevoError(
                f"Brevo answered {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise BrevoError(f"Brevo request failed: {exc}") from exc

        LOGGER.info("Email '%s' sent via Brevo to %s", subject, to_email)
        return True
