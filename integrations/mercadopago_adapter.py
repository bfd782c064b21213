"""Mercado Pago Checkout API adapter."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

LOGGER = logging.getLogger(__name__)


class MercadoPagoError(Exception):
    """Raised when Mercado Pago cannot be reached or answers unusably."""


class MercadoPagoAdapter:
    """Adapter for the two Mercado Pago operations the booking flow needs."""

    def __init__(
        self,
        *,
        access_token: str,
        base_url: str = "https://api.mercadopago.com",
        public_base_url: str = "http://localhost:3000",
        sandbox: bool = False,
        currency_id: str = "ARS",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self.sandbox = sandbox
        self.currency_id = currency_id
        self._timeout = timeout_seconds
        self._transport = transport

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def create_preference(
        self,
        *,
        external_reference: str,
        title: str,
        amount: Decimal,
        payer_name: str,
        payer_email: str,
    ) -> str:
        """Create a checkout preference and return the URL to redirect the payer to."""

        payload = self._build_preference_payload(
            external_reference=external_reference,
            title=title,
            amount=amount,
            payer_name=payer_name,
            payer_email=payer_email,
        )
        LOGGER.info(
            "Mercado Pago preference: external_reference=%s sandbox=%s",
            external_reference,
            self.sandbox,
        )
        preference = self._request("POST", "/checkout/preferences", json=payload)

        url_key = "sandbox_init_point" if self.sandbox else "init_point"
        checkout_url = preference.get(url_key) or preference.get("init_point")
        if not checkout_url:
            raise MercadoPagoError(
                f"preference {preference.get('id')} returned no {url_key}"
            )
        return checkout_url

    def get_payment(self, payment_id: str) -> Dict[str, Any]:
        """Fetch the authoritative payment record.

        Returns a dict with at least ``status`` and ``external_reference``.
        """

        payment = self._request("GET", f"/v1/payments/{payment_id}")
        return {
            "id": payment.get("id", payment_id),
            "status": payment.get("status"),
            "status_detail": payment.get("status_detail"),
            "external_reference": payment.get("external_reference") or None,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _http_client(self) -> httpx.Client:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        return httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        if not self.access_token:
            raise MercadoPagoError("MP access token is not configured")

        try:
            with self._http_client() as client:
                response = client.request(method, path, **kwargs)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as exc:
            LOGGER.error(
                "Mercado Pago %s %s failed: status=%s body=%s",
                method,
                path,
                exc.response.status_code,
                exc.response.text,
            )
            raise MercadoPagoError(
                f"{method} {path} answered {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.error("Mercado Pago %s %s failed: %s", method, path, exc)
            raise MercadoPagoError(f"{method} {path} failed: {exc}") from exc

        if not isinstance(body, dict):
            raise MercadoPagoError(f"{method} {path} returned a non-object body")
        return body

    def _build_preference_payload(
        self,
        *,
        external_reference: str,
        title: str,
        amount: Decimal,
        payer_name: str,
        payer_email: str,
    ) -> Dict[str, Any]:
        return {
            "items": [
                {
                    "id": external_reference,
                    "title": title,
                    "quantity": 1,
                    "currency_id": self.currency_id,
                    "unit_price": float(amount),
                }
            ],
            "payer": {"name": payer_name, "email": payer_email},
            "external_reference": external_reference,
            "back_urls": {
                "success": f"{self.public_base_url}/success",
                "failure": f"{self.public_base_url}/?pago=fallido",
                "pending": f"{self.public_base_url}/?pago=pendiente",
            },
            "auto_return": "approved",
            "notification_url": f"{self.public_base_url}/api/webhooks/mercadopago",
        }
