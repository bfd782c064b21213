"""Shared fixtures: in-memory database, fake providers, fixed clock."""

import os

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6399/15"
os.environ["MP_ACCESS_TOKEN"] = "TEST-access-token"
os.environ["BREVO_API_KEY"] = "test-brevo-key"
os.environ["ADMIN_PASSWORD"] = "s3cret-admin"
os.environ["SECURE_COOKIES"] = "false"

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from clinic.main import app  # noqa: E402
from clinic.models.base import Base  # noqa: E402
from clinic.models.service import Service  # noqa: E402
from clinic.services import admin_session, providers  # noqa: E402
from clinic.services.db import SessionLocal, engine  # noqa: E402
from clinic.utils.timeutils import get_clock  # noqa: E402
from integrations.brevo_adapter import BrevoError  # noqa: E402
from integrations.mercadopago_adapter import MercadoPagoError  # noqa: E402

# Friday 27 Feb 2026, 09:00 in the clinic.
FIXED_NOW = datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc)


class FakePaymentGateway:
    """In-memory stand-in for MercadoPagoAdapter."""

    def __init__(self) -> None:
        self.preferences: List[Dict[str, Any]] = []
        self.payments: Dict[str, Dict[str, Any]] = {}
        self.lookups: List[str] = []
        self.fail_checkout = False
        self.fail_verification = False

    def create_preference(
        self,
        *,
        external_reference: str,
        title: str,
        amount: Decimal,
        payer_name: str,
        payer_email: str,
    ) -> str:
        if self.fail_checkout:
            raise MercadoPagoError("gateway down")
        self.preferences.append(
            {
                "external_reference": external_reference,
                "title": title,
                "amount": amount,
                "payer_name": payer_name,
                "payer_email": payer_email,
            }
        )
        return f"https://mp.test/checkout/{external_reference}"

    def add_payment(
        self,
        payment_id: str,
        status: str,
        external_reference: Optional[str],
    ) -> None:
        self.payments[payment_id] = {
            "id": payment_id,
            "status": status,
            "external_reference": external_reference,
        }

    def get_payment(self, payment_id: str) -> Dict[str, Any]:
        self.lookups.append(payment_id)
        if self.fail_verification or payment_id not in self.payments:
            raise MercadoPagoError("GET /v1/payments answered 404")
        return dict(self.payments[payment_id])


class FakeMailer:
    """In-memory stand-in for BrevoAdapter."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []
        self.fail = False

    def send_email(
        self,
        *,
        to_email: str,
        to_name: str,
        subject: str,
        html_content: str,
    ) -> bool:
        if self.fail:
            raise BrevoError("Brevo answered 500")
        self.sent.append(
            {
                "to_email": to_email,
                "to_name": to_name,
                "subject": subject,
                "html_content": html_content,
            }
        )
        return True


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def db_session():
    """Fresh schema with a small treatment catalogue for every test."""

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    session.add_all(
        [
            Service(id="srv_consulta", name="Consulta de evaluación", duration_minutes=30),
            Service(id="srv_plasma", name="Plasma facial", duration_minutes=60),
            Service(id="srv_blefaro", name="Blefaroplastia no invasiva", duration_minutes=90),
            Service(
                id="srv_retirado",
                name="Tratamiento discontinuado",
                duration_minutes=30,
                is_active=False,
            ),
        ]
    )
    session.commit()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway(monkeypatch) -> FakePaymentGateway:
    fake = FakePaymentGateway()
    monkeypatch.setattr(providers, "payment_client", fake)
    return fake


@pytest.fixture
def mailer(monkeypatch) -> FakeMailer:
    fake = FakeMailer()
    monkeypatch.setattr(providers, "email_client", fake)
    return fake


@pytest.fixture
def session_store(monkeypatch) -> Dict[str, str]:
    """Replace Redis helpers used for admin sessions with a dict."""

    store: Dict[str, str] = {}

    def fake_cache_set(key: str, value: str, ex: Optional[int] = None) -> bool:
        store[key] = value
        return True

    def fake_cache_get(key: str) -> Optional[str]:
        return store.get(key)

    def fake_cache_delete(key: str) -> int:
        return 1 if store.pop(key, None) is not None else 0

    monkeypatch.setattr(admin_session, "cache_set", fake_cache_set)
    monkeypatch.setattr(admin_session, "cache_get", fake_cache_get)
    monkeypatch.setattr(admin_session, "cache_delete", fake_cache_delete)
    return store


@pytest.fixture
def client(db_session, gateway, mailer):
    app.dependency_overrides[get_clock] = lambda: (lambda: FIXED_NOW)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
