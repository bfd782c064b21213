"""Tests for the Mercado Pago confirmation webhook."""

from datetime import date

import pytest
import sqlalchemy as sa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from clinic.main import app
from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.services import booking, repository
from clinic.utils.errors import InvalidInput, Unavailable, VerificationFailed
from clinic.utils.timeutils import local_datetime

WEBHOOK = "/api/webhooks/mercadopago"


@pytest.fixture
def pending_id(db_session) -> str:
    return booking.create_pending_booking(
        db_session,
        full_name="Lucía Pérez",
        phone="1144443333",
        dni="23456789",
        email="lucia@example.com",
        service_id="srv_plasma",
        appointment_at=local_datetime(date(2026, 3, 7), 13, 0),
    )


def _status(session, appointment_id: str) -> AppointmentStatus:
    session.expire_all()
    return session.get(Appointment, appointment_id).status


def _snapshot(session):
    session.expire_all()
    return session.execute(
        sa.select(Appointment.id, Appointment.status).order_by(Appointment.id)
    ).all()


def _payment_event(payment_id="1234567890") -> dict:
    return {"type": "payment", "action": "payment.updated", "data": {"id": payment_id}}


def test_non_payment_event_is_acknowledged_without_side_effects(client, db_session, pending_id, gateway, mailer) -> None:
    before = _snapshot(db_session)

    response = client.post(WEBHOOK, json={"type": "merchant_order", "data": {"id": "99"}})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert gateway.lookups == []
    assert mailer.sent == []
    assert _snapshot(db_session) == before


def test_missing_payment_id_is_client_error(client, db_session, pending_id, gateway) -> None:
    response = client.post(WEBHOOK, json={"type": "payment", "data": {}})

    assert response.status_code == 400
    assert response.json() == {"error": "Falta el ID del pago."}
    assert gateway.lookups == []
    assert _status(db_session, pending_id) is AppointmentStatus.PENDING


def test_invalid_json_is_client_error(client, gateway) -> None:
    response = client.post(WEBHOOK, content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert gateway.lookups == []


def test_unverifiable_payment_is_server_error_without_writes(client, db_session, pending_id, gateway, mailer) -> None:
    """Provider GET fails: 5xx so Mercado Pago retries, nothing touched."""

    gateway.add_payment("555", "approved", pending_id)
    gateway.fail_verification = True
    before = _snapshot(db_session)

    response = client.post(WEBHOOK, json=_payment_event("555"))

    assert response.status_code == 500
    assert gateway.lookups == ["555"]
    assert _snapshot(db_session) == before
    assert mailer.sent == []


def test_payload_status_is_never_trusted(client, db_session, pending_id, gateway) -> None:
    """A forged 'approved' body does not confirm a payment the provider calls pending."""

    gateway.add_payment("777", "pending", pending_id)
    forged = {
        "type": "payment",
        "data": {"id": "777", "status": "approved"},
        "status": "approved",
        "external_reference": pending_id,
    }

    response = client.post(WEBHOOK, json=forged)

    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert _status(db_session, pending_id) is AppointmentStatus.PENDING


@pytest.mark.parametrize("provider_status", ["pending", "in_process", "rejected", "cancelled"])
def test_non_approved_payments_leave_appointment_untouched(
    client, db_session, pending_id, gateway, mailer, provider_status
) -> None:
    gateway.add_payment("888", provider_status, pending_id)

    response = client.post(WEBHOOK, json=_payment_event("888"))

    assert response.status_code == 200
    assert _status(db_session, pending_id) is AppointmentStatus.PENDING
    assert mailer.sent == []


def test_approved_payment_without_reference_is_acknowledged(client, db_session, pending_id, gateway, mailer) -> None:
    gateway.add_payment("999", "approved", None)

    response = client.post(WEBHOOK, json=_payment_event("999"))

    assert response.status_code == 200
    assert _status(db_session, pending_id) is AppointmentStatus.PENDING
    assert mailer.sent == []


def test_approved_payment_confirms_and_emails(client, db_session, pending_id, gateway, mailer) -> None:
    gateway.add_payment("1234567890", "approved", pending_id)

    response = client.post(WEBHOOK, json=_payment_event())

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert _status(db_session, pending_id) is AppointmentStatus.CONFIRMED
    assert len(mailer.sent) == 1
    mail = mailer.sent[0]
    assert mail["to_email"] == "lucia@example.com"
    assert mail["subject"] == "Confirmación de Turno - Zoe Plasma Beauty"
    assert "Plasma facial" in mail["html_content"]
    assert "sábado, 7 de marzo de 2026, 13:00" in mail["html_content"]


def test_redelivered_webhook_is_idempotent(client, db_session, pending_id, gateway, mailer) -> None:
    """Same approved payment twice: still confirmed, no error, one email."""

    gateway.add_payment("1234567890", "approved", pending_id)

    first = client.post(WEBHOOK, json=_payment_event())
    second = client.post(WEBHOOK, json=_payment_event())

    assert first.status_code == second.status_code == 200
    assert _status(db_session, pending_id) is AppointmentStatus.CONFIRMED
    assert len(mailer.sent) == 1


def test_cancelled_appointment_is_not_resurrected(client, db_session, pending_id, gateway, mailer) -> None:
    db_session.get(Appointment, pending_id).status = AppointmentStatus.CANCELLED
    db_session.commit()
    gateway.add_payment("42", "approved", pending_id)

    response = client.post(WEBHOOK, json=_payment_event("42"))

    assert response.status_code == 200
    assert _status(db_session, pending_id) is AppointmentStatus.CANCELLED
    assert mailer.sent == []


def test_unknown_appointment_reference_is_acknowledged(client, gateway, mailer) -> None:
    gateway.add_payment("43", "approved", "no-such-appointment")

    response = client.post(WEBHOOK, json=_payment_event("43"))

    assert response.status_code == 200
    assert mailer.sent == []


def test_email_failure_does_not_fail_confirmation(client, db_session, pending_id, gateway, mailer) -> None:
    gateway.add_payment("44", "approved", pending_id)
    mailer.fail = True

    response = client.post(WEBHOOK, json=_payment_event("44"))

    assert response.status_code == 200
    assert _status(db_session, pending_id) is AppointmentStatus.CONFIRMED


def test_query_string_notification_is_supported(client, db_session, pending_id, gateway) -> None:
    """IPN-style delivery carries topic and id only in the query string."""

    gateway.add_payment("45", "approved", pending_id)

    response = client.post(WEBHOOK, params={"topic": "payment", "id": "45"})

    assert response.status_code == 200
    assert _status(db_session, pending_id) is AppointmentStatus.CONFIRMED


def test_topic_style_body_is_supported(client, db_session, pending_id, gateway) -> None:
    gateway.add_payment("46", "approved", pending_id)

    response = client.post(WEBHOOK, json={"topic": "payment", "id": "46"})

    assert response.status_code == 200
    assert _status(db_session, pending_id) is AppointmentStatus.CONFIRMED


def test_suspicious_payment_id_is_rejected_before_lookup(db_session, gateway, mailer) -> None:
    with pytest.raises(InvalidInput):
        booking.handle_payment_callback(
            db_session,
            {"type": "payment", "data": {"id": "../../users/me"}},
            gateway=gateway,
            mailer=mailer,
        )
    assert gateway.lookups == []


def test_handler_raises_verification_failed(db_session, gateway, mailer) -> None:
    with pytest.raises(VerificationFailed):
        booking.handle_payment_callback(
            db_session,
            _payment_event("missing"),
            gateway=gateway,
            mailer=mailer,
        )


def test_storage_failure_on_confirm_asks_for_retry(db_session, pending_id, gateway, mailer, monkeypatch) -> None:
    gateway.add_payment("47", "approved", pending_id)

    def broken_transition(*args, **kwargs):
        raise OperationalError("UPDATE appointments", {}, Exception("database is locked"))

    monkeypatch.setattr(repository, "transition_status", broken_transition)

    with pytest.raises(Unavailable):
        booking.handle_payment_callback(
            db_session,
            _payment_event("47"),
            gateway=gateway,
            mailer=mailer,
        )
    assert mailer.sent == []


@pytest.mark.anyio
async def test_webhook_over_async_client(db_session, pending_id, gateway, mailer) -> None:
    gateway.add_payment("48", "approved", pending_id)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        response = await ac.post(WEBHOOK, json=_payment_event("48"))

    assert response.status_code == 200
    assert _status(db_session, pending_id) is AppointmentStatus.CONFIRMED
