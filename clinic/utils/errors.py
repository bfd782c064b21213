"""Error taxonomy shared by the booking services and the HTTP layer.

Every error carries the HTTP status the API answers with and a short message
that is safe to show to a patient. Internal diagnostics go to the logs only.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for user-facing booking failures."""

    status_code: int = 500
    default_message: str = "Error interno del servidor."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(BookingError):
    """Missing or malformed fields; the caller can correct them."""

    status_code = 400
    default_message = "Faltan datos obligatorios para agendar el turno."


class Unauthorized(BookingError):
    """Admin session missing, expired or wrong credentials."""

    status_code = 401
    default_message = "No autorizado."


class NotFound(BookingError):
    """Referenced service or appointment does not exist."""

    status_code = 404
    default_message = "Recurso no encontrado."


class PaymentGatewayError(BookingError):
    """Checkout creation failed; the pending appointment is kept."""

    status_code = 502
    default_message = (
        "Tu turno quedó reservado, pero no pudimos generar el link de pago. "
        "Intentá nuevamente en unos minutos."
    )


class Unavailable(BookingError):
    """Storage or an upstream collaborator is unreachable."""

    status_code = 503
    default_message = "Servicio temporalmente no disponible."


class VerificationFailed(BookingError):
    """A payment notification could not be verified with the provider."""

    status_code = 500
    default_message = "No se pudo validar el pago."
