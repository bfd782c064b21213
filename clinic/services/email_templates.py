"""HTML bodies for the two transactional emails."""

from html import escape

CLINIC_NAME = "Zoe Plasma Beauty"

RECEIVED_SUBJECT = f"Solicitud Recibida - {CLINIC_NAME}"
CONFIRMED_SUBJECT = f"Confirmación de Turno - {CLINIC_NAME}"

_LAYOUT = """\
<div style="font-family: Arial, sans-serif; max-width: 500px; margin: 0 auto; color: #333;">
  <div style="text-align: center; border-bottom: 1px solid #eee; padding-bottom: 20px; margin-bottom: 20px;">
    <h1 style="color: #444; font-weight: 300; margin: 0;">Zoe Plasma <span style="font-weight: 600;">Beauty</span></h1>
  </div>
  <h2 style="color: #444; font-weight: 300;">¡Hola, <strong>{full_name}</strong>!</h2>
  <p style="line-height: 1.5;">{lead}</p>
  <div style="background-color: #f9f9f9; border-left: 4px solid #444; padding: 15px; border-radius: 4px; margin: 25px 0;">
    <p style="margin: 0 0 5px 0; font-size: 13px; color: #666; text-transform: uppercase;">Tratamiento Seleccionado</p>
    <p style="margin: 0 0 15px 0; font-weight: bold; font-size: 16px;">{service_name}</p>
    <p style="margin: 0 0 5px 0; font-size: 13px; color: #666; text-transform: uppercase;">Fecha y Hora (Local)</p>
    <p style="margin: 0; font-weight: bold; font-size: 16px; text-transform: capitalize;">{when}</p>
  </div>
  <p style="line-height: 1.5;">{closing}</p>
  <br>
  <p style="font-size: 13px; color: #888;">Atentamente,<br><strong>El equipo de Zoe Plasma Beauty</strong></p>
</div>
"""


def _render(*, full_name: str, service_name: str, when: str, lead: str, closing: str) -> str:
    return _LAYOUT.format(
        full_name=escape(full_name),
        service_name=escape(service_name),
        when=escape(when),
        lead=lead,
        closing=closing,
    )


def booking_received_email(*, full_name: str, service_name: str, when: str) -> str:
    return _render(
        full_name=full_name,
        service_name=service_name,
        when=when,
        lead="Recibimos tu solicitud de turno.",
        closing=(
            "Tu turno quedará confirmado cuando se acredite la seña. "
            "Si ya pagaste, vas a recibir la confirmación en unos minutos."
        ),
    )


def booking_confirmed_email(*, full_name: str, service_name: str, when: str, phone: str) -> str:
    return _render(
        full_name=full_name,
        service_name=service_name,
        when=when,
        lead="¡Tu pago fue acreditado y tu turno está confirmado!",
        closing=(
            "Pronto nos pondremos en contacto contigo vía WhatsApp al número "
            f"<strong>{escape(phone)}</strong> para brindarte las indicaciones "
            "previas a tu cita."
        ),
    )
