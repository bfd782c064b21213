"""Process-wide provider clients built from settings."""

from clinic.utils.config import get_settings
from integrations.brevo_adapter import BrevoAdapter
from integrations.mercadopago_adapter import MercadoPagoAdapter

settings = get_settings()

payment_client = MercadoPagoAdapter(
    access_token=settings.mp_access_token,
    base_url=settings.mp_base_url,
    public_base_url=settings.public_base_url,
    sandbox=settings.mp_sandbox,
)
email_client = BrevoAdapter(
    api_key=settings.brevo_api_key,
    sender_name=settings.email_sender_name,
    sender_email=settings.email_sender_address,
    base_url=settings.brevo_base_url,
)
