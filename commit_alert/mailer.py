from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

import httpx
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Email, Mail

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


class MailError(Exception):
    """Raised when mail sending fails."""


class MailSender(Protocol):
    provider: str

    def send(self, subject: str, body: str) -> None: ...


@dataclass(frozen=True)
class MailConfig:
    from_email: str
    from_name: str
    to_emails: Tuple[str, ...]


class SendGridMailer:
    provider = "sendgrid"

    def __init__(self, api_key: str, config: MailConfig):
        self._client = SendGridAPIClient(api_key)
        self._from_email = Email(email=config.from_email, name=config.from_name)
        self._to_emails = list(config.to_emails)

    def send(self, subject: str, body: str) -> None:
        mail = Mail(
            from_email=self._from_email,
            to_emails=self._to_emails,
            subject=subject,
            plain_text_content=body,
        )
        try:
            response = self._client.send(mail)
        except Exception as exc:  # noqa: BLE001
            raise MailError(f"Failed to send email: {exc}") from exc
        if response.status_code >= 400:
            raise MailError(f"SendGrid returned error status: {response.status_code}")
        logger.info("Mail sent with status %s", response.status_code)


class BrevoMailer:
    provider = "brevo"

    def __init__(self, api_key: str, config: MailConfig, transport: httpx.BaseTransport | None = None):
        self._api_key = api_key
        self._config = config
        self._transport = transport

    def send(self, subject: str, body: str) -> None:
        payload = {
            "sender": {"name": self._config.from_name, "email": self._config.from_email},
            "to": [{"email": addr} for addr in self._config.to_emails],
            "subject": subject,
            "textContent": body,
        }
        headers = {"api-key": self._api_key, "content-type": "application/json"}
        try:
            with httpx.Client(timeout=20.0, transport=self._transport) as client:
                response = client.post(BREVO_API_URL, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise MailError(f"Failed to send email: {exc}") from exc
        logger.info("Mail sent with status %s", response.status_code)


def build_mailer(
    *,
    brevo_api_key: Optional[str],
    sendgrid_api_key: Optional[str],
    from_email: str,
    from_name: str,
    to_emails: Sequence[str],
) -> MailSender:
    """
    Provider selection:
    - Brevo is default.
    - If both are set, use Brevo.
    - Otherwise use whichever is set.
    """
    config = MailConfig(from_email=from_email, from_name=from_name, to_emails=tuple(to_emails))
    if brevo_api_key and brevo_api_key.strip():
        return BrevoMailer(brevo_api_key.strip(), config)
    if sendgrid_api_key and sendgrid_api_key.strip():
        return SendGridMailer(sendgrid_api_key.strip(), config)
    raise MailError("No mail provider configured: set BREVO_API_KEY or SENDGRID_API_KEY.")
