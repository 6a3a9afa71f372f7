"""
Email transports for newsletter mail.

Supports two backends: stub (logs and records, no network) and postmark.
"""

from dataclasses import dataclass
from html import escape
from typing import Protocol
from urllib.parse import urlencode

import httpx

from api.config.logging import get_logger
from api.config.settings import EmailBackend, Settings
from api.v1.newsletter.validators import Email

logger = get_logger(__name__)


class EmailSender(Protocol):
    """Protocol for transports that deliver newsletter mail."""

    async def send_newsletter_confirmation_email(self, to: Email, token: str) -> None:
        ...

    async def send_newsletter_welcome_email(self, to: Email, gift_url: str) -> None:
        ...


@dataclass(frozen=True)
class OutgoingEmail:
    """A rendered email, ready for a transport."""

    sender: str
    to: str
    subject: str
    html: str
    text: str
    tag: str
    stream: str


def confirmation_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/v1/newsletter/confirm?{urlencode({'token': token})}"


def render_confirmation_email(settings: Settings, to: Email, token: str) -> OutgoingEmail:
    link = confirmation_link(settings.base_url, token)
    return OutgoingEmail(
        sender=settings.transactional_email_from,
        to=to,
        subject="Confirm your subscription",
        html=(
            "<p>Hi!</p>"
            "<p>Please confirm your newsletter subscription by clicking the link below.</p>"
            f'<p><a href="{escape(link)}">Confirm subscription</a></p>'
            "<p>If you didn't sign up, you can ignore this email.</p>"
        ),
        text=(
            "Hi!\n\n"
            "Please confirm your newsletter subscription by opening this link:\n\n"
            f"{link}\n\n"
            "If you didn't sign up, you can ignore this email.\n"
        ),
        tag="newsletter-confirmation",
        stream="outbound",
    )


def render_welcome_email(settings: Settings, to: Email, gift_url: str) -> OutgoingEmail:
    return OutgoingEmail(
        sender=settings.marketing_email_from,
        to=to,
        subject="Welcome to the newsletter",
        html=(
            "<p>Hi!</p>"
            "<p>Thanks for confirming your subscription. Here's a little welcome gift, "
            "made just for you:</p>"
            f'<p><a href="{escape(gift_url)}">Open your gift</a></p>'
        ),
        text=(
            "Hi!\n\n"
            "Thanks for confirming your subscription. Here's a little welcome gift, "
            "made just for you:\n\n"
            f"{gift_url}\n"
        ),
        tag="newsletter-welcome",
        stream="broadcast",
    )


class StubEmailSender:
    """
    Transport for development and testing.

    Logs every email and keeps it in ``sent`` instead of delivering it.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.sent: list[OutgoingEmail] = []

    async def send_newsletter_confirmation_email(self, to: Email, token: str) -> None:
        self._record(render_confirmation_email(self.settings, to, token))

    async def send_newsletter_welcome_email(self, to: Email, gift_url: str) -> None:
        self._record(render_welcome_email(self.settings, to, gift_url))

    def _record(self, email: OutgoingEmail) -> None:
        self.sent.append(email)
        logger.info("Stub email sent", to=email.to, subject=email.subject, tag=email.tag)


class PostmarkEmailSender:
    """Transport delivering through the Postmark HTTP API."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    async def send_newsletter_confirmation_email(self, to: Email, token: str) -> None:
        await self._send(render_confirmation_email(self.settings, to, token))

    async def send_newsletter_welcome_email(self, to: Email, gift_url: str) -> None:
        await self._send(render_welcome_email(self.settings, to, gift_url))

    async def _send(self, email: OutgoingEmail) -> None:
        """
        POST one email to Postmark.

        Raises httpx.HTTPStatusError on a non-2xx answer and httpx.HTTPError
        on transport failures.
        """
        response = await self.client.post(
            f"{self.settings.postmark_api_url.rstrip('/')}/email",
            headers={
                "Accept": "application/json",
                "X-Postmark-Server-Token": self.settings.postmark_server_token,
            },
            json={
                "From": email.sender,
                "To": email.to,
                "Subject": email.subject,
                "HtmlBody": email.html,
                "TextBody": email.text,
                "Tag": email.tag,
                "MessageStream": email.stream,
            },
        )
        response.raise_for_status()

        logger.info(
            "Email sent",
            to=email.to,
            tag=email.tag,
            message_id=response.json().get("MessageID"),
        )


def create_email_sender(settings: Settings, client: httpx.AsyncClient) -> EmailSender:
    """Build the transport selected by settings.email_backend."""
    if settings.email_backend == EmailBackend.POSTMARK:
        return PostmarkEmailSender(settings, client)
    return StubEmailSender(settings)
