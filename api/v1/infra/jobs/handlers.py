"""
Job handlers for newsletter side effects.

Each handler converts the wire message to its typed payload first, so a
malformed message fails before any collaborator is called.
"""

import asyncio

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.exceptions import JobExecutionError
from api.v1.gifts.generator import GiftCreator
from api.v1.infra.jobs.schemas import (
    ConfirmationEmailPayload,
    Message,
    WelcomeEmailPayload,
)
from api.v1.newsletter.emailer import EmailSender

logger = get_logger(__name__)


class ConfirmationEmailHandler:
    """
    Sends the confirmation link to a new subscriber.

    Payload expected:
    {
        "job": "confirmation_email",
        "email": "subscriber address",
        "token": "signup token"
    }
    """

    def __init__(self, settings: Settings, email_sender: EmailSender):
        self.settings = settings
        self.email_sender = email_sender

    async def handle(self, message: Message) -> None:
        payload = ConfirmationEmailPayload.from_message(message)

        try:
            async with asyncio.timeout(self.settings.job_call_timeout_s):
                await self.email_sender.send_newsletter_confirmation_email(
                    payload.email, payload.token
                )
        except Exception as e:
            raise JobExecutionError(
                f"error sending newsletter confirmation email: {e!r}"
            ) from e

        logger.info("Confirmation email sent", to=payload.email)


class WelcomeEmailHandler:
    """
    Creates a welcome gift and sends it to a confirmed subscriber.

    The gift is created before the email is sent; if gift creation fails
    no email goes out.

    Payload expected:
    {
        "job": "welcome_email",
        "email": "subscriber address"
    }
    """

    def __init__(
        self, settings: Settings, email_sender: EmailSender, gift_creator: GiftCreator
    ):
        self.settings = settings
        self.email_sender = email_sender
        self.gift_creator = gift_creator

    async def handle(self, message: Message) -> None:
        payload = WelcomeEmailPayload.from_message(message)

        try:
            async with asyncio.timeout(self.settings.job_call_timeout_s):
                gift_url = await self.gift_creator.create_and_save_newsletter_gift(
                    payload.email.local()
                )
        except Exception as e:
            raise JobExecutionError(f"error creating welcome gift: {e!r}") from e

        # Fresh deadline: time spent on the gift doesn't count against the send
        try:
            async with asyncio.timeout(self.settings.job_call_timeout_s):
                await self.email_sender.send_newsletter_welcome_email(
                    payload.email, gift_url
                )
        except Exception as e:
            raise JobExecutionError(
                f"error sending newsletter welcome email: {e!r}"
            ) from e

        logger.info("Welcome email sent", to=payload.email, gift_url=gift_url)
