"""
Job registry initialization.

Registers all job handlers with the job registry built at startup.
"""

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.registries import JobRegistry
from api.v1.gifts.generator import GiftCreator
from api.v1.infra.jobs.handlers import ConfirmationEmailHandler, WelcomeEmailHandler
from api.v1.infra.jobs.schemas import ConfirmationEmailPayload, WelcomeEmailPayload
from api.v1.newsletter.emailer import EmailSender

logger = get_logger(__name__)


def register_job_handlers(
    registry: JobRegistry,
    settings: Settings,
    email_sender: EmailSender,
    gift_creator: GiftCreator,
) -> None:
    """Register all job handlers with the job registry."""

    logger.info("Registering job handlers")

    # Newsletter lifecycle side effects
    registry.register(
        ConfirmationEmailPayload.job,
        ConfirmationEmailHandler(settings, email_sender),
    )

    registry.register(
        WelcomeEmailPayload.job,
        WelcomeEmailHandler(settings, email_sender, gift_creator),
    )

    logger.info("Job handlers registered", registered_handlers=registry.list())
