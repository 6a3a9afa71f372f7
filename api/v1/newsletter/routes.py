"""
Newsletter API endpoints: signup, confirmation and reading newsletters.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings, SettingsDep
from api.infra.database import get_session
from api.v1.core.exceptions import (
    NotFoundError,
    QueueError,
    StorageError,
    UpstreamUnavailableError,
    ValidationError,
    create_success_response,
)
from api.v1.infra.jobs.schemas import ConfirmationEmailPayload, WelcomeEmailPayload
from api.v1.infra.jobs.worker import JobQueue, get_job_queue
from api.v1.newsletter.schemas import (
    ConfirmRequest,
    NewsletterListResponse,
    NewsletterResponse,
    RedirectResponse,
    SignupRequest,
)
from api.v1.newsletter.service import NewsletterService
from api.v1.newsletter.validators import Email

logger = get_logger(__name__)
router = APIRouter(tags=["newsletter"])

SIGNUP_ERROR = "error signing up, refresh to try again"
CONFIRM_ERROR = "error saving email address confirmation, refresh to try again"


@router.post("/newsletter/signup", response_model=dict)
async def newsletter_signup(
    signup: SignupRequest,
    session: AsyncSession = Depends(get_session),
    queue: JobQueue = Depends(get_job_queue),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Sign up for the newsletter and get a confirmation email."""

    email = Email(signup.email)
    if not email.is_valid():
        raise ValidationError("email is invalid")

    service = NewsletterService(settings)

    try:
        token = await service.signup_for_newsletter(session, email)

        # Already confirmed subscribers get the same answer and no email
        if token is not None:
            await queue.send(
                ConfirmationEmailPayload(email=email, token=token).to_message()
            )

    except (StorageError, QueueError) as e:
        logger.info("Error signing up for newsletter", error=repr(e))
        raise UpstreamUnavailableError(SIGNUP_ERROR) from e

    return create_success_response(
        data=RedirectResponse(redirect="/newsletter/thanks").model_dump(),
        message="Thanks for signing up! Check your inbox to confirm your subscription.",
    )


@router.get("/newsletter/confirm", response_model=dict)
async def newsletter_confirm_page(
    token: str = Query(default="", max_length=256, description="Signup token"),
) -> dict[str, Any]:
    """Echo the token for the confirmation page, which posts it back."""
    return create_success_response(data={"token": token})


@router.post("/newsletter/confirm", response_model=dict)
async def newsletter_confirm(
    confirm: ConfirmRequest,
    session: AsyncSession = Depends(get_session),
    queue: JobQueue = Depends(get_job_queue),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Confirm a signup with the token from the confirmation email."""

    service = NewsletterService(settings)

    try:
        email = await service.confirm_newsletter_signup(session, confirm.token)
    except StorageError as e:
        logger.info("Error confirming newsletter signup", error=repr(e))
        raise UpstreamUnavailableError(CONFIRM_ERROR) from e

    if email is None:
        raise ValidationError("bad token")

    try:
        await queue.send(WelcomeEmailPayload(email=email).to_message())
    except QueueError as e:
        logger.info("Error enqueueing welcome email", error=repr(e))
        raise UpstreamUnavailableError(CONFIRM_ERROR) from e

    return create_success_response(
        data=RedirectResponse(redirect="/newsletter/confirmed").model_dump(),
        message="Your subscription is confirmed. Welcome!",
    )


@router.get("/newsletters", response_model=dict)
async def get_newsletters(
    id: str | None = Query(default=None, description="Newsletter ID"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Get one newsletter by id, or all of them."""

    service = NewsletterService(settings)

    if id:
        try:
            newsletter = await service.get_newsletter(session, id)
        except StorageError as e:
            logger.info("Error getting newsletter", error=repr(e), newsletter_id=id)
            raise UpstreamUnavailableError(
                "error getting newsletter, refresh to try again"
            ) from e

        if newsletter is None:
            raise NotFoundError("Newsletter not found")

        return create_success_response(
            data=NewsletterResponse.model_validate(newsletter).model_dump(mode="json")
        )

    try:
        newsletters = await service.get_newsletters(session)
    except StorageError as e:
        logger.info("Error getting newsletters", error=repr(e))
        raise UpstreamUnavailableError(
            "error getting newsletters, refresh to try again"
        ) from e

    response = NewsletterListResponse(
        newsletters=[NewsletterResponse.model_validate(n) for n in newsletters],
        total=len(newsletters),
    )
    return create_success_response(data=response.model_dump(mode="json"))
