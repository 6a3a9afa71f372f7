"""
Newsletter lifecycle service: signup, confirmation and the read path.

Sending email is not this service's job. Callers enqueue the
confirmation_email and welcome_email messages after a successful signup or
confirmation. There is no outbox, so a crash between the database commit and
the enqueue drops that email.
"""

import secrets
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.exceptions import StorageError, ValidationError
from api.v1.newsletter.models import Newsletter, NewsletterSubscriber, SubscriberStatus
from api.v1.newsletter.validators import Email, is_valid_uuid

logger = get_logger(__name__)

# One retry covers losing an insert race to a concurrent signup
_SIGNUP_ATTEMPTS = 2


class NewsletterService:
    """Service for the newsletter subscriber lifecycle."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def generate_token(self) -> str:
        return secrets.token_hex(self.settings.token_bytes)

    async def signup_for_newsletter(
        self, session: AsyncSession, email: str
    ) -> str | None:
        """
        Create or refresh a pending signup and return its new token.

        Signing up again while pending issues a new token and invalidates the
        old one. Signing up after confirming is a no-op and returns None.

        Raises:
            ValidationError: email is not a valid address
            StorageError: the database failed
        """
        email = Email(email)
        if not email.is_valid():
            raise ValidationError("email is invalid")

        for attempt in range(1, _SIGNUP_ATTEMPTS + 1):
            try:
                token = await self._upsert_pending(session, email)
                await session.commit()
                return token

            except IntegrityError as e:
                await session.rollback()
                if attempt == _SIGNUP_ATTEMPTS:
                    raise StorageError("error signing up for newsletter") from e
                logger.info("Signup conflicted with a concurrent write, retrying")

            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError("error signing up for newsletter") from e

        return None  # unreachable, the loop returns or raises

    async def _upsert_pending(
        self, session: AsyncSession, email: Email
    ) -> str | None:
        result = await session.execute(
            select(NewsletterSubscriber).where(NewsletterSubscriber.email == str(email))
        )
        subscriber = result.scalar_one_or_none()

        if subscriber is not None and subscriber.is_confirmed():
            logger.info("Signup for an already confirmed subscriber ignored")
            return None

        token = self.generate_token()
        now = datetime.now(UTC)

        if subscriber is None:
            session.add(
                NewsletterSubscriber(
                    email=str(email),
                    status=SubscriberStatus.PENDING.value,
                    token=token,
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            subscriber.token = token
            subscriber.updated_at = now

        await session.flush()
        return token

    async def confirm_newsletter_signup(
        self, session: AsyncSession, token: str
    ) -> Email | None:
        """
        Confirm the pending signup holding this token.

        Tokens are single-use: a token that was never issued, was replaced by
        a newer signup, or was already used returns None.

        Raises:
            StorageError: the database failed
        """
        if not token:
            return None

        try:
            result = await session.execute(
                select(NewsletterSubscriber).where(
                    and_(
                        NewsletterSubscriber.token == token,
                        NewsletterSubscriber.status == SubscriberStatus.PENDING.value,
                    )
                )
            )
            subscriber = result.scalar_one_or_none()
            if subscriber is None:
                return None

            email = Email(subscriber.email)
            now = datetime.now(UTC)

            # Conditional on the token so a concurrent confirm can only win once
            update_result = await session.execute(
                update(NewsletterSubscriber)
                .where(
                    and_(
                        NewsletterSubscriber.id == subscriber.id,
                        NewsletterSubscriber.token == token,
                        NewsletterSubscriber.status == SubscriberStatus.PENDING.value,
                    )
                )
                .values(
                    status=SubscriberStatus.CONFIRMED.value,
                    token=None,
                    confirmed_at=now,
                    updated_at=now,
                )
            )
            await session.commit()

        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError("error confirming newsletter signup") from e

        if update_result.rowcount == 0:
            return None

        logger.info("Newsletter signup confirmed")
        return email

    async def get_newsletter(
        self, session: AsyncSession, newsletter_id: str
    ) -> Newsletter | None:
        """Get one newsletter. Malformed ids return None without touching storage."""
        if not is_valid_uuid(newsletter_id):
            return None

        try:
            return await session.get(Newsletter, UUID(newsletter_id))
        except SQLAlchemyError as e:
            raise StorageError("error getting newsletter") from e

    async def get_newsletters(self, session: AsyncSession) -> list[Newsletter]:
        """Get all newsletters, newest first."""
        try:
            result = await session.execute(
                select(Newsletter).order_by(Newsletter.created_at.desc())
            )
        except SQLAlchemyError as e:
            raise StorageError("error getting newsletters") from e
        return list(result.scalars().all())

    async def create_newsletter(
        self, session: AsyncSession, title: str, body: str, summary: str = ""
    ) -> Newsletter:
        """Publish a newsletter."""
        if not title.strip() or not body.strip():
            raise ValidationError("title and body are required")

        now = datetime.now(UTC)
        newsletter = Newsletter(
            title=title.strip(),
            summary=summary.strip(),
            body=body,
            created_at=now,
            updated_at=now,
        )

        try:
            session.add(newsletter)
            await session.commit()
            await session.refresh(newsletter)
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError("error saving newsletter") from e

        logger.info("Newsletter published", newsletter_id=str(newsletter.id))
        return newsletter
