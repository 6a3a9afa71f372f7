"""
Newsletter storage models.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import TIMESTAMP, CheckConstraint, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from api.infra.database import Base


class SubscriberStatus(str, Enum):
    """Subscriber lifecycle: pending until the emailed token is confirmed."""

    PENDING = "pending"
    CONFIRMED = "confirmed"


class NewsletterSubscriber(Base):
    """
    A newsletter signup.

    The token is present only while the subscriber is pending; confirming
    clears it so it can't be used again.
    """

    __tablename__ = "newsletter_subscribers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(
        String(254), nullable=False, unique=True, comment="Normalized email address"
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=SubscriberStatus.PENDING.value,
        comment="Subscriber status: pending|confirmed",
    )
    token: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True, comment="Signup token while pending"
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed')",
            name="newsletter_subscribers_status_check",
        ),
    )

    def is_confirmed(self) -> bool:
        return self.status == SubscriberStatus.CONFIRMED.value


class Newsletter(Base):
    """A published newsletter issue."""

    __tablename__ = "newsletters"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
