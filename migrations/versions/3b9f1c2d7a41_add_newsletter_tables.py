"""add newsletter subscribers and newsletters tables

Revision ID: 3b9f1c2d7a41
Revises:
Create Date: 2026-10-19 10:12:31.518204

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b9f1c2d7a41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "newsletter_subscribers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "email", sa.String(254), nullable=False, comment="Normalized email address"
        ),
        sa.Column(
            "status",
            sa.String(16),
            nullable=False,
            server_default="pending",
            comment="Subscriber status: pending|confirmed",
        ),
        sa.Column(
            "token", sa.String(128), nullable=True, comment="Signup token while pending"
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("confirmed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed')",
            name="newsletter_subscribers_status_check",
        ),
    )

    # Unique email keeps concurrent signups for one address from diverging
    op.create_unique_constraint(
        "uq_newsletter_subscribers_email", "newsletter_subscribers", ["email"]
    )
    op.create_unique_constraint(
        "uq_newsletter_subscribers_token", "newsletter_subscribers", ["token"]
    )

    op.create_table(
        "newsletters",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("summary", sa.Text, nullable=False, server_default=""),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_index("ix_newsletters_created_at", "newsletters", ["created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_newsletters_created_at", table_name="newsletters")
    op.drop_table("newsletters")
    op.drop_table("newsletter_subscribers")
