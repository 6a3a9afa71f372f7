"""
Newsletter Pydantic schemas.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SignupRequest(BaseModel):
    """Schema for a newsletter signup."""

    email: str = Field(..., max_length=320, description="Subscriber email address")


class ConfirmRequest(BaseModel):
    """Schema for confirming a signup with the emailed token."""

    token: str = Field(default="", max_length=256, description="Signup token")


class RedirectResponse(BaseModel):
    """Where the browser should go next."""

    redirect: str


class NewsletterResponse(BaseModel):
    """Schema for newsletter API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    summary: str
    body: str
    created_at: datetime
    updated_at: datetime


class NewsletterListResponse(BaseModel):
    """Schema for newsletter list API response."""

    newsletters: list[NewsletterResponse]
    total: int
