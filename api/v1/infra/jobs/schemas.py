"""
Job message and payload schemas.

Messages travel through the queue as flat string maps. Each handler turns
the map into its typed payload before doing any work.
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from api.v1.core.exceptions import MessageError
from api.v1.newsletter.validators import Email

JOB_KEY = "job"


class Message(Mapping[str, str]):
    """Immutable string-to-string payload addressed to a job by its "job" key."""

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, str] | None = None, /, **kwargs: str):
        data = {**(fields or {}), **kwargs}
        for key, value in data.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise MessageError(
                    f"message fields must be strings, got {key!r}: {type(value).__name__}"
                )
        self._fields = MappingProxyType(data)

    def __getitem__(self, key: str) -> str:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Message({dict(self._fields)!r})"

    @property
    def job(self) -> str | None:
        return self._fields.get(JOB_KEY) or None

    def to_dict(self) -> dict[str, str]:
        return dict(self._fields)


class JobPayload(BaseModel):
    """Typed view of a message for one job type."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    job: ClassVar[str]

    @classmethod
    def from_message(cls, message: Mapping[str, str]):
        """Convert a wire message to this payload, raising MessageError if it doesn't fit."""
        try:
            return cls.model_validate(dict(message))
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or 'message'}: {err['msg']}"
                for err in e.errors()
            )
            raise MessageError(f"invalid {cls.job} message: {problems}") from e

    def to_message(self) -> Message:
        return Message({JOB_KEY: self.job, **self.model_dump(mode="json")})


class _EmailPayload(JobPayload):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> Email:
        email = Email(value)
        if not email.is_valid():
            raise ValueError("not a valid email address")
        return email


class ConfirmationEmailPayload(_EmailPayload):
    """Payload for the confirmation_email job."""

    job: ClassVar[str] = "confirmation_email"

    token: str = Field(..., min_length=1)


class WelcomeEmailPayload(_EmailPayload):
    """Payload for the welcome_email job."""

    job: ClassVar[str] = "welcome_email"


class QueueStats(BaseModel):
    """Snapshot of the in-process job queue."""

    running: bool
    queue_depth: int
    active_jobs: int
    pending_retries: int
    succeeded: int
    failed: int
    retried: int
    registered_jobs: list[str]
