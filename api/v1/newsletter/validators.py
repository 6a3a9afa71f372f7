"""
Validators for newsletter input: email addresses and newsletter ids.
"""

from uuid import UUID

from email_validator import EmailNotValidError, validate_email


class Email(str):
    """
    An email address.

    Construction normalizes (strips, lowercases) but never rejects; call
    ``is_valid()`` before handing the address to storage or the queue.
    """

    def __new__(cls, value: str):
        return super().__new__(cls, value.strip().lower())

    def is_valid(self) -> bool:
        # Exactly one @ and a dotted domain, on top of the syntax checks
        if self.count("@") != 1 or "." not in self.domain():
            return False
        try:
            validate_email(self, check_deliverability=False)
        except EmailNotValidError:
            return False
        return True

    def local(self) -> str:
        """The part before the @."""
        local, _, _ = self.partition("@")
        return local

    def domain(self) -> str:
        _, _, domain = self.partition("@")
        return domain


def is_valid_uuid(value: str) -> bool:
    """Check that value is a canonical hyphenated UUID string."""
    try:
        return str(UUID(value)) == value.lower()
    except (ValueError, AttributeError, TypeError):
        return False
