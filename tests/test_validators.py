import uuid

import pytest

from api.v1.newsletter.validators import Email, is_valid_uuid


@pytest.mark.parametrize(
    "value",
    [
        "me@example.com",
        "first.last@example.co.uk",
        "me+news@sub.example.com",
        "  Me@Example.COM  ",
        "a@b.io",
    ],
)
def test_valid_emails(value):
    assert Email(value).is_valid()


@pytest.mark.parametrize(
    "value",
    [
        "",
        "me",
        "me.example.com",
        "@example.com",
        "me@",
        "me@example",
        "me@@example.com",
        "me@exa@mple.com",
        "me@.com",
        "me@example.",
        "me@-example.com",
        "me @example.com",
        "me@exa mple.com",
    ],
)
def test_invalid_emails(value):
    assert not Email(value).is_valid()


def test_email_without_dot_after_at_is_rejected():
    """A dot in the local part doesn't count as a domain dot."""
    assert not Email("first.last@localhost").is_valid()


@pytest.mark.parametrize(
    "value",
    [".me@example.com", "me.@example.com", "me..you@example.com", "me@example.invalid"],
)
def test_email_syntax_rules_beyond_one_at_and_a_dot(value):
    assert not Email(value).is_valid()


def test_email_is_normalized():
    email = Email("  Me@Example.COM ")
    assert email == "me@example.com"
    assert isinstance(email, str)


def test_email_parts():
    email = Email("first.last+tag@example.com")
    assert email.local() == "first.last+tag"
    assert email.domain() == "example.com"


def test_too_long_email_is_rejected():
    assert not Email("a" * 250 + "@example.com").is_valid()


def test_is_valid_uuid():
    value = str(uuid.uuid4())
    assert is_valid_uuid(value)
    assert is_valid_uuid(value.upper())


@pytest.mark.parametrize("value", ["", "123", "not-a-uuid", "12345678123456781234567812345678"])
def test_is_valid_uuid_rejects_malformed(value):
    assert not is_valid_uuid(value)
