"""Test doubles and polling helpers shared by the test modules."""

import asyncio
import time
from collections.abc import Callable


class RecordingEmailSender:
    """Email transport double that records calls and can be told to fail."""

    def __init__(self, error: Exception | None = None, delay: float = 0):
        self.error = error
        self.delay = delay
        self.confirmations: list[tuple[str, str]] = []
        self.welcomes: list[tuple[str, str]] = []

    async def send_newsletter_confirmation_email(self, to, token):
        await self._maybe_fail()
        self.confirmations.append((str(to), token))

    async def send_newsletter_welcome_email(self, to, gift_url):
        await self._maybe_fail()
        self.welcomes.append((str(to), gift_url))

    async def _maybe_fail(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error


class FakeGiftCreator:
    """Gift generator double returning predictable URLs."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.seeds: list[str] = []

    async def create_and_save_newsletter_gift(self, seed: str) -> str:
        self.seeds.append(seed)
        if self.error:
            raise self.error
        return f"http://test/v1/gifts/{seed}-0000.svg"


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate on the running loop until it holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


def wait_until_sync(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate from a test thread while the app's loop runs jobs."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        time.sleep(0.01)
