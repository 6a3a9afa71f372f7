"""
Welcome gift generator.

Each confirmed subscriber gets a small generative SVG artwork, seeded by
their name and a random salt so no two gifts are the same.
"""

import asyncio
import hashlib
import re
import uuid
from pathlib import Path
from typing import Protocol

from api.config.logging import get_logger
from api.config.settings import Settings

logger = get_logger(__name__)

GIFT_NAME_PATTERN = re.compile(r"^[a-z0-9-]+\.svg$")

_SIZE = 512


class GiftCreator(Protocol):
    """Protocol for gift generators used by the welcome email job."""

    async def create_and_save_newsletter_gift(self, seed: str) -> str:
        """Create a gift, store it durably and return its public URL."""
        ...


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug[:40].strip("-") or "friend"


def render_gift_svg(digest: bytes, title: str) -> str:
    """Render an SVG composition driven entirely by the digest bytes."""
    hue = digest[0] * 360 // 256
    background = f"hsl({hue}, 45%, 92%)"
    palette = [f"hsl({(hue + offset) % 360}, 70%, 55%)" for offset in (0, 40, 160, 200)]

    shapes = []
    # 8 circles, 3 bytes each, starting after the hue byte
    for n in range(8):
        x, y, r = digest[1 + n * 3], digest[2 + n * 3], digest[3 + n * 3]
        shapes.append(
            f'<circle cx="{x * _SIZE // 256}" cy="{y * _SIZE // 256}" '
            f'r="{16 + r // 4}" fill="{palette[n % len(palette)]}" fill-opacity="0.75"/>'
        )

    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{_SIZE}" height="{_SIZE}" '
        f'viewBox="0 0 {_SIZE} {_SIZE}">'
        f"<title>{title}</title>"
        f'<rect width="100%" height="100%" fill="{background}"/>'
        + "".join(shapes)
        + "</svg>\n"
    )


class GiftGenerator:
    """Generates gifts and stores them on the local filesystem."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.storage_dir = Path(settings.gift_storage_dir)

    async def create_and_save_newsletter_gift(self, seed: str) -> str:
        salt = uuid.uuid4().hex
        digest = hashlib.sha256(f"{seed}:{salt}".encode("utf-8")).digest()

        name = f"{slugify(seed)}-{salt[:8]}.svg"
        svg = render_gift_svg(digest, f"A gift for {slugify(seed)}")

        await asyncio.to_thread(self._write, name, svg)

        url = self.gift_url(name)
        logger.info("Gift created", gift=name, url=url)
        return url

    def gift_url(self, name: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/v1/gifts/{name}"

    def path_for(self, name: str) -> Path | None:
        """Resolve a gift name to its file, or None if the name is not a gift name."""
        if not GIFT_NAME_PATTERN.match(name):
            return None
        return self.storage_dir / name

    def _write(self, name: str, svg: str) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        path = self.storage_dir / name
        tmp = path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            f.write(svg)
            f.flush()
        # Rename so a reader never sees a half-written gift
        tmp.replace(path)
