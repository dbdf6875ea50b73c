"""Pillow-backed icon thumbnails for usage records."""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path
from typing import Callable, Optional, Union

from PIL import Image

from netmeter.app.core.config import settings
from netmeter.app.services.platform import IconEncoder

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/png;base64,"

IconData = Union[bytes, Path, Image.Image]
IconSource = Callable[[str], Optional[IconData]]


def _open_image(raw: IconData) -> Image.Image:
    if isinstance(raw, Image.Image):
        return raw
    if isinstance(raw, Path):
        with Image.open(raw) as img:
            img.load()
            return img.copy()
    with Image.open(io.BytesIO(raw)) as img:
        img.load()
        return img.copy()


def encode_thumbnail(raw: IconData, size: int = 64) -> str:
    """Normalize an icon to a ``size`` x ``size`` RGBA PNG and return it as a data URI."""
    img = _open_image(raw).convert("RGBA")
    if img.size != (size, size):
        img = img.resize((size, size), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return DATA_URI_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


class PillowIconEncoder(IconEncoder):
    """
    Encodes icons fetched from ``source`` into fixed-size PNG thumbnails.

    The source returns raw image bytes, a file path or a PIL image for a
    package id, or None when the package has no icon. Decoding failures are
    logged and reported as "no icon".
    """

    def __init__(self, source: IconSource, size: int | None = None) -> None:
        self.source = source
        self.size = size or settings.icon_size

    def encode(self, package_id: str) -> Optional[str]:
        raw = self.source(package_id)
        if raw is None:
            return None
        try:
            return encode_thumbnail(raw, self.size)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            logger.warning("Error encoding icon for %s: %s", package_id, exc, extra={"package": package_id})
            return None
