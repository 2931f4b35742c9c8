"""Turn a user-selected file into the base64 + MIME payload the gateway takes."""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from truthseeker.core.models import MediaKind

logger = logging.getLogger(__name__)

# mimetypes misses a few formats phones produce
_EXTRA_TYPES = {
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".webp": "image/webp",
    ".m4a": "audio/mp4",
    ".opus": "audio/ogg",
    ".mov": "video/quicktime",
}


@dataclass(frozen=True)
class EncodedMedia:
    """A file ready for submission."""

    file_name: str
    mime_type: str
    data: str
    size_bytes: int

    @property
    def media_kind(self) -> MediaKind | None:
        major = self.mime_type.split("/", 1)[0]
        try:
            return MediaKind(major)
        except ValueError:
            return None


def guess_mime_type(path: Path) -> str:
    """Guess a MIME type from the file extension."""
    suffix = path.suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "application/octet-stream"


def encode_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _read_and_encode(path: Path) -> EncodedMedia:
    raw = path.read_bytes()
    return EncodedMedia(
        file_name=path.name,
        mime_type=guess_mime_type(path),
        data=encode_bytes(raw),
        size_bytes=len(raw),
    )


async def encode_file(path: Path | str) -> EncodedMedia:
    """Read and base64-encode a file without blocking the event loop.

    Args:
        path: File to read.

    Returns:
        EncodedMedia with the base64 payload and guessed MIME type.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"No such file: {path}")

    media = await asyncio.to_thread(_read_and_encode, path)
    logger.debug(f"Encoded {media.file_name} ({media.mime_type}, {media.size_bytes} bytes)")
    return media
