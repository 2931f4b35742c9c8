"""Tests for truthseeker.core.media."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from conftest import run
from truthseeker.core.media import encode_file, guess_mime_type
from truthseeker.core.models import MediaKind


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("photo.JPG", "image/jpeg"),
        ("IMG_0042.heic", "image/heic"),
        ("voice.m4a", "audio/mp4"),
        ("clip.mov", "video/quicktime"),
        ("clip.mp4", "video/mp4"),
        ("mystery.zzz", "application/octet-stream"),
    ],
)
def test_guess_mime_type(name: str, expected: str) -> None:
    assert guess_mime_type(Path(name)) == expected


def test_encode_file(tmp_path: Path) -> None:
    path = tmp_path / "voice.m4a"
    path.write_bytes(b"\x00\x01voice")

    media = run(encode_file(path))

    assert media.file_name == "voice.m4a"
    assert media.mime_type == "audio/mp4"
    assert base64.b64decode(media.data) == b"\x00\x01voice"
    assert media.size_bytes == 7
    assert media.media_kind == MediaKind.AUDIO


def test_unknown_kind(tmp_path: Path) -> None:
    path = tmp_path / "chat.txt"
    path.write_text("hi", encoding="utf-8")
    assert run(encode_file(path)).media_kind is None


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        run(encode_file(tmp_path / "gone.jpg"))
