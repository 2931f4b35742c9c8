"""Central Pytest Fixtures for TruthSeeker.

Fixtures included:
- Config: app_config (paths under tmp_path), no_api_key
- Case data: sample_history, sample_journal, case_store
- Gateway doubles: FakeGateway (scripted chunks/responses/errors),
  mock_genai_client (MagicMock standing in for google.genai.Client)
- Provider responses: make_response builds SDK-shaped response objects
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from truthseeker.ai.client import GatewayResponse, ModelGateway, ResponseChunk
from truthseeker.config import AppConfig, PathsConfig, reset_config
from truthseeker.core.case_store import CaseHistory, CaseStore, Journal
from truthseeker.core.models import CaseHistoryItem, JournalEntry, MediaKind, RiskLevel, TaskKind

# =============================================================================
# Helper Functions
# =============================================================================


def make_part(text: str | None = None, data: bytes | None = None, mime_type: str = "image/png", thought=None):
    inline = SimpleNamespace(data=data, mime_type=mime_type) if data is not None else None
    return SimpleNamespace(text=text, inline_data=inline, thought=thought)


def make_response(
    *texts: str,
    images: list[bytes] | None = None,
    citations: list[tuple[str, str]] | None = None,
    finish_reason: str | None = "STOP",
    block_reason: str | None = None,
):
    """Build an object shaped like a google-genai GenerateContentResponse."""
    parts = [make_part(text=t) for t in texts]
    parts += [make_part(data=img) for img in images or []]

    grounding = None
    if citations:
        grounding = SimpleNamespace(
            grounding_chunks=[
                SimpleNamespace(web=SimpleNamespace(title=title, uri=uri)) for title, uri in citations
            ]
        )

    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=parts),
        finish_reason=SimpleNamespace(name=finish_reason) if finish_reason else None,
        grounding_metadata=grounding,
    )
    feedback = SimpleNamespace(block_reason=block_reason) if block_reason else None
    return SimpleNamespace(candidates=[candidate], prompt_feedback=feedback)


async def async_iter(items):
    for item in items:
        yield item


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# Gateway Doubles
# =============================================================================


class FakeGateway:
    """Scripted stand-in for ModelGateway.

    Args:
        chunks: Text fragments (or ResponseChunk objects) yielded by stream().
        response: GatewayResponse returned by invoke().
        error: Exception raised by stream() after ``fail_after`` chunks, or by invoke().
        fail_after: Number of chunks delivered before ``error`` is raised.
    """

    def __init__(
        self,
        chunks: list[Any] | None = None,
        response: GatewayResponse | None = None,
        error: Exception | None = None,
        fail_after: int | None = None,
    ) -> None:
        self.chunks = chunks or []
        self.response = response
        self.error = error
        self.fail_after = len(self.chunks) if fail_after is None else fail_after
        self.calls: list[tuple[TaskKind, dict[str, Any]]] = []

    async def stream(self, action, payload):
        self.calls.append((TaskKind(action), dict(payload)))
        for index, chunk in enumerate(self.chunks):
            if self.error is not None and index == self.fail_after:
                raise self.error
            yield chunk if isinstance(chunk, ResponseChunk) else ResponseChunk(text=chunk)
        if self.error is not None and self.fail_after >= len(self.chunks):
            raise self.error

    async def invoke(self, action, payload):
        self.calls.append((TaskKind(action), dict(payload)))
        if self.error is not None:
            raise self.error
        return self.response


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()
    # CLI runs call setup_logging, which detaches the package logger from root
    package_logger = logging.getLogger("truthseeker")
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers = []
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def no_api_key(monkeypatch):
    """Remove API keys from the environment and the keyring."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.setattr("keyring.get_password", lambda *args: None)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        paths=PathsConfig(data_dir=tmp_path / "data", output_dir=tmp_path / "reports")
    )


@pytest.fixture
def mock_genai_client() -> MagicMock:
    """MagicMock shaped like google.genai.Client with async model calls."""
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=make_response("ok"))
    client.aio.models.generate_content_stream = AsyncMock(
        side_effect=lambda **kwargs: async_iter([make_response("ok")])
    )
    return client


@pytest.fixture
def gateway(app_config: AppConfig, mock_genai_client: MagicMock) -> ModelGateway:
    return ModelGateway(config=app_config, client=mock_genai_client)


@pytest.fixture
def sample_history() -> list[CaseHistoryItem]:
    return [
        CaseHistoryItem(
            id="k3j2h1g0f",
            file_name="profile_pic.jpg",
            file_type=MediaKind.IMAGE,
            date="1/5/2024",
            timestamp="2024-01-05T14:30:00+00:00",
            result_summary="**AUTHENTICITY VERDICT:** AI-Generated. Waxy skin texture and asymmetrical ea...",
            risk_level=RiskLevel.HIGH,
        ),
        CaseHistoryItem(
            id="a9b8c7d6e",
            file_name="voice_note.m4a",
            file_type=MediaKind.AUDIO,
            date="1/3/2024",
            timestamp="2024-01-03T09:00:00+00:00",
            result_summary="Transcript: 'Hi darling...' No splicing artifacts detected in the sample...",
            risk_level=RiskLevel.LOW,
        ),
    ]


@pytest.fixture
def sample_journal() -> list[JournalEntry]:
    return [
        JournalEntry(
            id="1704067200000",
            date="1/1/2024",
            created_at="2024-01-01T00:00:00+00:00",
            title="First contact",
            content="Matched on Hinge. He said he works on an oil rig.",
            tags=["love bombing"],
        ),
    ]


@pytest.fixture
def case_store(app_config: AppConfig, sample_history, sample_journal) -> CaseStore:
    store = CaseStore(
        path=app_config.paths.case_file,
        history=CaseHistory(sample_history),
        journal=Journal(sample_journal),
    )
    store.save()
    return store
