"""Durable case record: analysis history and the user's journal.

Both collections are changed only by explicit user actions. The evidence
aggregator and report compiler receive immutable tuples via ``snapshot()``
and never write back.

The case file is plain JSON with camelCase keys::

    {"history": [...CaseHistoryItem...], "journal": [...JournalEntry...]}
"""

from __future__ import annotations

import json
import logging
import secrets
import string
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from truthseeker.core.models import (
    AnalysisResult,
    CaseHistoryItem,
    CompletionState,
    JournalEntry,
    MediaKind,
)

logger = logging.getLogger(__name__)

SUMMARY_LENGTH = 100

_BASE36 = string.digits + string.ascii_lowercase


RED_FLAG_TEMPLATES: dict[str, str] = {
    "Love Bombing": (
        "Interaction Date:\n"
        "Action: [Excessive compliments / Future faking]\n"
        'Quote: "..."\n'
        "How it made me feel: "
    ),
    "Money Requests": (
        "Date Requested:\n"
        "Amount:\n"
        "Method (Crypto/Wire/Gift Card):\n"
        "Reason Given:\n"
        "My Response:"
    ),
    "Refuses Meeting": "Date Attempted:\nExcuse Given:\nPattern Frequency:",
    "Inconsistent Location": (
        "Claimed Location:\nEvidence to Contrary (Timezone/IP/Photo Background):"
    ),
    "Crisis Creation": "Crisis Event:\nTiming relative to my questions:\nOutcome requested:",
}


def display_date(moment: datetime) -> str:
    """Short US-style date, e.g. ``1/5/2024``."""
    return f"{moment.month}/{moment.day}/{moment.year}"


def _random_id(length: int = 9) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def _summarize(text: str) -> str:
    return text[:SUMMARY_LENGTH] + "..."


# =============================================================================
# Case History
# =============================================================================


class CaseHistory:
    """Append-only list of completed analyses, newest first."""

    def __init__(self, items: list[CaseHistoryItem] | None = None) -> None:
        self._items: list[CaseHistoryItem] = list(items or [])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    @property
    def items(self) -> tuple[CaseHistoryItem, ...]:
        return tuple(self._items)

    def record(
        self,
        result: AnalysisResult,
        media_kind: MediaKind,
        file_name: str | None = None,
        now: datetime | None = None,
    ) -> CaseHistoryItem:
        """Project a completed result into a new history item.

        Args:
            result: A COMPLETE analysis result.
            media_kind: What the analysis was run on.
            file_name: Name to record; defaults to the result's source.
            now: Creation time (defaults to the current UTC time).

        Raises:
            ValueError: If the result is not complete.
        """
        if result.state != CompletionState.COMPLETE:
            raise ValueError(f"Only complete results can be recorded (state={result.state.value})")

        now = now or result.completed_at or datetime.now(timezone.utc)
        item = CaseHistoryItem(
            id=_random_id(),
            file_name=file_name if file_name is not None else result.source,
            file_type=media_kind,
            date=display_date(now),
            timestamp=now.isoformat(),
            result_summary=_summarize(result.text),
            risk_level=result.risk_level,
        )
        self._items.insert(0, item)
        logger.debug(f"Recorded {media_kind.value} analysis {item.id}")
        return item


# =============================================================================
# Journal
# =============================================================================


class Journal:
    """User notes, newest first. Entries are edited in place."""

    def __init__(self, entries: list[JournalEntry] | None = None) -> None:
        self._entries: list[JournalEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    @property
    def entries(self) -> tuple[JournalEntry, ...]:
        return tuple(self._entries)

    def create(self, now: datetime | None = None) -> JournalEntry:
        now = now or datetime.now(timezone.utc)
        entry_id = str(int(now.timestamp() * 1000))
        # Two entries in the same millisecond still need distinct ids
        while any(e.id == entry_id for e in self._entries):
            entry_id = str(int(entry_id) + 1)

        entry = JournalEntry(
            id=entry_id,
            date=display_date(now),
            created_at=now.isoformat(),
        )
        self._entries.insert(0, entry)
        return entry

    def get(self, entry_id: str) -> JournalEntry:
        """Raises KeyError if no entry has this id."""
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(entry_id)

    def update(
        self,
        entry_id: str,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> JournalEntry:
        entry = self.get(entry_id)
        if title is not None:
            entry.title = title
        if content is not None:
            entry.content = content
        if tags is not None:
            entry.tags = list(tags)
        return entry

    def delete(self, entry_id: str) -> None:
        entry = self.get(entry_id)
        self._entries.remove(entry)

    def insert_template(self, entry_id: str, template_name: str) -> JournalEntry:
        """Append a red-flag template to the entry body, separated by a blank line.

        Raises:
            KeyError: For an unknown entry id or template name.
        """
        template = RED_FLAG_TEMPLATES[template_name]
        entry = self.get(entry_id)
        entry.content = f"{entry.content}\n\n{template}" if entry.content else template
        return entry


# =============================================================================
# Persistence
# =============================================================================


class _CaseFile(BaseModel):
    history: list[CaseHistoryItem] = Field(default_factory=list)
    journal: list[JournalEntry] = Field(default_factory=list)


class CaseStore:
    """History and journal bundled with the JSON file they live in."""

    def __init__(
        self,
        path: Path | None = None,
        history: CaseHistory | None = None,
        journal: Journal | None = None,
    ) -> None:
        self.path = path
        self.history = history if history is not None else CaseHistory()
        self.journal = journal if journal is not None else Journal()

    @classmethod
    def load(cls, path: Path) -> "CaseStore":
        """Load a case file; a missing file gives an empty store.

        Raises:
            ValueError: If the file exists but is not a valid case file.
        """
        path = Path(path)
        if not path.exists():
            return cls(path=path)

        try:
            data = _CaseFile.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ValueError(f"Invalid case file {path}: {e}") from e

        logger.debug(f"Loaded {len(data.history)} analyses and {len(data.journal)} notes from {path}")
        return cls(path=path, history=CaseHistory(data.history), journal=Journal(data.journal))

    def save(self, path: Path | None = None) -> Path:
        target = Path(path or self.path or "case.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        data = _CaseFile(history=list(self.history.items), journal=list(self.journal.entries))
        target.write_text(data.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        self.path = target
        return target

    def snapshot(self) -> tuple[tuple[CaseHistoryItem, ...], tuple[JournalEntry, ...]]:
        """Read-only view for the evidence aggregator.

        Journal entries are copied so readers cannot edit the live notes.
        """
        return self.history.items, tuple(e.model_copy(deep=True) for e in self.journal.entries)
