"""Evidence aggregation.

Turns case-history items and journal entries into a single, date-ordered
sequence of EvidenceItem. The result is a pure function of the two input
collections: the same inputs always give byte-identical output (ids, order,
serialized payloads and checksums). Inputs are never mutated.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Iterable

from pydantic import BaseModel

from truthseeker.core.models import CaseHistoryItem, EvidenceItem, EvidenceKind, JournalEntry

logger = logging.getLogger(__name__)

JOURNAL_SUMMARY_LENGTH = 500

DISPLAY_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%d %B %Y", "%B %d, %Y")


def serialize_record(record: BaseModel) -> str:
    """Canonical compact JSON of a source record, keyed by its wire aliases."""
    return json.dumps(
        record.model_dump(mode="json", by_alias=True),
        separators=(",", ":"),
        ensure_ascii=False,
    )


def checksum(raw: str) -> str:
    """Short non-cryptographic fingerprint of ``raw``.

    A 32-bit rolling string hash (``h = h * 31 + unit`` over UTF-16 code
    units, wrapped to a signed 32-bit integer), rendered as the absolute
    value in 8 uppercase hex digits. Matches the browser front end's
    checksums for the same input. This gives casual tamper evidence only;
    it is not a cryptographic integrity guarantee.
    """
    encoded = raw.encode("utf-16-le")
    value = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return format(abs(value), "08X")


def parse_date(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp or a display date into an aware datetime."""
    if not value:
        return None
    text = value.strip()

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in DISPLAY_DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _normalize_date(machine: str | None, display: str | None, now: datetime, label: str) -> datetime:
    for candidate in (machine, display):
        parsed = parse_date(candidate)
        if parsed is not None:
            return parsed
        if candidate:
            logger.warning(f"Unparseable date {candidate!r} on {label}")
    return now


def build_evidence_items(
    history: Iterable[CaseHistoryItem],
    journal: Iterable[JournalEntry],
    now: datetime | None = None,
) -> list[EvidenceItem]:
    """Normalize history and journal records into ordered evidence.

    Args:
        history: Case-history items in stored order.
        journal: Journal entries in stored order.
        now: Fallback date for records with no usable date. Pass a fixed
            value when repeated calls must agree.

    Returns:
        EvidenceItems sorted oldest first. Ties keep case items before
        journal items and each source's stored order.
    """
    now = now or datetime.now(timezone.utc)
    items: list[EvidenceItem] = []

    for index, case in enumerate(history):
        item_id = f"case-{index}"
        items.append(
            EvidenceItem(
                id=item_id,
                kind=EvidenceKind.ANALYSIS,
                date=_normalize_date(case.timestamp, case.date, now, item_id),
                title=case.file_name or f"Analysis #{index + 1}",
                summary=case.result_summary or "Analysis completed",
                risk_level=case.risk_level,
                raw_data=serialize_record(case),
            )
        )

    for index, entry in enumerate(journal):
        item_id = f"journal-{index}"
        items.append(
            EvidenceItem(
                id=item_id,
                kind=EvidenceKind.JOURNAL,
                date=_normalize_date(entry.created_at, entry.date, now, item_id),
                title=entry.title or f"Journal Entry #{index + 1}",
                summary=(entry.content or "")[:JOURNAL_SUMMARY_LENGTH],
                raw_data=serialize_record(entry),
            )
        )

    items.sort(key=lambda item: item.date)
    return items


def item_checksum(item: EvidenceItem) -> str | None:
    return checksum(item.raw_data) if item.raw_data else None
