"""Tests for truthseeker.evidence.aggregator."""

from __future__ import annotations

import re
from datetime import datetime, timezone

import pytest

from truthseeker.core.models import CaseHistoryItem, EvidenceKind, JournalEntry, MediaKind, RiskLevel
from truthseeker.evidence.aggregator import (
    build_evidence_items,
    checksum,
    item_checksum,
    parse_date,
    serialize_record,
)

FIXED_NOW = datetime(2024, 2, 1, tzinfo=timezone.utc)


class TestOrdering:
    def test_journal_before_later_case(self, sample_history, sample_journal) -> None:
        case = sample_history[:1]  # 2024-01-05
        items = build_evidence_items(case, sample_journal, now=FIXED_NOW)

        assert [item.id for item in items] == ["journal-0", "case-0"]
        assert items[0].kind == EvidenceKind.JOURNAL
        assert items[1].risk_level == RiskLevel.HIGH

    def test_sorted_oldest_first(self, sample_history, sample_journal) -> None:
        items = build_evidence_items(sample_history, sample_journal, now=FIXED_NOW)
        assert [item.id for item in items] == ["journal-0", "case-1", "case-0"]
        assert [item.date for item in items] == sorted(item.date for item in items)

    def test_ties_keep_case_items_first(self) -> None:
        case = CaseHistoryItem(
            id="x", file_name="a.jpg", file_type=MediaKind.IMAGE, date="1/1/2024"
        )
        note = JournalEntry(id="1", date="1/1/2024", title="note")
        items = build_evidence_items([case], [note], now=FIXED_NOW)
        assert [item.id for item in items] == ["case-0", "journal-0"]

    def test_idempotent(self, sample_history, sample_journal) -> None:
        first = build_evidence_items(sample_history, sample_journal, now=FIXED_NOW)
        second = build_evidence_items(sample_history, sample_journal, now=FIXED_NOW)
        assert first == second
        assert [item_checksum(i) for i in first] == [item_checksum(i) for i in second]

    def test_inputs_not_mutated(self, sample_history, sample_journal) -> None:
        before = [e.model_dump() for e in sample_journal]
        build_evidence_items(sample_history, sample_journal, now=FIXED_NOW)
        assert [e.model_dump() for e in sample_journal] == before


class TestProjection:
    def test_case_fields(self, sample_history) -> None:
        item = build_evidence_items(sample_history[:1], [], now=FIXED_NOW)[0]
        assert item.title == "profile_pic.jpg"
        assert item.summary.startswith("**AUTHENTICITY VERDICT:**")
        assert item.date == datetime(2024, 1, 5, 14, 30, tzinfo=timezone.utc)

    def test_journal_fields(self, sample_journal) -> None:
        item = build_evidence_items([], sample_journal, now=FIXED_NOW)[0]
        assert item.title == "First contact"
        assert item.risk_level is None

    def test_journal_summary_truncated(self) -> None:
        note = JournalEntry(id="1", date="1/1/2024", content="y" * 900)
        item = build_evidence_items([], [note], now=FIXED_NOW)[0]
        assert item.summary == "y" * 500

    def test_fallback_titles(self) -> None:
        case = CaseHistoryItem(id="x", file_name="", file_type=MediaKind.AUDIO, date="1/1/2024")
        note = JournalEntry(id="1", date="1/2/2024", title="")
        items = build_evidence_items([case], [note], now=FIXED_NOW)
        assert items[0].title == "Analysis #1"
        assert items[0].summary == "Analysis completed"
        assert items[1].title == "Journal Entry #1"

    def test_display_date_used_without_timestamp(self) -> None:
        case = CaseHistoryItem(id="x", file_name="a.jpg", file_type=MediaKind.IMAGE, date="1/3/2024")
        item = build_evidence_items([case], [], now=FIXED_NOW)[0]
        assert item.date == datetime(2024, 1, 3, tzinfo=timezone.utc)

    def test_unparseable_date_falls_back_to_now(self, caplog) -> None:
        case = CaseHistoryItem(id="x", file_name="a.jpg", file_type=MediaKind.IMAGE, date="sometime")
        item = build_evidence_items([case], [], now=FIXED_NOW)[0]
        assert item.date == FIXED_NOW
        assert "Unparseable date" in caplog.text

    def test_raw_data_is_camel_case_json(self, sample_history) -> None:
        item = build_evidence_items(sample_history[:1], [], now=FIXED_NOW)[0]
        assert item.raw_data == serialize_record(sample_history[0])
        assert '"fileName":"profile_pic.jpg"' in item.raw_data


class TestChecksum:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("", "00000000"),
            ("a", "00000061"),
            ("hello", "05E918D2"),
            ("polygenelubricants", "80000000"),
        ],
    )
    def test_known_values(self, raw: str, expected: str) -> None:
        assert checksum(raw) == expected

    def test_format(self, sample_history) -> None:
        for item in build_evidence_items(sample_history, [], now=FIXED_NOW):
            assert re.fullmatch(r"[0-9A-F]{8}", item_checksum(item))

    def test_changes_with_content(self, sample_journal) -> None:
        original = build_evidence_items([], sample_journal, now=FIXED_NOW)[0]
        edited_entry = sample_journal[0].model_copy(update={"content": "He asked for $400."})
        edited = build_evidence_items([], [edited_entry], now=FIXED_NOW)[0]
        assert item_checksum(original) != item_checksum(edited)

    def test_non_ascii(self) -> None:
        # Astral characters count as two UTF-16 code units
        assert checksum("😀") == format((0xD83D * 31 + 0xDE00), "08X")


class TestParseDate:
    @pytest.mark.parametrize(
        "value",
        ["2024-01-05T14:30:00Z", "2024-01-05T14:30:00.000Z", "2024-01-05T15:30:00+01:00"],
    )
    def test_iso(self, value: str) -> None:
        assert parse_date(value) == datetime(2024, 1, 5, 14, 30, tzinfo=timezone.utc)

    def test_blank(self) -> None:
        assert parse_date("") is None
        assert parse_date(None) is None
