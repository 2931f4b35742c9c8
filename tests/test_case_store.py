"""Tests for truthseeker.core.case_store: history, journal and persistence."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from truthseeker.core.case_store import (
    RED_FLAG_TEMPLATES,
    CaseHistory,
    CaseStore,
    Journal,
    display_date,
)
from truthseeker.core.models import AnalysisResult, MediaKind, RiskLevel, TaskKind

NOW = datetime(2024, 1, 5, 14, 30, tzinfo=timezone.utc)


def completed_result(text: str, risk: RiskLevel | None = RiskLevel.HIGH) -> AnalysisResult:
    result = AnalysisResult(task=TaskKind.IMAGE_AUTO, source="profile.jpg")
    result.append_fragment(text)
    result.complete(risk_level=risk)
    return result


class TestCaseHistory:
    def test_record_complete_result(self) -> None:
        history = CaseHistory()
        item = history.record(completed_result("AI-generated face"), MediaKind.IMAGE, now=NOW)

        assert history.items == (item,)
        assert item.file_name == "profile.jpg"
        assert item.file_type == MediaKind.IMAGE
        assert item.date == "1/5/2024"
        assert item.timestamp == "2024-01-05T14:30:00+00:00"
        assert item.risk_level == RiskLevel.HIGH
        assert len(item.id) == 9

    def test_summary_truncated_with_ellipsis(self) -> None:
        item = CaseHistory().record(completed_result("x" * 250), MediaKind.IMAGE, now=NOW)
        assert item.result_summary == "x" * 100 + "..."

    def test_short_summary_still_gets_ellipsis(self) -> None:
        item = CaseHistory().record(completed_result("Looks real"), MediaKind.IMAGE, now=NOW)
        assert item.result_summary == "Looks real..."

    def test_newest_first(self) -> None:
        history = CaseHistory()
        first = history.record(completed_result("one"), MediaKind.IMAGE, now=NOW)
        second = history.record(completed_result("two"), MediaKind.AUDIO, file_name="note.m4a", now=NOW)
        assert history.items == (second, first)
        assert second.file_name == "note.m4a"

    def test_incomplete_result_rejected(self) -> None:
        result = AnalysisResult(task=TaskKind.VIDEO)
        result.append_fragment("partial")
        result.fail("network down")
        history = CaseHistory()
        with pytest.raises(ValueError):
            history.record(result, MediaKind.VIDEO)
        assert len(history) == 0

    def test_items_are_frozen(self) -> None:
        item = CaseHistory().record(completed_result("x"), MediaKind.IMAGE, now=NOW)
        with pytest.raises(ValidationError):
            item.result_summary = "edited"


class TestJournal:
    def test_create_defaults(self) -> None:
        journal = Journal()
        entry = journal.create(now=NOW)
        assert entry.id == str(int(NOW.timestamp() * 1000))
        assert entry.title == "New Entry"
        assert entry.content == ""
        assert entry.tags == []
        assert entry.date == display_date(NOW)

    def test_same_millisecond_ids_distinct(self) -> None:
        journal = Journal()
        first = journal.create(now=NOW)
        second = journal.create(now=NOW)
        assert first.id != second.id
        assert journal.entries == (second, first)

    def test_update_in_place(self, sample_journal) -> None:
        journal = Journal(sample_journal)
        journal.update("1704067200000", title="Oil rig story", tags=["money", "crisis"])
        entry = journal.get("1704067200000")
        assert entry.title == "Oil rig story"
        assert entry.tags == ["money", "crisis"]
        assert entry.content.startswith("Matched on Hinge")

    def test_delete(self, sample_journal) -> None:
        journal = Journal(sample_journal)
        journal.delete("1704067200000")
        assert len(journal) == 0
        with pytest.raises(KeyError):
            journal.get("1704067200000")

    def test_template_appended_after_blank_line(self, sample_journal) -> None:
        journal = Journal(sample_journal)
        entry = journal.insert_template("1704067200000", "Money Requests")
        assert entry.content == (
            "Matched on Hinge. He said he works on an oil rig.\n\n" + RED_FLAG_TEMPLATES["Money Requests"]
        )

    def test_template_into_empty_body(self) -> None:
        journal = Journal()
        entry = journal.create(now=NOW)
        journal.insert_template(entry.id, "Crisis Creation")
        assert entry.content == RED_FLAG_TEMPLATES["Crisis Creation"]

    def test_unknown_template(self) -> None:
        journal = Journal()
        entry = journal.create(now=NOW)
        with pytest.raises(KeyError):
            journal.insert_template(entry.id, "Catfish Bingo")

    def test_templates_available(self) -> None:
        assert list(RED_FLAG_TEMPLATES) == [
            "Love Bombing",
            "Money Requests",
            "Refuses Meeting",
            "Inconsistent Location",
            "Crisis Creation",
        ]


class TestCaseStore:
    def test_round_trip(self, case_store: CaseStore) -> None:
        loaded = CaseStore.load(case_store.path)
        assert loaded.history.items == case_store.history.items
        assert loaded.journal.entries == case_store.journal.entries

    def test_file_uses_camel_case(self, case_store: CaseStore) -> None:
        data = json.loads(case_store.path.read_text(encoding="utf-8"))
        assert data["history"][0]["fileName"] == "profile_pic.jpg"
        assert data["history"][0]["riskLevel"] == "HIGH"
        assert data["journal"][0]["createdAt"] == "2024-01-01T00:00:00+00:00"

    def test_missing_file_is_empty(self, tmp_path) -> None:
        store = CaseStore.load(tmp_path / "none.json")
        assert len(store.history) == 0
        assert len(store.journal) == 0

    def test_invalid_file(self, tmp_path) -> None:
        path = tmp_path / "case.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            CaseStore.load(path)

    def test_snapshot_does_not_expose_live_journal(self, case_store: CaseStore) -> None:
        history, journal = case_store.snapshot()
        assert isinstance(history, tuple)
        journal[0].title = "changed by a reader"
        assert case_store.journal.get("1704067200000").title == "First contact"

    def test_empty_collections_are_kept(self, tmp_path) -> None:
        history, journal = CaseHistory(), Journal()
        store = CaseStore(path=tmp_path / "case.json", history=history, journal=journal)

        assert store.history is history
        assert store.journal is journal

        entry = journal.create(now=NOW)
        item = history.record(completed_result("Stolen photo"), MediaKind.IMAGE, now=NOW)
        store.save()

        loaded = CaseStore.load(tmp_path / "case.json")
        assert loaded.history.items == (item,)
        assert [e.id for e in loaded.journal.entries] == [entry.id]
