"""Tests for truthseeker.ai.risk: keyword and structured risk classification."""

from __future__ import annotations

import pytest

from truthseeker.ai.risk import IMAGE_RULES, classify, classify_structured, classify_text, normalize_text
from truthseeker.core.models import RiskLevel, TaskKind


class TestImageRules:
    def test_ai_generated_is_high(self) -> None:
        text = "This image shows signs of being AI-generated with waxy skin texture"
        assert classify(TaskKind.IMAGE_AUTO, text) == RiskLevel.HIGH

    @pytest.mark.parametrize(
        "text",
        ["Overall: HIGH RISK profile photo", "The photo is highly edited around the jaw"],
    )
    def test_high_keywords(self, text: str) -> None:
        assert classify(TaskKind.IMAGE_AUTO, text) == RiskLevel.HIGH

    def test_suspicious_is_medium(self) -> None:
        assert classify(TaskKind.IMAGE_AUTO, "Some suspicious lighting on the left") == RiskLevel.MEDIUM

    def test_high_rule_wins_over_medium(self) -> None:
        text = "Suspicious shadows. Verdict: high risk."
        assert classify(TaskKind.IMAGE_AUTO, text) == RiskLevel.HIGH

    def test_no_match_is_low(self) -> None:
        assert classify(TaskKind.IMAGE_AUTO, "Consistent EXIF, natural skin pores.") == RiskLevel.LOW


class TestVideoRules:
    def test_high(self) -> None:
        assert classify(TaskKind.VIDEO, "Deepfake probability: High") == RiskLevel.HIGH

    def test_medium(self) -> None:
        assert classify(TaskKind.VIDEO, "Deepfake probability: Medium") == RiskLevel.MEDIUM

    def test_low(self) -> None:
        assert classify(TaskKind.VIDEO, "Lip sync is consistent throughout") == RiskLevel.LOW


class TestAudioRules:
    def test_without_keywords_is_low(self) -> None:
        text = "Transcript: 'Hey babe, I miss you.' Natural breathing and room tone."
        assert classify(TaskKind.AUDIO, text) == RiskLevel.LOW

    @pytest.mark.parametrize("word", ["splicing", "Synthetic"])
    def test_keywords_are_high(self, word: str) -> None:
        assert classify(TaskKind.AUDIO, f"Evidence of {word} at 0:12") == RiskLevel.HIGH


class TestNoVerdictTasks:
    @pytest.mark.parametrize(
        "task",
        [
            TaskKind.IMAGE_GUIDED,
            TaskKind.CONVERSATION_OCR,
            TaskKind.IDENTITY_SEARCH,
            TaskKind.DEEP_REASONING,
            TaskKind.PERSONA_SYNTHESIS,
        ],
    )
    def test_returns_none(self, task: TaskKind) -> None:
        assert classify(task, "high risk, ai generated, synthetic") is None


class TestStructured:
    @pytest.mark.parametrize("value", ["LOW", "MEDIUM", "HIGH", "CRITICAL"])
    def test_reads_declared_level(self, value: str) -> None:
        assert classify(TaskKind.CONVERSATION_TEXT, "", {"riskLevel": value}) == RiskLevel(value)

    def test_lowercase_level(self) -> None:
        assert classify_structured({"riskLevel": "critical"}) == RiskLevel.CRITICAL

    def test_unknown_or_missing_is_low(self) -> None:
        assert classify_structured({"riskLevel": "SEVERE"}) == RiskLevel.LOW
        assert classify_structured(None) == RiskLevel.LOW


class TestHelpers:
    def test_normalize_text(self) -> None:
        assert normalize_text("AI-Generated_Image") == "ai generated image"

    def test_deterministic(self) -> None:
        text = "This looks AI generated"
        assert {classify_text(text, IMAGE_RULES) for _ in range(5)} == {RiskLevel.HIGH}
