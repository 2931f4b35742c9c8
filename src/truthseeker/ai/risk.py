"""Risk classification for completed analyses.

Two strategies:

- Keyword rules over free text, evaluated in precedence order. The first rule
  with any matching keyword wins; no match yields LOW. Matching is
  case-insensitive and treats hyphens and underscores as spaces, so
  "AI-Generated" matches the keyword "ai generated".
- Reading the model-declared ``riskLevel`` of structured conversation output.

These are literal tables on purpose. The narrative text is the real output;
the tier only summarizes it for history and reports.

Example:
    >>> from truthseeker.ai.risk import classify
    >>> from truthseeker.core.models import TaskKind
    >>> classify(TaskKind.IMAGE_AUTO, "**AUTHENTICITY VERDICT:** AI-Generated")
    <RiskLevel.HIGH: 'HIGH'>
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping

from truthseeker.core.models import RiskLevel, TaskKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeywordRule:
    """Assign ``level`` when any keyword occurs in the normalized text."""

    level: RiskLevel
    keywords: tuple[str, ...]

    def matches(self, normalized_text: str) -> bool:
        return any(keyword in normalized_text for keyword in self.keywords)


# =============================================================================
# Keyword Tables
# =============================================================================

IMAGE_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(RiskLevel.HIGH, ("high risk", "highly edited", "ai generated")),
    KeywordRule(RiskLevel.MEDIUM, ("suspicious", "medium")),
)

VIDEO_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(RiskLevel.HIGH, ("high",)),
    KeywordRule(RiskLevel.MEDIUM, ("medium",)),
)

AUDIO_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(RiskLevel.HIGH, ("splicing", "synthetic")),
)

KEYWORD_TABLES: dict[TaskKind, tuple[KeywordRule, ...]] = {
    TaskKind.IMAGE_AUTO: IMAGE_RULES,
    TaskKind.VIDEO: VIDEO_RULES,
    TaskKind.AUDIO: AUDIO_RULES,
}

_SEPARATORS = re.compile(r"[-_]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, map hyphens/underscores to spaces, collapse whitespace."""
    text = _SEPARATORS.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text)


def classify_text(text: str, rules: tuple[KeywordRule, ...]) -> RiskLevel:
    """Apply keyword rules in order; LOW when nothing matches."""
    normalized = normalize_text(text)
    for rule in rules:
        if rule.matches(normalized):
            return rule.level
    return RiskLevel.LOW


def classify_structured(structured: Mapping[str, Any] | None) -> RiskLevel:
    """Read the model-declared riskLevel; unknown or missing values are LOW."""
    if not structured:
        return RiskLevel.LOW
    value = structured.get("riskLevel")
    if isinstance(value, str):
        try:
            return RiskLevel(value.strip().upper())
        except ValueError:
            pass
    logger.warning(f"Unrecognized riskLevel in structured output: {value!r}")
    return RiskLevel.LOW


def classify(
    task: TaskKind,
    text: str,
    structured: Mapping[str, Any] | None = None,
) -> RiskLevel | None:
    """Derive the risk tier for a finished analysis.

    Args:
        task: Task that produced the output.
        text: Final accumulated text.
        structured: Parsed structured output, for conversation analysis.

    Returns:
        The risk tier, or None for tasks that never compute a verdict
        (guided image, OCR, identity search, deep reasoning, synthesis).
    """
    if task == TaskKind.CONVERSATION_TEXT:
        return classify_structured(structured)

    rules = KEYWORD_TABLES.get(task)
    if rules is None:
        return None
    return classify_text(text, rules)
