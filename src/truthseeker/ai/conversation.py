"""Structured conversation-analysis results.

The conversation task asks the model for JSON in a fixed schema. This module
holds that schema as pydantic models and the parser that turns raw model text
into a ConversationAnalysis. ``parse_conversation_analysis`` never raises: any
unparseable or invalid payload becomes the documented default result.

Example:
    >>> analysis = parse_conversation_analysis("not json at all")
    >>> analysis.summary
    'Error parsing analysis results. Please try again.'
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from truthseeker.ai.errors import ParseError
from truthseeker.core.models import RiskLevel

logger = logging.getLogger(__name__)

PARSE_FAILURE_SUMMARY = "Error parsing analysis results. Please try again."


class PatternType(str, Enum):
    LOVE_BOMBING = "LOVE_BOMBING"
    URGENCY = "URGENCY"
    ISOLATION = "ISOLATION"
    FINANCIAL = "FINANCIAL"
    INCONSISTENCY = "INCONSISTENCY"
    SCRIPT = "SCRIPT"
    OTHER = "OTHER"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DetectedPattern(_WireModel):
    """One manipulation tactic found in the conversation."""

    type: PatternType = PatternType.OTHER
    severity: Severity = Severity.LOW
    evidence: list[str] = Field(default_factory=list)
    explanation: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> Any:
        # Unknown categories are kept as OTHER rather than rejected
        if isinstance(v, str):
            v = v.strip().upper().replace(" ", "_")
            return v if v in PatternType.__members__ else PatternType.OTHER
        return v

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v


class ConversationEvent(_WireModel):
    """A point on the conversation's relative timeline ("Day 1", "Week 2")."""

    approximate: str = ""
    event: str = ""
    concern: bool = False


class ConversationAnalysis(_WireModel):
    """Parsed result of the conversation-analysis task.

    Serializes (``to_wire``) with the camelCase keys the model was asked for.
    """

    overall_risk_score: int = Field(0, ge=0, le=100)
    risk_level: RiskLevel = RiskLevel.LOW
    summary: str = ""
    patterns: list[DetectedPattern] = Field(default_factory=list)
    timeline: list[ConversationEvent] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    @field_validator("overall_risk_score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                v = float(v.strip())
            except ValueError:
                return v
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return max(0, min(100, int(round(v))))
        return v

    @field_validator("risk_level", mode="before")
    @classmethod
    def upper_risk(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @classmethod
    def default(cls) -> "ConversationAnalysis":
        """The safe result substituted when parsing fails."""
        return cls(summary=PARSE_FAILURE_SUMMARY)

    @property
    def is_parse_failure(self) -> bool:
        return self.summary == PARSE_FAILURE_SUMMARY and not self.patterns

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Parsing
# =============================================================================

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str) -> Any:
    """Parse JSON from model text, tolerating code fences and leading prose.

    Raises:
        ParseError: If no JSON document can be recovered.
    """
    text = (text or "").strip()
    if not text:
        raise ParseError("Empty structured response", raw_text=text)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        first_error = e

    for pattern in (_FENCE, _OBJECT):
        match = pattern.search(text)
        if match:
            candidate = match.group(1) if pattern is _FENCE else match.group(0)
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                continue

    raise ParseError(
        f"JSON parse error: {first_error.msg}", raw_text=text, original_error=first_error
    )


def parse_conversation_analysis_strict(text: str) -> ConversationAnalysis:
    """Parse model output, raising ParseError on any failure."""
    data = extract_json(text)
    if not isinstance(data, dict):
        raise ParseError("Structured response is not a JSON object", raw_text=text)
    try:
        return ConversationAnalysis.model_validate(data)
    except ValidationError as e:
        raise ParseError(
            f"Structured response does not match schema ({e.error_count()} errors)",
            raw_text=text,
            original_error=e,
        ) from e


def parse_conversation_analysis(text: str) -> ConversationAnalysis:
    """Parse model output, substituting the default result on failure."""
    try:
        return parse_conversation_analysis_strict(text)
    except ParseError as e:
        logger.warning(f"Conversation analysis unparseable, using default: {e}")
        return ConversationAnalysis.default()
