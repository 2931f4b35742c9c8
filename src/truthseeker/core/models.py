"""Core data models for TruthSeeker.

This module consolidates the foundational data structures into a single
location. Models follow a tiered flow:

1. TASK CONFIGURATION (TaskKind, ReasoningTier, OutputMode)
2. LIVE ANALYSIS (AnalysisResult, Citation, GeneratedImage)
3. DURABLE CASE RECORD (CaseHistoryItem, JournalEntry)
4. DERIVED EVIDENCE (EvidenceItem, TimelineEntry, EvidencePackage)

Persisted records serialize with camelCase keys so case files stay readable
by the browser front end that shares the same shape.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class TaskKind(str, Enum):
    """The nine analysis actions the gateway accepts."""

    IMAGE_AUTO = "image_auto"
    IMAGE_GUIDED = "image_guided"
    VIDEO = "video"
    AUDIO = "audio"
    CONVERSATION_TEXT = "conversation_text"
    CONVERSATION_OCR = "conversation_ocr"
    IDENTITY_SEARCH = "identity_search"
    DEEP_REASONING = "deep_reasoning"
    PERSONA_SYNTHESIS = "persona_synthesis"


class ReasoningTier(str, Enum):
    """Provider-side thinking budget tier. NONE sends no thinking config."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OutputMode(str, Enum):
    """Shape of a task's output."""

    NARRATIVE = "narrative"
    STRUCTURED = "structured"
    IMAGE = "image"


class RiskLevel(str, Enum):
    """Coarse ordinal risk tier.

    CRITICAL is only produced by conversation analysis.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]

    @property
    def is_concern(self) -> bool:
        """True for MEDIUM and above."""
        return self.rank >= _RISK_RANK[RiskLevel.MEDIUM]


_RISK_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


class CompletionState(str, Enum):
    """Lifecycle of one AnalysisResult."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (CompletionState.COMPLETE, CompletionState.FAILED)


class MediaKind(str, Enum):
    """What a case-history record was produced from."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    CONVERSATION = "conversation"


class EvidenceKind(str, Enum):
    ANALYSIS = "analysis"
    JOURNAL = "journal"


class ResultSealedError(RuntimeError):
    """Raised when a terminal AnalysisResult is mutated."""


# =============================================================================
# Live Analysis
# =============================================================================


class Citation(BaseModel):
    """A web-grounding source attached to a response."""

    title: str = Field(default="", description="Display title of the source")
    url: str = Field(..., description="Resolvable URL of the source")


class GeneratedImage(BaseModel):
    """Binary image returned by persona synthesis."""

    data: bytes = Field(..., repr=False)
    mime_type: str = "image/png"


class AnalysisResult(BaseModel):
    """Output of one analysis invocation.

    Text only ever grows while the result is pending or streaming. Once the
    state is complete or failed, every mutator raises ResultSealedError.

    Attributes:
        task: Which analysis produced this result.
        source: File name or query string (may be empty for text tasks).
        text: Accumulated output text.
        state: Completion state.
        risk_level: Derived risk tier, None when the task computes no verdict.
        citations: Grounding sources in provider order.
        structured: Parsed structured output (conversation analysis).
        images: Generated images (persona synthesis).
        error: Failure message when state is FAILED.
        completed_at: When the result reached a terminal state.
    """

    task: TaskKind
    source: str = ""
    text: str = ""
    state: CompletionState = CompletionState.PENDING
    risk_level: RiskLevel | None = None
    citations: list[Citation] = Field(default_factory=list)
    structured: dict[str, Any] | None = None
    images: list[GeneratedImage] = Field(default_factory=list)
    error: str | None = None
    completed_at: datetime | None = None

    _fragments: int = PrivateAttr(default=0)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def fragment_count(self) -> int:
        return self._fragments

    def _check_open(self) -> None:
        if self.state.is_terminal:
            raise ResultSealedError(f"result for {self.task.value} is already {self.state.value}")

    def append_fragment(self, fragment: str) -> None:
        """Append one streamed fragment and move to STREAMING."""
        self._check_open()
        self.text += fragment
        self._fragments += 1
        self.state = CompletionState.STREAMING

    def add_citations(self, citations: list[Citation]) -> None:
        self._check_open()
        known = {c.url for c in self.citations}
        for citation in citations:
            if citation.url not in known:
                self.citations.append(citation)
                known.add(citation.url)

    def complete(
        self,
        risk_level: RiskLevel | None = None,
        structured: dict[str, Any] | None = None,
        images: list[GeneratedImage] | None = None,
    ) -> None:
        self._check_open()
        self.risk_level = risk_level
        if structured is not None:
            self.structured = structured
        if images:
            self.images.extend(images)
        self.state = CompletionState.COMPLETE
        self.completed_at = datetime.now(timezone.utc)

    def fail(self, message: str) -> None:
        """Seal as FAILED, keeping whatever text has accumulated."""
        self._check_open()
        self.error = message
        self.state = CompletionState.FAILED
        self.completed_at = datetime.now(timezone.utc)


# =============================================================================
# Durable Case Record
# =============================================================================


class CaseHistoryItem(BaseModel):
    """Immutable, persisted projection of a completed AnalysisResult."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    file_name: str
    file_type: MediaKind
    date: str = Field(..., description="Display date")
    timestamp: str | None = Field(None, description="ISO-8601 machine timestamp")
    result_summary: str = ""
    risk_level: RiskLevel | None = None


class JournalEntry(BaseModel):
    """Free-form user note. Title, body and tags are edited in place."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    date: str = Field(..., description="Display date")
    created_at: str | None = Field(None, description="ISO-8601 machine timestamp")
    title: str = "New Entry"
    content: str = ""
    tags: list[str] = Field(default_factory=list)


# =============================================================================
# Derived Evidence
# =============================================================================


class EvidenceItem(BaseModel):
    """Uniform projection of a case-history or journal record.

    ``raw_data`` is the canonical serialization of the source record and is
    only used to compute the integrity checksum.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: EvidenceKind
    date: datetime
    title: str
    summary: str
    risk_level: RiskLevel | None = None
    raw_data: str | None = Field(None, repr=False)


class TimelineEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    event: str
    item_id: str
    is_concern: bool = False


class ReportStats(BaseModel):
    total_items: int = 0
    high_risk_count: int = 0
    medium_risk_count: int = 0


class EvidencePackage(BaseModel):
    """Everything the report renderer needs for one export."""

    case_id: str
    generated_at: datetime
    items: list[EvidenceItem] = Field(default_factory=list)
    overall_assessment: str = ""
    timeline: list[TimelineEntry] = Field(default_factory=list)

    @property
    def stats(self) -> ReportStats:
        """Selected-item counts. CRITICAL items count as high risk."""
        return ReportStats(
            total_items=len(self.items),
            high_risk_count=sum(
                1 for i in self.items if i.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
            ),
            medium_risk_count=sum(1 for i in self.items if i.risk_level == RiskLevel.MEDIUM),
        )
