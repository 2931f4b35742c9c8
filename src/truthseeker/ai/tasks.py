"""Static definitions of the nine analysis tasks.

Each task is a frozen record: which payload fields it needs, which prompt it
renders, how the provider is configured (model tier, reasoning tier, web
grounding, structured output) and whether a risk verdict is derived.

| Task               | Output     | Reasoning | Grounding | Verdict    |
|--------------------|------------|-----------|-----------|------------|
| image_auto         | narrative  | low       | no        | keywords   |
| image_guided       | narrative  | low       | no        | none       |
| video              | narrative  | medium    | no        | keywords   |
| audio              | narrative  | none      | no        | keywords   |
| conversation_text  | structured | medium    | no        | riskLevel  |
| conversation_ocr   | narrative  | none      | no        | none       |
| identity_search    | narrative  | none      | yes       | none       |
| deep_reasoning     | narrative  | high      | no        | none       |
| persona_synthesis  | image      | none      | no        | none       |
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

from truthseeker.ai.prompts import PromptTemplate, build_context_block, get_prompt
from truthseeker.core.models import MediaKind, OutputMode, ReasoningTier, TaskKind

ModelTier = Literal["pro", "flash", "image"]

ASPECT_RATIOS: tuple[str, ...] = ("1:1", "3:4", "4:3", "9:16", "16:9")

MEDIA_FIELDS: tuple[str, ...] = ("data", "mime_type")


@dataclass(frozen=True)
class TaskDefinition:
    """Configuration for one task kind.

    Attributes:
        kind: The task this record configures.
        prompt_id: Registry id of the prompt template.
        required_fields: Payload fields that must be present and non-empty.
        optional_fields: Payload fields that may be supplied.
        output_mode: Narrative markdown, structured JSON, or image.
        reasoning: Thinking-budget tier.
        model_tier: Which configured model serves the task.
        grounding: Enable the web-search grounding tool.
        streams: Deliver output incrementally.
        computes_risk: Whether a risk verdict is derived on completion.
        media_kind: Case-history media kind for recordable tasks.
        source_field: Payload field used as the result's source label.
    """

    kind: TaskKind
    prompt_id: str
    required_fields: tuple[str, ...]
    output_mode: OutputMode
    reasoning: ReasoningTier
    model_tier: ModelTier
    optional_fields: tuple[str, ...] = ()
    grounding: bool = False
    streams: bool = True
    computes_risk: bool = False
    media_kind: MediaKind | None = None
    source_field: str | None = None

    @property
    def takes_media(self) -> bool:
        return "data" in self.required_fields

    @property
    def structured(self) -> bool:
        return self.output_mode == OutputMode.STRUCTURED

    @property
    def prompt(self) -> PromptTemplate:
        return get_prompt(self.prompt_id)

    def prompt_variables(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Map payload fields onto the prompt template's variables."""
        if self.kind == TaskKind.CONVERSATION_TEXT:
            return {
                "conversation": payload["text"],
                "context_block": build_context_block(payload.get("context")),
            }
        if self.kind == TaskKind.IDENTITY_SEARCH:
            return {"query": payload["query"]}
        if self.kind == TaskKind.DEEP_REASONING:
            return {"scenario": payload["scenario"]}
        if self.kind == TaskKind.PERSONA_SYNTHESIS:
            return {"prompt": payload["prompt"]}
        return {}

    def render_prompt(self, payload: Mapping[str, Any]) -> tuple[str, str]:
        """Render (system_instruction, user_prompt) for this payload."""
        return self.prompt.render(**self.prompt_variables(payload))


# =============================================================================
# Task Table
# =============================================================================

TASK_DEFINITIONS: dict[TaskKind, TaskDefinition] = {
    TaskKind.IMAGE_AUTO: TaskDefinition(
        kind=TaskKind.IMAGE_AUTO,
        prompt_id="image_auto_v1",
        required_fields=MEDIA_FIELDS,
        output_mode=OutputMode.NARRATIVE,
        reasoning=ReasoningTier.LOW,
        model_tier="pro",
        computes_risk=True,
        media_kind=MediaKind.IMAGE,
    ),
    TaskKind.IMAGE_GUIDED: TaskDefinition(
        kind=TaskKind.IMAGE_GUIDED,
        prompt_id="image_guided_v1",
        required_fields=MEDIA_FIELDS,
        output_mode=OutputMode.NARRATIVE,
        reasoning=ReasoningTier.LOW,
        model_tier="pro",
        media_kind=MediaKind.IMAGE,
    ),
    TaskKind.VIDEO: TaskDefinition(
        kind=TaskKind.VIDEO,
        prompt_id="video_v1",
        required_fields=MEDIA_FIELDS,
        output_mode=OutputMode.NARRATIVE,
        reasoning=ReasoningTier.MEDIUM,
        model_tier="pro",
        computes_risk=True,
        media_kind=MediaKind.VIDEO,
    ),
    TaskKind.AUDIO: TaskDefinition(
        kind=TaskKind.AUDIO,
        prompt_id="audio_v1",
        required_fields=MEDIA_FIELDS,
        output_mode=OutputMode.NARRATIVE,
        reasoning=ReasoningTier.NONE,
        model_tier="flash",
        computes_risk=True,
        media_kind=MediaKind.AUDIO,
    ),
    TaskKind.CONVERSATION_TEXT: TaskDefinition(
        kind=TaskKind.CONVERSATION_TEXT,
        prompt_id="conversation_text_v1",
        required_fields=("text",),
        optional_fields=("context",),
        output_mode=OutputMode.STRUCTURED,
        reasoning=ReasoningTier.MEDIUM,
        model_tier="pro",
        streams=False,
        computes_risk=True,
        media_kind=MediaKind.CONVERSATION,
    ),
    TaskKind.CONVERSATION_OCR: TaskDefinition(
        kind=TaskKind.CONVERSATION_OCR,
        prompt_id="conversation_ocr_v1",
        required_fields=MEDIA_FIELDS,
        output_mode=OutputMode.NARRATIVE,
        reasoning=ReasoningTier.NONE,
        model_tier="flash",
    ),
    TaskKind.IDENTITY_SEARCH: TaskDefinition(
        kind=TaskKind.IDENTITY_SEARCH,
        prompt_id="identity_search_v1",
        required_fields=("query",),
        output_mode=OutputMode.NARRATIVE,
        reasoning=ReasoningTier.NONE,
        model_tier="flash",
        grounding=True,
        source_field="query",
    ),
    TaskKind.DEEP_REASONING: TaskDefinition(
        kind=TaskKind.DEEP_REASONING,
        prompt_id="deep_reasoning_v1",
        required_fields=("scenario",),
        output_mode=OutputMode.NARRATIVE,
        reasoning=ReasoningTier.HIGH,
        model_tier="pro",
    ),
    TaskKind.PERSONA_SYNTHESIS: TaskDefinition(
        kind=TaskKind.PERSONA_SYNTHESIS,
        prompt_id="persona_synthesis_v1",
        required_fields=("prompt", "aspect_ratio"),
        output_mode=OutputMode.IMAGE,
        reasoning=ReasoningTier.NONE,
        model_tier="image",
        streams=False,
    ),
}


def get_task(kind: TaskKind | str) -> TaskDefinition:
    """Look up a task definition by kind or action string.

    Raises:
        KeyError: If the action is not one of the nine task kinds.
    """
    try:
        return TASK_DEFINITIONS[TaskKind(kind)]
    except ValueError:
        raise KeyError(f"Unknown action '{kind}'") from None
