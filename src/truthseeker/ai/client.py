"""Gemini Model Gateway for TruthSeeker.

This module is the SOLE INTERFACE to the Gemini API. Every analysis action
flows through ModelGateway, which:

- Validates the action and its payload (InvalidRequestError on bad input)
- Renders the task's prompt and builds the per-task provider configuration
  (safety thresholds, thinking budget, search grounding, JSON output, image size)
- Returns a complete GatewayResponse, or an ordered stream of ResponseChunk
- Maps SDK failures onto the typed errors in ``truthseeker.ai.errors``

The gateway never retries, never persists anything and never alters
generated pixels; watermarking synthesized personas is the caller's job.

Example:
    >>> gateway = get_gateway()
    >>> response = await gateway.invoke("identity_search", {"query": "Dr. Mark Stevens"})
    >>> for citation in response.citations:
    ...     print(citation.title, citation.url)

Security Rules:
- NEVER log API keys
- NEVER log prompts, payload bytes, or model output
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from typing import Any, AsyncIterator, Callable, Mapping

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, Field

from truthseeker.ai.conversation import parse_conversation_analysis
from truthseeker.ai.errors import (
    ContentBlockedError,
    GatewayError,
    InvalidRequestError,
    ProviderUnavailableError,
    QuotaExceededError,
    UpstreamError,
)
from truthseeker.ai.tasks import ASPECT_RATIOS, TaskDefinition, get_task
from truthseeker.config import APIKeyNotFoundError, AppConfig, get_api_key, get_config
from truthseeker.core.models import Citation, GeneratedImage, OutputMode, TaskKind


# =============================================================================
# Secure Logging Filter
# =============================================================================


class RedactingFilter(logging.Filter):
    """Logging filter that redacts strings shaped like API keys or tokens.

    Example:
        >>> logger.info("Using key=AIzaSy0123456789abcdefghijklmnopqrstu")
        # Output: "Using key=[REDACTED]"
    """

    KEY_VALUE_PATTERNS = [
        re.compile(r'((?:api_key|key|token|secret)\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r"(bearer\s+)([a-zA-Z0-9_\-]{20,})", re.IGNORECASE),
    ]
    STANDALONE_PATTERNS = [
        # Gemini keys start with AIza
        re.compile(r"\bAIza[a-zA-Z0-9_\-]{30,}\b"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)
        if record.args:
            record.args = tuple(
                self._redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True

    def _redact(self, text: str) -> str:
        for pattern in self.KEY_VALUE_PATTERNS:
            text = pattern.sub(r"\1[REDACTED]", text)
        for pattern in self.STANDALONE_PATTERNS:
            text = pattern.sub("[REDACTED]", text)
        return text


logger = logging.getLogger(__name__)
logger.addFilter(RedactingFilter())


# =============================================================================
# Wire Models
# =============================================================================

# Action and payload names used by the browser front end
WIRE_ACTIONS: dict[str, TaskKind] = {
    "analyzeVideo": TaskKind.VIDEO,
    "analyzeAudio": TaskKind.AUDIO,
    "analyzeConversation": TaskKind.CONVERSATION_TEXT,
    "extractTextFromImage": TaskKind.CONVERSATION_OCR,
    "verifyIdentity": TaskKind.IDENTITY_SEARCH,
    "deepForensicThink": TaskKind.DEEP_REASONING,
    "generateSimulationImage": TaskKind.PERSONA_SYNTHESIS,
}

WIRE_FIELDS: dict[str, str] = {
    "base64Data": "data",
    "imageBase64": "data",
    "mimeType": "mime_type",
    "conversationText": "text",
    "scenarioDescription": "scenario",
    "aspectRatio": "aspect_ratio",
}


class GatewayRequest(BaseModel):
    """``{action, payload}`` as submitted by a front end."""

    action: TaskKind
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "GatewayRequest":
        """Accept native action names or the front end's camelCase names.

        Raises:
            InvalidRequestError: If the action is missing or unknown.
        """
        action = data.get("action")
        raw_payload = data.get("payload") or {}
        if not isinstance(raw_payload, Mapping):
            raise InvalidRequestError("Payload must be an object", ["payload"])
        payload = {WIRE_FIELDS.get(k, k): v for k, v in raw_payload.items()}

        if action == "analyzeImage":
            guided = str(payload.pop("mode", "AI_AUTO")).upper() == "USER_GUIDED"
            kind = TaskKind.IMAGE_GUIDED if guided else TaskKind.IMAGE_AUTO
        elif action in WIRE_ACTIONS:
            kind = WIRE_ACTIONS[action]
        else:
            try:
                kind = TaskKind(action)
            except ValueError:
                raise InvalidRequestError(f"Unknown action: {action!r}", ["action"]) from None

        return cls(action=kind, payload=payload)


class ResponseChunk(BaseModel):
    """One increment of provider output."""

    text: str = ""
    citations: list[Citation] = Field(default_factory=list)
    images: list[GeneratedImage] = Field(default_factory=list)
    finish_reason: str | None = None


class GatewayResponse(BaseModel):
    """Complete result of one gateway call.

    Attributes:
        action: Task that produced the response.
        text: Full text output.
        model: Model that served the request.
        citations: Grounding sources, deduplicated by URL.
        structured: Parsed structured output (conversation analysis only).
        images: Generated images (persona synthesis only).
        finish_reason: Why generation stopped.
        latency_ms: Wall time of the call.
    """

    action: TaskKind
    text: str = ""
    model: str = ""
    citations: list[Citation] = Field(default_factory=list)
    structured: dict[str, Any] | None = None
    images: list[GeneratedImage] = Field(default_factory=list)
    finish_reason: str | None = None
    latency_ms: float | None = None
    raw_response: Any = Field(None, exclude=True)

    def to_wire(self) -> dict[str, Any]:
        """``{text, citations?, structured?}`` with images as base64 data URLs."""
        wire: dict[str, Any] = {"text": self.text}
        if self.citations:
            wire["citations"] = [c.model_dump() for c in self.citations]
        if self.structured is not None:
            wire["structured"] = self.structured
        if self.images:
            wire["images"] = [
                f"data:{img.mime_type};base64,{base64.b64encode(img.data).decode('ascii')}"
                for img in self.images
            ]
        return wire


def error_to_wire(error: GatewayError) -> dict[str, str]:
    return {"error": str(error)}


# =============================================================================
# Gateway
# =============================================================================


class ModelGateway:
    """Narrow adapter between analysis tasks and the Gemini API.

    Args:
        config: Application configuration (defaults to get_config()).
        client: A ``google.genai.Client``; created lazily from the configured
            API key when omitted.

    Example:
        >>> gateway = ModelGateway()
        >>> final = await gateway.invoke_streaming(
        ...     TaskKind.DEEP_REASONING,
        ...     {"scenario": "He says he's an oil-rig engineer..."},
        ...     on_fragment=lambda text: print(text, end=""),
        ... )
    """

    def __init__(self, config: AppConfig | None = None, client: Any | None = None) -> None:
        self._config = config or get_config()
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                api_key = get_api_key()
            except APIKeyNotFoundError as e:
                raise ProviderUnavailableError(str(e)) from e
            self._client = genai.Client(
                api_key=api_key.get_secret_value(),
                http_options=types.HttpOptions(timeout=self._config.ai.timeout_seconds * 1000),
            )
        return self._client

    # -------------------------------------------------------------------------
    # Validation and request building
    # -------------------------------------------------------------------------

    def validate(
        self, action: TaskKind | str, payload: Mapping[str, Any] | None
    ) -> tuple[TaskDefinition, dict[str, Any]]:
        """Check the action and its required payload fields.

        Returns:
            The task definition and a plain-dict copy of the payload.

        Raises:
            InvalidRequestError: Unknown action, missing/empty fields, an
                unsupported aspect ratio, or undecodable base64 data.
        """
        try:
            definition = get_task(action)
        except KeyError:
            raise InvalidRequestError(f"Unknown action: {action!r}", ["action"]) from None

        payload = dict(payload or {})
        missing = [name for name in definition.required_fields if _is_blank(payload.get(name))]
        if missing:
            raise InvalidRequestError(
                f"Missing required fields for {definition.kind.value}: {', '.join(missing)}",
                missing,
            )

        if definition.kind == TaskKind.PERSONA_SYNTHESIS and payload["aspect_ratio"] not in ASPECT_RATIOS:
            raise InvalidRequestError(
                f"Unsupported aspect ratio {payload['aspect_ratio']!r}; "
                f"expected one of {', '.join(ASPECT_RATIOS)}",
                ["aspect_ratio"],
            )

        if definition.takes_media and isinstance(payload["data"], str):
            try:
                base64.b64decode(payload["data"], validate=True)
            except (binascii.Error, ValueError):
                raise InvalidRequestError("Media data is not valid base64", ["data"]) from None

        return definition, payload

    def model_for(self, definition: TaskDefinition) -> str:
        ai = self._config.ai
        return {"pro": ai.pro_model, "flash": ai.flash_model, "image": ai.image_model}[
            definition.model_tier
        ]

    def build_request(
        self, definition: TaskDefinition, payload: Mapping[str, Any]
    ) -> tuple[str, Any, types.GenerateContentConfig]:
        """Render the prompt and assemble (model, contents, config)."""
        system_instruction, user_prompt = definition.render_prompt(payload)

        if definition.takes_media:
            data = payload["data"]
            raw = base64.b64decode(data) if isinstance(data, str) else bytes(data)
            contents: Any = [
                types.Content(
                    role="user",
                    parts=[
                        types.Part.from_bytes(data=raw, mime_type=payload["mime_type"]),
                        types.Part.from_text(text=user_prompt),
                    ],
                )
            ]
        else:
            contents = user_prompt

        return self.model_for(definition), contents, self._build_config(definition, payload, system_instruction)

    def _build_config(
        self,
        definition: TaskDefinition,
        payload: Mapping[str, Any],
        system_instruction: str,
    ) -> types.GenerateContentConfig:
        ai = self._config.ai
        options: dict[str, Any] = {
            "system_instruction": system_instruction,
            "safety_settings": self._get_safety_settings(),
        }

        budget = ai.budget_for(definition.reasoning.value)
        if budget is not None:
            options["thinking_config"] = types.ThinkingConfig(thinking_budget=budget)

        if definition.grounding:
            options["tools"] = [types.Tool(google_search=types.GoogleSearch())]

        if definition.output_mode == OutputMode.STRUCTURED:
            options["response_mime_type"] = "application/json"
            options["temperature"] = ai.conversation_temperature

        if definition.output_mode == OutputMode.IMAGE:
            options["response_modalities"] = ["TEXT", "IMAGE"]
            options["image_config"] = types.ImageConfig(
                aspect_ratio=payload["aspect_ratio"],
                image_size=ai.synthesis_image_size,
            )

        return types.GenerateContentConfig(**options)

    def _get_safety_settings(self) -> list[types.SafetySetting]:
        """Safety thresholds applied to every task.

        Sexual content is filtered from medium severity while the other
        categories only block high severity, so coercion tactics can be
        discussed without explicit content being generated.
        """
        only_high = types.HarmBlockThreshold.BLOCK_ONLY_HIGH
        return [
            types.SafetySetting(category=types.HarmCategory.HARM_CATEGORY_HARASSMENT, threshold=only_high),
            types.SafetySetting(category=types.HarmCategory.HARM_CATEGORY_HATE_SPEECH, threshold=only_high),
            types.SafetySetting(
                category=types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
                threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            ),
            types.SafetySetting(
                category=types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT, threshold=only_high
            ),
        ]

    # -------------------------------------------------------------------------
    # Invocation
    # -------------------------------------------------------------------------

    async def invoke(self, action: TaskKind | str, payload: Mapping[str, Any]) -> GatewayResponse:
        """Run one request and return the complete response.

        Raises:
            InvalidRequestError: On bad input (before any network call).
            UpstreamError: On provider or network failure.
        """
        definition, payload = self.validate(action, payload)
        model, contents, config = self.build_request(definition, payload)

        start_time = time.perf_counter()
        try:
            raw = await self.client.aio.models.generate_content(
                model=model, contents=contents, config=config
            )
            chunk = self._parse_chunk(raw)
        except GatewayError:
            raise
        except Exception as e:
            mapped = self._map_exception(e)
            logger.error(f"{definition.kind.value} failed: {type(mapped).__name__}", extra={"model": model})
            raise mapped from e

        return self._finish(definition, model, [chunk], start_time, raw_response=raw)

    async def stream(
        self, action: TaskKind | str, payload: Mapping[str, Any]
    ) -> AsyncIterator[ResponseChunk]:
        """Yield response chunks in the order the provider sends them.

        Tasks that do not stream yield exactly one chunk.
        """
        definition, payload = self.validate(action, payload)
        async for chunk in self._stream_validated(definition, payload):
            yield chunk

    async def _stream_validated(
        self, definition: TaskDefinition, payload: dict[str, Any]
    ) -> AsyncIterator[ResponseChunk]:
        if not definition.streams:
            response = await self.invoke(definition.kind, payload)
            yield ResponseChunk(
                text=response.text,
                citations=response.citations,
                images=response.images,
                finish_reason=response.finish_reason,
            )
            return

        model, contents, config = self.build_request(definition, payload)
        try:
            iterator = await self.client.aio.models.generate_content_stream(
                model=model, contents=contents, config=config
            )
            async for raw in iterator:
                yield self._parse_chunk(raw)
        except GatewayError:
            raise
        except Exception as e:
            mapped = self._map_exception(e)
            logger.error(f"{definition.kind.value} stream failed: {type(mapped).__name__}", extra={"model": model})
            raise mapped from e

    async def invoke_streaming(
        self,
        action: TaskKind | str,
        payload: Mapping[str, Any],
        on_fragment: Callable[[str], None],
    ) -> GatewayResponse:
        """Stream a request, calling ``on_fragment`` per text fragment in order.

        Returns:
            The aggregated GatewayResponse once the provider signals the end.
        """
        definition, payload = self.validate(action, payload)
        start_time = time.perf_counter()

        chunks: list[ResponseChunk] = []
        async for chunk in self._stream_validated(definition, payload):
            chunks.append(chunk)
            if chunk.text:
                on_fragment(chunk.text)

        return self._finish(definition, self.model_for(definition), chunks, start_time)

    # -------------------------------------------------------------------------
    # Response handling
    # -------------------------------------------------------------------------

    def _finish(
        self,
        definition: TaskDefinition,
        model: str,
        chunks: list[ResponseChunk],
        start_time: float,
        raw_response: Any = None,
    ) -> GatewayResponse:
        text = "".join(chunk.text for chunk in chunks)

        citations: list[Citation] = []
        seen: set[str] = set()
        for chunk in chunks:
            for citation in chunk.citations:
                if citation.url not in seen:
                    seen.add(citation.url)
                    citations.append(citation)

        structured = None
        if definition.output_mode == OutputMode.STRUCTURED:
            structured = parse_conversation_analysis(text).to_wire()

        finish_reason = next((c.finish_reason for c in reversed(chunks) if c.finish_reason), None)
        latency_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            f"{definition.kind.value} completed in {latency_ms:.0f}ms",
            extra={"model": model, "time_ms": latency_ms},
        )

        return GatewayResponse(
            action=definition.kind,
            text=text,
            model=model,
            citations=citations,
            structured=structured,
            images=[img for chunk in chunks for img in chunk.images],
            finish_reason=finish_reason,
            latency_ms=latency_ms,
            raw_response=raw_response,
        )

    def _parse_chunk(self, raw: Any) -> ResponseChunk:
        """Pull text, inline images, citations and finish reason from a response.

        Raises:
            ContentBlockedError: If the prompt was blocked outright.
        """
        feedback = getattr(raw, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            raise ContentBlockedError(blocked_reason=str(getattr(block_reason, "name", block_reason)))

        candidates = getattr(raw, "candidates", None) or []
        if not candidates:
            return ResponseChunk(text=getattr(raw, "text", None) or "")

        candidate = candidates[0]
        texts: list[str] = []
        images: list[GeneratedImage] = []
        content = getattr(candidate, "content", None)
        for part in (getattr(content, "parts", None) or []):
            if getattr(part, "thought", False):
                continue
            if getattr(part, "text", None):
                texts.append(part.text)
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                images.append(
                    GeneratedImage(data=inline.data, mime_type=inline.mime_type or "image/png")
                )

        finish_reason = getattr(candidate, "finish_reason", None)
        if finish_reason is not None:
            finish_reason = str(getattr(finish_reason, "name", finish_reason))
        if finish_reason == "SAFETY" and not texts and not images:
            raise ContentBlockedError(blocked_reason="SAFETY")

        return ResponseChunk(
            text="".join(texts),
            citations=self._extract_citations(candidate),
            images=images,
            finish_reason=finish_reason,
        )

    def _extract_citations(self, candidate: Any) -> list[Citation]:
        metadata = getattr(candidate, "grounding_metadata", None)
        grounding_chunks = getattr(metadata, "grounding_chunks", None) if metadata else None

        citations = []
        for grounding_chunk in grounding_chunks or []:
            web = getattr(grounding_chunk, "web", None)
            uri = getattr(web, "uri", None) if web else None
            if uri:
                citations.append(Citation(title=getattr(web, "title", None) or uri, url=uri))
        return citations

    def _map_exception(self, error: Exception) -> GatewayError:
        """Map SDK and transport exceptions onto the gateway hierarchy."""
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        lowered = message.lower()

        if isinstance(error, genai_errors.APIError):
            code = getattr(error, "code", None)
            if code == 429:
                return QuotaExceededError(message, original_error=error)
            if "safety" in lowered or "blocked" in lowered:
                return ContentBlockedError(message, original_error=error)
            return UpstreamError(message, status_code=code, original_error=error)

        # Fallback pattern matching on the error message
        if "blocked" in lowered or "safety" in lowered:
            return ContentBlockedError(message, original_error=error)
        if "429" in lowered or "quota" in lowered or "resource exhausted" in lowered or "rate limit" in lowered:
            return QuotaExceededError(message, original_error=error)

        return UpstreamError(message, original_error=error)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes)):
        return not value.strip()
    return False


def get_gateway(config: AppConfig | None = None) -> ModelGateway:
    """Factory for a configured gateway. The API key is resolved on first use."""
    return ModelGateway(config=config)
