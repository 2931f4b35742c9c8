"""Streaming session controller.

One AnalysisSession exists per UI surface (by default, one per task kind).
Each run walks the state machine::

    IDLE -> SUBMITTED -> STREAMING -> COMPLETE
                   \\            \\
                    +-> FAILED    +-> FAILED

Fragments are applied to the AnalysisResult and forwarded to the surface's
callback strictly in receipt order. Gateway failures never escape ``run``:
they seal the result as FAILED and keep whatever text already arrived.
There is no automatic retry.

Abandoning a surface stops any further mutation by the in-flight run; the
upstream request itself is left to finish or fail on its own.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from enum import Enum
from typing import Any, Callable, Mapping

from truthseeker.ai.client import ModelGateway, ResponseChunk
from truthseeker.ai.errors import GatewayError, InvalidRequestError
from truthseeker.ai.risk import classify
from truthseeker.ai.tasks import TaskDefinition, get_task
from truthseeker.core.models import AnalysisResult, GeneratedImage, TaskKind

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[str], None]


class SessionState(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


class SurfaceBusyError(RuntimeError):
    """A surface already has an analysis in flight."""

    def __init__(self, surface: str) -> None:
        super().__init__(f"An analysis is already running on '{surface}'")
        self.surface = surface


class AnalysisSession:
    """Lifecycle owner for analyses run on one surface.

    Args:
        surface: Name of the UI surface this session drives.
        gateway: Gateway used to execute requests.
        on_fragment: Called with each text fragment as it is applied.

    Example:
        >>> session = AnalysisSession("video", gateway, on_fragment=print)
        >>> result = await session.run(TaskKind.VIDEO, {"data": b64, "mime_type": "video/mp4"})
        >>> result.state, result.risk_level
        (<CompletionState.COMPLETE: 'complete'>, <RiskLevel.MEDIUM: 'MEDIUM'>)
    """

    def __init__(
        self,
        surface: str,
        gateway: ModelGateway,
        on_fragment: FragmentCallback | None = None,
    ) -> None:
        self.surface = surface
        self.on_fragment = on_fragment
        self.state = SessionState.IDLE
        self.result: AnalysisResult | None = None
        self._gateway = gateway
        # Bumped by abandon(); a run only mutates state while its generation is current
        self._generation = 0

    @property
    def in_flight(self) -> bool:
        return self.state in (SessionState.SUBMITTED, SessionState.STREAMING)

    async def run(
        self,
        task: TaskKind | str,
        payload: Mapping[str, Any],
        source: str | None = None,
    ) -> AnalysisResult:
        """Submit one analysis and drive it to a terminal state.

        Args:
            task: Task kind to run.
            payload: Task payload (see the task definitions).
            source: File name or query to record on the result. Defaults to
                the task's source field in the payload, if any.

        Returns:
            The AnalysisResult, COMPLETE or FAILED. If the surface is
            abandoned mid-run, the result is returned as it stood.

        Raises:
            SurfaceBusyError: If a previous run on this surface is in flight.
            InvalidRequestError: If ``task`` is not a known task kind.
        """
        if self.in_flight:
            raise SurfaceBusyError(self.surface)

        try:
            definition = get_task(task)
        except KeyError:
            raise InvalidRequestError(f"Unknown action: {task!r}", ["action"]) from None

        if source is None:
            source = str(payload.get(definition.source_field, "")) if definition.source_field else ""

        result = AnalysisResult(task=definition.kind, source=source)
        self.result = result
        self.state = SessionState.SUBMITTED
        generation = self._generation

        logger.info(f"Submitted {definition.kind.value} on surface '{self.surface}'")

        try:
            structured, images = await self._execute(definition, payload, result, generation)
        except Exception as e:
            if generation != self._generation:
                return result
            if not isinstance(e, GatewayError):
                logger.exception(f"Unexpected error during {definition.kind.value}")
            result.fail(str(e) or type(e).__name__)
            self.state = SessionState.FAILED
            logger.warning(
                f"{definition.kind.value} failed after {result.fragment_count} fragments: {type(e).__name__}"
            )
            return result

        if generation != self._generation:
            logger.debug(f"Surface '{self.surface}' abandoned; dropping completion")
            return result

        # The classifier runs once, over the final text
        result.complete(
            risk_level=classify(definition.kind, result.text, structured),
            structured=structured,
            images=images,
        )
        self.state = SessionState.COMPLETE
        logger.info(
            f"Completed {definition.kind.value} "
            f"(risk={result.risk_level.value if result.risk_level else 'n/a'}, fragments={result.fragment_count})"
        )
        return result

    async def _execute(
        self,
        definition: TaskDefinition,
        payload: Mapping[str, Any],
        result: AnalysisResult,
        generation: int,
    ) -> tuple[dict[str, Any] | None, list[GeneratedImage]]:
        if definition.streams:
            async with aclosing(self._gateway.stream(definition.kind, payload)) as chunks:
                async for chunk in chunks:
                    if generation != self._generation:
                        break
                    self._apply(chunk, result)
            return None, []

        response = await self._gateway.invoke(definition.kind, payload)
        if generation == self._generation:
            self._apply(ResponseChunk(text=response.text, citations=response.citations), result)
        return response.structured, response.images

    def _apply(self, chunk: ResponseChunk, result: AnalysisResult) -> None:
        self.state = SessionState.STREAMING
        if chunk.text:
            result.append_fragment(chunk.text)
            if self.on_fragment is not None:
                self.on_fragment(chunk.text)
        if chunk.citations:
            result.add_citations(chunk.citations)

    def abandon(self) -> None:
        """Detach the in-flight run (if any) and return the surface to IDLE."""
        if self.in_flight:
            logger.info(f"Abandoning in-flight analysis on '{self.surface}'")
        self._generation += 1
        self.state = SessionState.IDLE


class SessionManager:
    """Per-surface sessions sharing one gateway.

    Surfaces are independent; different surfaces may run concurrently.
    """

    def __init__(self, gateway: ModelGateway) -> None:
        self._gateway = gateway
        self._sessions: dict[str, AnalysisSession] = {}

    def session(self, surface: str) -> AnalysisSession:
        if surface not in self._sessions:
            self._sessions[surface] = AnalysisSession(surface, self._gateway)
        return self._sessions[surface]

    def state(self, surface: str) -> SessionState:
        session = self._sessions.get(surface)
        return session.state if session else SessionState.IDLE

    async def run(
        self,
        task: TaskKind | str,
        payload: Mapping[str, Any],
        surface: str | None = None,
        source: str | None = None,
        on_fragment: FragmentCallback | None = None,
    ) -> AnalysisResult:
        """Run ``task`` on ``surface`` (defaults to the task kind's name)."""
        session = self.session(surface or str(getattr(task, "value", task)))
        session.on_fragment = on_fragment
        return await session.run(task, payload, source=source)

    def abandon(self, surface: str) -> None:
        if surface in self._sessions:
            self._sessions[surface].abandon()

    def reset(self) -> None:
        for session in self._sessions.values():
            session.abandon()
        self._sessions.clear()
