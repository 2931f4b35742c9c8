"""Tests for truthseeker.ai.session: the streaming session controller."""

from __future__ import annotations

import asyncio

import json

import pytest

from conftest import FakeGateway, make_response, run
from truthseeker.ai.client import GatewayResponse, ModelGateway, ResponseChunk
from truthseeker.ai.errors import InvalidRequestError, UpstreamError
from truthseeker.ai.session import AnalysisSession, SessionManager, SessionState, SurfaceBusyError
from truthseeker.core.models import (
    Citation,
    CompletionState,
    ResultSealedError,
    RiskLevel,
    TaskKind,
)

VIDEO_PAYLOAD = {"data": "AAAA", "mime_type": "video/mp4"}


class BlockingGateway:
    """Streams one fragment, then waits until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.started = asyncio.Event()

    async def stream(self, action, payload):
        yield ResponseChunk(text=f"{TaskKind(action).value} started. ")
        self.started.set()
        await self.release.wait()
        yield ResponseChunk(text="Deepfake probability: Low")


class TestStreaming:
    def test_fragments_accumulate_in_order(self) -> None:
        gateway = FakeGateway(chunks=["Deep", "fake ", "probability: High"])
        snapshots: list[str] = []
        session = AnalysisSession("video", gateway)
        session.on_fragment = lambda fragment: snapshots.append(session.result.text)

        result = run(session.run(TaskKind.VIDEO, VIDEO_PAYLOAD, source="call.mp4"))

        assert snapshots == ["Deep", "Deepfake ", "Deepfake probability: High"]
        assert result.text == "Deepfake probability: High"
        assert result.state == CompletionState.COMPLETE
        assert result.risk_level == RiskLevel.HIGH
        assert result.fragment_count == 3
        assert result.source == "call.mp4"
        assert session.state == SessionState.COMPLETE

    def test_partial_text_kept_on_failure(self) -> None:
        gateway = FakeGateway(
            chunks=["Analysis", " in progress", " never arrives"],
            error=UpstreamError("network down"),
            fail_after=2,
        )
        session = AnalysisSession("video", gateway)

        result = run(session.run(TaskKind.VIDEO, VIDEO_PAYLOAD))

        assert result.state == CompletionState.FAILED
        assert result.text == "Analysis in progress"
        assert result.error == "network down"
        assert result.risk_level is None
        assert session.state == SessionState.FAILED

    def test_unexpected_exception_fails_result(self) -> None:
        gateway = FakeGateway(chunks=["x"], error=RuntimeError("boom"), fail_after=0)
        result = run(AnalysisSession("audio", gateway).run(TaskKind.AUDIO, VIDEO_PAYLOAD))
        assert result.state == CompletionState.FAILED
        assert result.error == "boom"

    def test_result_sealed_after_completion(self) -> None:
        result = run(AnalysisSession("video", FakeGateway(chunks=["done"])).run(TaskKind.VIDEO, VIDEO_PAYLOAD))
        with pytest.raises(ResultSealedError):
            result.append_fragment("more")

    def test_citations_collected(self) -> None:
        gateway = FakeGateway(
            chunks=[
                ResponseChunk(text="Found ", citations=[Citation(title="A", url="https://a.example")]),
                ResponseChunk(text="two", citations=[Citation(title="A", url="https://a.example"),
                                                     Citation(title="B", url="https://b.example")]),
            ]
        )
        result = run(AnalysisSession("identity", gateway).run(TaskKind.IDENTITY_SEARCH, {"query": "Jane"}))
        assert [c.url for c in result.citations] == ["https://a.example", "https://b.example"]
        assert result.source == "Jane"
        assert result.risk_level is None

    def test_unknown_task(self) -> None:
        with pytest.raises(InvalidRequestError):
            run(AnalysisSession("x", FakeGateway()).run("analyzeEverything", {}))


class TestNonStreaming:
    def test_conversation_uses_structured_level(self) -> None:
        structured = {"riskLevel": "CRITICAL", "patterns": [], "redFlags": ["Asked for crypto"]}
        gateway = FakeGateway(
            response=GatewayResponse(
                action=TaskKind.CONVERSATION_TEXT, text='{"riskLevel": "CRITICAL"}', structured=structured
            )
        )
        seen: list[str] = []
        session = AnalysisSession("conversation", gateway, on_fragment=seen.append)

        result = run(session.run(TaskKind.CONVERSATION_TEXT, {"text": "send bitcoin"}))

        assert result.state == CompletionState.COMPLETE
        assert result.risk_level == RiskLevel.CRITICAL
        assert result.structured == structured
        assert seen == ['{"riskLevel": "CRITICAL"}']
        assert gateway.calls == [(TaskKind.CONVERSATION_TEXT, {"text": "send bitcoin"})]

    def test_invoke_failure(self) -> None:
        gateway = FakeGateway(error=UpstreamError("quota"))
        result = run(AnalysisSession("conversation", gateway).run(TaskKind.CONVERSATION_TEXT, {"text": "hi"}))
        assert result.state == CompletionState.FAILED
        assert result.text == ""


class TestAbandon:
    def test_abandon_stops_further_fragments(self) -> None:
        gateway = FakeGateway(chunks=["first", "second", "third"])
        session = AnalysisSession("video", gateway)
        seen: list[str] = []

        def on_fragment(fragment: str) -> None:
            seen.append(fragment)
            session.abandon()

        session.on_fragment = on_fragment
        result = run(session.run(TaskKind.VIDEO, VIDEO_PAYLOAD))

        assert seen == ["first"]
        assert result.text == "first"
        assert not result.is_terminal
        assert session.state == SessionState.IDLE

    def test_busy_surface_rejected(self) -> None:
        async def scenario():
            gateway = BlockingGateway()
            session = AnalysisSession("video", gateway)
            task = asyncio.create_task(session.run(TaskKind.VIDEO, VIDEO_PAYLOAD))
            await gateway.started.wait()
            with pytest.raises(SurfaceBusyError):
                await session.run(TaskKind.VIDEO, VIDEO_PAYLOAD)
            gateway.release.set()
            return await task

        result = run(scenario())
        assert result.state == CompletionState.COMPLETE
        assert result.text == "video started. Deepfake probability: Low"

    def test_resubmit_after_abandon(self) -> None:
        async def scenario():
            gateway = BlockingGateway()
            session = AnalysisSession("video", gateway)
            stale = asyncio.create_task(session.run(TaskKind.VIDEO, VIDEO_PAYLOAD))
            await gateway.started.wait()
            session.abandon()
            session._gateway = FakeGateway(chunks=["fresh"])
            fresh = await session.run(TaskKind.VIDEO, VIDEO_PAYLOAD)
            gateway.release.set()
            old = await stale
            return session, old, fresh

        session, old, fresh = run(scenario())
        assert fresh.text == "fresh"
        assert old.text == "video started. "
        assert session.result is fresh
        assert session.state == SessionState.COMPLETE


class TestSessionManager:
    def test_surfaces_run_concurrently(self) -> None:
        async def scenario():
            gateway = BlockingGateway()
            manager = SessionManager(gateway)
            video = asyncio.create_task(manager.run(TaskKind.VIDEO, VIDEO_PAYLOAD))
            audio = asyncio.create_task(manager.run(TaskKind.AUDIO, VIDEO_PAYLOAD))
            await asyncio.sleep(0.01)
            states = (manager.state("video"), manager.state("audio"))
            gateway.release.set()
            return states, await video, await audio

        states, video, audio = run(scenario())
        assert states == (SessionState.STREAMING, SessionState.STREAMING)
        assert video.task == TaskKind.VIDEO
        assert audio.task == TaskKind.AUDIO

    def test_unknown_surface_is_idle(self) -> None:
        assert SessionManager(FakeGateway()).state("image") == SessionState.IDLE

    def test_reset_clears_sessions(self) -> None:
        manager = SessionManager(FakeGateway(chunks=["ok"]))
        run(manager.run(TaskKind.VIDEO, VIDEO_PAYLOAD, surface="main"))
        assert manager.state("main") == SessionState.COMPLETE
        manager.reset()
        assert manager.state("main") == SessionState.IDLE

    def test_callback_does_not_outlive_its_run(self) -> None:
        manager = SessionManager(FakeGateway(chunks=["a", "b"]))
        first: list[str] = []

        run(manager.run(TaskKind.VIDEO, VIDEO_PAYLOAD, on_fragment=first.append))
        second = run(manager.run(TaskKind.VIDEO, VIDEO_PAYLOAD))

        assert first == ["a", "b"]
        assert second.text == "ab"
        assert manager.session("video").on_fragment is None


MANIPULATIVE_CHAT = (
    "Day 1 - Him: You are the most beautiful woman I have ever seen.\n"
    "Day 2 - Him: I have never felt this way. Don't tell your friends about us yet.\n"
    "Day 3 - Him: My account is frozen. Can you get me $300 in Steam gift cards tonight?"
)
NEUTRAL_CHAT = "Had coffee, discussed weekend plans"


class TestConversationScenario:
    """Manipulative and neutral chats through a session and the real gateway."""

    @pytest.fixture
    def prompts(self, mock_genai_client) -> list[str]:
        seen: list[str] = []

        def respond(model, contents, config):
            seen.append(contents)
            if "steam gift cards" in contents.lower():
                body = {
                    "overallRiskScore": 88,
                    "riskLevel": "HIGH",
                    "summary": "Love bombing followed by a gift card request.",
                    "patterns": [
                        {
                            "type": "FINANCIAL",
                            "severity": "HIGH",
                            "evidence": ["Can you get me $300 in Steam gift cards tonight?"],
                            "explanation": "Gift cards cannot be traced or refunded.",
                        },
                        {"type": "ISOLATION", "severity": "MEDIUM", "evidence": [], "explanation": ""},
                    ],
                    "timeline": [{"approximate": "Day 3", "event": "Money request", "concern": True}],
                    "redFlags": ["Asked for gift cards", "Asked for secrecy"],
                    "recommendations": ["Stop contact"],
                }
            else:
                body = {
                    "overallRiskScore": 2,
                    "riskLevel": "LOW",
                    "summary": "An ordinary conversation.",
                    "patterns": [],
                    "timeline": [],
                    "redFlags": [],
                    "recommendations": [],
                }
            return make_response(json.dumps(body))

        mock_genai_client.aio.models.generate_content.side_effect = respond
        return seen

    @pytest.fixture
    def session(self, gateway: ModelGateway, prompts) -> AnalysisSession:
        return AnalysisSession("conversation", gateway)

    def test_manipulative_chat(self, session: AnalysisSession, prompts: list[str]) -> None:
        result = run(session.run(TaskKind.CONVERSATION_TEXT, {"text": MANIPULATIVE_CHAT}))

        assert result.state == CompletionState.COMPLETE
        assert any(p["type"] == "FINANCIAL" for p in result.structured["patterns"])
        assert result.structured["redFlags"]
        assert result.risk_level.rank >= RiskLevel.MEDIUM.rank
        assert MANIPULATIVE_CHAT in prompts[0]

    def test_neutral_chat(self, session: AnalysisSession, prompts: list[str]) -> None:
        result = run(session.run(TaskKind.CONVERSATION_TEXT, {"text": NEUTRAL_CHAT}))

        assert result.state == CompletionState.COMPLETE
        assert result.structured["patterns"] == []
        assert result.structured["redFlags"] == []
        assert result.risk_level == RiskLevel.LOW
        assert NEUTRAL_CHAT in prompts[0]
