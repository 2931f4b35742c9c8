"""AI module for TruthSeeker.

The client.py module is the SOLE interface to the Gemini API; no other file
should import google-genai.

Exports:
    - ModelGateway: Action/payload adapter over the Gemini API
    - AnalysisSession / SessionManager: Per-surface streaming lifecycle
    - TaskDefinition / get_task: Static per-task configuration
    - classify: Risk tier for a finished analysis
    - ConversationAnalysis / parse_conversation_analysis: Structured chat results
    - Exception hierarchy for typed error handling
"""

from truthseeker.ai.client import (
    GatewayRequest,
    GatewayResponse,
    ModelGateway,
    ResponseChunk,
    error_to_wire,
    get_gateway,
)
from truthseeker.ai.conversation import (
    ConversationAnalysis,
    parse_conversation_analysis,
)
from truthseeker.ai.errors import (
    ContentBlockedError,
    GatewayError,
    InvalidRequestError,
    ParseError,
    ProviderUnavailableError,
    QuotaExceededError,
    UpstreamError,
)
from truthseeker.ai.risk import classify
from truthseeker.ai.session import AnalysisSession, SessionManager, SessionState, SurfaceBusyError
from truthseeker.ai.tasks import TASK_DEFINITIONS, TaskDefinition, get_task

__all__ = [
    "AnalysisSession",
    "ContentBlockedError",
    "ConversationAnalysis",
    "GatewayError",
    "GatewayRequest",
    "GatewayResponse",
    "InvalidRequestError",
    "ModelGateway",
    "ParseError",
    "ProviderUnavailableError",
    "QuotaExceededError",
    "ResponseChunk",
    "SessionManager",
    "SessionState",
    "SurfaceBusyError",
    "TASK_DEFINITIONS",
    "TaskDefinition",
    "UpstreamError",
    "classify",
    "error_to_wire",
    "get_gateway",
    "get_task",
    "parse_conversation_analysis",
]
