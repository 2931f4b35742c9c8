"""Centralized Prompt Template System for TruthSeeker.

This module is the SINGLE SOURCE of all prompts sent to Gemini. Every analysis
task renders one template defined here.

Design Principles:
- Structured prompts: every prompt has a system instruction + user prompt
- Output specifications: explicit markdown layouts for narrative tasks and a
  JSON schema for structured conversation analysis
- Versioning: each template carries a version for iteration

Example:
    >>> from truthseeker.ai.prompts import get_prompt
    >>> template = get_prompt("identity_search_v1")
    >>> system, user = template.render(query="Dr. Mark Stevens, UN surgeon in Yemen")
"""

from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass, field
from enum import Enum
from string import Template
from typing import Any


# =============================================================================
# Enums
# =============================================================================


class PromptCategory(str, Enum):
    """Categories of prompts for organizational and filtering purposes.

    Attributes:
        MEDIA_FORENSICS: Authenticity checks on images, video and audio.
        CONVERSATION: Manipulation analysis of chat transcripts.
        INVESTIGATION: Open-ended identity and scenario reasoning.
        EXTRACTION: Transcribing screenshots into text.
        SYNTHESIS: Generating training personas.
    """

    MEDIA_FORENSICS = "media_forensics"
    CONVERSATION = "conversation"
    INVESTIGATION = "investigation"
    EXTRACTION = "extraction"
    SYNTHESIS = "synthesis"


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class PromptTemplate:
    """Metadata and content for a prompt template.

    Attributes:
        id: Unique identifier (e.g., "image_auto_v1").
        category: Type of prompt for filtering.
        version: Semantic version string for tracking changes.
        system_instruction: Role and behavior instructions for the model.
        user_prompt_template: User prompt with $placeholder variables.
        output_schema: Expected JSON schema for structured outputs.
        required_variables: Variables that MUST be provided.
        optional_variables: Variables that CAN be provided (default "").
        description: Human-readable description of the prompt's purpose.
    """

    id: str
    category: PromptCategory
    version: str
    system_instruction: str
    user_prompt_template: str
    output_schema: dict[str, Any] | None = None
    required_variables: set[str] = field(default_factory=set)
    optional_variables: set[str] = field(default_factory=set)
    description: str = ""

    def render(self, **variables: Any) -> tuple[str, str]:
        """Render the template with provided variables.

        Returns:
            Tuple of (system_instruction, rendered_user_prompt).

        Raises:
            ValueError: If required variables are missing.
        """
        missing = self.validate_variables(variables)
        if missing:
            raise ValueError(f"Missing required variables for prompt '{self.id}': {missing}")

        values = {name: "" for name in self.optional_variables}
        values.update(variables)
        if self.output_schema and "output_schema" not in values:
            values["output_schema"] = render_output_schema(self.output_schema)

        rendered = Template(self.user_prompt_template).safe_substitute(values)
        return self.system_instruction, rendered.strip()

    def validate_variables(self, variables: dict[str, Any]) -> list[str]:
        """Return sorted names of required variables that are absent."""
        return sorted(self.required_variables - set(variables.keys()))


# =============================================================================
# System Instructions
# =============================================================================

FORENSIC_EXPERT_SYSTEM = textwrap.dedent(
    """
    You are a digital forensics expert helping a private individual who suspects
    they are the target of online deception (catfishing, romance scams, deepfakes).
    Be precise, cite concrete visual or auditory evidence, and never overstate
    certainty. Your findings are indicators, not legal conclusions.
    """
).strip()

FORENSIC_MENTOR_SYSTEM = textwrap.dedent(
    """
    You are a senior digital forensics mentor. The user is the investigator.
    Teach them to find the truth themselves. Never state a final verdict about
    whether the media is authentic or manipulated.
    """
).strip()

CONVERSATION_ANALYST_SYSTEM = textwrap.dedent(
    """
    You are a forensic conversation analyst specializing in detecting online
    romance scams, catfishing, and manipulation tactics.
    You must respond with valid JSON only. No markdown, no explanations,
    no code blocks - just pure JSON that can be parsed directly.
    """
).strip()

INVESTIGATOR_SYSTEM = textwrap.dedent(
    """
    You are a lead Digital Forensics Investigator specializing in catfishing
    and romance-scam cases. Connect behavioral patterns, digital evidence and
    psychological manipulation tactics into a clear risk picture.
    """
).strip()

TRANSCRIBER_SYSTEM = "You transcribe chat and messaging screenshots accurately."

PERSONA_SYSTEM = textwrap.dedent(
    """
    You generate photorealistic portraits of fictional people for scam-awareness
    training. Never depict a real, identifiable person.
    """
).strip()


# =============================================================================
# Output Schemas
# =============================================================================

CONVERSATION_ANALYSIS_SCHEMA: dict[str, Any] = {
    "overallRiskScore": "<integer 0-100>",
    "riskLevel": "<LOW|MEDIUM|HIGH|CRITICAL>",
    "summary": "<2-3 sentence overall assessment>",
    "patterns": [
        {
            "type": "<LOVE_BOMBING|URGENCY|ISOLATION|FINANCIAL|INCONSISTENCY|SCRIPT|OTHER>",
            "severity": "<LOW|MEDIUM|HIGH>",
            "evidence": ["<exact quotes or paraphrased examples>"],
            "explanation": "<why this is concerning>",
        }
    ],
    "timeline": [
        {
            "approximate": "<Day 1, Week 2, etc.>",
            "event": "<what happened>",
            "concern": "<true if red flag, false otherwise>",
        }
    ],
    "redFlags": ["<list of specific warning signs found>"],
    "recommendations": ["<actionable advice for the user>"],
}


# =============================================================================
# Prompt Templates
# =============================================================================


IMAGE_AUTO_PROMPT = PromptTemplate(
    id="image_auto_v1",
    category=PromptCategory.MEDIA_FORENSICS,
    version="1.0.0",
    description="Forensic authenticity verdict for a single image.",
    system_instruction=FORENSIC_EXPERT_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Perform a rigorous forensic authentication of this image.

        OBJECTIVE: Detect AI-Generated content (GANs, Diffusion models) AND Human
        Manipulation (Photoshop, Editing).

        ANALYSIS PROTOCOL:
        1. **AI Generation Indicators:**
           - **Anatomical Consistency:** Check hands (finger count/shape), ears, teeth, and pupils (shape/reflection symmetry).
           - **Texture & Detail:** Look for "painterly" or "waxy" skin textures, hair strands blending into the background, or incoherent text/logos.
           - **Background Logic:** Check for nonsensical geometry, furniture blending into walls, or impossible perspectives.

        2. **Manual Manipulation Indicators:**
           - **Edge Analysis:** Look for jagged edges, halo effects, or pixelation mismatches around subjects.
           - **Lighting & Shadows:** Verify shadow direction matches light sources.
           - **Clone/Heal Artifacts:** Identify repeated texture patterns indicative of the clone stamp tool.
           - **Noise/Grain:** Check for smooth areas in a grainy image or mismatched noise between subject and background.

        OUTPUT FORMAT (Markdown):
        ## Forensic Analysis Report

        **AUTHENTICITY VERDICT:** [Likely Authentic | Suspicious | Highly Edited | AI-Generated]
        **CONFIDENCE SCORE:** [0-100]%

        ### Critical Findings
        * List the most significant red flags found.

        ### Detailed Inspection
        * **Anatomy/Objects:** [Notes on physical plausibility]
        * **Lighting/Physics:** [Notes on light coherence and reflections]
        * **Digital Artifacts:** [Notes on pixel-level irregularities or AI textures]

        ### Technical Assessment
        [Explain why specific artifacts suggest a specific tool.]
        """
    ),
)

IMAGE_GUIDED_PROMPT = PromptTemplate(
    id="image_guided_v1",
    category=PromptCategory.MEDIA_FORENSICS,
    version="1.0.0",
    description="Mentor-style walkthrough that teaches the user to inspect the image.",
    system_instruction=FORENSIC_MENTOR_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Guide me to look at specific parts of THIS image so I can find the truth myself.

        Step 1: Ask me to zoom in on specific suspicious areas (hands, eyes, shadows).
        Step 2: Explain exactly what to look for (e.g., "Check if the reflection in the
        left eye matches the right eye" or "Look for blurred pixel edges here").
        Step 3: Point out any "perfect" symmetry or strange artifacts typical of AI.

        Teach me how to spot the difference between a bad camera and a manipulated photo.
        """
    ),
)

VIDEO_PROMPT = PromptTemplate(
    id="video_v1",
    category=PromptCategory.MEDIA_FORENSICS,
    version="1.0.0",
    description="Deepfake, face swap and editing analysis of a video clip.",
    system_instruction=FORENSIC_EXPERT_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Perform a forensic video analysis on this clip. Focus on detecting Deepfakes,
        Face Swaps, and Editing Tampering.

        ANALYSIS PROTOCOL:
        1. **Facial Forensics:**
           - **Landmark Stability:** Do facial features jitter or "slide" when the head turns?
           - **Boundary Blending:** Check the hairline and jawline for blurring or mismatched skin tones.
           - **Eye Behavior:** Are blink patterns natural? Do reflections in the eyes match the scene?
           - **Lip Sync:** Does mouth movement precisely match the audio?

        2. **Frame Integrity:**
           - **Temporal Consistency:** Look for flickering lighting or texture popping between frames.
           - **Motion Artifacts:** Do objects warp or bend unnaturally during movement?

        3. **Editing Forensics:**
           - **Jump Cuts:** Identify sudden breaks in continuity used to hide context.
           - **Audio-Visual Sync:** Is there a delay or mismatch indicating replaced audio?

        OUTPUT FORMAT (Markdown):
        ## Video Forensic Report

        **RISK LEVEL:** [Low | Medium | High | Critical]
        **MANIPULATION TYPE:** [None Detected | Deepfake/Face Swap | AI Lip Sync | Traditional Editing]

        ### Anomalies Detected
        * [Timestamp/Frame description]: [Description of anomaly]

        ### Technical Analysis
        * **Facial Consistency:** [Notes on face stability and blending]
        * **Lighting/Physics:** [Notes on temporal lighting consistency]
        * **Sync & Motion:** [Notes on lip-sync and object motion]

        ### Conclusion
        [Final assessment of the clip's legitimacy]
        """
    ),
)

AUDIO_PROMPT = PromptTemplate(
    id="audio_v1",
    category=PromptCategory.MEDIA_FORENSICS,
    version="1.0.0",
    description="Verbatim transcript plus synthetic voice and splicing check.",
    system_instruction=FORENSIC_EXPERT_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Perform a forensic audio analysis.

        Task 1: **Verbatim Transcript**
        Transcribe the audio accurately.

        Task 2: **Forensic Authenticity Check**
        Analyze for signs of Synthetic Voice (AI/TTS) and Audio Splicing.

        ANALYSIS PROTOCOL:
        1. **Synthetic Indicators:** robotic or too-perfect prosody, missing breath
           sounds between long phrases, metallic ringing, clicking or phase issues.
        2. **Splicing/Editing Indicators:** room tone that cuts out between words,
           unnatural shifts in pitch or formants suggesting copy-pasted words.

        OUTPUT FORMAT (Markdown):
        ## Audio Forensic Report

        **TRANSCRIPT:**
        > "[Transcript here...]"

        **AUTHENTICITY VERDICT:** [Likely Human | Suspected AI/Synthetic | Manipulated/Spliced]

        ### Detected Artifacts
        * **Voice Quality:** [Natural vs Metallic/Flat]
        * **Breathing/Pauses:** [Presence of natural breath vs unnatural silence]
        * **Background Ambience:** [Consistent room tone vs gated/spliced silence]

        ### Technical Observation
        [Detailed explanation of specific auditory clues found]
        """
    ),
)

CONVERSATION_PROMPT = PromptTemplate(
    id="conversation_text_v1",
    category=PromptCategory.CONVERSATION,
    version="1.0.0",
    description="Structured manipulation-pattern analysis of a chat transcript.",
    system_instruction=CONVERSATION_ANALYST_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Analyze the following conversation and identify manipulation patterns.

        DETECTION CATEGORIES:
        1. LOVE BOMBING (excessive early affection)
           - "I love you" too soon, overwhelming compliments, claims of instant deep connection.
        2. URGENCY/PRESSURE
           - Time-sensitive requests, guilt-tripping, emotional blackmail.
        3. ISOLATION TACTICS
           - Discouraging contact with family/friends, secrecy requests.
        4. FINANCIAL MANIPULATION
           - Sob stories building toward requests, investment opportunities, requests for gift cards/crypto.
        5. INCONSISTENCIES
           - Changing story details, conflicting timelines, excuses for avoiding video calls.
        6. SCAM SCRIPTS
           - Military deployment, oil rig, stuck in foreign country, inheritance.

        RESPONSE FORMAT (JSON):
        $output_schema

        If the conversation appears genuine with no manipulation:
        - Set overallRiskScore low (0-20) and riskLevel LOW
        - Leave patterns and redFlags empty unless there is a real concern
        - Still note any minor concerns or positive observations in the summary.
        $context_block
        CONVERSATION TO ANALYZE:
        $conversation
        """
    ),
    output_schema=CONVERSATION_ANALYSIS_SCHEMA,
    required_variables={"conversation"},
    optional_variables={"context_block"},
)

OCR_PROMPT = PromptTemplate(
    id="conversation_ocr_v1",
    category=PromptCategory.EXTRACTION,
    version="1.0.0",
    description="Transcribe a chat screenshot preserving speaker turns.",
    system_instruction=TRANSCRIBER_SYSTEM,
    user_prompt_template=(
        "Extract all text from this chat/message screenshot. Preserve the conversation "
        "structure showing who said what. Format as a readable conversation transcript. "
        "Ignore UI elements like battery level or signal strength unless relevant."
    ),
)

IDENTITY_SEARCH_PROMPT = PromptTemplate(
    id="identity_search_v1",
    category=PromptCategory.INVESTIGATION,
    version="1.0.0",
    description="Grounded web investigation of an identity or claim.",
    system_instruction=INVESTIGATOR_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Investigate the following identity or claim using Google Search to detect
        potential catfishing.
        Query: "$query"

        Cross-reference public information. Look for inconsistencies in timeline,
        location, or career claims. If the person is a public figure or has a digital
        footprint, summarize key consistency points. If there are "red flags" (e.g.,
        stolen photos often associated with this name, or scam reports), highlight them.
        """
    ),
    required_variables={"query"},
)

DEEP_REASONING_PROMPT = PromptTemplate(
    id="deep_reasoning_v1",
    category=PromptCategory.INVESTIGATION,
    version="1.0.0",
    description="Long-form risk assessment of a described scenario.",
    system_instruction=INVESTIGATOR_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Analyze the following complex catfishing scenario. Connect the dots between
        behavioral patterns, digital evidence, and psychological manipulation tactics.

        Scenario:
        $scenario

        Provide a comprehensive risk assessment profile.
        """
    ),
    required_variables={"scenario"},
)

PERSONA_PROMPT = PromptTemplate(
    id="persona_synthesis_v1",
    category=PromptCategory.SYNTHESIS,
    version="1.0.0",
    description="Fictional persona portrait for scam-awareness training.",
    system_instruction=PERSONA_SYSTEM,
    user_prompt_template="$prompt",
    required_variables={"prompt"},
)


# =============================================================================
# Registry
# =============================================================================

PROMPT_REGISTRY: dict[str, PromptTemplate] = {}


def register_prompt(template: PromptTemplate) -> None:
    """Register a prompt template in the global registry.

    Raises:
        ValueError: If a prompt with the same ID is already registered.
    """
    if template.id in PROMPT_REGISTRY:
        raise ValueError(f"Prompt '{template.id}' is already registered")
    PROMPT_REGISTRY[template.id] = template


def get_prompt(prompt_id: str) -> PromptTemplate:
    """Retrieve a prompt template by ID.

    Raises:
        KeyError: If no prompt with the given ID exists.
    """
    if prompt_id not in PROMPT_REGISTRY:
        available = ", ".join(sorted(PROMPT_REGISTRY.keys()))
        raise KeyError(f"Prompt '{prompt_id}' not found. Available prompts: {available}")
    return PROMPT_REGISTRY[prompt_id]


def list_prompts(category: PromptCategory | None = None) -> list[PromptTemplate]:
    """List available prompts, optionally filtered by category."""
    templates = list(PROMPT_REGISTRY.values())
    if category is not None:
        templates = [t for t in templates if t.category == category]
    return sorted(templates, key=lambda t: t.id)


def _register_builtin_prompts() -> None:
    for template in [
        IMAGE_AUTO_PROMPT,
        IMAGE_GUIDED_PROMPT,
        VIDEO_PROMPT,
        AUDIO_PROMPT,
        CONVERSATION_PROMPT,
        OCR_PROMPT,
        IDENTITY_SEARCH_PROMPT,
        DEEP_REASONING_PROMPT,
        PERSONA_PROMPT,
    ]:
        register_prompt(template)


_register_builtin_prompts()


# =============================================================================
# Helper Functions
# =============================================================================


def render_output_schema(schema: dict[str, Any]) -> str:
    """Convert schema dict to pretty JSON string for prompt insertion."""
    return json.dumps(schema, indent=2)


def build_context_block(context: str | None) -> str:
    """Format optional user-supplied context for the conversation prompt."""
    if not context or not context.strip():
        return ""
    return f"\nCONTEXT FROM USER: {context.strip()}\n"
