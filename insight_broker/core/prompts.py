"""
Prompt compilation.

Builds the instruction text sent to the generation service from a request.
Compilation is a pure function of the request: unknown model, tone, length,
region or industry keys fall back to defaults instead of failing.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from .features import FeatureKind, get_profile
from .requests import (
    ContentRefinementRequest,
    GenerationRequest,
    MarketAnalysisRequest,
    StrategicBriefRequest,
)


_NO_PREAMBLE = (
    'CRITICAL: Do NOT include any preamble, meta-commentary, or phrases like '
    '"Sure!", "Here is", "I will"'
)
_NO_PREAMBLE_LET_ME = _NO_PREAMBLE + ', "Let me"'

MODEL_PROMPTS: Dict[FeatureKind, Dict[str, str]] = {
    FeatureKind.MARKET_ANALYSIS: {
        "professional": (
            "You are a professional market research analyst. "
            f"{_NO_PREAMBLE}. Output ONLY the requested JSON format. Never be sarcastic."
        ),
        "market": (
            "You are an expert market intelligence analyst. "
            f"{_NO_PREAMBLE}. Output ONLY the requested JSON format. Never be sarcastic."
        ),
    },
    FeatureKind.CONTENT_REFINEMENT: {
        "creative": (
            "You are a creative content editor. Refine content with flair and "
            f"engaging language. {_NO_PREAMBLE_LET_ME}. Output ONLY the refined "
            "content. Never be sarcastic."
        ),
        "professional": (
            "You are a professional content editor. Refine content with clarity, "
            f"precision, and business-appropriate language. {_NO_PREAMBLE_LET_ME}. "
            "Output ONLY the refined content. Never be sarcastic."
        ),
        "local": (
            "You are a Filipino content editor. Refine content and optionally "
            "translate or mix with Tagalog/Filipino when appropriate. "
            f"{_NO_PREAMBLE_LET_ME}. Output ONLY the refined content. Never be sarcastic."
        ),
    },
    FeatureKind.STRATEGIC_BRIEF: {
        "creative": (
            "You are a creative strategist. Generate innovative and creative "
            f"business strategies. {_NO_PREAMBLE_LET_ME}. Start directly with the "
            "content. Never be sarcastic. Output only the strategic content."
        ),
        "professional": (
            "You are a professional business consultant. Generate formal, "
            f"structured, and data-driven business strategies. {_NO_PREAMBLE_LET_ME}. "
            "Start directly with the content. Never be sarcastic. Output only "
            "the strategic content."
        ),
        "local": (
            "You are a concise strategy assistant. Provide brief, direct, and "
            f"practical business recommendations. {_NO_PREAMBLE_LET_ME}. Start "
            "directly with the content. Never be sarcastic. Output only the "
            "strategic content."
        ),
        "quick": (
            "You are a rapid strategy generator. Provide quick, bullet-pointed "
            f"strategic insights and action items. {_NO_PREAMBLE_LET_ME}. Start "
            "directly with the content. Never be sarcastic. Output only the "
            "strategic content."
        ),
    },
}

REGION_CONTEXT: Dict[str, str] = {
    "global": "Global market",
    "philippines": "Philippine market",
}

INDUSTRY_CONTEXT: Dict[str, str] = {
    "ecommerce": "E-commerce industry",
    "services": "Service-based business",
    "saas": "SaaS/Software industry",
    "local": "Local business",
}

TONE_INSTRUCTIONS: Dict[str, str] = {
    "friendly": (
        "Use a warm, approachable, and conversational tone. Be helpful and "
        "personable. Never be sarcastic or use humor that undermines the content."
    ),
    "formal": (
        "Use a formal, professional tone. Maintain proper grammar and business "
        "etiquette. Never be sarcastic or playful."
    ),
    "persuasive": (
        "Use persuasive language that motivates action. Highlight benefits and "
        "create urgency. Never be sarcastic or dismissive."
    ),
    "professional": (
        "Write in a formal, business-appropriate tone. Use corporate language, "
        "avoid contractions, maintain objectivity. Structure content with clear "
        "headings and bullet points. Sound authoritative and data-driven. Never "
        "be sarcastic or playful."
    ),
    "casual": (
        "Write in a friendly, conversational tone. Use everyday language and a "
        "relaxed style. Be approachable and easy to understand. Never be "
        "sarcastic or include jokes."
    ),
    "informative": (
        "Write in an educational, informative tone. Focus on clarity, provide "
        "detailed explanations, use examples. Be thorough and instructive. Never "
        "be sarcastic or condescending."
    ),
    "creative": (
        "Write in an imaginative, creative tone. Use vivid metaphors and "
        "storytelling elements. Be bold with ideas. Never be sarcastic, ironic, "
        "or use humor that undermines professionalism."
    ),
}

LENGTH_INSTRUCTIONS: Dict[str, str] = {
    "short": (
        "Keep the output concise and brief. Remove unnecessary words. "
        "Aim for 50% of original length."
    ),
    "medium": (
        "Maintain similar length to the original. Focus on improving quality "
        "without changing length significantly."
    ),
    "long": (
        "Expand the content with more details, examples, and elaboration. "
        "Aim for 150-200% of original length."
    ),
}

MARKET_ANALYSIS_SHAPE = (
    '{"marketOverview":{"marketSize":"description","customerBehavior":"description",'
    '"buyingMotivations":"description"},"targetAudience":{"demographics":"description",'
    '"painPoints":"description","buyingTriggers":"description"},"competitorSnapshot":'
    '{"typicalCompetitors":"description","strengths":"description","weaknesses":'
    '"description"},"trendsOpportunities":{"emergingTrends":"description","marketGaps":'
    '"description","underservedNeeds":"description"},"recommendations":["action 1",'
    '"action 2","action 3","action 4","action 5"]}'
)

BRIEF_SECTIONS = (
    "Executive Summary",
    "Key Objectives",
    "Target Audience Analysis",
    "Strategic Recommendations",
    "Action Items",
    "Success Metrics",
)

_GREETING_PHRASES = '"Sure!", "Certainly!", "Here\'s", "I\'ll", "Let me", "Great!"'


@dataclass(frozen=True)
class CompiledPrompt:
    """Instruction text plus the side-channel attachment for the gateway."""
    kind: FeatureKind
    model_key: str
    instruction: str
    attachment_url: Optional[str] = None


def resolve_model_key(kind: FeatureKind, model: Optional[str]) -> str:
    """Return the model key to report back for a request.

    An omitted key resolves to the kind's default. An unknown key is kept
    as given; only its instruction fragment falls back to the default.
    """
    return model or get_profile(kind).default_model


def select_system_prompt(kind: FeatureKind, model_key: str) -> str:
    """Look up the instruction fragment for (kind, model key)."""
    prompts = MODEL_PROMPTS[kind]
    return prompts.get(model_key) or prompts[get_profile(kind).default_model]


def compile_prompt(request: GenerationRequest) -> CompiledPrompt:
    """Build the instruction for any generation request.

    Args:
        request: One of the three feature requests

    Returns:
        CompiledPrompt carrying the instruction and any attachment reference
    """
    if isinstance(request, MarketAnalysisRequest):
        return _compile_market_analysis(request)
    if isinstance(request, ContentRefinementRequest):
        return _compile_content_refinement(request)
    if isinstance(request, StrategicBriefRequest):
        return _compile_strategic_brief(request)
    raise TypeError(f"Unsupported request type: {type(request).__name__}")


def _compile_market_analysis(request: MarketAnalysisRequest) -> CompiledPrompt:
    model_key = resolve_model_key(request.kind, request.model)
    system_prompt = select_system_prompt(request.kind, model_key)

    if request.region == "custom" and request.custom_region:
        region_text = request.custom_region
    else:
        region_text = REGION_CONTEXT.get(request.region or "", "Global market")
    industry_text = INDUSTRY_CONTEXT.get(request.industry or "", "General business")
    depth_text = "detailed" if request.depth == "detailed" else "brief"
    time_text = {
        "12months": "next 12 months",
        "6months": "next 6 months",
    }.get(request.time_focus or "", "current")

    instruction = f"""{system_prompt}

STRICT OUTPUT RULES:
- Do NOT start with greetings or phrases like "Sure!", "Certainly!", "Here's", "I'll", "Let me"
- Do NOT add meta-commentary or explanations
- Do NOT be sarcastic, ironic, or use humor
- Do NOT include phrases like "Market Analysis Summary:" or similar headers before JSON
- Output ONLY valid JSON, nothing else

Market: "{request.market.strip()}"
Context: {region_text}, {industry_text}, {depth_text} analysis, {time_text} focus.

Return this EXACT JSON structure only:

{MARKET_ANALYSIS_SHAPE}

Start directly with {{ - no text before or after the JSON."""

    return CompiledPrompt(kind=request.kind, model_key=model_key, instruction=instruction)


def _compile_content_refinement(request: ContentRefinementRequest) -> CompiledPrompt:
    model_key = resolve_model_key(request.kind, request.model)
    system_prompt = select_system_prompt(request.kind, model_key)

    if request.tone == "custom" and request.custom_tone:
        tone_instruction = request.custom_tone
    else:
        tone_instruction = TONE_INSTRUCTIONS.get(request.tone or "", TONE_INSTRUCTIONS["formal"])
    length_instruction = LENGTH_INSTRUCTIONS.get(request.length or "", LENGTH_INSTRUCTIONS["medium"])

    instruction = f"""{system_prompt}

STRICT OUTPUT RULES:
- Do NOT start with greetings, acknowledgments, or phrases like {_GREETING_PHRASES}
- Do NOT add meta-commentary about what you're doing
- Do NOT be sarcastic, ironic, or use humor
- Do NOT include phrases like "upgraded version", "enhanced take", "here's the refined version"
- Output ONLY the refined content directly
- No explanations before or after the content

TONE: {tone_instruction}

LENGTH: {length_instruction}

Refine this content:

\"\"\"
{request.content.strip()}
\"\"\"

Output the refined content only, starting immediately with the refined text."""

    return CompiledPrompt(kind=request.kind, model_key=model_key, instruction=instruction)


def _compile_strategic_brief(request: StrategicBriefRequest) -> CompiledPrompt:
    model_key = resolve_model_key(request.kind, request.model)
    system_prompt = select_system_prompt(request.kind, model_key)

    tone_instruction = TONE_INSTRUCTIONS.get(request.tone, "") if request.tone else ""
    tone_block = f"{tone_instruction}\n\n" if tone_instruction else ""
    sections = "\n".join(
        f"{number}. {section}" for number, section in enumerate(BRIEF_SECTIONS, start=1)
    )
    attachment_note = (
        "Context file/image provided. Incorporate relevant insights."
        if request.image_url else ""
    )

    instruction = f"""{system_prompt}

{tone_block}STRICT OUTPUT RULES:
- Do NOT start with greetings, acknowledgments, or phrases like {_GREETING_PHRASES}, "Absolutely!"
- Do NOT add meta-commentary about what you're doing or going to do
- Do NOT be sarcastic, ironic, or use humor
- Do NOT include phrases like "upgraded version", "enhanced take", "here's a better version"
- Start IMMEDIATELY with the first section heading
- Output ONLY the strategic content in a clean, professional format

Business Objective: "{request.objective.strip()}"

Generate a strategic brief with these sections:

{sections}

{attachment_note}

Start directly with "## {BRIEF_SECTIONS[0]}" - no preamble."""

    return CompiledPrompt(
        kind=request.kind,
        model_key=model_key,
        instruction=instruction,
        attachment_url=request.image_url or None
    )
