"""
Deep Intelligence Agent

One structured LLM call per resolved prospect entity, producing a
DeepIntelResult (scout score, confidence and nine structured insight fields).

Model selection is an ordered list of tiers. A tier is tried only when the
user's energy balance covers its minimum; any failure falls through to the
next tier, and when every tier fails a default result is returned. The
agent never raises to its caller.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from anthropic import AsyncAnthropic
from supabase import Client

from prospect_intel import config
from prospect_intel.database import get_supabase_service
from prospect_intel.models.prospect_intel import DeepIntelResult
from prospect_intel.services.energy_service import EnergyService, get_energy_service

logger = logging.getLogger(__name__)

AGENT_NAME = "deep_intel_agent"
AGENT_VERSION = "v10"
DEFAULT_MODEL_LABEL = "default"


@dataclass(frozen=True)
class ModelTier:
    """One model the agent may call, gated by a minimum energy balance."""
    name: str
    model: str
    min_energy: int = 0


def default_tiers() -> List[ModelTier]:
    """Premium first (energy-gated), then the always-affordable standard model."""
    return [
        ModelTier(
            name="premium",
            model=config.DEEP_INTEL_PREMIUM_MODEL,
            min_energy=config.DEEP_INTEL_PREMIUM_ENERGY_THRESHOLD,
        ),
        ModelTier(name="standard", model=config.DEEP_INTEL_STANDARD_MODEL, min_energy=0),
    ]


DEEP_INTEL_PROMPT = """You are a sales intelligence analyst for a direct-selling professional.
Analyze the prospect below and estimate how likely they are to become a customer or business partner.

## Prospect
{entity_json}

## Source Excerpt
{source_excerpt}

Respond with ONLY a JSON object in exactly this shape:
{{
  "scout_score": <integer 0-100>,
  "confidence_score": <number 0-1>,
  "personality_profile": {{"type": "...", "traits": ["..."], "communication_style": "..."}},
  "pain_points": ["..."],
  "financial_signals": {{"level": "low|medium|high", "signals": ["..."]}},
  "business_interest": ["..."],
  "life_events": ["..."],
  "emotional_state": {{"mood": "...", "openness": "low|medium|high"}},
  "engagement_prediction": {{"best_channel": "...", "best_time": "...", "likelihood": "low|medium|high"}},
  "upsell_readiness": {{"level": "low|medium|high", "reason": "..."}},
  "closing_likelihood": {{"level": "low|medium|high", "reason": "..."}},
  "top_opportunities": ["..."]
}}

Be factual. Use empty lists or objects where the data gives no signal."""


# =============================================================================
# Response parsing
# =============================================================================

def _strip_code_fence(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        lines = content.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        content = "\n".join(lines)
    return content


def _clamp(value: Any, low: float, high: float, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(low, min(high, number))


def parse_deep_intel_response(raw: Any) -> Optional[DeepIntelResult]:
    """
    Turn a model response into a DeepIntelResult.

    Accepts a JSON string (optionally wrapped in a markdown code fence) or an
    already-parsed dict. Returns None for anything that is not a JSON object.
    """
    data = raw
    if isinstance(raw, str):
        try:
            data = json.loads(_strip_code_fence(raw))
        except json.JSONDecodeError:
            return None
    if not isinstance(data, dict):
        return None

    defaults = DeepIntelResult()
    fields: Dict[str, Any] = {
        "scout_score": int(round(_clamp(data.get("scout_score"), 0, 100, defaults.scout_score))),
        "confidence_score": _clamp(data.get("confidence_score"), 0.0, 1.0, defaults.confidence_score),
    }
    for name in DeepIntelResult.model_fields:
        if name in fields:
            continue
        value = data.get(name)
        expected = dict if isinstance(getattr(defaults, name), dict) else list
        fields[name] = value if isinstance(value, expected) else expected()
    return DeepIntelResult(**fields)


# =============================================================================
# Agent
# =============================================================================

class DeepIntelAgent:
    """
    Usage:
        agent = get_deep_intel_agent()
        result = await agent.run_deep_intel(user_id, entity_id, {"entity": {...}, "source": "..."})
    """

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        supabase: Optional[Client] = None,
        energy_service: Optional[EnergyService] = None,
        tiers: Optional[List[ModelTier]] = None,
    ):
        self.client = client
        if self.client is None and config.ANTHROPIC_API_KEY:
            self.client = AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY)
        self.supabase = supabase or get_supabase_service()
        self.energy_service = energy_service or get_energy_service()
        self.tiers = tiers if tiers is not None else default_tiers()

    @property
    def is_available(self) -> bool:
        """Check if a model client is configured."""
        return self.client is not None

    def build_prompt(self, context: Dict[str, Any]) -> str:
        entity = context.get("entity") or {}
        return DEEP_INTEL_PROMPT.format(
            entity_json=json.dumps(entity, indent=2, default=str),
            source_excerpt=context.get("source") or "Not available",
        )

    def select_tiers(self, energy: int) -> List[ModelTier]:
        """Tiers the user can afford, in preference order."""
        return [tier for tier in self.tiers if energy >= tier.min_energy]

    async def _call_model(self, tier: ModelTier, prompt: str) -> str:
        response = await self.client.messages.create(
            model=tier.model,
            max_tokens=config.DEEP_INTEL_MAX_TOKENS,
            temperature=0.3,
            messages=[{"role": "user", "content": prompt}],
        )

        result_text = ""
        for block in response.content:
            if hasattr(block, "text"):
                result_text += block.text
        return result_text

    async def _generate(self, user_id: str, prompt: str) -> Tuple[Optional[str], str]:
        """Walk the affordable tiers. Returns (raw output or None, model used)."""
        if not self.is_available:
            logger.warning("[DEEP_INTEL] No model client configured, using default result")
            return None, DEFAULT_MODEL_LABEL

        energy = await self.energy_service.get_energy_balance(user_id)
        for tier in self.select_tiers(energy):
            try:
                raw = await self._call_model(tier, prompt)
                if raw and raw.strip():
                    return raw, tier.model
                logger.warning(f"[DEEP_INTEL] Tier {tier.name} ({tier.model}) returned empty output")
            except Exception as e:
                logger.warning(f"[DEEP_INTEL] Tier {tier.name} ({tier.model}) failed: {e}")

        return None, DEFAULT_MODEL_LABEL

    async def _record_audit(
        self,
        user_id: str,
        entity_id: str,
        model_used: str,
        raw_output: Optional[str],
        result: DeepIntelResult,
        success: bool,
    ) -> None:
        try:
            self.supabase.table("ai_agent_results").insert({
                "user_id": user_id,
                "prospect_entity_id": entity_id,
                "agent_name": AGENT_NAME,
                "agent_version": AGENT_VERSION,
                "model_used": model_used,
                "raw_output": raw_output,
                "parsed_output": result.model_dump(),
                "success": success,
            }).execute()
        except Exception as e:
            logger.warning(f"[DEEP_INTEL] Could not write audit record for entity {entity_id}: {e}")

    async def run_deep_intel(
        self,
        user_id: str,
        entity_id: str,
        context: Dict[str, Any],
    ) -> DeepIntelResult:
        """Analyze one entity. Failures degrade to the default result."""
        try:
            raw, model_used = await self._generate(user_id, self.build_prompt(context))
        except Exception as e:
            logger.error(f"[DEEP_INTEL] Unexpected failure for entity {entity_id}: {e}")
            raw, model_used = None, DEFAULT_MODEL_LABEL

        parsed = parse_deep_intel_response(raw) if raw is not None else None
        if raw is not None and parsed is None:
            logger.warning(f"[DEEP_INTEL] Unparseable output from {model_used} for entity {entity_id}")

        result = parsed or DeepIntelResult()
        await self._record_audit(user_id, entity_id, model_used, raw, result, parsed is not None)

        logger.info(
            f"[DEEP_INTEL] Entity {entity_id}: score={result.scout_score}, "
            f"confidence={result.confidence_score:.2f}, model={model_used}"
        )
        return result


# Singleton instance
_deep_intel_agent: Optional[DeepIntelAgent] = None


def get_deep_intel_agent() -> DeepIntelAgent:
    """Get or create deep intel agent instance."""
    global _deep_intel_agent
    if _deep_intel_agent is None:
        _deep_intel_agent = DeepIntelAgent()
    return _deep_intel_agent
