import json
import math
from typing import Any, List, Optional, Sequence

from config.logger import logger
from config.settings import Settings
from models.deal import Deal
from models.verdict import AIVerdict
from services.ai_providers import BaseAIProvider, build_providers

ANALYSIS_PROMPT = """You are an expert deal analyst tasked with identifying legitimate high-discount deals and potential pricing glitches. Analyze this product deal:

**Product:** {title}
**Site:** {site}
**Original Price:** {original_price}
**Current Price:** {current_price}
**Discount:** {discount}%
**Availability:** {availability}

Analyze this deal considering:
1. **Price Validity**: Is this discount mathematically correct?
2. **Market Reality**: Is this price realistic for this type of product?
3. **Pricing Glitch Detection**: Could this be a pricing error/system glitch?
4. **Title Analysis**: Does the product title seem legitimate?
5. **Discount Reasonableness**: Is this discount too good to be true?

Respond with a JSON object:
{{
  "isLegitimate": boolean,
  "confidenceScore": number (0-100),
  "pricingGlitchProbability": number (0-100),
  "analysis": "detailed analysis",
  "suspiciousFactors": ["list", "of", "red", "flags"],
  "recommendation": "HIGH|MEDIUM|LOW"
}}

Respond with valid JSON only, no additional text."""

RECOMMENDATIONS = ("HIGH", "MEDIUM", "LOW")


class ConfigurationError(Exception):
    pass


class AIResponseParseError(ValueError):
    pass


class AIJudgeError(Exception):
    """Every provider failed; `errors` keeps one message per provider."""

    def __init__(self, errors: List[str]):
        super().__init__("All AI providers failed: " + "; ".join(errors))
        self.errors = errors


def build_analysis_prompt(deal: Deal) -> str:
    return ANALYSIS_PROMPT.format(
        title=deal.title,
        site=deal.site,
        original_price=f"{deal.original_price:g}" if deal.original_price is not None else "N/A",
        current_price=f"{deal.current_price:g}",
        discount=deal.discount_percentage,
        availability=deal.availability,
    )


def _balanced_objects(text: str):
    """Yields every balanced {...} substring, in order of its opening brace."""
    start = text.find('{')
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == '\\':
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == '{':
                depth += 1
            elif ch == '}':
                depth -= 1
                if depth == 0:
                    yield text[start:i + 1]
                    break
        start = text.find('{', start + 1)


def extract_json_object(text: str) -> dict:
    """First balanced JSON object in text, tolerating prose or code fences around it."""
    for candidate in _balanced_objects(text or ""):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise AIResponseParseError(f"No JSON object found in response: {(text or '')[:200]!r}")


def _pick(data: dict, *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _clamped_number(value: Any, default: float) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return max(0.0, min(100.0, number))


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def parse_ai_response(text: str, provider: str) -> AIVerdict:
    """Builds a verdict from raw model output, defaulting fields that are missing or malformed."""
    data = extract_json_object(text)

    factors = _pick(data, "suspiciousFactors", "suspicious_factors")
    recommendation = _pick(data, "recommendation")
    recommendation = recommendation.strip().upper() if isinstance(recommendation, str) else None
    analysis = _pick(data, "analysis")

    verdict = AIVerdict(
        is_legitimate=_as_bool(_pick(data, "isLegitimate", "is_legitimate")),
        confidence_score=_clamped_number(_pick(data, "confidenceScore", "confidence_score"), 50),
        pricing_glitch_probability=_clamped_number(
            _pick(data, "pricingGlitchProbability", "pricing_glitch_probability"), 0
        ),
        analysis=str(analysis) if analysis else "No analysis provided",
        suspicious_factors=[str(f) for f in factors] if isinstance(factors, list) else [],
        recommendation=recommendation if recommendation in RECOMMENDATIONS else "MEDIUM",
        provider=provider,
    )

    logger.info(
        f"✅ {provider} verdict: legit={verdict.is_legitimate} confidence={verdict.confidence_score:g} "
        f"glitch={verdict.pricing_glitch_probability:g}% rec={verdict.recommendation}"
    )
    return verdict


class AIJudge:
    """Asks each provider in turn; the first parseable answer wins."""

    def __init__(self, providers: Sequence[BaseAIProvider]):
        if not providers:
            raise ConfigurationError("At least one AI provider is required (GEMINI_API_KEY or OPENAI_API_KEY)")
        self.providers = list(providers)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIJudge":
        providers = build_providers(settings)
        if len(providers) == 1:
            logger.warning(f"⚠️ Only {providers[0].name} is configured - no fallback provider")
        return cls(providers)

    async def judge(self, prompt: str) -> AIVerdict:
        errors = []
        for provider in self.providers:
            try:
                text = await provider.complete(prompt)
                return parse_ai_response(text, provider.name)
            except Exception as e:
                errors.append(f"{provider.name}: {e}")
                logger.warning(f"⚠️ {provider.name} failed, trying next provider: {e}")

        logger.error(f"❌ All AI providers failed: {errors}")
        raise AIJudgeError(errors)

    async def analyze(self, deal: Deal) -> AIVerdict:
        logger.info(f"🤖 AI analysis: {deal.title[:50]} ({deal.site}, {deal.discount_percentage}%)")
        return await self.judge(build_analysis_prompt(deal))
