from dataclasses import dataclass
from math import floor

from config.logger import logger
from core.validation import MathValidation
from models.verdict import AIVerdict

BASE_SCORE = 50
GLITCH_THRESHOLD = 70


def calculate_deal_score(math: MathValidation, verdict: AIVerdict, suspicious_count: int) -> int:
    score = BASE_SCORE

    # --- DISCOUNT QUALITY (up to 30 pts, -20 when the math does not hold) ---
    if math.valid:
        score += min(30, math.actual_discount * 0.3)
    else:
        score -= 20

    # --- AI CONFIDENCE (up to 40 pts) ---
    score += verdict.confidence_score / 100 * 40

    # --- SUSPICION PENALTY (5 pts each, capped at 30) ---
    score -= min(30, suspicious_count * 5)

    # --- GLITCH BONUS ---
    if verdict.pricing_glitch_probability > GLITCH_THRESHOLD:
        score += 20

    # Halves round up
    final = max(0, min(100, floor(score + 0.5)))
    logger.debug(f"🧮 Score {final} (raw {score:.1f}, suspicious={suspicious_count})")
    return final


@dataclass
class Decision:
    accepted: bool
    score: int
    reason: str
    qualifies_as_high_discount: bool
    qualifies_as_glitch: bool


def _format_number(value: float) -> str:
    return f"{value:.1f}".rstrip('0').rstrip('.')


def decide(math: MathValidation, verdict: AIVerdict, score: int, min_discount: float, min_confidence: float) -> Decision:
    """Accepts when (high discount OR likely glitch) AND the score clears min_confidence."""
    high_discount = math.actual_discount >= min_discount
    glitch = verdict.pricing_glitch_probability >= GLITCH_THRESHOLD
    accepted = (high_discount or glitch) and score >= min_confidence

    if glitch:
        reason = f"Potential pricing glitch ({_format_number(verdict.pricing_glitch_probability)}% probability)"
    else:
        reason = f"High discount deal ({math.actual_discount:.1f}% off)"

    return Decision(
        accepted=accepted,
        score=score,
        reason=reason,
        qualifies_as_high_discount=high_discount,
        qualifies_as_glitch=glitch,
    )


def rank_key(confidence_score: float, pricing_glitch_probability: float) -> float:
    return confidence_score + 0.5 * pricing_glitch_probability
