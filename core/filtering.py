import asyncio
from dataclasses import dataclass
from typing import List, Optional

from config.logger import logger
from core.dedup import DedupRegistry
from core.scoring import GLITCH_THRESHOLD, calculate_deal_score, decide, rank_key
from core.suspicion import detect_suspicious_pricing
from core.validation import validate_discount_math
from models.deal import Deal, FilteredDeal
from services.ai_judge import AIJudge

PAUSE_EVERY = 10
PAUSE_SECONDS = 1.0


@dataclass
class FilteringSummary:
    input_deals: int = 0
    processed_deals: int = 0
    duplicates_removed: int = 0
    math_validation_failures: int = 0
    processing_errors: int = 0
    low_confidence_filtered: int = 0
    final_results: int = 0
    average_confidence_score: int = 0
    average_pricing_glitch_probability: int = 0
    top_recommendations: int = 0
    pricing_glitches_found: int = 0


class DealFilter:
    """
    Runs every scraped deal through dedup, math validation, heuristics and the
    AI judge, keeping the ones that clear the caller's thresholds.
    The dedup registry belongs to the instance: a new DealFilter starts clean.
    """

    def __init__(
        self,
        judge: AIJudge,
        dedup: Optional[DedupRegistry] = None,
        pause_every: int = PAUSE_EVERY,
        pause_seconds: float = PAUSE_SECONDS,
    ):
        self.judge = judge
        self.dedup = dedup or DedupRegistry()
        self.pause_every = pause_every
        self.pause_seconds = pause_seconds
        self.last_summary: Optional[FilteringSummary] = None

    async def _evaluate(self, deal: Deal, summary: FilteringSummary, min_discount: float, min_confidence: float) -> Optional[FilteredDeal]:
        if self.dedup.seen(deal):
            summary.duplicates_removed += 1
            logger.info(f"⏭️ Duplicate: {deal.title[:40]}")
            return None

        math = validate_discount_math(deal)
        if math.rejected:
            summary.math_validation_failures += 1
            logger.info(f"❌ Math validation failed: {deal.title[:40]} {math.flags}")
            return None

        suspicious = detect_suspicious_pricing(deal)
        verdict = await self.judge.analyze(deal)

        score = calculate_deal_score(math, verdict, len(suspicious))
        decision = decide(math, verdict, score, min_discount, min_confidence)

        if not decision.accepted:
            summary.low_confidence_filtered += 1
            reason = "low confidence" if score < min_confidence else "below discount and glitch thresholds"
            logger.info(f"⚠️ Filtered out ({reason}, score {score}): {deal.title[:40]}")
            return None

        logger.info(f"✅ Accepted (score {score}, glitch {verdict.pricing_glitch_probability:g}%): {deal.title[:40]}")
        return FilteredDeal(
            **deal.model_dump(),
            confidence_score=score,
            pricing_glitch_probability=verdict.pricing_glitch_probability,
            filtering_reason=decision.reason,
            validation_flags=math.flags,
            ai_analysis=verdict.analysis,
            suspicious_factors=suspicious + verdict.suspicious_factors,
            recommendation_level=verdict.recommendation,
        )

    async def filter(
        self,
        deals: List[Deal],
        min_discount: float = 90,
        min_confidence: float = 60,
        max_results: int = 50,
    ) -> List[FilteredDeal]:
        """Accepted deals, best first, at most max_results of them."""
        summary = FilteringSummary(input_deals=len(deals))
        self.last_summary = summary

        logger.info(
            f"🔧 Filtering {len(deals)} deals (min discount {min_discount}%, "
            f"min confidence {min_confidence}, max {max_results})"
        )

        accepted: List[FilteredDeal] = []
        for deal in deals:
            summary.processed_deals += 1
            try:
                filtered = await self._evaluate(deal, summary, min_discount, min_confidence)
                if filtered:
                    accepted.append(filtered)
            except Exception as e:
                summary.processing_errors += 1
                logger.error(f"❌ Error processing deal '{deal.title[:40]}': {e}")

            # Crude outbound rate control for the AI providers
            if summary.processed_deals % self.pause_every == 0:
                await asyncio.sleep(self.pause_seconds)

        accepted.sort(key=lambda d: rank_key(d.confidence_score, d.pricing_glitch_probability), reverse=True)
        results = accepted[:max_results]

        summary.final_results = len(results)
        if results:
            summary.average_confidence_score = round(sum(d.confidence_score for d in results) / len(results))
            summary.average_pricing_glitch_probability = round(
                sum(d.pricing_glitch_probability for d in results) / len(results)
            )
        summary.top_recommendations = sum(1 for d in results if d.recommendation_level == "HIGH")
        summary.pricing_glitches_found = sum(1 for d in results if d.pricing_glitch_probability >= GLITCH_THRESHOLD)

        logger.info(
            f"🎯 Filtering done: {summary.final_results}/{summary.input_deals} kept, "
            f"{summary.duplicates_removed} duplicates, {summary.math_validation_failures} math failures, "
            f"{summary.low_confidence_filtered} filtered, {summary.processing_errors} errors"
        )
        return results
