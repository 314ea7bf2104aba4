import asyncio
import sys
import time
from typing import Dict, List, Optional

from config.logger import logger
from config.settings import Settings, load_settings
from core.database import DealStorage
from core.filtering import DealFilter
from core.pipeline import CAMPAIGNS, Campaign, DealPipeline, get_campaign
from scrapers.deal_scraper import DealScraper
from services.ai_judge import AIJudge, ConfigurationError
from services.notifier import TelegramNotifier

DEAL_TTL_DAYS = 7


def build_pipeline(settings: Settings) -> DealPipeline:
    # Raises ConfigurationError when no AI provider is set up
    judge = AIJudge.from_settings(settings)
    return DealPipeline(
        scraper=DealScraper(proxies=settings.proxies),
        deal_filter=DealFilter(judge),
        storage=DealStorage(settings.db_path),
        notifier=TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id),
    )


def due_campaigns(last_runs: Dict[str, float], now: float) -> List[Campaign]:
    """Scheduled campaigns whose interval has elapsed (never-run ones are due)."""
    due = []
    for campaign in CAMPAIGNS.values():
        if campaign.interval_hours is None:
            continue
        last = last_runs.get(campaign.name)
        if last is None or now - last >= campaign.interval_hours * 3600:
            due.append(campaign)
    return due


async def run_once(pipeline: DealPipeline, campaign: Campaign):
    # A fresh filter per run keeps dedup scoped to the run
    pipeline.deal_filter = DealFilter(pipeline.deal_filter.judge)
    return await pipeline.run(campaign)


async def run_bot(settings: Settings):
    logger.info("🔥 Starting Deal Hunter...")
    pipeline = build_pipeline(settings)

    last_runs: Dict[str, float] = {}
    cycle_count = 0

    while True:
        try:
            cycle_count += 1
            due = due_campaigns(last_runs, time.time())
            logger.info(f"--- Cycle #{cycle_count} [{len(due)} campaigns due] ---")

            for campaign in due:
                await run_once(pipeline, campaign)
                last_runs[campaign.name] = time.time()

            removed = pipeline.storage.clean_old_deals(DEAL_TTL_DAYS)
            if removed:
                logger.info(f"🧹 Removed {removed} deals older than {DEAL_TTL_DAYS} days")
            logger.info(f"📉 Total deals stored: {pipeline.storage.get_total_count()}")

        except Exception as e:
            logger.error(f"❌ Error in cycle loop: {e}", exc_info=True)
            await asyncio.sleep(60)
            continue

        logger.info("💤 Sleeping until next cycle...")
        await asyncio.sleep(settings.cycle_sleep_seconds)


def search_campaign(settings: Settings, query: str) -> Campaign:
    """Ad-hoc campaign using the thresholds and sites from the environment."""
    return Campaign(
        name="search",
        query=query,
        min_discount=settings.min_discount,
        min_confidence=settings.min_confidence,
        max_results=settings.max_results,
        sites=tuple(settings.target_sites),
    )


async def run_single(settings: Settings, campaign: Campaign):
    pipeline = build_pipeline(settings)
    result = await run_once(pipeline, campaign)
    logger.info(f"📦 {result.campaign}: {result.saved} deals saved")


def resolve_campaign(settings: Settings, argv: List[str]) -> Optional[Campaign]:
    """Campaign named on the command line, or None for the scheduled loop."""
    if len(argv) > 2 and argv[1] == "search":
        return search_campaign(settings, " ".join(argv[2:]))
    if len(argv) > 1:
        return get_campaign(argv[1])
    return None


def run(argv: List[str]) -> int:
    # Usage:
    #   python main.py                      scheduled campaigns, forever
    #   python main.py pricing_glitch       one preset campaign
    #   python main.py search "<query>"     one ad-hoc search
    settings = load_settings()
    try:
        campaign = resolve_campaign(settings, argv)
    except KeyError as e:
        logger.error(f"❌ {e}")
        return 2

    try:
        if campaign:
            asyncio.run(run_single(settings, campaign))
        else:
            asyncio.run(run_bot(settings))
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Bot stopped by user.")
    return 0


if __name__ == "__main__":
    sys.exit(run(sys.argv))
