from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config.logger import logger
from core.database import DealStorage
from core.filtering import DealFilter, FilteringSummary
from core.scoring import GLITCH_THRESHOLD
from models.deal import FilteredDeal
from scrapers.deal_scraper import DealScraper, ScrapeReport
from services.notifier import TelegramNotifier

ALL_SITES = ("Amazon", "eBay", "Walmart", "Best Buy", "Target")


@dataclass(frozen=True)
class Campaign:
    name: str
    query: str
    min_discount: int
    min_confidence: int
    max_results: int
    sites: Tuple[str, ...] = ALL_SITES
    # None means on demand only
    interval_hours: Optional[int] = None
    glitches_only: bool = False


CAMPAIGNS: Dict[str, Campaign] = {
    "electronics": Campaign(
        name="electronics",
        query="electronics deals clearance sale",
        min_discount=70, min_confidence=60, max_results=50,
        interval_hours=4,
    ),
    "home_garden": Campaign(
        name="home_garden",
        query="home garden tools furniture clearance",
        min_discount=60, min_confidence=55, max_results=40,
        sites=("Amazon", "eBay", "Walmart", "Target"),
        interval_hours=6,
    ),
    "fashion": Campaign(
        name="fashion",
        query="clothing shoes accessories sale clearance",
        min_discount=50, min_confidence=50, max_results=30,
        sites=("Amazon", "eBay", "Target"),
        interval_hours=8,
    ),
    "pricing_glitch": Campaign(
        name="pricing_glitch",
        query="apple iphone samsung laptop gaming console",
        min_discount=80, min_confidence=70, max_results=25,
        glitches_only=True,
    ),
}


def get_campaign(name: str) -> Campaign:
    key = name.strip().lower().replace("-", "_")
    if key not in CAMPAIGNS:
        raise KeyError(f"Unknown campaign: {name} (available: {', '.join(CAMPAIGNS)})")
    return CAMPAIGNS[key]


@dataclass
class RunResult:
    campaign: str
    scraped: int = 0
    accepted: int = 0
    saved: int = 0
    notified: int = 0
    save_errors: int = 0
    deals: List[FilteredDeal] = field(default_factory=list)
    scrape_report: Optional[ScrapeReport] = None
    filtering_summary: Optional[FilteringSummary] = None


class DealPipeline:
    """Scrape -> filter -> persist -> notify, for one campaign at a time."""

    def __init__(
        self,
        scraper: DealScraper,
        deal_filter: DealFilter,
        storage: DealStorage,
        notifier: Optional[TelegramNotifier] = None,
    ):
        self.scraper = scraper
        self.deal_filter = deal_filter
        self.storage = storage
        self.notifier = notifier

    async def run(self, campaign: Campaign) -> RunResult:
        logger.info(f"🚀 Campaign '{campaign.name}': {campaign.query}")
        result = RunResult(campaign=campaign.name)

        deals = await self.scraper.scrape(campaign.query, list(campaign.sites))
        result.scraped = len(deals)
        result.scrape_report = self.scraper.last_report

        if not deals:
            logger.info(f"📭 Campaign '{campaign.name}': nothing scraped")
            return result

        accepted = await self.deal_filter.filter(
            deals,
            min_discount=campaign.min_discount,
            min_confidence=campaign.min_confidence,
            max_results=campaign.max_results,
        )
        result.filtering_summary = self.deal_filter.last_summary

        if campaign.glitches_only:
            accepted = [d for d in accepted if d.pricing_glitch_probability >= GLITCH_THRESHOLD]
            logger.info(f"🧪 {len(accepted)} probable pricing glitches")

        result.accepted = len(accepted)
        result.deals = accepted

        for deal in accepted:
            try:
                self.storage.save_deal(deal)
                result.saved += 1
            except Exception as e:
                result.save_errors += 1
                logger.error(f"❌ Error saving deal '{deal.title[:40]}': {e}")
                continue

            if self.notifier and await self.notifier.send_deal(deal):
                result.notified += 1

        if self.notifier:
            await self.notifier.send_run_summary(campaign.name, result.scraped, result.accepted, result.saved)

        logger.info(
            f"🏁 Campaign '{campaign.name}' done: {result.scraped} scraped, "
            f"{result.accepted} accepted, {result.saved} saved, {result.notified} notified"
        )
        return result
