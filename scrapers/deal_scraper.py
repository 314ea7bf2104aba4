import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from config.logger import logger
from models.deal import Deal
from scrapers.base import BaseFetcher
from scrapers.browser import BrowserFetcher
from scrapers.extraction import normalize_listings
from scrapers.lightweight import HttpFetcher
from scrapers.proxy import ProxyRotator
from scrapers.sites import get_site_profiles

T = TypeVar("T")

RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY = 2.0
INTER_SITE_DELAY = 2.0


async def _sleep(seconds: float):
    await asyncio.sleep(seconds)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    attempts: int = RETRY_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY,
    label: str = "operation",
) -> T:
    """Runs operation up to `attempts` times, sleeping base_delay * 2^(n-1) between tries."""

    def log_attempt(retry_state):
        logger.info(f"🔄 {label}: attempt {retry_state.attempt_number}/{attempts}")

    def log_failure(retry_state):
        logger.warning(
            f"⚠️ {label}: attempt {retry_state.attempt_number}/{attempts} failed: "
            f"{retry_state.outcome.exception()} (retrying in {retry_state.next_action.sleep:g}s)"
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=base_delay, min=0),
        sleep=_sleep,
        before=log_attempt,
        before_sleep=log_failure,
        reraise=True,
    )
    try:
        return await retrying(operation)
    except Exception as e:
        logger.error(f"❌ {label}: failed after {attempts} attempts: {e}")
        raise


@dataclass
class ScrapeReport:
    query: str
    sites_attempted: int = 0
    sites_succeeded: int = 0
    sites_failed: int = 0
    total_deals: int = 0
    deals_per_site: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    avg_discount: int = 0
    top_deal: Optional[Deal] = None

    @property
    def sites_scraped(self) -> List[str]:
        return list(self.deals_per_site.keys())

    @property
    def success_rate(self) -> int:
        if not self.sites_attempted:
            return 0
        return round(self.sites_succeeded / self.sites_attempted * 100)


class DealScraper:
    """
    Scrapes the registered sites one after another.
    Sites flagged requires_browser go through the shared BrowserFetcher, the
    rest through HttpFetcher. A site that keeps failing is skipped.
    """

    def __init__(
        self,
        proxies: Optional[List[str]] = None,
        browser_fetcher: Optional[BaseFetcher] = None,
        http_fetcher: Optional[BaseFetcher] = None,
        inter_site_delay: float = INTER_SITE_DELAY,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ):
        self.proxy_rotator = ProxyRotator(proxies)
        self.browser_fetcher = browser_fetcher or BrowserFetcher(self.proxy_rotator)
        self.http_fetcher = http_fetcher or HttpFetcher(self.proxy_rotator)
        self.inter_site_delay = inter_site_delay
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.last_report: Optional[ScrapeReport] = None

    async def _start_browser(self) -> bool:
        start = getattr(self.browser_fetcher, "start", None)
        if start is None:
            return True
        try:
            await start()
            return True
        except Exception as e:
            logger.warning(f"⚠️ Browser failed to start, using plain HTTP for every site: {e}")
            return False

    async def _close_browser(self):
        close = getattr(self.browser_fetcher, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            logger.error(f"❌ Error closing browser: {e}")

    async def scrape(self, query: str, site_names: Optional[Iterable[str]] = None) -> List[Deal]:
        """Scrapes every requested site for `query`; deals come back sorted by discount."""
        profiles = get_site_profiles(site_names)
        report = ScrapeReport(query=query, sites_attempted=len(profiles))
        self.last_report = report

        logger.info(f"🔍 Scraping '{query}' on {[p.name for p in profiles]}")

        all_deals: List[Deal] = []
        browser_ready = False
        try:
            if any(p.requires_browser for p in profiles):
                browser_ready = await self._start_browser()

            for i, profile in enumerate(profiles):
                if i > 0:
                    await asyncio.sleep(self.inter_site_delay)

                search_url = profile.search_url(query)
                fetcher = self.browser_fetcher if (profile.requires_browser and browser_ready) else self.http_fetcher

                logger.info(f"🏪 Scraping {profile.name} ({fetcher.name})")
                try:
                    listings = await retry_with_backoff(
                        lambda: fetcher.fetch(search_url, profile),
                        attempts=self.retry_attempts,
                        base_delay=self.retry_base_delay,
                        label=profile.name,
                    )
                except Exception as e:
                    report.sites_failed += 1
                    report.errors[profile.name] = str(e)
                    logger.error(f"💥 {profile.name} skipped: {e}")
                    continue

                site_deals = normalize_listings(listings, profile, search_url)
                all_deals.extend(site_deals)
                report.sites_succeeded += 1
                report.deals_per_site[profile.name] = len(site_deals)
                logger.info(f"📊 {profile.name}: {len(site_deals)} deals from {len(listings)} listings")
        finally:
            await self._close_browser()

        all_deals.sort(key=lambda d: d.discount_percentage, reverse=True)

        report.total_deals = len(all_deals)
        if all_deals:
            report.avg_discount = round(sum(d.discount_percentage for d in all_deals) / len(all_deals))
            report.top_deal = all_deals[0]

        logger.info(
            f"📈 Scrape done: {report.sites_succeeded}/{report.sites_attempted} sites "
            f"({report.success_rate}%), {report.total_deals} deals, avg discount {report.avg_discount}%"
        )
        return all_deals
