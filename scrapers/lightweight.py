import asyncio
from typing import Dict, List, Optional, Tuple

import aiohttp

from config.logger import logger
from models.deal import RawExtraction
from models.site_profile import SiteProfile
from scrapers.base import BaseFetcher, FetchError, HttpStatusError, browser_like_headers, random_user_agent
from scrapers.extraction import extract_raw_listings
from scrapers.proxy import ProxyRotator


class HttpFetcher(BaseFetcher):
    """Plain GET + BeautifulSoup, for sites that render listings server side."""

    name = "http"

    def __init__(self, proxy_rotator: Optional[ProxyRotator] = None, timeout: float = 15):
        self.proxy_rotator = proxy_rotator
        self.timeout = timeout

    async def _get(self, url: str, headers: Dict[str, str], proxy: Optional[str]) -> Tuple[int, str]:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            async with session.get(url, proxy=proxy) as response:
                return response.status, await response.text()

    async def fetch(self, url: str, profile: SiteProfile) -> List[RawExtraction]:
        proxy = await self.proxy_rotator.next_proxy() if self.proxy_rotator else None
        headers = browser_like_headers(random_user_agent())

        logger.info(f"🕷️ GET {url}" + (f" via {proxy}" if proxy else ""))
        try:
            status, html = await self._get(url, headers, proxy)
        except asyncio.TimeoutError:
            raise FetchError(profile.name, f"timeout after {self.timeout}s")
        except aiohttp.ClientError as e:
            raise FetchError(profile.name, f"network error: {e}") from e

        if not 200 <= status < 300:
            raise HttpStatusError(profile.name, status)

        return extract_raw_listings(html, profile)
