"""Shared pieces of the two fetch strategies."""

import random
from abc import ABC, abstractmethod
from typing import Dict, List

from models.deal import RawExtraction
from models.site_profile import SiteProfile

MAX_LISTINGS_PER_PAGE = 20

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
]

VIEWPORTS = [
    {'width': 1920, 'height': 1080},
    {'width': 1366, 'height': 768},
    {'width': 1440, 'height': 900},
    {'width': 1536, 'height': 864},
]


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def random_viewport() -> Dict[str, int]:
    return dict(random.choice(VIEWPORTS))


def browser_like_headers(user_agent: str) -> Dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


class FetchError(Exception):
    """Raised when a page cannot be fetched or holds no listings."""

    def __init__(self, site: str, message: str):
        super().__init__(f"{site}: {message}")
        self.site = site
        self.message = message


class SelectorNotFoundError(FetchError):
    pass


class HttpStatusError(FetchError):
    def __init__(self, site: str, status: int):
        super().__init__(site, f"HTTP {status}")
        self.status = status


class BaseFetcher(ABC):
    """Strategy interface: one search page in, raw listings out."""

    name: str

    @abstractmethod
    async def fetch(self, url: str, profile: SiteProfile) -> List[RawExtraction]:
        raise NotImplementedError
