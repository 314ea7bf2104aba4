import time
from typing import Callable, Dict, List, Optional, Tuple

import aiohttp

from config.logger import logger

HEALTH_CHECK_URL = "https://httpbin.org/ip"
HEALTH_CHECK_TIMEOUT = 5
HEALTH_CACHE_TTL = 5 * 60


class ProxyRotator:
    """
    Round-robin over the configured proxies.
    Health results are cached per proxy for HEALTH_CACHE_TTL seconds; the cache
    lives as long as the rotator (one per DealScraper).
    """

    def __init__(self, proxies: Optional[List[str]] = None, clock: Callable[[], float] = time.monotonic):
        self.proxies = list(proxies or [])
        self.index = 0
        self.clock = clock
        self._health: Dict[str, Tuple[bool, float]] = {}

    async def _request_through(self, proxy: str) -> bool:
        timeout = aiohttp.ClientTimeout(total=HEALTH_CHECK_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(HEALTH_CHECK_URL, proxy=proxy) as response:
                return response.status == 200

    async def check_health(self, proxy: str) -> bool:
        now = self.clock()
        cached = self._health.get(proxy)
        if cached and (now - cached[1]) < HEALTH_CACHE_TTL:
            return cached[0]

        logger.info(f"🔍 Checking proxy health: {proxy}")
        try:
            working = await self._request_through(proxy)
        except Exception as e:
            logger.warning(f"⚠️ Proxy health check failed for {proxy}: {e}")
            working = False

        self._health[proxy] = (working, now)
        return working

    async def next_proxy(self) -> Optional[str]:
        """Next healthy proxy, or None to go direct after one full pass."""
        if not self.proxies:
            return None

        for _ in range(len(self.proxies)):
            proxy = self.proxies[self.index % len(self.proxies)]
            self.index += 1
            if await self.check_health(proxy):
                logger.info(f"🌐 Using proxy: {proxy}")
                return proxy

        logger.warning("⚠️ No healthy proxies available, using direct connection")
        return None
