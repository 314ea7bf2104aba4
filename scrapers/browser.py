from typing import List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from playwright_stealth import Stealth

from config.logger import logger
from models.deal import RawExtraction
from models.site_profile import SiteProfile
from scrapers.base import BaseFetcher, FetchError, SelectorNotFoundError, random_user_agent, random_viewport
from scrapers.extraction import extract_raw_listings
from scrapers.proxy import ProxyRotator

BLOCKED_RESOURCE_TYPES = {"image", "stylesheet", "font", "media"}

LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-blink-features=AutomationControlled',
    '--disable-dev-shm-usage',
    '--disable-extensions',
    '--disable-gpu',
    '--disable-background-networking',
    '--disable-default-apps',
    '--disable-sync',
]

# Runs before any page script
HIDE_AUTOMATION_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
window.chrome = { runtime: {} };
"""


async def _block_resources(route):
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserFetcher(BaseFetcher):
    """
    Headless Chromium shared by every site of a run.
    The browser starts on first use and must be released with close(), or by
    using the fetcher as an async context manager.
    """

    name = "browser"

    def __init__(
        self,
        proxy_rotator: Optional[ProxyRotator] = None,
        navigation_timeout: int = 30000,
        selector_timeout: int = 10000,
        headless: bool = True,
    ):
        self.proxy_rotator = proxy_rotator
        self.navigation_timeout = navigation_timeout
        self.selector_timeout = selector_timeout
        self.headless = headless
        self._stealth = Stealth()
        self._playwright = None
        self._browser = None

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    async def start(self):
        if self._browser:
            return

        logger.info("🚀 Launching browser...")
        launch_kwargs = {"headless": self.headless, "args": LAUNCH_ARGS}
        proxy = await self.proxy_rotator.next_proxy() if self.proxy_rotator else None
        if proxy:
            launch_kwargs["proxy"] = {"server": proxy}

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(**launch_kwargs)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.info("✅ Browser ready")

    async def close(self):
        if self._browser:
            await self._browser.close()
            self._browser = None
            logger.info("🔒 Browser closed")
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def fetch(self, url: str, profile: SiteProfile) -> List[RawExtraction]:
        await self.start()

        context = await self._browser.new_context(
            user_agent=random_user_agent(),
            viewport=random_viewport(),
            locale="en-US",
        )
        try:
            page = await context.new_page()
            try:
                await self._stealth.apply_stealth_async(page)
                await page.add_init_script(HIDE_AUTOMATION_SCRIPT)
                await page.route("**/*", _block_resources)

                logger.info(f"🤖 Navigating to {url}")
                await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout)

                container = profile.selectors.product_container
                try:
                    await page.wait_for_selector(container, timeout=self.selector_timeout)
                except PlaywrightTimeoutError:
                    raise SelectorNotFoundError(profile.name, f"timed out waiting for '{container}'")

                html = await page.content()
            finally:
                await page.close()
        except PlaywrightTimeoutError as e:
            raise FetchError(profile.name, f"navigation timeout: {e}") from e
        except PlaywrightError as e:
            raise FetchError(profile.name, f"browser error: {e}") from e
        finally:
            await context.close()

        return extract_raw_listings(html, profile)
