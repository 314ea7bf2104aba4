import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scrapers import browser
from scrapers.base import FetchError, HttpStatusError, SelectorNotFoundError
from scrapers.browser import BrowserFetcher
from scrapers.lightweight import HttpFetcher
from scrapers.proxy import HEALTH_CACHE_TTL, ProxyRotator
from scrapers.sites import get_site_profile

EBAY = get_site_profile("eBay")
AMAZON = get_site_profile("Amazon")

EBAY_PAGE = """
<li class="s-item">
  <div class="s-item__title">Nintendo Switch OLED</div>
  <span class="s-item__price">$149.99</span>
  <span class="s-item__trending-price"><span class="STRIKETHROUGH">$349.99</span></span>
  <div class="s-item__image"><img src="https://i.ebayimg.com/switch.jpg"></div>
  <a class="s-item__link" href="https://www.ebay.com/itm/42">view</a>
</li>
"""


# --- HttpFetcher ---

def test_http_fetch_returns_raw_listings():
    fetcher = HttpFetcher()
    fetcher._get = AsyncMock(return_value=(200, EBAY_PAGE))

    listings = asyncio.run(fetcher.fetch("https://www.ebay.com/sch/i.html?_nkw=switch", EBAY))

    assert len(listings) == 1
    assert listings[0].title == "Nintendo Switch OLED"
    headers = fetcher._get.await_args.args[1]
    assert headers["User-Agent"]
    assert headers["Accept-Language"].startswith("en-US")


def test_http_fetch_raises_on_non_2xx():
    fetcher = HttpFetcher()
    fetcher._get = AsyncMock(return_value=(503, "Service Unavailable"))

    with pytest.raises(HttpStatusError) as exc:
        asyncio.run(fetcher.fetch("https://www.ebay.com/sch/i.html?_nkw=switch", EBAY))
    assert exc.value.status == 503


def test_http_fetch_wraps_network_errors():
    fetcher = HttpFetcher()
    fetcher._get = AsyncMock(side_effect=aiohttp.ClientConnectionError("connection reset"))

    with pytest.raises(FetchError):
        asyncio.run(fetcher.fetch("https://www.ebay.com/sch/i.html?_nkw=switch", EBAY))


def test_http_fetch_without_listings_raises_selector_error():
    fetcher = HttpFetcher()
    fetcher._get = AsyncMock(return_value=(200, "<html><body>captcha</body></html>"))

    with pytest.raises(SelectorNotFoundError):
        asyncio.run(fetcher.fetch("https://www.ebay.com/sch/i.html?_nkw=switch", EBAY))


def test_http_fetch_uses_rotator_proxy():
    rotator = MagicMock()
    rotator.next_proxy = AsyncMock(return_value="http://proxy:8080")
    fetcher = HttpFetcher(rotator)
    fetcher._get = AsyncMock(return_value=(200, EBAY_PAGE))

    asyncio.run(fetcher.fetch("https://www.ebay.com/sch/i.html?_nkw=switch", EBAY))

    assert fetcher._get.await_args.args[2] == "http://proxy:8080"


# --- ProxyRotator ---

class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_rotator_without_proxies_goes_direct():
    assert asyncio.run(ProxyRotator().next_proxy()) is None


def test_rotator_skips_unhealthy_and_caches_results():
    clock = FakeClock()
    rotator = ProxyRotator(["http://p1", "http://p2"], clock=clock)
    rotator._request_through = AsyncMock(side_effect=lambda proxy: proxy == "http://p2")

    assert asyncio.run(rotator.next_proxy()) == "http://p2"
    assert rotator._request_through.await_count == 2

    # Within the cache window no new health checks are made
    assert asyncio.run(rotator.next_proxy()) == "http://p2"
    assert rotator._request_through.await_count == 2

    clock.now += HEALTH_CACHE_TTL + 1
    asyncio.run(rotator.next_proxy())
    assert rotator._request_through.await_count == 4


def test_rotator_falls_back_to_direct_when_all_unhealthy():
    rotator = ProxyRotator(["http://p1", "http://p2"])
    rotator._request_through = AsyncMock(side_effect=aiohttp.ClientError("refused"))

    assert asyncio.run(rotator.next_proxy()) is None
    assert asyncio.run(rotator.check_health("http://p1")) is False


# --- BrowserFetcher ---

def _mock_browser(page):
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    mock_browser = MagicMock()
    mock_browser.new_context = AsyncMock(return_value=context)
    mock_browser.close = AsyncMock()
    return mock_browser, context


def _mock_page(html="", wait_error=None):
    page = MagicMock()
    for method in ("add_init_script", "route", "goto", "close"):
        setattr(page, method, AsyncMock())
    page.wait_for_selector = AsyncMock(side_effect=wait_error)
    page.content = AsyncMock(return_value=html)
    return page


def _fetcher_with(mock_browser):
    fetcher = BrowserFetcher()
    fetcher._stealth = MagicMock(apply_stealth_async=AsyncMock())
    fetcher._browser = mock_browser
    return fetcher


def test_browser_fetch_extracts_and_closes_page():
    amazon_html = """
    <div data-component-type="s-search-result">
      <h2><a href="/dp/B01"><span>Apple AirPods Pro 2nd Generation</span></a></h2>
      <span class="a-price"><span class="a-offscreen">$89.99</span></span>
      <span class="a-price a-text-price"><span class="a-offscreen">$249.00</span></span>
      <img class="s-image" src="https://m.media-amazon.com/airpods.jpg">
    </div>
    """
    page = _mock_page(amazon_html)
    mock_browser, context = _mock_browser(page)
    fetcher = _fetcher_with(mock_browser)

    listings = asyncio.run(fetcher.fetch("https://www.amazon.com/s?k=airpods", AMAZON))

    assert listings[0].title == "Apple AirPods Pro 2nd Generation"
    assert listings[0].current_price_text == "$89.99"
    assert listings[0].original_price_text == "$249.00"
    fetcher._stealth.apply_stealth_async.assert_awaited_once_with(page)
    page.wait_for_selector.assert_awaited_once()
    assert page.wait_for_selector.await_args.args[0] == AMAZON.selectors.product_container
    page.close.assert_awaited_once()
    context.close.assert_awaited_once()


def test_browser_selector_timeout_raises_and_still_closes_page():
    page = _mock_page(wait_error=PlaywrightTimeoutError("Timeout 10000ms exceeded"))
    mock_browser, context = _mock_browser(page)
    fetcher = _fetcher_with(mock_browser)

    with pytest.raises(SelectorNotFoundError):
        asyncio.run(fetcher.fetch("https://www.amazon.com/s?k=airpods", AMAZON))

    page.close.assert_awaited_once()
    context.close.assert_awaited_once()


def test_browser_context_closed_when_new_page_fails():
    mock_browser, context = _mock_browser(_mock_page())
    context.new_page = AsyncMock(side_effect=PlaywrightError("Target closed"))
    fetcher = _fetcher_with(mock_browser)

    with pytest.raises(FetchError):
        asyncio.run(fetcher.fetch("https://www.amazon.com/s?k=airpods", AMAZON))

    context.close.assert_awaited_once()


def test_browser_context_closed_when_page_close_fails():
    page = _mock_page("<div data-component-type='s-search-result'></div>")
    page.close = AsyncMock(side_effect=PlaywrightError("Page already closed"))
    mock_browser, context = _mock_browser(page)
    fetcher = _fetcher_with(mock_browser)

    with pytest.raises(FetchError):
        asyncio.run(fetcher.fetch("https://www.amazon.com/s?k=airpods", AMAZON))

    context.close.assert_awaited_once()


def test_browser_close_releases_everything():
    mock_browser, _ = _mock_browser(_mock_page())
    fetcher = _fetcher_with(mock_browser)
    playwright = MagicMock(stop=AsyncMock())
    fetcher._playwright = playwright

    asyncio.run(fetcher.close())

    mock_browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    assert not fetcher.is_started


def test_browser_start_failure_stops_playwright(monkeypatch):
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(side_effect=Exception("Executable doesn't exist"))
    playwright.stop = AsyncMock()
    monkeypatch.setattr(browser, "async_playwright", lambda: MagicMock(start=AsyncMock(return_value=playwright)))

    fetcher = BrowserFetcher()
    with pytest.raises(Exception, match="Executable"):
        asyncio.run(fetcher.start())

    playwright.stop.assert_awaited_once()
    assert not fetcher.is_started


def test_browser_start_is_idempotent(monkeypatch):
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=MagicMock())
    starter = MagicMock(start=AsyncMock(return_value=playwright))
    monkeypatch.setattr(browser, "async_playwright", lambda: starter)

    fetcher = BrowserFetcher()

    async def start_twice():
        await fetcher.start()
        await fetcher.start()

    asyncio.run(start_twice())
    assert playwright.chromium.launch.await_count == 1
    assert fetcher.is_started
