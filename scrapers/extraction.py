"""
Listing extraction and normalization.
Both fetchers end up here: raw text fields are pulled out of the page markup,
then turned into Deal records.
"""

import math
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from config.logger import logger
from models.deal import Deal, RawExtraction
from models.site_profile import SiteProfile
from scrapers.base import MAX_LISTINGS_PER_PAGE, SelectorNotFoundError

# Below this discount a listing carries no signal for the filters downstream
EXTRACTION_DISCOUNT_FLOOR = 10


def _text(item, selector: Optional[str]) -> Optional[str]:
    if not selector:
        return None
    el = item.select_one(selector)
    if not el:
        return None
    return el.get_text(" ", strip=True) or None


def _attr(item, selector: str, *names: str) -> Optional[str]:
    el = item.select_one(selector)
    if not el:
        return None
    for name in names:
        value = el.get(name)
        if value:
            return value
    return None


def extract_raw_listings(html: str, profile: SiteProfile, limit: int = MAX_LISTINGS_PER_PAGE) -> List[RawExtraction]:
    """Pulls up to `limit` raw listings out of a search results page."""
    soup = BeautifulSoup(html, 'html.parser')
    selectors = profile.selectors

    items = soup.select(selectors.product_container)
    if not items:
        raise SelectorNotFoundError(profile.name, f"no elements match '{selectors.product_container}'")

    logger.info(f"📦 {profile.name}: {len(items)} product containers found")

    listings = []
    for item in items[:limit]:
        try:
            title = _text(item, selectors.title)
            current_price_text = _text(item, selectors.current_price)
            if not title or not current_price_text:
                continue

            listings.append(RawExtraction(
                title=title,
                current_price_text=current_price_text,
                original_price_text=_text(item, selectors.original_price),
                image_url=_attr(item, selectors.image, 'src', 'data-src'),
                product_url=_attr(item, selectors.link, 'href'),
                availability=_text(item, selectors.availability) or "Unknown",
            ))
        except Exception as e:
            logger.warning(f"   ⚠️ Error extracting {profile.name} listing: {e}")
            continue

    return listings


def resolve_url(url: Optional[str], base_url: str) -> Optional[str]:
    """Makes a relative URL absolute; absolute, protocol-relative and data URLs pass through."""
    if not url:
        return None
    if url.startswith(("http://", "https://", "//", "data:")):
        return url
    return urljoin(base_url.rstrip('/') + '/', url)


def compute_discount(original_price: Optional[float], current_price: float) -> float:
    """Unrounded percentage off; 0 when there is no higher original price."""
    if original_price and original_price > current_price:
        return 100 * (original_price - current_price) / original_price
    return 0.0


def normalize_listing(raw: RawExtraction, profile: SiteProfile, fallback_url: str) -> Optional[Deal]:
    """Turns a raw listing into a Deal, None when it should be skipped."""
    title = raw.title.strip() if raw.title else ""
    if not title:
        return None

    current_price = profile.price_parser(raw.current_price_text)
    if not current_price or current_price <= 0:
        return None

    original_price = profile.price_parser(raw.original_price_text) if raw.original_price_text else None

    discount = compute_discount(original_price, current_price)
    if discount < EXTRACTION_DISCOUNT_FLOOR:
        return None
    # Halves round up
    discount = int(math.floor(discount + 0.5))

    return Deal(
        title=title,
        original_price=original_price,
        current_price=current_price,
        discount_percentage=discount,
        url=resolve_url(raw.product_url, profile.base_url) or fallback_url,
        image=resolve_url(raw.image_url, profile.base_url),
        site=profile.name,
        availability=raw.availability or "Unknown",
    )


def normalize_listings(listings: List[RawExtraction], profile: SiteProfile, fallback_url: str) -> List[Deal]:
    deals = []
    for raw in listings:
        try:
            deal = normalize_listing(raw, profile, fallback_url)
        except Exception as e:
            logger.warning(f"   ⚠️ Skipping {profile.name} listing ({raw.title[:30] if raw.title else '?'}): {e}")
            continue
        if deal:
            deals.append(deal)
    return deals
