"""
Retailer registry.
Each SiteProfile bundles the search URL builder, CSS selectors and price parser
used by both fetchers.
"""

import re
from typing import Iterable, List, Optional
from urllib.parse import quote

from models.site_profile import SiteProfile, SiteSelectors

# The upper bound must not be a percentage ("$59.99 - 40% off")
_RANGE_RE = re.compile(r'(\d+(?:\.\d{1,2})?)\s*-\s*(\d+(?:\.\d{1,2})?)(?![\d.]|\s*%)')
# "99 99" when dollars and cents live in separate elements
_SPLIT_CENTS_RE = re.compile(r'(?<![\d.])(\d+) (\d{2})(?![\d.])')
_PRICE_RE = re.compile(r'(\d+)(?:\.(\d{1,2}))?')


def parse_price(text: str) -> Optional[float]:
    """Parses scraped price text into dollars, None when no price is found."""
    if not text:
        return None

    # "$" acts as a separator so "$49.99$49.99" keeps its two prices apart
    clean_text = text.replace(',', '').replace('$', ' ')
    clean_text = re.sub(r'\s+', ' ', clean_text).strip()
    # "99 . 99" when the decimal point is its own element
    clean_text = re.sub(r'(\d) ?\. ?(\d)', r'\1.\2', clean_text)

    range_match = _RANGE_RE.search(clean_text)
    if range_match:
        return min(float(range_match.group(1)), float(range_match.group(2)))

    split_match = _SPLIT_CENTS_RE.search(clean_text)
    if split_match:
        return float(f"{split_match.group(1)}.{split_match.group(2)}")

    price_match = _PRICE_RE.search(clean_text)
    if price_match:
        dollars = int(price_match.group(1))
        cents = int(price_match.group(2).ljust(2, '0')) if price_match.group(2) else 0
        return round(dollars + cents / 100, 2)

    return None


SITE_PROFILES: List[SiteProfile] = [
    SiteProfile(
        name="Amazon",
        base_url="https://www.amazon.com",
        search_url=lambda query: f"https://www.amazon.com/s?k={quote(query, safe='')}&ref=sr_pg_1",
        requires_browser=True,
        selectors=SiteSelectors(
            product_container='[data-component-type="s-search-result"]',
            title='h2 a span, h2 span',
            original_price='.a-price.a-text-price .a-offscreen, .a-text-price',
            current_price='.a-price:not(.a-text-price) .a-offscreen, .a-price',
            image='img.s-image',
            link='h2 a, a.a-link-normal',
            availability='.a-size-base-plus',
        ),
        price_parser=parse_price,
    ),
    SiteProfile(
        name="eBay",
        base_url="https://www.ebay.com",
        search_url=lambda query: f"https://www.ebay.com/sch/i.html?_nkw={quote(query, safe='')}",
        requires_browser=False,
        selectors=SiteSelectors(
            product_container='.s-item',
            title='.s-item__title',
            original_price='.s-item__trending-price .STRIKETHROUGH',
            current_price='.s-item__price',
            image='.s-item__image img',
            link='.s-item__link',
        ),
        price_parser=parse_price,
    ),
    SiteProfile(
        name="Walmart",
        base_url="https://www.walmart.com",
        search_url=lambda query: f"https://www.walmart.com/search?q={quote(query, safe='')}",
        requires_browser=True,
        selectors=SiteSelectors(
            product_container='[data-testid="item"]',
            title='[data-testid="product-title"]',
            original_price='[data-testid="product-price-strikethrough"]',
            current_price='[data-testid="product-price"]',
            image='[data-testid="product-image"] img',
            link='a',
        ),
        price_parser=parse_price,
    ),
    SiteProfile(
        name="Best Buy",
        base_url="https://www.bestbuy.com",
        search_url=lambda query: f"https://www.bestbuy.com/site/searchpage.jsp?st={quote(query, safe='')}",
        requires_browser=True,
        selectors=SiteSelectors(
            product_container='.sku-item',
            title='.sku-header a',
            original_price='.pricing-price__regular-price',
            current_price='.priceView-customer-price span, .pricing-current-price',
            image='.product-image img',
            link='.sku-header a',
        ),
        price_parser=parse_price,
    ),
    SiteProfile(
        name="Target",
        base_url="https://www.target.com",
        search_url=lambda query: f"https://www.target.com/s?searchTerm={quote(query, safe='')}",
        requires_browser=True,
        selectors=SiteSelectors(
            product_container='[data-test="product-item"]',
            title='[data-test="product-title"]',
            original_price='[data-test="product-price-reg"]',
            current_price='[data-test="product-price"]',
            image='[data-test="product-image"] img',
            link='a',
            availability='[data-test="fulfillment-availability"]',
        ),
        price_parser=parse_price,
    ),
]


def get_site_profile(name: str) -> Optional[SiteProfile]:
    for profile in SITE_PROFILES:
        if profile.name.lower() == name.strip().lower():
            return profile
    return None


def get_site_profiles(names: Optional[Iterable[str]] = None) -> List[SiteProfile]:
    """Profiles in registry order; unknown names are ignored."""
    if names is None:
        return list(SITE_PROFILES)
    wanted = {name.strip().lower() for name in names}
    return [profile for profile in SITE_PROFILES if profile.name.lower() in wanted]
