from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class SiteSelectors:
    product_container: str
    title: str
    current_price: str
    image: str
    link: str
    original_price: Optional[str] = None
    availability: Optional[str] = None


@dataclass(frozen=True)
class SiteProfile:
    name: str
    base_url: str
    search_url: Callable[[str], str]
    requires_browser: bool
    selectors: SiteSelectors
    price_parser: Callable[[str], Optional[float]]
