import re
from typing import List

from models.deal import Deal

ROUND_PRICES = {0.1, 0.5, 1.0, 5.0, 10.0, 20.0, 50.0}
PREMIUM_BRANDS = ['apple', 'samsung', 'sony', 'nike', 'adidas', 'louis vuitton', 'gucci', 'prada']
_LONG_DIGIT_RUN = re.compile(r'\d{10,}')


def detect_suspicious_pricing(deal: Deal) -> List[str]:
    """Heuristic pricing-glitch signals. None is fatal alone; each one lowers the score."""
    factors = []

    if deal.current_price < 1:
        factors.append("Price under $1 - likely pricing error")

    if round(deal.current_price, 2) == 0.01:
        factors.append("Penny pricing - classic pricing glitch")

    if deal.current_price in ROUND_PRICES and deal.original_price and deal.original_price > 100:
        factors.append("Suspiciously round pricing for expensive item")

    title = deal.title.lower()
    if deal.current_price < 20 and any(brand in title for brand in PREMIUM_BRANDS):
        factors.append("High-end brand at very low price - potential glitch")

    if len(title) < 10:
        factors.append("Very short product title - possibly incomplete")

    if _LONG_DIGIT_RUN.search(title):
        factors.append("Title contains long number sequences - possibly corrupted")

    if 'limited' in deal.availability.lower() and deal.discount_percentage > 90:
        factors.append("Limited availability with extreme discount - possible error")

    return factors
