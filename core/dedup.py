import hashlib
import re
from typing import Set

from models.deal import Deal


def normalize_title(title: str) -> str:
    return re.sub(r'\s+', ' ', title.strip().lower())


def deal_hash(deal: Deal) -> str:
    """Identity key: site + normalized title + current price."""
    key = f"{deal.site}-{normalize_title(deal.title)}-{deal.current_price:g}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]


class DedupRegistry:
    """
    Hashes of deals already processed.
    Scoped to its owner (a DealFilter); it only grows until reset() is called.
    """

    def __init__(self):
        self._hashes: Set[str] = set()

    def __len__(self) -> int:
        return len(self._hashes)

    def seen(self, deal: Deal) -> bool:
        """Registers the deal; True when it had been registered before."""
        key = deal_hash(deal)
        if key in self._hashes:
            return True
        self._hashes.add(key)
        return False

    def reset(self):
        self._hashes.clear()
