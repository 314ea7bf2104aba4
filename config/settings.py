"""
Environment-driven configuration.
Values come from the process environment, with a local .env loaded first.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_SITES = ["Amazon", "eBay", "Walmart", "Best Buy", "Target"]


def _split_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Settings(BaseModel):
    proxies: List[str] = Field(default_factory=list)

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    target_sites: List[str] = Field(default_factory=lambda: list(DEFAULT_SITES))
    min_discount: int = Field(default=90, ge=0, le=100)
    min_confidence: int = Field(default=60, ge=0, le=100)
    max_results: int = Field(default=50, ge=1)

    db_path: str = "data/deals.db"
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    cycle_sleep_seconds: int = 1200

    @property
    def has_ai_provider(self) -> bool:
        return bool(self.gemini_api_key or self.openai_api_key)


def load_settings() -> Settings:
    """Builds Settings from .env and the process environment."""
    load_dotenv()

    # A single premium proxy service takes precedence over the rotating list
    proxy_service = os.getenv("PROXY_SERVICE_URL")
    proxies = [proxy_service] if proxy_service else _split_list(os.getenv("PROXY_LIST"))

    return Settings(
        proxies=proxies,
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        target_sites=_split_list(os.getenv("TARGET_SITES")) or list(DEFAULT_SITES),
        min_discount=_int_env("MIN_DISCOUNT", 90),
        min_confidence=_int_env("MIN_CONFIDENCE", 60),
        max_results=_int_env("MAX_RESULTS", 50),
        db_path=os.getenv("DB_PATH", "data/deals.db"),
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
        telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,
        cycle_sleep_seconds=_int_env("CYCLE_SLEEP_SECONDS", 1200),
    )
