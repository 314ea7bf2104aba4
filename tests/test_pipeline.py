import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

import main
from core.pipeline import CAMPAIGNS, DealPipeline, get_campaign
from services.notifier import TelegramNotifier, format_deal_message


def make_pipeline(deals, accepted, storage=None, notifier=None):
    scraper = MagicMock()
    scraper.scrape = AsyncMock(return_value=deals)
    scraper.last_report = MagicMock(name="report")

    deal_filter = MagicMock()
    deal_filter.filter = AsyncMock(return_value=accepted)
    deal_filter.last_summary = MagicMock(name="summary")

    if notifier is None:
        notifier = MagicMock()
        notifier.send_deal = AsyncMock(return_value=True)
        notifier.send_run_summary = AsyncMock(return_value=True)

    return DealPipeline(scraper, deal_filter, storage or MagicMock(), notifier)


# --- campaigns ---

def test_campaign_presets():
    electronics = CAMPAIGNS["electronics"]
    assert (electronics.min_discount, electronics.min_confidence, electronics.max_results) == (70, 60, 50)
    assert electronics.interval_hours == 4
    assert "Best Buy" not in CAMPAIGNS["home_garden"].sites
    assert CAMPAIGNS["fashion"].sites == ("Amazon", "eBay", "Target")
    assert CAMPAIGNS["pricing_glitch"].glitches_only
    assert CAMPAIGNS["pricing_glitch"].interval_hours is None


def test_get_campaign_accepts_dashes():
    assert get_campaign("Home-Garden").name == "home_garden"
    with pytest.raises(KeyError):
        get_campaign("groceries")


def test_due_campaigns():
    now = 100000.0
    assert [c.name for c in main.due_campaigns({}, now)] == ["electronics", "home_garden", "fashion"]

    last_runs = {"electronics": now - 3600, "home_garden": now - 7 * 3600, "fashion": now - 60}
    assert [c.name for c in main.due_campaigns(last_runs, now)] == ["home_garden"]


# --- pipeline ---

def test_run_scrapes_filters_saves_and_notifies(make_deal, make_filtered_deal):
    deals = [make_deal(), make_deal(title="Other listing on sale")]
    accepted = [make_filtered_deal()]
    pipeline = make_pipeline(deals, accepted)
    campaign = CAMPAIGNS["fashion"]

    result = asyncio.run(pipeline.run(campaign))

    pipeline.scraper.scrape.assert_awaited_once_with(campaign.query, ["Amazon", "eBay", "Target"])
    pipeline.deal_filter.filter.assert_awaited_once_with(deals, min_discount=50, min_confidence=50, max_results=30)
    pipeline.storage.save_deal.assert_called_once_with(accepted[0])
    pipeline.notifier.send_deal.assert_awaited_once_with(accepted[0])
    pipeline.notifier.send_run_summary.assert_awaited_once_with("fashion", 2, 1, 1)

    assert (result.scraped, result.accepted, result.saved, result.notified) == (2, 1, 1, 1)
    assert result.scrape_report is pipeline.scraper.last_report
    assert result.filtering_summary is pipeline.deal_filter.last_summary


def test_save_failure_is_logged_and_run_continues(make_deal, make_filtered_deal):
    accepted = [make_filtered_deal(title="First deal on sale"), make_filtered_deal(title="Second deal on sale")]
    storage = MagicMock()
    storage.save_deal.side_effect = [Exception("database is locked"), {"hash": "x"}]
    pipeline = make_pipeline([make_deal()], accepted, storage=storage)

    result = asyncio.run(pipeline.run(CAMPAIGNS["electronics"]))

    assert result.save_errors == 1
    assert result.saved == 1
    pipeline.notifier.send_deal.assert_awaited_once_with(accepted[1])


def test_glitch_campaign_keeps_only_probable_glitches(make_deal, make_filtered_deal):
    glitch = make_filtered_deal(title="Gaming console glitch", pricing_glitch_probability=85)
    ordinary = make_filtered_deal(title="Ordinary laptop discount", pricing_glitch_probability=30)
    pipeline = make_pipeline([make_deal()], [glitch, ordinary])

    result = asyncio.run(pipeline.run(CAMPAIGNS["pricing_glitch"]))

    assert result.deals == [glitch]
    pipeline.storage.save_deal.assert_called_once_with(glitch)


def test_empty_scrape_skips_filtering():
    pipeline = make_pipeline([], [])

    result = asyncio.run(pipeline.run(CAMPAIGNS["electronics"]))

    assert result.scraped == 0
    pipeline.deal_filter.filter.assert_not_awaited()


# --- notifier ---

def test_format_deal_message(make_filtered_deal):
    deal = make_filtered_deal(title="Sony <Bravia> 55\" TV", original_price=1000.0, current_price=80.0)

    message = format_deal_message(deal)

    assert "HIGH DISCOUNT DEAL (92.0% OFF)" in message
    assert "Sony &lt;Bravia&gt;" in message
    assert "<s>$1,000.00</s>" in message
    assert "$80.00" in message
    assert "confidence 85/100" in message
    assert "VIEW DEAL" in message


def test_notifier_without_token_is_silent(make_filtered_deal):
    notifier = TelegramNotifier()
    assert not notifier.is_configured
    assert asyncio.run(notifier.send_deal(make_filtered_deal())) is False


def test_notifier_falls_back_to_text_when_photo_fails(make_filtered_deal):
    notifier = TelegramNotifier(chat_id="-100123")
    notifier.bot = MagicMock()
    notifier.bot.send_photo = AsyncMock(side_effect=Exception("wrong file identifier"))
    notifier.bot.send_message = AsyncMock()

    assert asyncio.run(notifier.send_deal(make_filtered_deal())) is True
    notifier.bot.send_message.assert_awaited_once()
    assert notifier.bot.send_message.await_args.kwargs["chat_id"] == "-100123"


def test_search_campaign_uses_environment_thresholds():
    from config.settings import Settings

    settings = Settings(target_sites=["eBay", "Target"], min_discount=75, min_confidence=65, max_results=10)
    campaign = main.search_campaign(settings, "robot vacuum")

    assert campaign.query == "robot vacuum"
    assert campaign.sites == ("eBay", "Target")
    assert (campaign.min_discount, campaign.min_confidence, campaign.max_results) == (75, 65, 10)
    assert not campaign.glitches_only


def test_resolve_campaign_from_arguments():
    from config.settings import Settings

    settings = Settings()
    assert main.resolve_campaign(settings, ["main.py"]) is None
    assert main.resolve_campaign(settings, ["main.py", "pricing-glitch"]) is CAMPAIGNS["pricing_glitch"]
    assert main.resolve_campaign(settings, ["main.py", "search", "air", "fryer"]).query == "air fryer"


def test_unknown_campaign_exits_with_usage_error(monkeypatch):
    from config.settings import Settings

    monkeypatch.setattr(main, "load_settings", lambda: Settings())
    run_single = AsyncMock()
    monkeypatch.setattr(main, "run_single", run_single)

    assert main.run(["main.py", "black_friday"]) == 2
    run_single.assert_not_called()


def test_key_error_inside_a_run_is_not_reported_as_unknown_campaign(monkeypatch):
    from config.settings import Settings

    monkeypatch.setattr(main, "load_settings", lambda: Settings())
    monkeypatch.setattr(main, "run_single", AsyncMock(side_effect=KeyError("price")))

    with pytest.raises(KeyError, match="price"):
        main.run(["main.py", "electronics"])
