import html
from typing import Optional

from telegram import Bot
from telegram.constants import ParseMode
from telegram.request import HTTPXRequest

from config.logger import logger
from models.deal import FilteredDeal

RECOMMENDATION_BADGES = {"HIGH": "🟢", "MEDIUM": "🟡", "LOW": "🔴"}


def format_deal_message(deal: FilteredDeal) -> str:
    # Layout:
    # 1. Reason (bold)
    # 2. Product title
    # 3. Prices
    # 4. Scores
    # 5. Site + link
    message = f"🔥 <b>{html.escape(deal.filtering_reason.upper())}</b>\n\n"
    message += f"{html.escape(deal.title)}\n\n"

    if deal.original_price and deal.original_price > deal.current_price:
        message += f"Was <s>${deal.original_price:,.2f}</s>\n"
        message += f"💰 <b>${deal.current_price:,.2f}</b>  <i>({deal.discount_percentage}% OFF)</i>\n\n"
    else:
        message += f"💰 <b>${deal.current_price:,.2f}</b>\n\n"

    badge = RECOMMENDATION_BADGES.get(deal.recommendation_level, "⚪")
    message += (
        f"{badge} {deal.recommendation_level} | confidence {deal.confidence_score}/100 | "
        f"glitch {deal.pricing_glitch_probability:g}%\n"
    )
    if deal.suspicious_factors:
        message += f"⚠️ {html.escape('; '.join(deal.suspicious_factors[:3]))}\n"

    message += f"\n📦 <b>{html.escape(deal.site)}</b>\n"
    message += f"🔗 <a href='{html.escape(deal.url, quote=True)}'>VIEW DEAL</a>"
    return message


class TelegramNotifier:
    def __init__(self, token: Optional[str] = None, chat_id: Optional[str] = None):
        self.token = token
        self.chat_id = chat_id
        self.bot = None

        if self.token:
            trequest = HTTPXRequest(connection_pool_size=8, read_timeout=30, connect_timeout=30)
            self.bot = Bot(token=self.token, request=trequest)

    @property
    def is_configured(self) -> bool:
        return bool(self.bot and self.chat_id)

    async def send_deal(self, deal: FilteredDeal) -> bool:
        if not self.is_configured:
            logger.info(f"📭 Telegram not configured. Deal: {deal.title[:50]}")
            return False

        message = format_deal_message(deal)
        try:
            if deal.image and deal.image.startswith("http"):
                try:
                    await self.bot.send_photo(
                        chat_id=self.chat_id,
                        photo=deal.image,
                        caption=message,
                        parse_mode=ParseMode.HTML,
                    )
                    return True
                except Exception as img_err:
                    logger.warning(f"⚠️ Could not send image ({deal.image}): {img_err}. Sending text only.")

            await self.bot.send_message(chat_id=self.chat_id, text=message, parse_mode=ParseMode.HTML)
            return True
        except Exception as e:
            logger.error(f"❌ Error sending to Telegram: {e}")
            return False

    async def send_run_summary(self, campaign: str, scraped: int, accepted: int, saved: int) -> bool:
        if not self.is_configured:
            return False
        report = (
            "📊 <b>Run Report</b>\n\n"
            f"🏷️ <b>Campaign:</b> {html.escape(campaign)}\n"
            f"🔍 <b>Scraped:</b> {scraped}\n"
            f"✅ <b>Accepted:</b> {accepted}\n"
            f"💾 <b>Saved:</b> {saved}"
        )
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=report, parse_mode=ParseMode.HTML)
            return True
        except Exception as e:
            logger.error(f"❌ Error sending run report: {e}")
            return False
