"""Telegram channel notifications for new session data."""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
_REQUEST_TIMEOUT = 15.0

# Local release times shown to subscribers for each session.
SESSION_TIMES = {
    "morning": "12:01 PM",
    "afternoon": "4:30 PM",
}


class NotifierError(Exception):
    """Raised when Telegram rejects or fails to receive a message."""


def build_market_update(
    session_name: str,
    open_index: str,
    change: str,
    date: str,
    site_url: str,
) -> str:
    """Compose the Markdown message announcing a session's opening figures.

    Args:
        session_name: e.g. ``Morning Session Open``.
        open_index: Formatted index value.
        change: Formatted signed change.
        date: Article date, ``YYYY-MM-DD``.
        site_url: Public site link appended to the message.
    """
    session_key = "morning" if "morning" in session_name.lower() else "afternoon"
    title = f"{date}({SESSION_TIMES[session_key]}) အတွက် Thai Stock Analysis ဂဏန်းများရပါပြီ"
    return (
        f"📊 *Thai Stock Market - {session_name}*\n\n"
        f"🔍 *Open Index:* `{open_index}`\n"
        f"📈 *Change:* `{change}`\n\n"
        f"📅 *{title}*\n\n"
        "အောက်ကလင့်ခ်ကိုနှိပ်ပြီးကြည့်ပါ\n"
        f"🌐 {site_url}"
    )


class TelegramNotifier:
    """Sends market updates to a Telegram channel through the Bot API."""

    def __init__(
        self,
        bot_token: Optional[str],
        channel: Optional[str],
        site_url: str = "https://thaistockanalysis.com",
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.bot_token = bot_token
        self.channel = channel
        self.site_url = site_url
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.channel)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=TELEGRAM_API_BASE, timeout=_REQUEST_TIMEOUT)
        return self._client

    async def send_message(self, text: str) -> dict[str, Any]:
        """Post ``text`` to the configured channel.

        Raises:
            NotifierError: If the request fails or Telegram returns non-200.
        """
        client = await self._get_client()
        url = f"{TELEGRAM_API_BASE}/bot{self.bot_token}/sendMessage"
        payload = {"chat_id": self.channel, "text": text, "parse_mode": "Markdown"}
        try:
            response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise NotifierError(f"Failed to send Telegram message: {exc}") from exc
        if response.status_code != 200:
            raise NotifierError(f"Telegram API returned status code: {response.status_code}")
        return response.json()

    async def send_market_update(self, session_name: str, open_index: str, change: str, date: str) -> bool:
        """Announce a session's opening figures.

        Returns:
            True if a message was sent, False when Telegram is not configured.

        Raises:
            NotifierError: If sending failed.
        """
        if not self.is_configured:
            logger.info("Telegram not configured, skipping notification")
            return False

        text = build_market_update(session_name, open_index, change, date, self.site_url)
        await self.send_message(text)
        logger.info("Telegram notification sent: %s - Index: %s, Change: %s", session_name, open_index, change)
        return True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
