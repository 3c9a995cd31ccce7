import requests
from typing import Any, Dict, List, Optional
from tradelog.config.settings import settings
from tradelog.config.logging import logger
from tradelog.core.exceptions import ConfigurationError, SourceUnavailable
from tradelog.core.models import RawMessage
from .mapper import TelegramMapper

class TelegramClient:
    """
    Telegram Bot API client (pull mode).
    Fetches raw chat messages; knows nothing about trades.
    """

    BASE_URL = "https://api.telegram.org"

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        limit: Optional[int] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.bot_token = bot_token or (settings.TELEGRAM_BOT_TOKEN if settings else None)
        if not self.bot_token:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is not set")

        if chat_id is None and settings:
            chat_id = settings.TELEGRAM_CHAT_ID
        self.chat_id = str(chat_id) if chat_id else None
        self.limit = limit or (settings.TELEGRAM_FETCH_LIMIT if settings else 100)
        self.timeout = timeout or (settings.TELEGRAM_TIMEOUT_SECONDS if settings else 10)
        self.session = session or requests.Session()

    def _request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.BASE_URL}/bot{self.bot_token}/{method}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Telegram connection error on {method}: {e}")
            raise SourceUnavailable(f"Failed to connect to Telegram: {e}")
        except ValueError as e:
            raise SourceUnavailable(f"Telegram returned a non-JSON body for {method}: {e}")

        if not isinstance(data, dict):
            raise SourceUnavailable(
                f"Telegram returned an unexpected body for {method} (Code: {response.status_code})"
            )
        if not data.get("ok"):
            raise SourceUnavailable(
                f"Telegram API error: {data.get('description', 'unknown')} "
                f"(Code: {data.get('error_code', response.status_code)})"
            )
        return data.get("result")

    def ensure_pull_mode(self) -> None:
        """getUpdates refuses to work while a webhook is set; drop it. Safe to repeat."""
        self._request("deleteWebhook")
        logger.info("Webhook deleted (if it existed)")

    def fetch_messages(self, cursor: Optional[int] = None) -> List[RawMessage]:
        """
        Fetches one window of messages, oldest first.
        With a cursor only messages with external_id >= cursor are returned.
        """
        params: Dict[str, Any] = {"limit": self.limit}
        if cursor is not None:
            params["offset"] = cursor

        updates = self._request("getUpdates", params) or []
        logger.info(f"Received {len(updates)} updates from Telegram")

        messages = []
        for update in updates:
            message = TelegramMapper.to_raw_message(update)
            if message is None:
                continue
            if self.chat_id and str(message.chat_id) != self.chat_id:
                continue
            if cursor is not None and message.external_id < cursor:
                continue
            messages.append(message)

        # sorted() is stable, so equal ids keep their arrival order
        return sorted(messages, key=lambda m: m.external_id)

    def check_connection(self, sample_size: int = 10) -> Dict[str, Any]:
        """Diagnostic: bot identity plus how much of a small sample comes from our chat."""
        bot_info = self._request("getMe")
        updates = self._request("getUpdates", {"limit": sample_size}) or []

        from_chat = []
        for update in updates:
            message = TelegramMapper.to_raw_message(update)
            if message is None:
                continue
            if self.chat_id is None or str(message.chat_id) == self.chat_id:
                from_chat.append(message)

        return {
            "bot_info": bot_info,
            "total_updates": len(updates),
            "messages_from_target_chat": len(from_chat),
            "sample_messages": [
                {
                    "message_id": m.external_id,
                    "date": m.posted_at,
                    "text_preview": (m.text or "")[:100],
                }
                for m in from_chat[:2]
            ],
            "chat_id_filter": self.chat_id,
        }
