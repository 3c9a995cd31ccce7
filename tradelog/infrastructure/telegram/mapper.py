from typing import Any, Dict, Optional
from tradelog.core.models import RawMessage

# Update keys that can carry a message, in order of preference
MESSAGE_KEYS = ("message", "channel_post", "edited_message", "edited_channel_post")

class TelegramMapper:
    """
    Turns Telegram Bot API update envelopes into RawMessage objects.
    """

    @staticmethod
    def unwrap(update: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for key in MESSAGE_KEYS:
            payload = update.get(key)
            if payload:
                return payload
        return None

    @staticmethod
    def to_raw_message(update: Dict[str, Any]) -> Optional[RawMessage]:
        """
        Returns None for updates that carry no message (callbacks, polls, ...).
        Captions on media posts count as text.
        """
        payload = TelegramMapper.unwrap(update)
        if payload is None or payload.get("message_id") is None:
            return None

        chat_id = payload.get("chat", {}).get("id")
        return RawMessage(
            external_id=int(payload["message_id"]),
            text=payload.get("text") or payload.get("caption"),
            posted_at=int(payload.get("date", 0)),
            chat_id=int(chat_id) if chat_id is not None else None,
        )
