import logging
import os
from typing import Any, Mapping, Optional

import requests
from dotenv import load_dotenv

from ..draw.collaborators import DeliveryResult
from .utils import open_session, redact_token

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"

# Chat member statuses that count as "in the channel".
MEMBER_STATUSES = frozenset({"creator", "administrator", "member", "restricted"})


class BotApiError(RuntimeError):
    """The Bot API answered with ``ok: false`` or could not be reached."""

    def __init__(self, method: str, description: str, error_code: Optional[int] = None):
        self.method = method
        self.description = description
        self.error_code = error_code
        super().__init__(f"{method} failed: {description}")


class BotApiClient:
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        token = token or os.getenv("TELEGRAM_BOT_TOKEN")
        if not token:
            raise ValueError("Environment variable 'TELEGRAM_BOT_TOKEN' is not set")

        base = base_url or os.getenv("TELEGRAM_API_BASE") or DEFAULT_API_BASE
        self._method_url = f"{base.rstrip('/')}/bot{token}/"
        self.session = session or open_session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "BotApiClient":
        return cls(
            token=settings.telegram_bot_token,
            base_url=settings.telegram_api_base,
            timeout=settings.telegram_timeout,
        )

    # -------- core request --------
    def _request(self, method: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        try:
            r = self.session.request(
                method="POST",
                url=self._method_url + method,
                json=dict(params or {}),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BotApiError(method, redact_token(str(e))) from None

        try:
            payload = r.json()
        except ValueError:
            raise BotApiError(
                method, f"non-JSON response (HTTP {r.status_code})", r.status_code
            ) from None

        if not payload.get("ok"):
            raise BotApiError(
                method,
                payload.get("description") or f"HTTP {r.status_code}",
                payload.get("error_code"),
            )
        return payload.get("result")

    # -------- API callers --------
    def get_chat(self, chat_id: str) -> dict:
        return self._request("getChat", {"chat_id": chat_id})

    def get_chat_member(self, chat_id: str, user_id: str) -> dict:
        return self._request("getChatMember", {"chat_id": chat_id, "user_id": user_id})

    def get_user_profile_photos(self, user_id: str, limit: int = 1) -> dict:
        return self._request(
            "getUserProfilePhotos", {"user_id": user_id, "limit": limit}
        )

    def send_message(self, chat_id: str, text: str) -> dict:
        return self._request("sendMessage", {"chat_id": chat_id, "text": text})


class TelegramResolver:
    """Answers eligibility lookups through the Bot API.

    Lookup errors are raised as :class:`BotApiError`; whether that means
    "eligible" or "ineligible" is decided by the eligibility checker.

    Parameters
    ----------
    client : BotApiClient
        Bot API client.
    chat_id : Optional[str]
        Group the users are looked up in, needed by :meth:`is_bot`. Without
        it the private chat with the user is queried instead.
    """

    def __init__(self, client: BotApiClient, chat_id: Optional[str] = None):
        self.client = client
        self.chat_id = chat_id

    def has_avatar(self, user_id: str) -> bool:
        photos = self.client.get_user_profile_photos(user_id, limit=1)
        return int(photos.get("total_count", 0)) > 0

    def has_username(self, user_id: str) -> bool:
        chat = self.client.get_chat(user_id)
        return bool(chat.get("username"))

    def is_channel_member(self, channel_id: str, user_id: str) -> bool:
        member = self.client.get_chat_member(channel_id, user_id)
        return member.get("status") in MEMBER_STATUSES

    def is_bot(self, user_id: str) -> bool:
        member = self.client.get_chat_member(self.chat_id or user_id, user_id)
        return bool(member.get("user", {}).get("is_bot", False))


class TelegramNotifier:
    """Sends prize notifications as private messages."""

    def __init__(self, client: BotApiClient):
        self.client = client

    def send_direct_message(self, user_id: str, text: str) -> DeliveryResult:
        try:
            self.client.send_message(user_id, text)
        except BotApiError as e:
            # never log the message body
            logger.debug(f"Direct message to {user_id} not delivered: {e.description}")
            return DeliveryResult.failed(e.description)
        return DeliveryResult.ok()


__all__ = ["BotApiClient", "BotApiError", "TelegramNotifier", "TelegramResolver"]
