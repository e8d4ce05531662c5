"""Outbound chat transport: the gateway contract and its Telegram Bot API client."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence

import requests

from resort.domain.errors import GatewayError
from resort.utils.config import Settings, get_settings
from resort.utils.logger import get_logger


logger = get_logger(__name__)

MESSAGE_TEXT_LIMIT = 4096
CAPTION_LIMIT = 1024


@dataclass(frozen=True)
class InlineButton:
    """A keyboard button; exactly one of `action_token` or `url` is set."""

    label: str
    action_token: Optional[str] = None
    url: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.action_token is None) == (self.url is None):
            raise ValueError("InlineButton needs exactly one of action_token or url")

    def to_payload(self) -> dict[str, str]:
        if self.url is not None:
            return {"text": self.label, "url": self.url}
        return {"text": self.label, "callback_data": str(self.action_token)}


Keyboard = Sequence[Sequence[InlineButton]]


def keyboard_payload(keyboard: Optional[Keyboard]) -> dict[str, Any]:
    rows = [[button.to_payload() for button in row] for row in keyboard or ()]
    return {"inline_keyboard": rows}


def grid(buttons: Sequence[InlineButton], columns: int = 2) -> list[list[InlineButton]]:
    """Lay buttons out left-to-right, at most `columns` per row."""
    if columns <= 0:
        raise ValueError("columns must be positive")
    return [list(buttons[index : index + columns]) for index in range(0, len(buttons), columns)]


class MessagingGateway(Protocol):
    def send_message(
        self,
        chat_id: str,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> Optional[int]:
        ...

    def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        ...

    def edit_message_keyboard(
        self,
        chat_id: str,
        message_id: int,
        keyboard: Optional[Keyboard] = None,
    ) -> None:
        ...

    def send_location(self, chat_id: str, lat: float, lng: float) -> None:
        ...

    def send_photo(self, chat_id: str, url: str, caption: Optional[str] = None) -> None:
        ...


GatewayFactory = Callable[[str], MessagingGateway]


class TelegramGateway:
    """Bot API client over `requests`; every failure surfaces as GatewayError."""

    def __init__(
        self,
        bot_token: str,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not bot_token:
            raise GatewayError("Telegram bot token is not configured")
        self._settings = settings or get_settings()
        self._bot_token = bot_token
        self._session = session or requests.Session()

    def _url(self, method: str) -> str:
        base = self._settings.telegram_api_base_url.rstrip("/")
        return f"{base}/bot{self._bot_token}/{method}"

    def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._session.post(
                self._url(method),
                json=payload,
                timeout=self._settings.telegram_timeout_seconds,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"Telegram {method} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code != 200 or not body.get("ok", False):
            description = body.get("description") or response.text
            logger.error("Telegram %s returned %s: %s", method, response.status_code, description)
            raise GatewayError(f"Telegram {method} rejected: {description}")
        return body

    def send_message(
        self,
        chat_id: str,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> Optional[int]:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": (text or ".")[:MESSAGE_TEXT_LIMIT],
            "disable_web_page_preview": True,
        }
        if keyboard:
            payload["reply_markup"] = keyboard_payload(keyboard)
        body = self._call("sendMessage", payload)
        result = body.get("result") or {}
        message_id = result.get("message_id")
        return int(message_id) if message_id is not None else None

    def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        payload: dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        self._call("answerCallbackQuery", payload)

    def edit_message_keyboard(
        self,
        chat_id: str,
        message_id: int,
        keyboard: Optional[Keyboard] = None,
    ) -> None:
        # An empty inline_keyboard strips the buttons.
        self._call(
            "editMessageReplyMarkup",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "reply_markup": keyboard_payload(keyboard),
            },
        )

    def send_location(self, chat_id: str, lat: float, lng: float) -> None:
        self._call("sendLocation", {"chat_id": chat_id, "latitude": lat, "longitude": lng})

    def send_photo(self, chat_id: str, url: str, caption: Optional[str] = None) -> None:
        payload: dict[str, Any] = {"chat_id": chat_id, "photo": url}
        if caption:
            payload["caption"] = caption[:CAPTION_LIMIT]
        self._call("sendPhoto", payload)

    def close(self) -> None:
        self._session.close()


class TelegramGatewayPool:
    """One gateway, and so one HTTP session, per bot token."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._gateways: dict[str, TelegramGateway] = {}
        self._lock = threading.Lock()

    def __call__(self, bot_token: str) -> TelegramGateway:
        with self._lock:
            gateway = self._gateways.get(bot_token)
            if gateway is None:
                gateway = TelegramGateway(bot_token, settings=self._settings)
                self._gateways[bot_token] = gateway
            return gateway

    def close(self) -> None:
        with self._lock:
            gateways = list(self._gateways.values())
            self._gateways.clear()
        for gateway in gateways:
            gateway.close()


def telegram_gateway_factory(settings: Optional[Settings] = None) -> TelegramGatewayPool:
    return TelegramGatewayPool(settings)
