"""Inbound chat events and the `verb:entity:id` action-token codec."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from resort.domain.errors import MalformedEventError


TOKEN_SEPARATOR = ":"
COMMAND_MARKER = "/"


class Verb(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CONFIRM = "confirm"
    PREPARE = "prepare"
    READY = "ready"
    DELIVER = "deliver"
    CANCEL = "cancel"
    SEND = "send"
    MENU = "menu"


class Entity(str, Enum):
    BOOKING = "booking"
    ORDER = "order"
    LOCATION = "location"
    PAYMENT_INFO = "payment-info"
    CATEGORY = "category"
    BACK = "back"
    PAGE = "page"


# Older keyboards still carry `send:bank:<id>`.
_ENTITY_ALIASES = {"bank": Entity.PAYMENT_INFO}

KNOWN_ACTIONS: frozenset[tuple[Verb, Entity]] = frozenset(
    {
        (Verb.APPROVE, Entity.BOOKING),
        (Verb.REJECT, Entity.BOOKING),
        (Verb.CONFIRM, Entity.ORDER),
        (Verb.PREPARE, Entity.ORDER),
        (Verb.READY, Entity.ORDER),
        (Verb.DELIVER, Entity.ORDER),
        (Verb.CANCEL, Entity.ORDER),
        (Verb.SEND, Entity.LOCATION),
        (Verb.SEND, Entity.PAYMENT_INFO),
        (Verb.MENU, Entity.CATEGORY),
        (Verb.MENU, Entity.BACK),
        (Verb.MENU, Entity.PAGE),
    }
)


@dataclass(frozen=True)
class CallbackAction:
    verb: Verb
    entity: Entity
    target_id: str

    @property
    def key(self) -> tuple[Verb, Entity]:
        return (self.verb, self.entity)

    @property
    def token(self) -> str:
        return TOKEN_SEPARATOR.join((self.verb.value, self.entity.value, self.target_id))


def parse_action_token(token: str) -> CallbackAction:
    """Decode a callback token, rejecting anything this system never emits."""
    parts = token.split(TOKEN_SEPARATOR)
    if len(parts) != 3:
        raise MalformedEventError(f"action token {token!r} must have exactly three parts")
    raw_verb, raw_entity, target_id = parts
    try:
        verb = Verb(raw_verb)
        entity = _ENTITY_ALIASES.get(raw_entity) or Entity(raw_entity)
    except ValueError as exc:
        raise MalformedEventError(f"unknown action {raw_verb}:{raw_entity}") from exc
    if (verb, entity) not in KNOWN_ACTIONS:
        raise MalformedEventError(f"unsupported action {verb.value}:{entity.value}")
    if not target_id:
        raise MalformedEventError(f"action token {token!r} has an empty target id")
    return CallbackAction(verb=verb, entity=entity, target_id=target_id)


@dataclass(frozen=True)
class InboundMessage:
    chat_id: str
    text: str

    @property
    def is_command(self) -> bool:
        return self.text.startswith(COMMAND_MARKER)

    @property
    def command(self) -> str:
        return self.text.split()[0].lower() if self.text else ""

    @property
    def arguments(self) -> list[str]:
        return self.text.split()[1:]


@dataclass(frozen=True)
class InboundCallback:
    callback_id: str
    data: str
    chat_id: Optional[str]
    message_id: Optional[int]


Inbound = Union[InboundMessage, InboundCallback]


def _chat_id(message: Any) -> Optional[str]:
    if not isinstance(message, dict):
        return None
    chat = message.get("chat")
    if not isinstance(chat, dict) or chat.get("id") is None:
        return None
    return str(chat["id"])


def parse_update(payload: Any) -> Optional[Inbound]:
    """Resolve a raw webhook body into a message or a callback.

    Returns None for well-formed updates that carry nothing to act on, such
    as a message without text.
    """
    if not isinstance(payload, dict):
        raise MalformedEventError("update body must be a JSON object")

    callback = payload.get("callback_query")
    if callback is not None:
        if not isinstance(callback, dict) or not callback.get("id"):
            raise MalformedEventError("callback_query without an id")
        message = callback.get("message")
        message_id = message.get("message_id") if isinstance(message, dict) else None
        if message_id is not None:
            try:
                message_id = int(message_id)
            except (TypeError, ValueError) as exc:
                raise MalformedEventError(f"message_id {message_id!r} is not an integer") from exc
        return InboundCallback(
            callback_id=str(callback["id"]),
            data=str(callback.get("data") or ""),
            chat_id=_chat_id(message),
            message_id=message_id,
        )

    message = payload.get("message")
    if message is not None:
        chat_id = _chat_id(message)
        if chat_id is None:
            raise MalformedEventError("message without a chat id")
        text = message.get("text")
        if not isinstance(text, str) or not text.strip():
            return None
        return InboundMessage(chat_id=chat_id, text=text.strip())

    return None
