"""Raw record to NormalizedMessage conversion.

Raw records are produced by the transport adapter:

    {
        "key": {"id": "42", "chat_id": -100123, "from_me": False},
        "sender_id": 777,
        "push_name": "Alice",
        "reply_to_id": None,
        "message": {"_": "Message", "message": "hello", "media": None, ...},
    }

``message`` is the transport's own payload dict. Deletion notices carry an
``UpdateDeleteMessages`` / ``UpdateDeleteChannelMessages`` payload instead.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping, Optional

from core.config import BotConfig
from core.models import MessageType, NormalizedMessage
from core.ports import SessionHandle, StoragePort

LOGGER = logging.getLogger(__name__)

DELETION_PAYLOADS = frozenset({"UpdateDeleteMessages", "UpdateDeleteChannelMessages"})


def _document_type(media: Mapping[str, Any]) -> MessageType:
    document = media.get("document") or {}
    kinds = {attribute.get("_") for attribute in document.get("attributes") or []}
    # Video stickers carry both attributes; the sticker wins.
    if "DocumentAttributeSticker" in kinds:
        return MessageType.STICKER
    if "DocumentAttributeVideo" in kinds:
        return MessageType.VIDEO
    if "DocumentAttributeAudio" in kinds:
        return MessageType.AUDIO
    return MessageType.DOCUMENT


def classify_message_type(payload: Mapping[str, Any]) -> MessageType:
    """Derive the message type from a transport payload."""

    constructor = payload.get("_")
    if constructor in DELETION_PAYLOADS:
        return MessageType.DELETION
    if constructor != "Message":
        return MessageType.OTHER

    media = payload.get("media")
    if not media:
        return MessageType.TEXT if payload.get("message") else MessageType.OTHER
    media_kind = media.get("_")
    if media_kind == "MessageMediaPhoto":
        return MessageType.IMAGE
    if media_kind == "MessageMediaDocument":
        return _document_type(media)
    return MessageType.OTHER


def extract_deleted_id(payload: Mapping[str, Any]) -> int:
    """Return the id of the first message a deletion notice refers to."""

    return int(payload["messages"][0])


def build_message(record: Mapping[str, Any], sudo: frozenset[int]) -> NormalizedMessage:
    """Build the canonical message shape, raising on malformed records."""

    key = record["key"]
    chat_id = key["chat_id"]
    if chat_id is None:
        raise ValueError("record has no chat id")
    payload = record["message"]
    if not isinstance(payload, Mapping):
        raise TypeError("record payload must be a mapping")

    message_type = classify_message_type(payload)
    body = None
    if message_type is not MessageType.DELETION:
        body = payload.get("message") or None

    sender = record.get("sender_id")
    from_me = bool(key.get("from_me", False))
    return NormalizedMessage(
        id=str(key["id"]),
        chat_id=int(chat_id),
        sender=int(sender) if sender is not None else None,
        sender_name=record.get("push_name"),
        type=message_type,
        body=body,
        from_me=from_me,
        sudo=from_me or (sender is not None and int(sender) in sudo),
        reply_to_id=record.get("reply_to_id"),
        raw=record,
    )


class MessageNormalizer:
    """Normalizes, persists and acknowledges one inbound record."""

    def __init__(self, storage: StoragePort, config: BotConfig) -> None:
        self._storage = storage
        self._config = config

    async def normalize(self, raw: Mapping[str, Any], session: SessionHandle) -> Optional[NormalizedMessage]:
        # Transformations never alias the transport's own buffers.
        record = copy.deepcopy(raw)
        try:
            message = build_message(record, self._config.sudo)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError):
            LOGGER.debug("Dropping malformed message record", exc_info=True)
            return None

        # Persist before dispatch so reply lookups can resolve this message.
        self._storage.save_message(record, message.sender)

        if self._config.auto_read:
            await self._acknowledge(session, message)
        if self._config.auto_status_read and message.chat_id == self._config.status_chat_id:
            await self._acknowledge(session, message)
        return message

    async def _acknowledge(self, session: SessionHandle, message: NormalizedMessage) -> None:
        try:
            message_id = int(message.id)
        except ValueError:
            return
        try:
            await session.read_messages(message.chat_id, [message_id])
        except Exception:
            LOGGER.warning("Failed to mark message %s as read", message.id, exc_info=True)
