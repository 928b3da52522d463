from __future__ import annotations

import asyncio

from core.config import BotConfig
from core.models import MessageType
from core.normalizer import MessageNormalizer, build_message, classify_message_type

from fakes import FakeSession, FakeStorage, document_media, make_record


def _normalize(record, config=BotConfig(), storage=None, session=None):
    storage = storage or FakeStorage()
    session = session or FakeSession()
    normalizer = MessageNormalizer(storage, config)
    return asyncio.run(normalizer.normalize(record, session)), storage, session


def test_classify_message_types() -> None:
    assert classify_message_type({"_": "Message", "message": "hi", "media": None}) is MessageType.TEXT
    assert classify_message_type({"_": "Message", "message": "", "media": None}) is MessageType.OTHER
    assert classify_message_type({"_": "Message", "media": {"_": "MessageMediaPhoto"}}) is MessageType.IMAGE
    assert classify_message_type({"_": "Message", "media": document_media("DocumentAttributeSticker")}) is MessageType.STICKER
    assert classify_message_type({"_": "Message", "media": document_media("DocumentAttributeVideo")}) is MessageType.VIDEO
    assert (
        classify_message_type({"_": "Message", "media": document_media("DocumentAttributeVideo", "DocumentAttributeSticker")})
        is MessageType.STICKER
    )
    assert classify_message_type({"_": "Message", "media": document_media("DocumentAttributeAudio")}) is MessageType.AUDIO
    assert classify_message_type({"_": "Message", "media": document_media("DocumentAttributeFilename")}) is MessageType.DOCUMENT
    assert classify_message_type({"_": "UpdateDeleteChannelMessages", "messages": [1]}) is MessageType.DELETION
    assert classify_message_type({"_": "MessageService"}) is MessageType.OTHER


def test_build_message_fields_and_sudo() -> None:
    record = make_record("hello", sender_id=7, reply_to_id=3)

    message = build_message(record, sudo=frozenset({7}))

    assert message.id == "1"
    assert message.chat_id == -100123
    assert message.sender == 7
    assert message.sender_name == "Alice"
    assert message.body == "hello"
    assert message.reply_to_id == 3
    assert message.sudo is True
    assert message.is_group is True


def test_own_messages_are_sudo() -> None:
    message = build_message(make_record("hi", from_me=True), sudo=frozenset())

    assert message.sudo is True


def test_media_without_caption_has_no_body() -> None:
    record = make_record(None, media={"_": "MessageMediaPhoto"})

    message = build_message(record, sudo=frozenset())

    assert message.type is MessageType.IMAGE
    assert message.body is None


def test_normalize_deep_copies_and_persists() -> None:
    record = make_record("hello")

    message, storage, _ = _normalize(record)

    assert message is not None
    saved, sender = storage.messages[0]
    assert sender == 42
    assert saved == record
    assert saved is not record
    assert message.raw is not record
    record["message"]["message"] = "mutated"
    assert message.raw["message"]["message"] == "hello"


def test_malformed_record_is_dropped() -> None:
    message, storage, _ = _normalize({"key": {"id": "1"}})
    assert message is None
    assert storage.messages == []

    message, _, _ = _normalize(make_record("hi", chat_id=None))
    assert message is None


def test_auto_read_toggles_are_independent() -> None:
    status_chat = 777000
    config = BotConfig(auto_read=True, auto_status_read=True, status_chat_id=status_chat)

    _, _, session = _normalize(make_record("hi", chat_id=status_chat, message_id=5), config=config)

    assert session.read == [(status_chat, [5]), (status_chat, [5])]

    _, _, session = _normalize(make_record("hi", chat_id=-1, message_id=5), config=BotConfig(auto_status_read=True))
    assert session.read == []

    _, _, session = _normalize(
        make_record("hi", chat_id=status_chat, message_id=6),
        config=BotConfig(auto_status_read=True, status_chat_id=status_chat),
    )
    assert session.read == [(status_chat, [6])]


def test_read_receipt_failure_does_not_drop_message(caplog) -> None:
    class FailingSession(FakeSession):
        async def read_messages(self, chat_id, message_ids) -> None:
            raise ConnectionError("offline")

    message, _, _ = _normalize(make_record("hi"), config=BotConfig(auto_read=True), session=FailingSession())

    assert message is not None
    assert "Failed to mark message 1 as read" in caplog.text
