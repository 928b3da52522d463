from __future__ import annotations

import asyncio
import logging
import re

from core.commands import CommandDescriptor, TriggerKind
from core.config import BotConfig
from core.dispatcher import CommandDispatcher
from core.normalizer import MessageNormalizer
from core.pause_gate import PauseGate
from core.processor import MessageProcessor

from fakes import FakeSession, FakeStorage, make_record


def _build(storage: FakeStorage, calls: list, log_messages: bool = False) -> MessageProcessor:
    async def record_call(ctx, argument) -> None:
        calls.append(argument)

    descriptors = [
        CommandDescriptor(trigger=TriggerKind.PATTERN, handler=record_call, pattern=re.compile("^!( ?resume)", re.I)),
        CommandDescriptor(trigger=TriggerKind.TEXT, handler=record_call),
        CommandDescriptor(trigger=TriggerKind.ANY, handler=record_call),
    ]
    return MessageProcessor(
        normalizer=MessageNormalizer(storage, BotConfig(handlers="^!")),
        gate=PauseGate(storage, "^!"),
        dispatcher=CommandDispatcher(descriptors, "^!"),
        storage=storage,
        log_messages=log_messages,
    )


def test_paused_chat_fires_nothing_but_is_still_persisted() -> None:
    storage = FakeStorage(paused=[-100123])
    calls: list = []
    processor = _build(storage, calls)

    matches = asyncio.run(processor.handle(make_record("do something"), FakeSession()))

    assert matches == []
    assert calls == []
    assert len(storage.messages) == 1


def test_resume_command_dispatches_despite_pause() -> None:
    storage = FakeStorage(paused=[-100123])
    calls: list = []
    processor = _build(storage, calls)

    matches = asyncio.run(processor.handle(make_record("!resume"), FakeSession()))

    assert len(matches) == 3
    assert "" in calls


def test_malformed_record_never_dispatches() -> None:
    storage = FakeStorage()
    calls: list = []
    processor = _build(storage, calls)

    matches = asyncio.run(processor.handle({"message": {}}, FakeSession()))

    assert matches == []
    assert calls == []


def test_message_log_line_uses_group_title(caplog) -> None:
    storage = FakeStorage()
    storage.names[42] = "Alice"
    session = FakeSession()
    session.titles[-100123] = "Team"
    processor = _build(storage, [], log_messages=True)

    with caplog.at_level(logging.INFO, logger="core.processor"):
        asyncio.run(processor.handle(make_record("hello"), session))

    assert "At: Team\nFrom: Alice\nMessage: hello" in caplog.text


def test_paused_messages_are_not_logged(caplog) -> None:
    storage = FakeStorage(paused=[-100123])
    processor = _build(storage, [], log_messages=True)

    with caplog.at_level(logging.INFO, logger="core.processor"):
        asyncio.run(processor.handle(make_record("secret"), FakeSession()))

    assert "secret" not in caplog.text
