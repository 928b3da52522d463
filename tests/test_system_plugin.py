from __future__ import annotations

import asyncio

import pytest

import settings
from adapters.sqlite_storage import SQLiteStorage
from core.commands import commands
from core.dispatcher import CommandDispatcher
from core.pause_gate import PauseGate

import plugins.system  # noqa: F401

from fakes import FakeSession, make_message

HANDLERS = "^[.!]"


@pytest.fixture
def storage(tmp_path, monkeypatch) -> SQLiteStorage:
    db_path = str(tmp_path / "bot.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path)
    store = SQLiteStorage(db_path)
    store.init_db()
    return store


def _dispatcher() -> CommandDispatcher:
    descriptors = [
        descriptor
        for descriptor in commands.build(HANDLERS)
        if descriptor.handler.__module__ == "plugins.system"
    ]
    return CommandDispatcher(descriptors, HANDLERS)


def test_pause_then_resume_updates_registry(storage) -> None:
    dispatcher = _dispatcher()
    gate = PauseGate(storage, HANDLERS)
    session = FakeSession()

    pause = make_message("!pause busy today", chat_id=-100300, sudo=True, message_id="11")
    asyncio.run(dispatcher.dispatch(pause, session))

    (entry,) = storage.get_paused_chats()
    assert entry.chat_id == -100300
    assert entry.reason == "busy today"
    assert not gate.allows(make_message("!ping", chat_id=-100300, sudo=True))
    assert session.sent[-1][0] == -100300
    assert session.sent[-1][2] == 11
    assert "!resume" in session.sent[-1][1]

    resume = make_message("!resume", chat_id=-100300, sudo=True, message_id="12")
    assert gate.allows(resume)
    asyncio.run(dispatcher.dispatch(resume, session))

    assert storage.get_paused_chats() == []
    assert session.sent[-1] == (-100300, "Resumed.", 12)


def test_resume_in_unpaused_chat_says_so(storage) -> None:
    session = FakeSession()

    asyncio.run(_dispatcher().dispatch(make_message(".resume", sudo=True, message_id="3"), session))

    assert session.sent == [(-100123, "This chat is not paused.", 3)]


def test_pause_without_reason_stores_none(storage) -> None:
    asyncio.run(_dispatcher().dispatch(make_message("!pause", chat_id=-100301, sudo=True), FakeSession()))

    (entry,) = storage.get_paused_chats()
    assert entry.reason is None


def test_system_commands_ignore_other_senders(storage) -> None:
    session = FakeSession()

    asyncio.run(_dispatcher().dispatch(make_message("!pause", chat_id=-100302, sender=999), session))

    assert storage.get_paused_chats() == []
    assert session.sent == []


def test_menu_lists_system_commands_with_prefix(storage) -> None:
    session = FakeSession()

    asyncio.run(_dispatcher().dispatch(make_message(".menu", sudo=True), session))

    (_, text, _) = session.sent[0]
    assert "*SYSTEM*" in text
    for name in ("menu", "pause", "ping", "resume"):
        assert f".{name}" in text
