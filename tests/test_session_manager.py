from __future__ import annotations

import asyncio
import json

import pytest

from core.config import ReconnectPolicy
from core.events import ConnectionUpdate, EventKind
from core.models import ConnectionState, DisconnectReason
from core.router import EventRouter
from core.session import CredentialStore, SessionManager

from fakes import FakeSession, FakeStorage


class NullProcessor:
    async def handle(self, raw, session):
        return []


def _opened_then_closed(code: int) -> list:
    return [
        (EventKind.CONNECTION_UPDATE, ConnectionUpdate("connecting")),
        (EventKind.CREDENTIALS_UPDATE, "fresh-session"),
        (EventKind.CONNECTION_UPDATE, ConnectionUpdate("open")),
        (EventKind.CONNECTION_UPDATE, ConnectionUpdate("close", code)),
    ]


class Harness:
    def __init__(self, tmp_path, sessions: list[FakeSession], announcement=None) -> None:
        self.sessions = list(sessions)
        self.created: list[FakeSession] = []
        self.credentials_seen: list = []
        self.sleeps: list[float] = []
        self.credentials = CredentialStore(str(tmp_path / "session"))
        router = EventRouter(
            processor=NullProcessor(),
            storage=FakeStorage(),
            save_credentials=self.credentials.save,
        )
        self.manager = SessionManager(
            transport_factory=self._factory,
            credentials=self.credentials,
            router=router,
            policy=ReconnectPolicy(retry_delay=0.3, drain_delay=3.0),
            announcement=announcement,
            sleep=self._sleep,
        )

    def _factory(self, credentials):
        self.credentials_seen.append(credentials)
        session = self.sessions.pop(0)
        self.created.append(session)
        return session

    async def _sleep(self, delay: float) -> None:
        self.sleeps.append(delay)


def test_seed_creates_credentials_once(tmp_path) -> None:
    store = CredentialStore(str(tmp_path / "session"))

    assert store.seed("seed-session") is True
    with open(store.path, encoding="utf-8") as handle:
        assert json.load(handle) == {"session": "seed-session"}

    store.save("rotated")
    assert store.seed("seed-session") is False
    assert store.load() == "rotated"


def test_seed_without_session_id_writes_nothing(tmp_path) -> None:
    store = CredentialStore(str(tmp_path / "session"))

    assert store.seed(None) is False
    assert store.exists() is False
    assert store.load() is None


def test_corrupt_credentials_connect_without_session(tmp_path, caplog) -> None:
    only = FakeSession(_opened_then_closed(DisconnectReason.LOGGED_OUT))
    harness = Harness(tmp_path, [only])
    (tmp_path / "session").mkdir()
    (tmp_path / "session" / "creds.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        asyncio.run(harness.manager.run())

    assert excinfo.value.code == 0
    assert harness.credentials_seen == [None]
    assert "Ignoring unreadable credential file" in caplog.text


def test_transport_factory_errors_are_logged_and_raised(tmp_path, caplog) -> None:
    harness = Harness(tmp_path, [])

    with pytest.raises(IndexError):
        asyncio.run(harness.manager.run())

    assert "Could not create a session transport" in caplog.text


def test_recoverable_close_reconnects_once_then_terminal_exits(tmp_path) -> None:
    first = FakeSession(_opened_then_closed(DisconnectReason.CONNECTION_LOST))
    second = FakeSession([(EventKind.CONNECTION_UPDATE, ConnectionUpdate("close", DisconnectReason.LOGGED_OUT))])
    harness = Harness(tmp_path, [first, second])
    harness.manager.initialize("seed-session")

    with pytest.raises(SystemExit) as excinfo:
        asyncio.run(harness.manager.run())

    assert excinfo.value.code == 0
    assert harness.created == [first, second]
    assert harness.sleeps == [0.3, 3.0]
    assert harness.manager.state is ConnectionState.CLOSED_TERMINAL
    # The second connect uses the credential persisted by the first session.
    assert harness.credentials_seen == ["seed-session", "fresh-session"]
    assert first.closed and second.closed
    assert first.events.listener_count() == 0


def test_terminal_close_never_retries(tmp_path) -> None:
    only = FakeSession(_opened_then_closed(DisconnectReason.LOGGED_OUT))
    harness = Harness(tmp_path, [only])

    with pytest.raises(SystemExit):
        asyncio.run(harness.manager.run())

    assert harness.created == [only]
    assert harness.sleeps == [3.0]


def test_duplicate_close_events_reconnect_once(tmp_path) -> None:
    script = _opened_then_closed(DisconnectReason.CONNECTION_CLOSED)
    script.append((EventKind.CONNECTION_UPDATE, ConnectionUpdate("close", DisconnectReason.CONNECTION_CLOSED)))
    first = FakeSession(script)
    second = FakeSession(_opened_then_closed(DisconnectReason.LOGGED_OUT))
    harness = Harness(tmp_path, [first, second])

    with pytest.raises(SystemExit):
        asyncio.run(harness.manager.run())

    assert harness.created == [first, second]
    assert harness.sleeps == [0.3, 3.0]


def test_start_failure_is_treated_as_recoverable(tmp_path) -> None:
    broken = FakeSession(start_error=ConnectionError("network down"))
    second = FakeSession(_opened_then_closed(DisconnectReason.LOGGED_OUT))
    harness = Harness(tmp_path, [broken, second])

    with pytest.raises(SystemExit):
        asyncio.run(harness.manager.run())

    assert harness.created == [broken, second]
    assert harness.sleeps == [0.3, 3.0]


def test_open_announces_on_own_chat(tmp_path) -> None:
    only = FakeSession(_opened_then_closed(DisconnectReason.LOGGED_OUT))
    harness = Harness(tmp_path, [only], announcement=lambda: "hello operator")

    with pytest.raises(SystemExit):
        asyncio.run(harness.manager.run())

    assert only.sent == [("me", "hello operator", None)]


def test_updates_from_replaced_session_are_ignored(tmp_path) -> None:
    first = FakeSession([(EventKind.CONNECTION_UPDATE, ConnectionUpdate("open"))])
    second = FakeSession([(EventKind.CONNECTION_UPDATE, ConnectionUpdate("open"))])
    harness = Harness(tmp_path, [first, second])

    async def scenario() -> None:
        await harness.manager.connect()
        await harness.manager.connect()
        assert harness.manager.session is second
        await harness.manager._on_connection_update(first, ConnectionUpdate("close", DisconnectReason.LOGGED_OUT))
        assert harness.manager.state is ConnectionState.OPEN

    asyncio.run(scenario())
