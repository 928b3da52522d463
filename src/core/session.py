"""Session lifecycle: credential seeding, connect, reconnect-or-terminate.

The manager owns the only live session handle. Reconnection is an explicit
loop in ``run``: the close listener merely resolves the current session's
close future, so a flurry of close events (or a late event from a replaced
session) can never start a second reconnect.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Awaitable, Callable, List, Optional

from core.config import ReconnectPolicy
from core.events import ConnectionUpdate, Subscription
from core.models import ConnectionState, DisconnectReason, classify_close
from core.ports import SessionHandle, TransportFactory
from core.router import EventRouter, report_error

LOGGER = logging.getLogger(__name__)

CREDENTIALS_FILE = "creds.json"

Sleep = Callable[[float], Awaitable[None]]


class CredentialStore:
    """Credential state persisted as ``creds.json`` in a session directory."""

    def __init__(self, directory: str) -> None:
        self._directory = directory
        self._path = os.path.join(directory, CREDENTIALS_FILE)

    @property
    def path(self) -> str:
        return self._path

    def exists(self) -> bool:
        return os.path.exists(self._path)

    def seed(self, session_id: Optional[str]) -> bool:
        """Create the credential file from a session id, never overwriting.

        Returns True when a file was written.
        """

        os.makedirs(self._directory, exist_ok=True)
        if self.exists():
            return False
        if not session_id:
            LOGGER.warning("No SESSION_ID configured; %s was not created", self._path)
            return False
        self._write(session_id)
        LOGGER.info("Seeded credential store at %s", self._path)
        return True

    def load(self) -> Optional[str]:
        """Return the stored session string, or None when missing or unreadable."""

        if not self.exists():
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except ValueError:
            LOGGER.warning("Ignoring unreadable credential file %s", self._path)
            return None
        value = data.get("session") if isinstance(data, dict) else None
        return value or None

    def save(self, session: str) -> None:
        os.makedirs(self._directory, exist_ok=True)
        self._write(session)

    def _write(self, session: str) -> None:
        # Atomic replace; readers never see a partial file.
        tmp_path = f"{self._path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump({"session": session}, handle)
        os.replace(tmp_path, self._path)


class SessionManager:
    """Owns the single session slot and the reconnect policy."""

    def __init__(
        self,
        transport_factory: TransportFactory,
        credentials: CredentialStore,
        router: EventRouter,
        policy: ReconnectPolicy = ReconnectPolicy(),
        announcement: Optional[Callable[[], str]] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport_factory = transport_factory
        self._credentials = credentials
        self._router = router
        self._policy = policy
        self._announcement = announcement
        self._sleep = sleep
        self._session: Optional[SessionHandle] = None
        self._subscriptions: List[Subscription] = []
        self._closed: Optional[asyncio.Future] = None
        self._state = ConnectionState.CONNECTING

    @property
    def session(self) -> Optional[SessionHandle]:
        return self._session

    @property
    def state(self) -> ConnectionState:
        return self._state

    def initialize(self, session_id: Optional[str]) -> bool:
        return self._credentials.seed(session_id)

    async def connect(self) -> SessionHandle:
        """Open a new session and install the router against it.

        A transport that cannot be built is a startup error and propagates.
        """

        try:
            session = self._transport_factory(self._credentials.load())
        except Exception:
            LOGGER.exception("Could not create a session transport")
            raise
        self._closed = asyncio.get_running_loop().create_future()
        self._subscriptions = self._router.attach(session, self._on_connection_update)
        self._session = session
        self._state = ConnectionState.CONNECTING
        try:
            await session.start()
        except Exception:
            LOGGER.exception("Failed to open session")
            self._resolve_close(DisconnectReason.CONNECTION_LOST)
        return session

    async def run(self) -> None:
        """Connect and keep reconnecting until the device is logged out.

        Raises SystemExit(0) after the drain delay on a terminal close.
        """

        while True:
            session = await self.connect()
            close_code = await self._closed
            await self._teardown(session)

            self._state = classify_close(close_code)
            if self._state is ConnectionState.CLOSED_TERMINAL:
                LOGGER.error("Connection closed. Device logged out.")
                await self._sleep(self._policy.drain_delay)
                raise SystemExit(0)

            LOGGER.warning(
                "Connection closed (code %s); reconnecting in %.1fs",
                close_code,
                self._policy.retry_delay,
            )
            await self._sleep(self._policy.retry_delay)

    async def report(self, exc: BaseException) -> None:
        """Surface an uncaught error on the operator's own chat."""

        if self._session is None:
            return
        await report_error(self._session, exc)

    async def _on_connection_update(self, session: SessionHandle, update: ConnectionUpdate) -> None:
        if session is not self._session:
            LOGGER.debug("Ignoring %s from a replaced session", update.connection)
            return

        if update.connection == "connecting":
            self._state = ConnectionState.CONNECTING
            LOGGER.info("Connecting... Please wait.")
        elif update.connection == "open":
            self._state = ConnectionState.OPEN
            LOGGER.info("Login successful")
            await self._announce(session)
        elif update.connection == "close":
            self._resolve_close(update.close_code)

    def _resolve_close(self, close_code: Optional[int]) -> None:
        if self._closed is not None and not self._closed.done():
            self._closed.set_result(close_code)

    async def _announce(self, session: SessionHandle) -> None:
        if self._announcement is None:
            return
        try:
            await session.send_message(session.own_chat, self._announcement())
        except Exception:
            LOGGER.warning("Failed to send startup announcement", exc_info=True)

    async def _teardown(self, session: SessionHandle) -> None:
        self._router.detach(session, self._subscriptions)
        self._subscriptions = []
        self._session = None
        try:
            await session.close()
        except Exception:
            LOGGER.warning("Failed to close previous session", exc_info=True)
