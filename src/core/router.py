"""Event routing from a session handle to the core handlers."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from core.events import ConnectionUpdate, EventKind, Listener, MessageBatch, ParticipantUpdate, Subscription
from core.ports import GreeterPort, SessionHandle, StoragePort
from core.processor import MessageProcessor

LOGGER = logging.getLogger(__name__)

ConnectionHandler = Callable[[SessionHandle, ConnectionUpdate], Awaitable[None]]
CredentialSaver = Callable[[str], None]


async def report_error(session: SessionHandle, exc: BaseException) -> None:
    """Send an error's text to the operator's own chat; log if that fails."""

    try:
        await session.send_message(session.own_chat, str(exc) or exc.__class__.__name__)
    except Exception:
        LOGGER.warning("Failed to report error to own chat", exc_info=True)


class EventRouter:
    """Subscribes one listener per event kind against a single session."""

    def __init__(
        self,
        processor: MessageProcessor,
        storage: StoragePort,
        save_credentials: CredentialSaver,
        greeter: Optional[GreeterPort] = None,
    ) -> None:
        self._processor = processor
        self._storage = storage
        self._save_credentials = save_credentials
        self._greeter = greeter

    def attach(self, session: SessionHandle, on_connection: ConnectionHandler) -> List[Subscription]:
        async def connection_listener(update: ConnectionUpdate) -> None:
            await on_connection(session, update)

        async def credentials_listener(credentials: str) -> None:
            self._save_credentials(credentials)

        async def participants_listener(update: ParticipantUpdate) -> None:
            await self._on_participants(session, update)

        async def chats_listener(chats: Iterable[Any]) -> None:
            self._on_chats(chats)

        async def messages_listener(batch: MessageBatch) -> None:
            await self._on_messages(session, batch)

        listeners = {
            EventKind.CONNECTION_UPDATE: connection_listener,
            EventKind.CREDENTIALS_UPDATE: credentials_listener,
            EventKind.PARTICIPANTS_UPDATE: participants_listener,
            EventKind.CHATS_UPDATE: chats_listener,
            EventKind.MESSAGES_UPSERT: messages_listener,
        }
        return [
            session.events.on(kind, self._guard(session, kind, listener))
            for kind, listener in listeners.items()
        ]

    def detach(self, session: SessionHandle, subscriptions: Iterable[Subscription]) -> None:
        for subscription in subscriptions:
            session.events.off(subscription)

    def _guard(self, session: SessionHandle, kind: EventKind, listener: Listener) -> Listener:
        async def guarded(payload: Any) -> None:
            try:
                await listener(payload)
            except Exception as exc:
                LOGGER.exception("Unhandled error in %s handler", kind.value)
                await report_error(session, exc)

        return guarded

    async def _on_participants(self, session: SessionHandle, update: ParticipantUpdate) -> None:
        if self._greeter is None:
            return
        await self._greeter.handle(update, session)

    def _on_chats(self, chats: Iterable[Any]) -> None:
        for chat in chats:
            try:
                self._storage.save_chat(chat)
            except Exception:
                LOGGER.exception("Failed to save chat update")

    async def _on_messages(self, session: SessionHandle, batch: MessageBatch) -> None:
        if batch.type != "notify" or not batch.messages:
            return
        await self._processor.handle(batch.messages[0], session)
