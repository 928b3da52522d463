"""Telethon implementation of the core SessionHandle port."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from telethon import TelegramClient, events, utils

from adapters.telegram_mapper import (
    build_chat_update,
    build_deletion_record,
    build_message_record,
    build_participant_update,
    disconnect_code,
)
from core.events import ConnectionUpdate, EventEmitter, EventKind, MessageBatch
from core.models import DisconnectReason

LOGGER = logging.getLogger(__name__)

MessageLoader = Callable[..., Optional[dict]]


class TelegramSession:
    """One Telethon client wrapped behind the session port.

    The client is not connected until ``start`` so subscribers can attach
    first and see every lifecycle event.
    """

    own_chat = "me"

    def __init__(self, client: TelegramClient, message_loader: Optional[MessageLoader] = None) -> None:
        self.events = EventEmitter()
        self._client = client
        self._message_loader = message_loader
        self._watcher: Optional[asyncio.Task] = None
        self._handlers: list[tuple[Callable, Any]] = []

    async def start(self) -> None:
        await self.events.emit(EventKind.CONNECTION_UPDATE, ConnectionUpdate("connecting"))
        await self._client.connect()

        if not await self._client.is_user_authorized():
            LOGGER.error("Session is not authorized; generate a new SESSION_ID")
            await self.events.emit(
                EventKind.CONNECTION_UPDATE,
                ConnectionUpdate("close", DisconnectReason.LOGGED_OUT),
            )
            return

        self._install_handlers()
        await self.events.emit(EventKind.CREDENTIALS_UPDATE, self._client.session.save())
        self._watcher = asyncio.create_task(self._watch_disconnect())
        await self.events.emit(EventKind.CONNECTION_UPDATE, ConnectionUpdate("open"))

    def _install_handlers(self) -> None:
        self._handlers = [
            (self._on_new_message, events.NewMessage()),
            (self._on_message_deleted, events.MessageDeleted()),
            (self._on_chat_action, events.ChatAction()),
        ]
        for callback, event in self._handlers:
            self._client.add_event_handler(callback, event)

    async def _watch_disconnect(self) -> None:
        try:
            await self._client.run_until_disconnected()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("Client disconnected with %s", exc.__class__.__name__)
            code = disconnect_code(exc)
        else:
            code = disconnect_code(None)
        await self.events.emit(EventKind.CONNECTION_UPDATE, ConnectionUpdate("close", code))

    async def _on_new_message(self, event) -> None:
        sender_name = None
        try:
            sender = await event.get_sender()
            if sender is not None:
                sender_name = utils.get_display_name(sender)
        except Exception:
            LOGGER.debug("Could not resolve sender for message %s", event.message.id, exc_info=True)
        record = build_message_record(event.message, sender_name)
        await self.events.emit(EventKind.MESSAGES_UPSERT, MessageBatch("notify", [record]))

    async def _on_message_deleted(self, event) -> None:
        chat_id = event.chat_id
        if chat_id is None and self._message_loader is not None:
            # Private and basic-group deletions do not say which chat they were in.
            stored = self._message_loader(event.deleted_id)
            if stored:
                chat_id = stored.get("key", {}).get("chat_id")
        record = build_deletion_record(event, chat_id)
        if record is not None:
            await self.events.emit(EventKind.MESSAGES_UPSERT, MessageBatch("notify", [record]))

    async def _on_chat_action(self, event) -> None:
        participant_update = build_participant_update(event)
        if participant_update is not None:
            await self.events.emit(EventKind.PARTICIPANTS_UPDATE, participant_update)
        chat_update = build_chat_update(event)
        if chat_update is not None:
            await self.events.emit(EventKind.CHATS_UPDATE, [chat_update])

    async def send_message(self, chat_id: Any, text: str, reply_to: Optional[int] = None) -> None:
        await self._client.send_message(chat_id, text, reply_to=reply_to)

    async def read_messages(self, chat_id: int, message_ids: Iterable[int]) -> None:
        ids = list(message_ids)
        if not ids:
            return
        await self._client.send_read_acknowledge(chat_id, max_id=max(ids))

    async def chat_title(self, chat_id: int) -> Optional[str]:
        entity = await self._client.get_entity(chat_id)
        return getattr(entity, "title", None) or utils.get_display_name(entity) or None

    async def get_message(self, chat_id: int, message_id: int) -> Optional[Mapping[str, Any]]:
        """Resolve a message from storage first, then from the network."""

        if self._message_loader is not None:
            stored = self._message_loader(message_id, chat_id)
            if stored:
                return stored
        message = await self._client.get_messages(chat_id, ids=message_id)
        if message is None:
            return None
        return build_message_record(message)

    async def download_media(self, chat_id: int, message_id: int) -> Optional[bytes]:
        message = await self._client.get_messages(chat_id, ids=message_id)
        if message is None or not message.media:
            return None
        return await self._client.download_media(message, file=bytes)

    async def close(self) -> None:
        if self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None
        for callback, _ in self._handlers:
            self._client.remove_event_handler(callback)
        self._handlers = []
        await self._client.disconnect()
