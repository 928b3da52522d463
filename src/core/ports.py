"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the transport, storage and greeting
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional, Protocol

from core.events import EventEmitter, ParticipantUpdate
from core.models import PausedChatEntry


class SessionHandle(Protocol):
    """One live, credentialed connection to the chat network."""

    events: EventEmitter
    own_chat: Any

    async def start(self) -> None:
        ...

    async def send_message(self, chat_id: Any, text: str, reply_to: Optional[int] = None) -> None:
        ...

    async def read_messages(self, chat_id: int, message_ids: Iterable[int]) -> None:
        ...

    async def chat_title(self, chat_id: int) -> Optional[str]:
        ...

    async def get_message(self, chat_id: int, message_id: int) -> Optional[Mapping[str, Any]]:
        ...

    async def download_media(self, chat_id: int, message_id: int) -> Optional[bytes]:
        ...

    async def close(self) -> None:
        ...


# Builds a fresh, not yet started session handle from the stored credential.
TransportFactory = Callable[[Optional[str]], SessionHandle]


class StoragePort(Protocol):
    """Storage operations required by the core pipeline."""

    def load_message(self, message_id: Any, chat_id: Optional[int] = None) -> Optional[dict]:
        ...

    def save_message(self, record: Mapping[str, Any], sender: Optional[int]) -> None:
        ...

    def save_chat(self, chat: Mapping[str, Any]) -> None:
        ...

    def get_name(self, sender_id: Optional[int]) -> str:
        ...


class PausedChatsPort(Protocol):
    """Read access to the paused-chat registry."""

    def get_paused_chats(self) -> list[PausedChatEntry]:
        ...


class GreeterPort(Protocol):
    async def handle(self, update: ParticipantUpdate, session: SessionHandle) -> None:
        ...
