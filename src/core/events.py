"""Event kinds, payloads and the subscription surface of a session handle."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

Listener = Callable[[Any], Awaitable[None]]


class EventKind(str, Enum):
    CONNECTION_UPDATE = "connection.update"
    CREDENTIALS_UPDATE = "creds.update"
    PARTICIPANTS_UPDATE = "group-participants.update"
    CHATS_UPDATE = "chats.update"
    MESSAGES_UPSERT = "messages.upsert"


@dataclass(frozen=True)
class ConnectionUpdate:
    """Transport connection transition: ``connecting``, ``open`` or ``close``."""

    connection: str
    close_code: Optional[int] = None


@dataclass(frozen=True)
class ParticipantUpdate:
    chat_id: int
    participants: list[int]
    action: str


@dataclass(frozen=True)
class MessageBatch:
    """A batch of raw message records.

    Only ``notify`` batches carry live messages; anything else is history or
    replay and is ignored by the router.
    """

    type: str
    messages: list[Mapping[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class Subscription:
    id: int
    kind: EventKind


class EventEmitter:
    """Minimal async pub/sub used by session handles."""

    def __init__(self) -> None:
        self._listeners: dict[EventKind, dict[int, Listener]] = {}
        self._ids = itertools.count(1)

    def on(self, kind: EventKind, listener: Listener) -> Subscription:
        subscription = Subscription(id=next(self._ids), kind=kind)
        self._listeners.setdefault(kind, {})[subscription.id] = listener
        return subscription

    def off(self, subscription: Subscription) -> None:
        self._listeners.get(subscription.kind, {}).pop(subscription.id, None)

    def listener_count(self, kind: Optional[EventKind] = None) -> int:
        if kind is not None:
            return len(self._listeners.get(kind, {}))
        return sum(len(listeners) for listeners in self._listeners.values())

    async def emit(self, kind: EventKind, payload: Any) -> None:
        # Snapshot so listeners removed mid-emit do not change this round.
        listeners = list(self._listeners.get(kind, {}).values())
        if not listeners:
            return
        await asyncio.gather(*(listener(payload) for listener in listeners))
