"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Mapping, Optional


class ConnectionState(str, Enum):
    """Lifecycle state of the single active session."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED_RECOVERABLE = "closed_recoverable"
    CLOSED_TERMINAL = "closed_terminal"


class DisconnectReason(IntEnum):
    """Close-reason codes reported by a transport on a close event."""

    LOGGED_OUT = 401
    CONNECTION_LOST = 408
    CONNECTION_CLOSED = 428
    RESTART_REQUIRED = 515


def classify_close(close_code: Optional[int]) -> ConnectionState:
    """Map a close code to the state the session manager should enter."""

    if close_code == DisconnectReason.LOGGED_OUT:
        return ConnectionState.CLOSED_TERMINAL
    return ConnectionState.CLOSED_RECOVERABLE


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    STICKER = "sticker"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    DELETION = "deletion"
    OTHER = "other"


@dataclass(frozen=True)
class NormalizedMessage:
    """Canonical representation of one inbound message.

    ``prefix`` is the only field filled in after normalization, by the command
    dispatcher, and it is done through ``dataclasses.replace`` so the instance
    handed to the pause gate is never mutated.
    """

    id: str
    chat_id: int
    sender: Optional[int]
    type: MessageType
    body: Optional[str]
    from_me: bool
    sudo: bool
    sender_name: Optional[str] = None
    reply_to_id: Optional[int] = None
    prefix: str = "!"
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_group(self) -> bool:
        # Groups, supergroups and channels use negative marked ids.
        return self.chat_id < 0


@dataclass(frozen=True)
class PausedChatEntry:
    """A chat muted from command dispatch."""

    chat_id: int
    reason: Optional[str] = None
    paused_at: Optional[datetime] = None
