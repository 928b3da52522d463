"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BotConfig:
    """Message handling settings for the core pipeline."""

    handlers: str = "^[.!]"
    sudo: frozenset[int] = field(default_factory=frozenset)
    auto_read: bool = False
    auto_status_read: bool = False
    logs: bool = False
    work_type: str = "private"
    status_chat_id: int = 777000
    fallback_prefix: str = "!"


@dataclass(frozen=True)
class ReconnectPolicy:
    """Delays (seconds) applied by the session manager after a close."""

    retry_delay: float = 0.3
    drain_delay: float = 3.0
