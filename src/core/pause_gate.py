"""Paused-chat gate in front of command dispatch."""

from __future__ import annotations

import logging
import re

from core.models import NormalizedMessage
from core.ports import PausedChatsPort

LOGGER = logging.getLogger(__name__)


class PauseGate:
    """Blocks paused chats unless the message is a resume command."""

    def __init__(self, registry: PausedChatsPort, handlers: str) -> None:
        self._registry = registry
        self._resume = re.compile(f"{handlers}( ?resume)", re.IGNORECASE | re.DOTALL)

    def is_resume(self, message: NormalizedMessage) -> bool:
        return bool(message.body) and self._resume.search(message.body) is not None

    def allows(self, message: NormalizedMessage) -> bool:
        """Return False when the message must not reach the dispatcher.

        A failing registry lookup is logged and treated as "not paused".
        """

        is_resume = self.is_resume(message)
        try:
            paused = self._registry.get_paused_chats()
        except Exception:
            LOGGER.exception("Paused chat lookup failed; continuing as not paused")
            return True
        if is_resume:
            return True
        return not any(entry.chat_id == message.chat_id for entry in paused)
