"""Core message processing pipeline.

This module is integration-agnostic. It only relies on ports for storage and
the session handle, enabling other transports without changes here.

The pipeline enforces a strict order:
1) Normalize the raw record (deep copy, persist, read receipts)
2) Pause gate
3) Optional per-message diagnostic log line
4) Command dispatch
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from core.dispatcher import CommandDispatcher, DispatchMatch
from core.models import NormalizedMessage
from core.normalizer import MessageNormalizer
from core.pause_gate import PauseGate
from core.ports import SessionHandle, StoragePort

LOGGER = logging.getLogger(__name__)


class MessageProcessor:
    """Orchestrates normalization, pause gating and dispatch."""

    def __init__(
        self,
        normalizer: MessageNormalizer,
        gate: PauseGate,
        dispatcher: CommandDispatcher,
        storage: StoragePort,
        log_messages: bool = False,
    ) -> None:
        self._normalizer = normalizer
        self._gate = gate
        self._dispatcher = dispatcher
        self._storage = storage
        self._log_messages = log_messages

    async def handle(self, raw: Mapping[str, Any], session: SessionHandle) -> List[DispatchMatch]:
        """Process one live raw record through the core pipeline."""

        message = await self._normalizer.normalize(raw, session)
        if message is None:
            return []

        if not self._gate.allows(message):
            return []

        if self._log_messages:
            await self._log(message, session)

        return await self._dispatcher.dispatch(message, session)

    async def _log(self, message: NormalizedMessage, session: SessionHandle) -> None:
        location: Any = message.chat_id
        if message.is_group:
            try:
                location = await session.chat_title(message.chat_id) or message.chat_id
            except Exception:
                LOGGER.debug("Could not resolve title for %s", message.chat_id, exc_info=True)
        sender_name = self._storage.get_name(message.sender)
        LOGGER.info(
            "At: %s\nFrom: %s\nMessage: %s",
            location,
            sender_name,
            message.body if message.body else message.type.value,
        )
