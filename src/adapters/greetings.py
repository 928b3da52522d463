"""Welcome / goodbye messages on participant changes."""

from __future__ import annotations

import logging
from typing import Optional

from core.events import ParticipantUpdate
from core.ports import SessionHandle

LOGGER = logging.getLogger(__name__)


class Greetings:
    """Greeter that renders ``{user}`` and ``{chat}`` templates."""

    def __init__(self, welcome: Optional[str] = None, goodbye: Optional[str] = None) -> None:
        self._templates = {"add": welcome, "remove": goodbye}

    @property
    def enabled(self) -> bool:
        return any(self._templates.values())

    async def handle(self, update: ParticipantUpdate, session: SessionHandle) -> None:
        template = self._templates.get(update.action)
        if not template or not update.participants:
            return

        chat = str(update.chat_id)
        try:
            chat = await session.chat_title(update.chat_id) or chat
        except Exception:
            LOGGER.debug("Could not resolve title for %s", update.chat_id, exc_info=True)

        for participant in update.participants:
            text = template.format(user=participant, chat=chat)
            await session.send_message(update.chat_id, text)
