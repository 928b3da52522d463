"""Context wrappers handed to command handlers.

A wrapper references the active session and the normalized message; it owns
neither and is discarded after the handler returns.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from core.commands import TriggerKind
from core.models import MessageType, NormalizedMessage
from core.ports import SessionHandle


class CommandContext:
    """Base wrapper shared by every trigger kind."""

    kind = "text"

    def __init__(self, session: SessionHandle, message: NormalizedMessage) -> None:
        self.session = session
        self.message = message

    @property
    def id(self) -> str:
        return self.message.id

    @property
    def chat_id(self) -> int:
        return self.message.chat_id

    @property
    def sender(self) -> Optional[int]:
        return self.message.sender

    @property
    def body(self) -> Optional[str]:
        return self.message.body

    @property
    def prefix(self) -> str:
        return self.message.prefix

    @property
    def sudo(self) -> bool:
        return self.message.sudo

    @property
    def from_me(self) -> bool:
        return self.message.from_me

    def _message_id(self) -> Optional[int]:
        try:
            return int(self.message.id)
        except ValueError:
            return None

    async def reply(self, text: str) -> None:
        await self.session.send_message(self.chat_id, text, reply_to=self._message_id())

    async def send(self, text: str, chat_id: Any = None) -> None:
        await self.session.send_message(self.chat_id if chat_id is None else chat_id, text)

    async def quoted(self) -> Optional[Mapping[str, Any]]:
        """Return the stored record this message replies to, if any."""

        if self.message.reply_to_id is None:
            return None
        return await self.session.get_message(self.chat_id, self.message.reply_to_id)


class TextContext(CommandContext):
    kind = "text"


class MediaContext(CommandContext):
    async def download(self) -> Optional[bytes]:
        message_id = self._message_id()
        if message_id is None:
            return None
        return await self.session.download_media(self.chat_id, message_id)


class ImageContext(MediaContext):
    kind = "image"


class StickerContext(MediaContext):
    kind = "sticker"


class VideoContext(MediaContext):
    kind = "video"


class DeletionContext(CommandContext):
    kind = "delete"

    def __init__(self, session: SessionHandle, message: NormalizedMessage, deleted_id: int) -> None:
        super().__init__(session, message)
        self.deleted_id = deleted_id

    async def deleted_message(self) -> Optional[Mapping[str, Any]]:
        return await self.session.get_message(self.chat_id, self.deleted_id)


class AnyContext(CommandContext):
    kind = "message"

    @property
    def type(self) -> MessageType:
        return self.message.type


def build_context(
    trigger: TriggerKind,
    session: SessionHandle,
    message: NormalizedMessage,
    deleted_id: Optional[int] = None,
) -> CommandContext:
    """Select and populate the wrapper variant for a matched trigger kind."""

    if trigger in (TriggerKind.PATTERN, TriggerKind.TEXT):
        return TextContext(session, message)
    if trigger is TriggerKind.IMAGE:
        return ImageContext(session, message)
    if trigger is TriggerKind.STICKER:
        return StickerContext(session, message)
    if trigger is TriggerKind.VIDEO:
        return VideoContext(session, message)
    if trigger is TriggerKind.DELETE:
        if deleted_id is None:
            raise ValueError("Deletion context requires the deleted message id")
        return DeletionContext(session, message, deleted_id)
    if trigger is TriggerKind.ANY:
        return AnyContext(session, message)
    raise ValueError(f"Unsupported trigger kind: {trigger}")
