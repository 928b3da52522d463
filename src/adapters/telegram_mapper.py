"""Telegram-to-core record mapping adapter.

This keeps Telethon-specific details out of the core pipeline: every event is
flattened into the plain record shape the core normalizer understands.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from telethon import errors

from core.events import ParticipantUpdate
from core.models import DisconnectReason

# Errors meaning the authorization is gone and reconnecting cannot help.
LOGGED_OUT_ERRORS = (
    errors.AuthKeyUnregisteredError,
    errors.AuthKeyDuplicatedError,
    errors.SessionRevokedError,
    errors.SessionExpiredError,
    errors.UserDeactivatedError,
    errors.UserDeactivatedBanError,
)


def disconnect_code(exc: Optional[BaseException]) -> int:
    """Classify why the client disconnected."""

    if exc is None:
        return DisconnectReason.CONNECTION_CLOSED
    if isinstance(exc, LOGGED_OUT_ERRORS):
        return DisconnectReason.LOGGED_OUT
    return DisconnectReason.CONNECTION_LOST


def build_message_record(message: Any, sender_name: Optional[str] = None) -> dict:
    """Build a raw core record from a Telethon Message."""

    return {
        "key": {
            "id": str(message.id),
            "chat_id": message.chat_id,
            "from_me": bool(getattr(message, "out", False)),
        },
        "sender_id": getattr(message, "sender_id", None),
        "push_name": sender_name,
        "reply_to_id": getattr(message, "reply_to_msg_id", None),
        "message": message.to_dict(),
    }


def build_deletion_record(event: Any, chat_id: Optional[int]) -> Optional[dict]:
    """Build a deletion notice record from a Telethon MessageDeleted event."""

    deleted_ids = list(getattr(event, "deleted_ids", None) or [])
    if not deleted_ids:
        return None

    update = getattr(event, "original_update", None)
    if update is not None and hasattr(update, "to_dict"):
        payload = update.to_dict()
    else:
        payload = {"_": "UpdateDeleteMessages", "messages": deleted_ids}

    return {
        # Suffixed so the notice never overwrites the stored original.
        "key": {"id": f"{deleted_ids[0]}:deleted", "chat_id": chat_id, "from_me": False},
        "sender_id": None,
        "push_name": None,
        "reply_to_id": None,
        "message": payload,
    }


def _action(event: Any) -> Optional[str]:
    if getattr(event, "user_joined", False) or getattr(event, "user_added", False):
        return "add"
    if getattr(event, "user_left", False) or getattr(event, "user_kicked", False):
        return "remove"
    return None


def build_participant_update(event: Any) -> Optional[ParticipantUpdate]:
    """Map a ChatAction join/leave to a participant update."""

    action = _action(event)
    if action is None:
        return None
    participants: Iterable[int] = getattr(event, "user_ids", None) or []
    return ParticipantUpdate(chat_id=event.chat_id, participants=list(participants), action=action)


def build_chat_update(event: Any) -> Optional[dict]:
    """Map a ChatAction title/photo change to a chat metadata update."""

    new_title = getattr(event, "new_title", None)
    new_photo = bool(getattr(event, "new_photo", False))
    if not new_title and not new_photo:
        return None
    update = {"id": event.chat_id}
    if new_title:
        update["title"] = new_title
    if new_photo:
        update["photo_changed"] = True
    return update
