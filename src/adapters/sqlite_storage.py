"""SQLite storage adapter.

Implements the core StoragePort and PausedChatsPort using a simple SQLite
database.
"""

from __future__ import annotations

import base64
import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from core.models import PausedChatEntry


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return str(value)


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the storage ports."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - messages: raw records, used to resolve replies and deletions
        - contacts: last known display name per sender
        - chats: chat metadata updates
        - paused_chats: chats muted from command dispatch
        """

        with self._connect() as conn:
            # message_id is the record key id (a string, deletion notices are
            # suffixed) and is only unique together with chat_id.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    chat_id INTEGER NOT NULL,
                    message_id TEXT NOT NULL,
                    sender_id INTEGER,
                    payload TEXT NOT NULL,
                    saved_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (chat_id, message_id)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS messages_by_id ON messages (message_id)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS contacts (
                    sender_id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chats (
                    chat_id INTEGER PRIMARY KEY,
                    title TEXT,
                    payload TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS paused_chats (
                    chat_id INTEGER PRIMARY KEY,
                    reason TEXT,
                    paused_at TIMESTAMP NOT NULL
                )
                """
            )

    def save_message(self, record: Mapping[str, Any], sender: Optional[int]) -> None:
        """Upsert a raw record and remember the sender's display name."""

        key = record["key"]
        now = datetime.now(timezone.utc)
        payload = json.dumps(record, default=_json_default)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO messages (chat_id, message_id, sender_id, payload, saved_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(chat_id, message_id) DO UPDATE SET
                    sender_id = excluded.sender_id,
                    payload = excluded.payload,
                    saved_at = excluded.saved_at
                """,
                (key["chat_id"], str(key["id"]), sender, payload, now.isoformat()),
            )
            name = record.get("push_name")
            if sender is not None and name:
                conn.execute(
                    """
                    INSERT INTO contacts (sender_id, name) VALUES (?, ?)
                    ON CONFLICT(sender_id) DO UPDATE SET name = excluded.name
                    """,
                    (sender, name),
                )

    def load_message(self, message_id: Any, chat_id: Optional[int] = None) -> Optional[dict]:
        """Return the stored record, newest first when the chat is unknown."""

        with self._connect() as conn:
            if chat_id is None:
                row = conn.execute(
                    "SELECT payload FROM messages WHERE message_id = ? ORDER BY saved_at DESC LIMIT 1",
                    (str(message_id),),
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT payload FROM messages WHERE chat_id = ? AND message_id = ?",
                    (chat_id, str(message_id)),
                ).fetchone()
        return json.loads(row["payload"]) if row else None

    def save_chat(self, chat: Mapping[str, Any]) -> None:
        """Upsert chat metadata, keeping the previous title when none is given."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO chats (chat_id, title, payload, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(chat_id) DO UPDATE SET
                    title = COALESCE(excluded.title, chats.title),
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (
                    chat["id"],
                    chat.get("title"),
                    json.dumps(dict(chat), default=_json_default),
                    now.isoformat(),
                ),
            )

    def get_name(self, sender_id: Optional[int]) -> str:
        if sender_id is None:
            return "unknown"
        with self._connect() as conn:
            row = conn.execute(
                "SELECT name FROM contacts WHERE sender_id = ?",
                (sender_id,),
            ).fetchone()
        return row["name"] if row else str(sender_id)

    def get_chat_title(self, chat_id: int) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT title FROM chats WHERE chat_id = ?",
                (chat_id,),
            ).fetchone()
        return row["title"] if row else None

    def get_paused_chats(self) -> list[PausedChatEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT chat_id, reason, paused_at FROM paused_chats ORDER BY paused_at"
            ).fetchall()
        return [
            PausedChatEntry(
                chat_id=int(row["chat_id"]),
                reason=row["reason"],
                paused_at=datetime.fromisoformat(row["paused_at"]),
            )
            for row in rows
        ]

    def pause_chat(self, chat_id: int, reason: Optional[str] = None) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO paused_chats (chat_id, reason, paused_at) VALUES (?, ?, ?)
                ON CONFLICT(chat_id) DO UPDATE SET reason = excluded.reason
                """,
                (chat_id, reason, now.isoformat()),
            )

    def resume_chat(self, chat_id: int) -> bool:
        """Remove a chat from the paused registry; return True if it was paused."""

        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM paused_chats WHERE chat_id = ?",
                (chat_id,),
            )
            return cur.rowcount > 0
