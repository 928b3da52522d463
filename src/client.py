"""Telegram client factory for tgpilot.

Clients are built over a StringSession so the whole credential fits in one
string (SESSION_ID / creds.json). Connecting is left to the session adapter,
which makes it obvious when a session starts and ends.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from telethon import TelegramClient
from telethon.sessions import StringSession


def build_client(session: Optional[str] = None) -> TelegramClient:
    """Create a Telethon client from environment variables.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    An empty session produces an unauthorized client (used for login).
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(StringSession(session or ""), int(api_id), api_hash)
