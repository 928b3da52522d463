"""Adapters binding the core ports to Telegram (Telethon), SQLite and greetings."""
