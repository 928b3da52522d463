"""Application entry point for the tgpilot userbot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.greetings import Greetings
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_session import TelegramSession
from client import build_client
from core import __version__
from core.commands import commands, load_plugins
from core.dispatcher import CommandDispatcher
from core.normalizer import MessageNormalizer
from core.pause_gate import PauseGate
from core.processor import MessageProcessor
from core.router import EventRouter
from core.session import CredentialStore, SessionManager

NAME = "TGPILOT"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/tgpilot.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO; keep its noise out of the bot log.
    logging.getLogger("telethon").setLevel(logging.WARNING)


def _announcement(command_count: int) -> str:
    mods = ", ".join(str(sudo) for sudo in sorted(settings.SUDO)) or "-"
    return "\n".join(
        [
            f"*{NAME}*",
            f"Version: {__version__}",
            f"Plugins: {command_count}",
            f"Mode: {settings.WORK_TYPE}",
            f"Prefix: {settings.HANDLERS}",
            f"Mods: {mods}",
        ]
    )


def _install_exception_handler(manager: SessionManager) -> None:
    """Report unobserved task errors on the operator's own chat and keep running."""

    loop = asyncio.get_running_loop()
    logger = logging.getLogger(__name__)
    pending: set[asyncio.Task] = set()

    def handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        if exc is None:
            logger.error("Unhandled event loop error: %s", context.get("message"))
            return
        logger.error("Unhandled error", exc_info=exc)
        task = loop.create_task(manager.report(exc))
        pending.add(task)
        task.add_done_callback(pending.discard)

    loop.set_exception_handler(handler)


def build_manager(storage: SQLiteStorage) -> SessionManager:
    """Wire the core pipeline to the Telegram and SQLite adapters."""

    descriptors = commands.build(settings.HANDLERS)
    processor = MessageProcessor(
        normalizer=MessageNormalizer(storage, settings.BOT),
        gate=PauseGate(storage, settings.HANDLERS),
        dispatcher=CommandDispatcher(descriptors, settings.HANDLERS, settings.BOT.fallback_prefix),
        storage=storage,
        log_messages=settings.LOGS,
    )
    credentials = CredentialStore(settings.SESSION_DIR)
    greetings = Greetings(settings.WELCOME_MESSAGE, settings.GOODBYE_MESSAGE)
    router = EventRouter(
        processor=processor,
        storage=storage,
        save_credentials=credentials.save,
        greeter=greetings if greetings.enabled else None,
    )
    return SessionManager(
        transport_factory=lambda session: TelegramSession(build_client(session), storage.load_message),
        credentials=credentials,
        router=router,
        policy=settings.RECONNECT,
        announcement=lambda: _announcement(len(descriptors)),
    )


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting tgpilot")

    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()

    loaded = load_plugins(settings.PLUGINS)
    logger.info("%s plugins loaded, %s commands registered", len(loaded), len(commands))

    manager = build_manager(storage)
    manager.initialize(settings.SESSION_ID)

    async def _main() -> None:
        _install_exception_handler(manager)
        await manager.run()

    asyncio.run(_main())


def _session(use_phone: bool) -> None:
    _print_banner()
    from get_session import main as session_main

    session_main(use_phone)


def _pause(chat_id: int, reason: Optional[str]) -> None:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    storage.pause_chat(chat_id, reason)
    print(f"Paused {chat_id}")


def _resume(chat_id: int) -> None:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    if storage.resume_chat(chat_id):
        print(f"Resumed {chat_id}")
    else:
        print(f"{chat_id} was not paused")


def _list_paused() -> None:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    entries = storage.get_paused_chats()
    if not entries:
        print("No paused chats.")
        return
    for index, entry in enumerate(entries, start=1):
        print(f"{index}. {entry.chat_id} | {entry.paused_at:%Y-%m-%d %H:%M} | {entry.reason or '-'}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="tgpilot")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    session_parser = subparsers.add_parser("session", help="Log in and print a SESSION_ID string")
    session_parser.add_argument("--phone", action="store_true", help="Log in with a phone code instead of a QR code")
    pause_parser = subparsers.add_parser("pause", help="Mute commands in a chat")
    pause_parser.add_argument("chat_id", type=int)
    pause_parser.add_argument("reason", nargs="?")
    resume_parser = subparsers.add_parser("resume", help="Re-enable commands in a chat")
    resume_parser.add_argument("chat_id", type=int)
    subparsers.add_parser("paused", help="List paused chats")

    args = parser.parse_args(argv)
    if args.command == "session":
        _session(args.phone)
        return
    if args.command == "pause":
        _pause(args.chat_id, args.reason)
        return
    if args.command == "resume":
        _resume(args.chat_id)
        return
    if args.command == "paused":
        _list_paused()
        return
    _run()


if __name__ == "__main__":
    main()
