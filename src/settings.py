"""Static configuration for tgpilot.

Secrets (API_ID, API_HASH, SESSION_ID) come from the environment, loaded via
python-dotenv. Bot options are read from the environment first and then from
the "bot" section of an optional config.json, so quick edits never require
touching Python.
"""

import json
import logging
import os

from dotenv import load_dotenv

from core.config import BotConfig, ReconnectPolicy

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _load_json_config() -> dict:
    """Load config.json if present; every key is optional."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

_bot = _CONFIG.get("bot", {})


def _option(name: str, default=None):
    """Environment wins over config.json, which wins over the default."""

    value = os.getenv(name)
    if value is not None:
        return value
    return _bot.get(name.lower(), default)


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _as_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(",") if item.strip()]


def _parse_sudo(value) -> frozenset[int]:
    sudo: set[int] = set()
    for item in _as_list(value):
        try:
            sudo.add(int(item))
        except ValueError:
            logging.getLogger(__name__).warning("Ignoring non-numeric SUDO entry %r", item)
    return frozenset(sudo)


# Telegram API credentials and the string session used to seed creds.json.
API_ID = os.getenv("API_ID")
API_HASH = os.getenv("API_HASH")
SESSION_ID = os.getenv("SESSION_ID")

WORK_TYPE = str(_option("WORK_TYPE", "private"))
HANDLERS = str(_option("HANDLERS", "^[.!]"))
SUDO = _parse_sudo(_option("SUDO"))
AUTO_READ = _as_bool(_option("AUTO_READ", False))
AUTO_STATUS_READ = _as_bool(_option("AUTO_STATUS_READ", False))
LOGS = _as_bool(_option("LOGS", False))
# Broadcast-status peer; Telegram's service notifications account by default.
STATUS_CHAT_ID = int(_option("STATUS_CHAT_ID", 777000))

# Plugin modules imported at startup so their commands register.
PLUGINS = _as_list(_option("PLUGINS", "plugins.system"))

# Greeting templates; unset disables the corresponding message.
WELCOME_MESSAGE = _option("WELCOME_MESSAGE")
GOODBYE_MESSAGE = _option("GOODBYE_MESSAGE")

# Credential state directory (creds.json lives here).
SESSION_DIR = os.path.abspath(os.path.join(PROJECT_ROOT, str(_option("SESSION_DIR", "session"))))

# Where to store the SQLite database.
DB_PATH = os.path.abspath(os.path.join(PROJECT_ROOT, str(_option("DB_PATH", "tgpilot.db"))))

BOT = BotConfig(
    handlers=HANDLERS,
    sudo=SUDO,
    auto_read=AUTO_READ,
    auto_status_read=AUTO_STATUS_READ,
    logs=LOGS,
    work_type=WORK_TYPE,
    status_chat_id=STATUS_CHAT_ID,
)

_reconnect = _CONFIG.get("reconnect", {})
RECONNECT = ReconnectPolicy(
    retry_delay=float(_reconnect.get("retry_delay", 0.3)),
    drain_delay=float(_reconnect.get("drain_delay", 3.0)),
)

# Logging configuration; console at INFO with secret redaction by default.
LOGGING = _CONFIG.get(
    "logging",
    {
        "enabled": True,
        "level": "INFO",
        "console": True,
        "redact": {"enabled": True, "patterns": ["SESSION_ID", "API_HASH"]},
    },
)
