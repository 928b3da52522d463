"""Built-in commands: ping, menu, pause and resume."""

from __future__ import annotations

import time

import settings
from adapters.sqlite_storage import SQLiteStorage
from core.commands import command, commands
from core.contexts import CommandContext


def _storage() -> SQLiteStorage:
    return SQLiteStorage(settings.DB_PATH)


@command("ping", desc="Check that the bot is responsive", type="system")
async def ping(ctx: CommandContext, _argument) -> None:
    started = time.monotonic()
    await ctx.reply("Pong!")
    elapsed_ms = (time.monotonic() - started) * 1000
    await ctx.send(f"Latency: {elapsed_ms:.0f} ms")


@command("menu", desc="List available commands", type="system")
async def menu(ctx: CommandContext, _argument) -> None:
    by_category: dict[str, list[str]] = {}
    for spec in commands.specs:
        if spec.pattern is None:
            continue
        name = spec.pattern.split(" ", 1)[0]
        by_category.setdefault(spec.type, []).append(name)

    lines = []
    for category in sorted(by_category):
        lines.append(f"*{category.upper()}*")
        lines.extend(f"  {ctx.prefix}{name}" for name in sorted(by_category[category]))
    await ctx.reply("\n".join(lines) or "No commands registered.")


@command("pause", desc="Mute commands in this chat", type="system")
async def pause(ctx: CommandContext, argument) -> None:
    reason = argument or None
    _storage().pause_chat(ctx.chat_id, reason)
    await ctx.reply(f"Paused. Send {ctx.prefix}resume to enable commands again.")


@command("resume", desc="Re-enable commands in a paused chat", type="system")
async def resume(ctx: CommandContext, _argument) -> None:
    if _storage().resume_chat(ctx.chat_id):
        await ctx.reply("Resumed.")
    else:
        await ctx.reply("This chat is not paused.")
