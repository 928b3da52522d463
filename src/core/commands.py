"""Command descriptors and the plugin registry (core domain)."""

from __future__ import annotations

import importlib
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

LOGGER = logging.getLogger(__name__)

Handler = Callable[..., Any]


class TriggerKind(str, Enum):
    PATTERN = "pattern"
    TEXT = "text"
    IMAGE = "image"
    STICKER = "sticker"
    VIDEO = "video"
    DELETE = "delete"
    ANY = "message"


@dataclass(frozen=True)
class CommandDescriptor:
    """Compiled command used by the dispatcher.

    The trigger kind alone decides how a descriptor matches; ``pattern`` is
    present for ``PATTERN`` descriptors and absent for every other kind.
    """

    trigger: TriggerKind
    handler: Handler
    pattern: Optional[re.Pattern] = None
    from_me_only: bool = False
    name: str = ""
    description: str = ""
    category: str = "misc"

    def __post_init__(self) -> None:
        if self.trigger is TriggerKind.PATTERN and self.pattern is None:
            raise ValueError(f"Pattern command {self.name!r} has no pattern")
        if self.trigger is not TriggerKind.PATTERN and self.pattern is not None:
            raise ValueError(f"Command {self.name!r} of kind {self.trigger.value} cannot carry a pattern")


@dataclass(frozen=True)
class CommandSpec:
    """Uncompiled registration, kept until the handler prefix is known."""

    handler: Handler
    pattern: Optional[str]
    on: Optional[str]
    from_me: bool
    desc: str
    type: str


class CommandRegistry:
    """Ordered collection of plugin registrations."""

    def __init__(self) -> None:
        self._specs: List[CommandSpec] = []

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def specs(self) -> tuple[CommandSpec, ...]:
        return tuple(self._specs)

    def command(
        self,
        pattern: Optional[str] = None,
        *,
        on: Optional[str] = None,
        from_me: bool = True,
        desc: str = "",
        type: str = "misc",
    ) -> Callable[[Handler], Handler]:
        """Register the decorated function as a command handler."""

        if on is not None:
            # Unknown trigger kinds raise at registration.
            TriggerKind(on)

        def decorator(func: Handler) -> Handler:
            self._specs.append(
                CommandSpec(
                    handler=func,
                    pattern=pattern,
                    on=on,
                    from_me=from_me,
                    desc=desc,
                    type=type,
                )
            )
            return func

        return decorator

    def build(self, handlers: str) -> tuple[CommandDescriptor, ...]:
        """Compile registrations against the configured handler prefix.

        - With a pattern: ``HANDLERS + "( ?" + pattern + ")"``, case-insensitive.
        - With only ``on``: the matching trigger kind.
        - With neither: a catch-all over every message type.

        ``from_me`` restricts the descriptor to sudo senders in every case.
        """

        return tuple(_compile(spec, handlers) for spec in self._specs)


def _compile(spec: CommandSpec, handlers: str) -> CommandDescriptor:
    name = spec.pattern.split(" ", 1)[0] if spec.pattern else spec.handler.__name__
    if spec.pattern is not None:
        return CommandDescriptor(
            trigger=TriggerKind.PATTERN,
            handler=spec.handler,
            pattern=re.compile(f"{handlers}( ?{spec.pattern})", re.IGNORECASE | re.DOTALL),
            from_me_only=spec.from_me,
            name=name,
            description=spec.desc,
            category=spec.type,
        )
    if spec.on is not None:
        return CommandDescriptor(
            trigger=TriggerKind(spec.on),
            handler=spec.handler,
            from_me_only=spec.from_me,
            name=name,
            description=spec.desc,
            category=spec.type,
        )
    return CommandDescriptor(
        trigger=TriggerKind.ANY,
        handler=spec.handler,
        from_me_only=spec.from_me,
        name=name,
        description=spec.desc,
        category=spec.type,
    )


def load_plugins(module_names: Iterable[str]) -> List[str]:
    """Import plugin modules so their decorators register commands.

    A plugin that fails to import is logged and skipped.
    """

    loaded: List[str] = []
    for module_name in module_names:
        module_name = module_name.strip()
        if not module_name:
            continue
        try:
            importlib.import_module(module_name)
        except Exception:
            LOGGER.exception("Failed to load plugin %s", module_name)
            continue
        loaded.append(module_name)
    return loaded


# Default registry used by bundled and third-party plugins.
commands = CommandRegistry()
command = commands.command
