"""Command matching and supervised fan-out to handlers."""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Union

from core.commands import CommandDescriptor, TriggerKind
from core.contexts import build_context
from core.models import MessageType, NormalizedMessage
from core.normalizer import extract_deleted_id
from core.ports import SessionHandle

LOGGER = logging.getLogger(__name__)

MEDIA_TRIGGERS = {
    TriggerKind.IMAGE: MessageType.IMAGE,
    TriggerKind.STICKER: MessageType.STICKER,
    TriggerKind.VIDEO: MessageType.VIDEO,
}


@dataclass(frozen=True)
class DispatchMatch:
    """One descriptor that fired for a message, with its handler argument."""

    descriptor: CommandDescriptor
    argument: Any
    deleted_id: Optional[int] = None


def residual_argument(pattern: re.Pattern, body: str) -> Union[str, bool]:
    """Remove the first case-insensitive match from the body.

    Returns False when the removal cannot be performed.
    """

    try:
        return re.compile(pattern.pattern, re.IGNORECASE).sub("", body, count=1).strip()
    except (re.error, TypeError):
        return False


class CommandDispatcher:
    """Evaluates every descriptor against a message and runs the matches."""

    def __init__(
        self,
        descriptors: Iterable[CommandDescriptor],
        handlers: str,
        fallback_prefix: str = "!",
    ) -> None:
        self._descriptors = tuple(descriptors)
        self._handlers = re.compile(handlers)
        self._fallback_prefix = fallback_prefix

    @property
    def descriptors(self) -> tuple[CommandDescriptor, ...]:
        return self._descriptors

    def resolve_prefix(self, body: Optional[str]) -> str:
        if body and self._handlers.search(body):
            return body[0].lower()
        return self._fallback_prefix

    def match(self, descriptor: CommandDescriptor, message: NormalizedMessage) -> Optional[DispatchMatch]:
        """Return the match for one descriptor, or None.

        Each trigger kind has exactly one branch, so a descriptor can only
        match one way for a given message.
        """

        if descriptor.from_me_only and not message.sudo:
            return None

        trigger = descriptor.trigger
        body = message.body
        if trigger is TriggerKind.PATTERN:
            if not body or not descriptor.pattern.search(body):
                return None
            return DispatchMatch(descriptor, residual_argument(descriptor.pattern, body))
        if trigger is TriggerKind.TEXT:
            if not body:
                return None
            return DispatchMatch(descriptor, body)
        if trigger in MEDIA_TRIGGERS:
            if message.type is not MEDIA_TRIGGERS[trigger]:
                return None
            return DispatchMatch(descriptor, message)
        if trigger is TriggerKind.DELETE:
            if message.type is not MessageType.DELETION:
                return None
            try:
                deleted_id = extract_deleted_id(message.raw["message"])
            except (KeyError, IndexError, TypeError, ValueError):
                LOGGER.debug("Deletion notice %s has no message id", message.id)
                return None
            return DispatchMatch(descriptor, message, deleted_id=deleted_id)
        if trigger is TriggerKind.ANY:
            return DispatchMatch(descriptor, message)
        raise ValueError(f"Unsupported trigger kind: {trigger}")

    def plan(self, message: NormalizedMessage) -> List[DispatchMatch]:
        """Return every descriptor that fires for the message, in registry order."""

        matches: List[DispatchMatch] = []
        for descriptor in self._descriptors:
            found = self.match(descriptor, message)
            if found is not None:
                matches.append(found)
        return matches

    async def dispatch(self, message: NormalizedMessage, session: SessionHandle) -> List[DispatchMatch]:
        """Run one supervised task per matched descriptor and wait for all."""

        message = dataclasses.replace(message, prefix=self.resolve_prefix(message.body))
        matches = self.plan(message)
        if matches:
            await asyncio.gather(*(self._invoke(found, message, session) for found in matches))
        return matches

    async def _invoke(self, found: DispatchMatch, message: NormalizedMessage, session: SessionHandle) -> None:
        descriptor = found.descriptor
        try:
            context = build_context(descriptor.trigger, session, message, found.deleted_id)
            result = descriptor.handler(context, found.argument)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.exception(
                "Command %s failed for message %s in %s",
                descriptor.name or descriptor.trigger.value,
                message.id,
                message.chat_id,
            )
