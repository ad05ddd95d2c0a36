"""
Handler registry — ordered ``pattern -> callback`` bindings.

Bindings are appended before the engine starts and read concurrently by
every dispatch task afterwards, so the registry is frozen at start.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterable, Iterator, Optional, TextIO, Union

from rtmbot.errors import ConfigError


@dataclass
class Response:
    """What a handler learns about the message it answers."""

    user: str
    time: str
    channel: str
    data: list[str] = field(default_factory=list)


HandlerFunc = Callable[[TextIO, Response], Union[None, Awaitable[None]]]


class MatchPolicy(str, Enum):
    """Which binding wins when several patterns match one message."""

    LAST = "last"
    FIRST = "first"


@dataclass(frozen=True)
class HandlerBinding:
    pattern: str
    regex: "re.Pattern[str]"
    callback: HandlerFunc

    def search(self, text: str) -> Optional["re.Match[str]"]:
        return self.regex.search(text)


class HandlerRegistry:
    def __init__(self) -> None:
        self._bindings: list[HandlerBinding] = []
        self._frozen = False

    def register(self, pattern: str, callback: HandlerFunc) -> HandlerBinding:
        if self._frozen:
            raise ConfigError("Handlers must be registered before the bot starts")
        if not callable(callback):
            raise ConfigError(f"Handler for {pattern!r} is not callable")
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"Invalid handler pattern {pattern!r}: {e}") from e
        binding = HandlerBinding(pattern=pattern, regex=regex, callback=callback)
        self._bindings.append(binding)
        return binding

    def freeze(self) -> tuple[HandlerBinding, ...]:
        self._frozen = True
        return tuple(self._bindings)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __iter__(self) -> Iterator[HandlerBinding]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)


def select_binding(
    bindings: Iterable[HandlerBinding], text: str, policy: MatchPolicy = MatchPolicy.LAST,
) -> Optional[HandlerBinding]:
    """Pick the binding that answers ``text``.

    Every binding is tested in registration order. Under ``LAST`` a later
    match overwrites an earlier one; ``FIRST`` stops at the first match.
    """
    selected: Optional[HandlerBinding] = None
    for binding in bindings:
        if binding.search(text) is not None:
            selected = binding
            if policy is MatchPolicy.FIRST:
                break
    return selected


def extract_captures(binding: HandlerBinding, text: str) -> list[str]:
    """Capture groups of the first occurrence, in order. Non-participating groups give ``""``."""
    match = binding.search(text)
    if match is None:
        return []
    return list(match.groups(default=""))
