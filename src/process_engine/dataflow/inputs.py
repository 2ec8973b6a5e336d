"""Process inputs and their binding to channels."""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field

from process_engine.dataflow.channel import (
    BroadcastChannel,
    Channel,
    stream_of,
    value_channel,
)
from process_engine.errors import ChannelResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Deferred:
    """A source expression evaluated lazily, once, when the input is bound.

    Plain callables passed as sources are treated as values; wrap them in
    ``Deferred`` to have them evaluated.
    """

    func: Callable[[], object]

    def evaluate(self) -> object:
        return self.func()


def _as_sequence(value: object) -> Collection[object]:
    if isinstance(value, Collection) and not isinstance(value, (str, bytes, bytearray, Mapping)):
        return value
    return [value]


def bind_source(source: object, *, iterator: bool = False) -> Channel:
    """Resolve a source expression into the channel a process reads from.

    Rules:
    - ``None`` (before or after evaluating a :class:`Deferred`) is an error.
    - With ``iterator`` set, the value is expanded into a closed stream with one
      item per element (a non-collection value yields a single item).
    - An existing channel is adopted as is; a broadcast source is adopted
      through a fresh subscription.
    - Anything else becomes a value channel.
    """

    if source is None:
        raise ChannelResolutionError("A process input channel evaluates to null")

    value = source.evaluate() if isinstance(source, Deferred) else source
    if value is None:
        raise ChannelResolutionError("A process input channel evaluates to null")

    if iterator:
        return stream_of(_as_sequence(value))
    if isinstance(value, Channel):
        return value
    if isinstance(value, BroadcastChannel):
        return value.subscribe()
    return value_channel(value)


@dataclass(slots=True)
class ProcessInput:
    """A named process input, bound once to its source channel."""

    name: str
    iterator: bool = False
    _channel: Channel | None = field(default=None, init=False, repr=False)

    def bind(self, source: object) -> Channel:
        if self._channel is not None:
            raise ChannelResolutionError(f"Process input '{self.name}' is already bound")
        self._channel = bind_source(source, iterator=self.iterator)
        logger.debug(
            "Bound process input",
            extra={"input": self.name, "kind": self._channel.kind.value},
        )
        return self._channel

    @property
    def bound(self) -> bool:
        return self._channel is not None

    @property
    def channel(self) -> Channel:
        if self._channel is None:
            raise ChannelResolutionError(f"Process input '{self.name}' is not bound")
        return self._channel
