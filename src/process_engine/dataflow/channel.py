"""Dataflow channels consumed by process inputs.

Two flavours are modelled:

- :class:`ValueChannel` holds a single item. Every read, by any number of
  readers, returns that same item. Nothing is ever consumed.
- :class:`StreamChannel` holds an ordered sequence. Each item goes to exactly
  one read call; once the stream is closed and drained, every read returns
  :data:`STOP`.

A :class:`BroadcastChannel` is a multi-consumer source: each call to
``subscribe()`` returns a new stream that sees every item emitted afterwards.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Iterator
from enum import Enum

from process_engine.errors import ChannelClosedError


class _Stop:
    def __repr__(self) -> str:
        return "STOP"


STOP = _Stop()
"""Sentinel returned by a read on an exhausted stream."""


class ChannelKind(str, Enum):
    VALUE = "value"
    STREAM = "stream"


class Channel:
    """Read side of a dataflow channel."""

    kind: ChannelKind

    def read(self, timeout: float | None = None) -> object:
        raise NotImplementedError

    @property
    def is_value(self) -> bool:
        return self.kind is ChannelKind.VALUE


class ValueChannel(Channel):
    """A channel bound to a single value, readable any number of times."""

    kind = ChannelKind.VALUE

    def __init__(self) -> None:
        self._bound = threading.Event()
        self._lock = threading.Lock()
        self._value: object = None

    def bind(self, value: object) -> None:
        with self._lock:
            if self._bound.is_set():
                raise ChannelClosedError("Value channel is already bound")
            self._value = value
            self._bound.set()

    @property
    def bound(self) -> bool:
        return self._bound.is_set()

    def read(self, timeout: float | None = None) -> object:
        """Return the bound value, blocking until it is available."""

        if not self._bound.wait(timeout):
            raise TimeoutError("Timed out waiting for a value channel to be bound")
        return self._value

    def __repr__(self) -> str:
        state = repr(self._value) if self.bound else "<unbound>"
        return f"ValueChannel({state})"


class StreamChannel(Channel):
    """An ordered stream of items, each delivered to exactly one reader."""

    kind = ChannelKind.STREAM

    def __init__(self) -> None:
        self._items: deque[object] = deque()
        self._closed = False
        self._cond = threading.Condition()

    def emit(self, item: object) -> None:
        with self._cond:
            if self._closed:
                raise ChannelClosedError("Cannot emit into a closed stream")
            self._items.append(item)
            self._cond.notify()

    def close(self) -> None:
        """Close the stream. Idempotent; pending items stay readable."""

        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def read(self, timeout: float | None = None) -> object:
        """Take the next item, or :data:`STOP` once closed and drained."""

        with self._cond:
            ready = self._cond.wait_for(lambda: self._items or self._closed, timeout)
            if not ready:
                raise TimeoutError("Timed out waiting for a stream item")
            if self._items:
                return self._items.popleft()
            return STOP

    def __iter__(self) -> Iterator[object]:
        while True:
            item = self.read()
            if item is STOP:
                return
            yield item

    def __repr__(self) -> str:
        with self._cond:
            return f"StreamChannel(pending={len(self._items)}, closed={self._closed})"


class BroadcastChannel:
    """Fan-out source: every subscription receives every subsequent item."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[StreamChannel] = []
        self._closed = False

    def subscribe(self) -> StreamChannel:
        stream = StreamChannel()
        with self._lock:
            if self._closed:
                stream.close()
            else:
                self._subscribers.append(stream)
        return stream

    def emit(self, item: object) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosedError("Cannot emit into a closed broadcast")
            for stream in self._subscribers:
                stream.emit(item)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            for stream in self._subscribers:
                stream.close()


def value_channel(value: object) -> ValueChannel:
    """Create a value channel already bound to ``value``."""

    channel = ValueChannel()
    channel.bind(value)
    return channel


def stream_of(items: Iterable[object]) -> StreamChannel:
    """Create a stream that emits ``items`` in order and is then closed."""

    stream = StreamChannel()
    for item in items:
        stream.emit(item)
    stream.close()
    return stream
