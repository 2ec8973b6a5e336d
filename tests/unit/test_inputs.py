"""Unit tests for binding process inputs to channels."""

from __future__ import annotations

import pytest

from process_engine.dataflow.channel import (
    STOP,
    BroadcastChannel,
    ChannelKind,
    StreamChannel,
    stream_of,
    value_channel,
)
from process_engine.dataflow.inputs import Deferred, ProcessInput, bind_source
from process_engine.errors import ChannelResolutionError


def test_null_source_is_rejected() -> None:
    with pytest.raises(ChannelResolutionError):
        bind_source(None)


def test_deferred_evaluating_to_null_is_rejected() -> None:
    with pytest.raises(ChannelResolutionError):
        bind_source(Deferred(lambda: None))


def test_deferred_is_evaluated_exactly_once() -> None:
    calls: list[int] = []

    def source() -> str:
        calls.append(1)
        return "value"

    channel = bind_source(Deferred(source))

    assert channel.read() == "value"
    assert channel.read() == "value"
    assert calls == [1]


def test_plain_callable_is_bound_as_a_value() -> None:
    def fn() -> str:
        return "not called"

    channel = bind_source(fn)
    assert channel.read() is fn


def test_same_literal_bound_twice_yields_independent_value_channels() -> None:
    first = bind_source("hello")
    second = bind_source("hello")

    assert first is not second
    assert first.kind is ChannelKind.VALUE
    assert second.kind is ChannelKind.VALUE
    assert [second.read() for _ in range(3)] == ["hello"] * 3
    assert [first.read() for _ in range(3)] == ["hello"] * 3


def test_iterator_expands_collection_in_order_then_closes() -> None:
    channel = bind_source(["a", "b", "c"], iterator=True)

    assert channel.kind is ChannelKind.STREAM
    assert [channel.read() for _ in range(3)] == ["a", "b", "c"]
    assert channel.read() is STOP


@pytest.mark.parametrize("value", ["abc", 42, {"k": "v"}])
def test_iterator_wraps_non_collection_as_single_item(value: object) -> None:
    channel = bind_source(value, iterator=True)

    assert channel.read() == value
    assert channel.read() is STOP


def test_existing_channels_are_adopted_unchanged() -> None:
    stream = stream_of([1, 2])
    value = value_channel(3)

    assert bind_source(stream) is stream
    assert bind_source(value) is value
    assert bind_source(Deferred(lambda: stream)) is stream


def test_broadcast_source_is_adopted_through_a_subscription() -> None:
    source = BroadcastChannel()
    first = bind_source(source)
    second = bind_source(source)
    source.emit("x")
    source.close()

    assert isinstance(first, StreamChannel)
    assert list(first) == ["x"]
    assert list(second) == ["x"]


def test_process_input_binds_once() -> None:
    item = ProcessInput("x", iterator=True)
    assert not item.bound

    channel = item.bind([1, 2])

    assert item.channel is channel
    assert channel.kind is ChannelKind.STREAM
    with pytest.raises(ChannelResolutionError):
        item.bind([3])


def test_unbound_process_input_has_no_channel() -> None:
    with pytest.raises(ChannelResolutionError):
        _ = ProcessInput("x").channel
