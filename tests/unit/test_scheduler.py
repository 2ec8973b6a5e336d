"""Unit tests for input tuple scheduling."""

from __future__ import annotations

from process_engine.dataflow.channel import stream_of
from process_engine.dataflow.inputs import ProcessInput
from process_engine.dataflow.scheduler import iter_input_tuples


def _bound(name: str, source: object, *, iterator: bool = False) -> ProcessInput:
    item = ProcessInput(name, iterator=iterator)
    item.bind(source)
    return item


def test_all_value_inputs_produce_exactly_one_tuple() -> None:
    inputs = [_bound("a", 1), _bound("b", "two")]

    assert list(iter_input_tuples(inputs)) == [{"a": 1, "b": "two"}]


def test_process_without_inputs_runs_once() -> None:
    assert list(iter_input_tuples([])) == [{}]


def test_iterator_input_produces_one_tuple_per_element() -> None:
    inputs = [_bound("greeting", "hi"), _bound("x", ["a", "b", "c"], iterator=True)]

    assert list(iter_input_tuples(inputs)) == [
        {"greeting": "hi", "x": "a"},
        {"greeting": "hi", "x": "b"},
        {"greeting": "hi", "x": "c"},
    ]


def test_streams_are_consumed_pairwise_and_stop_at_the_shortest() -> None:
    inputs = [_bound("left", stream_of([1, 2, 3])), _bound("right", stream_of(["a", "b"]))]

    assert list(iter_input_tuples(inputs)) == [
        {"left": 1, "right": "a"},
        {"left": 2, "right": "b"},
    ]


def test_empty_stream_produces_no_tuples() -> None:
    inputs = [_bound("v", 1), _bound("x", [], iterator=True)]

    assert list(iter_input_tuples(inputs)) == []
