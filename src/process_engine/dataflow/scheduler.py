"""Input tuple scheduling: how many task instances a process produces."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from process_engine.dataflow.channel import STOP
from process_engine.dataflow.inputs import ProcessInput


def iter_input_tuples(
    inputs: Sequence[ProcessInput], *, timeout: float | None = None
) -> Iterator[dict[str, object]]:
    """Yield one mapping of resolved input values per task instantiation.

    A process whose inputs are all value channels (or that has no inputs) runs
    exactly once. Otherwise the next item of every stream input is read in
    lock step, value inputs contribute their value to every tuple, and
    iteration stops as soon as any stream is exhausted.
    """

    if all(item.channel.is_value for item in inputs):
        yield {item.name: item.channel.read(timeout) for item in inputs}
        return

    while True:
        values: dict[str, object] = {}
        for item in inputs:
            value = item.channel.read(timeout)
            if value is STOP:
                return
            values[item.name] = value
        yield values
