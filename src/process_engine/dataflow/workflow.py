"""Workflow definitions and the builder that declares their ports."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

WorkflowBody = Callable[..., Mapping[str, object]]


@dataclass(frozen=True, slots=True)
class WorkflowDef:
    name: str | None
    body: WorkflowBody | None
    takes: tuple[str, ...]
    emits: tuple[str, ...]

    def invoke(self, **inputs: object) -> dict[str, object]:
        """Run the body with the declared inputs and collect the declared outputs."""

        if self.body is None:
            raise ValueError(f"Workflow {self.name or '<anonymous>'} has no body")

        expected = set(self.takes)
        if set(inputs) != expected:
            missing = sorted(expected - set(inputs))
            unexpected = sorted(set(inputs) - expected)
            raise ValueError(
                f"Workflow inputs mismatch: missing={missing} unexpected={unexpected}"
            )

        result = self.body(**inputs)
        missing_emits = [name for name in self.emits if name not in result]
        if missing_emits:
            raise ValueError(f"Workflow did not emit: {missing_emits}")
        return {name: result[name] for name in self.emits}


class WorkflowBuilder:
    """Collects declared input and output names in declaration order."""

    def __init__(self, name: str | None = None) -> None:
        self._name = name
        self._body: WorkflowBody | None = None
        # dicts keep insertion order and collapse repeated declarations
        self._takes: dict[str, None] = {}
        self._emits: dict[str, None] = {}

    def declare_input(self, name: str) -> WorkflowBuilder:
        self._takes.setdefault(name, None)
        return self

    def declare_output(self, name: str) -> WorkflowBuilder:
        self._emits.setdefault(name, None)
        return self

    def with_body(self, body: WorkflowBody) -> WorkflowBuilder:
        self._body = body
        return self

    def build(self) -> WorkflowDef:
        return WorkflowDef(
            name=self._name,
            body=self._body,
            takes=tuple(self._takes),
            emits=tuple(self._emits),
        )
