"""Process-wide execution state of one suite run.

The state is initialized before discovery begins, reset between suite
files, and discarded after the run completes. It is written only by the
block builder and the tree walker.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .blocks import ROOT_INDEX, Body, BlockTree


class Phase(StrEnum):
    """Pass over the suite declarations."""

    DISCOVERY = 'discovery'
    RUN = 'run'


@dataclass
class Hooks:
    """Setup and teardown callables declared inside a group."""

    before_all: list[Body] = field(default_factory=list)
    after_all: list[Body] = field(default_factory=list)
    before_each: list[Body] = field(default_factory=list)
    after_each: list[Body] = field(default_factory=list)


@dataclass
class ExecutionState:
    """Cursor and bookkeeping of one suite run.

    Attributes:
        tree: Block tree of the suite file.
        phase: Current pass.
        params: Suite parameters the run was invoked with, completed
            with declared defaults once the first root group is declared.
        defaults: Default values declared by the suite for its parameters.
        stack: Cursor stack; the last item is the current node.
        positions: Run phase: next expected child position per group.
        bodies: Run phase: bodies re-declared for discovered nodes.
        bindings: Run phase: data bindings re-evaluated for discovered nodes.
        hooks: Run phase: hooks declared per group.
        errors: Discovery phase: faults raised by group bodies, by node.
        expansions: Discovery phase: number of data-driven declarations seen.
    """

    tree: BlockTree
    phase: Phase = Phase.DISCOVERY

    params: dict[str, Any] = field(default_factory=dict)
    defaults: Mapping[str, Any] = field(default_factory=dict)

    stack: list[int] = field(default_factory=lambda: [ROOT_INDEX])

    positions: dict[int, int] = field(default_factory=dict)
    bodies: dict[int, Body] = field(default_factory=dict)
    bindings: dict[int, Mapping[str, Any]] = field(default_factory=dict)
    hooks: dict[int, Hooks] = field(default_factory=dict)

    errors: dict[int, BaseException] = field(default_factory=dict)
    expansions: int = 0

    @property
    def current(self) -> int:
        """Index of the node whose body is being declared."""
        return self.stack[-1]

    @contextmanager
    def enter(self, index: int) -> Iterator[int]:
        """Make a node current for the duration of the block.

        The previous node is restored on every exit path.
        """
        self.stack.append(index)
        try:
            yield index
        finally:
            self.stack.pop()

    def begin_run(self) -> None:
        """Switch from discovery to the run phase."""
        self.phase = Phase.RUN
        self.stack = [ROOT_INDEX]
        self.positions.clear()
        self.bodies.clear()
        self.bindings.clear()
        self.hooks.clear()

    def next_expansion(self) -> int:
        """Return a new identifier for a data-driven declaration."""
        self.expansions += 1

        return self.expansions

    def hooks_of(self, index: int) -> Hooks:
        """Return the hooks declared in a group, creating the record."""
        return self.hooks.setdefault(index, Hooks())

    def backfill_defaults(self) -> None:
        """Fill declared defaults for parameters the run was not given."""
        for name, value in self.defaults.items():
            self.params.setdefault(name, value)
