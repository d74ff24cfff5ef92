"""Outcomes, suite results and reporter contract.

The core emits `(node, outcome)` events to a reporter; it never formats
them itself beyond the failure messages produced by the assertion engine.
"""

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import Field

from pytest_grove.models import SchemaModel

from .assertions import AssertionResult  # noqa: TC001

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pytest_grove.errors import GroveError

    from .blocks import BlockNode, BlockTree

logger = logging.getLogger(__name__)


class Status(StrEnum):
    """Outcome status of a block."""

    PASSED = 'passed'
    FAILED = 'failed'
    ERROR = 'error'
    SKIPPED = 'skipped'
    NOT_RUN = 'not_run'


class BlockOutcome(SchemaModel):
    """Outcome of a test, or of a group whose setup or teardown failed."""

    status: Status
    path: tuple[str, ...] = ()

    result: AssertionResult | None = Field(
        default=None,
        description='Failed assertion result, when an assertion failed.',
    )
    error: BaseException | None = Field(
        default=None,
        description='Fault raised by the body or one of its hooks.',
    )
    reason: str | None = Field(
        default=None,
        description='Why the block was skipped or not run.',
    )
    duration: float = 0.0

    @property
    def passed(self) -> bool:
        """Whether the block passed."""
        return self.status is Status.PASSED

    @property
    def message(self) -> str | None:
        """Human-readable failure or skip description."""
        if self.result is not None and self.result.failure_message:
            return self.result.failure_message

        if self.error is not None:
            return f'{self.error}' or repr(self.error)

        return self.reason


@dataclass
class SuiteResult:
    """Results of one suite file."""

    name: str
    tree: 'BlockTree'
    params: dict[str, Any] = field(default_factory=dict)
    outcomes: dict[int, BlockOutcome] = field(default_factory=dict)
    error: 'GroveError | None' = None

    def __iter__(self) -> 'Iterator[tuple[BlockNode, BlockOutcome]]':
        """Iterate over nodes with an outcome in tree order."""
        for node in self.tree.walk():
            if (outcome := self.outcomes.get(node.index)) is not None:
                yield node, outcome

    def count(self, status: Status) -> int:
        """Number of test outcomes with a status."""
        return sum(
            1 for node, outcome in self
            if not node.is_group and outcome.status is status
        )

    @property
    def succeeded(self) -> bool:
        """Whether the suite ran without failures, errors or faults."""
        if self.error is not None:
            return False

        return all(
            outcome.status not in (Status.FAILED, Status.ERROR)
            for outcome in self.outcomes.values()
        )

    def summary(self) -> str:
        """One-line counters of the suite."""
        counters = ', '.join(
            f'{self.count(status)} {status}'
            for status in Status
        )
        if self.error is not None:
            counters += ', aborted'

        return counters


class Reporter:
    """Receiver of block events. Every method is a no-op by default."""

    def on_start(self, node: 'BlockNode') -> None:
        """A test body is about to run."""

    def on_result(self, node: 'BlockNode', outcome: BlockOutcome) -> None:
        """A block produced an outcome."""

    def on_suite_error(self, error: 'GroveError') -> None:
        """The suite file was aborted."""


class CollectingReporter(Reporter):
    """Reporter keeping every event in memory."""

    def __init__(self) -> None:
        """Initialize an empty event list."""
        self.started: list[BlockNode] = []
        self.results: list[tuple[BlockNode, BlockOutcome]] = []
        self.errors: list[GroveError] = []

    def on_start(self, node: 'BlockNode') -> None:
        """Record a started test."""
        self.started.append(node)

    def on_result(self, node: 'BlockNode', outcome: BlockOutcome) -> None:
        """Record an outcome."""
        self.results.append((node, outcome))

    def on_suite_error(self, error: 'GroveError') -> None:
        """Record a suite fault."""
        self.errors.append(error)


class LoggingReporter(Reporter):
    """Reporter writing outcomes to the library logger."""

    LEVELS = {
        Status.PASSED: logging.INFO,
        Status.FAILED: logging.ERROR,
        Status.ERROR: logging.ERROR,
        Status.SKIPPED: logging.INFO,
        Status.NOT_RUN: logging.DEBUG,
    }

    def on_result(self, node: 'BlockNode', outcome: BlockOutcome) -> None:
        """Log an outcome."""
        name = ' > '.join(outcome.path) or node.name
        if message := outcome.message:
            logger.log(self.LEVELS[outcome.status], '[%s] %s: %s', outcome.status, name, message)
        else:
            logger.log(self.LEVELS[outcome.status], '[%s] %s', outcome.status, name)

    def on_suite_error(self, error: 'GroveError') -> None:
        """Log a suite fault."""
        logger.error('Suite aborted: %s', error)
