"""Pytest item reporting the outcome of a single suite test.

Tests of one suite file run together, in declaration order, inside the
suite run of their file collector. An item only triggers that run and
translates the recorded outcome of its block into pytest terms.
"""

from typing import TYPE_CHECKING

import pytest

from pytest_grove.core.reporting import Status
from pytest_grove.errors import AssertionFailure, GroveError

if TYPE_CHECKING:
    from typing import Any

if TYPE_CHECKING:
    from _pytest._code.code import ExceptionInfo, TerminalRepr

    from pytest_grove.core.blocks import BlockNode

    from .spec import SuiteFile


class BlockItem(pytest.Item):
    """Pytest item bound to one test node of a suite tree."""

    __test__ = False

    def __init__(self, *, block: 'BlockNode', **kwargs: 'Any') -> None:
        """Initialize a pytest item backed by a block node.

        Args:
            block: Discovered test node.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.block = block
        self.extra_keyword_matches.update(block.tags)

    def runtest(self) -> None:
        """Run the suite if needed and report the outcome of this test."""
        parent: SuiteFile = self.parent  # type: ignore[assignment]
        result = parent.result()

        if result.error is not None:
            raise result.error

        outcome = result.outcomes.get(self.block.index)
        if outcome is None:
            pytest.skip('not run')

        match outcome.status:
            case Status.PASSED:
                return
            case Status.SKIPPED | Status.NOT_RUN:
                pytest.skip(outcome.reason or f'{outcome.status}')
            case _:
                if outcome.error is None:
                    raise AssertionError(outcome.message)
                raise outcome.error

    def repr_failure(self, excinfo: 'ExceptionInfo[BaseException]',
                     style: 'Any' = None) -> 'str | TerminalRepr':
        """Render library errors and assertion failures without traceback."""
        if isinstance(excinfo.value, (AssertionFailure, GroveError)):
            return f'{excinfo.value}'

        return super().repr_failure(excinfo, style=style)

    def reportinfo(self) -> tuple[str, int | None, str]:
        """Report the suite file and the line of the test body."""
        line = None
        if self.block.line is not None:
            line = self.block.line - 1

        return f'{self.path}', line, self.name
