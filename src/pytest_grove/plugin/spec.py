"""Pytest integration for suite files.

This module defines a custom pytest file collector that treats
`spec_*.py` files as behaviour-driven suites.

Each collected file is discovered once to build its block tree, and
every test of the tree becomes a `BlockItem`. The suite itself is run
once per file, lazily, when the first of its items executes; the run
is restricted to the items pytest kept after deselection.
"""

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from pytest_grove.core.runner import SuiteRunner, load_suite

from .case import BlockItem

if TYPE_CHECKING:
    from collections.abc import Iterable

if TYPE_CHECKING:
    from pytest_grove.core.reporting import SuiteResult
    from pytest_grove.core.runner import Suite


class SuiteFile(pytest.File):
    """Pytest file collector for suite files.

    This collector:
    - imports the file and resolves its `suite` callable;
    - discovers the block tree with the suite parameter defaults;
    - emits one `BlockItem` per test, named after its block path.
    """

    __test__ = False

    suite: 'Suite | None' = None
    _result: 'SuiteResult | None' = None

    @property
    def runner(self) -> SuiteRunner:
        """Runner bound to the session registry and settings."""
        return SuiteRunner(
            registry=getattr(self.config, 'grove_registry', None),
            settings=getattr(self.config, 'grove_settings', None),
        )

    def collect(self) -> 'Iterable[BlockItem]':
        """Collect pytest items from a suite file.

        Returns:
            Iterable of `BlockItem` instances for pytest execution.

        Raises:
            SuiteSetupError: If a group body of the suite fails.
        """
        self.suite = load_suite(Path(self.path))

        state = self.runner.discover(
            self.suite,
            name=self.path.stem,
            filename=f'{self.path}',
        )

        seen: dict[str, int] = {}
        for leaf in state.tree.leaves():
            name = ' > '.join(state.tree.path(leaf.index))

            seen[name] = seen.get(name, 0) + 1
            if seen[name] > 1:
                name = f'{name} [{seen[name]}]'

            yield BlockItem.from_parent(
                self,
                name=name,
                block=leaf,
            )

    def result(self) -> 'SuiteResult':
        """Run the suite once and return the cached result.

        Only the items of this file pytest kept in the session are run;
        the others are reported as not run.
        """
        if self._result is None:
            if self.suite is None:
                self.suite = load_suite(Path(self.path))

            select = {
                item.block.index
                for item in self.session.items
                if isinstance(item, BlockItem) and item.parent is self
            }

            self._result = self.runner.run(
                self.suite,
                select=select,
                name=self.path.stem,
                filename=f'{self.path}',
            )

        return self._result
