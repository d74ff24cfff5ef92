"""Phased suite orchestration.

A suite is a callable declaring blocks, usually the `suite` function of a
`spec_*.py` file. The runner executes it twice:

- discovery builds the block tree, running group bodies only;
- the run re-executes the declarations against the discovered tree and
  walks it, running hooks and test bodies in declaration order.

Every group and test body runs inside its own resource scope.
"""

import logging
from collections.abc import Callable, Collection, Mapping
from importlib.util import module_from_spec, spec_from_file_location
from inspect import Parameter, signature
from os import linesep
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Any

import pytest

from pytest_grove.errors import (
    AssertionFailure,
    DiscoveryRunDivergenceFault,
    ErrorContext,
    GroveError,
    SuiteSetupError,
)
from pytest_grove.settings import GroveSettings

from .blocks import ROOT_INDEX, BlockTree
from .builder import BlockBuilder, call_body
from .context import orchestration
from .registry import get_registry
from .reporting import BlockOutcome, LoggingReporter, Reporter, Status, SuiteResult
from .scopes import ScopeManager
from .state import ExecutionState, Hooks

if TYPE_CHECKING:
    from types import ModuleType

    from .blocks import Body, BlockNode
    from .registry import OperatorRegistry

logger = logging.getLogger(__name__)

#: Name of the callable a suite file must define.
SUITE_ATTRIBUTE = 'suite'

#: Suite file name pattern, also used by the pytest collector.
SUITE_PATTERN = r'^spec_.+\.py$'

type Suite = Callable[..., Any]

#: pytest outcomes a body may raise besides regular exceptions.
SKIPPED = pytest.skip.Exception
FAILED = pytest.fail.Exception


def suite_defaults(suite: Suite) -> dict[str, Any]:
    """Return the declared parameter defaults of a suite callable."""
    try:
        parameters = signature(suite).parameters.values()
    except (TypeError, ValueError):
        return {}

    return {
        param.name: param.default
        for param in parameters
        if param.default is not Parameter.empty
    }


def load_suite(path: Path) -> Suite:
    """Import a suite file and return its suite callable.

    Args:
        path: Path to a `spec_*.py` file.

    Returns:
        The `suite` callable defined by the file.

    Raises:
        GroveError: If the file can not be imported or defines no suite.
    """
    spec = spec_from_file_location(f'grove_suite_{path.stem}', path)
    if spec is None or spec.loader is None:
        raise GroveError(f'Can not import suite file {path}')

    module: ModuleType = module_from_spec(spec)
    spec.loader.exec_module(module)

    suite = getattr(module, SUITE_ATTRIBUTE, None)
    if not callable(suite):
        raise GroveError(f'Suite file {path} does not define a callable {SUITE_ATTRIBUTE!r}')

    return suite  # type: ignore[no-any-return]


class SuiteRunner:
    """Discovers and runs suites.

    The runner seals the operator registry before the first run, so every
    extension must register its operators before suites execute.
    """

    def __init__(self, *,
                 registry: 'OperatorRegistry | None' = None,
                 reporter: Reporter | None = None,
                 settings: GroveSettings | None = None) -> None:
        """Initialize a runner.

        Args:
            registry: Operator registry, defaults to the process-wide one.
            reporter: Event receiver, defaults to a no-op reporter.
            settings: Runtime settings, read from the environment by default.
        """
        self.registry = registry if registry is not None else get_registry()
        self.reporter = reporter or Reporter()
        self.settings = settings or GroveSettings()

    def discover(self, suite: Suite, params: Mapping[str, Any] | None = None, *,
                 name: str | None = None,
                 filename: str | None = None) -> ExecutionState:
        """Build the block tree of a suite.

        Args:
            suite: Suite callable.
            params: Suite parameters.
            name: Root name, defaults to the suite callable name.
            filename: Suite file name used in diagnostics.

        Returns:
            Execution state holding the discovered tree.

        Raises:
            SuiteSetupError: If the suite or a group body failed.
        """
        explicit = dict(params or {})
        state = ExecutionState(
            tree=BlockTree(name or getattr(suite, '__module__', None) or '<suite>'),
            params=dict(explicit),
            defaults=suite_defaults(suite),
        )
        scopes = ScopeManager()
        builder = BlockBuilder(state, filename=filename, scopes=scopes)

        with orchestration(builder), scopes.open(ROOT_INDEX):
            try:
                suite(**explicit)
            except Exception as error:
                state.errors[ROOT_INDEX] = error

        if state.errors:
            raise self.setup_error(state, filename)

        logger.debug('Discovered %d block(s) in %s', len(state.tree) - 1, state.tree.root.name)

        return state

    @staticmethod
    def setup_error(state: ExecutionState, filename: str | None) -> SuiteSetupError:
        """Aggregate discovery faults into a suite-level setup failure."""
        lines = []
        for index, error in state.errors.items():
            path = ' > '.join(state.tree.path(index)) or state.tree.root.name
            lines.append(f'{path}: {error!r}')

        return SuiteSetupError(
            f'Suite discovery failed:{linesep}' + linesep.join(lines),
            errors=list(state.errors.values()),
            context=ErrorContext(filename=filename),
        )

    def run(self, suite: Suite, params: Mapping[str, Any] | None = None, *,
            select: Collection[int] | None = None,
            name: str | None = None,
            filename: str | None = None) -> SuiteResult:
        """Discover and run a suite.

        Args:
            suite: Suite callable.
            params: Suite parameters.
            select: Indices of the tests to run; every test when omitted.
            name: Root name, defaults to the suite callable name.
            filename: Suite file name used in diagnostics.

        Returns:
            Suite results. A setup failure or a divergence between
            discovery and run is stored as the result error.
        """
        self.registry.seal()

        try:
            state = self.discover(suite, params, name=name, filename=filename)
        except SuiteSetupError as error:
            self.reporter.on_suite_error(error)
            return SuiteResult(name=name or '<suite>', tree=BlockTree(), error=error)

        result = SuiteResult(
            name=state.tree.root.name,
            tree=state.tree,
            params=state.params,
        )

        state.begin_run()
        walker = TreeWalker(
            state,
            builder=BlockBuilder(state, filename=filename),
            suite=lambda: suite(**dict(params or {})),
            result=result,
            reporter=self.reporter,
            settings=self.settings,
            select=select,
        )

        try:
            walker.run()
        except DiscoveryRunDivergenceFault as fault:
            logger.debug('Suite %s diverged', result.name, exc_info=True)
            result.error = fault
            self.reporter.on_suite_error(fault)

        return result

    def run_file(self, path: Path, params: Mapping[str, Any] | None = None, *,
                 select: Collection[int] | None = None) -> SuiteResult:
        """Load a suite file and run it."""
        return self.run(
            load_suite(path),
            params,
            select=select,
            name=path.stem,
            filename=f'{path}',
        )

    def discover_file(self, path: Path,
                      params: Mapping[str, Any] | None = None) -> ExecutionState:
        """Load a suite file and discover its tree."""
        return self.discover(
            load_suite(path),
            params,
            name=path.stem,
            filename=f'{path}',
        )

    @classmethod
    def run_interactive(cls, suite: Suite) -> SuiteResult:
        """Run a single declaration as a self-contained suite.

        Results are reported through the library logger.
        """
        return cls(reporter=LoggingReporter()).run(suite, name='<interactive>')


class TreeWalker:
    """Walks a discovered tree during the run phase."""

    def __init__(self, state: ExecutionState, *,  # noqa: PLR0913
                 builder: BlockBuilder,
                 suite: 'Body',
                 result: SuiteResult,
                 reporter: Reporter,
                 settings: GroveSettings,
                 select: Collection[int] | None = None) -> None:
        """Initialize a walker.

        Args:
            state: Execution state in the run phase.
            builder: Builder matching run-phase declarations.
            suite: Body of the root group.
            result: Result receiving outcomes.
            reporter: Event receiver.
            settings: Tag filters.
            select: Indices of the tests to run.
        """
        self.state = state
        self.tree = state.tree
        self.builder = builder
        self.suite = suite
        self.result = result
        self.reporter = reporter
        self.settings = settings
        self.select = None if select is None else frozenset(select)
        self.scopes = ScopeManager()

    def run(self) -> None:
        """Walk the whole tree.

        Raises:
            DiscoveryRunDivergenceFault: If the run does not match discovery.
        """
        with orchestration(self.builder):
            self.run_group(ROOT_INDEX)

    def filter_reason(self, index: int) -> tuple[Status, str] | None:
        """Return why a test should not run, or `None` if it should."""
        if self.tree.is_skipped(index):
            return Status.SKIPPED, 'skipped'

        if self.select is not None and index not in self.select:
            return Status.NOT_RUN, 'deselected'

        if self.tree.has_focus and not self.tree.is_focused(index):
            return Status.NOT_RUN, 'not focused'

        tags = self.tree.effective_tags(index)
        if self.settings.tags and not tags & self.settings.tags:
            return Status.NOT_RUN, 'no matching tag'

        if excluded := tags & self.settings.exclude_tags:
            return Status.NOT_RUN, f'excluded by tag {sorted(excluded)[0]!r}'

        return None

    def report(self, node: 'BlockNode', status: Status, **values: Any) -> BlockOutcome:  # noqa: ANN401
        """Store an outcome and emit it."""
        outcome = BlockOutcome(
            status=status,
            path=tuple(self.tree.path(node.index)),
            **values,
        )

        self.result.outcomes[node.index] = outcome
        self.reporter.on_result(node, outcome)

        return outcome

    def report_leaves(self, index: int, status: Status | None = None, **values: Any) -> None:  # noqa: ANN401
        """Report every test of a subtree without running it.

        Filtered tests keep their own status; the others get `status`.
        """
        for leaf in self.tree.leaves(index):
            if (reason := self.filter_reason(leaf.index)) is not None:
                self.report(leaf, reason[0], reason=reason[1])
            elif status is not None:
                self.report(leaf, status, **values)

    def body_of(self, index: int) -> 'Body':
        """Return the body re-declared for a node during the run."""
        if index == ROOT_INDEX:
            return self.suite

        return self.state.bodies[index]

    def data_of(self, index: int) -> Mapping[str, Any] | None:
        """Return the data binding re-evaluated for a node during the run."""
        return self.state.bindings.get(index)

    def run_group(self, index: int) -> None:
        """Run a group: re-declare its children, then run hooks and children."""
        node = self.tree.node(index)

        if not any(self.filter_reason(leaf.index) is None for leaf in self.tree.leaves(index)):
            self.report_leaves(index)
            return

        data = self.data_of(index)

        with self.scopes.open(index):
            with self.state.enter(index):
                try:
                    call_body(self.body_of(index), data)
                except DiscoveryRunDivergenceFault:
                    raise
                except Exception as error:
                    self.report(node, Status.ERROR, error=error)
                    self.report_leaves(index, Status.ERROR, error=error)
                    return

            self.builder.verify_complete(index)
            hooks = self.state.hooks.get(index) or Hooks()

            try:
                self.run_hooks(index, hooks.before_all, data)
            except SKIPPED as skipped:
                self.report_leaves(index, Status.SKIPPED, reason=skipped.msg or 'skipped')
            except (Exception, FAILED) as error:
                self.report(node, Status.ERROR, error=error)
                self.report_leaves(index, Status.ERROR, error=error)
            else:
                for child in self.tree.children(index):
                    if child.is_group:
                        self.run_group(child.index)
                    else:
                        self.run_leaf(child.index)
            finally:
                self.run_after_all(node, hooks.after_all, data)

    def run_hooks(self, index: int, hooks: list['Body'],
                  data: Mapping[str, Any] | None) -> None:
        """Run hooks in order with the node as current."""
        with self.state.enter(index):
            for hook in hooks:
                call_body(hook, data)

    def run_after_all(self, node: 'BlockNode', hooks: list['Body'],
                      data: Mapping[str, Any] | None) -> None:
        """Run teardown hooks of a group, recording the first fault."""
        for hook in hooks:
            try:
                self.run_hooks(node.index, [hook], data)
            except (Exception, FAILED, SKIPPED) as error:
                logger.warning('Teardown of %r failed', node.name, exc_info=True)
                if node.index not in self.result.outcomes:
                    self.report(node, Status.ERROR, error=error)

    def each_hooks(self, index: int) -> tuple[list['Body'], list['Body']]:
        """Collect per-test hooks of the enclosing groups.

        Returns:
            Setup hooks outermost first and teardown hooks innermost first.
        """
        before: list[Body] = []
        after: list[Body] = []

        for ancestor in reversed(self.tree.ancestors(index)):
            hooks = self.state.hooks.get(ancestor.index)
            if hooks is not None:
                before.extend(hooks.before_each)
                after[:0] = hooks.after_each

        return before, after

    def run_leaf(self, index: int) -> None:
        """Run a test inside its own scope and record its outcome."""
        node = self.tree.node(index)

        if (reason := self.filter_reason(index)) is not None:
            self.report(node, reason[0], reason=reason[1])
            return

        data = self.data_of(index)
        before, after = self.each_hooks(index)

        self.reporter.on_start(node)
        started = perf_counter()
        outcome: dict[str, Any] = {'status': Status.PASSED}

        with self.scopes.open(index), self.state.enter(index):
            try:
                for hook in before:
                    call_body(hook, data)
                call_body(self.body_of(index), data)

            except SKIPPED as skipped:
                outcome = {'status': Status.SKIPPED, 'reason': skipped.msg or 'skipped'}

            except FAILED as failure:
                outcome = {'status': Status.FAILED, 'error': failure}

            except AssertionFailure as failure:
                outcome = {'status': Status.FAILED, 'result': failure.result, 'error': failure}

            except AssertionError as error:
                outcome = {'status': Status.FAILED, 'error': error}

            except Exception as error:
                outcome = {'status': Status.ERROR, 'error': error}

            finally:
                for hook in after:
                    try:
                        call_body(hook, data)
                    except (Exception, FAILED, SKIPPED) as error:
                        logger.warning('Teardown of %r failed', node.name, exc_info=True)
                        if outcome['status'] is Status.PASSED:
                            outcome = {'status': Status.ERROR, 'error': error}

        self.report(node, duration=perf_counter() - started, **outcome)
