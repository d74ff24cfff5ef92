"""Tests configurations and fixtures."""

# ruff: noqa: SLF001

from importlib.metadata import EntryPoint, EntryPoints
from typing import TYPE_CHECKING

import pytest

from pytest_grove.core import registry as registry_module
from pytest_grove.core.assertions import AssertionEngine
from pytest_grove.core.registry import PLUGINS_GROUP, create_registry, reset_registry
from pytest_grove.core.reporting import CollectingReporter
from pytest_grove.core.runner import SuiteRunner
from pytest_grove.settings import GroveSettings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

if TYPE_CHECKING:
    from pytest_mock import MockerFixture, MockType

if TYPE_CHECKING:
    from pytest_grove.core.registry import OperatorRegistry
    from pytest_grove.extensions import Plugin


@pytest.fixture
def registry() -> 'Iterator[OperatorRegistry]':
    """Provide a registry with built-in operators only.

    The registry is installed as the process-wide one for the duration
    of the test, so `should` and `check` called without an explicit
    engine resolve operators from it. The previous registry is restored
    afterwards.
    """
    previous = registry_module._registry

    registry = create_registry(plugins=False)
    reset_registry(registry)

    yield registry

    reset_registry(previous)


@pytest.fixture
def engine(registry: 'OperatorRegistry') -> AssertionEngine:
    """Provide an assertion engine bound to the test registry."""
    return AssertionEngine(registry)


@pytest.fixture
def reporter() -> CollectingReporter:
    """Provide a reporter keeping every event in memory."""
    return CollectingReporter()


@pytest.fixture
def runner(registry: 'OperatorRegistry', reporter: CollectingReporter) -> SuiteRunner:
    """Provide a runner with default settings and an in-memory reporter.

    Settings are built explicitly so `GROVE_*` variables of the
    environment running the tests can not change the outcome.
    """
    return SuiteRunner(
        registry=registry,
        reporter=reporter,
        settings=GroveSettings(strict=True, tags=frozenset(), exclude_tags=frozenset()),
    )


@pytest.fixture
def patch_entrypoints(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory for mocking `importlib.metadata.entry_points`.

    Returns a callable that patches `entry_points()` to simulate
    discovery of plugins in the `grove_plugins` entry point group.

    The returned factory allows configuring:
    - successfully loadable plugins,
    - or an exception raised during plugin loading,
    - or an empty entry point list.
    """
    def patch(*plugins: 'Plugin | object', raises: Exception | None = None) -> 'MockType':
        """Patch `entry_points` with a controlled plugin configuration.

        Args:
            plugins: Objects to be returned by `EntryPoint.load()`.
                If empty, no entry points are registered.
            raises: Exception to raise when `EntryPoint.load()` is called.
                Used to simulate plugin load failures.

        Returns:
            A mock patch object produced by `mocker.patch` that replaces
            `importlib.metadata.entry_points` for the duration of the test.
        """
        entrypoints = []
        for plugin in plugins:
            ep = mocker.Mock(spec=EntryPoint)
            ep.group = PLUGINS_GROUP
            ep.name = 'tests'
            ep.value = 'tests.plugins:test'
            ep.load.return_value = plugin
            if raises is not None:
                ep.load.side_effect = raises
            entrypoints.append(ep)

        return mocker.patch(
            'importlib.metadata.entry_points',
            return_value=EntryPoints(entrypoints),
        )

    return patch
