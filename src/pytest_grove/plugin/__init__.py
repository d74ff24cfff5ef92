"""Pytest plugin for collecting and executing behaviour-driven suites.

This module integrates `pytest-grove` with pytest by:
- registering custom command-line options;
- configuring a shared operator registry and runtime settings;
- collecting suite files as executable behaviour-driven suites.

Python files matching the pattern `spec_*.py` that define a `suite`
callable are collected, and each test declared by the suite becomes
a pytest test item.
"""

from re import match
from typing import TYPE_CHECKING, Any

from pytest_grove.core.runner import SUITE_PATTERN

from .spec import SuiteFile

if TYPE_CHECKING:
    from pathlib import Path

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser
    from _pytest.nodes import Node


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest command-line options for pytest-grove.

    Args:
        parser: Pytest argument parser.
    """
    group = parser.getgroup('grove', 'behaviour-driven suites')
    group.addoption(
        '--grove-relaxed',
        action='store_true',
        dest='grove_relaxed',
        default=False,
        help=(
            'Disable strict extension loading. '
            'Third-party plugin loading errors and operator collisions '
            'will be reported as warnings instead of failing the session.'
        ),
    )
    group.addoption(
        '--grove-tag',
        action='append',
        dest='grove_tags',
        default=[],
        metavar='TAG',
        help='Run only tests carrying the tag. May be given multiple times.',
    )
    group.addoption(
        '--grove-exclude-tag',
        action='append',
        dest='grove_exclude_tags',
        default=[],
        metavar='TAG',
        help='Do not run tests carrying the tag. May be given multiple times.',
    )


def pytest_configure(config: 'Config') -> None:
    """Configure pytest-grove integration.

    This hook resolves runtime settings, overriding environment values
    with the command-line options given, builds the operator registry
    and installs it as the process-wide one. Settings and registry are
    attached to the configuration object as `config.grove_settings`
    and `config.grove_registry`.

    Args:
        config: Pytest configuration object.
    """
    from pytest_grove.core.registry import create_registry, reset_registry  # noqa: PLC0415
    from pytest_grove.settings import GroveSettings  # noqa: PLC0415

    overrides: dict[str, Any] = {}
    if config.getoption('grove_relaxed', default=False):
        overrides['strict'] = False
    if tags := config.getoption('grove_tags', default=None):
        overrides['tags'] = frozenset(tags)
    if exclude_tags := config.getoption('grove_exclude_tags', default=None):
        overrides['exclude_tags'] = frozenset(exclude_tags)

    settings = GroveSettings(**overrides)
    registry = create_registry(strict=settings.strict)
    reset_registry(registry)

    config.grove_settings = settings  # type: ignore[attr-defined]
    config.grove_registry = registry  # type: ignore[attr-defined]


def pytest_collect_file(parent: 'Node', file_path: 'Path') -> SuiteFile | None:
    """Collect suite files.

    Files matching the pattern `spec_*.py` are treated as suites and
    collected using `SuiteFile`.

    Args:
        parent: Parent pytest collection node.
        file_path: Path to the file being considered.

    Returns:
        A `SuiteFile` collector if the file matches the suite pattern, otherwise ``None``.
    """
    if match(SUITE_PATTERN, file_path.name):
        return SuiteFile.from_parent(
            parent,
            path=file_path,
        )

    return None
