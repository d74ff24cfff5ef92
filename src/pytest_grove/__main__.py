"""Command-line utilities for pytest-grove suites.

The CLI lists registered assertion operators, prints the block tree of
a suite file and runs a suite file outside of pytest.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

from click import BadParameter, ClickException, argument, echo, group, option, style
from click import Path as PathParam
from yaml import YAMLError, safe_load

from pytest_grove.core.registry import create_registry
from pytest_grove.core.reporting import Reporter, Status
from pytest_grove.core.runner import SuiteRunner
from pytest_grove.errors import GroveError
from pytest_grove.settings import GroveSettings

if TYPE_CHECKING:
    from click import Context, Parameter

    from pytest_grove.core.blocks import BlockNode, BlockTree
    from pytest_grove.core.reporting import BlockOutcome

INDENT = '  '

COLORS = {
    Status.PASSED: 'green',
    Status.FAILED: 'red',
    Status.ERROR: 'red',
    Status.SKIPPED: 'yellow',
    Status.NOT_RUN: 'bright_black',
}

SuiteFilepath = PathParam(
    exists=True,
    dir_okay=False,
    readable=True,
    path_type=Path,
)


def _parse_params(ctx: 'Context', param: 'Parameter',  # noqa: ARG001
                  values: tuple[str, ...]) -> dict[str, Any]:
    """Parse `key=value` suite parameters.

    Values are read as YAML scalars, so `3` is an integer and
    `[1, 2]` is a list.
    """
    params: dict[str, Any] = {}

    for value in values:
        key, sep, raw = value.partition('=')
        if not sep or not key:
            raise BadParameter(f'expected key=value, got {value!r}')

        try:
            params[key] = safe_load(raw)
        except YAMLError as base:
            raise BadParameter(f'invalid value of {key!r}') from base

    return params


class EchoReporter(Reporter):
    """Reporter printing one line per test outcome."""

    def on_result(self, node: 'BlockNode', outcome: 'BlockOutcome') -> None:
        """Print an outcome."""
        if node.is_group and outcome.status is not Status.ERROR:
            return

        status = style(f'{outcome.status}'.upper(), fg=COLORS[outcome.status])
        echo(f'{status} {" > ".join(outcome.path) or node.name}')

        if outcome.status in (Status.FAILED, Status.ERROR) and (message := outcome.message):
            for line in message.splitlines():
                echo(f'{INDENT * 2}{line}')

    def on_suite_error(self, error: GroveError) -> None:
        """Print a suite fault."""
        echo(style(f'{error}', fg='red'), err=True)


def _print_tree(tree: 'BlockTree', index: int, depth: int = 0) -> None:
    """Print a subtree, one block per line."""
    for node in tree.children(index):
        flags = []
        if node.tags:
            flags.append(f'tags: {", ".join(sorted(node.tags))}')
        if node.skip:
            flags.append('skip')
        if node.focus:
            flags.append('focus')

        suffix = f' ({"; ".join(flags)})' if flags else ''
        marker = '+' if node.is_group else '-'
        echo(f'{INDENT * depth}{marker} {node.name}{suffix}')

        if node.is_group:
            _print_tree(tree, node.index, depth + 1)


@group(help='Command-line utilities for pytest-grove suites.')
@option(
    '--relaxed',
    is_flag=True,
    default=False,
    help='Report extension plugin loading issues as warnings.',
)
def cli(relaxed: bool) -> None:  # noqa: FBT001
    """Root CLI group for pytest-grove tools."""
    if relaxed:
        from pytest_grove.core.registry import reset_registry  # noqa: PLC0415

        reset_registry(create_registry(strict=False))


@cli.command(
    name='operators',
    help='List registered assertion operators.',
)
def list_operators() -> None:
    """Print every registered operator with its aliases."""
    from pytest_grove.core.registry import get_registry  # noqa: PLC0415

    for operator in sorted(get_registry(), key=lambda item: item.name):
        line = operator.name
        if operator.aliases:
            line += f' ({", ".join(operator.aliases)})'
        if not operator.negatable:
            line += ' [not negatable]'
        echo(line)


@cli.command(
    name='discover',
    help='Print the block tree of a suite file.',
)
@option(
    '-p', '--param',
    'params',
    multiple=True,
    callback=_parse_params,
    help='Suite parameter as key=value. May be given multiple times.',
)
@argument('path', type=SuiteFilepath)
def discover(path: Path, params: dict[str, Any]) -> None:
    """Discover a suite file and print its tree."""
    try:
        state = SuiteRunner().discover_file(path, params)
    except GroveError as error:
        raise ClickException(f'{error}') from error

    echo(state.tree.root.name)
    _print_tree(state.tree, state.tree.root.index, depth=1)


@cli.command(
    name='run',
    help='Run a suite file and print the outcome of every test.',
)
@option(
    '-t', '--tag',
    'tags',
    multiple=True,
    help='Run only tests carrying the tag. May be given multiple times.',
)
@option(
    '-x', '--exclude-tag',
    'exclude_tags',
    multiple=True,
    help='Do not run tests carrying the tag. May be given multiple times.',
)
@option(
    '-p', '--param',
    'params',
    multiple=True,
    callback=_parse_params,
    help='Suite parameter as key=value. May be given multiple times.',
)
@argument('path', type=SuiteFilepath)
def run(path: Path, tags: tuple[str, ...],
        exclude_tags: tuple[str, ...], params: dict[str, Any]) -> None:
    """Run a suite file and exit with a non-zero code on failure."""
    overrides: dict[str, Any] = {}
    if tags:
        overrides['tags'] = frozenset(tags)
    if exclude_tags:
        overrides['exclude_tags'] = frozenset(exclude_tags)

    runner = SuiteRunner(
        reporter=EchoReporter(),
        settings=GroveSettings(**overrides),
    )

    try:
        result = runner.run_file(path, params)
    except GroveError as error:
        raise ClickException(f'{error}') from error

    echo(result.summary())

    if not result.succeeded:
        raise SystemExit(1)


if __name__ == '__main__':
    cli()
