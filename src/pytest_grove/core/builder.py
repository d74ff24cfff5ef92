"""Block tree builder and data-driven expander.

Group and test declarations share one protocol. During discovery a
declaration creates a node under the current one and, for groups, runs
the body right away so nested declarations register their own nodes.
During the run the same declarations are matched against the discovered
tree by position, name and kind; their bodies are handed to the tree
walker instead of being created anew.

The module-level functions (`describe`, `it`, hooks) dispatch to the
builder of the suite run in progress, or start a self-contained
interactive run when no suite run is active.
"""

import logging
from collections.abc import Iterable, Mapping
from inspect import Parameter, signature
from typing import TYPE_CHECKING, Any

from pytest_grove.errors import (
    DeclarationError,
    DiscoveryRunDivergenceFault,
    ErrorContext,
    MalformedNameError,
    MissingBodyError,
)
from pytest_grove.names import ITEM_NAME, PLACEHOLDER_PATTERN
from pytest_grove.values import lookup

from .blocks import ROOT_INDEX, BlockKind, BlockNode, Body
from .context import Mode, active_builder, detect_mode
from .scopes import ScopeManager
from .state import ExecutionState, Phase

if TYPE_CHECKING:
    from .reporting import SuiteResult

logger = logging.getLogger(__name__)

LINE_BREAKS = ('\n', '\r')

#: Marks a declaration that is not data-driven.
NO_DATA: Any = object()

type Tags = Iterable[str]


def call_body(body: Body, data: Mapping[str, Any] | None = None) -> Any:  # noqa: ANN401
    """Invoke a block body, passing data bindings by parameter name.

    A body accepting `**kwargs` receives every binding; otherwise only the
    bindings matching its parameter names are passed.

    Args:
        body: Deferred block content.
        data: Data binding of a data-driven block.

    Returns:
        Whatever the body returns.
    """
    if not data:
        return body()

    try:
        parameters = signature(body).parameters.values()
    except (TypeError, ValueError):
        return body()

    if any(param.kind is Parameter.VAR_KEYWORD for param in parameters):
        return body(**data)

    return body(**{
        param.name: data[param.name]
        for param in parameters
        if param.name in data and param.kind in (
            Parameter.POSITIONAL_OR_KEYWORD,
            Parameter.KEYWORD_ONLY,
        )
    })


def bind(item: Any) -> dict[str, Any]:  # noqa: ANN401
    """Build the data binding of one data-set item.

    Mapping keys become named bindings; the item itself is always bound
    under the reserved item name, shadowing a key of the same name.
    """
    binding: dict[str, Any] = {}
    if isinstance(item, Mapping):
        binding.update((f'{key}', value) for key, value in item.items())

    binding[ITEM_NAME] = item

    return binding


def template(name: str, binding: Mapping[str, Any]) -> str:
    """Substitute `<key>` placeholders of a block name.

    Placeholders that can not be resolved are kept verbatim.
    """
    def replace(match: Any) -> str:  # noqa: ANN401
        try:
            return f'{lookup(binding, match.group('path'))}'
        except LookupError:
            return match.group(0)

    return PLACEHOLDER_PATTERN.sub(replace, name)


def body_line(body: Body | None) -> int | None:
    """Return the first source line of a body, when known."""
    code = getattr(body, '__code__', None)

    return getattr(code, 'co_firstlineno', None)


class BlockBuilder:
    """Builds and re-identifies block nodes as declarations execute.

    Builders are created by the suite runner only, bound to the execution
    state of one suite run.
    """

    def __init__(self, state: ExecutionState, *,
                 filename: str | None = None,
                 scopes: ScopeManager | None = None) -> None:
        """Initialize a builder.

        Args:
            state: Execution state of the suite run.
            filename: Suite file name used in diagnostics.
            scopes: Resource scopes of group bodies run during discovery.
        """
        self.state = state
        self.filename = filename
        self.scopes = scopes if scopes is not None else ScopeManager()

    @property
    def params(self) -> dict[str, Any]:
        """Suite parameters of the run, with declared defaults."""
        return self.state.params

    @staticmethod
    def validate(name: str, body: Body | None) -> None:
        """Validate the inputs of a declaration.

        Raises:
            MalformedNameError: If the body is missing and the name spans lines.
            MissingBodyError: If the body is missing.
            DeclarationError: If the name is empty or the body is not callable.
        """
        if body is None:
            if any(char in name for char in LINE_BREAKS):
                raise MalformedNameError(
                    f'Block {name!r} has a multi-line name and no body; '
                    'the body was probably separated from the declaration',
                )
            raise MissingBodyError(f'Block {name!r} has no body')

        if not name or not name.strip():
            raise DeclarationError('Block name can not be empty')

        if not callable(body):
            raise DeclarationError(f'Body of block {name!r} is not callable')

    def context(self, index: int | None = None, **extra: Any) -> ErrorContext:  # noqa: ANN401
        """Build an error context for a node."""
        if index is None:
            index = self.state.current

        node = self.state.tree.node(index)

        return ErrorContext(
            filename=self.filename,
            line_num=node.line,
            path=self.state.tree.path(index),
            **extra,
        )

    def _ensure_group(self, name: str) -> None:
        """Fail when declaring inside a test body."""
        current = self.state.tree.node(self.state.current)
        if not current.is_group:
            raise DeclarationError(
                f'Block {name!r} can not be declared inside test {current.name!r}',
                context=self.context(),
            )

    def declare(self, kind: BlockKind, name: str, body: Body | None, *,  # noqa: PLR0913
                tags: Tags = (),
                skip: bool = False,
                focus: bool = False,
                data: Mapping[str, Any] | None = None,
                expansion: int | None = None) -> BlockNode:
        """Declare one group or test.

        Args:
            kind: Block kind.
            name: Block name.
            body: Deferred block content.
            tags: Block tags.
            skip: Skip request.
            focus: Focus request.
            data: Data binding of a data-driven block.
            expansion: Identifier of the data-driven declaration.

        Returns:
            The created (discovery) or matched (run) node.

        Raises:
            DeclarationError: On authoring mistakes.
            DiscoveryRunDivergenceFault: If the run does not match discovery.
        """
        self.validate(name, body)
        self._ensure_group(name)

        if self.state.phase is Phase.DISCOVERY:
            return self._create(kind, name, body, tags=frozenset(tags),
                                skip=skip, focus=focus, data=data,
                                expansion=expansion)

        return self._match(kind, name, body, data=data)

    def _create(self, kind: BlockKind, name: str, body: Body, *,  # noqa: PLR0913
                tags: frozenset[str],
                skip: bool,
                focus: bool,
                data: Mapping[str, Any] | None,
                expansion: int | None) -> BlockNode:
        """Create a node during discovery and run group bodies."""
        state = self.state
        parent = state.current

        if kind is BlockKind.GROUP and parent == ROOT_INDEX and not state.tree.root.children:
            state.backfill_defaults()

        node = state.tree.add(
            parent,
            name,
            kind,
            tags=tags,
            skip=skip,
            focus=focus,
            line=body_line(body),
            data=data,
            expansion=expansion,
            body=body,
        )

        if node.is_group:
            with self.scopes.open(node.index), state.enter(node.index):
                try:
                    call_body(body, data)
                except Exception as error:
                    logger.debug('Discovery of %r failed', name, exc_info=True)
                    state.errors[node.index] = error

        return node

    def _match(self, kind: BlockKind, name: str, body: Body, *,
               data: Mapping[str, Any] | None) -> BlockNode:
        """Re-identify a discovered node during the run."""
        state = self.state
        parent = state.current

        discovered = state.tree.node(parent).children
        position = state.positions.get(parent, 0)

        if position >= len(discovered):
            raise DiscoveryRunDivergenceFault(
                f'Block {name!r} was declared during the run but not discovered',
                context=self.context(parent, element={
                    'discovered': len(discovered),
                    'declared': name,
                }),
            )

        node = state.tree.node(discovered[position])
        if node.name != name or node.kind is not kind:
            raise DiscoveryRunDivergenceFault(
                f'Block {name!r} was declared where {node.name!r} was discovered',
                context=self.context(node.index, element={
                    'discovered': {'name': node.name, 'kind': f'{node.kind}'},
                    'declared': {'name': name, 'kind': f'{kind}'},
                }),
            )

        state.positions[parent] = position + 1
        state.bodies[node.index] = body
        if data is not None:
            state.bindings[node.index] = data

        return node

    def verify_complete(self, index: int) -> None:
        """Check that every discovered child of a group was re-declared.

        Raises:
            DiscoveryRunDivergenceFault: If children are missing.
        """
        discovered = self.state.tree.node(index).children
        declared = self.state.positions.get(index, 0)

        if declared != len(discovered):
            missing = [
                self.state.tree.node(child).name
                for child in discovered[declared:]
            ]
            raise DiscoveryRunDivergenceFault(
                f'{len(missing)} discovered block(s) were not declared during the run',
                context=self.context(index, element={'missing': missing}),
            )

    def expand(self, kind: BlockKind, name: str, body: Body | None,  # noqa: PLR0913
               data_set: Iterable[Any] | None, *,
               tags: Tags = (),
               skip: bool = False,
               focus: bool = False) -> list[BlockNode]:
        """Declare one sibling block per data-set item.

        An absent or empty data set declares nothing.

        Returns:
            Created or matched nodes, in data-set order.

        Raises:
            DiscoveryRunDivergenceFault: If the run re-evaluates the data set
                to a different number of items.
        """
        self.validate(name, body)

        items = list(data_set or ())
        if not items:
            return []

        expansion = None
        if self.state.phase is Phase.DISCOVERY:
            expansion = self.state.next_expansion()
        else:
            self._check_expansion(name, len(items))

        return [
            self.declare(
                kind,
                template(name, binding),
                body,
                tags=tags,
                skip=skip,
                focus=focus,
                data=binding,
                expansion=expansion,
            )
            for binding in map(bind, items)
        ]

    def _check_expansion(self, name: str, count: int) -> None:
        """Compare a run-phase data set size with the discovered one.

        Discovered siblings belong to the same data set when they share
        the expansion identifier assigned during discovery.
        """
        state = self.state
        parent = state.current
        discovered = state.tree.node(parent).children
        position = state.positions.get(parent, 0)

        if position >= len(discovered):
            return

        first = state.tree.node(discovered[position])
        if first.expansion is None:
            return

        siblings = 0
        for child in discovered[position:]:
            node = state.tree.node(child)
            if node.expansion != first.expansion:
                break
            siblings += 1

        if siblings and siblings != count:
            raise DiscoveryRunDivergenceFault(
                f'Data set of block {name!r} yielded {count} item(s), '
                f'{siblings} were discovered',
                context=self.context(parent),
            )

    def hook(self, kind: str, body: Body | None) -> None:
        """Declare a setup or teardown hook in the current group.

        Hooks are collected during the run only; discovery ignores them.

        Raises:
            DeclarationError: If declared in a test body or without a body.
        """
        if body is None or not callable(body):
            raise MissingBodyError(f'Hook {kind!r} has no body')

        self._ensure_group(kind)

        if self.state.phase is Phase.RUN:
            getattr(self.state.hooks_of(self.state.current), kind).append(body)


def _declare(kind: BlockKind, name: str, body: Body | None, *,  # noqa: PLR0913
             tags: Tags,
             skip: bool,
             focus: bool,
             each: Any,  # noqa: ANN401
             mode: Mode | None) -> 'list[BlockNode] | SuiteResult':
    """Dispatch a declaration according to the execution mode."""
    BlockBuilder.validate(name, body)

    if detect_mode(mode) is Mode.INTERACTIVE:
        from .runner import SuiteRunner  # noqa: PLC0415

        return SuiteRunner.run_interactive(lambda: _declare(
            kind, name, body,
            tags=tags, skip=skip, focus=focus, each=each,
            mode=Mode.DECLARATIVE,
        ))

    if (builder := active_builder()) is None:
        raise DeclarationError(f'Block {name!r} can only be declared inside a suite run')

    if each is NO_DATA:
        return [builder.declare(kind, name, body, tags=tags, skip=skip, focus=focus)]

    return builder.expand(kind, name, body, each, tags=tags, skip=skip, focus=focus)


def describe(name: str, body: Body | None = None, *,  # noqa: PLR0913
             tags: Tags = (),
             skip: bool = False,
             focus: bool = False,
             each: Iterable[Any] | None = NO_DATA,
             mode: Mode | None = None) -> 'list[BlockNode] | SuiteResult':
    """Declare a group of blocks.

    Args:
        name: Group name; may hold `<key>` placeholders when data-driven.
        body: Callable declaring nested blocks and hooks.
        tags: Group tags, inherited by nested tests.
        skip: Skip every test of the group.
        focus: Run only focused subtrees of the suite.
        each: Data set; one group is declared per item.
        mode: Explicit execution mode, detected when omitted.

    Returns:
        Declared nodes, or the result of the interactive run.
    """
    return _declare(BlockKind.GROUP, name, body, tags=tags, skip=skip,
                    focus=focus, each=each, mode=mode)


#: Alias of `describe` for nested sections.
context = describe


def it(name: str, body: Body | None = None, *,  # noqa: PLR0913
       tags: Tags = (),
       skip: bool = False,
       focus: bool = False,
       each: Iterable[Any] | None = NO_DATA,
       mode: Mode | None = None) -> 'list[BlockNode] | SuiteResult':
    """Declare an individual test.

    Args:
        name: Test name; may hold `<key>` placeholders when data-driven.
        body: Test logic, receiving data bindings by parameter name.
        tags: Test tags.
        skip: Skip the test.
        focus: Run only focused subtrees of the suite.
        each: Data set; one test is declared per item.
        mode: Explicit execution mode, detected when omitted.

    Returns:
        Declared nodes, or the result of the interactive run.
    """
    return _declare(BlockKind.LEAF, name, body, tags=tags, skip=skip,
                    focus=focus, each=each, mode=mode)


def _hook(kind: str, body: Body | None) -> None:
    """Declare a hook on the builder of the suite run in progress."""
    if (builder := active_builder()) is None:
        raise DeclarationError(f'Hook {kind!r} can only be declared inside a suite run')

    builder.hook(kind, body)


def before_all(body: Body | None = None) -> None:
    """Run a callable once before the tests of the current group."""
    _hook('before_all', body)


def after_all(body: Body | None = None) -> None:
    """Run a callable once after the tests of the current group."""
    _hook('after_all', body)


def before_each(body: Body | None = None) -> None:
    """Run a callable before every test of the current group."""
    _hook('before_each', body)


def after_each(body: Body | None = None) -> None:
    """Run a callable after every test of the current group."""
    _hook('after_each', body)
