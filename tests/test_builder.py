"""Tests for block declarations, discovery and data-driven expansion."""

from typing import TYPE_CHECKING, Any

import pytest

from pytest_grove import Mode, after_all, before_all, describe, it, should
from pytest_grove.core.blocks import ROOT_INDEX, BlockKind, BlockTree
from pytest_grove.core.builder import BlockBuilder, bind, call_body, template
from pytest_grove.core.context import active_builder, detect_mode, orchestration
from pytest_grove.core.reporting import Status, SuiteResult
from pytest_grove.core.state import ExecutionState, Phase
from pytest_grove.errors import (
    DeclarationError,
    DiscoveryRunDivergenceFault,
    GroveError,
    MalformedNameError,
    MissingBodyError,
    SuiteSetupError,
)

if TYPE_CHECKING:
    from pytest_grove.core.reporting import CollectingReporter
    from pytest_grove.core.runner import SuiteRunner


def _shape(tree: BlockTree) -> list[tuple[str, ...]]:
    """Describe a tree as `(path..., kind)` tuples without the root."""
    return [
        (*tree.path(node.index), f'{node.kind}')
        for node in tree.walk()
        if not node.is_root
    ]


def test_group_with_two_tests(runner: 'SuiteRunner') -> None:
    """Discovery builds the tree, the run reuses it and executes test bodies only."""
    calls: list[str] = []

    def suite() -> None:
        def group() -> None:
            calls.append('G')
            it('A', lambda: calls.append('A'))
            it('B', lambda: calls.append('B'))

        describe('G', group)

    state = runner.discover(suite, name='suite')

    assert calls == ['G']
    assert state.tree.root.name == 'suite'
    assert _shape(state.tree) == [
        ('G', 'group'),
        ('G', 'A', 'leaf'),
        ('G', 'B', 'leaf'),
    ]

    calls.clear()
    result = runner.run(suite, name='suite')

    assert result.error is None
    assert _shape(result.tree) == _shape(state.tree)
    assert [call for call in calls if call != 'G'] == ['A', 'B']
    assert result.count(Status.PASSED) == 2


def test_data_driven_groups(runner: 'SuiteRunner') -> None:
    """One sibling group is created per data-set item, in order."""
    def suite() -> None:
        describe('x is <x>', lambda x: it(f'uses {x}', lambda: None), each=[
            {'x': 1},
            {'x': 2},
            {'x': 3},
        ])

    tree = runner.discover(suite).tree
    groups = tree.children(ROOT_INDEX)

    assert [node.name for node in groups] == ['x is 1', 'x is 2', 'x is 3']
    assert [node.data['x'] for node in groups] == [1, 2, 3]  # type: ignore[index]
    assert all(node.kind is BlockKind.GROUP for node in groups)
    assert [node.name for node in tree.leaves()] == ['uses 1', 'uses 2', 'uses 3']


@pytest.mark.parametrize('data_set', (
    pytest.param(None, id='none'),
    pytest.param([], id='empty list'),
    pytest.param((), id='empty tuple'),
))
def test_empty_data_set(runner: 'SuiteRunner', data_set: Any) -> None:  # noqa: ANN401
    """An absent or empty data set declares nothing."""
    def suite() -> None:
        it('never <x>', lambda x: None, each=data_set)  # noqa: ARG005
        it('always', lambda: None)

    tree = runner.discover(suite).tree

    assert [node.name for node in tree.leaves()] == ['always']


def test_data_bindings_reach_bodies(runner: 'SuiteRunner') -> None:
    """Bodies receive data bindings by parameter name during the run."""
    seen: list[Any] = []

    def suite() -> None:
        def group(role: str, user: dict) -> None:
            it(f'greets {user["name"]}', lambda: seen.append((role, user['name'])))

        describe('<role>', group, each=[
            {'role': 'admin', 'user': {'name': 'Alice'}},
            {'role': 'guest', 'user': {'name': 'Bob'}},
        ])
        it('squares <item>', lambda item: seen.append(item * item), each=[2, 3])
        it('receives everything', lambda **kwargs: seen.append(sorted(kwargs)), each=[{'a': 1}])

    result = runner.run(suite)

    assert result.succeeded, result.summary()
    assert [node.name for node in result.tree.leaves()] == [
        'greets Alice',
        'greets Bob',
        'squares 2',
        'squares 3',
        'receives everything',
    ]
    assert seen == [('admin', 'Alice'), ('guest', 'Bob'), 4, 9, ['a', 'item']]


def test_run_reevaluates_data_set(runner: 'SuiteRunner') -> None:
    """A data set yielding another number of items during the run aborts the suite."""
    data_sets = iter([[1, 2], [1, 2, 3]])

    def suite() -> None:
        it('item <item>', lambda: None, each=next(data_sets))

    result = runner.run(suite)

    assert isinstance(result.error, DiscoveryRunDivergenceFault)
    assert 'yielded 3 item(s), 2 were discovered' in result.error.message
    assert result.outcomes == {}


def test_data_sets_sharing_body(runner: 'SuiteRunner') -> None:
    """Consecutive data-driven declarations with one body stay separate."""
    data_sets = iter([[3], [3], [3], [3, 4]])

    def positive(item: int) -> None:
        should(item, 'BeGreaterThan', 0)

    def suite() -> None:
        it('first <item>', positive, each=[1, 2])
        it('second <item>', positive, each=next(data_sets))

    result = runner.run(suite)

    assert result.error is None
    assert result.count(Status.PASSED) == 3
    assert [node.expansion for node in result.tree.leaves()] == [1, 1, 2]

    result = runner.run(suite)

    assert isinstance(result.error, DiscoveryRunDivergenceFault)
    assert "block 'second <item>' yielded 2 item(s), 1 were discovered" in result.error.message


@pytest.mark.parametrize('discovered, declared, message', (
    pytest.param(['A'], ['B'], r"'B' was declared where 'A' was discovered", id='renamed'),
    pytest.param(['A'], ['A', 'B'], r"'B' was declared during the run but not discovered", id='surplus'),
    pytest.param(['A', 'B'], ['A'], r'1 discovered block\(s\) were not declared', id='missing'),
))
def test_divergence(runner: 'SuiteRunner', reporter: 'CollectingReporter',
                    discovered: list[str], declared: list[str], message: str) -> None:
    """Structural differences between discovery and run abort the suite file."""
    passes = iter([discovered, declared])

    def suite() -> None:
        def group() -> None:
            for name in next(passes):
                it(name, lambda: None)

        describe('G', group)

    result = runner.run(suite)

    assert isinstance(result.error, DiscoveryRunDivergenceFault)
    with pytest.raises(DiscoveryRunDivergenceFault, match=message):
        raise result.error

    assert reporter.errors == [result.error]
    assert reporter.started == []
    assert not result.succeeded


def test_kind_divergence(runner: 'SuiteRunner') -> None:
    """A block changing kind between discovery and run aborts the suite."""
    bodies = iter([
        lambda: describe('block', lambda: it('test', lambda: None)),
        lambda: it('block', lambda: None),
    ])

    def suite() -> None:
        next(bodies)()

    result = runner.run(suite)

    assert isinstance(result.error, DiscoveryRunDivergenceFault)


@pytest.mark.parametrize('name, body, error', (
    pytest.param('no body', None, MissingBodyError, id='missing body'),
    pytest.param('first line\nsecond line', None, MalformedNameError, id='malformed name'),
    pytest.param('', lambda: None, DeclarationError, id='empty name'),
    pytest.param('not callable', 42, DeclarationError, id='not callable'),
))
def test_invalid_declarations(name: str, body: Any, error: type[Exception]) -> None:  # noqa: ANN401
    """Reject malformed declarations before anything runs."""
    with pytest.raises(error):
        describe(name, body)

    with pytest.raises(error):
        it(name, body)


def test_malformed_name_is_declaration_error() -> None:
    """Name errors share the declaration error base."""
    with pytest.raises(DeclarationError, match=r'multi-line name and no body'):
        it('it works\n')


def test_declaration_inside_test(runner: 'SuiteRunner') -> None:
    """Declaring a block inside a test body fails that test only."""
    def suite() -> None:
        it('outer', lambda: it('inner', lambda: None))
        it('sibling', lambda: None)

    result = runner.run(suite)
    outcomes = {node.name: outcome for node, outcome in result}

    assert outcomes['outer'].status is Status.ERROR
    assert isinstance(outcomes['outer'].error, DeclarationError)
    assert outcomes['sibling'].status is Status.PASSED
    assert len(result.tree) == 3


def test_parameter_defaults(runner: 'SuiteRunner') -> None:
    """The first root group fills suite parameter defaults without overriding explicit ones."""
    seen: dict[str, Any] = {}

    def suite(env: str = 'dev', retries: int = 3) -> None:
        seen.update(env=env, retries=retries)
        describe('G', lambda: it('a', lambda: None))

    state = runner.discover(suite, {'env': 'prod'})

    assert state.params == {'env': 'prod', 'retries': 3}
    assert seen == {'env': 'prod', 'retries': 3}

    result = runner.run(suite, {'env': 'stage'})

    assert result.params == {'env': 'stage', 'retries': 3}


def test_parameter_defaults_need_group(runner: 'SuiteRunner') -> None:
    """Suites declaring tests only at the root keep their parameters as given."""
    def suite(env: str = 'dev') -> None:  # noqa: ARG001
        it('a', lambda: None)

    assert runner.discover(suite).params == {}


def test_group_body_failure(runner: 'SuiteRunner', reporter: 'CollectingReporter') -> None:
    """A failing group body is reported as a suite setup failure."""
    def suite() -> None:
        describe('broken', lambda: 1 / 0)
        describe('fine', lambda: it('a', lambda: None))

    with pytest.raises(SuiteSetupError, match=r'^Suite discovery failed') as error:
        runner.discover(suite)

    assert 'broken: ZeroDivisionError' in error.value.message
    assert [type(base) for base in error.value.errors] == [ZeroDivisionError]

    result = runner.run(suite)

    assert isinstance(result.error, SuiteSetupError)
    assert reporter.errors == [result.error]
    assert not result.succeeded


def test_hooks_outside_run() -> None:
    """Hooks can only be declared while a suite runs."""
    with pytest.raises(DeclarationError, match=r"^Hook 'before_all' can only be declared"):
        before_all(lambda: None)


def test_hook_without_body(runner: 'SuiteRunner') -> None:
    """A hook without a body fails the suite discovery."""
    def suite() -> None:
        after_all()
        it('a', lambda: None)

    with pytest.raises(SuiteSetupError) as error:
        runner.discover(suite)

    assert isinstance(error.value.errors[0], MissingBodyError)


def test_hooks_collected_during_run_only() -> None:
    """Discovery ignores hooks, the run records them per group."""
    state = ExecutionState(tree=BlockTree())
    builder = BlockBuilder(state)

    def hook() -> None:
        return None

    builder.hook('before_each', hook)
    assert state.hooks == {}

    state.begin_run()
    builder.hook('before_each', hook)

    assert state.phase is Phase.RUN
    assert state.hooks[ROOT_INDEX].before_each == [hook]


@pytest.mark.usefixtures('registry')
def test_interactive_declaration() -> None:
    """Declarations outside of a suite run execute immediately."""
    passed = it('adds', lambda: should(1 + 1, 'Be', 2))
    failed = it('subtracts', lambda: should(1 - 1, 'Be', 2))

    assert isinstance(passed, SuiteResult)
    assert passed.count(Status.PASSED) == 1

    assert isinstance(failed, SuiteResult)
    assert failed.count(Status.FAILED) == 1
    assert not failed.succeeded

    nested = describe('math', lambda: it('multiplies', lambda: should(2 * 3, 'Be', 6)))

    assert isinstance(nested, SuiteResult)
    assert [node.name for node in nested.tree.leaves()] == ['multiplies']
    assert nested.succeeded


def test_declarative_mode_outside_run() -> None:
    """Requesting declarative mode needs a suite run in progress."""
    with pytest.raises(GroveError, match=r'^Declarative mode requires a suite run'):
        it('a', lambda: None, mode=Mode.DECLARATIVE)


def test_mode_detection() -> None:
    """Detect the mode from the orchestrator marker unless given."""
    assert active_builder() is None
    assert detect_mode() is Mode.INTERACTIVE
    assert detect_mode(Mode.INTERACTIVE) is Mode.INTERACTIVE

    builder = BlockBuilder(ExecutionState(tree=BlockTree()))
    with orchestration(builder):
        assert active_builder() is builder
        assert detect_mode() is Mode.DECLARATIVE
        assert detect_mode(Mode.DECLARATIVE) is Mode.DECLARATIVE
        assert detect_mode(Mode.INTERACTIVE) is Mode.INTERACTIVE

    assert active_builder() is None


def test_bind() -> None:
    """Mapping keys become bindings and the item is always bound."""
    assert bind(5) == {'item': 5}
    assert bind({'a': 1}) == {'a': 1, 'item': {'a': 1}}
    assert bind({'item': 'key', 'b': 2}) == {'item': {'item': 'key', 'b': 2}, 'b': 2}
    assert bind({1: 'one'}) == {'1': 'one', 'item': {1: 'one'}}


@pytest.mark.parametrize('name, binding, expected', (
    pytest.param('x is <x>', {'x': 1}, 'x is 1', id='key'),
    pytest.param('<user.name> logs in', {'user': {'name': 'Alice'}}, 'Alice logs in', id='path'),
    pytest.param('<a> and <b>', {'a': 1, 'b': 2}, '1 and 2', id='many'),
    pytest.param('<missing> stays', {'x': 1}, '<missing> stays', id='missing'),
    pytest.param('<1st> stays', {'1st': 1}, '<1st> stays', id='not a name'),
    pytest.param('no placeholders', {'x': 1}, 'no placeholders', id='plain'),
))
def test_template(name: str, binding: dict, expected: str) -> None:
    """Substitute placeholders of block names."""
    assert template(name, binding) == expected


def test_call_body() -> None:
    """Pass only the bindings a body asks for."""
    assert call_body(lambda: 'plain', {'x': 1}) == 'plain'
    assert call_body(lambda x: x, {'x': 1, 'y': 2}) == 1
    assert call_body(lambda *, y: y, {'x': 1, 'y': 2}) == 2
    assert call_body(lambda **kwargs: kwargs, {'x': 1}) == {'x': 1}
    assert call_body(lambda x=0: x, None) == 0
