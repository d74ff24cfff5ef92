"""Tests for the built-in assertion operators."""

from datetime import date
from typing import TYPE_CHECKING, Any

import pytest

from pytest_grove.core.assertions import AssertionInvocation

if TYPE_CHECKING:
    from pytest_grove.core.assertions import AssertionEngine


@pytest.mark.parametrize('operator, actual, expected, succeeded', (
    pytest.param('Be', 'Hello', 'hello', True, id='be ignores case'),
    pytest.param('EQ', 1, 1.0, True, id='eq numbers'),
    pytest.param('Be', [1, 2], [2, 1], False, id='be ordered lists'),
    pytest.param('BeExactly', 'Hello', 'hello', False, id='exactly respects case'),
    pytest.param('CEQ', 1, 1.0, False, id='exactly respects type'),
    pytest.param('BeExactly', {'a': 1}, {'a': 1}, True, id='exactly mappings'),
    pytest.param('BeLike', 'Actual value', 'actual *', True, id='like'),
    pytest.param('BeLike', 'Actual value', 'not actual *', False, id='like mismatch'),
    pytest.param('BeLike', 'file.txt', 'FILE.???', True, id='like question marks'),
    pytest.param('BeLike', 42, '4?', True, id='like number'),
    pytest.param('BeLike', 'value', 42, False, id='like non-string pattern'),
    pytest.param('BeLikeExactly', 'Actual value', 'actual *', False, id='like exactly case'),
    pytest.param('BeLikeExactly', 'Actual value', 'Actual *', True, id='like exactly'),
    pytest.param('Match', 'Error: Timeout', r'timeout$', True, id='match ignores case'),
    pytest.param('CMATCH', 'Error: Timeout', r'timeout$', False, id='match exactly case'),
    pytest.param('MatchExactly', 'code 404', r'\d{3}', True, id='match exactly'),
    pytest.param('GT', 3, 2, True, id='gt'),
    pytest.param('BeGreaterThan', 2, 2, False, id='gt equal'),
    pytest.param('LT', 'a', 'b', True, id='lt strings'),
    pytest.param('LT', 1, 'b', False, id='lt incomparable'),
    pytest.param('GE', 2, 2, True, id='ge equal'),
    pytest.param('LE', date(2024, 1, 1), date(2024, 1, 2), True, id='le dates'),
    pytest.param('GE', None, None, True, id='ge none'),
    pytest.param('GT', None, 1, False, id='gt none'),
    pytest.param('Contain', [1, 2, 3], 2, True, id='contain list'),
    pytest.param('Contain', 'haystack', 'st', True, id='contain string'),
    pytest.param('Contain', {'key': 1}, 'key', True, id='contain key'),
    pytest.param('Contain', 42, 4, False, id='contain scalar'),
    pytest.param('BeIn', 2, (1, 2), True, id='in tuple'),
    pytest.param('BeIn', 5, {1, 2}, False, id='not in set'),
    pytest.param('BeOfType', 1, int, True, id='type'),
    pytest.param('HaveType', True, (str, bytes), False, id='type tuple'),
    pytest.param('BeOfType', 1, 'int', False, id='type by name'),
    pytest.param('BeNullOrEmpty', None, None, True, id='null'),
    pytest.param('BeNullOrEmpty', '', None, True, id='empty string'),
    pytest.param('BeNullOrEmpty', [], None, True, id='empty list'),
    pytest.param('BeNullOrEmpty', ' ', None, False, id='whitespace'),
    pytest.param('BeNullOrEmpty', 0, None, False, id='zero'),
    pytest.param('BeTrue', [0], None, True, id='truthy'),
    pytest.param('BeFalse', 0, None, True, id='falsy'),
    pytest.param('HaveCount', [1, 2, 3], 3, True, id='count'),
    pytest.param('HaveCount', 'abc', 2, False, id='count mismatch'),
    pytest.param('HaveCount', 3, 3, False, id='count unsized'),
))
def test_builtin_operators(engine: 'AssertionEngine', operator: str,
                           actual: Any, expected: Any, succeeded: bool) -> None:  # noqa: ANN401
    """Evaluate built-in operators in both directions."""
    direct = engine.invoke(operator, AssertionInvocation(
        actual=actual,
        expected=expected,
    ))
    negated = engine.invoke(operator, AssertionInvocation(
        actual=actual,
        expected=expected,
        negate=True,
    ))

    assert direct.succeeded is succeeded
    assert negated.succeeded is not succeeded


def test_builtins_are_negatable(engine: 'AssertionEngine') -> None:
    """Every built-in operator allows negation and has a description."""
    operators = list(engine.registry)

    assert len(operators) == 17
    for operator in operators:
        assert operator.negatable, operator.name
        assert operator.title or operator.verb, operator.name


@pytest.mark.parametrize('operator, actual, expected, message', (
    pytest.param(
        'BeOfType', 'a', int,
        "Expected 'a' to be of type <class 'int'>, but it did not match.",
        id='type',
    ),
    pytest.param(
        'HaveCount', [1], 2,
        'Expected [1] to have a count of 2, but it did not match.',
        id='count',
    ),
    pytest.param(
        'BeLikeExactly', 'x' * 300, 'y*',
        f"Expected '{'x' * 196}... to be like exactly 'y*', but it did not match.",
        id='truncated',
    ),
    pytest.param(
        'BeTrue', 0, None,
        'Expected 0 to be truthy, but it did not match.',
        id='truthy',
    ),
    pytest.param(
        'BeNullOrEmpty', 'x', None,
        "Expected 'x' to be None or empty, but it did not match.",
        id='null or empty',
    ),
))
def test_builtin_messages(engine: 'AssertionEngine', operator: str,
                          actual: Any, expected: Any, message: str) -> None:  # noqa: ANN401
    """Render built-in operator failures."""
    result = engine.invoke(operator, AssertionInvocation(
        actual=actual,
        expected=expected,
    ))

    assert result.failure_message == message


def test_unary_negated_message(engine: 'AssertionEngine') -> None:
    """Operators without an expected value leave it out of messages."""
    result = engine.invoke('BeFalse', AssertionInvocation(
        actual=0,
        negate=True,
        because='zero is falsy',
    ))

    assert result.failure_message == 'Expected 0 to not be falsy, because zero is falsy, but it did match.'
