"""Built-in assertion operators.

This module defines the core operator library registered with every
registry: equality, wildcard and regex matching, ordering comparisons,
membership, type and emptiness checks.

The operators are shipped as a regular plugin and registered through the
same contract extensions use.
"""

# ruff: noqa: S101

from collections.abc import Sized
from fnmatch import fnmatchcase
from re import IGNORECASE, UNICODE, search
from typing import TYPE_CHECKING

from pytest_grove.extensions import Operator, Plugin
from pytest_grove.values import MAPPINGS, SEQUENCES

if TYPE_CHECKING:
    from pytest_grove.values import RuntimeValue


def _be(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Loose equality: strings compare case-insensitively."""
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.casefold() == expected.casefold()

    return bool(actual == expected)


def _be_exactly(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Strict equality, including the value type."""
    assert type(actual) is type(expected)

    return bool(actual == expected)


def _wildcard(actual: 'RuntimeValue', expected: 'RuntimeValue', *,
              ignore_case: bool) -> bool:
    """Match a value against a `*` and `?` wildcard pattern.

    Args:
        actual: Actual value, converted to string.
        expected: Wildcard pattern.
        ignore_case: Whether to compare case-insensitively.

    Returns:
        True if the whole value matches the pattern.
    """
    assert isinstance(expected, str)

    value = f'{actual}'
    pattern = expected
    if ignore_case:
        value, pattern = value.casefold(), pattern.casefold()

    return fnmatchcase(value, pattern)


def _be_like(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Case-insensitive wildcard match."""
    return _wildcard(actual, expected, ignore_case=True)


def _be_like_exactly(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Case-sensitive wildcard match."""
    return _wildcard(actual, expected, ignore_case=False)


def _match(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Case-insensitive regular expression search."""
    assert isinstance(expected, str)

    return search(expected, f'{actual}', UNICODE | IGNORECASE) is not None


def _match_exactly(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Case-sensitive regular expression search."""
    assert isinstance(expected, str)

    return search(expected, f'{actual}', UNICODE) is not None


def _cmp(actual: 'RuntimeValue', expected: 'RuntimeValue',
         swap: bool = False, inclusive: bool = False) -> bool:
    """Base implementation for ordering comparisons."""
    if expected is None or actual is None:
        return actual is expected and inclusive

    if swap:
        actual, expected = expected, actual

    try:
        return bool(actual < expected or (inclusive and actual == expected))
    except TypeError as error:
        raise AssertionError(f'{error}') from error


def _gt(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Greater-than comparison."""
    return _cmp(actual, expected, swap=True)


def _lt(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Less-than comparison."""
    return _cmp(actual, expected)


def _ge(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Greater-than-or-equal comparison."""
    return _cmp(actual, expected, swap=True, inclusive=True)


def _le(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Less-than-or-equal comparison."""
    return _cmp(actual, expected, inclusive=True)


def _contain(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Membership of the expected value in the actual container."""
    assert isinstance(actual, (str, *MAPPINGS, *SEQUENCES))

    return expected in actual


def _be_in(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Membership of the actual value in the expected container."""
    return _contain(expected, actual)


def _be_of_type(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Instance check against a type or a tuple of types."""
    assert isinstance(expected, (type, tuple))

    return isinstance(actual, expected)


def _be_null_or_empty(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:  # noqa: ARG001
    """Check for `None`, an empty string or an empty container."""
    if actual is None:
        return True

    if isinstance(actual, Sized):
        return len(actual) == 0

    return False


def _be_true(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:  # noqa: ARG001
    """Truthiness check."""
    return bool(actual)


def _be_false(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:  # noqa: ARG001
    """Falsiness check."""
    return not actual


def _have_count(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Number of items in the actual container."""
    assert isinstance(actual, Sized)

    return len(actual) == expected


be = Operator(
    name='Be',
    predicate=_be,
    aliases=('EQ',),
    title='Equality',
    description='Actual value equals the expected one; strings ignore case.',
)

be_exactly = Operator(
    name='BeExactly',
    predicate=_be_exactly,
    aliases=('CEQ',),
    title='Strict equality',
    description='Actual value equals the expected one and has the same type.',
)

be_like = Operator(
    name='BeLike',
    predicate=_be_like,
    title='Wildcard match',
    description='Actual value matches a `*`/`?` wildcard pattern, ignoring case.',
)

be_like_exactly = Operator(
    name='BeLikeExactly',
    predicate=_be_like_exactly,
    title='Case-sensitive wildcard match',
    description='Actual value matches a `*`/`?` wildcard pattern.',
)

match = Operator(
    name='Match',
    predicate=_match,
    title='Regex match',
    description='Actual value contains a match of a pattern, ignoring case.',
)

match_exactly = Operator(
    name='MatchExactly',
    predicate=_match_exactly,
    aliases=('CMATCH',),
    title='Case-sensitive regex match',
    description='Actual value contains a match of a pattern.',
)

gt = Operator(
    name='BeGreaterThan',
    predicate=_gt,
    aliases=('GT',),
    title='Lower bound',
)

lt = Operator(
    name='BeLessThan',
    predicate=_lt,
    aliases=('LT',),
    title='Upper bound',
)

ge = Operator(
    name='BeGreaterOrEqual',
    predicate=_ge,
    aliases=('GE',),
    verb='be greater than or equal to',
    title='Lower bound (inclusive)',
)

le = Operator(
    name='BeLessOrEqual',
    predicate=_le,
    aliases=('LE',),
    verb='be less than or equal to',
    title='Upper bound (inclusive)',
)

contain = Operator(
    name='Contain',
    predicate=_contain,
    title='Containment',
    description='Actual container holds the expected item.',
)

be_in = Operator(
    name='BeIn',
    predicate=_be_in,
    title='Membership',
    description='Actual value is an item of the expected container.',
)

be_of_type = Operator(
    name='BeOfType',
    predicate=_be_of_type,
    aliases=('HaveType',),
    verb='be of type',
    title='Type check',
)

be_null_or_empty = Operator(
    name='BeNullOrEmpty',
    predicate=_be_null_or_empty,
    verb='be None or empty',
    unary=True,
    title='Emptiness check',
)

be_true = Operator(
    name='BeTrue',
    predicate=_be_true,
    verb='be truthy',
    unary=True,
)

be_false = Operator(
    name='BeFalse',
    predicate=_be_false,
    verb='be falsy',
    unary=True,
)

have_count = Operator(
    name='HaveCount',
    predicate=_have_count,
    verb='have a count of',
)

builtins = Plugin(
    name='builtins',
    operators=[
        be,
        be_exactly,
        be_like,
        be_like_exactly,
        match,
        match_exactly,
        gt,
        lt,
        ge,
        le,
        contain,
        be_in,
        be_of_type,
        be_null_or_empty,
        be_true,
        be_false,
        have_count,
    ],
)
