"""Declarative assertion operator definitions.

This module defines the high-level abstraction for pluggable assertion
operators. An operator describes:
- the comparison semantics, as a predicate over actual and expected values,
- whether the comparison may be negated,
- the names under which assertions may refer to it,
- and the words used to phrase failure messages.

Operators carry no reporting logic: the assertion engine turns every
predicate outcome into a result using one shared message template.
"""

from collections.abc import Callable
from typing import Any

from pydantic import Field

from pytest_grove.models import DescribedMixin, SchemaModel
from pytest_grove.names import OperatorName, operator_key, operator_verb

#: The predicate receives the actual value produced by a test and the
#: expected value given by the assertion, and must return True if they
#: relate as the operator requires. Raising `AssertionError` counts as False.
type Predicate = Callable[[Any, Any], bool]


class Operator(DescribedMixin, SchemaModel):
    """Declarative assertion operator.

    Operator instances are registered once, at framework load or by an
    extension at import time, and are never mutated afterwards.
    """

    name: OperatorName = Field(
        title='Operator name',
        description=(
            'Unique, case-insensitive identifier of the operator. '
            'Assertions refer to the operator by this name.'
        ),
    )

    predicate: Predicate = Field(
        title='Predicate',
        description=(
            'Callable receiving the actual and the expected values. '
            'Must return True if the values relate as required.'
        ),
    )

    negatable: bool = Field(
        default=True,
        title='Negatable',
        description='If false, negated assertions using this operator are rejected.',
    )

    unary: bool = Field(
        default=False,
        title='Unary',
        description=(
            'If true, the operator only inspects the actual value and '
            'failure messages do not mention the expected one.'
        ),
    )

    aliases: tuple[OperatorName, ...] = Field(
        default=(),
        title='Aliases',
        description='Alternative case-insensitive names of the operator.',
    )

    verb: str | None = Field(
        default=None,
        title='Message verb',
        description=(
            'Words inserted into failure messages between the actual and '
            'the expected values. Derived from the name when omitted, '
            'so `BeLike` reads as "be like".'
        ),
    )

    @property
    def phrase(self) -> str:
        """Words describing the relation in failure messages."""
        return self.verb or operator_verb(self.name)

    @property
    def keys(self) -> tuple[str, ...]:
        """Registry keys claimed by this operator."""
        return tuple(operator_key(name) for name in (self.name, *self.aliases))
