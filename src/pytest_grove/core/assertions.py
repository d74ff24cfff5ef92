"""Assertion engine.

This module resolves operators from the registry, evaluates them against
an assertion invocation, applies negation and turns the outcome into a
result carrying a human-readable failure message.

The engine never raises on a failed assertion: a failure is a regular,
fully formed result, and callers decide how to report it. Only malformed
usage, such as an unknown operator name or a negated non-negatable
operator, raises.
"""

from typing import TYPE_CHECKING, Any, Self

from pydantic import Field, model_validator

from pytest_grove.errors import AssertionFailure, NonNegatableOperatorError
from pytest_grove.models import SchemaModel
from pytest_grove.values import render

from .registry import get_registry

if TYPE_CHECKING:
    from pytest_grove.extensions import Operator

    from .registry import OperatorRegistry

POSITIVE_TEMPLATE = 'Expected {actual} to {relation}{because}, but it did not match.'
NEGATED_TEMPLATE = 'Expected {actual} to not {relation}{because}, but it did match.'
RELATION_TEMPLATE = '{verb} {expected}'
BECAUSE_TEMPLATE = ', because {reason}'


class AssertionInvocation(SchemaModel):
    """Single assertion call, consumed once by the engine."""

    actual: Any = Field(
        default=None,
        title='Actual value',
        description='Value produced by the code under test.',
    )

    expected: Any = Field(
        default=None,
        title='Expected value',
        description='Value the actual one is compared to.',
    )

    negate: bool = Field(
        default=False,
        title='Negation',
        description='If true, the operator outcome is inverted.',
    )

    because: str | None = Field(
        default=None,
        title='Reason',
        description='Optional explanation rendered into failure messages.',
    )


class AssertionResult(SchemaModel):
    """Outcome of an assertion.

    A successful result never carries a failure message; an unsuccessful
    one always does.
    """

    succeeded: bool
    failure_message: str | None = None

    @model_validator(mode='after')
    def check_message(self) -> Self:
        """Enforce the message invariant."""
        if self.succeeded and self.failure_message is not None:
            raise ValueError('successful result can not carry a failure message')

        if not self.succeeded and not self.failure_message:
            raise ValueError('failed result requires a failure message')

        return self


class AssertionEngine:
    """Evaluates assertion invocations against registered operators."""

    def __init__(self, registry: 'OperatorRegistry | None' = None) -> None:
        """Initialize the engine.

        Args:
            registry: Registry to resolve operators from.
                Defaults to the process-wide registry.
        """
        self._registry = registry

    @property
    def registry(self) -> 'OperatorRegistry':
        """Registry used to resolve operators."""
        if self._registry is None:
            return get_registry()

        return self._registry

    def invoke(self, name: str, invocation: AssertionInvocation) -> AssertionResult:
        """Evaluate an assertion.

        Args:
            name: Case-insensitive operator name.
            invocation: Assertion call data.

        Returns:
            Assertion result.

        Raises:
            UnknownOperatorError: If the operator is not registered.
            NonNegatableOperatorError: If negation is requested for an
                operator that forbids it.
        """
        operator = self.registry.get(name)

        if invocation.negate and not operator.negatable:
            raise NonNegatableOperatorError(
                f'Operator {operator.name!r} can not be negated',
                name=operator.name,
            )

        try:
            succeeded = bool(operator.predicate(invocation.actual, invocation.expected))
        except AssertionError:
            succeeded = False

        if invocation.negate:
            succeeded = not succeeded

        if succeeded:
            return AssertionResult(succeeded=True)

        return AssertionResult(
            succeeded=False,
            failure_message=self.format_failure(operator, invocation),
        )

    @staticmethod
    def format_failure(operator: 'Operator', invocation: AssertionInvocation) -> str:
        """Build the failure message for an unsuccessful invocation.

        Args:
            operator: Evaluated operator.
            invocation: Assertion call data.

        Returns:
            Human-readable failure message.
        """
        template = NEGATED_TEMPLATE if invocation.negate else POSITIVE_TEMPLATE

        because = ''
        if invocation.because:
            because = BECAUSE_TEMPLATE.format(reason=invocation.because)

        relation = operator.phrase
        if not operator.unary:
            relation = RELATION_TEMPLATE.format(verb=relation, expected=render(invocation.expected))

        return template.format(
            actual=render(invocation.actual),
            relation=relation,
            because=because,
        )


def check(actual: Any, operator: str, expected: Any = None, *,  # noqa: ANN401
          negate: bool = False,
          because: str | None = None,
          engine: AssertionEngine | None = None) -> AssertionResult:
    """Evaluate an assertion without raising on failure.

    Args:
        actual: Value produced by the code under test.
        operator: Operator name.
        expected: Value the actual one is compared to.
        negate: Whether to invert the operator outcome.
        because: Optional explanation for failure messages.
        engine: Engine to use, defaults to one bound to the global registry.

    Returns:
        Assertion result.
    """
    if engine is None:
        engine = AssertionEngine()

    return engine.invoke(operator, AssertionInvocation(
        actual=actual,
        expected=expected,
        negate=negate,
        because=because,
    ))


def should(actual: Any, operator: str, expected: Any = None, *,  # noqa: ANN401
           negate: bool = False,
           because: str | None = None,
           engine: AssertionEngine | None = None) -> AssertionResult:
    """Evaluate an assertion and raise if it fails.

    Args:
        actual: Value produced by the code under test.
        operator: Operator name.
        expected: Value the actual one is compared to.
        negate: Whether to invert the operator outcome.
        because: Optional explanation for failure messages.
        engine: Engine to use, defaults to one bound to the global registry.

    Returns:
        Successful assertion result.

    Raises:
        AssertionFailure: If the assertion fails.
    """
    result = check(
        actual,
        operator,
        expected,
        negate=negate,
        because=because,
        engine=engine,
    )

    if not result.succeeded:
        raise AssertionFailure(result)

    return result
