"""Core exception hierarchy.

This module defines base error and warning types used across the library
to report plugin loading issues, operator registry misuse, block
declaration mistakes, and internal consistency faults of the phased
runner in a structured and extensible way.

Assertion failures are not errors of this hierarchy: the assertion engine
returns them as regular results. Only `AssertionFailure` exists, to carry
such a result through a test body when the caller chooses to raise.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump

from pytest_grove.values import MAPPINGS, SCALARS, SEQUENCES

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint

    from pytest_grove.core.assertions import AssertionResult

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_FILENAME = '<suite>'
FORMAT_INDENT = 4
PATH_SEPARATOR = ' > '


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the suite file where the error occurred.
    filename: str | None
    #: Line number of the block body in the suite file.
    line_num: int | None

    #: Names of the blocks from the outermost group to the failing block.
    path: list[str] | None

    #: Underlying exception that triggered formatting.
    error: Exception | None
    #: Runtime element associated with the error.
    element: Any


class ErrorFormatter:
    """Utility class for formatting library errors.

    This formatter is responsible for producing human-readable
    error messages with optional source location and YAML-based
    contextual snippets.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)
        message += cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)

        return message.rstrip()

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format source and block location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including filename, line
            and block path when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            message += f', line {line_num}'
        message += linesep

        if path := context.get('path'):
            message += f'{indent}at {PATH_SEPARATOR.join(path)}{linesep}'

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing element data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no snippet data is available.
        """
        indent = cls._ensure_indent(indent)

        if element := context.get('element'):
            snippet = f'{indent}{SNIPPET_ELLIPSIS}'
            snippet += cls._make_yaml(element, indent)
            snippet += linesep
            return snippet

        return ''

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Non-scalar and non-container objects are replaced with
        a placeholder to prevent leaking opaque data.

        Args:
            value: Arbitrary value to sanitize.

        Returns:
            A YAML-safe representation of the value.
        """
        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                f'{key}': cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item)
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a value to a YAML-formatted string.

        Args:
            value: Arbitrary value to serialize.
            indent: Optional indentation prefix.

        Returns:
            A YAML-formatted string representation of the value.
        """
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string.

        Empty or whitespace-only lines are omitted.
        """
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class PluginWarning(UserWarning):
    """Warning emitted for non-fatal plugin-related issues.

    This warning is used when a plugin cannot be loaded or registered,
    but the error does not prevent further execution (for example,
    when running in relaxed mode).
    """


class GroveError(Exception, ErrorFormatter):
    """Base exception for all pytest-grove errors.

    All custom exceptions raised by the library inherit from this class
    to allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional location values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)


class PluginError(GroveError):
    """Error raised for fatal plugin-related failures.

    This exception is raised when a plugin entry point is invalid,
    misconfigured, or fails to load in strict mode.
    """

    def __init__(self, message: str, *,
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Initialize a plugin error.

        Args:
            message: Human-readable error description.
            entrypoint: Optional plugin entry point associated with the error.
        """
        self.entrypoint = entrypoint

        super().__init__(message)


class OperatorError(GroveError):
    """Base error for operator registry misuse."""

    def __init__(self, message: str, *, name: str | None = None) -> None:
        """Initialize an operator error.

        Args:
            message: Human-readable error description.
            name: Operator name involved in the failure.
        """
        self.name = name

        super().__init__(message)


class DuplicateOperatorError(OperatorError):
    """An operator name or alias is already registered."""


class UnknownOperatorError(OperatorError):
    """No operator is registered under the requested name."""


class NonNegatableOperatorError(OperatorError):
    """A negated assertion requested an operator that forbids negation."""


class RegistrySealedError(OperatorError):
    """Registration attempted after the setup phase ended."""


class DeclarationError(GroveError):
    """Authoring mistake in a block declaration.

    Declaration errors are fatal to the offending declaration only.
    """


class MissingBodyError(DeclarationError):
    """A block was declared without a body."""


class MalformedNameError(DeclarationError):
    """A block was declared with a multi-line name and no body.

    The combination usually means the author split the declaration
    across lines and the body ended up outside of the call.
    """


class DiscoveryRunDivergenceFault(GroveError):
    """The tree declared during the run differs from the discovered one.

    Results can not be attributed to nodes reliably once this happens,
    so the whole suite file is aborted.
    """


class SuiteSetupError(GroveError):
    """One or more group bodies failed while discovering the suite."""

    def __init__(self, message: str, *,
                 errors: list[BaseException] | None = None,
                 context: ErrorContext | None = None) -> None:
        """Initialize a setup error.

        Args:
            message: Human-readable error description.
            errors: Underlying faults raised by group bodies.
            context: Error context containing optional location values.
        """
        self.errors = errors or []

        super().__init__(message, context=context)


class AssertionFailure(AssertionError):
    """Raised by `should` when an assertion result is unsuccessful.

    The failed `AssertionResult` is kept on the exception so reporters
    can inspect it without parsing the message.
    """

    def __init__(self, result: 'AssertionResult') -> None:
        """Initialize the failure from a result.

        Args:
            result: Unsuccessful assertion result.
        """
        self.result = result

        super().__init__(result.failure_message)
