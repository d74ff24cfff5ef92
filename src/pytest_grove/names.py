"""Name primitive types and validation rules.

This module defines the patterns used to validate operator identifiers
and data-binding names, and the placeholder syntax used to template
block names against data-driven items.
"""

from re import ASCII
from re import compile as regexp
from typing import Annotated

from pydantic import Field

#: Base pattern for all identifiers.
#: Identifiers must start with a letter and may contain letters, digits, or underscores
_NAME_PATTERN = r'[a-zA-Z][\w]*'

#: Placeholder inside a block name, for example `<user.name>` or `<item>`
PLACEHOLDER_PATTERN = regexp(
    rf'<(?P<path>{_NAME_PATTERN}(\.{_NAME_PATTERN})*)>',
    flags=ASCII,
)

#: Splits CamelCase operator names into words, for example `BeLike`
WORD_PATTERN = regexp(r'[A-Z]+(?![a-z])|[A-Z]?[a-z0-9]+')

#: Name under which every data-driven item is exposed as a whole.
ITEM_NAME = 'item'


OperatorName = Annotated[
    str, Field(
        pattern=rf'^{_NAME_PATTERN}$',
        title='Operator identifier',
        description=(
            'Name under which an assertion operator is registered. '
            'Lookups are case-insensitive, so `BeLike` and `belike` '
            'refer to the same operator. '
            'Identifiers are limited to ASCII letters, digits, and underscores.'
        ),
        examples=[
            'Be',
            'BeLike',
        ],
    ),
]


def operator_key(name: str) -> str:
    """Normalize an operator name into its registry key."""
    return name.casefold()


def operator_verb(name: str) -> str:
    """Derive failure message words from a CamelCase operator name.

    Args:
        name: Operator name, for example `BeGreaterThan`.

    Returns:
        Lower-case words, for example `be greater than`.
    """
    words = WORD_PATTERN.findall(name)
    if not words:
        return name.lower()

    return ' '.join(word.lower() for word in words)
