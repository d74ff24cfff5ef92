"""Declarative extension plugin definition.

This module defines the top-level declarative container used to describe
assertion operators provided by a third-party package.

A plugin is exposed through the `grove_plugins` entry-point group and is
consumed by the registry loader before any suite runs. The plugin model
itself contains no execution logic.
"""

from pydantic import Field

from pytest_grove.models import SchemaModel
from pytest_grove.names import OperatorName  # noqa: TC001

from .operators import Operator, Predicate

__all__ = (
    'Operator',
    'Plugin',
    'Predicate',
)


class Plugin(SchemaModel):
    """Declarative container for extension operators.

    Plugin instances are declarative descriptions only. The loader uses
    them to register operators and to detect naming conflicts.
    """

    name: OperatorName = Field(
        title='Plugin name',
        description=(
            'Logical name of the plugin. '
            'Used for identification and diagnostics.'
        ),
    )

    version: int = Field(
        default=1,
        title='Extension contract version',
        description=(
            'Version of the extension contract the plugin was written for. '
            'This is not a semantic version of the plugin implementation.'
        ),
    )

    operators: list[Operator] = Field(
        default_factory=list,
        title='Operators',
        description='Assertion operators provided by the plugin.',
    )
