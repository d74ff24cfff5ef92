"""Execution context detection.

Block declarations run either declaratively, registering nodes with an
orchestrated suite run, or interactively, as an immediate self-contained
run. The orchestrator publishes the active builder through a context
variable; the core only reads it.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from enum import StrEnum
from typing import TYPE_CHECKING

from pytest_grove.errors import GroveError

if TYPE_CHECKING:
    from .builder import BlockBuilder


class Mode(StrEnum):
    """How a declaration is executed."""

    DECLARATIVE = 'declarative'
    INTERACTIVE = 'interactive'


#: Orchestrator marker: the builder of the suite run in progress, if any.
ACTIVE_BUILDER: ContextVar['BlockBuilder | None'] = ContextVar('grove_active_builder', default=None)


@contextmanager
def orchestration(builder: 'BlockBuilder') -> Iterator['BlockBuilder']:
    """Publish a builder as the active one for the duration of the block."""
    token = ACTIVE_BUILDER.set(builder)
    try:
        yield builder
    finally:
        ACTIVE_BUILDER.reset(token)


def active_builder() -> 'BlockBuilder | None':
    """Return the builder of the suite run in progress, if any."""
    return ACTIVE_BUILDER.get()


def detect_mode(explicit: Mode | None = None) -> Mode:
    """Decide how a declaration should execute.

    Args:
        explicit: Mode requested by the caller, if any.

    Returns:
        The explicit mode when given, otherwise declarative mode while a
        suite run is in progress and interactive mode outside of one.

    Raises:
        GroveError: If declarative mode is requested outside of a run.
    """
    running = active_builder() is not None

    if explicit is Mode.DECLARATIVE and not running:
        raise GroveError('Declarative mode requires a suite run in progress')

    if explicit is not None:
        return explicit

    return Mode.DECLARATIVE if running else Mode.INTERACTIVE
