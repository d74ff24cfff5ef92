"""Scope lifecycle management for ephemeral test resources.

Every group or test body runs inside a resource scope. Substitutions and
scratch-storage entries created while a scope is active are registered
against it and released when the scope ends, on every exit path,
innermost first. Release failures are logged and never propagated, so a
broken cleanup can not mask the outcome of a test or block its siblings.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Protocol

from pytest_grove.errors import GroveError

logger = logging.getLogger(__name__)


class Handle(Protocol):
    """Anything that can be released at the end of a scope."""

    def release(self) -> None:
        """Release the underlying resource."""
        ...  # pragma: no cover


@dataclass(eq=False)
class Resource:
    """Handle wrapping a finalizer callable."""

    name: str
    finalizer: Callable[[], None]

    def release(self) -> None:
        """Run the finalizer."""
        self.finalizer()


class ScopeManager:
    """Registry of open scopes and the handles registered against them."""

    def __init__(self) -> None:
        """Initialize a manager without open scopes."""
        self._stack: list[int] = []
        self._handles: dict[int, list[Handle]] = {}
        self._released: dict[int, Handle] = {}

    @property
    def current(self) -> int | None:
        """Identifier of the innermost open scope, if any."""
        if not self._stack:
            return None

        return self._stack[-1]

    @property
    def depth(self) -> int:
        """Number of open scopes."""
        return len(self._stack)

    @contextmanager
    def open(self, scope_id: int) -> Iterator[int]:
        """Open a scope for the duration of the block.

        Args:
            scope_id: Identifier of the scope, usually a block node index.

        Yields:
            The scope identifier.
        """
        if scope_id in self._handles:
            raise GroveError(f'Scope {scope_id} is already open')

        self._stack.append(scope_id)
        self._handles[scope_id] = []

        token = ACTIVE_SCOPES.set(self)
        try:
            yield scope_id
        finally:
            ACTIVE_SCOPES.reset(token)
            self._stack.remove(scope_id)
            self.close(scope_id)

    def register_for_cleanup(self, scope_id: int, handle: Handle) -> Handle:
        """Register a handle against an open scope.

        Args:
            scope_id: Identifier of an open scope.
            handle: Handle to release when the scope ends.

        Returns:
            The registered handle.

        Raises:
            GroveError: If the scope is not open.
        """
        if scope_id not in self._handles:
            raise GroveError(f'Scope {scope_id} is not open')

        self._handles[scope_id].append(handle)

        return handle

    def register(self, handle: Handle) -> Handle:
        """Register a handle against the innermost open scope.

        Raises:
            GroveError: If no scope is open.
        """
        if (scope_id := self.current) is None:
            raise GroveError('No resource scope is open')

        return self.register_for_cleanup(scope_id, handle)

    def release(self, handle: Handle) -> bool:
        """Release a handle at most once.

        Args:
            handle: Handle to release.

        Returns:
            True if the handle was released by this call, False if it
            was released before or its release failed.
        """
        if id(handle) in self._released:
            return False

        self._released[id(handle)] = handle

        try:
            handle.release()
        except Exception:
            logger.warning('Failed to release %r', handle, exc_info=True)
            return False

        return True

    def close(self, scope_id: int) -> None:
        """Release every handle of a scope, last registered first."""
        handles = self._handles.pop(scope_id, [])
        if handles:
            logger.debug('Releasing %d resource(s) of scope %d', len(handles), scope_id)

        for handle in reversed(handles):
            self.release(handle)

        for handle in handles:
            self._released.pop(id(handle), None)


#: Scope manager of the body being executed, if any.
ACTIVE_SCOPES: ContextVar[ScopeManager | None] = ContextVar('grove_active_scopes', default=None)


def current_scopes() -> ScopeManager:
    """Return the scope manager of the body being executed.

    Raises:
        GroveError: If called outside of a block body.
    """
    if (manager := ACTIVE_SCOPES.get()) is None:
        raise GroveError('Resources can only be created inside a block body')

    return manager
