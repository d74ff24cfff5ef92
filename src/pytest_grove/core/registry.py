"""Process-wide assertion operator registry.

This module defines the table mapping operator names to operator
definitions, together with the extension loading infrastructure that
discovers operators exposed by third-party plugins via entry points.

Registration is only permitted during the setup phase. The runner seals
the registry before any suite runs; afterwards the table is read-only.
"""

from collections.abc import Iterator
from threading import RLock
from typing import TYPE_CHECKING
from warnings import warn

from pydantic import ValidationError

from pytest_grove.errors import (
    DuplicateOperatorError,
    PluginError,
    PluginWarning,
    RegistrySealedError,
    UnknownOperatorError,
)
from pytest_grove.extensions import Operator, Plugin
from pytest_grove.names import operator_key

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint

if TYPE_CHECKING:
    from pytest_grove.extensions import Predicate

#: Entry-point group scanned for extension plugins.
PLUGINS_GROUP = 'grove_plugins'


class OperatorRegistry:
    """Table of assertion operators keyed by case-insensitive name.

    Attributes:
        strict_mode: If True, any plugin loading issue raises an error.
            If False, issues are emitted as warnings and loading continues.
    """

    def __init__(self, *, strict: bool = True) -> None:
        """Initialize an empty, unsealed registry.

        Args:
            strict: Strict plugin loading mode.
        """
        self.strict_mode = strict

        self._lock = RLock()
        self._operators: dict[str, Operator] = {}
        self._sealed = False

    def register(self, operator: 'Operator | str',
                 predicate: 'Predicate | None' = None, *,
                 negatable: bool = True) -> Operator:
        """Register an operator.

        Accepts either a declarative `Operator` or a name with a predicate.

        Args:
            operator: Operator definition or operator name.
            predicate: Predicate, required when a name is given.
            negatable: Whether negated assertions are allowed,
                used when a name is given.

        Returns:
            The registered operator definition.

        Raises:
            RegistrySealedError: If the setup phase is over.
            DuplicateOperatorError: If the name or an alias is taken.
        """
        if not isinstance(operator, Operator):
            operator = Operator(
                name=operator,
                predicate=predicate,
                negatable=negatable,
            )

        with self._lock:
            if self._sealed:
                raise RegistrySealedError(
                    f'Operator {operator.name!r} can not be registered '
                    'after the registry was sealed',
                    name=operator.name,
                )

            if len(set(operator.keys)) != len(operator.keys):
                raise DuplicateOperatorError(
                    f'Operator {operator.name!r} declares duplicate aliases',
                    name=operator.name,
                )

            for key in operator.keys:
                if existing := self._operators.get(key):
                    raise DuplicateOperatorError(
                        f'Operator {operator.name!r} collides with '
                        f'registered operator {existing.name!r}',
                        name=operator.name,
                    )

            for key in operator.keys:
                self._operators[key] = operator

        return operator

    def get(self, name: str) -> Operator:
        """Look up an operator by name or alias.

        Args:
            name: Case-insensitive operator name.

        Returns:
            Operator definition.

        Raises:
            UnknownOperatorError: If no operator is registered under the name.
        """
        with self._lock:
            operator = self._operators.get(operator_key(name))

        if operator is None:
            raise UnknownOperatorError(
                f'Operator {name!r} is not registered',
                name=name,
            )

        return operator

    def __contains__(self, name: object) -> bool:
        """Check whether a name resolves to an operator."""
        if not isinstance(name, str):
            return False

        with self._lock:
            return operator_key(name) in self._operators

    def __iter__(self) -> Iterator[Operator]:
        """Iterate over unique operators in registration order."""
        with self._lock:
            operators = list(self._operators.values())

        seen: set[int] = set()
        for operator in operators:
            if id(operator) not in seen:
                seen.add(id(operator))
                yield operator

    def __len__(self) -> int:
        """Return the number of unique operators."""
        return sum(1 for _ in self)

    @property
    def sealed(self) -> bool:
        """Whether the setup phase is over."""
        return self._sealed

    def seal(self) -> None:
        """End the setup phase.

        Sealing is idempotent; once sealed, the registry can not be reopened.
        """
        with self._lock:
            self._sealed = True

    def emit_plugin_issue(self, message: str,
                          entrypoint: 'EntryPoint | None' = None) -> Exception | None:
        """Emit a plugin warning or return the exception.

        Args:
            message: Warning message to emit.
            entrypoint: Entry point the plugin was loaded from, if applicable.

        Returns:
            PluginError on strict mode, otherwise `None`
                with producing a PluginWarning.
        """
        if self.strict_mode:
            return PluginError(message, entrypoint=entrypoint)

        warn(message, category=PluginWarning, stacklevel=2)

        return None

    def add_plugin(self, plugin: Plugin,
                   entrypoint: 'EntryPoint | None' = None) -> None:
        """Register every operator of a plugin.

        Collisions are fatal on strict mode and skipped with a warning
        otherwise, so one conflicting operator does not discard the rest.

        Args:
            plugin: Declarative plugin definition.
            entrypoint: Entry point the plugin was loaded from, if applicable.

        Raises:
            PluginError: If an operator can not be registered on strict mode.
        """
        module = entrypoint.value if entrypoint else plugin.name

        for operator in plugin.operators:
            try:
                self.register(operator)
            except DuplicateOperatorError as base:
                if error := self.emit_plugin_issue(
                    f'Operator {operator.name!r} from {module!r} is shadowing an existing',
                    entrypoint,
                ):
                    raise error from base

    def _load_plugin(self, entrypoint: 'EntryPoint') -> None:
        """Load and process a single plugin entry point.

        Args:
            entrypoint: Entry point describing the plugin to load.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        try:
            plugin = entrypoint.load()

        except ValidationError as base:
            if error := self.emit_plugin_issue(
                f'Failed to validate entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        except Exception as base:
            if error := self.emit_plugin_issue(
                f'Failed to load entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        if not isinstance(plugin, Plugin):
            if error := self.emit_plugin_issue(
                f'Loaded from entrypoint {entrypoint.name!r} object is not a plugin',
                entrypoint,
            ):
                raise error
            return None

        self.add_plugin(plugin, entrypoint)

        return None

    def load_plugins(self) -> None:
        """Load plugins via entry points and register their operators.

        Discovers plugins from the `grove_plugins` entry point group.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        from importlib.metadata import entry_points  # noqa: PLC0415

        for entrypoint in entry_points().select(group=PLUGINS_GROUP):
            self._load_plugin(entrypoint)


_registry: OperatorRegistry | None = None
_registry_lock = RLock()


def create_registry(*, strict: bool = True, plugins: bool = True) -> OperatorRegistry:
    """Create a registry holding the built-in operators.

    Args:
        strict: Strict plugin loading mode.
        plugins: Whether to load extension plugins from entry points.

    Returns:
        A new, unsealed registry.
    """
    from pytest_grove.builtins import operators  # noqa: PLC0415

    registry = OperatorRegistry(strict=strict)
    registry.add_plugin(operators.builtins)

    if plugins:
        registry.load_plugins()

    return registry


def get_registry() -> OperatorRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _registry  # noqa: PLW0603

    with _registry_lock:
        if _registry is None:
            from pytest_grove.settings import GroveSettings  # noqa: PLC0415

            _registry = create_registry(strict=GroveSettings().strict)

        return _registry


def reset_registry(registry: OperatorRegistry | None = None) -> None:
    """Replace the process-wide registry.

    Args:
        registry: New registry, or `None` to rebuild lazily on next use.
    """
    global _registry  # noqa: PLW0603

    with _registry_lock:
        _registry = registry
