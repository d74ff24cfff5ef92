"""Scope-bound substitutions and scratch storage.

Both collaborators create a resource, register its handle against the
innermost open scope and leave the release to the scope manager.
"""

import logging
from pathlib import Path
from shutil import rmtree
from tempfile import mkdtemp
from typing import Any
from unittest.mock import patch

from .scopes import Resource, current_scopes

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = 'grove-'


def substitute(target: Any, attribute: str, value: Any) -> Any:  # noqa: ANN401
    """Replace an attribute until the current scope ends.

    Args:
        target: Object or module owning the attribute.
        attribute: Attribute name.
        value: Replacement value.

    Returns:
        The replacement value.
    """
    manager = current_scopes()

    patcher = patch.object(target, attribute, value)
    replacement = patcher.start()

    manager.register(Resource(
        name=f'substitution of {attribute!r}',
        finalizer=patcher.stop,
    ))

    logger.debug('Substituted %r on %r', attribute, target)

    return replacement


def _remove(path: Path) -> None:
    """Delete a scratch entry."""
    if path.is_dir():
        rmtree(path)
    else:
        path.unlink(missing_ok=True)


def scratch_path(name: str | None = None) -> Path:
    """Create a scratch directory removed when the current scope ends.

    Args:
        name: Optional directory name, a random one is used otherwise.

    Returns:
        Path to an empty directory.
    """
    manager = current_scopes()

    if name is None:
        path = Path(mkdtemp(prefix=SCRATCH_PREFIX))
    else:
        path = Path(mkdtemp(prefix=SCRATCH_PREFIX)) / name
        path.mkdir()
        manager.register(Resource(
            name=f'scratch root {path.parent}',
            finalizer=lambda: _remove(path.parent),
        ))

    manager.register(Resource(
        name=f'scratch directory {path}',
        finalizer=lambda: _remove(path),
    ))

    return path


def scratch_file(name: str, content: str | bytes = '') -> Path:
    """Create a scratch file removed when the current scope ends.

    Args:
        name: File name.
        content: Initial file content.

    Returns:
        Path to the created file.
    """
    path = scratch_path() / name

    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding='utf-8')

    return path
