"""Value classification and rendering utilities.

This module defines the value categories shared by the operator library,
the error formatter, and the assertion engine, together with the helper
that renders arbitrary runtime values for human-readable messages.
"""

from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any

#: A value in runtime represents any Python object received from
#: test bodies, data sets or extension operators.
type RuntimeValue = Any

MAPPINGS = (dict,)
SCALARS = (date, datetime, timedelta, str, bytes, int, float, bool)
SEQUENCES = (list, tuple, set, frozenset)

#: Longest rendering kept verbatim in failure messages.
RENDER_LIMIT = 200
RENDER_ELLIPSIS = '...'


def render(value: RuntimeValue) -> str:
    """Render a runtime value for a failure message.

    Strings are quoted so that empty and whitespace-only values stay
    visible, `None` is rendered as `None`, and overly long renderings
    are truncated.

    Args:
        value: Runtime value to render.

    Returns:
        A single-line string representation of the value.
    """
    text = repr(value)
    if len(text) > RENDER_LIMIT:
        text = text[:RENDER_LIMIT - len(RENDER_ELLIPSIS)] + RENDER_ELLIPSIS

    return text


def lookup(value: RuntimeValue, path: str) -> RuntimeValue:
    """Resolve a dotted path against mappings and object attributes.

    Args:
        value: Root value.
        path: Dotted path, for example `user.name`.

    Returns:
        The resolved value.

    Raises:
        LookupError: If a path segment can not be resolved.
    """
    for key in path.split('.'):
        if isinstance(value, Mapping):
            if key not in value:
                raise LookupError(key)
            value = value[key]
        elif hasattr(value, key):
            value = getattr(value, key)
        else:
            raise LookupError(key)

    return value
