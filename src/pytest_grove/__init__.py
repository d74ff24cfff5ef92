"""Pytest plugin and runtime for behaviour-driven test suites.

The `pytest_grove` package lets tests be written as nested `describe`
and `it` blocks with shared setup hooks, data-driven expansion and
fluent assertions, and integrates such suites with pytest.

Key features:
- an extensible registry of named assertion operators;
- suites discovered and run in two passes over the same declarations;
- substitutions and scratch storage released when their block ends;
- `spec_*.py` files collected as pytest test items.
"""

from pytest_grove.core import (
    Mode,
    SuiteRunner,
    after_all,
    after_each,
    before_all,
    before_each,
    check,
    context,
    describe,
    it,
    scratch_file,
    scratch_path,
    should,
    substitute,
)

__all__ = (
    'Mode',
    'SuiteRunner',
    'after_all',
    'after_each',
    'before_all',
    'before_each',
    'check',
    'context',
    'describe',
    'it',
    'scratch_file',
    'scratch_path',
    'should',
    'substitute',
)
