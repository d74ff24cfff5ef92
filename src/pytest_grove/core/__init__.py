"""Core runtime of behaviour-driven suites.

This module defines the infrastructure shared by every suite run.

It provides:
- a process-wide, sealable registry of assertion operators;
- an assertion engine turning operator outcomes into results;
- a block tree built by two passes over the suite declarations;
- scoped substitutions and scratch storage released per block.

The primary public entry point is `SuiteRunner`, which discovers a suite,
runs it and reports outcomes of every test.
"""

from .assertions import AssertionEngine, AssertionInvocation, AssertionResult, check, should
from .blocks import BlockKind, BlockNode, BlockTree
from .builder import after_all, after_each, before_all, before_each, context, describe, it
from .context import Mode
from .registry import OperatorRegistry, create_registry, get_registry, reset_registry
from .reporting import BlockOutcome, CollectingReporter, LoggingReporter, Reporter, Status, SuiteResult
from .resources import scratch_file, scratch_path, substitute
from .runner import SuiteRunner
from .scopes import ScopeManager

__all__ = (
    'AssertionEngine',
    'AssertionInvocation',
    'AssertionResult',
    'BlockKind',
    'BlockNode',
    'BlockOutcome',
    'BlockTree',
    'CollectingReporter',
    'LoggingReporter',
    'Mode',
    'OperatorRegistry',
    'Reporter',
    'ScopeManager',
    'Status',
    'SuiteResult',
    'SuiteRunner',
    'after_all',
    'after_each',
    'before_all',
    'before_each',
    'check',
    'context',
    'create_registry',
    'describe',
    'get_registry',
    'it',
    'reset_registry',
    'scratch_file',
    'scratch_path',
    'should',
    'substitute',
)
