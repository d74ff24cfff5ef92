"""Test suite for the pytest-grove package.

This package contains unit and integration tests validating the
operator registry, assertion semantics, block tree discovery and run,
resource scopes, pytest integration and the command line.
"""
