"""Tests for block nodes and the block tree arena."""

import pytest
from pydantic import ValidationError

from pytest_grove.core.blocks import ROOT_INDEX, BlockKind, BlockNode, BlockTree
from pytest_grove.errors import DeclarationError


def _tree() -> BlockTree:
    """Build `suite > [outer > [inner > [a], b], c]`."""
    tree = BlockTree('suite')

    outer = tree.add(ROOT_INDEX, 'outer', BlockKind.GROUP, tags=frozenset({'slow'}))
    inner = tree.add(outer.index, 'inner', BlockKind.GROUP, skip=True)
    tree.add(inner.index, 'a', BlockKind.LEAF, tags=frozenset({'db'}))
    tree.add(outer.index, 'b', BlockKind.LEAF, focus=True)
    tree.add(ROOT_INDEX, 'c', BlockKind.LEAF)

    return tree


def test_tree_structure() -> None:
    """Nodes are stored in creation order and linked by indices."""
    tree = _tree()

    assert len(tree) == 6
    assert tree.root.name == 'suite'
    assert tree.root.is_root
    assert tree.root.is_group

    assert [node.name for node in tree] == ['suite', 'outer', 'inner', 'a', 'b', 'c']
    assert [node.name for node in tree.children(ROOT_INDEX)] == ['outer', 'c']
    assert tree.node(1).children == [2, 4]
    assert tree.node(3).parent == 2

    assert tree.parent(ROOT_INDEX) is None
    assert tree.parent(3).name == 'inner'  # type: ignore[union-attr]
    assert [node.name for node in tree.ancestors(3)] == ['inner', 'outer', 'suite']


def test_tree_traversal() -> None:
    """Walk subtrees depth-first in declaration order."""
    tree = _tree()

    assert [node.name for node in tree.walk()] == ['suite', 'outer', 'inner', 'a', 'b', 'c']
    assert [node.name for node in tree.walk(1)] == ['outer', 'inner', 'a', 'b']
    assert [node.name for node in tree.leaves()] == ['a', 'b', 'c']
    assert [node.name for node in tree.leaves(2)] == ['a']

    assert tree.path(3) == ['outer', 'inner', 'a']
    assert tree.path(ROOT_INDEX) == []


def test_inherited_flags() -> None:
    """Tags, skip and focus requests apply to whole subtrees."""
    tree = _tree()

    assert tree.effective_tags(3) == {'slow', 'db'}
    assert tree.effective_tags(5) == frozenset()

    assert tree.is_skipped(3)
    assert not tree.is_skipped(4)

    assert tree.has_focus
    assert tree.is_focused(4)
    assert not tree.is_focused(5)


def test_add_under_leaf() -> None:
    """Leaves never own children."""
    tree = BlockTree()
    leaf = tree.add(ROOT_INDEX, 'leaf', BlockKind.LEAF)

    with pytest.raises(DeclarationError, match=r"can not be declared inside test 'leaf'$"):
        tree.add(leaf.index, 'nested', BlockKind.LEAF)

    assert len(tree) == 2


def test_skip_wins_over_focus() -> None:
    """A node requesting both skip and focus is only skipped."""
    node = BlockNode(index=1, name='both', kind=BlockKind.LEAF, skip=True, focus=True)

    assert node.skip is True
    assert node.focus is False


@pytest.mark.parametrize('values', (
    pytest.param({'index': 1, 'name': '', 'kind': 'leaf'}, id='empty name'),
    pytest.param({'index': -1, 'name': 'a', 'kind': 'leaf'}, id='negative index'),
    pytest.param({'index': 1, 'name': 'a', 'kind': 'leaf', 'children': [2]}, id='leaf with children'),
    pytest.param({'index': 1, 'name': 'a', 'kind': 'suite'}, id='unknown kind'),
))
def test_invalid_nodes(values: dict) -> None:
    """Reject malformed nodes."""
    with pytest.raises(ValidationError):
        BlockNode.model_validate(values)


def test_body_is_deferred() -> None:
    """Creating a node never invokes its body."""
    calls = []

    tree = BlockTree()
    node = tree.add(ROOT_INDEX, 'lazy', BlockKind.LEAF, body=lambda: calls.append(1))

    assert calls == []
    assert callable(node.body)
    assert 'body' not in node.model_dump()
