"""Block nodes and the arena-owned block tree.

A suite file is represented by one `BlockTree`. The tree owns every node
in a single list; parent and child relations are stored as indices into
that list, so nodes never reference each other directly.

Index 0 is always the synthetic root group of the suite file.
"""

from collections.abc import Callable, Iterator, Mapping
from enum import StrEnum
from typing import Any, Self

from pydantic import Field, model_validator

from pytest_grove.errors import DeclarationError
from pytest_grove.models import SchemaModel

ROOT_INDEX = 0
ROOT_NAME = '<root>'

#: Deferred block content. Invoked by the tree walker, never at construction.
type Body = Callable[..., Any]


class BlockKind(StrEnum):
    """Structural role of a block."""

    GROUP = 'group'
    LEAF = 'leaf'


class BlockNode(SchemaModel):
    """Structural unit of a suite: a group or an individual test.

    Node identity is immutable. The child list is appended to by the
    owning tree while the suite is being discovered.
    """

    index: int = Field(ge=0)
    name: str = Field(min_length=1)
    kind: BlockKind

    tags: frozenset[str] = frozenset()
    skip: bool = False
    focus: bool = False

    parent: int | None = None
    children: list[int] = Field(default_factory=list)

    line: int | None = None
    data: Mapping[str, Any] | None = None
    expansion: int | None = None

    body: Body | None = Field(default=None, exclude=True, repr=False)

    @model_validator(mode='before')
    @classmethod
    def resolve_skip_focus(cls, values: Any) -> Any:  # noqa: ANN401
        """Skip wins when both skip and focus are requested."""
        if isinstance(values, dict) and values.get('skip') and values.get('focus'):
            return {**values, 'focus': False}

        return values

    @model_validator(mode='after')
    def check_leaf(self) -> Self:
        """Leaves never own children."""
        if self.kind is BlockKind.LEAF and self.children:
            raise ValueError('leaf block can not have children')

        return self

    @property
    def is_group(self) -> bool:
        """Whether the block is a container."""
        return self.kind is BlockKind.GROUP

    @property
    def is_root(self) -> bool:
        """Whether the block is the synthetic root of a suite file."""
        return self.parent is None


class BlockTree:
    """Arena owning every block node of one suite file."""

    def __init__(self, name: str = ROOT_NAME) -> None:
        """Initialize a tree holding only the root group.

        Args:
            name: Name of the root group, usually the suite file name.
        """
        self._nodes: list[BlockNode] = [
            BlockNode(index=ROOT_INDEX, name=name, kind=BlockKind.GROUP),
        ]

    def __len__(self) -> int:
        """Return the number of nodes, root included."""
        return len(self._nodes)

    def __iter__(self) -> Iterator[BlockNode]:
        """Iterate over nodes in creation order."""
        return iter(self._nodes)

    @property
    def root(self) -> BlockNode:
        """The synthetic root group."""
        return self._nodes[ROOT_INDEX]

    def node(self, index: int) -> BlockNode:
        """Return a node by index."""
        return self._nodes[index]

    def add(self, parent: int, name: str, kind: BlockKind, *,  # noqa: PLR0913
            tags: frozenset[str] = frozenset(),
            skip: bool = False,
            focus: bool = False,
            line: int | None = None,
            data: Mapping[str, Any] | None = None,
            expansion: int | None = None,
            body: Body | None = None) -> BlockNode:
        """Create a node and append it to the children of a parent.

        Args:
            parent: Index of the parent group.
            name: Block name.
            kind: Block kind.
            tags: Block tags.
            skip: Skip request.
            focus: Focus request.
            line: Source line of the body.
            data: Data binding of a data-driven block.
            expansion: Identifier of the data-driven declaration that
                created the node, shared by its siblings from the same data set.
            body: Deferred block content.

        Returns:
            The new node.

        Raises:
            DeclarationError: If the parent is a leaf.
        """
        owner = self._nodes[parent]
        if not owner.is_group:
            raise DeclarationError(
                f'Block {name!r} can not be declared inside test {owner.name!r}',
            )

        node = BlockNode(
            index=len(self._nodes),
            name=name,
            kind=kind,
            tags=tags,
            skip=skip,
            focus=focus,
            parent=parent,
            line=line,
            data=data,
            expansion=expansion,
            body=body,
        )

        self._nodes.append(node)
        owner.children.append(node.index)

        return node

    def children(self, index: int) -> list[BlockNode]:
        """Return the children of a node in declaration order."""
        return [self._nodes[child] for child in self._nodes[index].children]

    def parent(self, index: int) -> BlockNode | None:
        """Return the parent of a node, or `None` for the root."""
        parent = self._nodes[index].parent
        if parent is None:
            return None

        return self._nodes[parent]

    def ancestors(self, index: int) -> list[BlockNode]:
        """Return the ancestors of a node, innermost first, root included."""
        result = []
        while (node := self.parent(index)) is not None:
            result.append(node)
            index = node.index

        return result

    def path(self, index: int) -> list[str]:
        """Return block names from the outermost group down to the node.

        The root is not part of the path.
        """
        chain = [self._nodes[index], *self.ancestors(index)]

        return [node.name for node in reversed(chain) if not node.is_root]

    def walk(self, index: int = ROOT_INDEX) -> Iterator[BlockNode]:
        """Iterate over a subtree depth-first in declaration order."""
        node = self._nodes[index]
        yield node
        for child in node.children:
            yield from self.walk(child)

    def leaves(self, index: int = ROOT_INDEX) -> Iterator[BlockNode]:
        """Iterate over the leaves of a subtree in declaration order."""
        for node in self.walk(index):
            if not node.is_group:
                yield node

    def effective_tags(self, index: int) -> frozenset[str]:
        """Return the tags of a node merged with the tags of its ancestors."""
        tags = set(self._nodes[index].tags)
        for node in self.ancestors(index):
            tags.update(node.tags)

        return frozenset(tags)

    def is_skipped(self, index: int) -> bool:
        """Whether the node or one of its ancestors requested a skip."""
        if self._nodes[index].skip:
            return True

        return any(node.skip for node in self.ancestors(index))

    def is_focused(self, index: int) -> bool:
        """Whether the node or one of its ancestors is focused."""
        if self._nodes[index].focus:
            return True

        return any(node.focus for node in self.ancestors(index))

    @property
    def has_focus(self) -> bool:
        """Whether any node of the tree is focused."""
        return any(node.focus for node in self._nodes)
