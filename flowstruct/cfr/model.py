"""Nested group tree produced by control-flow recovery."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Tuple, Union

from ..cfa.model import IrreducibleRegion, Key, Primitive, primitive_kind, primitive_slots
from ..graph import Node


@dataclass(frozen=True)
class BlockGroup:
    """Leaf wrapping a single basic block."""

    node: Node

    @property
    def entry(self) -> Node:
        return self.node

    def leaves(self) -> Tuple[Node, ...]:
        return (self.node,)

    def depth(self) -> int:
        return 0


@dataclass(frozen=True)
class PrimitiveGroup:
    """A primitive whose children follow the primitive's own slot order."""

    primitive: Primitive
    children: Tuple["Group", ...]

    @property
    def entry(self) -> Node:
        return self.primitive.entry

    @property
    def kind(self) -> str:
        return primitive_kind(self.primitive)

    def slot_map(self) -> Dict[Key, "Group"]:
        return dict(zip(primitive_slots(self.primitive), self.children))

    def leaves(self) -> Tuple[Node, ...]:
        return _leaves(self.children)

    def depth(self) -> int:
        return 1 + max((child.depth() for child in self.children), default=0)


@dataclass(frozen=True)
class SequenceGroup:
    """Top-level items left side by side, in original block order."""

    children: Tuple["Group", ...]

    @property
    def entry(self) -> Node:
        return self.children[0].entry

    def leaves(self) -> Tuple[Node, ...]:
        return _leaves(self.children)

    def depth(self) -> int:
        return max((child.depth() for child in self.children), default=0)


@dataclass(frozen=True)
class IrreducibleGroup:
    """Residue that no primitive could consume.

    ``entries`` holds the first block of every child control can enter the
    region through, which is enough for a consumer to emit a labelled
    dispatch loop without the original CFG.
    """

    region: IrreducibleRegion
    children: Tuple["Group", ...]
    entries: Tuple[Node, ...]

    @property
    def entry(self) -> Node:
        return min(self.entries) if self.entries else self.children[0].entry

    def leaves(self) -> Tuple[Node, ...]:
        return _leaves(self.children)

    def depth(self) -> int:
        return 1 + max((child.depth() for child in self.children), default=0)


Group = Union[BlockGroup, PrimitiveGroup, SequenceGroup, IrreducibleGroup]


def _leaves(children: Tuple[Group, ...]) -> Tuple[Node, ...]:
    leaves: Tuple[Node, ...] = tuple()
    for child in children:
        leaves += child.leaves()
    return leaves


def iter_groups(group: Group) -> Iterator[Group]:
    """Yield ``group`` and every descendant, parents before children."""

    yield group
    if isinstance(group, BlockGroup):
        return
    for child in group.children:
        yield from iter_groups(child)


def contains_irreducible(group: Group) -> bool:
    return any(isinstance(item, IrreducibleGroup) for item in iter_groups(group))


__all__ = [
    "BlockGroup",
    "PrimitiveGroup",
    "SequenceGroup",
    "IrreducibleGroup",
    "Group",
    "iter_groups",
    "contains_irreducible",
]
