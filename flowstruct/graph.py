"""Graph model shared by the CFG, the dominator tree and the analysers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


EXIT_LABEL = "<exit>"


@dataclass(frozen=True, order=True)
class Node:
    """Stable identity of a basic block.

    ``index`` is the ordinal of the block in the function's original block
    order and drives every deterministic tie-break.  The virtual exit uses an
    index one past the last block.
    """

    index: int
    label: str

    @property
    def is_exit(self) -> bool:
        return self.label == EXIT_LABEL

    def __str__(self) -> str:
        return self.label


class EdgeKind(Enum):
    """Classification of an edge by the terminator that produced it."""

    UNCONDITIONAL = auto()
    BRANCH_TRUE = auto()
    BRANCH_FALSE = auto()
    SWITCH_CASE = auto()
    SWITCH_DEFAULT = auto()
    INDIRECT = auto()
    RETURN = auto()
    UNREACHABLE = auto()

    @property
    def is_switch(self) -> bool:
        return self in (EdgeKind.SWITCH_CASE, EdgeKind.SWITCH_DEFAULT)

    @property
    def is_exit(self) -> bool:
        return self in (EdgeKind.RETURN, EdgeKind.UNREACHABLE)


_KIND_TAGS = {
    EdgeKind.UNCONDITIONAL: "",
    EdgeKind.BRANCH_TRUE: "true",
    EdgeKind.BRANCH_FALSE: "false",
    EdgeKind.SWITCH_DEFAULT: "default",
    EdgeKind.INDIRECT: "indirect",
    EdgeKind.RETURN: "return",
    EdgeKind.UNREACHABLE: "unreachable",
}


@dataclass(frozen=True)
class Edge:
    """Directed control transfer between two nodes."""

    source: Node
    target: Node
    kind: EdgeKind
    value: Optional[int] = None

    @property
    def tag(self) -> str:
        if self.kind is EdgeKind.SWITCH_CASE:
            return f"case {self.value}"
        return _KIND_TAGS[self.kind]

    def describe(self) -> str:
        tag = self.tag
        if tag:
            return f"{self.source}->{self.target} [{tag}]"
        return f"{self.source}->{self.target}"


__all__ = ["EXIT_LABEL", "Node", "EdgeKind", "Edge"]
