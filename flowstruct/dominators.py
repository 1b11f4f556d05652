"""Immediate dominators and dominance frontiers over a CFG."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from .cfg import ControlFlowGraph
from .errors import UnreachableEntryError
from .graph import Edge, Node


def _postorder(cfg: ControlFlowGraph) -> List[Node]:
    """Iterative depth-first postorder from the entry, successors in edge order."""

    order: List[Node] = []
    visited: Set[Node] = {cfg.entry}
    stack: List[Tuple[Node, int]] = [(cfg.entry, 0)]
    while stack:
        node, position = stack[-1]
        successors = cfg.successor_nodes(node)
        if position < len(successors):
            stack[-1] = (node, position + 1)
            successor = successors[position]
            if successor not in visited:
                visited.add(successor)
                stack.append((successor, 0))
            continue
        stack.pop()
        order.append(node)
    return order


@dataclass(frozen=True)
class DominatorTree:
    """Immutable dominator tree; the entry is its own immediate dominator."""

    entry: Node
    immediate: Mapping[Node, Node]
    reverse_postorder: Tuple[Node, ...]
    _rpo_index: Mapping[Node, int] = field(repr=False, compare=False)
    _depth: Mapping[Node, int] = field(repr=False, compare=False)
    _children: Mapping[Node, Tuple[Node, ...]] = field(repr=False, compare=False)
    _predecessors: Mapping[Node, Tuple[Node, ...]] = field(repr=False, compare=False)

    @classmethod
    def compute(cls, cfg: ControlFlowGraph) -> "DominatorTree":
        if len(cfg.nodes) > 1 and not cfg.successors(cfg.entry):
            raise UnreachableEntryError(
                f"entry block {cfg.entry.label!r} has no successors", function=cfg.name
            )
        order = list(reversed(_postorder(cfg)))
        rpo_index = {node: index for index, node in enumerate(order)}
        missing = [node.label for node in cfg.nodes if node not in rpo_index]
        if missing:
            raise UnreachableEntryError(
                f"blocks unreachable from entry: {', '.join(missing)}", function=cfg.name
            )

        predecessors = {
            node: tuple(pred for pred in cfg.predecessor_nodes(node) if pred in rpo_index)
            for node in order
        }
        idom: Dict[Node, Optional[Node]] = {node: None for node in order}
        idom[cfg.entry] = cfg.entry

        def intersect(left: Node, right: Node) -> Node:
            while left != right:
                while rpo_index[left] > rpo_index[right]:
                    left = idom[left]  # type: ignore[assignment]
                while rpo_index[right] > rpo_index[left]:
                    right = idom[right]  # type: ignore[assignment]
            return left

        changed = True
        while changed:
            changed = False
            for node in order[1:]:
                candidate: Optional[Node] = None
                for pred in predecessors[node]:
                    if idom[pred] is None:
                        continue
                    candidate = pred if candidate is None else intersect(pred, candidate)
                if candidate is not None and idom[node] != candidate:
                    idom[node] = candidate
                    changed = True

        immediate: Dict[Node, Node] = {node: dom for node, dom in idom.items() if dom is not None}
        depth: Dict[Node, int] = {cfg.entry: 0}
        children: Dict[Node, List[Node]] = {node: [] for node in order}
        for node in order[1:]:
            parent = immediate[node]
            depth[node] = depth[parent] + 1
            children[parent].append(node)
        return cls(
            entry=cfg.entry,
            immediate=MappingProxyType(immediate),
            reverse_postorder=tuple(order),
            _rpo_index=MappingProxyType(rpo_index),
            _depth=MappingProxyType(depth),
            _children=MappingProxyType({node: tuple(kids) for node, kids in children.items()}),
            _predecessors=MappingProxyType(predecessors),
        )

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def __contains__(self, node: object) -> bool:
        return node in self._rpo_index

    def rpo_index(self, node: Node) -> int:
        return self._rpo_index[node]

    def immediate_dominator(self, node: Node) -> Optional[Node]:
        """Return the immediate dominator of ``node``; the entry is its own.

        ``None`` is only returned for nodes outside the tree.
        """

        return self.immediate.get(node)

    def children(self, node: Node) -> Tuple[Node, ...]:
        return self._children.get(node, tuple())

    def dominates(self, a: Node, b: Node) -> bool:
        """True when every path from the entry to ``b`` passes through ``a``."""

        if a not in self._depth or b not in self._depth:
            return False
        target_depth = self._depth[a]
        current = b
        while self._depth[current] > target_depth:
            current = self.immediate[current]
        return current == a

    def strictly_dominates(self, a: Node, b: Node) -> bool:
        return a != b and self.dominates(a, b)

    def is_back_edge(self, edge: Edge) -> bool:
        return self.dominates(edge.target, edge.source)

    def dominance_frontier(self, node: Node) -> FrozenSet[Node]:
        return self.frontiers().get(node, frozenset())

    def frontiers(self) -> Mapping[Node, FrozenSet[Node]]:
        frontier: Dict[Node, Set[Node]] = {node: set() for node in self.reverse_postorder}
        for node in self.reverse_postorder:
            preds = self._predecessors.get(node, tuple())
            if node != self.entry and len(preds) < 2:
                continue
            stop = None if node == self.entry else self.immediate[node]
            for pred in preds:
                runner = pred
                while runner != stop:
                    frontier[runner].add(node)
                    if runner == self.entry:
                        break
                    runner = self.immediate[runner]
        return MappingProxyType({node: frozenset(items) for node, items in frontier.items()})

    def to_text(self) -> str:
        lines = [f"dominators (entry={self.entry})"]
        for node in self.reverse_postorder:
            parent_text = "-" if node == self.entry else self.immediate[node].label
            lines.append(f"  {node.label} idom={parent_text} depth={self._depth[node]}")
        return "\n".join(lines) + "\n"


__all__ = ["DominatorTree"]
