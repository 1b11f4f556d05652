"""Control-flow graph construction from a function's basic blocks."""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import MalformedFunctionError, UnsupportedTerminatorError
from .function import (
    BasicBlock,
    Branch,
    CondBranch,
    Function,
    IndirectBranch,
    Return,
    SwitchBranch,
    Unreachable,
)
from .graph import EXIT_LABEL, Edge, EdgeKind, Node

logger = logging.getLogger(__name__)


def _block_successors(block: BasicBlock) -> List[Tuple[EdgeKind, Optional[str], Optional[int]]]:
    """Extract ``(kind, target, case value)`` triples from ``block``.

    A ``None`` target stands for the virtual exit.
    """

    terminator = block.terminator
    successors: List[Tuple[EdgeKind, Optional[str], Optional[int]]] = []
    if isinstance(terminator, Branch):
        successors.append((EdgeKind.UNCONDITIONAL, terminator.target, None))
    elif isinstance(terminator, CondBranch):
        if terminator.true_target == terminator.false_target:
            successors.append((EdgeKind.UNCONDITIONAL, terminator.true_target, None))
        else:
            successors.append((EdgeKind.BRANCH_TRUE, terminator.true_target, None))
            successors.append((EdgeKind.BRANCH_FALSE, terminator.false_target, None))
    elif isinstance(terminator, SwitchBranch):
        seen: Dict[int, str] = {}
        for case in terminator.cases:
            previous = seen.get(case.value)
            if previous == case.target:
                continue
            if previous is not None:
                raise MalformedFunctionError(
                    f"switch in block {block.name!r} sends case {case.value} "
                    f"to both {previous!r} and {case.target!r}"
                )
            seen[case.value] = case.target
            successors.append((EdgeKind.SWITCH_CASE, case.target, case.value))
        successors.append((EdgeKind.SWITCH_DEFAULT, terminator.default, None))
    elif isinstance(terminator, IndirectBranch):
        if not terminator.destinations:
            raise MalformedFunctionError(
                f"indirect branch in block {block.name!r} has no destinations"
            )
        for target in dict.fromkeys(terminator.destinations):
            successors.append((EdgeKind.INDIRECT, target, None))
    elif isinstance(terminator, Return):
        successors.append((EdgeKind.RETURN, None, None))
    elif isinstance(terminator, Unreachable):
        successors.append((EdgeKind.UNREACHABLE, None, None))
    elif terminator is None:
        raise MalformedFunctionError(f"block {block.name!r} has no terminator")
    else:
        raise UnsupportedTerminatorError(
            f"unsupported terminator in block {block.name!r}: {type(terminator).__name__}"
        )
    return successors


class ControlFlowGraph:
    """Read-only CFG over the reachable blocks of one function."""

    def __init__(
        self,
        name: str,
        entry: Node,
        nodes: Sequence[Node],
        exit: Node,
        edges: Iterable[Edge],
        blocks: Optional[Mapping[Node, BasicBlock]] = None,
    ) -> None:
        self.name = name
        self.entry = entry
        self.nodes: Tuple[Node, ...] = tuple(nodes)
        self.exit = exit
        self.edges: Tuple[Edge, ...] = tuple(edges)
        self._blocks: Dict[Node, BasicBlock] = dict(blocks or {})
        self._by_label: Dict[str, Node] = {node.label: node for node in self.nodes}
        self._successors: Dict[Node, Tuple[Edge, ...]] = {}
        self._predecessors: Dict[Node, Tuple[Edge, ...]] = {}
        succ: Dict[Node, List[Edge]] = {node: [] for node in self.all_nodes}
        pred: Dict[Node, List[Edge]] = {node: [] for node in self.all_nodes}
        for edge in self.edges:
            succ.setdefault(edge.source, []).append(edge)
            pred.setdefault(edge.target, []).append(edge)
        for node, items in succ.items():
            self._successors[node] = tuple(items)
        for node, items in pred.items():
            self._predecessors[node] = tuple(items)

    @classmethod
    def new(cls, function: Function) -> "ControlFlowGraph":
        """Build the CFG of ``function``, pruning unreachable blocks."""

        if not function.blocks:
            raise MalformedFunctionError("function has no blocks", function=function.name)
        by_name: Dict[str, Tuple[int, BasicBlock]] = {}
        for index, block in enumerate(function.blocks):
            if block.name in by_name:
                raise MalformedFunctionError(
                    f"duplicate block label {block.name!r}", function=function.name
                )
            if block.name == EXIT_LABEL:
                raise MalformedFunctionError(
                    f"block label {EXIT_LABEL!r} is reserved", function=function.name
                )
            by_name[block.name] = (index, block)

        entry_name = function.entry_name
        if entry_name not in by_name:
            raise MalformedFunctionError(
                f"entry block {entry_name!r} is absent", function=function.name
            )

        exit_node = Node(len(function.blocks), EXIT_LABEL)
        nodes = {name: Node(index, name) for name, (index, _block) in by_name.items()}
        successors: Dict[str, List[Tuple[EdgeKind, Optional[str], Optional[int]]]] = {}
        for name, (_index, block) in by_name.items():
            try:
                targets = _block_successors(block)
            except MalformedFunctionError as exc:
                exc.function = function.name
                raise
            for _kind, target, _value in targets:
                if target is not None and target not in by_name:
                    raise MalformedFunctionError(
                        f"block {name!r} branches to unknown block {target!r}",
                        function=function.name,
                    )
            successors[name] = targets

        reachable = _reachable_blocks(successors, entry_name)
        pruned = len(by_name) - len(reachable)
        if pruned:
            logger.debug("%s: pruned %d unreachable block(s)", function.name, pruned)

        ordered = sorted((nodes[name] for name in reachable), key=lambda node: node.index)
        edges: List[Edge] = []
        for node in ordered:
            for kind, target, value in successors[node.label]:
                destination = exit_node if target is None else nodes[target]
                edges.append(Edge(node, destination, kind, value))
        blocks = {node: by_name[node.label][1] for node in ordered}
        return cls(function.name, nodes[entry_name], ordered, exit_node, edges, blocks)

    # ------------------------------------------------------------------
    # adjacency
    # ------------------------------------------------------------------

    @property
    def all_nodes(self) -> Tuple[Node, ...]:
        return self.nodes + (self.exit,)

    def successors(self, node: Node) -> Tuple[Edge, ...]:
        return self._successors.get(node, tuple())

    def predecessors(self, node: Node) -> Tuple[Edge, ...]:
        return self._predecessors.get(node, tuple())

    def successor_nodes(self, node: Node) -> Tuple[Node, ...]:
        return tuple(dict.fromkeys(edge.target for edge in self.successors(node)))

    def predecessor_nodes(self, node: Node) -> Tuple[Node, ...]:
        return tuple(dict.fromkeys(edge.source for edge in self.predecessors(node)))

    def node(self, label: str) -> Node:
        try:
            return self._by_label[label]
        except KeyError:
            raise KeyError(f"unknown block {label!r}") from None

    def __contains__(self, node: object) -> bool:
        return node in self._successors

    def __len__(self) -> int:
        return len(self.nodes)

    # ------------------------------------------------------------------
    # rendering
    # ------------------------------------------------------------------

    def to_text(self) -> str:
        lines: List[str] = [
            f"cfg {self.name} (entry={self.entry}, blocks={len(self.nodes)}, "
            f"edges={len(self.edges)})"
        ]
        for node in self.nodes:
            succ = ", ".join(_edge_target(edge) for edge in self.successors(node))
            pred = ", ".join(edge.source.label for edge in self.predecessors(node))
            lines.append(f"  block {node.label} #{node.index} succ=[{succ}] pred=[{pred}]")
            block = self._blocks.get(node)
            if block is not None and block.terminator is not None:
                lines.append(f"    {block.terminator.describe()}")
        pred = ", ".join(edge.source.label for edge in self.predecessors(self.exit))
        lines.append(f"  exit pred=[{pred}]")
        return "\n".join(lines) + "\n"


def _edge_target(edge: Edge) -> str:
    tag = edge.tag
    if tag:
        return f"{edge.target.label}:{tag}"
    return edge.target.label


def _reachable_blocks(
    successors: Mapping[str, Sequence[Tuple[EdgeKind, Optional[str], Optional[int]]]],
    entry: str,
) -> Set[str]:
    visited: Set[str] = set()
    queue: deque[str] = deque([entry])
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        for _kind, target, _value in successors.get(current, ()):
            if target is not None and target not in visited:
                queue.append(target)
    return visited


def build_cfg(function: Function) -> ControlFlowGraph:
    return ControlFlowGraph.new(function)


__all__ = ["ControlFlowGraph", "build_cfg"]
