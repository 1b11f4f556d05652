"""Fixed-point structural reduction over a working graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from ..cfg import ControlFlowGraph
from ..dominators import DominatorTree
from ..errors import InternalInvariantError
from ..graph import Node
from ..options import DEFAULT_OPTIONS, StructuringOptions
from .model import (
    IrreducibleRegion,
    Key,
    Primitive,
    Residue,
    ResidueEdge,
    key_label,
    primitive_kind,
)
from .patterns import MATCHERS, Match, match_natural_loop
from .working import WorkingGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructuralAnalysis:
    """Outcome of reducing one CFG."""

    cfg: ControlFlowGraph
    dominators: DominatorTree
    primitives: Tuple[Primitive, ...]
    residue: Optional[Residue]
    entry: Key

    @property
    def reducible(self) -> bool:
        return self.residue is None

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return self.cfg.nodes

    def kind_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for primitive in self.primitives:
            kind = primitive_kind(primitive)
            counts[kind] = counts.get(kind, 0) + 1
        return counts


class StructuralAnalyzer:
    """Repeatedly match and collapse shapes until nothing changes."""

    def __init__(
        self,
        cfg: ControlFlowGraph,
        dominators: Optional[DominatorTree] = None,
        options: Optional[StructuringOptions] = None,
    ) -> None:
        self.cfg = cfg
        self.dominators = dominators or DominatorTree.compute(cfg)
        self.options = options or DEFAULT_OPTIONS
        self._graph = WorkingGraph(cfg, self.dominators)
        self._primitives: List[Primitive] = []

    def run(self) -> StructuralAnalysis:
        graph = self._graph
        while True:
            match = self._scan()
            if match is None and self.options.natural_loop_fallback:
                match = match_natural_loop(graph, self.options)
            if match is None:
                break
            self._emit(match)
        residue = self._residue()
        if residue is not None:
            logger.debug(
                "%s: %d node(s) left after reduction, %d irreducible region(s)",
                self.cfg.name,
                len(residue.nodes),
                len(residue.regions),
            )
        return StructuralAnalysis(
            cfg=self.cfg,
            dominators=self.dominators,
            primitives=tuple(self._primitives),
            residue=residue,
            entry=graph.entry,
        )

    # ------------------------------------------------------------------
    # reduction loop
    # ------------------------------------------------------------------

    def _scan(self) -> Optional[Match]:
        for key in self._graph.keys():
            for matcher in MATCHERS:
                match = matcher(self._graph, key, self.options)
                if match is not None:
                    return match
        return None

    def _emit(self, match: Match) -> None:
        graph = self._graph
        before = graph.node_count() + graph.edge_count()
        header = graph.header(match.entry)
        region = graph.collapse(match.keys, match.entry, loop=match.loop)
        after = graph.node_count() + graph.edge_count()
        if after >= before:
            raise InternalInvariantError(
                f"{match.kind} at {key_label(match.entry)} did not shrink the working graph",
                function=self.cfg.name,
            )
        following = [key for key in graph.structural_successors(region) if key != region]
        follow = following[0] if len(following) == 1 else None
        primitive = match.build(
            region=region,
            entry=header,
            members=graph.members(region),
            follow=follow,
        )
        self._primitives.append(primitive)
        logger.debug(
            "%s: %s %s over [%s]",
            self.cfg.name,
            primitive_kind(primitive),
            region,
            ", ".join(key_label(key) for key in match.keys),
        )

    # ------------------------------------------------------------------
    # residue
    # ------------------------------------------------------------------

    def _residue(self) -> Optional[Residue]:
        graph = self._graph
        keys = graph.keys()
        if len(keys) <= 1:
            return None
        edges = graph.residue_edges()
        regions = tuple(
            self._irreducible_region(component, edges)
            for component in _strongly_connected(graph, keys)
            if len(component) > 1
        )
        return Residue(
            entry=graph.entry,
            nodes=keys,
            edges=edges,
            region=self._irreducible_region(keys, edges),
            regions=regions,
        )

    def _irreducible_region(
        self, component: Tuple[Key, ...], edges: Tuple[ResidueEdge, ...]
    ) -> IrreducibleRegion:
        graph = self._graph
        inside = set(component)
        entries = tuple(
            key
            for key in component
            if key == graph.entry or any(pred not in inside for pred in graph.predecessors(key))
        )
        internal = tuple(edge for edge in edges if edge.source in inside and edge.target in inside)
        retreating = _retreating_edges(graph, component, entries)
        back_edges = tuple(
            edge for edge in internal if (edge.source, edge.target) in retreating
        )
        members: FrozenSet[Node] = frozenset()
        for key in component:
            members = members | graph.members(key)
        return IrreducibleRegion(
            nodes=component,
            members=members,
            entries=entries,
            back_edges=back_edges,
            edges=internal,
        )


def _strongly_connected(graph: WorkingGraph, keys: Tuple[Key, ...]) -> List[Tuple[Key, ...]]:
    """Kosaraju's algorithm; components come back in reverse postorder."""

    allowed = set(keys)
    finished: List[Key] = []
    visited: Set[Key] = set()
    for root in keys:
        if root in visited:
            continue
        visited.add(root)
        stack: List[Tuple[Key, int]] = [(root, 0)]
        while stack:
            key, position = stack[-1]
            successors = [target for target in graph.structural_successors(key) if target in allowed]
            if position < len(successors):
                stack[-1] = (key, position + 1)
                target = successors[position]
                if target not in visited:
                    visited.add(target)
                    stack.append((target, 0))
                continue
            stack.pop()
            finished.append(key)

    assigned: Set[Key] = set()
    components: List[Tuple[Key, ...]] = []
    for root in reversed(finished):
        if root in assigned:
            continue
        component: List[Key] = []
        pending = [root]
        assigned.add(root)
        while pending:
            key = pending.pop()
            component.append(key)
            for pred in graph.predecessors(key):
                if pred in allowed and pred not in assigned:
                    assigned.add(pred)
                    pending.append(pred)
        components.append(tuple(sorted(component, key=graph.rpo)))
    components.sort(key=lambda items: graph.rpo(items[0]))
    return components


def _retreating_edges(
    graph: WorkingGraph, component: Tuple[Key, ...], entries: Tuple[Key, ...]
) -> Set[Tuple[Key, Key]]:
    """Edges closing a cycle during a depth-first walk from the region entries."""

    inside = set(component)
    retreating: Set[Tuple[Key, Key]] = set()
    visited: Set[Key] = set()
    for root in entries or component[:1]:
        if root in visited:
            continue
        visited.add(root)
        on_stack: Set[Key] = {root}
        stack: List[Tuple[Key, int]] = [(root, 0)]
        while stack:
            key, position = stack[-1]
            successors = [target for target in graph.structural_successors(key) if target in inside]
            if position < len(successors):
                stack[-1] = (key, position + 1)
                target = successors[position]
                if target in on_stack:
                    retreating.add((key, target))
                elif target not in visited:
                    visited.add(target)
                    on_stack.add(target)
                    stack.append((target, 0))
                continue
            stack.pop()
            on_stack.discard(key)
    return retreating


def analyse(
    cfg: ControlFlowGraph,
    dominators: Optional[DominatorTree] = None,
    options: Optional[StructuringOptions] = None,
) -> StructuralAnalysis:
    return StructuralAnalyzer(cfg, dominators, options).run()


def find_all(
    cfg: ControlFlowGraph, options: Optional[StructuringOptions] = None
) -> Tuple[Tuple[Primitive, ...], Optional[Residue]]:
    """Return the emitted primitives and the irreducible residue (if any)."""

    analysis = analyse(cfg, options=options)
    return analysis.primitives, analysis.residue


__all__ = ["StructuralAnalysis", "StructuralAnalyzer", "analyse", "find_all"]
