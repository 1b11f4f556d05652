"""Collapsible overlay over a CFG used during structural reduction."""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Sequence, Tuple

from ..cfg import ControlFlowGraph
from ..dominators import DominatorTree
from ..errors import InternalInvariantError
from ..graph import Edge, Node
from .model import Key, RegionId, ResidueEdge, key_label


class WorkingGraph:
    """Adjacency over working keys that never deletes arena entries.

    Every key is either an original :class:`Node` or the :class:`RegionId` of
    a collapsed primitive.  Each working edge remembers the original edges it
    stands for.  Collapsed regions are single-entry, so dominance between keys
    is answered by the original dominator tree through their header blocks.
    """

    def __init__(self, cfg: ControlFlowGraph, dominators: DominatorTree) -> None:
        self._dominators = dominators
        self.exit: Node = cfg.exit
        self.entry: Key = cfg.entry
        self._succ: Dict[Key, Dict[Key, Tuple[Edge, ...]]] = {}
        self._pred: Dict[Key, Dict[Key, None]] = {}
        self._header: Dict[Key, Node] = {}
        self._members: Dict[Key, FrozenSet[Node]] = {}
        self._next_serial = 0
        for node in cfg.all_nodes:
            self._succ[node] = {}
            self._pred[node] = {}
            self._header[node] = node
            self._members[node] = frozenset((node,))
        for edge in cfg.edges:
            existing = self._succ[edge.source].get(edge.target, tuple())
            self._succ[edge.source][edge.target] = existing + (edge,)
            self._pred[edge.target][edge.source] = None

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def keys(self) -> Tuple[Key, ...]:
        """Non-exit keys in reverse postorder of their header block."""

        keys = [key for key in self._succ if key != self.exit]
        keys.sort(key=self.rpo)
        return tuple(keys)

    def __contains__(self, key: object) -> bool:
        return key in self._succ

    def rpo(self, key: Key) -> int:
        return self._dominators.rpo_index(self._header[key])

    def header(self, key: Key) -> Node:
        return self._header[key]

    def members(self, key: Key) -> FrozenSet[Node]:
        return self._members[key]

    def dominates(self, a: Key, b: Key) -> bool:
        return self._dominators.dominates(self._header[a], self._header[b])

    def successors(self, key: Key) -> Tuple[Key, ...]:
        return tuple(self._succ[key])

    def structural_successors(self, key: Key) -> Tuple[Key, ...]:
        """Successors ignoring the virtual exit."""

        return tuple(target for target in self._succ[key] if target != self.exit)

    def predecessors(self, key: Key) -> Tuple[Key, ...]:
        return tuple(self._pred[key])

    def edges_between(self, source: Key, target: Key) -> Tuple[Edge, ...]:
        return self._succ[source].get(target, tuple())

    def has_self_edge(self, key: Key) -> bool:
        return key in self._succ[key]

    def only_predecessor_is(self, key: Key, source: Key) -> bool:
        return tuple(self._pred[key]) == (source,)

    def node_count(self) -> int:
        return len(self._succ) - 1

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self._succ.values())

    def residue_edges(self) -> Tuple[ResidueEdge, ...]:
        edges: List[ResidueEdge] = []
        for source in self.keys():
            for target, items in self._succ[source].items():
                if target == self.exit:
                    continue
                edges.append(ResidueEdge(source, target, items))
        return tuple(edges)

    # ------------------------------------------------------------------
    # rewriting
    # ------------------------------------------------------------------

    def collapse(self, keys: Sequence[Key], entry: Key, *, loop: bool = False) -> RegionId:
        """Replace ``keys`` by a fresh region node entered through ``entry``.

        Edges from a member back to ``entry`` turn into a self edge of the new
        node unless ``loop`` is set, in which case the primitive consumes them.
        """

        member_set = set(keys)
        if entry not in member_set:
            raise InternalInvariantError(f"region entry {key_label(entry)} is not a member")
        if self.exit in member_set:
            raise InternalInvariantError("virtual exit cannot be collapsed")
        if self.entry in member_set and self.entry != entry:
            raise InternalInvariantError(
                f"function entry {key_label(self.entry)} must head its region"
            )
        for key in keys:
            if key == entry:
                continue
            outside = [pred for pred in self._pred[key] if pred not in member_set]
            if outside:
                raise InternalInvariantError(
                    f"region member {key_label(key)} entered from "
                    f"{', '.join(key_label(pred) for pred in outside)}"
                )

        region = RegionId(self._next_serial)
        self._next_serial += 1

        outgoing: Dict[Key, Tuple[Edge, ...]] = {}
        self_edges: Tuple[Edge, ...] = tuple()
        for key in keys:
            for target, items in self._succ[key].items():
                if target in member_set:
                    if target == entry and not loop:
                        self_edges += items
                    continue
                outgoing[target] = outgoing.get(target, tuple()) + items

        incoming = [pred for pred in self._pred[entry] if pred not in member_set]
        for pred in incoming:
            self._succ[pred] = _rename(self._succ[pred], entry, region)
        for target in outgoing:
            renamed: Dict[Key, None] = {}
            for pred in self._pred[target]:
                renamed[region if pred in member_set else pred] = None
            self._pred[target] = renamed

        if self_edges:
            outgoing[region] = self_edges
        self._succ[region] = outgoing
        self._pred[region] = dict.fromkeys(incoming)
        if self_edges:
            self._pred[region][region] = None

        members: FrozenSet[Node] = frozenset()
        for key in keys:
            members = members | self._members[key]
            del self._succ[key]
            del self._pred[key]
        self._header[region] = self._header[entry]
        self._members[region] = members
        if self.entry in member_set:
            self.entry = region
        return region


def _rename(
    mapping: Dict[Key, Tuple[Edge, ...]], old: Key, new: Key
) -> Dict[Key, Tuple[Edge, ...]]:
    renamed: Dict[Key, Tuple[Edge, ...]] = {}
    for key, value in mapping.items():
        if key == old:
            key = new
        if key in renamed:
            renamed[key] = renamed[key] + value
        else:
            renamed[key] = value
    return renamed


__all__ = ["WorkingGraph"]
