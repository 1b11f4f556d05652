"""Assemble emitted primitives into one properly nested group tree."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, TYPE_CHECKING

from ..cfa.model import Key, Primitive, Residue, key_label, primitive_kind, primitive_slots
from ..errors import IncompleteCoverageError, OverlapConflictError
from ..graph import Node
from .model import BlockGroup, Group, IrreducibleGroup, PrimitiveGroup, SequenceGroup

if TYPE_CHECKING:
    from ..cfa.engine import StructuralAnalysis

logger = logging.getLogger(__name__)


class CFRGroups:
    """Containment assembly over primitives listed inner before outer."""

    def __init__(
        self,
        primitives: Sequence[Primitive],
        residue: Optional[Residue] = None,
        nodes: Optional[Iterable[Node]] = None,
    ) -> None:
        self.primitives = tuple(primitives)
        self.residue = residue
        self.nodes = tuple(nodes) if nodes is not None else None

    @classmethod
    def new(
        cls,
        primitives: Sequence[Primitive],
        residue: Optional[Residue] = None,
        nodes: Optional[Iterable[Node]] = None,
    ) -> Group:
        return cls(primitives, residue, nodes).build()

    def build(self) -> Group:
        universe = self._universe()
        if not universe:
            raise IncompleteCoverageError("no blocks to group")

        groups: Dict[Key, Group] = {node: BlockGroup(node) for node in universe}
        covers: Dict[Key, FrozenSet[Node]] = {node: frozenset((node,)) for node in universe}
        owner: Dict[Node, Key] = {node: node for node in universe}

        for primitive in self.primitives:
            self._nest(primitive, groups, covers, owner)

        tops: List[Group] = []
        if self.residue is not None:
            tops.append(self._wrap_residue(self.residue, groups))
        tops.extend(groups.values())
        tops.sort(key=lambda group: group.entry.index)
        root: Group = tops[0] if len(tops) == 1 else SequenceGroup(tuple(tops))
        self._validate_coverage(root, universe)
        return root

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _universe(self) -> List[Node]:
        seen: Dict[Node, None] = {}
        if self.nodes is not None:
            seen.update(dict.fromkeys(self.nodes))
        for primitive in self.primitives:
            for node in sorted(primitive.members):
                seen.setdefault(node, None)
        return list(seen)

    def _nest(
        self,
        primitive: Primitive,
        groups: Dict[Key, Group],
        covers: Dict[Key, FrozenSet[Node]],
        owner: Dict[Node, Key],
    ) -> None:
        region = primitive.region
        if region in covers:
            raise OverlapConflictError(f"region {region} emitted twice")
        tops = list(dict.fromkeys(owner[node] for node in sorted(primitive.members)))
        for top in tops:
            if not covers[top] <= primitive.members:
                raise OverlapConflictError(
                    f"{primitive_kind(primitive)} {region} partially overlaps {key_label(top)}"
                )
        slots = primitive_slots(primitive)
        if len(set(slots)) != len(slots) or set(slots) != set(tops):
            raise OverlapConflictError(
                f"{primitive_kind(primitive)} {region} slots [{', '.join(key_label(k) for k in slots)}] "
                f"disagree with nested items [{', '.join(key_label(k) for k in tops)}]"
            )
        children = tuple(groups.pop(slot) for slot in slots)
        groups[region] = PrimitiveGroup(primitive, children)
        covers[region] = primitive.members
        for node in primitive.members:
            owner[node] = region

    def _wrap_residue(self, residue: Residue, groups: Dict[Key, Group]) -> Group:
        """Wrap every residue node in one marker, cyclic components nested inside."""

        missing = [key for key in residue.region.nodes if key not in groups]
        if missing:
            raise OverlapConflictError(
                f"residue nodes [{', '.join(key_label(k) for k in missing)}] are not top-level items"
            )
        heads = {key: groups[key].entry for key in residue.region.nodes}
        nested: Dict[Key, Group] = {}
        for region in residue.regions:
            children = tuple(groups.pop(key) for key in region.nodes)
            entries = tuple(sorted(heads[key] for key in region.entries))
            group = IrreducibleGroup(region, children, entries)
            for key in region.nodes:
                nested[key] = group
            logger.debug("irreducible cycle over %d block(s)", len(region.members))

        items: Dict[int, Group] = {}
        for key in residue.region.nodes:
            item = nested[key] if key in nested else groups.pop(key)
            items.setdefault(id(item), item)
        children = tuple(sorted(items.values(), key=lambda group: group.entry.index))
        entries = tuple(sorted(heads[key] for key in residue.region.entries))
        logger.debug("irreducible residue over %d block(s)", len(residue.region.members))
        return IrreducibleGroup(residue.region, children, entries)

    def _validate_coverage(self, root: Group, universe: Sequence[Node]) -> None:
        counts = Counter(root.leaves())
        expected = set(self.nodes) if self.nodes is not None else set(universe)
        duplicates = sorted(node for node, count in counts.items() if count > 1)
        missing = sorted(expected - set(counts))
        extra = sorted(set(counts) - expected)
        problems: List[str] = []
        if duplicates:
            problems.append("duplicated " + ", ".join(node.label for node in duplicates))
        if missing:
            problems.append("missing " + ", ".join(node.label for node in missing))
        if extra:
            problems.append("unexpected " + ", ".join(node.label for node in extra))
        if problems:
            raise IncompleteCoverageError("group tree coverage: " + "; ".join(problems))


def build_groups(analysis: "StructuralAnalysis") -> Group:
    """Assemble the group tree for a finished structural analysis."""

    try:
        return CFRGroups.new(analysis.primitives, analysis.residue, analysis.nodes)
    except (OverlapConflictError, IncompleteCoverageError) as exc:
        exc.function = analysis.cfg.name
        raise


__all__ = ["CFRGroups", "build_groups"]
