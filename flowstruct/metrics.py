"""Metrics helpers for structuring whole modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

from .cfa.model import Primitive, primitive_kind
from .cfr.model import Group


@dataclass(frozen=True)
class StructuringMetrics:
    """Immutable snapshot of the counts gathered for a module."""

    functions: int
    reducible_functions: int
    irreducible_functions: int
    failed_functions: int
    cfg_nodes: int
    cfg_edges: int
    primitives: Mapping[str, int]
    residue_nodes: int
    irreducible_regions: int
    max_nesting_depth: int
    reducible_ratio: float
    average_blocks: float

    def describe(self) -> str:
        kinds = ", ".join(f"{kind}={count}" for kind, count in sorted(self.primitives.items()))
        return (
            f"functions={self.functions} reducible={self.reducible_functions} "
            f"irreducible={self.irreducible_functions} failed={self.failed_functions} "
            f"blocks={self.cfg_nodes} edges={self.cfg_edges} "
            f"reducible_ratio={self.reducible_ratio:.2f} depth={self.max_nesting_depth}"
            + (f" primitives[{kinds}]" if kinds else "")
        )

    def to_dict(self) -> dict:
        return {
            "functions": self.functions,
            "reducible_functions": self.reducible_functions,
            "irreducible_functions": self.irreducible_functions,
            "failed_functions": self.failed_functions,
            "cfg_nodes": self.cfg_nodes,
            "cfg_edges": self.cfg_edges,
            "primitives": dict(self.primitives),
            "residue_nodes": self.residue_nodes,
            "irreducible_regions": self.irreducible_regions,
            "max_nesting_depth": self.max_nesting_depth,
            "reducible_ratio": self.reducible_ratio,
            "average_blocks": self.average_blocks,
        }


@dataclass
class MetricCounter:
    """Accumulate raw counts while structuring functions."""

    functions: int = 0
    reducible_functions: int = 0
    irreducible_functions: int = 0
    failed_functions: int = 0
    cfg_nodes: int = 0
    cfg_edges: int = 0
    residue_nodes: int = 0
    irreducible_regions: int = 0
    max_nesting_depth: int = 0
    primitives: Dict[str, int] = field(default_factory=dict)

    def observe_cfg(self, nodes: int, edges: int) -> None:
        self.functions += 1
        self.cfg_nodes += nodes
        self.cfg_edges += edges

    def observe_primitives(self, primitives: Iterable[Primitive]) -> None:
        for primitive in primitives:
            kind = primitive_kind(primitive)
            self.primitives[kind] = self.primitives.get(kind, 0) + 1

    def observe_result(self, root: Group, residue_nodes: int, regions: int) -> None:
        if residue_nodes:
            self.irreducible_functions += 1
        else:
            self.reducible_functions += 1
        self.residue_nodes += residue_nodes
        self.irreducible_regions += regions
        depth = root.depth()
        if depth > self.max_nesting_depth:
            self.max_nesting_depth = depth

    def observe_failure(self) -> None:
        self.functions += 1
        self.failed_functions += 1

    def merge(self, other: "MetricCounter") -> None:
        self.functions += other.functions
        self.reducible_functions += other.reducible_functions
        self.irreducible_functions += other.irreducible_functions
        self.failed_functions += other.failed_functions
        self.cfg_nodes += other.cfg_nodes
        self.cfg_edges += other.cfg_edges
        self.residue_nodes += other.residue_nodes
        self.irreducible_regions += other.irreducible_regions
        self.max_nesting_depth = max(self.max_nesting_depth, other.max_nesting_depth)
        for kind, count in other.primitives.items():
            self.primitives[kind] = self.primitives.get(kind, 0) + count

    def to_metrics(self) -> StructuringMetrics:
        analysed = self.reducible_functions + self.irreducible_functions
        reducible_ratio = self.reducible_functions / analysed if analysed else 0.0
        average_blocks = self.cfg_nodes / analysed if analysed else 0.0
        return StructuringMetrics(
            functions=self.functions,
            reducible_functions=self.reducible_functions,
            irreducible_functions=self.irreducible_functions,
            failed_functions=self.failed_functions,
            cfg_nodes=self.cfg_nodes,
            cfg_edges=self.cfg_edges,
            primitives=dict(self.primitives),
            residue_nodes=self.residue_nodes,
            irreducible_regions=self.irreducible_regions,
            max_nesting_depth=self.max_nesting_depth,
            reducible_ratio=reducible_ratio,
            average_blocks=average_blocks,
        )


__all__ = ["StructuringMetrics", "MetricCounter"]
