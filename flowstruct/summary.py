"""Utility helpers that summarise the shape of a control-flow graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .cfg import ControlFlowGraph
from .dominators import DominatorTree
from .graph import Node


def _format_labels(values: Sequence[str], limit: int = 6) -> str:
    if not values:
        return ""
    entries = list(values)[:limit]
    if len(values) > limit:
        entries.append("…")
    return ", ".join(entries)


def _label_lines(values: Sequence[str], limit: int = 6) -> List[str]:
    lines: List[str] = []
    for index, value in enumerate(values):
        if index >= limit:
            remaining = len(values) - limit
            if remaining > 0:
                lines.append(f"- ... ({remaining} additional blocks omitted)")
            break
        lines.append(f"- {value}")
    return lines


@dataclass
class BlockFlowInfo:
    """Detailed description of how a single block connects to others."""

    label: str
    index: int
    successors: List[str]
    predecessors: List[str]
    is_loop_header: bool = False
    is_entry: bool = False
    is_branch: bool = False
    is_merge: bool = False
    is_exit: bool = False
    critical_successors: List[str] = field(default_factory=list)

    def describe(self) -> str:
        succ = ", ".join(self.successors) or "<none>"
        flags: List[str] = []
        if self.is_loop_header:
            flags.append("loop")
        if self.is_entry:
            flags.append("entry")
        if self.is_branch:
            flags.append("branch")
        if self.is_merge:
            flags.append("merge")
        if self.is_exit:
            flags.append("exit")
        flag_text = f" ({', '.join(flags)})" if flags else ""
        critical = ""
        if self.critical_successors:
            critical = f" critical=[{', '.join(self.critical_successors)}]"
        return f"{self.label} -> [{succ}] pred={len(self.predecessors)}{flag_text}{critical}"

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "index": self.index,
            "successors": list(self.successors),
            "predecessors": list(self.predecessors),
            "is_loop_header": self.is_loop_header,
            "is_entry": self.is_entry,
            "is_branch": self.is_branch,
            "is_merge": self.is_merge,
            "is_exit": self.is_exit,
            "critical_successors": list(self.critical_successors),
        }


@dataclass
class ControlFlowMetrics:
    """Aggregated metrics describing the control-flow graph of a function."""

    function: str
    block_count: int
    edge_count: int
    entry: str
    loop_headers: List[str]
    back_edges: List[Tuple[str, str]]
    exit_blocks: List[str]
    max_successors: int
    max_predecessors: int
    branch_blocks: List[str] = field(default_factory=list)
    merge_blocks: List[str] = field(default_factory=list)
    critical_edges: List[Tuple[str, str]] = field(default_factory=list)
    cyclomatic_complexity: int = 0
    average_successors: float = 0.0
    block_details: Dict[str, BlockFlowInfo] = field(default_factory=dict)

    def summary_lines(self) -> List[str]:
        lines = [f"control flow summary for {self.function}:"]
        lines.append(f"- blocks: {self.block_count}")
        lines.append(f"- edges: {self.edge_count}")
        lines.append(f"- entry: {self.entry}")
        lines.append(f"- loop headers: {len(self.loop_headers)}")
        lines.append(f"- back edges: {len(self.back_edges)}")
        lines.append(f"- exits: {len(self.exit_blocks)}")
        lines.append(f"- branch points: {len(self.branch_blocks)}")
        lines.append(f"- merge points: {len(self.merge_blocks)}")
        lines.append(f"- critical edges: {len(self.critical_edges)}")
        lines.append(f"- max successors: {self.max_successors}")
        lines.append(f"- max predecessors: {self.max_predecessors}")
        if self.cyclomatic_complexity:
            lines.append(f"- cyclomatic complexity: {self.cyclomatic_complexity}")
        if self.average_successors:
            lines.append(f"- average successors per block: {self.average_successors:.2f}")
        if self.loop_headers:
            lines.append(f"- loop header blocks: {_format_labels(self.loop_headers)}")
        if self.exit_blocks:
            lines.append(f"- exit blocks: {_format_labels(self.exit_blocks)}")
        return lines

    def to_dict(self) -> dict:
        return {
            "function": self.function,
            "block_count": self.block_count,
            "edge_count": self.edge_count,
            "entry": self.entry,
            "loop_headers": list(self.loop_headers),
            "back_edges": [{"from": src, "to": dst} for src, dst in self.back_edges],
            "exit_blocks": list(self.exit_blocks),
            "max_successors": self.max_successors,
            "max_predecessors": self.max_predecessors,
            "branch_blocks": list(self.branch_blocks),
            "merge_blocks": list(self.merge_blocks),
            "critical_edges": [{"from": src, "to": dst} for src, dst in self.critical_edges],
            "cyclomatic_complexity": self.cyclomatic_complexity,
            "average_successors": self.average_successors,
            "blocks": {label: info.to_dict() for label, info in self.block_details.items()},
        }

    def block_lines(self, limit: int = 8) -> List[str]:
        details = list(self.block_details.values())
        return _label_lines([info.describe() for info in details], limit=limit)

    def branch_lines(self, limit: int = 6) -> List[str]:
        return _label_lines(self.branch_blocks, limit=limit)

    def merge_lines(self, limit: int = 6) -> List[str]:
        return _label_lines(self.merge_blocks, limit=limit)

    def critical_edge_lines(self, limit: int = 6) -> List[str]:
        return _label_lines([f"{src} -> {dst}" for src, dst in self.critical_edges], limit=limit)


def summarise_cfg(
    cfg: ControlFlowGraph, dominators: Optional[DominatorTree] = None
) -> ControlFlowMetrics:
    """Collect block/edge statistics for ``cfg``; the virtual exit is not a block."""

    dominators = dominators or DominatorTree.compute(cfg)
    successors: Dict[Node, Tuple[Node, ...]] = {
        node: tuple(target for target in cfg.successor_nodes(node) if target != cfg.exit)
        for node in cfg.nodes
    }
    predecessors: Dict[Node, Tuple[Node, ...]] = {
        node: cfg.predecessor_nodes(node) for node in cfg.nodes
    }

    back_edges: List[Tuple[Node, Node]] = []
    for edge in cfg.edges:
        if edge.target == cfg.exit:
            continue
        pair = (edge.source, edge.target)
        if dominators.is_back_edge(edge) and pair not in back_edges:
            back_edges.append(pair)
    loop_headers = sorted({target for _source, target in back_edges})
    exit_blocks = [node for node in cfg.nodes if cfg.exit in cfg.successor_nodes(node)]
    branch_blocks = [node for node in cfg.nodes if len(successors[node]) > 1]
    merge_blocks = [node for node in cfg.nodes if len(predecessors[node]) > 1]
    branch_set = set(branch_blocks)
    merge_set = set(merge_blocks)
    loop_set = set(loop_headers)
    exit_set = set(exit_blocks)

    critical_edges: List[Tuple[str, str]] = []
    block_details: Dict[str, BlockFlowInfo] = {}
    for node in cfg.nodes:
        critical = [
            target.label
            for target in successors[node]
            if node in branch_set and target in merge_set
        ]
        critical_edges.extend((node.label, label) for label in critical)
        block_details[node.label] = BlockFlowInfo(
            label=node.label,
            index=node.index,
            successors=[target.label for target in successors[node]],
            predecessors=[source.label for source in predecessors[node]],
            is_loop_header=node in loop_set,
            is_entry=node == cfg.entry,
            is_branch=node in branch_set,
            is_merge=node in merge_set,
            is_exit=node in exit_set,
            critical_successors=critical,
        )

    # the virtual exit counts as a node so a single returning block scores 1
    edge_count = len({(edge.source, edge.target) for edge in cfg.edges})
    node_count = len(cfg.nodes) + (1 if cfg.predecessors(cfg.exit) else 0)
    cyclomatic = edge_count - node_count + 2 if cfg.nodes else 0
    average = float(sum(len(items) for items in successors.values())) / len(cfg.nodes)

    return ControlFlowMetrics(
        function=cfg.name,
        block_count=len(cfg.nodes),
        edge_count=len(cfg.edges),
        entry=cfg.entry.label,
        loop_headers=[node.label for node in loop_headers],
        back_edges=[(source.label, target.label) for source, target in back_edges],
        exit_blocks=[node.label for node in exit_blocks],
        max_successors=max((len(items) for items in successors.values()), default=0),
        max_predecessors=max((len(items) for items in predecessors.values()), default=0),
        branch_blocks=[node.label for node in branch_blocks],
        merge_blocks=[node.label for node in merge_blocks],
        critical_edges=critical_edges,
        cyclomatic_complexity=cyclomatic,
        average_successors=average,
        block_details=block_details,
    )


def render_control_flow_summary(metrics: ControlFlowMetrics) -> List[str]:
    lines = metrics.summary_lines()
    block_lines = metrics.block_lines()
    if block_lines:
        lines.append("block edges:")
        lines.extend(block_lines)
    branch_lines = metrics.branch_lines()
    if branch_lines:
        lines.append("branch points:")
        lines.extend(branch_lines)
    merge_lines = metrics.merge_lines()
    if merge_lines:
        lines.append("merge points:")
        lines.extend(merge_lines)
    critical_lines = metrics.critical_edge_lines()
    if critical_lines:
        lines.append("critical edges:")
        lines.extend(critical_lines)
    return lines


__all__ = [
    "BlockFlowInfo",
    "ControlFlowMetrics",
    "summarise_cfg",
    "render_control_flow_summary",
]
