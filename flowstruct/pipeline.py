"""Per-function and per-module orchestration of the structuring stages."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .cfa.engine import StructuralAnalysis, StructuralAnalyzer
from .cfa.printer import PrimitiveTextRenderer
from .cfg import ControlFlowGraph
from .cfr.groups import build_groups
from .cfr.model import Group
from .cfr.printer import GroupTextRenderer
from .dominators import DominatorTree
from .errors import InternalInvariantError, MalformedFunctionError, StructuringError
from .function import Function
from .metrics import MetricCounter, StructuringMetrics
from .options import DEFAULT_OPTIONS, StructuringOptions
from .summary import ControlFlowMetrics, summarise_cfg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionStructure:
    """Every artefact produced while structuring one function."""

    name: str
    cfg: ControlFlowGraph
    dominators: DominatorTree
    analysis: StructuralAnalysis
    root: Group
    summary: ControlFlowMetrics

    @property
    def reducible(self) -> bool:
        return self.analysis.reducible

    def render(self) -> str:
        lines: List[str] = [f"; function {self.name}"]
        lines.extend(f"; {line}" for line in self.summary.summary_lines())
        lines.append(self.cfg.to_text().rstrip("\n"))
        lines.append(
            PrimitiveTextRenderer()
            .render(self.analysis.primitives, self.analysis.residue)
            .rstrip("\n")
        )
        lines.append(GroupTextRenderer().render(self.root).rstrip("\n"))
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class FunctionFailure:
    """Isolated failure of one function; ``internal`` marks analyser defects."""

    name: str
    error: StructuringError
    internal: bool

    def describe(self) -> str:
        category = "internal error" if self.internal else "malformed input"
        return f"{self.name}: {category}: {self.error}"


FunctionOutcome = Union[FunctionStructure, FunctionFailure]


@dataclass(frozen=True)
class ModuleStructure:
    """Results for every function of a module, in input order."""

    functions: Tuple[FunctionStructure, ...]
    failures: Tuple[FunctionFailure, ...]
    metrics: StructuringMetrics

    def get(self, name: str) -> Optional[FunctionStructure]:
        for function in self.functions:
            if function.name == name:
                return function
        return None

    def render(self) -> str:
        lines: List[str] = ["; structuring metrics: " + self.metrics.describe()]
        for failure in self.failures:
            lines.append("; failed " + failure.describe())
        text = "\n".join(lines) + "\n"
        for function in self.functions:
            text += "\n" + function.render()
        return text

    def write(self, output_path: Path) -> None:
        output_path.write_text(self.render(), "utf-8")


class StructuringPipeline:
    """Run CFG construction, reduction and recovery for functions."""

    def __init__(self, options: Optional[StructuringOptions] = None) -> None:
        self.options = options or DEFAULT_OPTIONS

    def analyse_function(self, function: Function) -> FunctionStructure:
        cfg = ControlFlowGraph.new(function)
        dominators = DominatorTree.compute(cfg)
        analysis = StructuralAnalyzer(cfg, dominators, self.options).run()
        root = build_groups(analysis)
        summary = summarise_cfg(cfg, dominators)
        return FunctionStructure(
            name=function.name,
            cfg=cfg,
            dominators=dominators,
            analysis=analysis,
            root=root,
            summary=summary,
        )

    def analyse_module(
        self,
        functions: Iterable[Function],
        *,
        strict: bool = False,
        workers: Optional[int] = None,
    ) -> ModuleStructure:
        """Structure ``functions`` independently of one another.

        Failures are collected per function unless ``strict`` is set, in which
        case the first one is re-raised.
        """

        items = list(functions)
        if workers and workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                outcomes = list(executor.map(lambda item: self._attempt(item, strict), items))
        else:
            outcomes = [self._attempt(item, strict) for item in items]

        counter = MetricCounter()
        structures: List[FunctionStructure] = []
        failures: List[FunctionFailure] = []
        for outcome in outcomes:
            if isinstance(outcome, FunctionFailure):
                counter.observe_failure()
                failures.append(outcome)
                continue
            counter.observe_cfg(len(outcome.cfg.nodes), len(outcome.cfg.edges))
            counter.observe_primitives(outcome.analysis.primitives)
            residue = outcome.analysis.residue
            counter.observe_result(
                outcome.root,
                len(residue.nodes) if residue is not None else 0,
                len(residue.regions) if residue is not None else 0,
            )
            structures.append(outcome)
        return ModuleStructure(
            functions=tuple(structures),
            failures=tuple(failures),
            metrics=counter.to_metrics(),
        )

    def _attempt(self, function: Function, strict: bool) -> FunctionOutcome:
        try:
            return self.analyse_function(function)
        except MalformedFunctionError as exc:
            if strict:
                raise
            logger.warning("skipping malformed function %s: %s", function.name, exc)
            return FunctionFailure(function.name, exc, internal=False)
        except InternalInvariantError as exc:
            if strict:
                raise
            logger.error("structuring %s failed: %s", function.name, exc)
            return FunctionFailure(function.name, exc, internal=True)


def analyse_function(
    function: Function, options: Optional[StructuringOptions] = None
) -> FunctionStructure:
    return StructuringPipeline(options).analyse_function(function)


def analyse_module(
    functions: Sequence[Function],
    options: Optional[StructuringOptions] = None,
    *,
    strict: bool = False,
    workers: Optional[int] = None,
) -> ModuleStructure:
    return StructuringPipeline(options).analyse_module(functions, strict=strict, workers=workers)


__all__ = [
    "FunctionStructure",
    "FunctionFailure",
    "ModuleStructure",
    "StructuringPipeline",
    "analyse_function",
    "analyse_module",
]
