"""Public package exports for the control-flow structuring library."""

from .cfa import PrimitiveTextRenderer, StructuralAnalysis, StructuralAnalyzer, find_all
from .cfg import ControlFlowGraph, build_cfg
from .cfr import CFRGroups, GroupTextRenderer, build_groups
from .dominators import DominatorTree
from .errors import (
    AmbiguousMergeError,
    IncompleteCoverageError,
    InternalInvariantError,
    MalformedFunctionError,
    OverlapConflictError,
    StructuringError,
    UnreachableEntryError,
    UnsupportedTerminatorError,
)
from .function import (
    BasicBlock,
    Branch,
    CaseTarget,
    CondBranch,
    Function,
    IndirectBranch,
    Return,
    SwitchBranch,
    Unreachable,
)
from .graph import Edge, EdgeKind, Node
from .options import StructuringOptions
from .pipeline import StructuringPipeline, analyse_function, analyse_module
from .summary import summarise_cfg

__all__ = [
    "BasicBlock",
    "Branch",
    "CaseTarget",
    "CondBranch",
    "Function",
    "IndirectBranch",
    "Return",
    "SwitchBranch",
    "Unreachable",
    "Node",
    "Edge",
    "EdgeKind",
    "ControlFlowGraph",
    "build_cfg",
    "DominatorTree",
    "StructuralAnalysis",
    "StructuralAnalyzer",
    "find_all",
    "PrimitiveTextRenderer",
    "CFRGroups",
    "build_groups",
    "GroupTextRenderer",
    "StructuringOptions",
    "StructuringPipeline",
    "analyse_function",
    "analyse_module",
    "summarise_cfg",
    "StructuringError",
    "MalformedFunctionError",
    "UnsupportedTerminatorError",
    "UnreachableEntryError",
    "InternalInvariantError",
    "AmbiguousMergeError",
    "OverlapConflictError",
    "IncompleteCoverageError",
]
