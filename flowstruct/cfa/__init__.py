"""Control-flow analysis: dominator driven structural reduction."""

from .engine import StructuralAnalysis, StructuralAnalyzer, analyse, find_all
from .model import (
    DoWhileLoop,
    IfThen,
    IfThenElse,
    IrreducibleRegion,
    Key,
    NaturalLoop,
    Primitive,
    RegionId,
    Residue,
    ResidueEdge,
    SelfLoop,
    Sequence,
    Switch,
    SwitchArm,
    WhileLoop,
    primitive_kind,
    primitive_slots,
)
from .printer import PrimitiveTextRenderer, describe_primitive

__all__ = [
    "StructuralAnalysis",
    "StructuralAnalyzer",
    "analyse",
    "find_all",
    "RegionId",
    "Key",
    "Primitive",
    "Sequence",
    "IfThen",
    "IfThenElse",
    "SelfLoop",
    "WhileLoop",
    "DoWhileLoop",
    "NaturalLoop",
    "Switch",
    "SwitchArm",
    "Residue",
    "ResidueEdge",
    "IrreducibleRegion",
    "primitive_kind",
    "primitive_slots",
    "PrimitiveTextRenderer",
    "describe_primitive",
]
