"""Primitive records emitted by the structural reduction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple, Union

from ..graph import Edge, Node


@dataclass(frozen=True, order=True)
class RegionId:
    """Synthetic working-graph node standing for a collapsed primitive."""

    serial: int

    def __str__(self) -> str:
        return f"R{self.serial}"


Key = Union[Node, RegionId]


def key_label(key: Key) -> str:
    return key.label if isinstance(key, Node) else str(key)


# ----------------------------------------------------------------------
# primitives
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class _Region:
    region: RegionId
    entry: Node
    members: FrozenSet[Node]
    follow: Optional[Key]


@dataclass(frozen=True)
class Sequence(_Region):
    """Straight-line chain of working nodes."""

    nodes: Tuple[Key, ...]


@dataclass(frozen=True)
class IfThen(_Region):
    """One-armed conditional.

    ``negated`` marks a then-body reached through the false edge; a ``None``
    merge means the body leaves the function and the condition falls through
    to ``follow``.
    """

    cond: Key
    then_body: Key
    merge: Optional[Key]
    absorbs_merge: bool = False
    negated: bool = False


@dataclass(frozen=True)
class IfThenElse(_Region):
    """Two-armed conditional whose arms meet at ``merge`` (or both leave)."""

    cond: Key
    then_body: Key
    else_body: Key
    merge: Optional[Key]
    absorbs_merge: bool = False


@dataclass(frozen=True)
class SelfLoop(_Region):
    header: Key


@dataclass(frozen=True)
class WhileLoop(_Region):
    """Pre-tested loop: ``header`` tests, ``body`` jumps back."""

    header: Key
    body: Key
    exit: Key


@dataclass(frozen=True)
class DoWhileLoop(_Region):
    """Post-tested loop: ``body`` is the latch that tests and jumps back."""

    header: Key
    body: Key
    exit: Key


@dataclass(frozen=True)
class NaturalLoop(_Region):
    header: Key
    body: Tuple[Key, ...]
    exits: Tuple[Key, ...]
    latches: Tuple[Key, ...] = tuple()


@dataclass(frozen=True)
class SwitchArm:
    """Case values sharing one destination; ``body`` is ``None`` for an empty case.

    Arms of an indirect branch carry neither values nor the default flag.
    """

    values: Tuple[int, ...]
    body: Optional[Key]
    is_default: bool = False

    def describe(self) -> str:
        labels = [str(value) for value in self.values]
        if self.is_default:
            labels.append("default")
        if not labels:
            labels.append("indirect")
        target = key_label(self.body) if self.body is not None else "<merge>"
        return f"{'/'.join(labels)}:{target}"


@dataclass(frozen=True)
class Switch(_Region):
    dispatch: Key
    cases: Tuple[SwitchArm, ...]
    default: Optional[Key]
    merge: Optional[Key]
    absorbs_merge: bool = False


Primitive = Union[
    Sequence,
    IfThen,
    IfThenElse,
    SelfLoop,
    WhileLoop,
    DoWhileLoop,
    NaturalLoop,
    Switch,
]

PRIMITIVE_TYPES = (
    Sequence,
    IfThen,
    IfThenElse,
    SelfLoop,
    WhileLoop,
    DoWhileLoop,
    NaturalLoop,
    Switch,
)


def primitive_kind(primitive: Primitive) -> str:
    if not isinstance(primitive, PRIMITIVE_TYPES):
        raise TypeError(f"unsupported primitive type: {type(primitive)!r}")
    return type(primitive).__name__


def primitive_slots(primitive: Primitive) -> Tuple[Key, ...]:
    """Return the working nodes a primitive consumed, in child order."""

    if isinstance(primitive, Sequence):
        return primitive.nodes
    if isinstance(primitive, IfThen):
        slots: Tuple[Key, ...] = (primitive.cond, primitive.then_body)
        if primitive.absorbs_merge and primitive.merge is not None:
            slots += (primitive.merge,)
        return slots
    if isinstance(primitive, IfThenElse):
        slots = (primitive.cond, primitive.then_body, primitive.else_body)
        if primitive.absorbs_merge and primitive.merge is not None:
            slots += (primitive.merge,)
        return slots
    if isinstance(primitive, SelfLoop):
        return (primitive.header,)
    if isinstance(primitive, (WhileLoop, DoWhileLoop)):
        return (primitive.header, primitive.body)
    if isinstance(primitive, NaturalLoop):
        return (primitive.header,) + primitive.body
    if isinstance(primitive, Switch):
        slots = (primitive.dispatch,)
        for arm in primitive.cases:
            if arm.body is not None and arm.body not in slots:
                slots += (arm.body,)
        if primitive.absorbs_merge and primitive.merge is not None:
            slots += (primitive.merge,)
        return slots
    raise TypeError(f"unsupported primitive type: {type(primitive)!r}")


# ----------------------------------------------------------------------
# residue
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class ResidueEdge:
    """Working-graph edge left over after reduction with the edges it carries."""

    source: Key
    target: Key
    edges: Tuple[Edge, ...]

    def describe(self) -> str:
        return f"{key_label(self.source)}->{key_label(self.target)}"


@dataclass(frozen=True)
class IrreducibleRegion:
    """Residue nodes no primitive could consume, with their entries and back edges."""

    nodes: Tuple[Key, ...]
    members: FrozenSet[Node]
    entries: Tuple[Key, ...]
    back_edges: Tuple[ResidueEdge, ...]
    edges: Tuple[ResidueEdge, ...]

    def describe(self) -> str:
        nodes = ", ".join(key_label(key) for key in self.nodes)
        entries = ", ".join(key_label(key) for key in self.entries)
        back = ", ".join(edge.describe() for edge in self.back_edges)
        return f"irreducible [{nodes}] entries=[{entries}] back_edges=[{back}]"


@dataclass(frozen=True)
class Residue:
    """Working graph left when reduction stops above a single node.

    ``edges`` only lists edges between residue nodes; transfers into the
    virtual exit are dropped.  ``region`` spans every residue node and is
    entered through ``entry``; ``regions`` are its strongly connected
    components of more than one node.
    """

    entry: Key
    nodes: Tuple[Key, ...]
    edges: Tuple[ResidueEdge, ...]
    region: IrreducibleRegion
    regions: Tuple[IrreducibleRegion, ...]

    def describe(self) -> str:
        nodes = ", ".join(key_label(key) for key in self.nodes)
        edges = ", ".join(edge.describe() for edge in self.edges)
        return f"residue entry={key_label(self.entry)} nodes=[{nodes}] edges=[{edges}]"


__all__ = [
    "RegionId",
    "Key",
    "key_label",
    "Sequence",
    "IfThen",
    "IfThenElse",
    "SelfLoop",
    "WhileLoop",
    "DoWhileLoop",
    "NaturalLoop",
    "SwitchArm",
    "Switch",
    "Primitive",
    "PRIMITIVE_TYPES",
    "primitive_kind",
    "primitive_slots",
    "ResidueEdge",
    "IrreducibleRegion",
    "Residue",
]
