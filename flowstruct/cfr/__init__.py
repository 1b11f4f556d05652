"""Control-flow recovery: nesting primitives into a single group tree."""

from .groups import CFRGroups, build_groups
from .model import (
    BlockGroup,
    Group,
    IrreducibleGroup,
    PrimitiveGroup,
    SequenceGroup,
    contains_irreducible,
    iter_groups,
)
from .printer import GroupTextRenderer, render_group

__all__ = [
    "CFRGroups",
    "build_groups",
    "Group",
    "BlockGroup",
    "PrimitiveGroup",
    "SequenceGroup",
    "IrreducibleGroup",
    "iter_groups",
    "contains_irreducible",
    "GroupTextRenderer",
    "render_group",
]
