"""Render group trees as indented structured pseudo-code."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from ..cfa.model import (
    DoWhileLoop,
    IfThen,
    IfThenElse,
    Key,
    NaturalLoop,
    SelfLoop,
    Sequence,
    Switch,
    WhileLoop,
    key_label,
)
from .model import BlockGroup, Group, IrreducibleGroup, PrimitiveGroup, SequenceGroup

INDENT = "    "


class GroupTextRenderer:
    """Render a :data:`Group` tree into a stable textual form."""

    def __init__(self, indent: str = INDENT) -> None:
        self.indent = indent

    def render(self, group: Group) -> str:
        lines = list(self._render(group, 0))
        return "\n".join(lines) + "\n"

    def write(self, group: Group, output_path: Path) -> None:
        output_path.write_text(self.render(group), "utf-8")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _line(self, depth: int, text: str) -> str:
        return f"{self.indent * depth}{text}"

    def _render(self, group: Group, depth: int) -> Iterable[str]:
        if isinstance(group, BlockGroup):
            yield self._line(depth, group.node.label)
        elif isinstance(group, SequenceGroup):
            for child in group.children:
                yield from self._render(child, depth)
        elif isinstance(group, IrreducibleGroup):
            entries = ", ".join(node.label for node in group.entries)
            back = ", ".join(edge.describe() for edge in group.region.back_edges)
            yield self._line(depth, f"irreducible entries=[{entries}] back_edges=[{back}] {{")
            for child in group.children:
                yield from self._render(child, depth + 1)
            yield self._line(depth, "}")
        elif isinstance(group, PrimitiveGroup):
            yield from self._render_primitive(group, depth)
        else:
            raise TypeError(f"unsupported group type: {type(group)!r}")

    def _condition(self, group: Group, key: Key, depth: int) -> Tuple[List[str], str]:
        """Lines computing a condition plus the name the condition is tested by."""

        if isinstance(group, BlockGroup):
            return [], group.node.label
        return list(self._render(group, depth)), key_label(key)

    def _render_primitive(self, group: PrimitiveGroup, depth: int) -> Iterable[str]:
        primitive = group.primitive
        slots: Dict[Key, Group] = group.slot_map()
        inner = depth + 1

        if isinstance(primitive, Sequence):
            for child in group.children:
                yield from self._render(child, depth)
        elif isinstance(primitive, IfThen):
            prefix, name = self._condition(slots[primitive.cond], primitive.cond, depth)
            yield from prefix
            bang = "!" if primitive.negated else ""
            yield self._line(depth, f"if {bang}{name} {{")
            yield from self._render(slots[primitive.then_body], inner)
            yield self._line(depth, "}")
            if primitive.absorbs_merge and primitive.merge is not None:
                yield from self._render(slots[primitive.merge], depth)
        elif isinstance(primitive, IfThenElse):
            prefix, name = self._condition(slots[primitive.cond], primitive.cond, depth)
            yield from prefix
            yield self._line(depth, f"if {name} {{")
            yield from self._render(slots[primitive.then_body], inner)
            yield self._line(depth, "} else {")
            yield from self._render(slots[primitive.else_body], inner)
            yield self._line(depth, "}")
            if primitive.absorbs_merge and primitive.merge is not None:
                yield from self._render(slots[primitive.merge], depth)
        elif isinstance(primitive, SelfLoop):
            header = slots[primitive.header]
            yield self._line(depth, "do {")
            yield from self._render(header, inner)
            yield self._line(depth, f"}} while {key_label(primitive.header)}")
        elif isinstance(primitive, WhileLoop):
            header = slots[primitive.header]
            if isinstance(header, BlockGroup):
                yield self._line(depth, f"while {header.node.label} {{")
            else:
                yield self._line(depth, "loop {")
                yield from self._render(header, inner)
                yield self._line(inner, f"if !{key_label(primitive.header)} break")
            yield from self._render(slots[primitive.body], inner)
            yield self._line(depth, "}")
        elif isinstance(primitive, DoWhileLoop):
            yield self._line(depth, "do {")
            yield from self._render(slots[primitive.header], inner)
            yield from self._render(slots[primitive.body], inner)
            yield self._line(depth, f"}} while {key_label(primitive.body)}")
        elif isinstance(primitive, NaturalLoop):
            exits = ", ".join(key_label(key) for key in primitive.exits) or "-"
            yield self._line(depth, f"loop {{  ; exits: {exits}")
            yield from self._render(slots[primitive.header], inner)
            for key in primitive.body:
                yield from self._render(slots[key], inner)
            yield self._line(depth, "}")
        elif isinstance(primitive, Switch):
            prefix, name = self._condition(slots[primitive.dispatch], primitive.dispatch, depth)
            yield from prefix
            yield self._line(depth, f"switch {name} {{")
            for arm in primitive.cases:
                labels = [f"case {value}" for value in arm.values]
                if arm.is_default:
                    labels.append("default")
                if not labels:
                    labels.append("indirect")
                yield self._line(inner, ", ".join(labels) + ":")
                if arm.body is None:
                    yield self._line(inner + 1, "break")
                else:
                    yield from self._render(slots[arm.body], inner + 1)
            yield self._line(depth, "}")
            if primitive.absorbs_merge and primitive.merge is not None:
                yield from self._render(slots[primitive.merge], depth)
        else:
            raise TypeError(f"unsupported primitive type: {type(primitive)!r}")


def render_group(group: Group) -> str:
    return GroupTextRenderer().render(group)


__all__ = ["GroupTextRenderer", "render_group", "INDENT"]
