"""Render primitive sequences and residue into a stable textual form."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence as SequenceType

from .model import (
    DoWhileLoop,
    IfThen,
    IfThenElse,
    Key,
    NaturalLoop,
    Primitive,
    Residue,
    SelfLoop,
    Sequence,
    Switch,
    WhileLoop,
    key_label,
)


def _keys(keys: Iterable[Key]) -> str:
    return ", ".join(key_label(key) for key in keys)


def _merge(merge: Optional[Key], absorbed: bool) -> str:
    if merge is None:
        return "-"
    return key_label(merge) + ("*" if absorbed else "")


def describe_primitive(primitive: Primitive) -> str:
    """One-line description of ``primitive``; a ``*`` marks an absorbed merge."""

    if isinstance(primitive, Sequence):
        body = f"Sequence [{_keys(primitive.nodes)}]"
    elif isinstance(primitive, IfThen):
        cond = ("!" if primitive.negated else "") + key_label(primitive.cond)
        body = (
            f"IfThen cond={cond} then={key_label(primitive.then_body)} "
            f"merge={_merge(primitive.merge, primitive.absorbs_merge)}"
        )
    elif isinstance(primitive, IfThenElse):
        body = (
            f"IfThenElse cond={key_label(primitive.cond)} "
            f"then={key_label(primitive.then_body)} else={key_label(primitive.else_body)} "
            f"merge={_merge(primitive.merge, primitive.absorbs_merge)}"
        )
    elif isinstance(primitive, SelfLoop):
        body = f"SelfLoop header={key_label(primitive.header)}"
    elif isinstance(primitive, WhileLoop):
        body = (
            f"WhileLoop header={key_label(primitive.header)} "
            f"body={key_label(primitive.body)} exit={key_label(primitive.exit)}"
        )
    elif isinstance(primitive, DoWhileLoop):
        body = (
            f"DoWhileLoop header={key_label(primitive.header)} "
            f"body={key_label(primitive.body)} exit={key_label(primitive.exit)}"
        )
    elif isinstance(primitive, NaturalLoop):
        body = (
            f"NaturalLoop header={key_label(primitive.header)} "
            f"body=[{_keys(primitive.body)}] exits=[{_keys(primitive.exits)}]"
        )
    elif isinstance(primitive, Switch):
        cases = ", ".join(arm.describe() for arm in primitive.cases)
        body = (
            f"Switch dispatch={key_label(primitive.dispatch)} cases=[{cases}] "
            f"merge={_merge(primitive.merge, primitive.absorbs_merge)}"
        )
    else:
        raise TypeError(f"unsupported primitive type: {type(primitive)!r}")
    members = ", ".join(node.label for node in sorted(primitive.members))
    return f"{primitive.region} = {body} members={{{members}}}"


class PrimitiveTextRenderer:
    """Render the output of the structural reduction, one primitive per line."""

    def render(
        self, primitives: SequenceType[Primitive], residue: Optional[Residue] = None
    ) -> str:
        lines: List[str] = []
        lines.append(f"; primitives: {len(primitives)}")
        for primitive in primitives:
            lines.append(describe_primitive(primitive))
        lines.extend(self._render_residue(residue))
        return "\n".join(lines) + "\n"

    def write(
        self,
        primitives: SequenceType[Primitive],
        output_path: Path,
        residue: Optional[Residue] = None,
    ) -> None:
        output_path.write_text(self.render(primitives, residue), "utf-8")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _render_residue(self, residue: Optional[Residue]) -> Iterable[str]:
        if residue is None:
            yield "; fully reduced"
            return
        yield "; " + residue.describe()
        yield ";   " + residue.region.describe()
        for region in residue.regions:
            yield ";   " + region.describe()


__all__ = ["describe_primitive", "PrimitiveTextRenderer"]
