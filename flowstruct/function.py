"""Input model: functions, basic blocks and their terminators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class Branch:
    """Unconditional jump to a single block."""

    target: str

    def targets(self) -> Tuple[str, ...]:
        return (self.target,)

    def describe(self) -> str:
        return f"br {self.target}"


@dataclass(frozen=True)
class CondBranch:
    """Two-way branch on a boolean condition."""

    true_target: str
    false_target: str
    condition: str = "cond"

    def targets(self) -> Tuple[str, ...]:
        return (self.true_target, self.false_target)

    def describe(self) -> str:
        return (
            f"br {self.condition} then={self.true_target} "
            f"else={self.false_target}"
        )


@dataclass(frozen=True)
class CaseTarget:
    """Single ``value -> target`` arm of a switch terminator."""

    value: int
    target: str

    def describe(self) -> str:
        return f"{self.value}->{self.target}"


@dataclass(frozen=True)
class SwitchBranch:
    """Multi-way dispatch with an explicit default destination."""

    cases: Tuple[CaseTarget, ...]
    default: str

    def targets(self) -> Tuple[str, ...]:
        return tuple(case.target for case in self.cases) + (self.default,)

    def describe(self) -> str:
        text = ", ".join(case.describe() for case in self.cases)
        return f"switch [{text}] default={self.default}"


@dataclass(frozen=True)
class IndirectBranch:
    """Computed jump whose possible destinations are known up front."""

    destinations: Tuple[str, ...]

    def targets(self) -> Tuple[str, ...]:
        return self.destinations

    def describe(self) -> str:
        return f"indirectbr [{', '.join(self.destinations)}]"


@dataclass(frozen=True)
class Return:
    """Leave the function."""

    def targets(self) -> Tuple[str, ...]:
        return tuple()

    def describe(self) -> str:
        return "ret"


@dataclass(frozen=True)
class Unreachable:
    """Control never continues past this point."""

    def targets(self) -> Tuple[str, ...]:
        return tuple()

    def describe(self) -> str:
        return "unreachable"


Terminator = Union[Branch, CondBranch, SwitchBranch, IndirectBranch, Return, Unreachable]


@dataclass(frozen=True)
class BasicBlock:
    """Straight-line block identified by ``name``.

    Only the terminator matters for structuring; ``instructions`` is carried
    along for diagnostics and is never inspected.
    """

    name: str
    terminator: Optional[object]
    instructions: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Function:
    """Ordered collection of basic blocks with a designated entry."""

    name: str
    blocks: Tuple[BasicBlock, ...]
    entry: Optional[str] = None

    @property
    def entry_name(self) -> Optional[str]:
        if self.entry is not None:
            return self.entry
        if self.blocks:
            return self.blocks[0].name
        return None


def switch(default: str, *cases: Tuple[int, str]) -> SwitchBranch:
    """Convenience constructor used by callers assembling switches by hand."""

    return SwitchBranch(
        cases=tuple(CaseTarget(value, target) for value, target in cases),
        default=default,
    )


__all__ = [
    "Branch",
    "CondBranch",
    "CaseTarget",
    "SwitchBranch",
    "IndirectBranch",
    "Return",
    "Unreachable",
    "Terminator",
    "BasicBlock",
    "Function",
    "switch",
]
