"""Tunable behaviour of the structural analysis."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StructuringOptions:
    """Switches controlling which shapes the reduction may emit.

    ``detect_switches`` enables multi-way ``Switch`` regions,
    ``natural_loop_fallback`` allows loops that match neither the while nor
    the do-while shape to be collapsed as generic natural loops, and
    ``absorb_merges`` lets conditionals swallow a merge block that only they
    reach.
    """

    detect_switches: bool = True
    natural_loop_fallback: bool = True
    absorb_merges: bool = True


DEFAULT_OPTIONS = StructuringOptions()


__all__ = ["StructuringOptions", "DEFAULT_OPTIONS"]
