"""Shape matchers used by the structural reduction.

Every matcher looks at one working node and either returns a :class:`Match`
describing the region to collapse or ``None``.  Structural successors ignore
the virtual exit so blocks that return may appear anywhere inside a region.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable, List, Optional, Sequence as SequenceType, Set, Tuple

from ..errors import AmbiguousMergeError
from ..graph import EdgeKind
from ..options import StructuringOptions
from .model import (
    DoWhileLoop,
    IfThen,
    IfThenElse,
    Key,
    NaturalLoop,
    Primitive,
    SelfLoop,
    Sequence,
    Switch,
    SwitchArm,
    WhileLoop,
    key_label,
)
from .working import WorkingGraph


@dataclass(frozen=True)
class Match:
    """Region selected for collapse.

    ``build`` receives ``region``, ``entry``, ``members`` and ``follow`` once
    the working graph has been rewritten.
    """

    keys: Tuple[Key, ...]
    entry: Key
    build: Callable[..., Primitive]
    loop: bool = False

    @property
    def kind(self) -> str:
        return self.build.func.__name__  # type: ignore[attr-defined]


Matcher = Callable[[WorkingGraph, Key, StructuringOptions], Optional[Match]]


# ----------------------------------------------------------------------
# helpers
# ----------------------------------------------------------------------


def _polarity(graph: WorkingGraph, source: Key, target: Key) -> int:
    kinds = {edge.kind for edge in graph.edges_between(source, target)}
    if EdgeKind.BRANCH_TRUE in kinds:
        return 0
    if EdgeKind.BRANCH_FALSE in kinds:
        return 1
    return 2


def arm_order(graph: WorkingGraph, key: Key) -> Tuple[Key, ...]:
    """Structural successors ordered true edge first, otherwise in edge order."""

    return tuple(
        sorted(
            graph.structural_successors(key),
            key=lambda target: _polarity(graph, key, target),
        )
    )


def _owned_by(graph: WorkingGraph, key: Key, owner: Key) -> bool:
    """``key`` is only reachable through ``owner`` and can be folded into it."""

    return (
        key != owner
        and key != graph.entry
        and graph.only_predecessor_is(key, owner)
    )


def select_merge(graph: WorkingGraph, candidates: Iterable[Key]) -> Optional[Key]:
    """Pick the merge candidate with the lowest reverse postorder index."""

    unique = list(dict.fromkeys(candidates))
    if not unique:
        return None
    unique.sort(key=graph.rpo)
    if len(unique) > 1 and graph.rpo(unique[0]) == graph.rpo(unique[1]):
        raise AmbiguousMergeError(
            f"merge candidates {key_label(unique[0])} and {key_label(unique[1])} "
            "share a reverse postorder index"
        )
    return unique[0]


def _absorbs(
    graph: WorkingGraph,
    merge: Optional[Key],
    region: SequenceType[Key],
    options: StructuringOptions,
) -> bool:
    if merge is None or not options.absorb_merges:
        return False
    if merge == graph.entry or merge in region or graph.has_self_edge(merge):
        return False
    if len(graph.structural_successors(merge)) > 1:
        return False
    return all(pred in region for pred in graph.predecessors(merge))


# ----------------------------------------------------------------------
# loops
# ----------------------------------------------------------------------


def match_self_loop(
    graph: WorkingGraph, key: Key, options: StructuringOptions
) -> Optional[Match]:
    if not graph.has_self_edge(key):
        return None
    return Match((key,), key, partial(SelfLoop, header=key), loop=True)


def match_while_loop(
    graph: WorkingGraph, key: Key, options: StructuringOptions
) -> Optional[Match]:
    successors = arm_order(graph, key)
    if len(successors) != 2 or key in successors:
        return None
    for body in successors:
        exit_key = successors[1] if body == successors[0] else successors[0]
        if not _owned_by(graph, body, key):
            continue
        if graph.structural_successors(body) != (key,):
            continue
        build = partial(WhileLoop, header=key, body=body, exit=exit_key)
        return Match((key, body), key, build, loop=True)
    return None


def match_do_while_loop(
    graph: WorkingGraph, key: Key, options: StructuringOptions
) -> Optional[Match]:
    successors = graph.structural_successors(key)
    if len(successors) != 1:
        return None
    body = successors[0]
    if not _owned_by(graph, body, key):
        return None
    latch_successors = graph.structural_successors(body)
    if len(latch_successors) != 2 or key not in latch_successors:
        return None
    exit_key = latch_successors[1] if latch_successors[0] == key else latch_successors[0]
    if exit_key == body:
        return None
    build = partial(DoWhileLoop, header=key, body=body, exit=exit_key)
    return Match((key, body), key, build, loop=True)


def _natural_body(graph: WorkingGraph, header: Key, latches: Iterable[Key]) -> List[Key]:
    body: Set[Key] = {header}
    stack = [latch for latch in latches]
    while stack:
        current = stack.pop()
        if current in body:
            continue
        body.add(current)
        for pred in graph.predecessors(current):
            if pred not in body:
                stack.append(pred)
    ordered = sorted(body - {header}, key=graph.rpo)
    return [header] + ordered


def match_natural_loop(
    graph: WorkingGraph, options: StructuringOptions
) -> Optional[Match]:
    """Collapse the innermost loop whose back edges target a dominating header.

    Candidates are ranked by body size, ties go to the header latest in
    reverse postorder.
    """

    best: Optional[Tuple[Tuple[int, int], Key, List[Key], List[Key]]] = None
    for header in graph.keys():
        latches = [
            pred
            for pred in graph.predecessors(header)
            if pred != header and graph.dominates(header, pred)
        ]
        if not latches:
            continue
        body = _natural_body(graph, header, latches)
        rank = (len(body), -graph.rpo(header))
        if best is None or rank < best[0]:
            best = (rank, header, body, latches)
    if best is None:
        return None
    _rank, header, body, latches = best
    inside = set(body)
    exits: List[Key] = []
    for key in body:
        for target in graph.structural_successors(key):
            if target not in inside and target not in exits:
                exits.append(target)
    exits.sort(key=graph.rpo)
    build = partial(
        NaturalLoop,
        header=header,
        body=tuple(body[1:]),
        exits=tuple(exits),
        latches=tuple(sorted(latches, key=graph.rpo)),
    )
    return Match(tuple(body), header, build, loop=True)


# ----------------------------------------------------------------------
# conditionals
# ----------------------------------------------------------------------


def match_if_then_else(
    graph: WorkingGraph, key: Key, options: StructuringOptions
) -> Optional[Match]:
    arms = arm_order(graph, key)
    if len(arms) != 2 or key in arms:
        return None
    then_body, else_body = arms
    targets: List[Key] = []
    for arm in arms:
        if not _owned_by(graph, arm, key):
            return None
        successors = graph.structural_successors(arm)
        if len(successors) > 1:
            return None
        targets.extend(successors)
    if len(set(targets)) > 1:
        return None
    merge = select_merge(graph, targets)
    if merge == key:
        return None
    region: Tuple[Key, ...] = (key, then_body, else_body)
    absorbs = _absorbs(graph, merge, region, options)
    if absorbs:
        region += (merge,)  # type: ignore[operator]
    build = partial(
        IfThenElse,
        cond=key,
        then_body=then_body,
        else_body=else_body,
        merge=merge,
        absorbs_merge=absorbs,
    )
    return Match(region, key, build)


def match_if_then(
    graph: WorkingGraph, key: Key, options: StructuringOptions
) -> Optional[Match]:
    arms = arm_order(graph, key)
    if len(arms) != 2 or key in arms:
        return None
    for arm in arms:
        merge = arms[1] if arm == arms[0] else arms[0]
        if not _owned_by(graph, arm, key):
            continue
        if graph.structural_successors(arm) not in (tuple(), (merge,)):
            continue
        negated = _polarity(graph, key, arm) == 1
        region: Tuple[Key, ...] = (key, arm)
        absorbs = _absorbs(graph, merge, region, options)
        if absorbs:
            region += (merge,)
        build = partial(
            IfThen,
            cond=key,
            then_body=arm,
            merge=merge,
            absorbs_merge=absorbs,
            negated=negated,
        )
        return Match(region, key, build)
    return None


def match_switch(
    graph: WorkingGraph, key: Key, options: StructuringOptions
) -> Optional[Match]:
    if not options.detect_switches:
        return None
    targets = graph.structural_successors(key)
    if len(targets) < 3 or key in targets:
        return None
    kinds = {edge.kind for target in targets for edge in graph.edges_between(key, target)}
    if not (all(kind.is_switch for kind in kinds) or kinds == {EdgeKind.INDIRECT}):
        return None

    bodies = [
        target
        for target in targets
        if _owned_by(graph, target, key) and len(graph.structural_successors(target)) <= 1
    ]
    candidates = [target for target in targets if target not in bodies]
    for body in bodies:
        candidates.extend(graph.structural_successors(body))
    if key in candidates:
        return None
    merge = select_merge(graph, candidates)
    if any(candidate != merge for candidate in candidates):
        return None

    arms: List[SwitchArm] = []
    default: Optional[Key] = None
    for target in targets:
        edges = graph.edges_between(key, target)
        values = tuple(
            edge.value for edge in edges if edge.kind is EdgeKind.SWITCH_CASE and edge.value is not None
        )
        is_default = any(edge.kind is EdgeKind.SWITCH_DEFAULT for edge in edges)
        body = None if target == merge else target
        arms.append(SwitchArm(values=values, body=body, is_default=is_default))
        if is_default:
            default = body
    region: Tuple[Key, ...] = (key,) + tuple(bodies)
    absorbs = _absorbs(graph, merge, region, options)
    if absorbs:
        region += (merge,)  # type: ignore[operator]
    build = partial(
        Switch,
        dispatch=key,
        cases=tuple(arms),
        default=default,
        merge=merge,
        absorbs_merge=absorbs,
    )
    return Match(region, key, build)


# ----------------------------------------------------------------------
# sequences
# ----------------------------------------------------------------------


def match_sequence(
    graph: WorkingGraph, key: Key, options: StructuringOptions
) -> Optional[Match]:
    chain = [key]
    current = key
    while True:
        successors = graph.structural_successors(current)
        if len(successors) != 1:
            break
        following = successors[0]
        if following in chain or not _owned_by(graph, following, current):
            break
        chain.append(following)
        current = following
    if len(chain) < 2:
        return None
    return Match(tuple(chain), key, partial(Sequence, nodes=tuple(chain)))


MATCHERS: Tuple[Matcher, ...] = (
    match_self_loop,
    match_while_loop,
    match_do_while_loop,
    match_if_then_else,
    match_if_then,
    match_switch,
    match_sequence,
)


__all__ = [
    "Match",
    "Matcher",
    "MATCHERS",
    "arm_order",
    "select_merge",
    "match_self_loop",
    "match_while_loop",
    "match_do_while_loop",
    "match_natural_loop",
    "match_if_then_else",
    "match_if_then",
    "match_switch",
    "match_sequence",
]
