from __future__ import annotations

import pytest

from flowstruct.cfa import (
    DoWhileLoop,
    IfThen,
    IfThenElse,
    NaturalLoop,
    PrimitiveTextRenderer,
    RegionId,
    Switch,
    SwitchArm,
    WhileLoop,
    analyse,
    describe_primitive,
    find_all,
)
from flowstruct.cfa.patterns import select_merge
from flowstruct.cfa.working import WorkingGraph
from flowstruct.cfg import build_cfg
from flowstruct.dominators import DominatorTree
from flowstruct.errors import AmbiguousMergeError, InternalInvariantError
from flowstruct.function import (
    BasicBlock,
    Branch,
    CondBranch,
    Function,
    IndirectBranch,
    Return,
    Unreachable,
    switch,
)
from flowstruct.options import StructuringOptions


def _cfg(**terminators):
    blocks = tuple(BasicBlock(label, terminator) for label, terminator in terminators.items())
    return build_cfg(Function("fn", blocks))


def _analyse(options=None, **terminators):
    cfg = _cfg(**terminators)
    return cfg, analyse(cfg, options=options)


def _kinds(analysis):
    return [type(primitive).__name__ for primitive in analysis.primitives]


def _members(cfg, primitive):
    return {node.label for node in primitive.members}


def test_diamond_is_one_if_then_else() -> None:
    cfg, analysis = _analyse(
        A=CondBranch("B", "C"), B=Branch("D"), C=Branch("D"), D=Return()
    )

    assert analysis.residue is None
    assert analysis.reducible
    (primitive,) = analysis.primitives
    assert isinstance(primitive, IfThenElse)
    assert primitive.cond == cfg.node("A")
    assert primitive.then_body == cfg.node("B")
    assert primitive.else_body == cfg.node("C")
    assert primitive.merge == cfg.node("D")
    assert primitive.absorbs_merge
    assert primitive.entry == cfg.node("A")
    assert primitive.follow is None
    assert _members(cfg, primitive) == {"A", "B", "C", "D"}
    assert analysis.entry == primitive.region


def test_simple_loop_nests_self_loop_in_sequence() -> None:
    cfg, analysis = _analyse(A=Branch("B"), B=CondBranch("B", "C"), C=Return())

    assert _kinds(analysis) == ["SelfLoop", "Sequence"]
    loop, sequence = analysis.primitives
    assert loop.header == cfg.node("B")
    assert loop.follow == cfg.node("C")
    assert sequence.nodes == (cfg.node("A"), loop.region, cfg.node("C"))
    assert _members(cfg, sequence) == {"A", "B", "C"}
    assert analysis.residue is None


def test_irreducible_pair_is_left_as_residue() -> None:
    cfg, analysis = _analyse(
        A=CondBranch("B", "C"), B=CondBranch("C", "D"), C=CondBranch("B", "D"), D=Return()
    )

    assert analysis.primitives == ()
    residue = analysis.residue
    assert residue is not None
    assert residue.entry == cfg.node("A")
    assert [node.label for node in residue.nodes] == ["A", "B", "C", "D"]
    (region,) = residue.regions
    b, c = cfg.node("B"), cfg.node("C")
    assert region.nodes == (b, c)
    assert region.entries == (b, c)
    assert [(edge.source, edge.target) for edge in region.back_edges] == [(c, b)]
    assert [(edge.source, edge.target) for edge in region.edges] == [(b, c), (c, b)]
    assert region.members == frozenset({b, c})

    whole = residue.region
    assert whole.nodes == residue.nodes
    assert whole.entries == (cfg.node("A"),)
    assert [(edge.source, edge.target) for edge in whole.back_edges] == [(c, b)]
    assert whole.members == frozenset(cfg.nodes)


def test_irreducible_headers_that_return_are_grouped_with_their_exits() -> None:
    cfg, analysis = _analyse(
        A=CondBranch("B", "C"),
        B=CondBranch("C", "RB"),
        C=CondBranch("B", "RC"),
        RB=Return(),
        RC=Return(),
    )

    assert _kinds(analysis) == ["IfThen", "IfThen"]
    first, second = analysis.primitives
    assert first.cond == cfg.node("B") and first.then_body == cfg.node("RB")
    assert first.negated and first.merge == cfg.node("C")
    assert second.cond == cfg.node("C") and second.merge == first.region
    (region,) = analysis.residue.regions
    assert region.nodes == (first.region, second.region)
    assert {node.label for node in region.members} == {"B", "C", "RB", "RC"}


def test_while_loop() -> None:
    cfg, analysis = _analyse(
        E=Branch("H"), H=CondBranch("B", "X"), B=Branch("H"), X=Return()
    )

    assert _kinds(analysis) == ["WhileLoop", "Sequence"]
    loop = analysis.primitives[0]
    assert (loop.header, loop.body, loop.exit) == (cfg.node("H"), cfg.node("B"), cfg.node("X"))
    assert loop.follow == cfg.node("X")


def test_do_while_loop() -> None:
    cfg, analysis = _analyse(
        E=Branch("H"), H=Branch("L"), L=CondBranch("H", "X"), X=Return()
    )

    assert _kinds(analysis) == ["DoWhileLoop", "Sequence"]
    loop = analysis.primitives[0]
    assert isinstance(loop, DoWhileLoop)
    assert (loop.header, loop.body, loop.exit) == (cfg.node("H"), cfg.node("L"), cfg.node("X"))


def test_if_then_on_false_edge_is_negated() -> None:
    cfg, analysis = _analyse(A=CondBranch("M", "T"), T=Branch("M"), M=Return())

    (primitive,) = analysis.primitives
    assert isinstance(primitive, IfThen)
    assert primitive.then_body == cfg.node("T")
    assert primitive.merge == cfg.node("M")
    assert primitive.negated
    assert primitive.absorbs_merge
    assert _members(cfg, primitive) == {"A", "T", "M"}


def test_returning_arm_forms_if_then() -> None:
    cfg, analysis = _analyse(
        E=CondBranch("A", "M"), A=CondBranch("R", "M"), R=Return(), M=Return()
    )

    assert _kinds(analysis) == ["IfThen", "IfThen"]
    inner, outer = analysis.primitives
    assert inner.then_body == cfg.node("R")
    assert inner.merge == cfg.node("M")
    assert not inner.absorbs_merge
    assert inner.follow == cfg.node("M")
    assert outer.then_body == inner.region
    assert outer.absorbs_merge
    assert analysis.residue is None


def test_switch_with_common_merge() -> None:
    cfg, analysis = _analyse(
        S=switch("D", (1, "C1"), (2, "C2")),
        C1=Branch("M"),
        C2=Branch("M"),
        D=Branch("M"),
        M=Return(),
    )

    (primitive,) = analysis.primitives
    assert isinstance(primitive, Switch)
    assert primitive.dispatch == cfg.node("S")
    assert primitive.cases == (
        SwitchArm(values=(1,), body=cfg.node("C1")),
        SwitchArm(values=(2,), body=cfg.node("C2")),
        SwitchArm(values=(), body=cfg.node("D"), is_default=True),
    )
    assert primitive.default == cfg.node("D")
    assert primitive.merge == cfg.node("M")
    assert primitive.absorbs_merge
    assert _members(cfg, primitive) == {"S", "C1", "C2", "D", "M"}


def test_switch_case_jumping_straight_to_merge_is_empty() -> None:
    cfg, analysis = _analyse(
        S=switch("C3", (1, "C1"), (2, "M")),
        C1=Branch("M"),
        C3=Branch("M"),
        M=Return(),
    )

    (primitive,) = analysis.primitives
    assert [arm.body for arm in primitive.cases] == [cfg.node("C1"), None, cfg.node("C3")]
    assert primitive.cases[1].values == (2,)
    assert primitive.default == cfg.node("C3")


def test_switch_whose_cases_all_leave_has_no_merge() -> None:
    cfg, analysis = _analyse(
        S=switch("C", (1, "A"), (2, "B")), A=Return(), B=Return(), C=Unreachable()
    )

    (primitive,) = analysis.primitives
    assert isinstance(primitive, Switch)
    assert primitive.merge is None
    assert _members(cfg, primitive) == {"S", "A", "B", "C"}


def test_switch_values_sharing_a_body_are_grouped() -> None:
    cfg, analysis = _analyse(
        S=switch("C3", (1, "C1"), (2, "C1"), (3, "C2")),
        C1=Return(),
        C2=Return(),
        C3=Return(),
    )

    (primitive,) = analysis.primitives
    assert primitive.cases[0] == SwitchArm(values=(1, 2), body=cfg.node("C1"))


def test_switch_detection_can_be_disabled() -> None:
    _cfg_, analysis = _analyse(
        StructuringOptions(detect_switches=False),
        S=switch("D", (1, "C1"), (2, "C2")),
        C1=Branch("M"),
        C2=Branch("M"),
        D=Branch("M"),
        M=Return(),
    )

    assert analysis.primitives == ()
    assert analysis.residue is not None
    assert analysis.residue.regions == ()
    assert len(analysis.residue.region.nodes) == 5


def test_merges_are_kept_outside_when_absorption_is_disabled() -> None:
    cfg, analysis = _analyse(
        StructuringOptions(absorb_merges=False),
        A=CondBranch("B", "C"),
        B=Branch("D"),
        C=Branch("D"),
        D=Return(),
    )

    assert _kinds(analysis) == ["IfThenElse", "Sequence"]
    branch, sequence = analysis.primitives
    assert not branch.absorbs_merge
    assert branch.follow == cfg.node("D")
    assert sequence.nodes == (branch.region, cfg.node("D"))


def test_indirect_branch_arms_follow_edge_order() -> None:
    cfg, analysis = _analyse(
        A=IndirectBranch(("B", "C")), B=Branch("D"), C=Branch("D"), D=Return()
    )

    (primitive,) = analysis.primitives
    assert isinstance(primitive, IfThenElse)
    assert (primitive.then_body, primitive.else_body) == (cfg.node("B"), cfg.node("C"))


LOOP_WITH_TWO_BREAKS = dict(
    E=Branch("H"),
    H=CondBranch("A", "X"),
    A=CondBranch("B", "Y"),
    B=Branch("H"),
    X=Branch("Z"),
    Y=Branch("Z"),
    Z=Return(),
)


def test_natural_loop_fallback() -> None:
    cfg, analysis = _analyse(**LOOP_WITH_TWO_BREAKS)

    assert _kinds(analysis) == ["NaturalLoop", "Sequence", "IfThenElse"]
    loop = analysis.primitives[0]
    assert isinstance(loop, NaturalLoop)
    assert loop.header == cfg.node("H")
    assert loop.body == (cfg.node("A"), cfg.node("B"))
    assert loop.exits == (cfg.node("X"), cfg.node("Y"))
    assert loop.latches == (cfg.node("B"),)
    assert loop.follow is None
    assert analysis.residue is None


def test_without_natural_loops_the_loop_stays_in_the_residue() -> None:
    cfg, analysis = _analyse(
        StructuringOptions(natural_loop_fallback=False), **LOOP_WITH_TWO_BREAKS
    )

    assert analysis.primitives == ()
    (region,) = analysis.residue.regions
    assert region.nodes == (cfg.node("H"), cfg.node("A"), cfg.node("B"))
    assert region.entries == (cfg.node("H"),)


def test_nested_loops_reduce_inside_out() -> None:
    cfg, analysis = _analyse(
        E=Branch("H1"),
        H1=CondBranch("H2", "X"),
        H2=CondBranch("B", "L"),
        B=Branch("H2"),
        L=Branch("H1"),
        X=Return(),
    )

    assert _kinds(analysis) == ["IfThen", "WhileLoop", "Sequence", "SelfLoop", "Sequence"]
    assert analysis.residue is None
    inner = analysis.primitives[1]
    assert isinstance(inner, WhileLoop)
    assert inner.header == cfg.node("H2")


@pytest.mark.parametrize(
    "terminators, kinds",
    [
        ({"A": Return()}, []),
        ({"A": Branch("A")}, ["SelfLoop"]),
        ({"A": CondBranch("A", "B"), "B": Return()}, ["SelfLoop", "Sequence"]),
        ({"A": Branch("B"), "B": Branch("C"), "C": Return()}, ["Sequence"]),
        ({"A": CondBranch("B", "C"), "B": Return(), "C": Return()}, ["IfThenElse"]),
    ],
)
def test_small_functions(terminators, kinds) -> None:
    _cfg_, analysis = _analyse(**terminators)

    assert _kinds(analysis) == kinds
    assert analysis.residue is None


def test_self_loop_wins_over_other_shapes() -> None:
    _cfg_, analysis = _analyse(
        A=Branch("B"), B=CondBranch("B", "C"), C=CondBranch("D", "E"), D=Return(), E=Return()
    )

    assert _kinds(analysis)[0] == "SelfLoop"
    assert "NaturalLoop" not in _kinds(analysis)


def test_find_all_is_deterministic() -> None:
    cfg = _cfg(**LOOP_WITH_TWO_BREAKS)

    first = find_all(cfg)
    second = find_all(cfg)

    assert first == second


def test_region_ids_are_sequential() -> None:
    _cfg_, analysis = _analyse(**LOOP_WITH_TWO_BREAKS)

    assert [primitive.region for primitive in analysis.primitives] == [
        RegionId(0),
        RegionId(1),
        RegionId(2),
    ]


def test_collapse_rejects_regions_entered_from_outside() -> None:
    cfg = _cfg(A=CondBranch("B", "C"), B=Branch("D"), C=Branch("D"), D=Return())
    graph = WorkingGraph(cfg, DominatorTree.compute(cfg))

    with pytest.raises(InternalInvariantError, match="entered from"):
        graph.collapse((cfg.node("A"), cfg.node("D")), cfg.node("A"))


def test_collapse_keeps_edges_back_to_the_entry_as_a_self_edge() -> None:
    cfg = _cfg(A=Branch("B"), B=CondBranch("A", "C"), C=Return())
    graph = WorkingGraph(cfg, DominatorTree.compute(cfg))

    region = graph.collapse((cfg.node("A"), cfg.node("B")), cfg.node("A"))

    assert graph.entry == region
    assert graph.has_self_edge(region)
    assert graph.structural_successors(region) == (cfg.node("C"), region)
    assert graph.members(region) == frozenset({cfg.node("A"), cfg.node("B")})
    assert graph.header(region) == cfg.node("A")


class _FlatOrder:
    def rpo(self, key):
        return 0


def test_tied_merge_candidates_are_an_internal_error() -> None:
    with pytest.raises(AmbiguousMergeError, match="share a reverse postorder index"):
        select_merge(_FlatOrder(), [RegionId(1), RegionId(2)])


def test_primitive_rendering() -> None:
    cfg, analysis = _analyse(
        A=CondBranch("B", "C"), B=Branch("D"), C=Branch("D"), D=Return()
    )

    assert describe_primitive(analysis.primitives[0]) == (
        "R0 = IfThenElse cond=A then=B else=C merge=D* members={A, B, C, D}"
    )
    text = PrimitiveTextRenderer().render(analysis.primitives, analysis.residue)
    assert text.splitlines() == [
        "; primitives: 1",
        "R0 = IfThenElse cond=A then=B else=C merge=D* members={A, B, C, D}",
        "; fully reduced",
    ]


def test_residue_rendering_lists_irreducible_regions() -> None:
    _cfg_, analysis = _analyse(
        A=CondBranch("B", "C"), B=CondBranch("C", "D"), C=CondBranch("B", "D"), D=Return()
    )

    text = PrimitiveTextRenderer().render(analysis.primitives, analysis.residue)

    assert "; residue entry=A nodes=[A, B, C, D]" in text
    assert ";   irreducible [A, B, C, D] entries=[A] back_edges=[C->B]" in text
    assert ";   irreducible [B, C] entries=[B, C] back_edges=[C->B]" in text


def test_acyclic_residue_is_one_region_entered_at_the_top() -> None:
    cfg, analysis = _analyse(
        A=CondBranch("B", "C"), B=CondBranch("C", "D"), C=Branch("D"), D=Return()
    )

    assert analysis.primitives == ()
    residue = analysis.residue
    assert residue.regions == ()
    assert residue.region.nodes == tuple(cfg.nodes)
    assert residue.region.entries == (cfg.node("A"),)
    assert residue.region.back_edges == ()
    assert len(residue.region.edges) == 5


def test_switch_case_falling_into_another_case_is_left_as_residue() -> None:
    cfg, analysis = _analyse(
        S=switch("C3", (1, "C1"), (2, "C2")),
        C1=Branch("C2"),
        C2=Branch("M"),
        C3=Branch("M"),
        M=Return(),
    )

    assert analysis.primitives == ()
    assert analysis.residue.regions == ()
    assert analysis.residue.region.members == frozenset(cfg.nodes)


def test_indirect_fan_out_is_structured_as_a_switch() -> None:
    cfg, analysis = _analyse(
        A=IndirectBranch(("B", "C", "D")),
        B=Branch("E"),
        C=Branch("E"),
        D=Branch("E"),
        E=Return(),
    )

    (primitive,) = analysis.primitives
    assert isinstance(primitive, Switch)
    assert primitive.cases == tuple(
        SwitchArm(values=(), body=cfg.node(label)) for label in "BCD"
    )
    assert primitive.default is None
    assert primitive.merge == cfg.node("E")
    assert primitive.absorbs_merge
    assert describe_primitive(primitive) == (
        "R0 = Switch dispatch=A cases=[indirect:B, indirect:C, indirect:D] "
        "merge=E* members={A, B, C, D, E}"
    )


def test_indirect_fan_out_is_not_a_switch_when_switches_are_disabled() -> None:
    _cfg_, analysis = _analyse(
        StructuringOptions(detect_switches=False),
        A=IndirectBranch(("B", "C", "D")),
        B=Branch("E"),
        C=Branch("E"),
        D=Branch("E"),
        E=Return(),
    )

    assert analysis.primitives == ()
    assert analysis.residue is not None
