from __future__ import annotations

from flowstruct.cfg import build_cfg
from flowstruct.function import BasicBlock, Branch, CondBranch, Function, Return
from flowstruct.summary import render_control_flow_summary, summarise_cfg


def _cfg(**terminators):
    blocks = tuple(BasicBlock(label, terminator) for label, terminator in terminators.items())
    return build_cfg(Function("fn", blocks))


def test_diamond_summary() -> None:
    metrics = summarise_cfg(
        _cfg(A=CondBranch("B", "C"), B=Branch("D"), C=Branch("D"), D=Return())
    )

    assert metrics.block_count == 4
    assert metrics.edge_count == 5
    assert metrics.entry == "A"
    assert metrics.loop_headers == []
    assert metrics.exit_blocks == ["D"]
    assert metrics.branch_blocks == ["A"]
    assert metrics.merge_blocks == ["D"]
    assert metrics.critical_edges == []
    assert metrics.cyclomatic_complexity == 2
    assert metrics.max_successors == 2
    assert metrics.max_predecessors == 2
    assert metrics.average_successors == 1.0


def test_loop_summary_reports_back_edges() -> None:
    metrics = summarise_cfg(_cfg(A=Branch("B"), B=CondBranch("B", "C"), C=Return()))

    assert metrics.loop_headers == ["B"]
    assert metrics.back_edges == [("B", "B")]
    assert metrics.critical_edges == [("B", "B")]
    assert metrics.block_details["B"].describe() == (
        "B -> [B, C] pred=2 (loop, branch, merge) critical=[B]"
    )


def test_critical_edges_join_branches_and_merges() -> None:
    metrics = summarise_cfg(_cfg(A=CondBranch("B", "C"), B=Branch("C"), C=Return()))

    assert metrics.critical_edges == [("A", "C")]
    assert metrics.block_details["A"].critical_successors == ["C"]


def test_single_block_has_complexity_one() -> None:
    metrics = summarise_cfg(_cfg(A=Return()))

    assert metrics.cyclomatic_complexity == 1
    assert metrics.max_successors == 0


def test_summary_lines_and_dict() -> None:
    metrics = summarise_cfg(
        _cfg(A=CondBranch("B", "C"), B=Branch("D"), C=Branch("D"), D=Return())
    )

    lines = metrics.summary_lines()
    assert lines[0] == "control flow summary for fn:"
    assert "- blocks: 4" in lines
    assert "- cyclomatic complexity: 2" in lines
    assert "- exit blocks: D" in lines

    payload = metrics.to_dict()
    assert payload["branch_blocks"] == ["A"]
    assert payload["blocks"]["A"]["successors"] == ["B", "C"]
    assert payload["blocks"]["D"]["is_exit"]


def test_rendered_summary_includes_sections() -> None:
    metrics = summarise_cfg(_cfg(A=CondBranch("B", "C"), B=Branch("C"), C=Return()))

    lines = render_control_flow_summary(metrics)

    assert "block edges:" in lines
    assert "branch points:" in lines
    assert "- A" in lines
    assert "critical edges:" in lines
    assert "- A -> C" in lines
