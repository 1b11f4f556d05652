from __future__ import annotations

import pytest

from flowstruct.cfg import ControlFlowGraph, build_cfg
from flowstruct.dominators import DominatorTree
from flowstruct.errors import UnreachableEntryError
from flowstruct.function import BasicBlock, Branch, CondBranch, Function, Return
from flowstruct.graph import EXIT_LABEL, Edge, EdgeKind, Node


def _tree(**terminators):
    blocks = tuple(BasicBlock(label, terminator) for label, terminator in terminators.items())
    cfg = build_cfg(Function("fn", blocks))
    return cfg, DominatorTree.compute(cfg)


def test_diamond_immediate_dominators() -> None:
    cfg, tree = _tree(A=CondBranch("B", "C"), B=Branch("D"), C=Branch("D"), D=Return())
    a, b, c, d = (cfg.node(label) for label in "ABCD")

    assert tree.immediate[a] == a
    assert tree.immediate_dominator(a) == a
    assert tree.immediate_dominator(b) == a
    assert tree.immediate_dominator(c) == a
    assert tree.immediate_dominator(d) == a
    assert tree.children(a) == (c, b, d)
    assert tree.reverse_postorder[0] == a
    assert tree.rpo_index(a) == 0


def test_dominance_queries() -> None:
    cfg, tree = _tree(A=CondBranch("B", "C"), B=Branch("D"), C=Branch("D"), D=Return())
    a, b, d = cfg.node("A"), cfg.node("B"), cfg.node("D")

    assert tree.dominates(a, d)
    assert tree.dominates(d, d)
    assert not tree.strictly_dominates(d, d)
    assert not tree.dominates(b, d)
    assert not tree.dominates(Node(99, "Z"), d)
    assert not tree.dominates(a, Node(99, "Z"))


def test_back_edges_follow_dominance() -> None:
    cfg, tree = _tree(A=Branch("B"), B=CondBranch("B", "C"), C=Return())
    a, b, c = cfg.node("A"), cfg.node("B"), cfg.node("C")

    assert tree.is_back_edge(Edge(b, b, EdgeKind.BRANCH_TRUE))
    assert not tree.is_back_edge(Edge(a, b, EdgeKind.UNCONDITIONAL))
    assert not tree.is_back_edge(Edge(b, c, EdgeKind.BRANCH_FALSE))


def test_irreducible_headers_do_not_dominate_each_other() -> None:
    cfg, tree = _tree(
        A=CondBranch("B", "C"), B=CondBranch("C", "D"), C=CondBranch("B", "D"), D=Return()
    )
    b, c = cfg.node("B"), cfg.node("C")

    assert not tree.dominates(b, c)
    assert not tree.dominates(c, b)
    assert not tree.is_back_edge(Edge(c, b, EdgeKind.BRANCH_TRUE))


def test_dominance_frontiers() -> None:
    cfg, tree = _tree(A=CondBranch("B", "C"), B=Branch("D"), C=Branch("D"), D=Return())
    a, b, c, d = (cfg.node(label) for label in "ABCD")

    assert tree.dominance_frontier(b) == frozenset({d})
    assert tree.dominance_frontier(c) == frozenset({d})
    assert tree.dominance_frontier(a) == frozenset()


def test_loop_header_is_in_its_own_frontier() -> None:
    cfg, tree = _tree(A=CondBranch("B", "C"), B=Branch("A"), C=Return())
    a, b = cfg.node("A"), cfg.node("B")

    assert tree.dominance_frontier(b) == frozenset({a})
    assert a in tree.dominance_frontier(a)


def test_entry_without_successors_is_rejected() -> None:
    a, b = Node(0, "A"), Node(1, "B")
    cfg = ControlFlowGraph("broken", a, (a, b), Node(2, EXIT_LABEL), ())

    with pytest.raises(UnreachableEntryError, match="has no successors"):
        DominatorTree.compute(cfg)


def test_blocks_unreachable_from_entry_are_rejected() -> None:
    a, b = Node(0, "A"), Node(1, "B")
    exit_node = Node(2, EXIT_LABEL)
    cfg = ControlFlowGraph(
        "broken", a, (a, b), exit_node, (Edge(a, exit_node, EdgeKind.RETURN),)
    )

    with pytest.raises(UnreachableEntryError, match="unreachable from entry: B"):
        DominatorTree.compute(cfg)


def test_dominator_text_lists_every_node() -> None:
    _cfg, tree = _tree(A=Branch("B"), B=Return())

    text = tree.to_text()

    assert text.splitlines()[0] == "dominators (entry=A)"
    assert "  A idom=- depth=0" in text
    assert "  B idom=A depth=1" in text
