# tests/test_ctrlflow_graph.py
"""
Tests for CFG construction from an IR.
"""

import pytest

from flowfacts.ctrlflow_graph import CFGEdge, EdgeKind, build_cfg, cfg_summary
from flowfacts.errors import MalformedCFGError
from flowfacts.ir import IR, Goto, Nop, Return
from tests.conftest import CONSTANT_BRANCH, SWITCH, make_cfg


def out_kinds(cfg, node):
    return [(e.kind, e.target.index, e.case_value) for e in cfg.out_edges_of(node)]


class TestStructure:

    def test_entry_and_exit(self, straight_line_cfg):
        ir, cfg = straight_line_cfg
        assert cfg.entry.index == -1
        assert cfg.exit.index == len(ir)
        assert cfg.is_entry(cfg.entry) and cfg.is_exit(cfg.exit)
        assert cfg.preds_of(cfg.entry) == []
        assert cfg.succs_of(cfg.exit) == []

    def test_iteration_order(self, straight_line_cfg):
        ir, cfg = straight_line_cfg
        assert [n.index for n in cfg] == [-1, 0, 1, 2, 3, 4]
        assert len(cfg) == len(ir) + 2
        assert all(stmt in cfg for stmt in ir)

    def test_fall_through_and_return(self, straight_line_cfg):
        ir, cfg = straight_line_cfg
        assert out_kinds(cfg, cfg.entry) == [(EdgeKind.ENTRY, 0, None)]
        assert out_kinds(cfg, ir.get_stmt(0)) == [(EdgeKind.FALL_THROUGH, 1, None)]
        assert out_kinds(cfg, ir.get_stmt(3)) == [(EdgeKind.RETURN, 4, None)]

    def test_if_and_goto(self):
        ir, cfg = make_cfg(CONSTANT_BRANCH)
        assert out_kinds(cfg, ir.get_stmt(1)) == [
            (EdgeKind.IF_TRUE, 4, None),
            (EdgeKind.IF_FALSE, 2, None),
        ]
        assert out_kinds(cfg, ir.get_stmt(3)) == [(EdgeKind.GOTO, 5, None)]
        assert sorted(p.index for p in cfg.preds_of(ir.get_stmt(5))) == [3, 4]

    def test_switch_edges(self):
        ir, cfg = make_cfg(SWITCH.format(value=1))
        assert out_kinds(cfg, ir.get_stmt(1)) == [
            (EdgeKind.SWITCH_CASE, 2, 1),
            (EdgeKind.SWITCH_CASE, 4, 2),
            (EdgeKind.SWITCH_DEFAULT, 6, None),
        ]

    def test_last_statement_falls_into_exit(self):
        ir, cfg = make_cfg("x = 1")
        assert out_kinds(cfg, ir.get_stmt(0)) == [(EdgeKind.FALL_THROUGH, 1, None)]
        assert cfg.succs_of(ir.get_stmt(0)) == [cfg.exit]

    def test_if_on_last_line_falls_into_exit(self):
        ir, cfg = make_cfg("L: x = 1\nif (x > 0) goto L")
        assert cfg.out_edges_of(ir.get_stmt(1))[1].target is cfg.exit

    def test_empty_routine(self):
        cfg = build_cfg(IR("empty", [], []))
        assert out_kinds(cfg, cfg.entry) == [(EdgeKind.ENTRY, 0, None)]
        assert cfg.succs_of(cfg.entry) == [cfg.exit]

    def test_reachable_from_entry(self):
        ir, cfg = make_cfg("return\nx = 1")
        assert ir.get_stmt(1) not in cfg.reachable_from(cfg.entry)


class TestMalformed:

    def test_jump_outside_routine(self):
        stray = Nop()
        with pytest.raises(MalformedCFGError):
            build_cfg(IR("m", [], [Goto(stray)]))

    def test_unresolved_jump(self):
        with pytest.raises(MalformedCFGError):
            build_cfg(IR("m", [], [Goto()]))

    def test_case_value_must_match_kind(self):
        a, b = Nop(), Nop()
        with pytest.raises(MalformedCFGError):
            CFGEdge(a, b, EdgeKind.SWITCH_CASE)
        with pytest.raises(MalformedCFGError):
            CFGEdge(a, b, EdgeKind.GOTO, case_value=3)

    def test_exit_cannot_have_successors(self, straight_line_cfg):
        ir, cfg = straight_line_cfg
        with pytest.raises(MalformedCFGError):
            cfg.add_edge(cfg.exit, ir.get_stmt(0))
        with pytest.raises(MalformedCFGError):
            cfg.add_edge(ir.get_stmt(0), cfg.entry)

    def test_foreign_endpoint(self, straight_line_cfg):
        ir, cfg = straight_line_cfg
        with pytest.raises(MalformedCFGError):
            cfg.add_edge(ir.get_stmt(0), Return())


class TestEdges:

    def test_equality_includes_case_value(self):
        a, b = Nop(), Nop()
        e1 = CFGEdge(a, b, EdgeKind.SWITCH_CASE, case_value=1)
        e2 = CFGEdge(a, b, EdgeKind.SWITCH_CASE, case_value=1)
        e3 = CFGEdge(a, b, EdgeKind.SWITCH_CASE, case_value=2)
        assert e1 == e2 and hash(e1) == hash(e2)
        assert e1 != e3

    def test_repr(self):
        ir, cfg = make_cfg(SWITCH.format(value=1))
        edge = cfg.out_edges_of(ir.get_stmt(1))[0]
        assert repr(edge) == "CFGEdge(1 -> 2, kind='switch-case', case=1)"


class TestRendering:

    def test_to_dot(self):
        ir, cfg = make_cfg(CONSTANT_BRANCH)
        dot = cfg.to_dot(title="branch", dead=[ir.get_stmt(2)])
        assert dot.startswith("digraph CFG {")
        assert 'label="branch";' in dot
        assert "ENTRY -> S0" in dot
        assert "S1 -> S4" in dot and "color=green" in dot
        assert "S5 -> EXIT" in dot
        assert dot.count("#dddddd") == 1

    def test_summary(self, straight_line_cfg):
        ir, cfg = straight_line_cfg
        lines = cfg_summary(cfg).splitlines()
        assert len(lines) == len(cfg) + 1
        assert "[entry]" in lines[1]
        assert "x = 1" in lines[2]
