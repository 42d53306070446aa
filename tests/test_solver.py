"""
Test suite for the constraint solver.

Tests the four solver phases on hand-built graphs:
- pin initialization
- equality saturation with union-find
- Nullable propagation along subtype edges
- finalization and diagnostics
"""

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nullinfer.evidence import Cause, Equal, MustBeNotNull, MustBeNullable, Reason, Subtype
from nullinfer.graph import ConstraintGraph
from nullinfer.lattice import LatticeValue, Verdict
from nullinfer.positions import PositionKind, PositionTable, SourceHint
from nullinfer.solver import Solver, UnionFind, solve
from nullinfer.verdicts import DiagnosticKind

NULL = Cause(Reason.NULL_LITERAL, 1)
DEREF = Cause(Reason.DEREF, 2)
ASSIGN = Cause(Reason.ASSIGN, 3)
EXT_NOT_NULL = Cause(Reason.EXTERNAL_NOT_NULL, 4, "Test.find")


def build(n, tokens):
    graph = ConstraintGraph()
    for pid in range(n):
        graph.add_position(pid)
    graph.extend(tokens)
    return graph


class TestUnionFind:
    """Union-find with lowest-id representatives."""

    def test_lowest_id_wins(self):
        uf = UnionFind(range(5))
        uf.union(4, 2)
        uf.union(3, 4)
        assert uf.find(3) == 2
        assert uf.find(4) == 2

    def test_classes(self):
        uf = UnionFind(range(4))
        uf.union(1, 3)
        assert uf.classes() == {0: [0], 1: [1, 3], 2: [2]}

    def test_order_independent(self):
        a = UnionFind(range(4))
        a.union(3, 2)
        a.union(2, 1)
        b = UnionFind(range(4))
        b.union(1, 2)
        b.union(2, 3)
        assert a.classes() == b.classes()


class TestPins:
    """Phase 1 and finalization defaults."""

    def test_no_evidence_is_not_null(self):
        table = solve(build(2, []))
        assert table.verdict(0) is Verdict.NOT_NULL
        assert table.value(0) is LatticeValue.UNKNOWN

    def test_nullable_pin(self):
        table = solve(build(1, [MustBeNullable(0, NULL)]))
        assert table.verdict(0) is Verdict.NULLABLE
        assert table.explain(0) == [NULL]

    def test_conflicting_pins(self):
        table = solve(build(1, [MustBeNullable(0, NULL), MustBeNotNull(0, DEREF)]))
        assert table.value(0) is LatticeValue.CONFLICT
        assert table.verdict(0) is Verdict.NULLABLE
        kinds = [d.kind for d in table.diagnostics(0)]
        assert kinds == [DiagnosticKind.CONFLICT]


class TestEqualities:
    """Phase 2: equivalence classes share one value."""

    def test_class_shares_value(self):
        table = solve(build(3, [Equal(0, 1, ASSIGN), Equal(1, 2, ASSIGN), MustBeNullable(2, NULL)]))
        assert [table.verdict(p) for p in range(3)] == [Verdict.NULLABLE] * 3

    def test_class_causes_shared(self):
        table = solve(build(2, [Equal(0, 1, ASSIGN), MustBeNullable(1, NULL)]))
        assert NULL in table.explain(0)

    def test_class_conflict(self):
        table = solve(build(2, [Equal(0, 1, ASSIGN), MustBeNullable(0, NULL), MustBeNotNull(1, DEREF)]))
        assert table.value(0) is LatticeValue.CONFLICT
        assert table.value(1) is LatticeValue.CONFLICT


class TestPropagation:
    """Phase 3: Nullable flows from sub to sup only."""

    def test_nullable_flows_up(self):
        table = solve(build(3, [Subtype(0, 1, ASSIGN), Subtype(1, 2, ASSIGN), MustBeNullable(0, NULL)]))
        assert table.verdict(2) is Verdict.NULLABLE
        assert any(c.source == 1 for c in table.explain(2))

    def test_not_null_does_not_flow(self):
        table = solve(build(2, [Subtype(0, 1, ASSIGN), MustBeNotNull(0, DEREF)]))
        assert table.value(1) is LatticeValue.UNKNOWN

    def test_nullable_does_not_flow_down(self):
        table = solve(build(2, [Subtype(0, 1, ASSIGN), MustBeNullable(1, NULL)]))
        assert table.verdict(0) is Verdict.NOT_NULL

    def test_propagation_into_not_null_conflicts(self):
        table = solve(build(2, [Subtype(0, 1, ASSIGN), MustBeNullable(0, NULL), MustBeNotNull(1, DEREF)]))
        assert table.value(1) is LatticeValue.CONFLICT
        assert table.verdict(1) is Verdict.NULLABLE

    def test_cycle_terminates(self):
        table = solve(build(3, [
            Subtype(0, 1, ASSIGN), Subtype(1, 2, ASSIGN), Subtype(2, 0, ASSIGN), MustBeNullable(1, NULL),
        ]))
        assert all(table.is_nullable(p) for p in range(3))

    def test_subtype_implication(self):
        tokens = [
            Subtype(0, 1, ASSIGN), Subtype(2, 3, ASSIGN), Subtype(3, 1, ASSIGN),
            MustBeNullable(2, NULL), MustBeNotNull(0, DEREF),
        ]
        table = solve(build(4, tokens))
        for token in tokens:
            if isinstance(token, Subtype) and table.is_nullable(token.sub):
                assert table.is_nullable(token.sup)


class TestFinalization:
    """Phase 4 and diagnostics."""

    def _table(self):
        table = PositionTable()
        table.add(1, PositionKind.RETURN, hint=SourceHint.PRIMITIVE, label="Test.foo")
        table.add(2, PositionKind.CAST, hint=SourceHint.OPAQUE, label="Test.foo@3")
        table.add(3, PositionKind.PARAMETER, hint=SourceHint.EXTERNAL_ANNOTATION, label="Test.find.key")
        return table

    def test_non_inferable_is_not_null(self):
        positions = self._table()
        graph = ConstraintGraph.from_positions(positions)
        graph.extend([Subtype(2, 0, ASSIGN), MustBeNullable(2, NULL)])
        table = Solver(graph, positions).solve()
        assert table.verdict(0) is Verdict.NOT_NULL
        assert table.verdict(1) is Verdict.NOT_NULL

    def test_opaque_diagnostic(self):
        positions = self._table()
        table = Solver(ConstraintGraph.from_positions(positions), positions).solve()
        assert [d.kind for d in table.diagnostics(1)] == [DiagnosticKind.OPAQUE_TYPE]

    def test_oracle_contradiction(self):
        positions = self._table()
        graph = ConstraintGraph.from_positions(positions)
        graph.extend([MustBeNotNull(2, EXT_NOT_NULL), MustBeNullable(2, NULL)])
        table = Solver(graph, positions).solve()
        kinds = {d.kind for d in table.diagnostics(2)}
        assert kinds == {DiagnosticKind.ORACLE_CONTRADICTION, DiagnosticKind.CONFLICT}
        assert table.value(2) is LatticeValue.CONFLICT
        reasons = [c.reason for c in table.explain(2)]
        assert Reason.ORACLE_CONTRADICTION in reasons

    def test_graph_sealed_after_solve(self):
        graph = build(1, [])
        solve(graph)
        assert graph.sealed

    def test_deterministic(self):
        tokens = [Equal(2, 0, ASSIGN), Subtype(1, 2, ASSIGN), MustBeNullable(1, NULL), MustBeNotNull(3, DEREF)]
        first = solve(build(4, tokens))
        second = solve(build(4, tokens))
        for pid in range(4):
            assert first.verdict(pid) is second.verdict(pid)
            assert first.explain(pid) == second.explain(pid)

    def test_monotonic_in_nullable_evidence(self):
        tokens = [Subtype(0, 1, ASSIGN), MustBeNullable(0, NULL), MustBeNotNull(2, DEREF)]
        before = solve(build(3, tokens))
        after = solve(build(3, tokens + [MustBeNullable(2, NULL)]))
        for pid in range(3):
            if before.is_nullable(pid):
                assert after.is_nullable(pid)
