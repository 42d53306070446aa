"""
Test suite for the constraint graph.

Covers construction from a Position table, evidence dispatch, edge
bookkeeping and the sealed-graph invariant.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nullinfer.errors import DuplicateTokenError, InvariantViolation, SealedGraphError, UnknownPositionError
from nullinfer.evidence import (
    Cause,
    Equal,
    MustBeNotNull,
    MustBeNullable,
    Reason,
    Subtype,
    format_token,
    positions_of,
)
from nullinfer.graph import ConstraintGraph
from nullinfer.lattice import LatticeValue, Verdict
from nullinfer.positions import PositionKind, PositionTable

NULL = Cause(Reason.NULL_LITERAL, 3)
DEREF = Cause(Reason.DEREF, 4, ".length()")
ASSIGN = Cause(Reason.ASSIGN, 5)


@pytest.fixture
def graph():
    g = ConstraintGraph()
    for pid in range(4):
        g.add_position(pid)
    return g


class TestConstruction:
    """Building the graph."""

    def test_from_positions(self):
        table = PositionTable()
        table.add(token=10, kind=PositionKind.LOCAL, label="Test.foo.x")
        table.add(token=11, kind=PositionKind.PARAMETER, label="Test.foo.p")
        g = ConstraintGraph.from_positions(table)
        assert len(g) == 2
        assert list(g.position_ids()) == [0, 1]
        assert g.value_of(0) is LatticeValue.UNKNOWN

    def test_duplicate_token_rejected(self):
        table = PositionTable()
        pid = table.add(token=10, kind=PositionKind.LOCAL, label="A.x")
        with pytest.raises(DuplicateTokenError) as excinfo:
            table.add(token=10, kind=PositionKind.FIELD, label="B.y")
        assert excinfo.value.position_id == pid
        assert len(table) == 1

    def test_add_position_idempotent(self, graph):
        graph.add_position(1)
        assert len(graph) == 4

    def test_pins_recorded(self, graph):
        graph.pin(0, Verdict.NULLABLE, NULL)
        graph.pin(0, LatticeValue.NOT_NULL, DEREF)
        assert graph.cell(0).pins == [(LatticeValue.NULLABLE, NULL), (LatticeValue.NOT_NULL, DEREF)]
        assert graph.causes_of(0) == [NULL, DEREF]

    def test_pin_rejects_unknown_and_conflict(self, graph):
        with pytest.raises(ValueError):
            graph.pin(0, LatticeValue.CONFLICT, NULL)

    def test_subtype_edge(self, graph):
        graph.add_subtype(0, 1, ASSIGN)
        assert 1 in graph.super_of[0]
        assert graph.edge_cause(0, 1) == ASSIGN
        assert list(graph.subtype_edges()) == [(0, 1)]

    def test_equality_symmetric(self, graph):
        graph.add_equal(2, 1, ASSIGN)
        assert 1 in graph.equalities[2]
        assert 2 in graph.equalities[1]
        assert graph.equality_cause(1, 2) == ASSIGN
        assert list(graph.equality_edges()) == [(1, 2)]

    def test_self_edges_dropped(self, graph):
        graph.add_subtype(1, 1, ASSIGN)
        graph.add_equal(2, 2, ASSIGN)
        assert not graph.super_of[1]
        assert not graph.equalities[2]


class TestEvidenceDispatch:
    """Evidence tokens map onto graph operations."""

    def test_extend(self, graph):
        graph.extend([
            MustBeNullable(0, NULL),
            MustBeNotNull(1, DEREF),
            Equal(1, 2, ASSIGN),
            Subtype(0, 3, ASSIGN),
        ])
        assert graph.cell(0).pins == [(LatticeValue.NULLABLE, NULL)]
        assert graph.cell(1).pins == [(LatticeValue.NOT_NULL, DEREF)]
        assert 2 in graph.equalities[1]
        assert 3 in graph.super_of[0]

    def test_unknown_position_rejected(self, graph):
        with pytest.raises(UnknownPositionError) as excinfo:
            graph.add_evidence(MustBeNullable(42, NULL))
        assert excinfo.value.position_id == 42

    def test_not_a_token(self, graph):
        with pytest.raises(TypeError):
            graph.add_evidence("x")

    def test_positions_of(self):
        assert positions_of(MustBeNullable(3, NULL)) == (3,)
        assert positions_of(Subtype(1, 2, ASSIGN)) == (1, 2)

    def test_format_token(self):
        assert format_token(MustBeNullable(3, NULL)) == "#3 := Nullable [null-literal-assigned at line 3]"
        assert format_token(Subtype(1, 2, ASSIGN)) == "#1 <: #2 [assign at line 5]"


class TestSealing:
    """Once sealed, only the solver may touch cell values."""

    def test_mutation_after_seal(self, graph):
        graph.seal()
        assert graph.sealed
        with pytest.raises(SealedGraphError):
            graph.add_subtype(0, 1, ASSIGN)
        with pytest.raises(SealedGraphError):
            graph.pin(0, Verdict.NULLABLE, NULL)
        with pytest.raises(SealedGraphError):
            graph.add_position(9)

    def test_sealed_error_is_invariant_violation(self, graph):
        graph.seal()
        with pytest.raises(InvariantViolation):
            graph.add_evidence(Equal(0, 1, ASSIGN))

    def test_seal_idempotent(self, graph):
        graph.seal()
        graph.seal()
        assert graph.sealed
