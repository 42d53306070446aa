"""
Test suite for the nullability lattice.

Covers the diamond ordering, join table, absorbing Conflict and the
finalization policy used when verdicts are published.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nullinfer.lattice import LatticeValue, Verdict

UNKNOWN = LatticeValue.UNKNOWN
NULLABLE = LatticeValue.NULLABLE
NOT_NULL = LatticeValue.NOT_NULL
CONFLICT = LatticeValue.CONFLICT

ALL = [UNKNOWN, NULLABLE, NOT_NULL, CONFLICT]


class TestOrdering:
    """Partial order of the diamond."""

    def test_unknown_is_bottom(self):
        for value in ALL:
            assert UNKNOWN <= value

    def test_conflict_is_top(self):
        for value in ALL:
            assert value <= CONFLICT

    def test_nullable_and_not_null_incomparable(self):
        assert not NULLABLE <= NOT_NULL
        assert not NOT_NULL <= NULLABLE

    def test_strict_order(self):
        assert UNKNOWN < NULLABLE
        assert NULLABLE < CONFLICT
        assert not NULLABLE < NULLABLE


class TestJoin:
    """Least upper bound."""

    @pytest.mark.parametrize("left,right,expected", [
        (UNKNOWN, UNKNOWN, UNKNOWN),
        (UNKNOWN, NULLABLE, NULLABLE),
        (NOT_NULL, UNKNOWN, NOT_NULL),
        (NULLABLE, NULLABLE, NULLABLE),
        (NOT_NULL, NOT_NULL, NOT_NULL),
        (NULLABLE, NOT_NULL, CONFLICT),
        (NOT_NULL, NULLABLE, CONFLICT),
    ])
    def test_join_table(self, left, right, expected):
        assert left | right is expected
        assert left.join(right) is expected

    def test_conflict_absorbing(self):
        for value in ALL:
            assert CONFLICT | value is CONFLICT
            assert value | CONFLICT is CONFLICT

    def test_join_commutative(self):
        for a in ALL:
            for b in ALL:
                assert a | b is b | a

    def test_join_is_upper_bound(self):
        for a in ALL:
            for b in ALL:
                assert a <= a | b
                assert b <= a | b


class TestFinalize:
    """Collapsing lattice values into verdicts."""

    def test_unknown_defaults_to_not_null(self):
        assert UNKNOWN.finalize() is Verdict.NOT_NULL

    def test_conflict_resolves_to_nullable(self):
        assert CONFLICT.finalize() is Verdict.NULLABLE

    def test_plain_values(self):
        assert NULLABLE.finalize() is Verdict.NULLABLE
        assert NOT_NULL.finalize() is Verdict.NOT_NULL

    def test_admits_null(self):
        assert NULLABLE.admits_null()
        assert CONFLICT.admits_null()
        assert not NOT_NULL.admits_null()
        assert not UNKNOWN.admits_null()

    def test_of_verdict(self):
        assert LatticeValue.of(Verdict.NULLABLE) is NULLABLE
        assert LatticeValue.of(Verdict.NOT_NULL) is NOT_NULL

    def test_string_forms(self):
        assert str(CONFLICT) == "Conflict"
        assert str(Verdict.NOT_NULL) == "NotNull"
