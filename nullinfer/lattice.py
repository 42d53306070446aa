# nullinfer/lattice.py
"""
Nullability lattice used by the constraint solver.

This module provides:
- LatticeValue: the four-element diamond every Position cell lives in
- Verdict: the two-valued result published to the translator
"""
from __future__ import annotations

from enum import Enum


# --- Nullability lattice ------------------------------------------------------
#
#            CONFLICT
#            /      \
#      NULLABLE    NOT_NULL
#            \      /
#            UNKNOWN


class Verdict(Enum):
    """Final nullability of a Position after the solver has finished."""

    NULLABLE = "Nullable"
    NOT_NULL = "NotNull"

    def __str__(self) -> str:
        return self.value


class LatticeValue(Enum):
    """
    Lattice element held by a constraint graph cell.

    Lattice structure (4-element diamond):
        UNKNOWN  = no evidence yet
        NULLABLE = some value flowing here may be null
        NOT_NULL = the slot is required to be non-null
        CONFLICT = both of the above

    NULLABLE and NOT_NULL are incomparable. Their join is CONFLICT.
    CONFLICT is absorbing for join.
    """

    UNKNOWN = "Unknown"
    NULLABLE = "Nullable"
    NOT_NULL = "NotNull"
    CONFLICT = "Conflict"

    def __str__(self) -> str:
        return self.value

    # --- Lattice operations ---

    def __le__(self, other: "LatticeValue") -> bool:
        """
        Lattice ordering:
            UNKNOWN ≤ everything
            everything ≤ CONFLICT
            NULLABLE and NOT_NULL are incomparable
        """
        if not isinstance(other, LatticeValue):
            return NotImplemented
        if self is LatticeValue.UNKNOWN or other is LatticeValue.CONFLICT:
            return True
        return self is other

    def __lt__(self, other: "LatticeValue") -> bool:
        if not isinstance(other, LatticeValue):
            return NotImplemented
        return self <= other and self is not other

    def __or__(self, other: "LatticeValue") -> "LatticeValue":
        """
        Join (least upper bound).

        Join table:
            UNKNOWN ⊔ x = x
            CONFLICT ⊔ x = CONFLICT
            NULLABLE ⊔ NULLABLE = NULLABLE
            NOT_NULL ⊔ NOT_NULL = NOT_NULL
            NULLABLE ⊔ NOT_NULL = CONFLICT
        """
        if self <= other:
            return other
        if other <= self:
            return self
        return LatticeValue.CONFLICT

    def join(self, other: "LatticeValue") -> "LatticeValue":
        return self | other

    # --- Predicates ---

    def admits_null(self) -> bool:
        """True when a null may flow into a slot holding this value."""
        return self in (LatticeValue.NULLABLE, LatticeValue.CONFLICT)

    def finalize(self) -> Verdict:
        """
        Collapse the lattice value into a verdict.

        UNKNOWN defaults to NOT_NULL (the stricter target type), CONFLICT
        resolves to NULLABLE.
        """
        if self.admits_null():
            return Verdict.NULLABLE
        return Verdict.NOT_NULL

    @classmethod
    def of(cls, verdict: Verdict) -> "LatticeValue":
        """The lattice value a pin with the given verdict imposes."""
        if verdict is Verdict.NULLABLE:
            return cls.NULLABLE
        return cls.NOT_NULL
