"""
nullinfer/graph.py

Constraint graph over Position ids.

Nodes are cells holding a LatticeValue; edges are directed subtype
constraints (``super_of``) and undirected equality constraints
(``equalities``). The graph is built additively and sealed before the
solver runs; after ``seal()`` only the solver may update cell values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from nullinfer.errors import SealedGraphError, UnknownPositionError
from nullinfer.evidence import (
    Cause,
    Equal,
    EvidenceToken,
    MustBeNotNull,
    MustBeNullable,
    Subtype,
)
from nullinfer.lattice import LatticeValue, Verdict
from nullinfer.positions import PositionTable

log = logging.getLogger(__name__)


@dataclass
class Cell:
    """
    Mutable state of one Position.

    Attributes:
        value: Current lattice value
        evidence: Causes recorded on this Position, in arrival order
        pins: (value, cause) pairs imposed before solving
        rank: Number of value changes so far; bounded by the lattice height
    """
    value: LatticeValue = LatticeValue.UNKNOWN
    evidence: list[Cause] = field(default_factory=list)
    pins: list[tuple[LatticeValue, Cause]] = field(default_factory=list)
    rank: int = 0


class ConstraintGraph:
    """
    Mapping from Position id to Cell plus the two adjacency relations.

    Example:
        graph = ConstraintGraph()
        graph.add_position(0)
        graph.add_position(1)
        graph.add_subtype(0, 1, Cause(Reason.ASSIGN))
        graph.pin(0, Verdict.NULLABLE, Cause(Reason.NULL_LITERAL))
        graph.seal()
    """

    def __init__(self):
        self._cells: dict[int, Cell] = {}
        self.equalities: dict[int, set[int]] = {}
        self.super_of: dict[int, set[int]] = {}
        self._edge_causes: dict[tuple[int, int], Cause] = {}
        self._equality_causes: dict[tuple[int, int], Cause] = {}
        self._sealed = False

    @classmethod
    def from_positions(cls, positions: PositionTable) -> "ConstraintGraph":
        graph = cls()
        for position in positions:
            graph.add_position(position.id)
        return graph

    # --- Construction ---

    def add_position(self, pid: int) -> None:
        self._check_open("add a position")
        if pid not in self._cells:
            self._cells[pid] = Cell()
            self.equalities[pid] = set()
            self.super_of[pid] = set()

    def pin(self, pid: int, value: Verdict | LatticeValue, cause: Cause) -> None:
        """Impose Nullable or NotNull on a Position."""
        self._check_open("pin a position")
        if isinstance(value, Verdict):
            value = LatticeValue.of(value)
        if value not in (LatticeValue.NULLABLE, LatticeValue.NOT_NULL):
            raise ValueError(f"can only pin Nullable or NotNull, got {value}")
        cell = self._cell(pid)
        cell.pins.append((value, cause))

    def add_equal(self, a: int, b: int, cause: Cause) -> None:
        self._check_open("add an equality")
        self._cell(a)
        self._cell(b)
        if a == b:
            return
        self.equalities[a].add(b)
        self.equalities[b].add(a)
        self._equality_causes.setdefault((min(a, b), max(a, b)), cause)

    def add_subtype(self, sub: int, sup: int, cause: Cause) -> None:
        self._check_open("add a subtype edge")
        self._cell(sub)
        self._cell(sup)
        if sub == sup:
            return
        self.super_of[sub].add(sup)
        self._edge_causes.setdefault((sub, sup), cause)

    def add_evidence(self, token: EvidenceToken) -> None:
        match token:
            case MustBeNullable(position=p, cause=c):
                self.pin(p, LatticeValue.NULLABLE, c)
            case MustBeNotNull(position=p, cause=c):
                self.pin(p, LatticeValue.NOT_NULL, c)
            case Equal(left=a, right=b, cause=c):
                self.add_equal(a, b, c)
            case Subtype(sub=a, sup=b, cause=c):
                self.add_subtype(a, b, c)
            case _:
                raise TypeError(f"not an evidence token: {token!r}")

    def extend(self, tokens: Iterable[EvidenceToken]) -> None:
        for token in tokens:
            self.add_evidence(token)

    def seal(self) -> None:
        if not self._sealed:
            log.debug(f"Sealing graph with {len(self._cells)} positions")
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    # --- Queries ---

    def __contains__(self, pid: object) -> bool:
        return pid in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def position_ids(self) -> Iterator[int]:
        return iter(sorted(self._cells))

    def cell(self, pid: int) -> Cell:
        return self._cell(pid)

    def value_of(self, pid: int) -> LatticeValue:
        return self._cell(pid).value

    def causes_of(self, pid: int) -> list[Cause]:
        cell = self._cell(pid)
        return [cause for _, cause in cell.pins] + list(cell.evidence)

    def edge_cause(self, sub: int, sup: int) -> Optional[Cause]:
        return self._edge_causes.get((sub, sup))

    def equality_cause(self, a: int, b: int) -> Optional[Cause]:
        return self._equality_causes.get((min(a, b), max(a, b)))

    def subtype_edges(self) -> Iterator[tuple[int, int]]:
        for sub in sorted(self.super_of):
            for sup in sorted(self.super_of[sub]):
                yield sub, sup

    def equality_edges(self) -> Iterator[tuple[int, int]]:
        for a in sorted(self.equalities):
            for b in sorted(self.equalities[a]):
                if a < b:
                    yield a, b

    # --- Internals ---

    def _cell(self, pid: int) -> Cell:
        cell = self._cells.get(pid)
        if cell is None:
            raise UnknownPositionError(pid)
        return cell

    def _check_open(self, operation: str) -> None:
        if self._sealed:
            raise SealedGraphError(operation)
