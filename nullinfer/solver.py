"""
nullinfer/solver.py

Monotonic worklist solver for the nullability constraint graph.

Phases:
    1. Initialize every cell from its pins (join of the pinned values).
    2. Saturate equalities with union-find; the lowest id represents the
       class and the class value is the join of its members.
    3. Propagate Nullable from sub to sup along ``super_of`` edges with a
       FIFO worklist ordered by Position id. NotNull never flows upward.
    4. Finalize: Unknown -> NotNull, Conflict -> Nullable, non-inferable
       Positions -> NotNull.

Each pin, union and propagation step is traced through loguru at DEBUG
level.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from loguru import logger

from nullinfer.errors import InvariantViolation
from nullinfer.evidence import Cause, Reason
from nullinfer.graph import ConstraintGraph
from nullinfer.lattice import LatticeValue, Verdict
from nullinfer.positions import PositionTable, SourceHint
from nullinfer.verdicts import Diagnostic, DiagnosticKind, VerdictTable

# Lattice height; a cell can change value at most this many times.
MAX_RANK = 2


class UnionFind:
    """
    Union-find over Position ids with path compression.

    The representative of a class is always its lowest id, so class
    identity does not depend on the order unions are performed in.
    """

    def __init__(self, ids: Iterable[int] = ()):
        self._parent: dict[int, int] = {}
        for pid in ids:
            self._parent[pid] = pid

    def add(self, pid: int) -> None:
        self._parent.setdefault(pid, pid)

    def find(self, pid: int) -> int:
        self.add(pid)
        root = pid
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[pid] != root:
            self._parent[pid], pid = root, self._parent[pid]
        return root

    def union(self, a: int, b: int) -> int:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return ra
        root, child = (ra, rb) if ra < rb else (rb, ra)
        self._parent[child] = root
        return root

    def classes(self) -> dict[int, list[int]]:
        """Representative -> sorted members."""
        members: dict[int, list[int]] = {}
        for pid in sorted(self._parent):
            members.setdefault(self.find(pid), []).append(pid)
        return members


class Solver:
    """
    Solve a constraint graph to a fixpoint and publish verdicts.

    Args:
        graph: Graph to solve; sealed on entry to ``solve``
        positions: Position table, used to detect non-inferable slots

    Example:
        table = Solver(graph, positions).solve()
        table.verdict(pid)
    """

    def __init__(self, graph: ConstraintGraph, positions: Optional[PositionTable] = None):
        self.graph = graph
        self.positions = positions
        self.union_find = UnionFind(graph.position_ids())
        self.members: dict[int, list[int]] = {}
        self.diagnostics: list[Diagnostic] = []
        self.steps = 0

    def solve(self) -> VerdictTable:
        self.graph.seal()
        self._initialize()
        self._saturate_equalities()
        self._propagate()
        return self._finalize()

    # ====================================================================
    # PHASE 1: pins
    # ====================================================================

    def _initialize(self) -> None:
        for pid in self.graph.position_ids():
            cell = self.graph.cell(pid)
            value = LatticeValue.UNKNOWN
            for pinned, cause in cell.pins:
                value = value | pinned
                self._step(f"pin #{pid} {pinned} [{cause}] -> {value}")
            cell.value = value
            cell.rank = 0

    # ====================================================================
    # PHASE 2: equality classes
    # ====================================================================

    def _saturate_equalities(self) -> None:
        for a, b in self.graph.equality_edges():
            ra, rb = self.union_find.find(a), self.union_find.find(b)
            if ra != rb:
                root = self.union_find.union(a, b)
                self._step(f"union #{a} ~ #{b} -> rep #{root}")

        self.members = self.union_find.classes()
        for rep, members in self.members.items():
            value = LatticeValue.UNKNOWN
            for member in members:
                value = value | self.graph.cell(member).value
            self.graph.cell(rep).value = value
            self._check_oracle_contradiction(members)

    def _check_oracle_contradiction(self, members: list[int]) -> None:
        pins = [
            (member, value, cause)
            for member in members
            for value, cause in self.graph.cell(member).pins
        ]
        external = [(m, v, c) for m, v, c in pins if c.reason.is_external]
        if not external:
            return
        for member, value, cause in external:
            opposing = [c for _, v, c in pins if v is not value]
            if opposing:
                message = f"{cause} contradicts {opposing[0]}"
                self.diagnostics.append(
                    Diagnostic(DiagnosticKind.ORACLE_CONTRADICTION, member, message)
                )
                self._step(f"oracle contradiction on #{member}: {message}")

    # ====================================================================
    # PHASE 3: propagation along super_of
    # ====================================================================

    def _propagate(self) -> None:
        worklist = deque(
            rep for rep in sorted(self.members)
            if self.graph.cell(rep).value.admits_null()
        )
        while worklist:
            rep = worklist.popleft()
            for member in self.members[rep]:
                for sup in sorted(self.graph.super_of[member]):
                    target = self.union_find.find(sup)
                    if target == rep:
                        continue
                    cell = self.graph.cell(target)
                    if cell.value.admits_null():
                        continue
                    new_value = cell.value | LatticeValue.NULLABLE
                    cell.value = new_value
                    cell.rank += 1
                    if cell.rank > MAX_RANK:
                        raise InvariantViolation(
                            f"position #{target} changed value more than {MAX_RANK} times"
                        )
                    edge_cause = self.graph.edge_cause(member, sup) or Cause(Reason.ASSIGN)
                    self.graph.cell(sup).evidence.append(edge_cause.flowing_from(member))
                    self._step(f"propagate #{member} <: #{sup} -> #{target} = {new_value}")
                    worklist.append(target)

    # ====================================================================
    # PHASE 4: finalization
    # ====================================================================

    def _finalize(self) -> VerdictTable:
        verdicts: dict[int, Verdict] = {}
        values: dict[int, LatticeValue] = {}
        causes: dict[int, tuple[Cause, ...]] = {}
        class_causes: dict[int, tuple[Cause, ...]] = {}

        for rep, members in self.members.items():
            collected: list[Cause] = []
            for member in members:
                collected.extend(self.graph.causes_of(member))
            class_causes[rep] = tuple(collected)

        for pid in self.graph.position_ids():
            rep = self.union_find.find(pid)
            value = self.graph.cell(rep).value
            self.graph.cell(pid).value = value
            values[pid] = value
            causes[pid] = class_causes[rep]

            position = self.positions[pid] if self.positions is not None else None
            if position is not None and not position.inferable:
                verdicts[pid] = Verdict.NOT_NULL
                if position.hint is SourceHint.OPAQUE:
                    self.diagnostics.append(
                        Diagnostic(DiagnosticKind.OPAQUE_TYPE, pid, "type is not inferable")
                    )
                continue

            verdicts[pid] = value.finalize()
            if value is LatticeValue.CONFLICT:
                reasons = sorted({c.reason.value for c in class_causes[rep]})
                self.diagnostics.append(
                    Diagnostic(DiagnosticKind.CONFLICT, pid, ", ".join(reasons))
                )

        self.diagnostics.sort(key=lambda d: (d.position, d.kind.value))
        logger.debug(f"Solved {len(verdicts)} positions in {self.steps} steps")
        return VerdictTable(verdicts, values, causes, self.diagnostics, self.positions)

    def _step(self, message: str) -> None:
        self.steps += 1
        logger.debug(f"STEP {self.steps}: {message}")


def solve(graph: ConstraintGraph, positions: Optional[PositionTable] = None) -> VerdictTable:
    """Convenience wrapper around ``Solver(graph, positions).solve()``."""
    return Solver(graph, positions).solve()
