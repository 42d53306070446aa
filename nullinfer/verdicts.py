"""
nullinfer/verdicts.py

Read-only verdict mapping published to the translator.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Optional

from nullinfer.errors import UnknownPositionError
from nullinfer.evidence import Cause, Reason
from nullinfer.lattice import LatticeValue, Verdict
from nullinfer.positions import PositionTable


class DiagnosticKind(Enum):
    OPAQUE_TYPE = "opaque-type"
    CONFLICT = "conflict"
    ORACLE_CONTRADICTION = "oracle-contradiction"


_DIAGNOSTIC_REASONS = {
    DiagnosticKind.CONFLICT: Reason.CONFLICT,
    DiagnosticKind.ORACLE_CONTRADICTION: Reason.ORACLE_CONTRADICTION,
}


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal condition recorded on a Position."""
    kind: DiagnosticKind
    position: int
    message: str

    def __str__(self) -> str:
        return f"#{self.position}: {self.kind.value}: {self.message}"


class VerdictTable(Mapping):
    """
    Sealed mapping from Position id to Verdict.

    ``verdict`` is what the translator consults when emitting a type;
    ``explain`` lists the causes behind it, including diagnostics.
    """

    def __init__(
        self,
        verdicts: dict[int, Verdict],
        values: dict[int, LatticeValue],
        causes: dict[int, tuple[Cause, ...]],
        diagnostics: list[Diagnostic],
        positions: Optional[PositionTable] = None,
    ):
        self._verdicts = MappingProxyType(dict(verdicts))
        self._values = MappingProxyType(dict(values))
        self._causes = MappingProxyType(dict(causes))
        self._diagnostics = tuple(diagnostics)
        self.positions = positions

    # --- Mapping protocol ---

    def __getitem__(self, pid: int) -> Verdict:
        return self.verdict(pid)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._verdicts))

    def __len__(self) -> int:
        return len(self._verdicts)

    def __contains__(self, pid: object) -> bool:
        return pid in self._verdicts

    # --- Accessors ---

    def verdict(self, pid: int) -> Verdict:
        try:
            return self._verdicts[pid]
        except KeyError:
            raise UnknownPositionError(pid) from None

    def value(self, pid: int) -> LatticeValue:
        """Fixpoint lattice value before finalization."""
        try:
            return self._values[pid]
        except KeyError:
            raise UnknownPositionError(pid) from None

    def explain(self, pid: int) -> list[Cause]:
        """Causes behind a verdict, ordered by Position id then arrival."""
        if pid not in self._verdicts:
            raise UnknownPositionError(pid)
        causes = list(self._causes.get(pid, ()))
        for diagnostic in self.diagnostics(pid):
            reason = _DIAGNOSTIC_REASONS.get(diagnostic.kind)
            if reason is not None:
                causes.append(Cause(reason, detail=diagnostic.message))
        return causes

    def diagnostics(self, pid: Optional[int] = None) -> list[Diagnostic]:
        if pid is None:
            return list(self._diagnostics)
        return [d for d in self._diagnostics if d.position == pid]

    def is_nullable(self, pid: int) -> bool:
        return self.verdict(pid) is Verdict.NULLABLE

    def for_token(self, token: int) -> Optional[Verdict]:
        """Verdict of the Position derived from an AST type node."""
        if self.positions is None:
            return None
        pid = self.positions.id_for_token(token)
        if pid is None:
            return None
        return self.verdict(pid)
