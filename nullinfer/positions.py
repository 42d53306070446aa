"""
nullinfer/positions.py

Positions: one nullable-bearing slot in a declared type.

The PositionTable is the arena. Type nodes of the typed AST refer to it
only through their identity token, so the AST never owns a Position and
a Position never owns its AST node.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from nullinfer.errors import DuplicateTokenError, UnknownPositionError


class PositionKind(Enum):
    """Where a Position sits relative to its declaration."""
    LOCAL = "local"
    FIELD = "field"
    PARAMETER = "parameter"
    RETURN = "return"
    CAST = "cast"
    NEW_INSTANCE = "new"
    CALL_TYPE_ARGUMENT = "type-argument"
    SUPERTYPE = "supertype"
    BOUND = "bound"
    # Child slots of a composite type
    TYPE_ARGUMENT_OF = "type-argument-of"
    ELEMENT_OF = "element-of"
    FUNCTION_PARAM_OF = "function-param-of"
    FUNCTION_RETURN_OF = "function-return-of"

    @property
    def is_child(self) -> bool:
        return self in (
            PositionKind.TYPE_ARGUMENT_OF,
            PositionKind.ELEMENT_OF,
            PositionKind.FUNCTION_PARAM_OF,
            PositionKind.FUNCTION_RETURN_OF,
        )


class SourceHint(Enum):
    """Optional provenance of a Position's type."""
    EXTERNAL_ANNOTATION = "external-annotation"
    PRIMITIVE = "primitive"
    PLATFORM = "platform"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class Position:
    """
    A single nullable-bearing slot.

    Attributes:
        id: Stable id, assigned in pre-order over the typed AST
        token: Identity token of the TypeRef this Position was derived from
        kind: Role of the slot (see PositionKind)
        parent: Id of the enclosing composite Position for child slots
        index: Slot index inside the parent (type argument / function param)
        hint: Optional source hint
        label: Human readable owner path, e.g. "Test.foo.x"
        line: 1-based source line of the type node
    """
    id: int
    token: int
    kind: PositionKind
    parent: Optional[int] = None
    index: Optional[int] = None
    hint: Optional[SourceHint] = None
    label: str = ""
    line: int = 0

    @property
    def inferable(self) -> bool:
        """Primitive and opaque slots never take part in inference."""
        return self.hint not in (SourceHint.PRIMITIVE, SourceHint.OPAQUE)

    def describe(self) -> str:
        if self.kind.is_child:
            suffix = f"[{self.index}]" if self.index is not None else ""
            return f"#{self.id} {self.kind.value}(#{self.parent}){suffix}"
        return f"#{self.id} {self.kind.value} {self.label}"


class PositionTable:
    """
    Arena of Positions plus the AST-token index.

    Example:
        table = PositionTable()
        pid = table.add(token=7, kind=PositionKind.LOCAL, label="Foo.x")
        table.for_token(7).id == pid
    """

    def __init__(self):
        self._positions: list[Position] = []
        self._by_token: dict[int, int] = {}
        self._children: dict[int, list[int]] = {}

    def add(
        self,
        token: int,
        kind: PositionKind,
        parent: Optional[int] = None,
        index: Optional[int] = None,
        hint: Optional[SourceHint] = None,
        label: str = "",
        line: int = 0,
    ) -> int:
        """
        Create a Position for a type node and return its id.

        Raises:
            DuplicateTokenError: If the token already has a Position
        """
        if token in self._by_token:
            raise DuplicateTokenError(token, self._by_token[token])
        pid = len(self._positions)
        self._positions.append(
            Position(pid, token, kind, parent, index, hint, label, line)
        )
        self._by_token[token] = pid
        if parent is not None:
            self._children.setdefault(parent, []).append(pid)
        return pid

    def __getitem__(self, pid: int) -> Position:
        if not 0 <= pid < len(self._positions):
            raise UnknownPositionError(pid)
        return self._positions[pid]

    def __contains__(self, pid: object) -> bool:
        return isinstance(pid, int) and 0 <= pid < len(self._positions)

    def __iter__(self) -> Iterator[Position]:
        return iter(self._positions)

    def __len__(self) -> int:
        return len(self._positions)

    def id_for_token(self, token: Optional[int]) -> Optional[int]:
        """Position id of an AST type node, or None if it has none."""
        if token is None:
            return None
        return self._by_token.get(token)

    def for_token(self, token: int) -> Position:
        pid = self._by_token.get(token)
        if pid is None:
            raise KeyError(f"no position for type node {token}")
        return self._positions[pid]

    def children_of(self, pid: int) -> list[int]:
        return list(self._children.get(pid, ()))

    def roots(self) -> Iterator[Position]:
        """Positions that are not a child slot of another Position."""
        return (p for p in self._positions if p.parent is None)
