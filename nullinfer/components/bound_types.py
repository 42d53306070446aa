"""
nullinfer/components/bound_types.py

Nullability shape of an expression, and the builder that turns flows
between shapes into evidence tokens.

A BoundType mirrors a type with a *label* on every slot instead of a
nullability. A label is one of:

  - PositionLabel   the slot is a Position of the input
  - LiteralLabel    the slot has a fixed value (null literal, new object,
                    primitive, smart-cast name, externally annotated call)
  - JoinLabel       either of several labels (``c ? a : b``)
  - UNBOUND         nothing is known (unresolved call, library type)

``ConstraintBuilder.subtype(value, target)`` emits what a flow of
``value`` into ``target`` implies: Subtype edges between Positions,
MustBeNullable when a nullable literal reaches a Position, MustBeNotNull
when a Position reaches a non-null literal slot. Invariant children are
related by Equal, covariant children (function returns, ``? extends``)
by Subtype.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, TypeAlias

from nullinfer.evidence import (
    Cause,
    Equal,
    EvidenceToken,
    MustBeNotNull,
    MustBeNullable,
    Reason,
    Subtype,
)
from nullinfer.lattice import LatticeValue
from nullinfer.positions import PositionTable
from nullinfer.syntaxer.nodes import TypeConstructor, TypeRef
from nullinfer.syntaxer.types import ARRAY_CLASS, function_shape


@dataclass(frozen=True)
class PositionLabel:
    position: int


@dataclass(frozen=True)
class LiteralLabel:
    value: LatticeValue
    cause: Cause


@dataclass(frozen=True)
class JoinLabel:
    alternatives: tuple["Label", ...]


@dataclass(frozen=True)
class UnboundLabel:
    pass


UNBOUND = UnboundLabel()

Label: TypeAlias = PositionLabel | LiteralLabel | JoinLabel | UnboundLabel


class Variance(Enum):
    INVARIANT = "invariant"
    OUT = "out"


@dataclass(frozen=True)
class BoundType:
    """
    Attributes:
        label: Nullability label of the outer slot
        class_name: Qualified class of the value ("[]" for arrays, "" if unknown)
        arguments: Child slots (type arguments, array element, function slots)
        variances: Variance of each child slot
    """
    label: Label = UNBOUND
    class_name: str = ""
    arguments: tuple["BoundType", ...] = ()
    variances: tuple[Variance, ...] = ()

    def argument(self, index: int) -> "BoundType":
        if 0 <= index < len(self.arguments):
            return self.arguments[index]
        return UNBOUND_TYPE

    def with_label(self, label: Label) -> "BoundType":
        return replace(self, label=label)

    def variance(self, index: int) -> Variance:
        if index < len(self.variances):
            return self.variances[index]
        return Variance.INVARIANT

    @property
    def is_array(self) -> bool:
        return self.class_name == ARRAY_CLASS


UNBOUND_TYPE = BoundType()


def not_null(cause: Cause, class_name: str = "", arguments: tuple[BoundType, ...] = ()) -> BoundType:
    return BoundType(LiteralLabel(LatticeValue.NOT_NULL, cause), class_name, arguments)


def nullable(cause: Cause, class_name: str = "") -> BoundType:
    return BoundType(LiteralLabel(LatticeValue.NULLABLE, cause), class_name)


def array_of(element: BoundType, cause: Cause) -> BoundType:
    return BoundType(LiteralLabel(LatticeValue.NOT_NULL, cause), ARRAY_CLASS, (element,), (Variance.INVARIANT,))


def join_types(shapes: list[BoundType]) -> BoundType:
    """
    Shape of a value that is one of ``shapes``.

    The outer label joins every alternative; the class and child slots come
    from the first shape that has any.
    """
    if len(shapes) == 1:
        return shapes[0]
    shape = next((s for s in shapes if s.class_name or s.arguments), shapes[-1])
    return replace(shape, label=JoinLabel(tuple(s.label for s in shapes)))


def bound_of_type(
    ref: Optional[TypeRef],
    positions: PositionTable,
    env: Optional[dict[str, BoundType]] = None,
) -> BoundType:
    """
    Shape of a written (or library) type.

    Type variables found in ``env`` are replaced by their binding; other
    slots are labelled with their Position, or UNBOUND for library types.
    """
    if ref is None:
        return UNBOUND_TYPE
    env = env or {}

    match ref.constructor:
        case TypeConstructor.PRIMITIVE:
            return not_null(Cause(Reason.UNBOXED, ref.line, ref.name), ref.name)
        case TypeConstructor.TYPE_PARAMETER if ref.name in env:
            return env[ref.name]
        case TypeConstructor.WILDCARD:
            if not ref.arguments:
                return UNBOUND_TYPE
            return bound_of_type(ref.arguments[0], positions, env)

    pid = positions.id_for_token(ref.token)
    label: Label = PositionLabel(pid) if pid is not None else UNBOUND

    if ref.constructor is TypeConstructor.OPAQUE:
        return BoundType(label, ref.qualified_name)

    arguments = tuple(bound_of_type(arg, positions, env) for arg in ref.arguments)
    variances = tuple(
        Variance.OUT if arg.constructor is TypeConstructor.WILDCARD and arg.variance == "out"
        else Variance.INVARIANT
        for arg in ref.arguments
    )
    if ref.constructor is TypeConstructor.FUNCTION:
        shape = function_shape(ref.qualified_name, len(ref.arguments))
        if shape is not None and shape.returns is not None:
            variances = tuple(
                Variance.OUT if i == shape.returns else v for i, v in enumerate(variances)
            )
    return BoundType(label, ref.qualified_name, arguments, variances)


Upcast = Callable[[BoundType, str], Optional[BoundType]]


class ConstraintBuilder:
    """
    Collects evidence tokens, dropping duplicates and self edges.

    Args:
        upcast: Maps a value shape to the shape of one of its supertypes,
            so that ``ArrayList<E>`` can flow into ``List<E>`` slot by slot
    """

    def __init__(self, upcast: Optional[Upcast] = None):
        self.tokens: list[EvidenceToken] = []
        self._seen: set[EvidenceToken] = set()
        self.upcast = upcast

    def emit(self, token: EvidenceToken) -> None:
        if token not in self._seen:
            self._seen.add(token)
            self.tokens.append(token)

    # --- Single Positions ---

    def require_nullable(self, label: Label, cause: Cause) -> None:
        for pid in positions_in(label):
            self.emit(MustBeNullable(pid, cause))

    def require_not_null(self, label: Label, cause: Cause) -> None:
        for pid in positions_in(label):
            self.emit(MustBeNotNull(pid, cause))

    # --- Flows ---

    def subtype(self, value: BoundType, target: BoundType, cause: Cause) -> None:
        """``value`` flows into a slot of shape ``target``."""
        self._flow(value.label, target.label, cause)
        value = self._align(value, target)
        if value is None:
            return
        for i, (sub, sup) in enumerate(zip(value.arguments, target.arguments)):
            if target.variance(i) is Variance.OUT:
                self.subtype(sub, sup, cause)
            else:
                self.equal(sub, sup, cause)

    def equal(self, left: BoundType, right: BoundType, cause: Cause) -> None:
        self._same(left.label, right.label, cause)
        aligned = self._align(left, right)
        if aligned is None:
            aligned_right = self._align(right, left)
            if aligned_right is None:
                return
            left, right = aligned_right, left
        else:
            left = aligned
        for sub, sup in zip(left.arguments, right.arguments):
            self.equal(sub, sup, cause)

    def _align(self, value: BoundType, target: BoundType) -> Optional[BoundType]:
        if not value.arguments or not target.arguments:
            return None
        if value.class_name == target.class_name or not value.class_name or not target.class_name:
            return value
        if self.upcast is None:
            return None
        return self.upcast(value, target.class_name)

    def _flow(self, sub: Label, sup: Label, cause: Cause) -> None:
        match sub, sup:
            case JoinLabel(alternatives=alternatives), _:
                for alternative in alternatives:
                    self._flow(alternative, sup, cause)
            case _, JoinLabel(alternatives=alternatives):
                for alternative in alternatives:
                    self._flow(sub, alternative, cause)
            case PositionLabel(position=a), PositionLabel(position=b):
                if a != b:
                    self.emit(Subtype(a, b, cause))
            case LiteralLabel(value=LatticeValue.NULLABLE, cause=why), PositionLabel(position=b):
                self.emit(MustBeNullable(b, why))
            case PositionLabel(position=a), LiteralLabel(value=LatticeValue.NOT_NULL, cause=why):
                self.emit(MustBeNotNull(a, why))

    def _same(self, left: Label, right: Label, cause: Cause) -> None:
        match left, right:
            case JoinLabel(alternatives=alternatives), _:
                for alternative in alternatives:
                    self._same(alternative, right, cause)
            case _, JoinLabel(alternatives=alternatives):
                for alternative in alternatives:
                    self._same(left, alternative, cause)
            case PositionLabel(position=a), PositionLabel(position=b):
                if a != b:
                    self.emit(Equal(min(a, b), max(a, b), cause))
            case (LiteralLabel(value=value, cause=why), PositionLabel(position=p)) | (
                PositionLabel(position=p), LiteralLabel(value=value, cause=why)
            ):
                self._pin(p, value, why)

    def _pin(self, pid: int, value: LatticeValue, cause: Cause) -> None:
        if value is LatticeValue.NULLABLE:
            self.emit(MustBeNullable(pid, cause))
        elif value is LatticeValue.NOT_NULL:
            self.emit(MustBeNotNull(pid, cause))


def positions_in(label: Label) -> list[int]:
    """Position ids a label stands for."""
    match label:
        case PositionLabel(position=pid):
            return [pid]
        case JoinLabel(alternatives=alternatives):
            return [pid for alternative in alternatives for pid in positions_in(alternative)]
    return []
