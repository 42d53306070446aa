"""
nullinfer/evidence.py

Evidence tokens: inert records consumed by the constraint graph.

The variants are a closed tagged union; the graph and the solver dispatch
on them with ``match`` instead of calling methods on the tokens.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TypeAlias


class Reason(Enum):
    """Structured reason attached to every piece of evidence."""
    NULL_LITERAL = "null-literal-assigned"
    ASSIGN = "assign"
    INITIALIZER = "initializer"
    ARGUMENT = "arg"
    RETURN = "return"
    DEREF = "dereferenced-without-check"
    COMPARED_TO_NULL = "compared-to-null"
    EXTERNAL_NULLABLE = "externally-annotated-Nullable"
    EXTERNAL_NOT_NULL = "externally-annotated-NotNull"
    PASSED_TO_ANNOTATED_PARAMETER = "passed-to-annotated-parameter"
    SOURCE_ANNOTATION = "source-annotation"
    CONTAINER_ELEMENT = "container-elem"
    ITERATION = "iteration"
    SPREAD = "spread"
    LAMBDA_PARAMETER = "lambda-parameter"
    LAMBDA_RETURN = "lambda-return"
    CAST = "cast"
    TYPE_ARGUMENT = "type-argument"
    SUPER_DECLARATION = "super-declaration"
    NEW_INSTANCE = "new-instance"
    USED_AS_CONDITION = "used-as-condition"
    USED_AS_OPERAND = "used-as-operand"
    UNBOXED = "unboxed"
    PRIMITIVE = "primitive"
    OPAQUE = "opaque"
    SMART_CAST = "smart-cast"
    LITERAL = "literal"
    ORACLE_CONTRADICTION = "oracle-contradiction"
    CONFLICT = "conflict"

    @property
    def is_external(self) -> bool:
        return self in (Reason.EXTERNAL_NULLABLE, Reason.EXTERNAL_NOT_NULL)


@dataclass(frozen=True)
class Cause:
    """
    Why a piece of evidence exists.

    Attributes:
        reason: Structured reason
        line: Source line of the expression that produced it (0 if none)
        detail: Free text, e.g. the called member
        source: Position the nullability flowed from (propagated causes only)
    """
    reason: Reason
    line: int = 0
    detail: str = ""
    source: Optional[int] = None

    def __str__(self) -> str:
        text = self.reason.value
        if self.detail:
            text += f" ({self.detail})"
        if self.line:
            text += f" at line {self.line}"
        if self.source is not None:
            text += f" via #{self.source}"
        return text

    def flowing_from(self, source: int) -> "Cause":
        return Cause(self.reason, self.line, self.detail, source)


@dataclass(frozen=True)
class MustBeNullable:
    position: int
    cause: Cause


@dataclass(frozen=True)
class MustBeNotNull:
    position: int
    cause: Cause


@dataclass(frozen=True)
class Equal:
    left: int
    right: int
    cause: Cause


@dataclass(frozen=True)
class Subtype:
    sub: int
    sup: int
    cause: Cause


EvidenceToken: TypeAlias = MustBeNullable | MustBeNotNull | Equal | Subtype


def positions_of(token: EvidenceToken) -> tuple[int, ...]:
    """Position ids an evidence token refers to."""
    match token:
        case MustBeNullable(position=p) | MustBeNotNull(position=p):
            return (p,)
        case Equal(left=a, right=b):
            return (a, b)
        case Subtype(sub=a, sup=b):
            return (a, b)
    raise TypeError(f"not an evidence token: {token!r}")


def format_token(token: EvidenceToken) -> str:
    """One-line rendering used by traces and the CLI."""
    match token:
        case MustBeNullable(position=p, cause=c):
            return f"#{p} := Nullable [{c}]"
        case MustBeNotNull(position=p, cause=c):
            return f"#{p} := NotNull [{c}]"
        case Equal(left=a, right=b, cause=c):
            return f"#{a} == #{b} [{c}]"
        case Subtype(sub=a, sup=b, cause=c):
            return f"#{a} <: #{b} [{c}]"
    raise TypeError(f"not an evidence token: {token!r}")
