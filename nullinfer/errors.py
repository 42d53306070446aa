"""
nullinfer/errors.py

Exception hierarchy for the inference engine.

Only programming errors and unusable inputs are raised. Everything the
engine can reason about (opaque types, contradicting annotations,
conflicting evidence) is reported as a diagnostic on the affected
Position instead.
"""

from __future__ import annotations


class NullInferError(Exception):
    """Base class for all errors raised by nullinfer."""


class InvariantViolation(NullInferError):
    """An internal invariant was broken by the caller."""


class SealedGraphError(InvariantViolation):
    """A structural mutation was attempted on a sealed constraint graph."""

    def __init__(self, operation: str):
        super().__init__(f"cannot {operation}: constraint graph is sealed")
        self.operation = operation


class DuplicateTokenError(InvariantViolation):
    """Two type nodes handed to one enumeration share an identity token."""

    def __init__(self, token: int, position_id: int):
        super().__init__(f"type node token {token} already has position {position_id}")
        self.token = token
        self.position_id = position_id


class UnknownPositionError(InvariantViolation):
    """Evidence referenced a Position id that was never enumerated."""

    def __init__(self, position_id: int):
        super().__init__(f"unknown position id {position_id}")
        self.position_id = position_id


class PhaseOrderError(InvariantViolation):
    """An inference phase was started before the phase it depends on."""


class AnnotationBundleError(NullInferError):
    """An external-annotation bundle could not be loaded."""


class FrontendError(NullInferError):
    """A source file could not be read or lowered."""


class FixtureError(NullInferError):
    """The fixture catalog and the fixture directory disagree."""

    def __init__(self, missing_entries: list[str], missing_files: list[str]):
        parts = []
        if missing_entries:
            parts.append("fixtures without catalog entry: " + ", ".join(missing_entries))
        if missing_files:
            parts.append("catalog entries without file: " + ", ".join(missing_files))
        super().__init__("; ".join(parts))
        self.missing_entries = missing_entries
        self.missing_files = missing_files
