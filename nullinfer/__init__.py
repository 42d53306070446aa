"""
nullinfer - nullability inference for Java-to-Kotlin translation.

Decides, for every written type position of a set of Java sources, whether
the translated Kotlin type should be nullable.

    from nullinfer import infer_source, render_canonical

    result = infer_source("class Test { String s = null; }")
    print(render_canonical(result.units, result.positions, result.verdicts))
"""

from loguru import logger

from nullinfer.config import InferenceConfig
from nullinfer.engine import InferenceResult, InferenceRun, infer_files, infer_source, infer_units
from nullinfer.errors import (
    AnnotationBundleError,
    DuplicateTokenError,
    FixtureError,
    FrontendError,
    InvariantViolation,
    NullInferError,
    PhaseOrderError,
    SealedGraphError,
    UnknownPositionError,
)
from nullinfer.lattice import LatticeValue, Verdict
from nullinfer.renderer import render_canonical, render_explain, render_json
from nullinfer.verdicts import Diagnostic, DiagnosticKind, VerdictTable

# solver step traces stay silent unless a caller enables them
logger.disable("nullinfer")

__all__ = [
    "AnnotationBundleError",
    "Diagnostic",
    "DiagnosticKind",
    "DuplicateTokenError",
    "FixtureError",
    "FrontendError",
    "InferenceConfig",
    "InferenceResult",
    "InferenceRun",
    "InvariantViolation",
    "LatticeValue",
    "NullInferError",
    "PhaseOrderError",
    "SealedGraphError",
    "UnknownPositionError",
    "Verdict",
    "VerdictTable",
    "infer_files",
    "infer_source",
    "infer_units",
    "render_canonical",
    "render_explain",
    "render_json",
]
