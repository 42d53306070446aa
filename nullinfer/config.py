"""
nullinfer/config.py

Run configuration, built from CLI flags or per-fixture directives.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from nullinfer.library import Library
from nullinfer.oracle import DEFAULT_BUNDLE, AnnotationOracle, load_bundle


@dataclass
class InferenceConfig:
    """
    Attributes:
        smart_casts: Use the guard oracle. When off, every dereference is
            evidence, even behind a null check (over-strict but safe)
        use_default_bundle: Load the shipped JDK annotations bundle
        annotation_bundles: Extra bundle files, consulted before the default
            so their answers take precedence
        trace_solver: Emit the solver's step trace through loguru
    """
    smart_casts: bool = True
    use_default_bundle: bool = True
    annotation_bundles: list[Path] = field(default_factory=list)
    trace_solver: bool = False

    def bundles(self) -> list[dict[str, Any]]:
        """Load the configured bundles, user bundles first so they take precedence."""
        paths = [Path(p) for p in self.annotation_bundles]
        if self.use_default_bundle:
            paths.append(DEFAULT_BUNDLE)
        return [load_bundle(p) for p in paths]

    def build_oracle_and_library(self) -> tuple[AnnotationOracle, Library]:
        bundles = self.bundles()
        return AnnotationOracle.from_bundles(bundles), Library.from_bundles(bundles)
