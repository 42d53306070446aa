"""
nullinfer/engine.py

One inference run over a set of compilation units.

The run is phased: enumerate -> collect -> build_graph -> solve. Each
phase runs to completion before the next may start; a caller can stop
between phases (cooperative cancellation) and simply drop the run.
Nothing is shared between runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from nullinfer.components.collector import EvidenceCollector
from nullinfer.components.enumerator import PositionEnumerator
from nullinfer.components.resolver import Resolver
from nullinfer.config import InferenceConfig
from nullinfer.errors import PhaseOrderError
from nullinfer.evidence import EvidenceToken
from nullinfer.graph import ConstraintGraph
from nullinfer.library import Library
from nullinfer.oracle import AnnotationOracle
from nullinfer.positions import PositionTable
from nullinfer.solver import Solver
from nullinfer.syntaxer.guards import GuardOracle
from nullinfer.syntaxer.java_frontend import JavaFrontend
from nullinfer.syntaxer.nodes import CompilationUnit
from nullinfer.verdicts import VerdictTable

log = logging.getLogger(__name__)


class Phase(Enum):
    NEW = 0
    ENUMERATED = 1
    COLLECTED = 2
    GRAPH_BUILT = 3
    SOLVED = 4


@dataclass
class InferenceResult:
    """Everything a run produced, for rendering and inspection."""
    units: list[CompilationUnit]
    positions: PositionTable
    evidence: list[EvidenceToken]
    graph: ConstraintGraph
    verdicts: VerdictTable


class InferenceRun:
    """
    Phased inference over compilation units.

    Example:
        run = InferenceRun(units, config)
        run.enumerate()
        run.collect()
        run.build_graph()
        verdicts = run.solve()
    """

    def __init__(
        self,
        units: Iterable[CompilationUnit],
        config: Optional[InferenceConfig] = None,
        oracle: Optional[AnnotationOracle] = None,
        library: Optional[Library] = None,
    ):
        self.config = config or InferenceConfig()
        if oracle is None or library is None:
            default_oracle, default_library = self.config.build_oracle_and_library()
            oracle = oracle or default_oracle
            library = library or default_library
        self.oracle = oracle
        self.library = library
        self.units = list(units)
        self.phase = Phase.NEW
        self.positions: Optional[PositionTable] = None
        self.evidence: list[EvidenceToken] = []
        self.graph: Optional[ConstraintGraph] = None
        self.verdicts: Optional[VerdictTable] = None

    def _enter(self, required: Phase, name: str) -> None:
        if self.phase is not required:
            raise PhaseOrderError(
                f"cannot {name}: run is {self.phase.name.lower()}, expected {required.name.lower()}"
            )

    def enumerate(self) -> PositionTable:
        self._enter(Phase.NEW, "enumerate")
        self.positions = PositionEnumerator(self.oracle, self.library).enumerate(self.units)
        self.phase = Phase.ENUMERATED
        return self.positions

    def collect(self) -> list[EvidenceToken]:
        self._enter(Phase.ENUMERATED, "collect evidence")
        resolver = Resolver(self.units, self.library, self.positions)
        guards = GuardOracle(self.units, enabled=self.config.smart_casts)
        collector = EvidenceCollector(self.positions, self.oracle, resolver, guards)
        self.evidence = collector.collect(self.units)
        self.phase = Phase.COLLECTED
        return self.evidence

    def build_graph(self) -> ConstraintGraph:
        self._enter(Phase.COLLECTED, "build the graph")
        graph = ConstraintGraph.from_positions(self.positions)
        graph.extend(self.evidence)
        self.graph = graph
        self.phase = Phase.GRAPH_BUILT
        return graph

    def solve(self) -> VerdictTable:
        self._enter(Phase.GRAPH_BUILT, "solve")
        if self.config.trace_solver:
            logger.enable("nullinfer")
        try:
            self.verdicts = Solver(self.graph, self.positions).solve()
        finally:
            if self.config.trace_solver:
                logger.disable("nullinfer")
        self.phase = Phase.SOLVED
        log.info(
            f"Solved {len(self.positions)} positions from {len(self.evidence)} evidence tokens "
            f"({len(self.verdicts.diagnostics())} diagnostics)"
        )
        return self.verdicts

    def run(self) -> InferenceResult:
        """Run all remaining phases."""
        if self.phase is Phase.NEW:
            self.enumerate()
        if self.phase is Phase.ENUMERATED:
            self.collect()
        if self.phase is Phase.COLLECTED:
            self.build_graph()
        if self.phase is Phase.GRAPH_BUILT:
            self.solve()
        return InferenceResult(self.units, self.positions, self.evidence, self.graph, self.verdicts)


def infer_units(
    units: Iterable[CompilationUnit],
    config: Optional[InferenceConfig] = None,
    oracle: Optional[AnnotationOracle] = None,
    library: Optional[Library] = None,
) -> InferenceResult:
    return InferenceRun(units, config, oracle, library).run()


def infer_files(paths: Iterable[str | Path], config: Optional[InferenceConfig] = None) -> InferenceResult:
    """Parse Java files into one unit set and run inference over it."""
    config = config or InferenceConfig()
    oracle, library = config.build_oracle_and_library()
    frontend = JavaFrontend(library.classes)
    units = [frontend.parse_file(path) for path in paths]
    return InferenceRun(units, config, oracle, library).run()


def infer_source(text: str, config: Optional[InferenceConfig] = None, path: str = "Test.java") -> InferenceResult:
    """Parse one Java source string and run inference over it."""
    config = config or InferenceConfig()
    oracle, library = config.build_oracle_and_library()
    unit = JavaFrontend(library.classes).parse_source(text, path)
    return InferenceRun([unit], config, oracle, library).run()
