"""Java frontend: tree-sitter parsing, typed AST and null-check dominance."""

from nullinfer.syntaxer.guards import GuardOracle
from nullinfer.syntaxer.java_frontend import JavaFrontend, parse_java

__all__ = ["GuardOracle", "JavaFrontend", "parse_java"]
