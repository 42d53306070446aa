"""
nullinfer/renderer.py

Renders verdicts as Kotlin-style types.

The canonical form has one line per root Position in id order:

    field Test.x: String?
    parameter Test.foo.p: List<String>
    return Test.foo: ((Int) -> String?)?  // nullability conflict

It is what fixture goldens are compared against, so it must stay stable.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from nullinfer.lattice import LatticeValue, Verdict
from nullinfer.positions import Position, PositionTable, SourceHint
from nullinfer.syntaxer.nodes import CompilationUnit, TypeConstructor, TypeRef, walk
from nullinfer.syntaxer.types import KOTLIN_CLASSES, KOTLIN_PRIMITIVES, function_shape
from nullinfer.verdicts import VerdictTable

CONFLICT_SUFFIX = "  // nullability conflict"
OPAQUE_SUFFIX = "  // opaque type"


def type_nodes(units: Iterable[CompilationUnit]) -> dict[int, TypeRef]:
    """Index every tokened type node by its token."""
    nodes = {}
    for unit in units:
        for node in walk(unit):
            if isinstance(node, TypeRef) and node.token is not None:
                nodes[node.token] = node
    return nodes


class KotlinRenderer:
    """
    Spell typed-AST types in Kotlin with the solver's nullability.

    Args:
        positions: Position table of the run
        verdicts: Sealed verdicts of the run
    """

    def __init__(self, positions: PositionTable, verdicts: VerdictTable):
        self.positions = positions
        self.verdicts = verdicts

    def _nullable(self, ref: TypeRef) -> bool:
        pid = self.positions.id_for_token(ref.token)
        return pid is not None and self.verdicts.verdict(pid) is Verdict.NULLABLE

    def render(self, ref: TypeRef) -> str:
        mark = "?" if self._nullable(ref) else ""

        match ref.constructor:
            case TypeConstructor.PRIMITIVE:
                return KOTLIN_PRIMITIVES.get(ref.name, ref.name)
            case TypeConstructor.OPAQUE:
                return (ref.text or ref.name) + mark
            case TypeConstructor.WILDCARD:
                if not ref.arguments:
                    return "*"
                return f"{ref.variance or 'out'} {self.render(ref.arguments[0])}"
            case TypeConstructor.TYPE_PARAMETER:
                return ref.name + mark
            case TypeConstructor.ARRAY:
                element = ref.arguments[0]
                if element.constructor is TypeConstructor.PRIMITIVE:
                    return KOTLIN_PRIMITIVES[element.name] + "Array" + mark
                return f"Array<{self.render(element)}>{mark}"
            case TypeConstructor.FUNCTION:
                text = self._function(ref)
                return f"({text})?" if mark else text

        name = KOTLIN_CLASSES.get(ref.qualified_name, ref.name)
        if ref.arguments:
            name += "<" + ", ".join(self.render(arg) for arg in ref.arguments) + ">"
        return name + mark

    def _function(self, ref: TypeRef) -> str:
        shape = function_shape(ref.qualified_name, len(ref.arguments))
        if shape is None:
            return ref.name
        params = ", ".join(self.render(ref.arguments[i]) for i in shape.parameters)
        if shape.returns is not None:
            returns = self.render(ref.arguments[shape.returns])
        else:
            returns = shape.fixed_return or "Unit"
        return f"({params}) -> {returns}"

    def line(self, position: Position, ref: TypeRef) -> str:
        text = f"{position.kind.value} {position.label}: {self.render(ref)}"
        if self.verdicts.value(position.id) is LatticeValue.CONFLICT:
            text += CONFLICT_SUFFIX
        if position.hint is SourceHint.OPAQUE:
            text += OPAQUE_SUFFIX
        return text


def render_canonical(
    units: Iterable[CompilationUnit],
    positions: PositionTable,
    verdicts: VerdictTable,
) -> str:
    """Canonical text form, one line per root Position."""
    nodes = type_nodes(units)
    renderer = KotlinRenderer(positions, verdicts)
    lines = []
    for position in positions.roots():
        ref = nodes.get(position.token)
        if ref is not None:
            lines.append(renderer.line(position, ref))
    return "\n".join(lines) + "\n" if lines else ""


def render_explain(positions: PositionTable, verdicts: VerdictTable, pid: Optional[int] = None) -> str:
    """
    Every Position with its verdict and the causes behind it.

    Example:
        #3 parameter Test.foo.p: Nullable
            null-literal-assigned at line 7 via #5
    """
    selected = [positions[pid]] if pid is not None else list(positions)
    lines = []
    for position in selected:
        lines.append(f"{position.describe()}: {verdicts.verdict(position.id)}")
        for cause in verdicts.explain(position.id):
            lines.append(f"    {cause}")
    return "\n".join(lines) + "\n" if lines else ""


def verdicts_as_dict(path: str, positions: PositionTable, verdicts: VerdictTable) -> dict[str, Any]:
    return {
        "file": path,
        "positions": [
            {
                "id": position.id,
                "kind": position.kind.value,
                "label": position.label,
                "line": position.line,
                "parent": position.parent,
                "index": position.index,
                "hint": position.hint.value if position.hint else None,
                "value": verdicts.value(position.id).value,
                "verdict": verdicts.verdict(position.id).value,
                "causes": [str(cause) for cause in verdicts.explain(position.id)],
            }
            for position in positions
        ],
        "diagnostics": [
            {"position": d.position, "kind": d.kind.value, "message": d.message}
            for d in verdicts.diagnostics()
        ],
    }


def render_json(path: str, positions: PositionTable, verdicts: VerdictTable) -> str:
    return json.dumps(verdicts_as_dict(path, positions, verdicts), indent=2)
