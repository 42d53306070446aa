"""
nullinfer/components/enumerator.py

Type-position enumerator.

Walks the typed AST in pre-order and gives every written type node one
Position. Composite types get one Position for the outer constructor and
one per child slot:

    Map<String, int[]>      #0 local
      String                #1 type-argument-of(#0)[0]
      int[]                 #2 type-argument-of(#0)[1]
        int                 #3 element-of(#2)

Wildcards have no Position of their own; a bounded wildcard's bound takes
the wildcard's slot. Ids depend only on traversal order, so re-running on
the same input yields the same ids.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from nullinfer.library import Library
from nullinfer.oracle import AnnotationOracle, parameter_kind
from nullinfer.positions import PositionKind, PositionTable, SourceHint
from nullinfer.syntaxer.nodes import (
    ClassDecl,
    CompilationUnit,
    DeclKind,
    Lambda,
    MethodDecl,
    Node,
    TypeConstructor,
    TypeParameter,
    TypeRef,
    TypeRole,
    VarDecl,
    child_nodes,
)
from nullinfer.syntaxer.types import function_shape

log = logging.getLogger(__name__)

ROOT_KINDS = {
    TypeRole.LOCAL: PositionKind.LOCAL,
    TypeRole.FIELD: PositionKind.FIELD,
    TypeRole.PARAMETER: PositionKind.PARAMETER,
    TypeRole.RETURN: PositionKind.RETURN,
    TypeRole.CAST: PositionKind.CAST,
    TypeRole.NEW_INSTANCE: PositionKind.NEW_INSTANCE,
    TypeRole.CALL_TYPE_ARGUMENT: PositionKind.CALL_TYPE_ARGUMENT,
    TypeRole.SUPERTYPE: PositionKind.SUPERTYPE,
    TypeRole.BOUND: PositionKind.BOUND,
}


class PositionEnumerator:
    """
    Assign Positions to every type node of a set of compilation units.

    Args:
        oracle: Used to mark declarations with external annotations
        library: Used to mark platform types (classes from the library)
    """

    def __init__(self, oracle: Optional[AnnotationOracle] = None, library: Optional[Library] = None):
        self.oracle = oracle or AnnotationOracle()
        self.library = library or Library()
        self.table = PositionTable()

    def enumerate(self, units: Iterable[CompilationUnit]) -> PositionTable:
        for unit in units:
            for cls in unit.classes:
                self._visit(cls, "", None)
        log.debug(f"Enumerated {len(self.table)} positions")
        return self.table

    # --- Traversal ---

    def _visit(self, node: Node, scope: str, owner: Optional[tuple[str, str]]) -> None:
        """
        Pre-order visit.

        ``scope`` is the label prefix of the enclosing declaration and
        ``owner`` the (class, member) key the oracle knows it by.
        """
        if isinstance(node, ClassDecl):
            label = f"{scope}.{node.name}" if scope else node.name
            for child in child_nodes(node):
                if isinstance(child, MethodDecl):
                    self._visit(child, label, (node.qualified_name, child.name))
                elif isinstance(child, VarDecl):
                    self._visit(child, label, (node.qualified_name, child.name))
                else:
                    self._visit(child, label, None)
            return

        if isinstance(node, MethodDecl):
            label = f"{scope}.{node.name}"
            for child in child_nodes(node):
                if child is node.return_type:
                    self._root(child, label, self._oracle_key(owner, "return"))
                else:
                    self._visit(child, label, owner)
            return

        if isinstance(node, VarDecl):
            if node.type is not None:
                key = None
                if node.kind is DeclKind.FIELD:
                    key = self._oracle_key(owner, "field")
                elif node.kind is DeclKind.PARAMETER and node.index >= 0:
                    key = self._oracle_key(owner, parameter_kind(node.index))
                self._root(node.type, f"{scope}.{node.name}", key)
            if node.initializer is not None:
                self._visit(node.initializer, scope, None)
            return

        if isinstance(node, TypeParameter):
            for bound in node.bounds:
                self._root(bound, f"{scope}.{node.name}", None)
            return

        if isinstance(node, Lambda):
            label = f"{scope}.<lambda>"
            for child in child_nodes(node):
                self._visit(child, label, None)
            return

        if isinstance(node, TypeRef):
            if node.role is TypeRole.SUPERTYPE:
                self._root(node, scope, None)
            else:
                self._root(node, f"{scope}@{node.line}", None)
            return

        for child in child_nodes(node):
            self._visit(child, scope, owner)

    def _oracle_key(self, owner: Optional[tuple[str, str]], kind: str) -> Optional[tuple[str, str, str]]:
        if owner is None:
            return None
        return owner[0], owner[1], kind

    # --- Positions ---

    def _root(self, ref: TypeRef, label: str, key: Optional[tuple[str, str, str]]) -> int:
        kind = ROOT_KINDS.get(ref.role, PositionKind.LOCAL)
        hint = self._hint(ref)
        if hint in (None, SourceHint.PLATFORM) and key is not None and self.oracle.knows(*key):
            hint = SourceHint.EXTERNAL_ANNOTATION
        pid = self.table.add(ref.token, kind, hint=hint, label=label, line=ref.line)
        self._children(ref, pid, label)
        return pid

    def _slot(self, ref: TypeRef, kind: PositionKind, parent: int, index: Optional[int], label: str) -> None:
        if ref.constructor is TypeConstructor.WILDCARD:
            # the bound inherits the wildcard's slot
            for bound in ref.arguments:
                self._slot(bound, kind, parent, index, label)
            return
        pid = self.table.add(ref.token, kind, parent, index, self._hint(ref), label, ref.line)
        self._children(ref, pid, label)

    def _children(self, ref: TypeRef, pid: int, label: str) -> None:
        if ref.constructor is TypeConstructor.ARRAY:
            for element in ref.arguments:
                self._slot(element, PositionKind.ELEMENT_OF, pid, None, label)
        elif ref.constructor is TypeConstructor.FUNCTION:
            shape = function_shape(ref.qualified_name, len(ref.arguments))
            for i, argument in enumerate(ref.arguments):
                if shape is not None and i == shape.returns:
                    self._slot(argument, PositionKind.FUNCTION_RETURN_OF, pid, None, label)
                elif shape is not None:
                    self._slot(argument, PositionKind.FUNCTION_PARAM_OF, pid, shape.parameters.index(i), label)
        elif ref.constructor is TypeConstructor.CLASS:
            for i, argument in enumerate(ref.arguments):
                self._slot(argument, PositionKind.TYPE_ARGUMENT_OF, pid, i, label)

    def _hint(self, ref: TypeRef) -> Optional[SourceHint]:
        if ref.constructor is TypeConstructor.PRIMITIVE:
            return SourceHint.PRIMITIVE
        if ref.constructor is TypeConstructor.OPAQUE:
            return SourceHint.OPAQUE
        if ref.constructor in (TypeConstructor.CLASS, TypeConstructor.FUNCTION) and ref.qualified_name in self.library:
            return SourceHint.PLATFORM
        return None


def enumerate_positions(
    units: Iterable[CompilationUnit],
    oracle: Optional[AnnotationOracle] = None,
    library: Optional[Library] = None,
) -> PositionTable:
    """Enumerate the Positions of ``units`` into a fresh table."""
    return PositionEnumerator(oracle, library).enumerate(units)
