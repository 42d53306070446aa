"""
nullinfer/syntaxer/guards.py

Null-check dominance over the typed AST.

A local or parameter ``x`` is guarded at an expression when every path
to that expression passes a check proving ``x`` non-null and no
assignment to ``x`` intervenes. Recognised checks:

  - ``x != null`` / ``x == null`` (and ``null != x``)
  - ``x instanceof T``
  - ``!``, ``&&`` and ``||`` combinations of the above

Guarded regions are the branches of ``if``, ``while``/``for`` bodies,
the right-hand side of ``&&``/``||``, the branches of ``?:``, and the
rest of a block after ``if (x == null) return/throw``.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from nullinfer.syntaxer.nodes import (
    Assign,
    Binary,
    Block,
    ClassDecl,
    CompilationUnit,
    Conditional,
    DeclKind,
    ExpressionStatement,
    For,
    ForEach,
    If,
    InstanceOf,
    Jump,
    Lambda,
    LocalClass,
    LocalVariable,
    NameRef,
    NewObject,
    Node,
    Return,
    Switch,
    Synchronized,
    Throw,
    Try,
    Unary,
    VarDecl,
    While,
    child_nodes,
    is_null_literal,
    walk,
)

log = logging.getLogger(__name__)

# Facts: declaration proven non-null -> the check that proved it
Facts = Mapping[VarDecl, Node]

NO_FACTS: Facts = {}


def _tracked(expr: Optional[Node]) -> Optional[VarDecl]:
    if isinstance(expr, NameRef) and expr.decl is not None:
        if expr.decl.kind in (DeclKind.LOCAL, DeclKind.PARAMETER):
            return expr.decl
    return None


def _union(known: Facts, extra: Facts) -> Facts:
    if not extra:
        return known
    return {**known, **extra}


def _without(known: Facts, killed: set[VarDecl]) -> Facts:
    if not killed or not any(decl in known for decl in killed):
        return known
    return {decl: check for decl, check in known.items() if decl not in killed}


def condition_facts(condition: Node) -> tuple[Facts, Facts]:
    """Facts that hold when ``condition`` is true and when it is false."""
    if isinstance(condition, Binary):
        if condition.operator in ("==", "!="):
            decl = None
            if is_null_literal(condition.right):
                decl = _tracked(condition.left)
            elif is_null_literal(condition.left):
                decl = _tracked(condition.right)
            if decl is None:
                return NO_FACTS, NO_FACTS
            facts = {decl: condition}
            return (facts, NO_FACTS) if condition.operator == "!=" else (NO_FACTS, facts)
        if condition.operator == "&&":
            left_true, left_false = condition_facts(condition.left)
            right_true, right_false = condition_facts(condition.right)
            return _union(left_true, right_true), {
                d: c for d, c in left_false.items() if d in right_false
            }
        if condition.operator == "||":
            left_true, left_false = condition_facts(condition.left)
            right_true, right_false = condition_facts(condition.right)
            return {d: c for d, c in left_true.items() if d in right_true}, _union(left_false, right_false)
    if isinstance(condition, Unary) and condition.operator == "!":
        when_true, when_false = condition_facts(condition.operand)
        return when_false, when_true
    if isinstance(condition, InstanceOf):
        decl = _tracked(condition.expression)
        if decl is not None:
            return {decl: condition}, NO_FACTS
    return NO_FACTS, NO_FACTS


def assigned_in(node: Optional[Node]) -> set[VarDecl]:
    """Declarations written anywhere below ``node``."""
    killed: set[VarDecl] = set()
    if node is None:
        return killed
    for child in walk(node):
        if isinstance(child, Assign) and isinstance(child.target, NameRef) and child.target.decl is not None:
            killed.add(child.target.decl)
        elif isinstance(child, LocalVariable):
            killed.update(child.declarations)
    return killed


def always_exits(stmt: Optional[Node]) -> bool:
    """Whether control never falls through ``stmt``."""
    if isinstance(stmt, (Return, Throw, Jump)):
        return True
    if isinstance(stmt, Block):
        return any(always_exits(s) for s in stmt.statements)
    if isinstance(stmt, If):
        return stmt.otherwise is not None and always_exits(stmt.then) and always_exits(stmt.otherwise)
    return False


class GuardOracle:
    """
    Answers dominance queries about null checks.

    Args:
        units: Compilation units to analyse
        enabled: When False no expression is ever guarded, so every
            dereference counts as evidence

    Example:
        guards = GuardOracle(units)
        guards.is_smart_cast(name_ref)
    """

    def __init__(self, units: Iterable[CompilationUnit] = (), enabled: bool = True):
        self.enabled = enabled
        self._facts: dict[Node, Facts] = {}
        if enabled:
            for unit in units:
                for cls in unit.classes:
                    self._visit_class(cls, NO_FACTS)
            log.debug(f"Guard analysis recorded facts for {len(self._facts)} expressions")

    def guards_of(self, expr: Node) -> Facts:
        return self._facts.get(expr, NO_FACTS)

    def is_guarded_by(self, check: Node, expr: Node) -> bool:
        """True when ``check`` proves some variable non-null at ``expr``."""
        return any(c is check for c in self.guards_of(expr).values())

    def is_smart_cast(self, ref: Node) -> bool:
        """True for a name reference whose variable is proven non-null here."""
        decl = _tracked(ref)
        return decl is not None and decl in self.guards_of(ref)

    # --- Traversal ---

    def _visit_class(self, cls: ClassDecl, known: Facts) -> None:
        for decl in cls.fields:
            if decl.initializer is not None:
                self._expr(decl.initializer, known)
        for method in cls.methods:
            if method.body is not None:
                self._stmt(method.body, known)
        for nested in cls.nested:
            self._visit_class(nested, NO_FACTS)

    def _stmt(self, stmt: Optional[Node], known: Facts) -> Facts:
        """Visit a statement; returns the facts holding after it."""
        if stmt is None:
            return known

        if isinstance(stmt, Block):
            for child in stmt.statements:
                known = self._stmt(child, known)
            return known

        if isinstance(stmt, LocalVariable):
            for decl in stmt.declarations:
                if decl.initializer is not None:
                    self._expr(decl.initializer, known)
            return _without(known, set(stmt.declarations))

        if isinstance(stmt, ExpressionStatement):
            self._expr(stmt.expression, known)
            return _without(known, assigned_in(stmt.expression))

        if isinstance(stmt, If):
            self._expr(stmt.condition, known)
            when_true, when_false = condition_facts(stmt.condition)
            self._stmt(stmt.then, _union(known, when_true))
            self._stmt(stmt.otherwise, _union(known, when_false))
            after = _without(known, assigned_in(stmt.then) | assigned_in(stmt.otherwise))
            if always_exits(stmt.then) and not always_exits(stmt.otherwise):
                return _union(after, when_false)
            if stmt.otherwise is not None and always_exits(stmt.otherwise) and not always_exits(stmt.then):
                return _union(after, when_true)
            return after

        if isinstance(stmt, While):
            entry = _without(known, assigned_in(stmt.body) | assigned_in(stmt.condition))
            self._expr(stmt.condition, entry)
            when_true, when_false = condition_facts(stmt.condition)
            self._stmt(stmt.body, _union(entry, when_true))
            return entry if stmt.do_while else _union(entry, when_false)

        if isinstance(stmt, For):
            for init in stmt.init:
                known = self._stmt(init, known)
            killed = assigned_in(stmt.body) | assigned_in(stmt.condition)
            for update in stmt.update:
                killed |= assigned_in(update)
            entry = _without(known, killed)
            when_true, when_false = NO_FACTS, NO_FACTS
            if stmt.condition is not None:
                self._expr(stmt.condition, entry)
                when_true, when_false = condition_facts(stmt.condition)
            self._stmt(stmt.body, _union(entry, when_true))
            for update in stmt.update:
                self._expr(update, entry)
            return _union(entry, when_false)

        if isinstance(stmt, ForEach):
            self._expr(stmt.iterable, known)
            entry = _without(known, assigned_in(stmt.body) | {stmt.variable})
            self._stmt(stmt.body, entry)
            return entry

        if isinstance(stmt, Try):
            killed = assigned_in(stmt.body)
            for resource in stmt.resources:
                if resource.initializer is not None:
                    self._expr(resource.initializer, known)
            self._stmt(stmt.body, known)
            for catch in stmt.catches:
                killed |= assigned_in(catch.body)
                self._stmt(catch.body, _without(known, killed))
            self._stmt(stmt.finally_block, _without(known, killed))
            return _without(known, killed | assigned_in(stmt.finally_block))

        if isinstance(stmt, Switch):
            self._expr(stmt.selector, known)
            entry = known
            for child in stmt.body:
                entry = _without(entry, assigned_in(child))
            for child in stmt.body:
                self._stmt(child, entry)
            return entry

        if isinstance(stmt, Synchronized):
            self._expr(stmt.lock, known)
            return self._stmt(stmt.body, known)

        if isinstance(stmt, LocalClass):
            self._visit_class(stmt.declaration, NO_FACTS)
            return known

        if isinstance(stmt, (Return, Throw)):
            value = stmt.value if isinstance(stmt, Return) else stmt.expression
            if value is not None:
                self._expr(value, known)
            return known

        for child in child_nodes(stmt):
            self._expr(child, known)
        return known

    def _expr(self, expr: Node, known: Facts) -> None:
        self._facts[expr] = known

        if isinstance(expr, Binary) and expr.operator in ("&&", "||"):
            self._expr(expr.left, known)
            when_true, when_false = condition_facts(expr.left)
            self._expr(expr.right, _union(known, when_true if expr.operator == "&&" else when_false))
            return

        if isinstance(expr, Conditional):
            self._expr(expr.condition, known)
            when_true, when_false = condition_facts(expr.condition)
            self._expr(expr.then, _union(known, when_true))
            self._expr(expr.otherwise, _union(known, when_false))
            return

        if isinstance(expr, Assign):
            self._expr(expr.value, known)
            self._expr(expr.target, known)
            return

        if isinstance(expr, Lambda):
            if isinstance(expr.body, Block):
                self._stmt(expr.body, known)
            elif expr.body is not None:
                self._expr(expr.body, known)
            return

        if isinstance(expr, NewObject) and expr.body is not None:
            for argument in expr.arguments:
                self._expr(argument, known)
            self._visit_class(expr.body, known)
            return

        for child in child_nodes(expr):
            if isinstance(child, Block):
                self._stmt(child, known)
            else:
                self._expr(child, known)
