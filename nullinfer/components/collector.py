"""
nullinfer/components/collector.py

Evidence collector.

Walks every declaration, statement and expression of the typed AST and
translates its semantics into evidence tokens over the Positions of the
enumerator. Each expression is given a BoundType (its nullability shape)
and each value flow into a slot goes through ``ConstraintBuilder.subtype``.

Rules by construct:

    null literal in a slot            MustBeNullable(slot)       null-literal-assigned
    x = e / T x = e / return e        Subtype(e, x)              assign / initializer / return
    f(a1..an)                         Subtype(ai, pi)            arg
    e.m() / e.f / e[i] / for (: e)    MustBeNotNull(e)           dereferenced-without-check
    e == null / e != null             MustBeNullable(e)          compared-to-null
    if (e) / while (e) / c ? : ...    MustBeNotNull(e)           used-as-condition
    e + 1, -e, x += e                 MustBeNotNull(e)           used-as-operand
    { a, b } / new T[]{ a, b }        Subtype(ai, element)       container-elem
    lambda                            Equal(params), Subtype(return)
    f(array) into T...                Equal(element, vararg)     spread
    (T) e                             Subtype(e, T)              cast

Dereferences of a name guarded by a null check (smart casts) emit nothing.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from nullinfer.components.bound_types import (
    UNBOUND,
    UNBOUND_TYPE,
    BoundType,
    ConstraintBuilder,
    LiteralLabel,
    array_of,
    bound_of_type,
    join_types,
    not_null,
)
from nullinfer.components.resolver import MemberTarget, Resolver, Signature
from nullinfer.evidence import Cause, EvidenceToken, MustBeNotNull, MustBeNullable, Reason
from nullinfer.lattice import LatticeValue
from nullinfer.library import LibraryField
from nullinfer.oracle import AnnotationOracle, Nullability, parameter_kind
from nullinfer.positions import PositionKind, PositionTable, SourceHint
from nullinfer.syntaxer.guards import GuardOracle
from nullinfer.syntaxer.nodes import (
    ArrayAccess,
    ArrayInit,
    Assign,
    Binary,
    Block,
    Cast,
    ClassDecl,
    CompilationUnit,
    Conditional,
    ConstructorCall,
    Expr,
    ExpressionStatement,
    FieldAccess,
    For,
    ForEach,
    If,
    InstanceOf,
    Jump,
    Lambda,
    Literal,
    LocalClass,
    LocalVariable,
    MethodCall,
    MethodDecl,
    MethodReference,
    NameRef,
    NewArray,
    NewObject,
    Node,
    NullLiteral,
    OpaqueExpression,
    OtherStatement,
    Return,
    Switch,
    Synchronized,
    This,
    Throw,
    Try,
    TypeConstructor,
    TypeName,
    TypeRef,
    Unary,
    VarDecl,
    While,
    is_null_literal,
    walk,
)
from nullinfer.syntaxer.types import function_shape

log = logging.getLogger(__name__)

NULLABLE_ANNOTATIONS = frozenset({"Nullable", "CheckForNull"})
NOT_NULL_ANNOTATIONS = frozenset({"NotNull", "NonNull", "Nonnull"})

LITERAL_CLASSES = {
    "string": "java.lang.String",
    "int": "int",
    "float": "double",
    "char": "char",
    "boolean": "boolean",
    "class": "java.lang.Class",
}

STRING = "java.lang.String"


def _short(qualified_name: str) -> str:
    return qualified_name.rsplit(".", 1)[-1]


class EvidenceCollector:
    """
    Emit evidence for a set of compilation units.

    Args:
        positions: Position table from the enumerator
        oracle: External-annotation oracle
        resolver: Member resolution over in-file classes and the library
        guards: Null-check dominance; smart casts are off when disabled

    Example:
        collector = EvidenceCollector(positions, oracle, resolver, guards)
        tokens = collector.collect(units)
    """

    def __init__(
        self,
        positions: PositionTable,
        oracle: AnnotationOracle,
        resolver: Resolver,
        guards: GuardOracle,
    ):
        self.positions = positions
        self.oracle = oracle
        self.resolver = resolver
        self.guards = guards
        self.builder = ConstraintBuilder(upcast=resolver.as_super)
        self._decl_bounds: dict[VarDecl, BoundType] = {}
        self._classes: list[ClassDecl] = []
        # Return slot and reason of the enclosing method or lambda
        self._returns: list[tuple[Optional[BoundType], Reason]] = []

    def collect(self, units: Iterable[CompilationUnit]) -> list[EvidenceToken]:
        units = list(units)
        self._structural_pins(units)
        for unit in units:
            for cls in unit.classes:
                self._visit_class(cls)
        log.debug(f"Collected {len(self.builder.tokens)} evidence tokens")
        return list(self.builder.tokens)

    # ====================================================================
    # Structural pins
    # ====================================================================

    def _structural_pins(self, units: list[CompilationUnit]) -> None:
        refs: dict[int, TypeRef] = {}
        for unit in units:
            for node in walk(unit):
                if isinstance(node, TypeRef) and node.token is not None:
                    refs[node.token] = node

        for position in self.positions:
            ref = refs.get(position.token)
            if ref is None:
                continue
            if position.hint is SourceHint.PRIMITIVE:
                self.builder.emit(MustBeNotNull(position.id, Cause(Reason.PRIMITIVE, ref.line, ref.name)))
            elif position.hint is SourceHint.OPAQUE:
                self.builder.emit(MustBeNotNull(position.id, Cause(Reason.OPAQUE, ref.line, ref.text)))
            if position.kind is PositionKind.NEW_INSTANCE:
                self.builder.emit(MustBeNotNull(position.id, Cause(Reason.NEW_INSTANCE, ref.line)))
            for annotation in ref.annotations:
                cause = Cause(Reason.SOURCE_ANNOTATION, ref.line, f"@{annotation}")
                if annotation in NULLABLE_ANNOTATIONS:
                    self.builder.emit(MustBeNullable(position.id, cause))
                elif annotation in NOT_NULL_ANNOTATIONS:
                    self.builder.emit(MustBeNotNull(position.id, cause))

    # ====================================================================
    # Declarations
    # ====================================================================

    def _visit_class(self, cls: ClassDecl, extra_supertypes: tuple[BoundType, ...] = ()) -> None:
        self._classes.append(cls)
        for decl in cls.fields:
            bound = self._decl_bound(decl)
            self._oracle_pin(bound, cls.qualified_name, decl.name, "field", decl.line)
            if decl.initializer is not None:
                self._flow(decl.initializer, bound, Cause(Reason.INITIALIZER, decl.line, decl.name))
        for method in cls.methods:
            self._visit_method(cls, method, extra_supertypes)
        for nested in cls.nested:
            self._visit_class(nested)
        self._classes.pop()

    def _visit_method(self, cls: ClassDecl, method: MethodDecl, extra_supertypes: tuple[BoundType, ...]) -> None:
        returns = bound_of_type(method.return_type, self.positions)
        if method.return_type is not None:
            self._oracle_pin(returns, cls.qualified_name, method.name, "return", method.line)
        for param in method.parameters:
            declared = bound_of_type(param.type, self.positions)
            self._oracle_pin(declared, cls.qualified_name, method.name, parameter_kind(param.index), param.line)

        if not method.is_constructor and not method.is_static:
            for parent, env in self.resolver.overridden(cls, method, extra_supertypes):
                cause = Cause(Reason.SUPER_DECLARATION, method.line, f"{_short(parent.owner)}.{parent.name}")
                if method.return_type is not None and parent.return_type is not None:
                    self.builder.equal(returns, bound_of_type(parent.return_type, self.positions, env), cause)
                for mine, theirs in zip(method.parameters, parent.parameters):
                    self.builder.equal(
                        bound_of_type(mine.type, self.positions),
                        bound_of_type(theirs.type, self.positions, env),
                        cause,
                    )

        if method.body is not None:
            self._returns.append((returns if method.return_type is not None else None, Reason.RETURN))
            self._stmt(method.body)
            self._returns.pop()

    def _oracle_pin(self, bound: BoundType, owner: str, member: str, kind: str, line: int) -> None:
        answer = self.oracle.lookup(owner, member, kind)
        detail = f"{_short(owner)}.{member}"
        if answer is Nullability.NULLABLE:
            self.builder.require_nullable(bound.label, Cause(Reason.EXTERNAL_NULLABLE, line, detail))
        elif answer is Nullability.NOT_NULL:
            self.builder.require_not_null(bound.label, Cause(Reason.EXTERNAL_NOT_NULL, line, detail))

    def _decl_bound(self, decl: VarDecl) -> BoundType:
        bound = self._decl_bounds.get(decl)
        if bound is None:
            if decl.type is None:
                return UNBOUND_TYPE
            bound = bound_of_type(decl.type, self.positions)
            if decl.vararg:
                bound = array_of(bound, Cause(Reason.SPREAD, decl.line, decl.name))
            self._decl_bounds[decl] = bound
        return bound

    def _this(self, cls: Optional[ClassDecl] = None) -> BoundType:
        cls = cls or (self._classes[-1] if self._classes else None)
        if cls is None:
            return UNBOUND_TYPE
        return not_null(Cause(Reason.LITERAL, cls.line, "this"), cls.qualified_name)

    def _current_supertypes(self) -> list[BoundType]:
        if not self._classes:
            return []
        this = self._this()
        return [
            bound_of_type(st, self.positions).with_label(this.label)
            for st in self._classes[-1].supertypes
        ]

    # ====================================================================
    # Statements
    # ====================================================================

    def _stmt(self, stmt: Optional[Node]) -> None:
        match stmt:
            case None | Jump():
                pass
            case Block(statements=statements):
                for child in statements:
                    self._stmt(child)
            case LocalVariable(declarations=declarations):
                for decl in declarations:
                    self._local(decl)
            case ExpressionStatement(expression=expression):
                self._infer(expression)
            case Return(value=value):
                if value is not None:
                    slot, reason = self._returns[-1] if self._returns else (None, Reason.RETURN)
                    if slot is None:
                        self._infer(value)
                    else:
                        self._flow(value, slot, Cause(reason, stmt.line))
            case Throw(expression=expression):
                self._deref(self._infer(expression), Cause(Reason.DEREF, stmt.line, "throw"))
            case If(condition=condition, then=then, otherwise=otherwise):
                self._condition(condition)
                self._stmt(then)
                self._stmt(otherwise)
            case While(condition=condition, body=body):
                self._condition(condition)
                self._stmt(body)
            case For(init=init, condition=condition, update=update, body=body):
                for child in init:
                    self._stmt(child)
                if condition is not None:
                    self._condition(condition)
                for expression in update:
                    self._infer(expression)
                self._stmt(body)
            case ForEach():
                self._for_each(stmt)
            case Try(body=body, resources=resources, catches=catches, finally_block=finally_block):
                for resource in resources:
                    self._local(resource)
                self._stmt(body)
                for catch in catches:
                    self._stmt(catch.body)
                self._stmt(finally_block)
            case Switch(selector=selector, body=body):
                self._deref(self._infer(selector), Cause(Reason.DEREF, stmt.line, "switch"))
                for child in body:
                    self._stmt(child)
            case Synchronized(lock=lock, body=body):
                self._deref(self._infer(lock), Cause(Reason.DEREF, stmt.line, "synchronized"))
                self._stmt(body)
            case LocalClass(declaration=declaration):
                self._visit_class(declaration)
            case OtherStatement(children=children):
                for child in children:
                    if isinstance(child, Block):
                        self._stmt(child)
                    else:
                        self._infer(child)

    def _local(self, decl: VarDecl) -> None:
        if decl.type is None:
            if decl.initializer is not None:
                self._decl_bounds[decl] = self._infer(decl.initializer)
            return
        bound = self._decl_bound(decl)
        if decl.initializer is not None:
            self._flow(decl.initializer, bound, Cause(Reason.INITIALIZER, decl.line, decl.name))

    def _for_each(self, stmt: ForEach) -> None:
        iterable = self._infer(stmt.iterable)
        self._deref(iterable, Cause(Reason.DEREF, stmt.line, "for-each"))
        if iterable.is_array:
            element = iterable.argument(0)
        else:
            target = self.resolver.find_method(iterable, "iterator", 0)
            iterator = self._invoke(target, (), [], None, stmt.line) if target is not None else UNBOUND_TYPE
            element = iterator.argument(0)

        variable = stmt.variable
        if variable.type is None:
            self._decl_bounds[variable] = element
        else:
            self.builder.equal(self._decl_bound(variable), element, Cause(Reason.ITERATION, stmt.line))
        self._stmt(stmt.body)

    # ====================================================================
    # Expressions
    # ====================================================================

    def _flow(self, expr: Expr, slot: BoundType, cause: Cause) -> BoundType:
        """Infer ``expr`` against ``slot`` and let its value flow into it."""
        value = self._infer(expr, slot)
        self.builder.subtype(value, slot, cause)
        return value

    def _deref(self, value: BoundType, cause: Cause) -> None:
        self.builder.require_not_null(value.label, cause)

    def _condition(self, expr: Expr) -> None:
        value = self._infer(expr)
        self.builder.require_not_null(value.label, Cause(Reason.USED_AS_CONDITION, expr.line))

    def _operand(self, expr: Expr) -> BoundType:
        value = self._infer(expr)
        self.builder.require_not_null(value.label, Cause(Reason.USED_AS_OPERAND, expr.line))
        return value

    def _infer(self, expr: Expr, expected: Optional[BoundType] = None) -> BoundType:
        """Shape of ``expr``; emits the evidence of its subexpressions."""
        line = expr.line
        match expr:
            case NullLiteral():
                return BoundType(LiteralLabel(LatticeValue.NULLABLE, Cause(Reason.NULL_LITERAL, line)))
            case Literal(kind=kind):
                return not_null(Cause(Reason.LITERAL, line), LITERAL_CLASSES.get(kind, ""))
            case This():
                return self._this()
            case TypeName(qualified_name=qualified_name):
                return BoundType(UNBOUND, qualified_name)
            case NameRef():
                return self._name(expr)
            case FieldAccess():
                return self._field_access(expr)
            case MethodCall():
                return self._call(expr, expected)
            case ConstructorCall():
                return self._constructor_call(expr)
            case NewObject():
                return self._new_object(expr, expected)
            case NewArray(dimensions=dimensions, initializer=initializer):
                created = bound_of_type(expr.type, self.positions)
                for dimension in dimensions:
                    self._operand(dimension)
                if initializer is not None:
                    self._elements(initializer, created.argument(0))
                return created
            case ArrayInit():
                element = expected.argument(0) if expected is not None and expected.is_array else UNBOUND_TYPE
                self._elements(expr, element)
                return array_of(element, Cause(Reason.NEW_INSTANCE, line))
            case ArrayAccess(array=array, index=index):
                value = self._infer(array)
                self._deref(value, Cause(Reason.DEREF, line, "[]"))
                self._operand(index)
                return value.argument(0)
            case Assign():
                return self._assign(expr)
            case Binary():
                return self._binary(expr)
            case Unary(operator=operator, operand=operand):
                if operator == "!":
                    self._condition(operand)
                    return not_null(Cause(Reason.LITERAL, line), "boolean")
                value = self._target(operand) if operator in ("++", "--") else self._infer(operand)
                self.builder.require_not_null(value.label, Cause(Reason.USED_AS_OPERAND, line, operator))
                return not_null(Cause(Reason.LITERAL, line), value.class_name)
            case Conditional(condition=condition, then=then, otherwise=otherwise):
                self._condition(condition)
                return join_types([self._infer(then, expected), self._infer(otherwise, expected)])
            case Cast():
                return self._cast(expr)
            case InstanceOf(expression=expression, type_name=type_name, binding=binding):
                self._infer(expression)
                if binding is not None:
                    self._decl_bounds[binding] = not_null(Cause(Reason.SMART_CAST, line, type_name), type_name)
                return not_null(Cause(Reason.LITERAL, line), "boolean")
            case Lambda():
                return self._lambda(expr, expected)
            case MethodReference():
                if expected is not None:
                    return not_null(Cause(Reason.LITERAL, line, expr.text), expected.class_name, expected.arguments)
                return not_null(Cause(Reason.LITERAL, line, expr.text))
            case OpaqueExpression(children=children):
                for child in children:
                    self._infer(child)
                return UNBOUND_TYPE
        return UNBOUND_TYPE

    def _elements(self, init: ArrayInit, element: BoundType) -> None:
        for item in init.elements:
            self._flow(item, element, Cause(Reason.CONTAINER_ELEMENT, item.line))

    def _name(self, ref: NameRef) -> BoundType:
        if ref.decl is None:
            return UNBOUND_TYPE
        bound = self._decl_bound(ref.decl)
        if self.guards.is_smart_cast(ref):
            return bound.with_label(LiteralLabel(LatticeValue.NOT_NULL, Cause(Reason.SMART_CAST, ref.line, ref.name)))
        return bound

    def _target(self, expr: Expr) -> BoundType:
        """Shape of an assignment target; names are never smart cast here."""
        if isinstance(expr, NameRef):
            return self._decl_bound(expr.decl) if expr.decl is not None else UNBOUND_TYPE
        return self._infer(expr)

    def _assign(self, expr: Assign) -> BoundType:
        target = self._target(expr.target)
        if expr.operator == "=":
            self._flow(expr.value, target, Cause(Reason.ASSIGN, expr.line))
            return target
        value = self._infer(expr.value)
        if not (expr.operator == "+=" and target.class_name == STRING):
            cause = Cause(Reason.USED_AS_OPERAND, expr.line, expr.operator)
            self.builder.require_not_null(target.label, cause)
            self.builder.require_not_null(value.label, cause)
        return target

    def _binary(self, expr: Binary) -> BoundType:
        line = expr.line
        boolean = not_null(Cause(Reason.LITERAL, line), "boolean")
        if expr.operator in ("==", "!="):
            left = self._infer(expr.left)
            right = self._infer(expr.right)
            cause = Cause(Reason.COMPARED_TO_NULL, line)
            if is_null_literal(expr.right):
                self.builder.require_nullable(left.label, cause)
            elif is_null_literal(expr.left):
                self.builder.require_nullable(right.label, cause)
            return boolean
        if expr.operator in ("&&", "||"):
            self._condition(expr.left)
            self._condition(expr.right)
            return boolean

        left = self._infer(expr.left)
        right = self._infer(expr.right)
        if expr.operator == "+" and STRING in (left.class_name, right.class_name):
            return not_null(Cause(Reason.LITERAL, line), STRING)
        cause = Cause(Reason.USED_AS_OPERAND, line, expr.operator)
        self.builder.require_not_null(left.label, cause)
        self.builder.require_not_null(right.label, cause)
        if expr.operator in ("<", ">", "<=", ">=", "instanceof"):
            return boolean
        return not_null(Cause(Reason.LITERAL, line), left.class_name)

    def _cast(self, expr: Cast) -> BoundType:
        target = bound_of_type(expr.type, self.positions)
        value = self._infer(expr.expression)
        asserted = expr.type.is_primitive or any(a in NOT_NULL_ANNOTATIONS for a in expr.type.annotations)
        if not asserted and expr.type.constructor is not TypeConstructor.OPAQUE:
            self.builder.subtype(value, target, Cause(Reason.CAST, expr.line))
        return target

    def _lambda(self, expr: Lambda, expected: Optional[BoundType]) -> BoundType:
        params: list[BoundType] = []
        returns: Optional[BoundType] = None
        shape = function_shape(expected.class_name, len(expected.arguments)) if expected is not None else None
        if shape is not None:
            params = [expected.argument(i) for i in shape.parameters]
            if shape.returns is not None:
                returns = expected.argument(shape.returns)

        for i, param in enumerate(expr.parameters):
            slot = params[i] if i < len(params) else UNBOUND_TYPE
            if param.type is None:
                self._decl_bounds[param] = slot
            else:
                self.builder.equal(
                    self._decl_bound(param), slot, Cause(Reason.LAMBDA_PARAMETER, param.line, param.name)
                )

        self._returns.append((returns, Reason.LAMBDA_RETURN))
        if isinstance(expr.body, Block):
            self._stmt(expr.body)
        elif expr.body is not None:
            if returns is not None:
                self._flow(expr.body, returns, Cause(Reason.LAMBDA_RETURN, expr.body.line))
            else:
                self._infer(expr.body)
        self._returns.pop()

        cause = Cause(Reason.LITERAL, expr.line, "lambda")
        if expected is None:
            return not_null(cause)
        return not_null(cause, expected.class_name, expected.arguments)

    # --- Members ---

    def _field_access(self, expr: FieldAccess) -> BoundType:
        receiver = self._infer(expr.receiver)
        if not isinstance(expr.receiver, TypeName):
            self._deref(receiver, Cause(Reason.DEREF, expr.line, f".{expr.name}"))
        if receiver.is_array and expr.name == "length":
            return not_null(Cause(Reason.LITERAL, expr.line), "int")
        if expr.decl is not None:
            return self._decl_bound(expr.decl)

        target = self.resolver.find_field(receiver, expr.name)
        if target is None:
            return UNBOUND_TYPE
        env = self.resolver.env_for(target.receiver)
        if not isinstance(target.field, LibraryField):
            return bound_of_type(target.field.type, self.positions, env)

        value = bound_of_type(target.field.type, self.positions, env)
        answer = self.oracle.lookup(target.owner, expr.name, "field")
        return self._annotated(value, answer, expr.line, f"{_short(target.owner)}.{expr.name}")

    def _annotated(self, value: BoundType, answer: Nullability, line: int, detail: str) -> BoundType:
        """Relabel a library value with the oracle's judgment."""
        if answer is Nullability.NULLABLE:
            return value.with_label(LiteralLabel(LatticeValue.NULLABLE, Cause(Reason.EXTERNAL_NULLABLE, line, detail)))
        if answer is Nullability.NOT_NULL:
            return value.with_label(LiteralLabel(LatticeValue.NOT_NULL, Cause(Reason.EXTERNAL_NOT_NULL, line, detail)))
        return value

    def _call(self, call: MethodCall, expected: Optional[BoundType]) -> BoundType:
        argc = len(call.arguments)
        target: Optional[MemberTarget] = None
        if call.is_super:
            for supertype in self._current_supertypes():
                target = self.resolver.find_method(supertype, call.name, argc)
                if target is not None:
                    break
        elif call.receiver is None:
            for cls in reversed(self._classes):
                target = self.resolver.find_method(self._this(cls), call.name, argc)
                if target is not None:
                    break
        else:
            receiver = self._infer(call.receiver)
            if not isinstance(call.receiver, TypeName):
                self._deref(receiver, Cause(Reason.DEREF, call.line, f".{call.name}()"))
            target = self.resolver.find_method(receiver, call.name, argc)

        if target is None:
            log.debug(f"line {call.line}: unresolved call {call.name}/{argc}")
            for argument in call.arguments:
                self._infer(argument)
            return UNBOUND_TYPE
        return self._invoke(target, call.type_arguments, call.arguments, expected, call.line)

    def _constructor_call(self, call: ConstructorCall) -> BoundType:
        if call.keyword == "this":
            receivers = [self._this()]
        else:
            receivers = self._current_supertypes()[:1]
        for receiver in receivers:
            target = self.resolver.find_constructor(receiver, len(call.arguments))
            if target is not None:
                self._invoke(target, (), call.arguments, None, call.line)
                return UNBOUND_TYPE
        for argument in call.arguments:
            self._infer(argument)
        return UNBOUND_TYPE

    def _new_object(self, expr: NewObject, expected: Optional[BoundType]) -> BoundType:
        created = bound_of_type(expr.type, self.positions)
        if expr.diamond and expected is not None:
            arguments = self.resolver.diamond_arguments(created.class_name, expected)
            if arguments is not None:
                created = replace(created, arguments=arguments, variances=())
        target = self.resolver.find_constructor(created, len(expr.arguments))
        if target is not None:
            self._invoke(target, (), expr.arguments, None, expr.line)
        else:
            for argument in expr.arguments:
                self._infer(argument)
        if expr.body is not None:
            self._visit_class(expr.body, (created,))
        return created

    def _invoke(
        self,
        target: MemberTarget,
        type_arguments: Iterable[TypeRef],
        arguments: list[Expr],
        expected: Optional[BoundType],
        line: int,
    ) -> BoundType:
        """Bind a call's type variables and arguments; returns its result shape."""
        sig = target.method
        env = self.resolver.env_for(target.receiver)
        for name, ref in zip(sig.type_parameters, type_arguments):
            env[name] = bound_of_type(ref, self.positions)
        if expected is not None and sig.returns is not None:
            self._unify(sig.returns, expected, sig.type_parameters, env)

        self._arguments(sig, arguments, env, line)

        if sig.returns is None:
            return UNBOUND_TYPE
        returns = bound_of_type(sig.returns, self.positions, env)
        if sig.is_library:
            answer = self.oracle.lookup(sig.owner, sig.name, "return")
            returns = self._annotated(returns, answer, line, f"{_short(sig.owner)}.{sig.name}")
        return returns

    def _unify(self, ref: Optional[TypeRef], shape: BoundType, names: list[str], env: dict[str, BoundType]) -> None:
        """Bind method type variables of ``ref`` from the expected shape."""
        if ref is None or shape == UNBOUND_TYPE:
            return
        if ref.constructor is TypeConstructor.TYPE_PARAMETER:
            if ref.name in names and ref.name not in env:
                env[ref.name] = shape
            return
        if ref.constructor is TypeConstructor.WILDCARD:
            for bound in ref.arguments:
                self._unify(bound, shape, names, env)
            return
        if ref.constructor in (TypeConstructor.CLASS, TypeConstructor.FUNCTION, TypeConstructor.ARRAY):
            if shape.class_name and shape.class_name != ref.qualified_name:
                return
            for child, child_shape in zip(ref.arguments, shape.arguments):
                self._unify(child, child_shape, names, env)

    def _free_variable(self, sig: Signature, index: int, env: dict[str, BoundType]) -> Optional[str]:
        """Type variable a library parameter is written as, if nothing has bound it yet."""
        if not sig.is_library or index >= len(sig.parameters):
            return None
        ref = sig.parameters[index]
        if (
            ref is not None
            and ref.constructor is TypeConstructor.TYPE_PARAMETER
            and ref.name in sig.type_parameters
            and ref.name not in env
        ):
            return ref.name
        return None

    def _bind_from_arguments(
        self, sig: Signature, arguments: list[Expr], indices: list[int], env: dict[str, BoundType]
    ) -> set[int]:
        """
        Bind free type variables to the join of the arguments passed for them.

        Returns the argument indices consumed by a binding; those arguments
        flow nowhere else, so no argument ever reaches another's Position.
        """
        count = len(sig.parameters)
        shapes: dict[str, list[BoundType]] = {}
        consumed: set[int] = set()
        for i, (argument, index) in enumerate(zip(arguments, indices)):
            name = self._free_variable(sig, index, env)
            if name is None:
                continue
            value = self._infer(argument)
            if sig.vararg and index == count - 1 and len(arguments) == count and value.is_array:
                spread = Cause(Reason.SPREAD, argument.line, sig.name)
                self.builder.require_not_null(value.label, spread)
                value = value.argument(0)
            elif self.oracle.lookup(sig.owner, sig.name, parameter_kind(index)) is Nullability.NOT_NULL:
                cause = Cause(Reason.PASSED_TO_ANNOTATED_PARAMETER, argument.line, f"{_short(sig.owner)}.{sig.name}")
                self.builder.require_not_null(value.label, cause)
            shapes.setdefault(name, []).append(value)
            consumed.add(i)
        for name, values in shapes.items():
            env[name] = join_types(values)
        return consumed

    def _arguments(self, sig: Signature, arguments: list[Expr], env: dict[str, BoundType], line: int) -> None:
        count = len(sig.parameters)
        indices = [min(i, count - 1) if sig.vararg else i for i in range(len(arguments))]
        consumed = self._bind_from_arguments(sig, arguments, indices, env)
        for i, (argument, index) in enumerate(zip(arguments, indices)):
            if i in consumed:
                continue
            if index >= count or sig.parameters[index] is None:
                self._infer(argument)
                continue
            ref = sig.parameters[index]

            slot = bound_of_type(ref, self.positions, env)
            if sig.is_library and self.oracle.lookup(sig.owner, sig.name, parameter_kind(index)) is Nullability.NOT_NULL:
                cause = Cause(Reason.PASSED_TO_ANNOTATED_PARAMETER, argument.line, f"{_short(sig.owner)}.{sig.name}")
                slot = slot.with_label(LiteralLabel(LatticeValue.NOT_NULL, cause))

            cause = Cause(Reason.ARGUMENT, argument.line, f"{sig.name}#{index}")
            if sig.vararg and index == count - 1:
                value = self._infer(argument, slot)
                if len(arguments) == count and value.is_array and not slot.is_array:
                    spread = Cause(Reason.SPREAD, argument.line, sig.name)
                    self.builder.require_not_null(value.label, spread)
                    self.builder.equal(value.argument(0), slot, spread)
                else:
                    self.builder.subtype(value, slot, cause)
            else:
                self._flow(argument, slot, cause)


def collect_evidence(
    units: Iterable[CompilationUnit],
    positions: PositionTable,
    oracle: AnnotationOracle,
    resolver: Resolver,
    guards: GuardOracle,
) -> list[EvidenceToken]:
    return EvidenceCollector(positions, oracle, resolver, guards).collect(units)
