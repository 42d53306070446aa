"""
nullinfer/syntaxer/nodes.py

Typed AST consumed by the inference core.

The frontend lowers tree-sitter Java syntax into these dataclasses. Every
node carries an integer ``token`` that is unique within a parse session;
the Position table keys type nodes by that token. Nodes compare by
identity so they can be used directly as dictionary keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum, auto
from typing import Iterator, Optional, Union


class TypeConstructor(Enum):
    """Outer constructor of a type node."""
    CLASS = auto()
    PRIMITIVE = auto()
    ARRAY = auto()
    FUNCTION = auto()
    TYPE_PARAMETER = auto()
    WILDCARD = auto()
    OPAQUE = auto()


class TypeRole(Enum):
    """Syntactic role of a root type node."""
    LOCAL = auto()
    FIELD = auto()
    PARAMETER = auto()
    RETURN = auto()
    CAST = auto()
    NEW_INSTANCE = auto()
    CALL_TYPE_ARGUMENT = auto()
    SUPERTYPE = auto()
    BOUND = auto()


class DeclKind(Enum):
    FIELD = auto()
    PARAMETER = auto()
    LOCAL = auto()


@dataclass(eq=False)
class Node:
    """Base class: identity token and 1-based source line."""
    token: Optional[int]
    line: int


# --- Types -------------------------------------------------------------------


@dataclass(eq=False)
class TypeRef(Node):
    """
    A type-bearing node.

    Attributes:
        constructor: Outer type constructor
        name: Name as written (simple name, primitive keyword or type variable)
        qualified_name: Resolved name ("java.util.List"); "[]" for arrays
        arguments: Type arguments, array element, or function slots
        annotations: Simple names of type-use / declaration annotations
        role: Role of a root type node; None for nested slots
        variance: "out"/"in" for bounded wildcards
        text: Source text, used when rendering opaque types
    """
    constructor: TypeConstructor
    name: str
    qualified_name: str = ""
    arguments: list["TypeRef"] = field(default_factory=list)
    annotations: list[str] = field(default_factory=list)
    role: Optional[TypeRole] = None
    variance: Optional[str] = None
    text: str = ""

    @property
    def is_primitive(self) -> bool:
        return self.constructor is TypeConstructor.PRIMITIVE

    @property
    def is_array(self) -> bool:
        return self.constructor is TypeConstructor.ARRAY

    def __repr__(self) -> str:
        args = f"<{', '.join(map(repr, self.arguments))}>" if self.arguments else ""
        return f"{self.name}{args}"


# --- Declarations ------------------------------------------------------------


@dataclass(eq=False)
class VarDecl(Node):
    """A field, parameter (method, lambda or catch) or local variable."""
    name: str
    kind: DeclKind
    type: Optional[TypeRef]
    initializer: Optional["Expr"] = None
    annotations: list[str] = field(default_factory=list)
    vararg: bool = False
    index: int = -1


@dataclass(eq=False)
class TypeParameter(Node):
    name: str
    bounds: list[TypeRef] = field(default_factory=list)


@dataclass(eq=False)
class MethodDecl(Node):
    name: str
    owner: str
    type_parameters: list[TypeParameter] = field(default_factory=list)
    return_type: Optional[TypeRef] = None
    parameters: list[VarDecl] = field(default_factory=list)
    body: Optional["Block"] = None
    annotations: list[str] = field(default_factory=list)
    is_constructor: bool = False
    is_static: bool = False

    @property
    def is_vararg(self) -> bool:
        return bool(self.parameters) and self.parameters[-1].vararg

    def accepts(self, argc: int) -> bool:
        if self.is_vararg:
            return argc >= len(self.parameters) - 1
        return argc == len(self.parameters)


@dataclass(eq=False)
class ClassDecl(Node):
    name: str
    qualified_name: str
    type_parameters: list[TypeParameter] = field(default_factory=list)
    supertypes: list[TypeRef] = field(default_factory=list)
    fields: list[VarDecl] = field(default_factory=list)
    methods: list[MethodDecl] = field(default_factory=list)
    nested: list["ClassDecl"] = field(default_factory=list)
    is_interface: bool = False

    def type_parameter_names(self) -> list[str]:
        return [tp.name for tp in self.type_parameters]


@dataclass(eq=False)
class CompilationUnit(Node):
    path: str
    package: str = ""
    imports: dict[str, str] = field(default_factory=dict)
    wildcard_imports: list[str] = field(default_factory=list)
    classes: list[ClassDecl] = field(default_factory=list)


# --- Statements --------------------------------------------------------------


@dataclass(eq=False)
class Block(Node):
    statements: list["Stmt"] = field(default_factory=list)


@dataclass(eq=False)
class LocalVariable(Node):
    declarations: list[VarDecl] = field(default_factory=list)


@dataclass(eq=False)
class ExpressionStatement(Node):
    expression: "Expr"


@dataclass(eq=False)
class Return(Node):
    value: Optional["Expr"] = None


@dataclass(eq=False)
class Throw(Node):
    expression: "Expr"


@dataclass(eq=False)
class If(Node):
    condition: "Expr"
    then: "Stmt"
    otherwise: Optional["Stmt"] = None


@dataclass(eq=False)
class While(Node):
    condition: "Expr"
    body: "Stmt"
    do_while: bool = False


@dataclass(eq=False)
class For(Node):
    init: list["Stmt"] = field(default_factory=list)
    condition: Optional["Expr"] = None
    update: list["Expr"] = field(default_factory=list)
    body: Optional["Stmt"] = None


@dataclass(eq=False)
class ForEach(Node):
    variable: VarDecl
    iterable: "Expr"
    body: "Stmt"


@dataclass(eq=False)
class CatchClause(Node):
    parameter: VarDecl
    body: Block


@dataclass(eq=False)
class Try(Node):
    body: Block
    resources: list[VarDecl] = field(default_factory=list)
    catches: list[CatchClause] = field(default_factory=list)
    finally_block: Optional[Block] = None


@dataclass(eq=False)
class Switch(Node):
    selector: "Expr"
    body: list["Stmt"] = field(default_factory=list)


@dataclass(eq=False)
class Synchronized(Node):
    lock: "Expr"
    body: Block


@dataclass(eq=False)
class Jump(Node):
    """break / continue."""
    keyword: str


@dataclass(eq=False)
class LocalClass(Node):
    declaration: ClassDecl


@dataclass(eq=False)
class OtherStatement(Node):
    """Statements without nullability semantics; children are still visited."""
    children: list[Union["Stmt", "Expr"]] = field(default_factory=list)


Stmt = Union[
    Block, LocalVariable, ExpressionStatement, Return, Throw, If, While, For,
    ForEach, Try, Switch, Synchronized, Jump, LocalClass, OtherStatement,
]


# --- Expressions -------------------------------------------------------------


@dataclass(eq=False)
class NullLiteral(Node):
    pass


@dataclass(eq=False)
class Literal(Node):
    kind: str
    text: str = ""


@dataclass(eq=False)
class This(Node):
    pass


@dataclass(eq=False)
class NameRef(Node):
    name: str
    decl: Optional[VarDecl] = field(default=None, metadata={"reference": True})


@dataclass(eq=False)
class TypeName(Node):
    """An identifier that names a class, e.g. the ``Math`` in ``Math.abs``."""
    qualified_name: str


@dataclass(eq=False)
class FieldAccess(Node):
    receiver: "Expr"
    name: str
    decl: Optional[VarDecl] = field(default=None, metadata={"reference": True})


@dataclass(eq=False)
class MethodCall(Node):
    receiver: Optional["Expr"]
    name: str
    type_arguments: list[TypeRef] = field(default_factory=list)
    arguments: list["Expr"] = field(default_factory=list)
    is_super: bool = False


@dataclass(eq=False)
class ConstructorCall(Node):
    """``this(...)`` / ``super(...)`` inside a constructor body."""
    keyword: str
    arguments: list["Expr"] = field(default_factory=list)


@dataclass(eq=False)
class NewObject(Node):
    type: TypeRef
    arguments: list["Expr"] = field(default_factory=list)
    diamond: bool = False
    body: Optional[ClassDecl] = None


@dataclass(eq=False)
class ArrayInit(Node):
    elements: list["Expr"] = field(default_factory=list)


@dataclass(eq=False)
class NewArray(Node):
    type: TypeRef
    dimensions: list["Expr"] = field(default_factory=list)
    initializer: Optional[ArrayInit] = None


@dataclass(eq=False)
class ArrayAccess(Node):
    array: "Expr"
    index: "Expr"


@dataclass(eq=False)
class Assign(Node):
    target: "Expr"
    operator: str
    value: "Expr"


@dataclass(eq=False)
class Binary(Node):
    operator: str
    left: "Expr"
    right: "Expr"


@dataclass(eq=False)
class Unary(Node):
    operator: str
    operand: "Expr"


@dataclass(eq=False)
class Conditional(Node):
    condition: "Expr"
    then: "Expr"
    otherwise: "Expr"


@dataclass(eq=False)
class Cast(Node):
    type: TypeRef
    expression: "Expr"


@dataclass(eq=False)
class InstanceOf(Node):
    expression: "Expr"
    type_name: str
    binding: Optional[VarDecl] = None


@dataclass(eq=False)
class Lambda(Node):
    parameters: list[VarDecl] = field(default_factory=list)
    body: Union["Expr", Block, None] = None


@dataclass(eq=False)
class MethodReference(Node):
    text: str = ""


@dataclass(eq=False)
class OpaqueExpression(Node):
    text: str = ""
    children: list["Expr"] = field(default_factory=list)


Expr = Union[
    NullLiteral, Literal, This, NameRef, TypeName, FieldAccess, MethodCall,
    ConstructorCall, NewObject, ArrayInit, NewArray, ArrayAccess, Assign,
    Binary, Unary, Conditional, Cast, InstanceOf, Lambda, MethodReference,
    OpaqueExpression,
]


# --- Traversal ---------------------------------------------------------------


def child_nodes(node: Node) -> Iterator[Node]:
    """Direct children of a node, in field declaration order.

    Resolved references (``NameRef.decl``) are not children.
    """
    for f in fields(node):
        if f.metadata.get("reference"):
            continue
        value = getattr(node, f.name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, Node):
                    yield item


def walk(root: Node) -> Iterator[Node]:
    """Iterative preorder traversal of the typed AST."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(child_nodes(node))))


def is_null_literal(expr: Optional[Node]) -> bool:
    return isinstance(expr, NullLiteral)
