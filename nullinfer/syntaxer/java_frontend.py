"""
nullinfer/syntaxer/java_frontend.py

Tree-sitter based Java frontend.

Lowers Java source into the typed AST of ``nullinfer.syntaxer.nodes``:
  - every written type becomes a TypeRef with a fresh identity token
  - identifiers are resolved to their declarations (locals, parameters,
    lambda parameters, fields of enclosing classes)
  - type names are qualified through imports, same-file classes, wildcard
    imports and java.lang

Lowering runs in two stages per class: declarations first (fields and
method signatures), then field initializers and bodies, so that a body
can refer to members declared further down the file.
"""

from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import Iterable, Optional

import tree_sitter

from nullinfer.errors import FrontendError
from nullinfer.syntaxer.nodes import (
    ArrayAccess,
    ArrayInit,
    Assign,
    Binary,
    Block,
    Cast,
    CatchClause,
    ClassDecl,
    CompilationUnit,
    Conditional,
    ConstructorCall,
    DeclKind,
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
    NullLiteral,
    OpaqueExpression,
    OtherStatement,
    Return,
    Stmt,
    Switch,
    Synchronized,
    This,
    Throw,
    Try,
    TypeConstructor,
    TypeName,
    TypeParameter,
    TypeRef,
    TypeRole,
    Unary,
    VarDecl,
    While,
)
from nullinfer.syntaxer.types import ARRAY_CLASS, JAVA_LANG, function_shape
from nullinfer.syntaxer.utils import (
    create_java_parser,
    line_of,
    named_children,
    node_text,
    syntax_errors,
)

CLASS_NODE_TYPES = frozenset({
    "class_declaration", "interface_declaration", "enum_declaration", "record_declaration",
})
ANNOTATION_TYPES = frozenset({"marker_annotation", "annotation"})
PRIMITIVE_NODE_TYPES = frozenset({"integral_type", "floating_point_type", "boolean_type"})

LITERAL_KINDS = {
    "decimal_integer_literal": "int",
    "hex_integer_literal": "int",
    "octal_integer_literal": "int",
    "binary_integer_literal": "int",
    "decimal_floating_point_literal": "float",
    "hex_floating_point_literal": "float",
    "string_literal": "string",
    "text_block": "string",
    "character_literal": "char",
    "true": "boolean",
    "false": "boolean",
    "class_literal": "class",
}

INITIALIZER_METHOD = "<initializer>"

# identity tokens are unique across every frontend in the process
_TOKENS = itertools.count(1)


class JavaFrontend:
    """
    Parse Java files into typed compilation units.

    Args:
        known_classes: Qualified names of library classes, used to resolve
            wildcard imports and implicit java.lang names

    Example:
        frontend = JavaFrontend(library.classes)
        unit = frontend.parse_file("Test.java")
    """

    def __init__(self, known_classes: Iterable[str] = ()):
        self.parser = create_java_parser()
        self.known_classes = frozenset(known_classes)
        self.log = logging.getLogger(__name__)

    def next_token(self) -> int:
        return next(_TOKENS)

    def parse_file(self, path: str | Path) -> CompilationUnit:
        path = Path(path)
        try:
            source = path.read_bytes()
        except OSError as e:
            raise FrontendError(f"cannot read {path}: {e}") from e
        return self.parse_bytes(source, str(path))

    def parse_source(self, text: str, path: str = "<source>") -> CompilationUnit:
        return self.parse_bytes(text.encode("utf-8"), path)

    def parse_bytes(self, source: bytes, path: str) -> CompilationUnit:
        tree = self.parser.parse(source)
        for error in syntax_errors(tree.root_node):
            snippet = node_text(error, source)[:40]
            self.log.warning(f"{path}:{line_of(error)}: syntax error near {snippet!r}")
        unit = _UnitLowering(self, source, path).lower(tree.root_node)
        self.log.debug(f"Lowered {path}: {len(unit.classes)} top-level classes")
        return unit


class _UnitLowering:
    """Lowering state for one compilation unit."""

    def __init__(self, frontend: JavaFrontend, source: bytes, path: str):
        self.frontend = frontend
        self.source = source
        self.path = path
        self.package = ""
        self.imports: dict[str, str] = {}
        self.static_imports: dict[str, str] = {}
        self.wildcards: list[str] = []
        self.local_classes: dict[str, str] = {}
        self.class_decls: dict[str, ClassDecl] = {}
        self.class_stack: list[ClassDecl] = []
        self.scopes: list[dict[str, VarDecl]] = []
        self.type_scopes: list[set[str]] = []
        self._field_values: dict[VarDecl, tree_sitter.Node] = {}
        self._method_bodies: dict[MethodDecl, tree_sitter.Node] = {}

    def text(self, node: tree_sitter.Node) -> str:
        return node_text(node, self.source)

    def token(self) -> int:
        return self.frontend.next_token()

    # ====================================================================
    # Compilation unit
    # ====================================================================

    def lower(self, root: tree_sitter.Node) -> CompilationUnit:
        for child in named_children(root):
            if child.type == "package_declaration":
                name = named_children(child)[-1]
                self.package = "".join(self.text(name).split())
            elif child.type == "import_declaration":
                self._import(child)

        self._register_classes(root, None)

        unit = CompilationUnit(
            self.token(), 1, self.path, self.package,
            dict(self.imports), list(self.wildcards),
        )
        for child in named_children(root):
            if child.type in CLASS_NODE_TYPES:
                unit.classes.append(self._declare_class(child, None))
        for cls in unit.classes:
            self._lower_bodies(cls)
        return unit

    def _import(self, node: tree_sitter.Node) -> None:
        is_static = any(c.type == "static" for c in node.children)
        is_wildcard = any(c.type == "asterisk" for c in node.children)
        name_node = next(
            c for c in named_children(node) if c.type in ("scoped_identifier", "identifier")
        )
        name = "".join(self.text(name_node).split())
        if is_wildcard:
            if not is_static:
                self.wildcards.append(name)
            return
        owner, _, simple = name.rpartition(".")
        if is_static:
            self.static_imports[simple] = owner
        else:
            self.imports[simple] = name

    def _register_classes(self, container: Optional[tree_sitter.Node], outer: Optional[str]) -> None:
        for member in self._members(container):
            if member.type not in CLASS_NODE_TYPES:
                continue
            name = self.text(member.child_by_field_name("name"))
            if outer:
                qualified = f"{outer}.{name}"
            else:
                qualified = f"{self.package}.{name}" if self.package else name
            self.local_classes.setdefault(name, qualified)
            self._register_classes(member.child_by_field_name("body"), qualified)

    def _members(self, body: Optional[tree_sitter.Node]) -> list[tree_sitter.Node]:
        members = []
        for child in named_children(body):
            if child.type == "enum_body_declarations":
                members.extend(named_children(child))
            else:
                members.append(child)
        return members

    # ====================================================================
    # Stage A: declarations
    # ====================================================================

    def _declare_class(self, node: tree_sitter.Node, outer: Optional[ClassDecl]) -> ClassDecl:
        name = self.text(node.child_by_field_name("name"))
        if outer is not None:
            qualified = f"{outer.qualified_name}.{name}"
        else:
            qualified = self.local_classes.get(name, name)
        cls = ClassDecl(
            self.token(), line_of(node), name, qualified,
            is_interface=node.type == "interface_declaration",
        )
        self.class_decls[qualified] = cls

        self.type_scopes.append(set())
        cls.type_parameters = self._type_parameters(node.child_by_field_name("type_parameters"))
        for type_node in self._supertype_nodes(node):
            supertype = self._root_type(type_node, TypeRole.SUPERTYPE)
            if supertype is not None:
                cls.supertypes.append(supertype)
        if node.type == "record_declaration":
            for component in self._formal_parameters(node.child_by_field_name("parameters")):
                component.kind = DeclKind.FIELD
                component.index = -1
                if component.type is not None:
                    component.type.role = TypeRole.FIELD
                cls.fields.append(component)
        self._declare_members(cls, node.child_by_field_name("body"))
        self.type_scopes.pop()
        return cls

    def _supertype_nodes(self, node: tree_sitter.Node) -> list[tree_sitter.Node]:
        result = []
        for child in node.children:
            if child.type == "superclass":
                result.extend(named_children(child))
            elif child.type in ("super_interfaces", "extends_interfaces"):
                for type_list in named_children(child):
                    result.extend(named_children(type_list))
        return result

    def _declare_members(self, cls: ClassDecl, body: Optional[tree_sitter.Node]) -> None:
        for member in self._members(body):
            match member.type:
                case "field_declaration" | "constant_declaration":
                    self._field_declaration(member, cls)
                case "method_declaration":
                    cls.methods.append(self._method_declaration(member, cls, constructor=False))
                case "constructor_declaration" | "compact_constructor_declaration":
                    cls.methods.append(self._method_declaration(member, cls, constructor=True))
                case "static_initializer" | "block":
                    block = member if member.type == "block" else named_children(member)[-1]
                    method = MethodDecl(
                        self.token(), line_of(member), INITIALIZER_METHOD, cls.qualified_name,
                        is_static=member.type == "static_initializer",
                    )
                    self._method_bodies[method] = block
                    cls.methods.append(method)
                case kind if kind in CLASS_NODE_TYPES:
                    cls.nested.append(self._declare_class(member, cls))

    def _field_declaration(self, node: tree_sitter.Node, cls: ClassDecl) -> None:
        annotations = self._modifier_annotations(node)
        type_node = node.child_by_field_name("type")
        for declarator in node.children_by_field_name("declarator"):
            decl = self._var_decl(type_node, declarator, DeclKind.FIELD, TypeRole.FIELD, annotations)
            cls.fields.append(decl)
            value = declarator.child_by_field_name("value")
            if value is not None:
                self._field_values[decl] = value

    def _method_declaration(self, node: tree_sitter.Node, cls: ClassDecl, constructor: bool) -> MethodDecl:
        annotations = self._modifier_annotations(node)
        name = "<init>" if constructor else self.text(node.child_by_field_name("name"))
        method = MethodDecl(
            self.token(), line_of(node), name, cls.qualified_name,
            annotations=annotations,
            is_constructor=constructor,
            is_static=self._has_modifier(node, "static"),
        )
        self.type_scopes.append(set())
        method.type_parameters = self._type_parameters(node.child_by_field_name("type_parameters"))
        if not constructor:
            method.return_type = self._declared_type(
                node.child_by_field_name("type"), TypeRole.RETURN, annotations,
                node.child_by_field_name("dimensions"),
            )
        method.parameters = self._formal_parameters(node.child_by_field_name("parameters"))
        self.type_scopes.pop()
        body = node.child_by_field_name("body")
        if body is not None:
            self._method_bodies[method] = body
        return method

    def _formal_parameters(self, node: Optional[tree_sitter.Node]) -> list[VarDecl]:
        params: list[VarDecl] = []
        for child in named_children(node):
            annotations = self._modifier_annotations(child)
            if child.type == "formal_parameter":
                name_node = child.child_by_field_name("name")
                ref = self._declared_type(
                    child.child_by_field_name("type"), TypeRole.PARAMETER, annotations,
                    child.child_by_field_name("dimensions"),
                )
                params.append(VarDecl(
                    self.token(), line_of(name_node), self.text(name_node), DeclKind.PARAMETER,
                    ref, annotations=annotations, index=len(params),
                ))
            elif child.type == "spread_parameter":
                type_node = next(
                    c for c in named_children(child)
                    if c.type not in ("modifiers", "variable_declarator") and c.type not in ANNOTATION_TYPES
                )
                declarator = next(c for c in named_children(child) if c.type == "variable_declarator")
                name_node = declarator.child_by_field_name("name")
                ref = self._declared_type(type_node, TypeRole.PARAMETER, annotations, None)
                params.append(VarDecl(
                    self.token(), line_of(name_node), self.text(name_node), DeclKind.PARAMETER,
                    ref, annotations=annotations, vararg=True, index=len(params),
                ))
        return params

    def _type_parameters(self, node: Optional[tree_sitter.Node]) -> list[TypeParameter]:
        declared = [c for c in named_children(node) if c.type == "type_parameter"]
        names = []
        for param in declared:
            ident = next(c for c in named_children(param) if c.type in ("type_identifier", "identifier"))
            names.append(self.text(ident))
        self.type_scopes[-1].update(names)

        result = []
        for param, name in zip(declared, names):
            type_parameter = TypeParameter(self.token(), line_of(param), name)
            bound = next((c for c in named_children(param) if c.type == "type_bound"), None)
            for bound_type in named_children(bound):
                ref = self._root_type(bound_type, TypeRole.BOUND)
                if ref is not None:
                    type_parameter.bounds.append(ref)
            result.append(type_parameter)
        return result

    def _var_decl(
        self,
        type_node: tree_sitter.Node,
        declarator: tree_sitter.Node,
        kind: DeclKind,
        role: TypeRole,
        annotations: list[str],
    ) -> VarDecl:
        name_node = declarator.child_by_field_name("name")
        ref = self._declared_type(type_node, role, annotations, declarator.child_by_field_name("dimensions"))
        return VarDecl(
            self.token(), line_of(name_node), self.text(name_node), kind, ref,
            annotations=list(annotations),
        )

    # ====================================================================
    # Types
    # ====================================================================

    def _declared_type(
        self,
        node: Optional[tree_sitter.Node],
        role: TypeRole,
        annotations: list[str],
        dimensions: Optional[tree_sitter.Node],
    ) -> Optional[TypeRef]:
        """Root type of a declaration; None for ``void`` and ``var``."""
        if node is None:
            return None
        if role is TypeRole.LOCAL and node.type == "type_identifier" and self.text(node) == "var":
            return None
        ref = self._type(node)
        if ref is None:
            return None
        ref = self._wrap_array(ref, self._dimension_count(dimensions), ref.line)
        ref.role = role
        ref.annotations = list(annotations) + ref.annotations
        return ref

    def _root_type(self, node: tree_sitter.Node, role: TypeRole) -> Optional[TypeRef]:
        ref = self._type(node)
        if ref is not None:
            ref.role = role
        return ref

    def _type(self, node: tree_sitter.Node) -> Optional[TypeRef]:
        kind = node.type
        line = line_of(node)
        text = self.text(node)

        if kind in PRIMITIVE_NODE_TYPES:
            name = text.strip()
            return TypeRef(self.token(), line, TypeConstructor.PRIMITIVE, name, name, text=name)
        if kind == "void_type":
            return None
        if kind == "type_identifier":
            if self._is_type_parameter(text):
                return TypeRef(self.token(), line, TypeConstructor.TYPE_PARAMETER, text, text, text=text)
            return self._class_type(text, [], line, text)
        if kind == "scoped_type_identifier":
            return self._class_type("".join(text.split()), [], line, text)
        if kind == "generic_type":
            children = named_children(node)
            base = children[0]
            args_node = next((c for c in children if c.type == "type_arguments"), None)
            arguments = []
            for arg in named_children(args_node):
                ref = self._type(arg)
                if ref is not None:
                    arguments.append(ref)
            return self._class_type("".join(self.text(base).split()), arguments, line, text)
        if kind == "array_type":
            element = self._type(node.child_by_field_name("element"))
            if element is None:
                return self._opaque(node)
            return self._wrap_array(element, self._dimension_count(node.child_by_field_name("dimensions")), line)
        if kind == "annotated_type":
            annotations = [self._annotation_name(c) for c in named_children(node) if c.type in ANNOTATION_TYPES]
            inner = next(c for c in named_children(node) if c.type not in ANNOTATION_TYPES)
            ref = self._type(inner)
            if ref is not None:
                ref.annotations = annotations + ref.annotations
            return ref
        if kind == "wildcard":
            variance = None
            if any(c.type == "extends" for c in node.children):
                variance = "out"
            elif any(c.type == "super" for c in node.children):
                variance = "in"
            bound_nodes = [
                c for c in named_children(node) if c.type != "super" and c.type not in ANNOTATION_TYPES
            ]
            arguments = []
            if bound_nodes:
                bound = self._type(bound_nodes[-1])
                if bound is not None:
                    arguments.append(bound)
            return TypeRef(
                self.token(), line, TypeConstructor.WILDCARD, "?", "?",
                arguments=arguments, variance=variance, text=text,
            )
        return self._opaque(node)

    def _opaque(self, node: tree_sitter.Node) -> TypeRef:
        text = " ".join(self.text(node).split())
        return TypeRef(self.token(), line_of(node), TypeConstructor.OPAQUE, text, text, text=text)

    def _class_type(self, name: str, arguments: list[TypeRef], line: int, text: str) -> TypeRef:
        qualified = self._qualify(name)
        constructor = TypeConstructor.CLASS
        if function_shape(qualified, len(arguments)) is not None:
            constructor = TypeConstructor.FUNCTION
        return TypeRef(
            self.token(), line, constructor, name.rsplit(".", 1)[-1], qualified,
            arguments=arguments, text=text,
        )

    def _wrap_array(self, ref: TypeRef, depth: int, line: int) -> TypeRef:
        for _ in range(depth):
            ref = TypeRef(
                self.token(), line, TypeConstructor.ARRAY, ref.name + "[]", ARRAY_CLASS,
                arguments=[ref], text=ref.text + "[]",
            )
        return ref

    def _dimension_count(self, node: Optional[tree_sitter.Node]) -> int:
        return self.text(node).count("[") if node is not None else 0

    def _is_type_parameter(self, name: str) -> bool:
        return any(name in scope for scope in self.type_scopes)

    def _qualify(self, name: str) -> str:
        head, _, rest = name.partition(".")
        known = self.frontend.known_classes
        if head in self.local_classes:
            qualified = self.local_classes[head]
        elif head in self.imports:
            qualified = self.imports[head]
        else:
            qualified = next(
                (f"{pkg}.{head}" for pkg in self.wildcards if f"{pkg}.{head}" in known), None
            )
            if qualified is None:
                if f"java.lang.{head}" in known or head in JAVA_LANG:
                    qualified = f"java.lang.{head}"
                else:
                    return name
        return f"{qualified}.{rest}" if rest else qualified

    # ====================================================================
    # Stage B: bodies
    # ====================================================================

    def _lower_bodies(self, cls: ClassDecl) -> None:
        self.class_stack.append(cls)
        self.type_scopes.append(set(cls.type_parameter_names()))
        for decl in cls.fields:
            value = self._field_values.pop(decl, None)
            if value is not None:
                decl.initializer = self._initializer(value)
        for method in cls.methods:
            self._lower_method_body(method)
        for nested in cls.nested:
            self._lower_bodies(nested)
        self.type_scopes.pop()
        self.class_stack.pop()

    def _lower_method_body(self, method: MethodDecl) -> None:
        body = self._method_bodies.pop(method, None)
        if body is None:
            return
        self.type_scopes.append({tp.name for tp in method.type_parameters})
        self.scopes.append({p.name: p for p in method.parameters})
        method.body = self._block(body)
        self.scopes.pop()
        self.type_scopes.pop()

    def _anonymous_class(self, body: tree_sitter.Node) -> ClassDecl:
        outer = self.class_stack[-1].qualified_name if self.class_stack else self.package
        cls = ClassDecl(self.token(), line_of(body), "<anonymous>", f"{outer}.<anonymous>")
        self._declare_members(cls, body)
        self._lower_bodies(cls)
        return cls

    # --- Statements ---

    def _block(self, node: tree_sitter.Node) -> Block:
        self.scopes.append({})
        statements = []
        for child in named_children(node):
            stmt = self._stmt(child)
            if stmt is not None:
                statements.append(stmt)
        self.scopes.pop()
        return Block(self.token(), line_of(node), statements)

    def _stmt(self, node: Optional[tree_sitter.Node]) -> Optional[Stmt]:
        if node is None:
            return None
        line = line_of(node)
        match node.type:
            case "block" | "constructor_body":
                return self._block(node)
            case "local_variable_declaration":
                return self._local_variables(node)
            case "expression_statement":
                children = named_children(node)
                if not children:
                    return None
                return ExpressionStatement(self.token(), line, self._expr(children[0]))
            case "explicit_constructor_invocation":
                keyword = node.child_by_field_name("constructor").type
                arguments = self._arguments(node.child_by_field_name("arguments"))
                call = ConstructorCall(self.token(), line, keyword, arguments)
                return ExpressionStatement(self.token(), line, call)
            case "return_statement":
                children = named_children(node)
                value = self._expr(children[0]) if children else None
                return Return(self.token(), line, value)
            case "throw_statement":
                return Throw(self.token(), line, self._expr(named_children(node)[0]))
            case "yield_statement":
                return ExpressionStatement(self.token(), line, self._expr(named_children(node)[0]))
            case "if_statement":
                condition = self._expr(node.child_by_field_name("condition"))
                then = self._stmt(node.child_by_field_name("consequence")) or Block(self.token(), line)
                otherwise = self._stmt(node.child_by_field_name("alternative"))
                return If(self.token(), line, condition, then, otherwise)
            case "while_statement" | "do_statement":
                condition = self._expr(node.child_by_field_name("condition"))
                body = self._stmt(node.child_by_field_name("body")) or Block(self.token(), line)
                return While(self.token(), line, condition, body, do_while=node.type == "do_statement")
            case "for_statement":
                return self._for(node)
            case "enhanced_for_statement":
                return self._for_each(node)
            case "try_statement" | "try_with_resources_statement":
                return self._try(node)
            case "switch_expression":
                return self._switch(node)
            case "synchronized_statement":
                lock = next(c for c in named_children(node) if c.type == "parenthesized_expression")
                body = self._block(node.child_by_field_name("body"))
                return Synchronized(self.token(), line, self._expr(lock), body)
            case "labeled_statement":
                return self._stmt(named_children(node)[-1])
            case "break_statement" | "continue_statement":
                return Jump(self.token(), line, node.type.split("_")[0])
            case "assert_statement":
                exprs = [self._expr(c) for c in named_children(node)]
                return OtherStatement(self.token(), line, exprs)
            case kind if kind in CLASS_NODE_TYPES:
                outer = self.class_stack[-1] if self.class_stack else None
                cls = self._declare_class(node, outer)
                self._lower_bodies(cls)
                return LocalClass(self.token(), line, cls)
            case _:
                return OtherStatement(self.token(), line)

    def _local_variables(self, node: tree_sitter.Node) -> LocalVariable:
        annotations = self._modifier_annotations(node)
        type_node = node.child_by_field_name("type")
        declarations = []
        for declarator in node.children_by_field_name("declarator"):
            decl = self._var_decl(type_node, declarator, DeclKind.LOCAL, TypeRole.LOCAL, annotations)
            value = declarator.child_by_field_name("value")
            if value is not None:
                decl.initializer = self._initializer(value)
            self._declare(decl)
            declarations.append(decl)
        return LocalVariable(self.token(), line_of(node), declarations)

    def _for(self, node: tree_sitter.Node) -> For:
        self.scopes.append({})
        init: list[Stmt] = []
        for child in node.children_by_field_name("init"):
            if child.type == "local_variable_declaration":
                init.append(self._local_variables(child))
            else:
                init.append(ExpressionStatement(self.token(), line_of(child), self._expr(child)))
        condition_node = node.child_by_field_name("condition")
        condition = self._expr(condition_node) if condition_node is not None else None
        update = [self._expr(c) for c in node.children_by_field_name("update")]
        body = self._stmt(node.child_by_field_name("body"))
        self.scopes.pop()
        return For(self.token(), line_of(node), init, condition, update, body)

    def _for_each(self, node: tree_sitter.Node) -> ForEach:
        self.scopes.append({})
        iterable = self._expr(node.child_by_field_name("value"))
        annotations = self._modifier_annotations(node)
        name_node = node.child_by_field_name("name")
        ref = self._declared_type(
            node.child_by_field_name("type"), TypeRole.LOCAL, annotations,
            node.child_by_field_name("dimensions"),
        )
        variable = VarDecl(
            self.token(), line_of(name_node), self.text(name_node), DeclKind.LOCAL, ref,
            annotations=annotations,
        )
        self._declare(variable)
        body = self._stmt(node.child_by_field_name("body")) or Block(self.token(), line_of(node))
        self.scopes.pop()
        return ForEach(self.token(), line_of(node), variable, iterable, body)

    def _try(self, node: tree_sitter.Node) -> Try:
        self.scopes.append({})
        resources = []
        resource_list = node.child_by_field_name("resources")
        for resource in named_children(resource_list):
            if resource.type != "resource" or resource.child_by_field_name("type") is None:
                continue
            decl = self._var_decl(
                resource.child_by_field_name("type"), resource, DeclKind.LOCAL, TypeRole.LOCAL,
                self._modifier_annotations(resource),
            )
            value = resource.child_by_field_name("value")
            if value is not None:
                decl.initializer = self._expr(value)
            self._declare(decl)
            resources.append(decl)
        body = self._block(node.child_by_field_name("body"))
        self.scopes.pop()

        result = Try(self.token(), line_of(node), body, resources)
        for child in named_children(node):
            if child.type == "catch_clause":
                result.catches.append(self._catch(child))
            elif child.type == "finally_clause":
                result.finally_block = self._block(named_children(child)[-1])
        return result

    def _catch(self, node: tree_sitter.Node) -> CatchClause:
        parameter = next(c for c in named_children(node) if c.type == "catch_formal_parameter")
        catch_type = next(c for c in named_children(parameter) if c.type == "catch_type")
        types = named_children(catch_type)
        if len(types) == 1:
            ref = self._type(types[0])
        else:
            ref = self._opaque(catch_type)
        if ref is not None:
            ref.role = TypeRole.LOCAL
        name_node = parameter.child_by_field_name("name")
        decl = VarDecl(self.token(), line_of(name_node), self.text(name_node), DeclKind.LOCAL, ref)
        self.scopes.append({decl.name: decl})
        body = self._block(node.child_by_field_name("body"))
        self.scopes.pop()
        return CatchClause(self.token(), line_of(node), decl, body)

    def _switch(self, node: tree_sitter.Node) -> Switch:
        selector = self._expr(node.child_by_field_name("condition"))
        body: list[Stmt] = []
        self.scopes.append({})
        for group in named_children(node.child_by_field_name("body")):
            for child in named_children(group):
                if child.type == "switch_label":
                    continue
                stmt = self._stmt(child)
                if stmt is not None:
                    body.append(stmt)
        self.scopes.pop()
        return Switch(self.token(), line_of(node), selector, body)

    # --- Expressions ---

    def _initializer(self, node: tree_sitter.Node) -> Expr:
        if node.type == "array_initializer":
            return self._array_init(node)
        return self._expr(node)

    def _array_init(self, node: tree_sitter.Node) -> ArrayInit:
        return ArrayInit(
            self.token(), line_of(node), [self._initializer(c) for c in named_children(node)]
        )

    def _arguments(self, node: Optional[tree_sitter.Node]) -> list[Expr]:
        return [self._expr(c) for c in named_children(node)]

    def _expr(self, node: tree_sitter.Node) -> Expr:
        line = line_of(node)
        kind = node.type

        if kind in LITERAL_KINDS:
            return Literal(self.token(), line, LITERAL_KINDS[kind], self.text(node))

        match kind:
            case "parenthesized_expression":
                return self._expr(named_children(node)[0])
            case "null_literal":
                return NullLiteral(self.token(), line)
            case "this" | "super":
                return This(self.token(), line)
            case "identifier":
                return self._identifier(node)
            case "field_access":
                return self._field_access(node)
            case "method_invocation":
                return self._method_invocation(node)
            case "object_creation_expression":
                type_node = node.child_by_field_name("type")
                created = self._root_type(type_node, TypeRole.NEW_INSTANCE) or self._opaque(type_node)
                created.role = TypeRole.NEW_INSTANCE
                diamond = False
                if type_node.type == "generic_type":
                    args_node = next((c for c in named_children(type_node) if c.type == "type_arguments"), None)
                    diamond = args_node is not None and not named_children(args_node)
                arguments = self._arguments(node.child_by_field_name("arguments"))
                body_node = next((c for c in named_children(node) if c.type == "class_body"), None)
                body = self._anonymous_class(body_node) if body_node is not None else None
                return NewObject(self.token(), line, created, arguments, diamond, body)
            case "array_creation_expression":
                element = self._type(node.child_by_field_name("type")) or self._opaque(node)
                dimensions = [
                    self._expr(named_children(c)[0]) for c in node.children if c.type == "dimensions_expr"
                ]
                depth = len(dimensions) + sum(
                    self.text(c).count("[") for c in node.children if c.type == "dimensions"
                )
                created = self._wrap_array(element, max(depth, 1), line)
                created.role = TypeRole.NEW_INSTANCE
                value = node.child_by_field_name("value")
                initializer = self._array_init(value) if value is not None else None
                return NewArray(self.token(), line, created, dimensions, initializer)
            case "array_initializer":
                return self._array_init(node)
            case "array_access":
                return ArrayAccess(
                    self.token(), line,
                    self._expr(node.child_by_field_name("array")),
                    self._expr(node.child_by_field_name("index")),
                )
            case "assignment_expression":
                return Assign(
                    self.token(), line,
                    self._expr(node.child_by_field_name("left")),
                    node.child_by_field_name("operator").type,
                    self._initializer(node.child_by_field_name("right")),
                )
            case "binary_expression":
                return Binary(
                    self.token(), line,
                    node.child_by_field_name("operator").type,
                    self._expr(node.child_by_field_name("left")),
                    self._expr(node.child_by_field_name("right")),
                )
            case "unary_expression":
                return Unary(
                    self.token(), line,
                    node.child_by_field_name("operator").type,
                    self._expr(node.child_by_field_name("operand")),
                )
            case "update_expression":
                operator = next(c.type for c in node.children if c.type in ("++", "--"))
                return Unary(self.token(), line, operator, self._expr(named_children(node)[0]))
            case "ternary_expression":
                return Conditional(
                    self.token(), line,
                    self._expr(node.child_by_field_name("condition")),
                    self._expr(node.child_by_field_name("consequence")),
                    self._expr(node.child_by_field_name("alternative")),
                )
            case "cast_expression":
                types = node.children_by_field_name("type")
                if len(types) == 1:
                    target = self._type(types[0]) or self._opaque(types[0])
                else:
                    target = TypeRef(
                        self.token(), line, TypeConstructor.OPAQUE,
                        " & ".join(self.text(t) for t in types), "",
                        text=" & ".join(self.text(t) for t in types),
                    )
                target.role = TypeRole.CAST
                return Cast(self.token(), line, target, self._expr(node.child_by_field_name("value")))
            case "instanceof_expression":
                return self._instanceof(node)
            case "lambda_expression":
                return self._lambda(node)
            case "method_reference":
                return MethodReference(self.token(), line, self.text(node))
            case "switch_expression":
                selector = self._expr(node.child_by_field_name("condition"))
                return OpaqueExpression(self.token(), line, "switch", [selector])
            case _:
                return OpaqueExpression(self.token(), line, " ".join(self.text(node).split())[:60])

    def _identifier(self, node: tree_sitter.Node) -> Expr:
        name = self.text(node)
        line = line_of(node)
        decl = self._lookup_variable(name)
        if decl is not None:
            return NameRef(self.token(), line, name, decl)
        if self._looks_like_type(name):
            return TypeName(self.token(), line, self._qualify(name))
        return NameRef(self.token(), line, name, None)

    def _looks_like_type(self, name: str) -> bool:
        return (
            name in self.local_classes
            or name in self.imports
            or name in JAVA_LANG
            or name[:1].isupper()
        )

    def _field_access(self, node: tree_sitter.Node) -> Expr:
        line = line_of(node)
        name = self.text(node.child_by_field_name("field"))
        receiver = self._expr(node.child_by_field_name("object"))

        # Package and nested-class paths: java.util.Objects, Outer.Inner
        prefix = None
        if isinstance(receiver, TypeName):
            prefix = receiver.qualified_name
        elif isinstance(receiver, NameRef) and receiver.decl is None:
            prefix = receiver.name
        if prefix is not None:
            candidate = f"{prefix}.{name}"
            if candidate in self.frontend.known_classes or candidate in self.class_decls:
                return TypeName(self.token(), line, candidate)
            if isinstance(receiver, NameRef):
                return TypeName(self.token(), line, candidate)

        decl = None
        if isinstance(receiver, This) and self.class_stack:
            decl = self._find_field(self.class_stack[-1], name, set())
        elif isinstance(receiver, TypeName) and receiver.qualified_name in self.class_decls:
            decl = self._find_field(self.class_decls[receiver.qualified_name], name, set())
        return FieldAccess(self.token(), line, receiver, name, decl)

    def _method_invocation(self, node: tree_sitter.Node) -> MethodCall:
        line = line_of(node)
        name = self.text(node.child_by_field_name("name"))
        object_node = node.child_by_field_name("object")
        receiver: Optional[Expr] = None
        is_super = False
        if object_node is not None:
            if object_node.type == "super":
                is_super = True
            else:
                receiver = self._expr(object_node)
        type_arguments = []
        for arg in named_children(node.child_by_field_name("type_arguments")):
            ref = self._root_type(arg, TypeRole.CALL_TYPE_ARGUMENT)
            if ref is not None:
                type_arguments.append(ref)
        arguments = self._arguments(node.child_by_field_name("arguments"))
        if (
            receiver is None and not is_super
            and name in self.static_imports
            and not self._enclosing_has_method(name)
        ):
            receiver = TypeName(self.token(), line, self.static_imports[name])
        return MethodCall(self.token(), line, receiver, name, type_arguments, arguments, is_super)

    def _instanceof(self, node: tree_sitter.Node) -> InstanceOf:
        line = line_of(node)
        expression = self._expr(node.child_by_field_name("left"))
        right = node.child_by_field_name("right") or node.child_by_field_name("pattern")
        name_node = node.child_by_field_name("name")
        type_name = self.text(right) if right is not None else ""
        if right is not None and right.type == "type_pattern":
            parts = named_children(right)
            type_name = self.text(parts[0])
            if parts[-1].type == "identifier":
                name_node = parts[-1]
        binding = None
        if name_node is not None:
            binding = VarDecl(self.token(), line_of(name_node), self.text(name_node), DeclKind.LOCAL, None)
            self._declare(binding)
        return InstanceOf(self.token(), line, expression, type_name, binding)

    def _lambda(self, node: tree_sitter.Node) -> Lambda:
        line = line_of(node)
        params_node = node.child_by_field_name("parameters")
        parameters: list[VarDecl] = []
        if params_node.type == "identifier":
            parameters.append(VarDecl(
                self.token(), line, self.text(params_node), DeclKind.PARAMETER, None, index=0
            ))
        elif params_node.type == "inferred_parameters":
            for i, ident in enumerate(named_children(params_node)):
                parameters.append(VarDecl(
                    self.token(), line_of(ident), self.text(ident), DeclKind.PARAMETER, None, index=i
                ))
        else:
            parameters = self._formal_parameters(params_node)

        self.scopes.append({p.name: p for p in parameters})
        body_node = node.child_by_field_name("body")
        if body_node.type == "block":
            body: Expr | Block = self._block(body_node)
        else:
            body = self._expr(body_node)
        self.scopes.pop()
        return Lambda(self.token(), line, parameters, body)

    # ====================================================================
    # Names and modifiers
    # ====================================================================

    def _declare(self, decl: VarDecl) -> None:
        if self.scopes:
            self.scopes[-1][decl.name] = decl

    def _lookup_variable(self, name: str) -> Optional[VarDecl]:
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        for cls in reversed(self.class_stack):
            decl = self._find_field(cls, name, set())
            if decl is not None:
                return decl
        return None

    def _find_field(self, cls: ClassDecl, name: str, seen: set[str]) -> Optional[VarDecl]:
        seen.add(cls.qualified_name)
        for decl in cls.fields:
            if decl.name == name:
                return decl
        for supertype in cls.supertypes:
            parent = self.class_decls.get(supertype.qualified_name)
            if parent is not None and parent.qualified_name not in seen:
                decl = self._find_field(parent, name, seen)
                if decl is not None:
                    return decl
        return None

    def _enclosing_has_method(self, name: str) -> bool:
        return any(m.name == name for cls in self.class_stack for m in cls.methods)

    def _modifiers(self, node: tree_sitter.Node) -> Optional[tree_sitter.Node]:
        return next((c for c in node.children if c.type == "modifiers"), None)

    def _modifier_annotations(self, node: tree_sitter.Node) -> list[str]:
        modifiers = self._modifiers(node)
        return [self._annotation_name(c) for c in named_children(modifiers) if c.type in ANNOTATION_TYPES]

    def _annotation_name(self, node: tree_sitter.Node) -> str:
        name = node.child_by_field_name("name")
        return self.text(name).rsplit(".", 1)[-1] if name is not None else ""

    def _has_modifier(self, node: tree_sitter.Node, keyword: str) -> bool:
        modifiers = self._modifiers(node)
        return modifiers is not None and any(c.type == keyword for c in modifiers.children)


def parse_java(text: str, path: str = "<source>", known_classes: Iterable[str] = ()) -> CompilationUnit:
    """Parse one Java source string with a fresh frontend."""
    return JavaFrontend(known_classes).parse_source(text, path)
