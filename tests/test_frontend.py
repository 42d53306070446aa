"""
Test suite for the tree-sitter Java frontend.

Tests lowering of Java source into the typed AST:
- type nodes with identity tokens, constructors and roles
- name qualification through imports and java.lang
- identifier resolution to declarations
- statements and expressions the collector depends on
"""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nullinfer.errors import FrontendError
from nullinfer.library import Library
from nullinfer.syntaxer import JavaFrontend, parse_java
from nullinfer.syntaxer.nodes import (
    Cast,
    DeclKind,
    ExpressionStatement,
    FieldAccess,
    ForEach,
    If,
    Lambda,
    LocalVariable,
    MethodCall,
    NameRef,
    NewObject,
    Return,
    TypeConstructor,
    TypeName,
    TypeRef,
    TypeRole,
    walk,
)


@pytest.fixture(scope="module")
def frontend():
    return JavaFrontend(Library.default().classes)


def only_class(unit):
    assert len(unit.classes) == 1
    return unit.classes[0]


def method(cls, name):
    return next(m for m in cls.methods if m.name == name)


class TestTypes:
    """Type nodes."""

    def test_field_type(self, frontend):
        unit = frontend.parse_source("class Test { String s; }")
        field = only_class(unit).fields[0]
        assert field.kind is DeclKind.FIELD
        assert field.type.constructor is TypeConstructor.CLASS
        assert field.type.qualified_name == "java.lang.String"
        assert field.type.role is TypeRole.FIELD
        assert field.type.token is not None

    def test_tokens_unique(self, frontend):
        unit = frontend.parse_source("class Test { java.util.Map<String, int[]> m; Object o; }")
        tokens = [n.token for n in walk(unit) if isinstance(n, TypeRef)]
        assert len(tokens) == len(set(tokens))

    def test_tokens_unique_across_frontends(self):
        first = parse_java("class A { String x; }")
        second = JavaFrontend().parse_source("class B { String y; }")
        tokens = [n.token for unit in (first, second) for n in walk(unit) if isinstance(n, TypeRef)]
        assert len(tokens) == len(set(tokens))

    def test_generic_and_array(self, frontend):
        unit = frontend.parse_source("import java.util.Map;\nclass Test { Map<String, int[]> m; }")
        ref = only_class(unit).fields[0].type
        assert ref.qualified_name == "java.util.Map"
        key, value = ref.arguments
        assert key.qualified_name == "java.lang.String"
        assert value.constructor is TypeConstructor.ARRAY
        assert value.arguments[0].constructor is TypeConstructor.PRIMITIVE

    def test_c_style_array_dimensions(self, frontend):
        unit = frontend.parse_source("class Test { String names[]; }")
        ref = only_class(unit).fields[0].type
        assert ref.constructor is TypeConstructor.ARRAY
        assert ref.role is TypeRole.FIELD

    def test_void_has_no_type(self, frontend):
        unit = frontend.parse_source("class Test { void run() {} }")
        assert method(only_class(unit), "run").return_type is None

    def test_var_has_no_type(self, frontend):
        unit = frontend.parse_source("class Test { void run() { var x = \"a\"; } }")
        local = method(only_class(unit), "run").body.statements[0]
        assert isinstance(local, LocalVariable)
        assert local.declarations[0].type is None

    def test_type_parameter(self, frontend):
        unit = frontend.parse_source("class Box<T> { T value; <U> U map(U u) { return u; } }")
        cls = only_class(unit)
        assert cls.type_parameter_names() == ["T"]
        assert cls.fields[0].type.constructor is TypeConstructor.TYPE_PARAMETER
        assert method(cls, "map").return_type.constructor is TypeConstructor.TYPE_PARAMETER

    def test_function_type(self, frontend):
        unit = frontend.parse_source(
            "import java.util.function.Function;\nclass Test { Function<String, Integer> f; }"
        )
        ref = only_class(unit).fields[0].type
        assert ref.constructor is TypeConstructor.FUNCTION
        assert ref.arguments[1].qualified_name == "java.lang.Integer"

    def test_wildcard(self, frontend):
        unit = frontend.parse_source("import java.util.List;\nclass Test { List<? extends Number> xs; }")
        wildcard = only_class(unit).fields[0].type.arguments[0]
        assert wildcard.constructor is TypeConstructor.WILDCARD
        assert wildcard.variance == "out"
        assert wildcard.arguments[0].qualified_name == "java.lang.Number"

    def test_vararg_parameter(self, frontend):
        unit = frontend.parse_source("class Test { void log(String... parts) {} }")
        param = method(only_class(unit), "log").parameters[0]
        assert param.vararg
        assert param.type.qualified_name == "java.lang.String"
        assert param.type.constructor is TypeConstructor.CLASS

    def test_annotations(self, frontend):
        unit = frontend.parse_source("class Test { @Nullable String find() { return null; } }")
        ref = method(only_class(unit), "find").return_type
        assert "Nullable" in ref.annotations

    def test_intersection_cast_is_opaque(self, frontend):
        unit = frontend.parse_source(
            "class Test { void f() { Runnable r = (Runnable & Cloneable) () -> {}; } }"
        )
        cast = method(only_class(unit), "f").body.statements[0].declarations[0].initializer
        assert isinstance(cast, Cast)
        assert cast.type.constructor is TypeConstructor.OPAQUE
        assert cast.type.role is TypeRole.CAST
        assert cast.type.text == "Runnable & Cloneable"


class TestNames:
    """Qualification and resolution."""

    def test_same_file_class(self, frontend):
        unit = frontend.parse_source("package p;\nclass A { B b; }\nclass B {}")
        assert unit.classes[0].fields[0].type.qualified_name == "p.B"

    def test_nested_class(self, frontend):
        unit = frontend.parse_source("class Outer { Inner i; static class Inner {} }")
        cls = only_class(unit)
        assert cls.nested[0].qualified_name == "Outer.Inner"
        assert cls.fields[0].type.qualified_name == "Outer.Inner"

    def test_wildcard_import(self, frontend):
        unit = frontend.parse_source("import java.util.*;\nclass Test { List<String> xs; }")
        assert only_class(unit).fields[0].type.qualified_name == "java.util.List"

    def test_unresolved_name_kept(self, frontend):
        unit = frontend.parse_source("class Test { com.example.Widget w; }")
        assert only_class(unit).fields[0].type.qualified_name == "com.example.Widget"

    def test_parameter_reference(self, frontend):
        unit = frontend.parse_source("class Test { int f(String p) { return p.length(); } }")
        m = method(only_class(unit), "f")
        ret = m.body.statements[0]
        assert isinstance(ret, Return)
        call = ret.value
        assert isinstance(call, MethodCall)
        assert isinstance(call.receiver, NameRef)
        assert call.receiver.decl is m.parameters[0]

    def test_field_reference_from_body(self, frontend):
        unit = frontend.parse_source("class Test { void f() { s = null; } String s; }")
        cls = only_class(unit)
        stmt = method(cls, "f").body.statements[0]
        assert isinstance(stmt, ExpressionStatement)
        assert stmt.expression.target.decl is cls.fields[0]

    def test_static_call_receiver(self, frontend):
        unit = frontend.parse_source("class Test { void f() { System.getProperty(\"a\"); } }")
        call = method(only_class(unit), "f").body.statements[0].expression
        assert isinstance(call.receiver, TypeName)
        assert call.receiver.qualified_name == "java.lang.System"

    def test_static_field_access(self, frontend):
        unit = frontend.parse_source("class Test { void f() { System.out.println(1); } }")
        call = method(only_class(unit), "f").body.statements[0].expression
        assert isinstance(call.receiver, FieldAccess)
        assert call.receiver.name == "out"

    def test_static_import(self, frontend):
        unit = frontend.parse_source(
            "import static java.util.Objects.requireNonNull;\n"
            "class Test { void f(String s) { requireNonNull(s); } }"
        )
        call = method(only_class(unit), "f").body.statements[0].expression
        assert isinstance(call.receiver, TypeName)
        assert call.receiver.qualified_name == "java.util.Objects"


class TestStatements:
    """Statement and expression lowering."""

    def test_if_condition(self, frontend):
        unit = frontend.parse_source("class Test { void f(String x) { if (x != null) { x.length(); } } }")
        stmt = method(only_class(unit), "f").body.statements[0]
        assert isinstance(stmt, If)
        assert stmt.condition.operator == "!="

    def test_for_each(self, frontend):
        unit = frontend.parse_source(
            "import java.util.List;\nclass Test { void f(List<String> xs) { for (String x : xs) {} } }"
        )
        stmt = method(only_class(unit), "f").body.statements[0]
        assert isinstance(stmt, ForEach)
        assert stmt.variable.type.role is TypeRole.LOCAL

    def test_lambda_parameters(self, frontend):
        unit = frontend.parse_source(
            "import java.util.function.Function;\nclass Test { Function<String, String> f = s -> s; }"
        )
        lam = only_class(unit).fields[0].initializer
        assert isinstance(lam, Lambda)
        assert lam.parameters[0].type is None
        assert lam.body.decl is lam.parameters[0]

    def test_diamond(self, frontend):
        unit = frontend.parse_source(
            "import java.util.*;\nclass Test { List<String> xs = new ArrayList<>(); }"
        )
        created = only_class(unit).fields[0].initializer
        assert isinstance(created, NewObject)
        assert created.diamond
        assert created.type.role is TypeRole.NEW_INSTANCE

    def test_anonymous_class(self, frontend):
        unit = frontend.parse_source(
            "class Test { Runnable r = new Runnable() { public void run() {} }; }"
        )
        created = only_class(unit).fields[0].initializer
        assert created.body is not None
        assert created.body.methods[0].name == "run"

    def test_constructor_name(self, frontend):
        unit = frontend.parse_source("class Test { Test(String s) {} }")
        ctor = only_class(unit).methods[0]
        assert ctor.is_constructor
        assert ctor.name == "<init>"

    def test_line_numbers(self, frontend):
        unit = frontend.parse_source("class Test {\n\n    String s;\n}")
        assert only_class(unit).fields[0].type.line == 3


class TestErrors:
    """Unreadable input."""

    def test_missing_file(self, frontend, tmp_path):
        with pytest.raises(FrontendError):
            frontend.parse_file(tmp_path / "Missing.java")

    def test_syntax_error_is_not_fatal(self):
        unit = parse_java("class Test { String s = ; }", path="Broken.java")
        assert unit.path == "Broken.java"
