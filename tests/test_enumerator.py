"""
Test suite for the type-position enumerator.

Tests id assignment, root kinds and labels, child slots of composite
types and source hints.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nullinfer.components.enumerator import enumerate_positions
from nullinfer.library import Library
from nullinfer.oracle import AnnotationOracle
from nullinfer.positions import PositionKind, SourceHint
from nullinfer.syntaxer import parse_java
from nullinfer.syntaxer.nodes import TypeConstructor, TypeRef, walk


@pytest.fixture(scope="module")
def library():
    return Library.default()


def positions_for(source, oracle=None, library=None):
    known = library.classes if library is not None else ()
    unit = parse_java(source, known_classes=known)
    return unit, enumerate_positions([unit], oracle, library)


def summary(table):
    return [(p.id, p.kind, p.parent, p.index, p.label) for p in table]


class TestRoots:
    """Root positions of declarations and expressions."""

    def test_method_order(self):
        _, table = positions_for("class Test { int foo(String p) { String x = null; return 0; } }")
        assert summary(table) == [
            (0, PositionKind.RETURN, None, None, "Test.foo"),
            (1, PositionKind.PARAMETER, None, None, "Test.foo.p"),
            (2, PositionKind.LOCAL, None, None, "Test.foo.x"),
        ]

    def test_field_label(self):
        _, table = positions_for("class Test { String name; }")
        assert table[0].kind is PositionKind.FIELD
        assert table[0].label == "Test.name"

    def test_void_and_var_have_no_position(self):
        _, table = positions_for("class Test { void run() { var x = \"a\"; } }")
        assert len(table) == 0

    def test_cast_labelled_by_line(self):
        _, table = positions_for(
            "class Test {\n"
            "    void foo(String s) {\n"
            "        Object o = (Object) s;\n"
            "    }\n"
            "}\n"
        )
        assert [(p.kind, p.label) for p in table] == [
            (PositionKind.PARAMETER, "Test.foo.s"),
            (PositionKind.LOCAL, "Test.foo.o"),
            (PositionKind.CAST, "Test.foo@3"),
        ]

    def test_supertype(self):
        _, table = positions_for("class Base {}\nclass Empty extends Base {}")
        assert [(p.kind, p.label) for p in table] == [(PositionKind.SUPERTYPE, "Empty")]

    def test_type_parameter_bound(self):
        _, table = positions_for("class Box<T extends Comparable<T>> {}")
        assert summary(table) == [
            (0, PositionKind.BOUND, None, None, "Box.T"),
            (1, PositionKind.TYPE_ARGUMENT_OF, 0, 0, "Box.T"),
        ]

    def test_nested_class_label(self):
        _, table = positions_for("class Test { static class Inner { String s; } }")
        assert table[0].label == "Test.Inner.s"

    def test_lambda_parameter(self):
        _, table = positions_for(
            "import java.util.function.Function;\n"
            "class Test { void f() { Function<String, String> g = (String s) -> s; } }"
        )
        labels = [p.label for p in table.roots()]
        assert labels == ["Test.f.g", "Test.f.<lambda>.s"]


class TestChildSlots:
    """Composite types get one Position per slot."""

    def test_generic_and_array(self, library):
        _, table = positions_for("class Test { java.util.Map<String, int[]> m; }", library=library)
        assert summary(table) == [
            (0, PositionKind.FIELD, None, None, "Test.m"),
            (1, PositionKind.TYPE_ARGUMENT_OF, 0, 0, "Test.m"),
            (2, PositionKind.TYPE_ARGUMENT_OF, 0, 1, "Test.m"),
            (3, PositionKind.ELEMENT_OF, 2, None, "Test.m"),
        ]
        assert table.children_of(0) == [1, 2]
        assert table[3].hint is SourceHint.PRIMITIVE
        assert not table[3].inferable

    def test_function_slots(self):
        _, table = positions_for(
            "import java.util.function.Function;\nclass Test { Function<String, Integer> f; }"
        )
        assert [(p.kind, p.parent, p.index) for p in table] == [
            (PositionKind.FIELD, None, None),
            (PositionKind.FUNCTION_PARAM_OF, 0, 0),
            (PositionKind.FUNCTION_RETURN_OF, 0, None),
        ]

    def test_bounded_wildcard_takes_slot(self):
        unit, table = positions_for("import java.util.List;\nclass Test { List<? extends Number> xs; }")
        wildcard = unit.classes[0].fields[0].type.arguments[0]
        assert table.id_for_token(wildcard.token) is None
        assert table.id_for_token(wildcard.arguments[0].token) == 1
        assert table[1].kind is PositionKind.TYPE_ARGUMENT_OF

    def test_unbounded_wildcard_has_no_slot(self):
        _, table = positions_for("import java.util.List;\nclass Test { List<?> xs; }")
        assert len(table) == 1

    def test_every_type_node_indexed(self):
        unit, table = positions_for(
            "import java.util.*;\n"
            "class Test<T> { Map<String, List<T>> m; T[] items; int f(List<String[]> xs) { return 0; } }"
        )
        for node in walk(unit):
            if isinstance(node, TypeRef) and node.constructor is not TypeConstructor.WILDCARD:
                assert table.id_for_token(node.token) is not None

    def test_parents_precede_children(self):
        _, table = positions_for("class Test { java.util.Map<String, java.util.List<int[]>> m; }")
        for position in table:
            if position.parent is not None:
                assert position.parent < position.id

    def test_self_referential_generic(self):
        _, table = positions_for("class Foo<T> { Foo<Foo<T>> next; }")
        assert summary(table) == [
            (0, PositionKind.FIELD, None, None, "Foo.next"),
            (1, PositionKind.TYPE_ARGUMENT_OF, 0, 0, "Foo.next"),
            (2, PositionKind.TYPE_ARGUMENT_OF, 1, 0, "Foo.next"),
        ]
        assert table.children_of(2) == []


class TestHints:
    """Source hints."""

    def test_primitive_return(self):
        _, table = positions_for("class Test { int size() { return 0; } }")
        assert table[0].hint is SourceHint.PRIMITIVE

    def test_platform_class(self, library):
        _, table = positions_for("class Test { String s; }", library=library)
        assert table[0].hint is SourceHint.PLATFORM

    def test_opaque_cast(self):
        _, table = positions_for(
            "class Test { void f() { Runnable r = (Runnable & Cloneable) () -> {}; } }"
        )
        cast = next(p for p in table if p.kind is PositionKind.CAST)
        assert cast.hint is SourceHint.OPAQUE

    def test_external_annotation(self):
        oracle = AnnotationOracle.from_bundles([{
            "classes": {"Test": {
                "fields": {"name": {"nullability": "Nullable"}},
                "methods": {"find": [{"nullability": {"return": "Nullable", "parameter:0": "NotNull"}}]},
            }},
        }])
        _, table = positions_for(
            "class Test { String name; String other; String find(String key) { return null; } }", oracle
        )
        hints = {p.label: p.hint for p in table}
        assert hints["Test.name"] is SourceHint.EXTERNAL_ANNOTATION
        assert hints["Test.other"] is None
        assert hints["Test.find"] is SourceHint.EXTERNAL_ANNOTATION
        assert hints["Test.find.key"] is SourceHint.EXTERNAL_ANNOTATION


class TestDeterminism:
    """Ids depend only on the input."""

    SOURCE = (
        "import java.util.*;\n"
        "class Test { List<String> xs = new ArrayList<>(); String f(Map<String, Integer> m) { return null; } }"
    )

    def test_same_input_same_ids(self, library):
        _, first = positions_for(self.SOURCE, library=library)
        _, second = positions_for(self.SOURCE, library=library)
        assert summary(first) == summary(second)
        assert [p.hint for p in first] == [p.hint for p in second]

    def test_ids_dense(self, library):
        _, table = positions_for(self.SOURCE, library=library)
        assert [p.id for p in table] == list(range(len(table)))
