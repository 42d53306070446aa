"""
Test suite for the evidence collector.

Each test parses a one-line Java snippet, enumerates its Positions and
checks the evidence tokens emitted for one construct.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nullinfer.components.collector import collect_evidence
from nullinfer.components.enumerator import enumerate_positions
from nullinfer.components.resolver import Resolver
from nullinfer.evidence import Cause, Equal, MustBeNotNull, MustBeNullable, Reason, Subtype, positions_of
from nullinfer.library import Library
from nullinfer.oracle import AnnotationOracle
from nullinfer.syntaxer import GuardOracle, parse_java


@pytest.fixture(scope="module")
def library():
    return Library.default()


@pytest.fixture(scope="module")
def oracle():
    return AnnotationOracle.default()


@pytest.fixture
def collect(library, oracle):
    def run(source, smart_casts=True):
        unit = parse_java(source, "Test.java", library.classes)
        positions = enumerate_positions([unit], oracle, library)
        resolver = Resolver([unit], library, positions)
        guards = GuardOracle([unit], enabled=smart_casts)
        return positions, collect_evidence([unit], positions, oracle, resolver, guards)
    return run


def pid(positions, label):
    return next(p.id for p in positions if p.label == label and p.parent is None)


class TestLiterals:
    """Null literals and fixed values."""

    def test_null_initializer(self, collect):
        positions, tokens = collect("class Test { void main() { String x = null; } }")
        assert tokens == [MustBeNullable(pid(positions, "Test.main.x"), Cause(Reason.NULL_LITERAL, 1))]

    def test_return_null(self, collect):
        positions, tokens = collect("class Test { String f() { return null; } }")
        assert MustBeNullable(pid(positions, "Test.f"), Cause(Reason.NULL_LITERAL, 1)) in tokens

    def test_array_initializer_element(self, collect):
        positions, tokens = collect("class Test { void f() { String[] a = {null}; } }")
        element = positions.children_of(pid(positions, "Test.f.a"))[0]
        assert MustBeNullable(element, Cause(Reason.NULL_LITERAL, 1)) in tokens

    def test_lambda_return(self, collect):
        positions, tokens = collect(
            "import java.util.function.Function;\nclass Test { Function<String, String> g = s -> null; }"
        )
        returns = positions.children_of(pid(positions, "Test.g"))[1]
        assert MustBeNullable(returns, Cause(Reason.NULL_LITERAL, 2)) in tokens


class TestUses:
    """Dereferences, comparisons and conditions."""

    def test_dereference(self, collect):
        positions, tokens = collect("class Test { int foo(String p) { return p.length(); } }")
        p = pid(positions, "Test.foo.p")
        assert MustBeNotNull(p, Cause(Reason.DEREF, 1, ".length()")) in tokens

    def test_primitive_return_pinned(self, collect):
        positions, tokens = collect("class Test { int foo(String p) { return p.length(); } }")
        assert MustBeNotNull(pid(positions, "Test.foo"), Cause(Reason.PRIMITIVE, 1, "int")) in tokens

    def test_compared_to_null(self, collect):
        positions, tokens = collect("class Test { boolean f(String p) { return p == null; } }")
        assert MustBeNullable(pid(positions, "Test.f.p"), Cause(Reason.COMPARED_TO_NULL, 1)) in tokens

    def test_smart_cast_emits_no_dereference(self, collect):
        positions, tokens = collect(
            "class Test { int f(String p) { if (p != null) return p.length(); return 0; } }"
        )
        p = pid(positions, "Test.f.p")
        assert not [t for t in tokens if isinstance(t, MustBeNotNull) and t.position == p]

    def test_dereference_without_smart_casts(self, collect):
        positions, tokens = collect(
            "class Test { int f(String p) { if (p != null) return p.length(); return 0; } }",
            smart_casts=False,
        )
        assert MustBeNotNull(pid(positions, "Test.f.p"), Cause(Reason.DEREF, 1, ".length()")) in tokens

    def test_used_as_condition(self, collect):
        positions, tokens = collect("class Test { void f(Boolean flag) { if (flag) {} } }")
        assert MustBeNotNull(pid(positions, "Test.f.flag"), Cause(Reason.USED_AS_CONDITION, 1)) in tokens

    def test_unboxed(self, collect):
        positions, tokens = collect("class Test { Integer count; int total() { return count; } }")
        assert MustBeNotNull(pid(positions, "Test.count"), Cause(Reason.UNBOXED, 1, "int")) in tokens


class TestFlows:
    """Value flows between Positions."""

    def test_initializer(self, collect):
        positions, tokens = collect("class Test { void f(String a) { String b = a; } }")
        a, b = pid(positions, "Test.f.a"), pid(positions, "Test.f.b")
        assert Subtype(a, b, Cause(Reason.INITIALIZER, 1, "b")) in tokens

    def test_cast(self, collect):
        positions, tokens = collect("class Test { void f(Object o) { String s = (String) o; } }")
        o = pid(positions, "Test.f.o")
        s = pid(positions, "Test.f.s")
        cast = pid(positions, "Test.f@1")
        assert Subtype(o, cast, Cause(Reason.CAST, 1)) in tokens
        assert Subtype(cast, s, Cause(Reason.INITIALIZER, 1, "s")) in tokens

    def test_spread(self, collect):
        positions, tokens = collect(
            "class Test { void log(String... parts) {} void f(String[] xs) { log(xs); } }"
        )
        parts = pid(positions, "Test.log.parts")
        xs = pid(positions, "Test.f.xs")
        element = positions.children_of(xs)[0]
        spread = Cause(Reason.SPREAD, 1, "log")
        assert MustBeNotNull(xs, spread) in tokens
        assert Equal(min(parts, element), max(parts, element), spread) in tokens

    def test_iteration(self, collect):
        positions, tokens = collect(
            "import java.util.List;\nclass Test { void f(List<String> xs) { for (String x : xs) {} } }"
        )
        xs = pid(positions, "Test.f.xs")
        element = positions.children_of(xs)[0]
        x = pid(positions, "Test.f.x")
        assert MustBeNotNull(xs, Cause(Reason.DEREF, 2, "for-each")) in tokens
        assert Equal(element, x, Cause(Reason.ITERATION, 2)) in tokens

    def test_external_nullable_return(self, collect):
        positions, tokens = collect("class Test { String f() { return System.getProperty(\"a\"); } }")
        cause = Cause(Reason.EXTERNAL_NULLABLE, 1, "System.getProperty")
        assert MustBeNullable(pid(positions, "Test.f"), cause) in tokens

    def test_override_equality(self, collect):
        positions, tokens = collect(
            "interface Source { String next(); }\n"
            "class Empty implements Source { public String next() { return null; } }"
        )
        parent = pid(positions, "Source.next")
        child = pid(positions, "Empty.next")
        assert Equal(parent, child, Cause(Reason.SUPER_DECLARATION, 2, "Source.next")) in tokens


class TestCollection:
    """Properties of the whole token list."""

    SOURCE = (
        "import java.util.*;\n"
        "class Test {\n"
        "    List<String> names = new ArrayList<>();\n"
        "    String first() { return names.isEmpty() ? null : names.get(0); }\n"
        "    int size(String s) { return s == null ? 0 : s.length(); }\n"
        "}\n"
    )

    def test_tokens_reference_known_positions(self, collect):
        positions, tokens = collect(self.SOURCE)
        for token in tokens:
            for position in positions_of(token):
                assert position in positions

    def test_no_duplicates(self, collect):
        _, tokens = collect(self.SOURCE)
        assert len(tokens) == len(set(tokens))

    def test_deterministic(self, collect):
        _, first = collect(self.SOURCE)
        _, second = collect(self.SOURCE)
        assert first == second
