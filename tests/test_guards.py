"""
Test suite for null-check dominance (smart casts).
"""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nullinfer.syntaxer import GuardOracle, parse_java
from nullinfer.syntaxer.guards import always_exits, condition_facts
from nullinfer.syntaxer.nodes import If, MethodCall, NameRef, walk


def receivers(unit, name):
    """Name references used as call receivers, in source order."""
    return [
        node.receiver for node in walk(unit)
        if isinstance(node, MethodCall) and isinstance(node.receiver, NameRef) and node.receiver.name == name
    ]


def analyse(body, params="String x", enabled=True):
    unit = parse_java(f"class Test {{ String s; int f({params}) {{ {body} }} String other() {{ return null; }} }}")
    return unit, GuardOracle([unit], enabled=enabled)


class TestSmartCasts:
    """Regions dominated by a null check."""

    def test_unguarded(self):
        unit, guards = analyse("return x.length();")
        assert not guards.is_smart_cast(receivers(unit, "x")[0])

    def test_if_branch(self):
        unit, guards = analyse("if (x != null) { return x.length(); } return 0;")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_else_branch(self):
        unit, guards = analyse("if (x == null) { return 0; } else { return x.length(); }")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_wrong_branch(self):
        unit, guards = analyse("if (x == null) { return x.length(); } return 0;")
        assert not guards.is_smart_cast(receivers(unit, "x")[0])

    def test_after_early_return(self):
        unit, guards = analyse("if (x == null) return 0; return x.length();")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_after_early_throw(self):
        unit, guards = analyse("if (x == null) throw new IllegalArgumentException(); return x.length();")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_no_fallthrough_guard_without_exit(self):
        unit, guards = analyse("if (x == null) { other(); } return x.length();")
        assert not guards.is_smart_cast(receivers(unit, "x")[0])

    def test_assignment_kills_fact(self):
        unit, guards = analyse("if (x != null) { x = other(); return x.length(); } return 0;")
        assert not guards.is_smart_cast(receivers(unit, "x")[0])

    def test_and_right_hand_side(self):
        unit, guards = analyse("return x != null && x.isEmpty() ? 1 : 0;")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_or_right_hand_side(self):
        unit, guards = analyse("return x == null || x.isEmpty() ? 1 : 0;")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_conditional_branch(self):
        unit, guards = analyse("return x != null ? x.length() : 0;")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_instanceof(self):
        unit, guards = analyse("if (x instanceof String) { return x.length(); } return 0;")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_negation(self):
        unit, guards = analyse("if (!(x == null)) { return x.length(); } return 0;")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_while_body(self):
        unit, guards = analyse("while (x != null) { x.length(); } return 0;")
        assert guards.is_smart_cast(receivers(unit, "x")[0])

    def test_fields_are_not_tracked(self):
        unit, guards = analyse("if (s != null) { return s.length(); } return 0;", params="")
        assert not guards.is_smart_cast(receivers(unit, "s")[0])

    def test_disabled(self):
        unit, guards = analyse("if (x != null) { return x.length(); } return 0;", enabled=False)
        assert not guards.is_smart_cast(receivers(unit, "x")[0])


def first_check(unit):
    return next(node for node in walk(unit) if isinstance(node, If)).condition


class TestGuardedBy:
    """Which null check guards an expression."""

    def test_dominating_check(self):
        unit, guards = analyse("if (x != null) { return x.length(); } return 0;")
        assert guards.is_guarded_by(first_check(unit), receivers(unit, "x")[0])

    def test_else_branch_of_not_equal(self):
        unit, guards = analyse("if (x != null) { return 0; } else { return x.length(); }")
        assert not guards.is_guarded_by(first_check(unit), receivers(unit, "x")[0])

    def test_killed_by_assignment(self):
        unit, guards = analyse("if (x != null) { x = other(); return x.length(); } return 0;")
        assert not guards.is_guarded_by(first_check(unit), receivers(unit, "x")[0])

    def test_other_check_does_not_guard(self):
        unit, guards = analyse(
            "if (x != null) { return x.length(); } if (s != null) { return 1; } return 0;"
        )
        second = [node for node in walk(unit) if isinstance(node, If)][1].condition
        assert not guards.is_guarded_by(second, receivers(unit, "x")[0])

    def test_disabled(self):
        unit, guards = analyse("if (x != null) { return x.length(); } return 0;", enabled=False)
        assert not guards.is_guarded_by(first_check(unit), receivers(unit, "x")[0])


class TestConditionFacts:
    """Facts derived from a condition."""

    @pytest.fixture
    def method(self):
        unit = parse_java(
            "class Test { void f(String x, String y) {"
            " if (x != null) {} if (null == x) {} if (x != null && y != null) {} if (x != null || y != null) {} } }"
        )
        return unit.classes[0].methods[0]

    def _condition(self, method, index):
        return method.body.statements[index].condition

    def test_not_equal(self, method):
        when_true, when_false = condition_facts(self._condition(method, 0))
        assert [d.name for d in when_true] == ["x"]
        assert not when_false

    def test_null_on_left(self, method):
        when_true, when_false = condition_facts(self._condition(method, 1))
        assert not when_true
        assert [d.name for d in when_false] == ["x"]

    def test_conjunction(self, method):
        when_true, _ = condition_facts(self._condition(method, 2))
        assert sorted(d.name for d in when_true) == ["x", "y"]

    def test_disjunction_proves_nothing(self, method):
        when_true, _ = condition_facts(self._condition(method, 3))
        assert not when_true


class TestAlwaysExits:
    """Statements that never fall through."""

    def _body(self, text):
        return parse_java(f"class Test {{ int f(boolean b) {{ {text} }} }}").classes[0].methods[0].body

    def test_return(self):
        assert always_exits(self._body("return 1;"))

    def test_if_without_else(self):
        assert not always_exits(self._body("if (b) return 1;").statements[0])

    def test_if_with_else(self):
        assert always_exits(self._body("if (b) return 1; else throw new RuntimeException();").statements[0])
