"""
nullinfer/syntaxer/types.py

Type vocabulary shared by the frontend, the library model and the
renderer: primitive names, functional interfaces treated as function
types, and a small parser for the signature strings used in annotation
bundles ("java.util.Map<K, V>", "T...", "int[]").
"""

from __future__ import annotations

import re
from typing import Iterable, NamedTuple, Optional

from nullinfer.syntaxer.nodes import TypeConstructor, TypeRef

PRIMITIVES = frozenset({
    "boolean", "byte", "char", "short", "int", "long", "float", "double",
})

# Kotlin spelling of primitives and their boxes
KOTLIN_PRIMITIVES = {
    "boolean": "Boolean",
    "byte": "Byte",
    "char": "Char",
    "short": "Short",
    "int": "Int",
    "long": "Long",
    "float": "Float",
    "double": "Double",
}

KOTLIN_CLASSES = {
    "java.lang.Object": "Any",
    "java.lang.String": "String",
    "java.lang.Boolean": "Boolean",
    "java.lang.Byte": "Byte",
    "java.lang.Character": "Char",
    "java.lang.Short": "Short",
    "java.lang.Integer": "Int",
    "java.lang.Long": "Long",
    "java.lang.Float": "Float",
    "java.lang.Double": "Double",
    "java.lang.Void": "Unit",
}

# java.lang names resolvable without an import
JAVA_LANG = frozenset({
    "Object", "String", "Boolean", "Byte", "Character", "Short", "Integer",
    "Long", "Float", "Double", "Void", "Number", "Math", "System", "Iterable",
    "Comparable", "Runnable", "StringBuilder", "CharSequence", "Class",
    "Exception", "RuntimeException", "Throwable", "Error", "Thread",
    "IllegalArgumentException", "IllegalStateException", "NullPointerException",
    "Enum", "Record", "AutoCloseable", "Cloneable", "Override", "Deprecated",
    "SuppressWarnings", "FunctionalInterface", "SafeVarargs",
})

ARRAY_CLASS = "[]"


class FunctionShape(NamedTuple):
    """Which type arguments of a functional interface are params / return."""
    parameters: tuple[int, ...]
    returns: Optional[int]
    fixed_return: Optional[str] = None


FUNCTION_SHAPES: dict[str, FunctionShape] = {
    "java.util.function.Function": FunctionShape((0,), 1),
    "java.util.function.BiFunction": FunctionShape((0, 1), 2),
    "java.util.function.Supplier": FunctionShape((), 0),
    "java.util.function.Consumer": FunctionShape((0,), None, "Unit"),
    "java.util.function.BiConsumer": FunctionShape((0, 1), None, "Unit"),
    "java.util.function.Predicate": FunctionShape((0,), None, "Boolean"),
    "java.util.concurrent.Callable": FunctionShape((), 0),
}


def function_shape(qualified_name: str, argc: int) -> Optional[FunctionShape]:
    shape = FUNCTION_SHAPES.get(qualified_name)
    if shape is None:
        return None
    expected = len(shape.parameters) + (1 if shape.returns is not None else 0)
    return shape if expected == argc else None


def is_function_type(ref: TypeRef) -> bool:
    return ref.constructor is TypeConstructor.FUNCTION


# --- Signature strings -------------------------------------------------------

_TOKEN = re.compile(r"\s*(\.\.\.|\[\]|[<>,?]|[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)")


class SignatureSyntaxError(ValueError):
    pass


def _tokenize(text: str) -> list[str]:
    tokens = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if match is None:
            raise SignatureSyntaxError(f"unexpected input in type {text!r} at {pos}")
        tokens.append(match.group(1))
        pos = match.end()
    return tokens


class _SignatureParser:
    def __init__(self, text: str, type_parameters: Iterable[str]):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0
        self.type_parameters = set(type_parameters)

    def peek(self) -> Optional[str]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self, expected: Optional[str] = None) -> str:
        token = self.peek()
        if token is None or (expected is not None and token != expected):
            raise SignatureSyntaxError(f"malformed type {self.text!r}")
        self.pos += 1
        return token

    def parse(self) -> tuple[TypeRef, bool]:
        ref = self.parse_type()
        vararg = False
        if self.peek() == "...":
            self.take()
            vararg = True
        if self.peek() is not None:
            raise SignatureSyntaxError(f"trailing input in type {self.text!r}")
        return ref, vararg

    def parse_type(self) -> TypeRef:
        if self.peek() == "?":
            self.take()
            bound = None
            variance = None
            if self.peek() in ("extends", "super"):
                variance = "out" if self.take() == "extends" else "in"
                bound = self.parse_type()
            return TypeRef(
                None, 0, TypeConstructor.WILDCARD, "?",
                arguments=[bound] if bound is not None else [], variance=variance,
            )

        name = self.take()
        if name in PRIMITIVES:
            ref = TypeRef(None, 0, TypeConstructor.PRIMITIVE, name, name)
        elif name in self.type_parameters:
            ref = TypeRef(None, 0, TypeConstructor.TYPE_PARAMETER, name, name)
        else:
            arguments = []
            if self.peek() == "<":
                self.take("<")
                arguments.append(self.parse_type())
                while self.peek() == ",":
                    self.take(",")
                    arguments.append(self.parse_type())
                self.take(">")
            constructor = TypeConstructor.CLASS
            if function_shape(name, len(arguments)) is not None:
                constructor = TypeConstructor.FUNCTION
            ref = TypeRef(
                None, 0, constructor, name.rsplit(".", 1)[-1], name, arguments=arguments
            )

        while self.peek() == "[]":
            self.take()
            ref = TypeRef(None, 0, TypeConstructor.ARRAY, ref.name + "[]", ARRAY_CLASS, arguments=[ref])
        return ref


def parse_signature_type(text: str, type_parameters: Iterable[str] = ()) -> tuple[TypeRef, bool]:
    """
    Parse a bundle signature string into a token-less TypeRef.

    Args:
        text: Type as written in the bundle, fully qualified except for
              primitives and type variables
        type_parameters: Type variable names in scope

    Returns:
        (type, is_vararg)
    """
    return _SignatureParser(text, type_parameters).parse()
