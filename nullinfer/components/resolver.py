"""
nullinfer/components/resolver.py

Member resolution over in-file classes and the library model.

Lookups walk a receiver shape and its supertypes, substituting class type
arguments on the way, so that ``ArrayList<#3>.get`` resolves to
``List<E>.get`` with ``E`` bound to ``#3``.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from nullinfer.components.bound_types import UNBOUND_TYPE, BoundType, bound_of_type
from nullinfer.library import Library, LibraryField, LibraryMethod
from nullinfer.positions import PositionTable
from nullinfer.syntaxer.nodes import (
    ClassDecl,
    CompilationUnit,
    MethodDecl,
    TypeConstructor,
    TypeRef,
    VarDecl,
    walk,
)

OBJECT = "java.lang.Object"


@dataclass
class Signature:
    """Uniform view of an in-file or library method."""
    owner: str
    name: str
    type_parameters: list[str]
    parameters: list[Optional[TypeRef]]
    returns: Optional[TypeRef]
    vararg: bool
    is_library: bool


def signature_of(method: MethodDecl | LibraryMethod) -> Signature:
    if isinstance(method, LibraryMethod):
        return Signature(
            method.owner, method.name, list(method.type_parameters), list(method.parameters),
            method.returns, method.vararg, True,
        )
    return Signature(
        method.owner, method.name, [tp.name for tp in method.type_parameters],
        [p.type for p in method.parameters], method.return_type, method.is_vararg, False,
    )


@dataclass
class MemberTarget:
    """
    A resolved member.

    Attributes:
        receiver: Receiver shape upcast to the declaring class
        owner: Qualified name of the declaring class
        method: Signature, for method and constructor targets
        field: Declaration, for field targets
    """
    receiver: BoundType
    owner: str
    method: Optional[Signature] = None
    field: Optional[VarDecl | LibraryField] = None


class Resolver:
    def __init__(self, units: Iterable[CompilationUnit], library: Library, positions: PositionTable):
        self.library = library
        self.positions = positions
        self.classes: dict[str, ClassDecl] = {}
        self._simple_names: dict[str, ClassDecl] = {}
        for unit in units:
            for node in walk(unit):
                if isinstance(node, ClassDecl):
                    self.classes.setdefault(node.qualified_name, node)
                    self._simple_names.setdefault(node.name, node)

    # --- Class structure ---

    def in_file(self, class_name: str) -> Optional[ClassDecl]:
        """In-file class by qualified name; unqualified names from other files match by simple name."""
        cls = self.classes.get(class_name)
        if cls is None and "." not in class_name:
            cls = self._simple_names.get(class_name)
        return cls

    def type_parameters(self, class_name: str) -> list[str]:
        cls = self.in_file(class_name)
        if cls is not None:
            return cls.type_parameter_names()
        lib = self.library.get(class_name)
        return list(lib.type_parameters) if lib is not None else []

    def supertypes(self, class_name: str) -> list[TypeRef]:
        cls = self.in_file(class_name)
        if cls is not None:
            return list(cls.supertypes)
        lib = self.library.get(class_name)
        return list(lib.supertypes) if lib is not None else []

    def env_for(self, shape: BoundType) -> dict[str, BoundType]:
        """Class type-parameter bindings carried by a receiver shape."""
        return dict(zip(self.type_parameters(shape.class_name), shape.arguments))

    def ancestors(self, shape: BoundType) -> Iterator[BoundType]:
        """The shape and its supertypes, breadth first, each class once."""
        queue = deque([shape])
        seen: set[str] = set()
        while queue:
            current = queue.popleft()
            if current.class_name in seen:
                continue
            seen.add(current.class_name)
            yield current
            env = self.env_for(current)
            for supertype in self.supertypes(current.class_name):
                queue.append(bound_of_type(supertype, self.positions, env).with_label(current.label))
        if OBJECT not in seen:
            yield BoundType(shape.label, OBJECT)

    def as_super(self, shape: BoundType, class_name: str) -> Optional[BoundType]:
        """View ``shape`` as an instance of its supertype ``class_name``."""
        for ancestor in self.ancestors(shape):
            if ancestor.class_name == class_name:
                return ancestor
        return None

    def diamond_arguments(self, class_name: str, expected: BoundType) -> Optional[tuple[BoundType, ...]]:
        """Type arguments of ``new C<>()`` inferred from the expected shape."""
        return self._diamond(class_name, expected, set())

    def _diamond(self, class_name: str, expected: BoundType, seen: set[str]) -> Optional[tuple[BoundType, ...]]:
        params = self.type_parameters(class_name)
        if class_name == expected.class_name:
            if len(expected.arguments) == len(params):
                return expected.arguments
            return None
        seen.add(class_name)
        for supertype in self.supertypes(class_name):
            if supertype.qualified_name in seen:
                continue
            inherited = self._diamond(supertype.qualified_name, expected, seen)
            if inherited is None:
                continue
            mapping: dict[str, BoundType] = {}
            for ref, shape in zip(supertype.arguments, inherited):
                if ref.constructor is TypeConstructor.TYPE_PARAMETER and ref.name in params:
                    mapping.setdefault(ref.name, shape)
            return tuple(mapping.get(name, UNBOUND_TYPE) for name in params)
        return None

    # --- Members ---

    def find_method(self, receiver: BoundType, name: str, argc: int) -> Optional[MemberTarget]:
        for shape in self.ancestors(receiver):
            cls = self.in_file(shape.class_name)
            if cls is not None:
                for method in cls.methods:
                    if method.name == name and not method.is_constructor and method.accepts(argc):
                        return MemberTarget(shape, cls.qualified_name, signature_of(method))
            lib = self.library.get(shape.class_name)
            if lib is not None:
                for method in lib.methods.get(name, ()):
                    if method.accepts(argc):
                        return MemberTarget(shape, lib.name, signature_of(method))
        return None

    def find_field(self, receiver: BoundType, name: str) -> Optional[MemberTarget]:
        for shape in self.ancestors(receiver):
            cls = self.in_file(shape.class_name)
            if cls is not None:
                for decl in cls.fields:
                    if decl.name == name:
                        return MemberTarget(shape, cls.qualified_name, field=decl)
            lib = self.library.get(shape.class_name)
            if lib is not None and name in lib.fields:
                return MemberTarget(shape, lib.name, field=lib.fields[name])
        return None

    def find_constructor(self, created: BoundType, argc: int) -> Optional[MemberTarget]:
        cls = self.in_file(created.class_name)
        if cls is not None:
            for method in cls.methods:
                if method.is_constructor and method.accepts(argc):
                    return MemberTarget(created, cls.qualified_name, signature_of(method))
            return None
        lib = self.library.get(created.class_name)
        if lib is not None:
            for method in lib.constructors:
                if method.accepts(argc):
                    return MemberTarget(created, lib.name, signature_of(method))
        return None

    def overridden(
        self,
        cls: ClassDecl,
        method: MethodDecl,
        extra_supertypes: Iterable[BoundType] = (),
    ) -> list[tuple[MethodDecl, dict[str, BoundType]]]:
        """
        In-file methods that ``method`` overrides, nearest first per
        supertype branch, with the supertype's type arguments as bindings.
        """
        found: list[tuple[MethodDecl, dict[str, BoundType]]] = []
        supers = [bound_of_type(st, self.positions) for st in cls.supertypes]
        supers.extend(extra_supertypes)
        for supertype in supers:
            for shape in self.ancestors(supertype):
                parent = self.in_file(shape.class_name)
                if parent is None or parent is cls:
                    continue
                match = next(
                    (
                        m for m in parent.methods
                        if m.name == method.name and not m.is_constructor and not m.is_static
                        and len(m.parameters) == len(method.parameters)
                    ),
                    None,
                )
                if match is not None:
                    if all(match is not m for m, _ in found):
                        found.append((match, self.env_for(shape)))
                    break
        return found
