"""
nullinfer/library.py

Signatures of library classes the analysed sources call into.

Built from the same annotation bundles as the oracle. Signatures are
token-less TypeRefs: they carry no Positions, only the shape needed to
thread type arguments from receivers and call sites through a call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from nullinfer.errors import AnnotationBundleError
from nullinfer.oracle import CONSTRUCTOR, DEFAULT_BUNDLE, load_bundle
from nullinfer.syntaxer.nodes import TypeRef
from nullinfer.syntaxer.types import SignatureSyntaxError, parse_signature_type


@dataclass
class LibraryMethod:
    owner: str
    name: str
    type_parameters: list[str] = field(default_factory=list)
    parameters: list[TypeRef] = field(default_factory=list)
    returns: Optional[TypeRef] = None
    vararg: bool = False
    static: bool = False

    def accepts(self, argc: int) -> bool:
        if self.vararg:
            return argc >= len(self.parameters) - 1
        return argc == len(self.parameters)


@dataclass
class LibraryField:
    owner: str
    name: str
    type: TypeRef
    static: bool = False


@dataclass
class LibraryClass:
    name: str
    type_parameters: list[str] = field(default_factory=list)
    supertypes: list[TypeRef] = field(default_factory=list)
    methods: dict[str, list[LibraryMethod]] = field(default_factory=dict)
    fields: dict[str, LibraryField] = field(default_factory=dict)
    constructors: list[LibraryMethod] = field(default_factory=list)


class Library:
    """Index of library classes by qualified name."""

    def __init__(self, classes: Optional[dict[str, LibraryClass]] = None):
        self.classes: dict[str, LibraryClass] = dict(classes or {})

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self.classes

    def __len__(self) -> int:
        return len(self.classes)

    def get(self, qualified_name: str) -> Optional[LibraryClass]:
        return self.classes.get(qualified_name)

    def add_bundle(self, bundle: dict[str, Any]) -> None:
        for class_name, entry in bundle["classes"].items():
            if class_name in self.classes:
                continue
            try:
                self.classes[class_name] = _parse_class(class_name, entry)
            except SignatureSyntaxError as e:
                raise AnnotationBundleError(f"bad signature in {class_name}: {e}") from e

    @classmethod
    def from_bundles(cls, bundles: Iterable[dict[str, Any]]) -> "Library":
        library = cls()
        for bundle in bundles:
            library.add_bundle(bundle)
        return library

    @classmethod
    def default(cls) -> "Library":
        return cls.from_bundles([load_bundle(DEFAULT_BUNDLE)])


def _parse_class(class_name: str, entry: dict[str, Any]) -> LibraryClass:
    type_parameters = list(entry.get("typeParameters", []))
    cls = LibraryClass(class_name, type_parameters)
    for text in entry.get("supertypes", []):
        supertype, _ = parse_signature_type(text, type_parameters)
        cls.supertypes.append(supertype)
    for name, field_entry in entry.get("fields", {}).items():
        field_type, _ = parse_signature_type(field_entry["type"], type_parameters)
        cls.fields[name] = LibraryField(class_name, name, field_type, field_entry.get("static", False))
    for name, overloads in entry.get("methods", {}).items():
        cls.methods[name] = [
            _parse_method(class_name, name, overload, type_parameters) for overload in overloads
        ]
    cls.constructors = [
        _parse_method(class_name, CONSTRUCTOR, overload, type_parameters)
        for overload in entry.get("constructors", [])
    ]
    return cls


def _parse_method(owner: str, name: str, entry: dict[str, Any], class_type_parameters: list[str]) -> LibraryMethod:
    method_type_parameters = list(entry.get("typeParameters", []))
    scope = class_type_parameters + method_type_parameters
    method = LibraryMethod(owner, name, method_type_parameters, static=entry.get("static", False))
    texts = entry.get("parameters", [])
    for i, text in enumerate(texts):
        parameter, vararg = parse_signature_type(text, scope)
        if vararg and i != len(texts) - 1:
            raise AnnotationBundleError(f"{owner}.{name}: only the last parameter may be a vararg")
        method.vararg = method.vararg or vararg
        method.parameters.append(parameter)
    returns = entry.get("returns", "void")
    if returns != "void":
        method.returns, _ = parse_signature_type(returns, scope)
    return method
