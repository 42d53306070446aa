"""
nullinfer/oracle.py

External-annotation oracle.

Annotation bundles are JSON documents describing library (or in-file)
classes. Each member may carry a ``nullability`` table; the oracle
indexes those tables by (qualified class, member, position kind), where
the kind is ``field``, ``return`` or ``parameter:<i>``.

Bundle layout::

    {
      "classes": {
        "java.util.Map": {
          "typeParameters": ["K", "V"],
          "methods": {
            "get": [{"parameters": ["java.lang.Object"], "returns": "V",
                     "nullability": {"return": "Nullable"}}]
          }
        }
      }
    }
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

from nullinfer.errors import AnnotationBundleError

log = logging.getLogger(__name__)

DEFAULT_BUNDLE = Path(__file__).parent / "annotations" / "jdk.json"

CONSTRUCTOR = "<init>"


class Nullability(Enum):
    """Answer of the oracle for one declaration slot."""
    NULLABLE = "Nullable"
    NOT_NULL = "NotNull"
    UNKNOWN = "Unknown"


def parameter_kind(index: int) -> str:
    return f"parameter:{index}"


def load_bundle(path: str | Path) -> dict[str, Any]:
    """
    Read and validate an annotation bundle.

    Raises:
        AnnotationBundleError: if the file is missing, not JSON, or does
            not have a ``classes`` object at the top level
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise AnnotationBundleError(f"cannot read annotation bundle {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise AnnotationBundleError(f"annotation bundle {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("classes"), dict):
        raise AnnotationBundleError(f"annotation bundle {path} has no 'classes' object")
    log.debug(f"Loaded annotation bundle {path} ({len(data['classes'])} classes)")
    return data


def _parse_nullability(value: Any, where: str) -> Nullability:
    try:
        return Nullability(value)
    except ValueError:
        raise AnnotationBundleError(f"invalid nullability {value!r} for {where}") from None


class AnnotationOracle:
    """
    In-memory lookup of external nullability judgments.

    Example:
        oracle = AnnotationOracle.default()
        oracle.lookup("java.util.Map", "get", "return")   # Nullability.NULLABLE
    """

    def __init__(self, entries: Optional[dict[tuple[str, str, str], Nullability]] = None):
        self._entries: dict[tuple[str, str, str], Nullability] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, qualified_name: str, member: str, position_kind: str, nullability: Nullability) -> None:
        # First judgment wins so overloads listed first take precedence
        self._entries.setdefault((qualified_name, member, position_kind), nullability)

    def lookup(self, qualified_name: str, member: str, position_kind: str) -> Nullability:
        return self._entries.get((qualified_name, member, position_kind), Nullability.UNKNOWN)

    def knows(self, qualified_name: str, member: str, position_kind: str) -> bool:
        return self.lookup(qualified_name, member, position_kind) is not Nullability.UNKNOWN

    def add_bundle(self, bundle: dict[str, Any]) -> None:
        for class_name, entry in bundle["classes"].items():
            for name, field_entry in entry.get("fields", {}).items():
                if "nullability" in field_entry:
                    where = f"{class_name}.{name}"
                    self.add(class_name, name, "field", _parse_nullability(field_entry["nullability"], where))
            for name, overloads in entry.get("methods", {}).items():
                for overload in overloads:
                    self._add_member(class_name, name, overload)
            for overload in entry.get("constructors", []):
                self._add_member(class_name, CONSTRUCTOR, overload)

    def _add_member(self, class_name: str, name: str, entry: dict[str, Any]) -> None:
        for kind, value in entry.get("nullability", {}).items():
            if kind != "return" and not kind.startswith("parameter:"):
                raise AnnotationBundleError(f"unknown position kind {kind!r} for {class_name}.{name}")
            self.add(class_name, name, kind, _parse_nullability(value, f"{class_name}.{name} {kind}"))

    @classmethod
    def from_bundles(cls, bundles: Iterable[dict[str, Any]]) -> "AnnotationOracle":
        oracle = cls()
        for bundle in bundles:
            oracle.add_bundle(bundle)
        return oracle

    @classmethod
    def default(cls) -> "AnnotationOracle":
        return cls.from_bundles([load_bundle(DEFAULT_BUNDLE)])
