"""Shared utilities for Tree-sitter parsing and node helpers."""

from __future__ import annotations

from typing import Iterator, Optional

import tree_sitter
import tree_sitter_java

COMMENT_TYPES = frozenset({"line_comment", "block_comment"})


def create_java_parser() -> tree_sitter.Parser:
    """
    Create a Tree-sitter parser configured for Java.

    Supports both the modern bindings (Parser(language)) and older
    releases that configure the language through set_language.
    """

    language = tree_sitter.Language(tree_sitter_java.language())
    try:
        parser = tree_sitter.Parser(language)
    except TypeError:
        parser = tree_sitter.Parser()
        parser.set_language(language)
    return parser


def node_text(node: tree_sitter.Node, source_bytes: bytes) -> str:
    """Decode the bytes that correspond to a node."""
    return source_bytes[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def iter_nodes(root: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    """Iterative preorder traversal of the syntax tree."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def named_children(node: Optional[tree_sitter.Node]) -> list[tree_sitter.Node]:
    """Named children without comments."""
    if node is None:
        return []
    return [c for c in node.named_children if c.type not in COMMENT_TYPES]


def line_of(node: tree_sitter.Node) -> int:
    """1-based line of a node."""
    return node.start_point[0] + 1


def syntax_errors(root: tree_sitter.Node) -> list[tree_sitter.Node]:
    """ERROR and MISSING nodes of a parse tree."""
    return [n for n in iter_nodes(root) if n.type == "ERROR" or n.is_missing]
