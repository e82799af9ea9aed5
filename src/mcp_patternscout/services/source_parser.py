"""Structural parse boundary + node helpers for JS/TS sources.

Parsers must satisfy the following invariants:
1. Source bytes that are not valid UTF-8 are declined before parsing.
2. A tree whose root reports a syntax error is treated as a structural
   failure; callers receive a :class:`SourceParseError`, never a partial tree.
3. Comments, string literals and template text are opaque: helpers never look
   inside them, so prose that mentions a pattern never counts as code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

JAVASCRIPT = Language(tree_sitter_javascript.language())
TYPESCRIPT = Language(tree_sitter_typescript.language_typescript())
TSX = Language(tree_sitter_typescript.language_tsx())

LANGUAGE_BY_EXTENSION: dict[str, Language] = {
    ".js": JAVASCRIPT,
    ".jsx": JAVASCRIPT,
    ".mjs": JAVASCRIPT,
    ".cjs": JAVASCRIPT,
    ".ts": TYPESCRIPT,
    ".mts": TYPESCRIPT,
    ".cts": TYPESCRIPT,
    ".tsx": TSX,
}
"""Registry mapping file extensions to tree-sitter grammars."""

FUNCTION_NODE_TYPES = frozenset(
    {
        "arrow_function",
        "function",
        "function_expression",
        "function_declaration",
        "generator_function",
        "generator_function_declaration",
        "method_definition",
    }
)

OPAQUE_NODE_TYPES = frozenset({"comment", "string", "template_string", "regex"})

EXCERPT_MAX_CHARS = 120


class SourceParseError(ValueError):
    """Raised when a file cannot be turned into a clean syntax tree."""


@dataclass(frozen=True)
class SyntaxTree:
    """Parsed file plus the grammar that produced it."""

    path: str
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node


def is_supported(extension: str) -> bool:
    return extension.lower() in LANGUAGE_BY_EXTENSION


def parse_source(path: str, content: bytes, extension: str) -> SyntaxTree:
    """
    Parse source bytes with the grammar registered for the extension.

    Unsupported extensions, invalid UTF-8 and trees containing syntax errors
    raise :class:`SourceParseError` with a message safe to surface.
    """

    language = LANGUAGE_BY_EXTENSION.get(extension.lower())
    if language is None:
        raise SourceParseError("File extension is not supported.")
    try:
        content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SourceParseError("Source is not valid UTF-8.") from exc

    # Parser instances are not shared across threads.
    parser = Parser(language)
    tree = parser.parse(content)
    if tree.root_node.has_error:
        raise SourceParseError("Source contains syntax errors.")
    return SyntaxTree(path=path, tree=tree)


def walk(node: Node) -> Iterator[Node]:
    """Yield named nodes in document order, skipping opaque literals."""

    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if current.type in OPAQUE_NODE_TYPES:
            continue
        stack.extend(reversed(current.named_children))


def node_text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def line_of(node: Node) -> int:
    return node.start_point[0] + 1


def excerpt_of(node: Node) -> str:
    """Return a single-line, bounded excerpt for evidence output."""

    text = " ".join(node_text(node).split())
    if len(text) > EXCERPT_MAX_CHARS:
        return text[: EXCERPT_MAX_CHARS - 3] + "..."
    return text


def string_value(node: Node | None) -> str | None:
    """Return the literal value of a plain string node."""

    if node is None:
        return None
    if node.type == "string":
        return node_text(node)[1:-1]
    if node.type == "template_string" and not any(
        child.type == "template_substitution" for child in node.named_children
    ):
        return node_text(node)[1:-1]
    return None


def member_path(node: Node | None) -> tuple[str, ...] | None:
    """
    Flatten `a.b.c` and `a.b['c']` into ('a', 'b', 'c').

    Returns None when any segment is computed from a non-literal.
    """

    parts: list[str] = []
    current = node
    while current is not None:
        if current.type in ("identifier", "this", "property_identifier"):
            parts.append(node_text(current))
            break
        if current.type == "member_expression":
            prop = current.child_by_field_name("property")
            if prop is None:
                return None
            parts.append(node_text(prop))
            current = current.child_by_field_name("object")
            continue
        if current.type == "subscript_expression":
            value = string_value(current.child_by_field_name("index"))
            if value is None:
                return None
            parts.append(value)
            current = current.child_by_field_name("object")
            continue
        if current.type == "non_null_expression" and current.named_children:
            current = current.named_children[0]
            continue
        return None
    else:
        return None
    return tuple(reversed(parts))


def call_arguments(call: Node) -> list[Node]:
    arguments = call.child_by_field_name("arguments")
    if arguments is None or arguments.type != "arguments":
        return []
    return [child for child in arguments.named_children if child.type != "comment"]


def callee(call: Node) -> Node | None:
    return call.child_by_field_name("function")


def callee_name(call: Node) -> str:
    """Return the last segment of the called name (`use` for `app.use`)."""

    target = callee(call)
    if target is None:
        return ""
    if target.type == "identifier":
        return node_text(target)
    if target.type == "member_expression":
        return node_text(target.child_by_field_name("property"))
    return ""


def callee_receiver(call: Node) -> Node | None:
    target = callee(call)
    if target is None or target.type != "member_expression":
        return None
    return target.child_by_field_name("object")


def object_keys(node: Node | None) -> dict[str, Node | None]:
    """Map object literal keys to their value nodes (shorthands map to None)."""

    keys: dict[str, Node | None] = {}
    if node is None or node.type != "object":
        return keys
    for child in node.named_children:
        if child.type == "pair":
            key = child.child_by_field_name("key")
            if key is None:
                continue
            name = string_value(key)
            if name is None:
                name = node_text(key)
            keys[name] = child.child_by_field_name("value")
        elif child.type == "shorthand_property_identifier":
            keys[node_text(child)] = None
    return keys


def unwrap_parentheses(node: Node | None) -> Node | None:
    while node is not None and node.type == "parenthesized_expression":
        inner = node.named_children
        node = inner[0] if inner else None
    return node


def parameter_names(function: Node) -> list[str]:
    """Return parameter names of a function-like node (`?` for patterns)."""

    single = function.child_by_field_name("parameter")
    if single is not None:
        return [node_text(single)]
    params = function.child_by_field_name("parameters")
    if params is None:
        return []
    names: list[str] = []
    for child in params.named_children:
        if child.type == "comment":
            continue
        target = child
        if child.type in ("required_parameter", "optional_parameter"):
            target = child.child_by_field_name("pattern") or child
        if target.type == "assignment_pattern":
            target = target.child_by_field_name("left") or target
        if target.type == "identifier":
            names.append(node_text(target))
        else:
            names.append("?")
    return names


def function_body(function: Node) -> Node | None:
    return function.child_by_field_name("body")


def iter_body(node: Node | None) -> Iterator[Node]:
    """Walk a block without descending into nested functions."""

    if node is None:
        return
    stack = list(reversed(node.named_children))
    while stack:
        current = stack.pop()
        yield current
        if current.type in FUNCTION_NODE_TYPES or current.type in OPAQUE_NODE_TYPES:
            continue
        stack.extend(reversed(current.named_children))
