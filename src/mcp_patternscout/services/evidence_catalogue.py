"""Catalogue of construct shapes recognized by the evidence extractor.

Each :class:`ConstructShape` pairs a label with a matcher over tree-sitter
nodes and a fixed strength. Matchers inspect identifier names and node shapes
only; they return the node whose text proves the claim, or None. New shapes are
added here without touching extraction or aggregation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from tree_sitter import Node

from .source_parser import (
    FUNCTION_NODE_TYPES,
    call_arguments,
    callee,
    callee_name,
    callee_receiver,
    function_body,
    iter_body,
    member_path,
    node_text,
    object_keys,
    parameter_names,
    string_value,
    unwrap_parentheses,
)
from .vocabulary import FACET_LABELS, Category

Matcher = Callable[[Node], "Node | None"]

REQUEST_NAMES = frozenset({"req", "request", "ctx"})
RESPONSE_NAMES = frozenset({"res", "response", "reply", "ctx"})
RESPONSE_SEND_METHODS = frozenset({"json", "send"})
WEB_RESPONSE_JSON = frozenset({("NextResponse", "json"), ("Response", "json")})
STATUS_METHODS = frozenset({"status", "sendStatus", "code"})
STATUS_CONSTANT_ROOTS = frozenset({"HttpStatus", "StatusCodes", "httpStatus"})
ERROR_PARAM_NAMES = frozenset({"err", "error", "e", "er", "ex", "exc", "exception"})
ERROR_KEYS = frozenset(
    {"error", "errors", "message", "msg", "code", "details", "status", "statusCode"}
)
LOGGER_ROOTS = frozenset({"logger", "log", "winston", "pino", "bunyan"})
TOKEN_HINT = re.compile(r"token|jwt|auth|session|bearer|credential", re.IGNORECASE)
RESPONSE_VARIABLE = re.compile(
    r"^(response|resp|payload|body|result|responseBody|apiResponse)$"
)
TOKEN_QUERY_KEYS = frozenset(
    {"token", "access_token", "accessToken", "jwt", "auth", "apiKey", "api_key"}
)

USER_PROPERTY_PATHS: dict[tuple[str, ...], str] = {
    ("user",): "req.user",
    ("auth",): "req.auth",
    ("context", "user"): "req.context.user",
}
"""Request-relative member paths mapped to user-property labels."""


@dataclass(frozen=True)
class ConstructShape:
    """One recognizable construct: where to look, what it proves, how strongly."""

    name: str
    category: Category
    facet: str
    label: str
    node_types: frozenset[str]
    matcher: Matcher
    strength: float


def _same(a: Node | None, b: Node | None) -> bool:
    if a is None or b is None:
        return False
    return (a.type, a.start_byte, a.end_byte) == (b.type, b.start_byte, b.end_byte)


def _is_assignment_target(node: Node) -> bool:
    parent = node.parent
    if parent is None or parent.type not in (
        "assignment_expression",
        "augmented_assignment_expression",
    ):
        return False
    return _same(parent.child_by_field_name("left"), node)


def _root_identifier(node: Node | None) -> str:
    """Follow member/call chains (`res.status(1).json`) back to `res`."""

    while node is not None:
        if node.type in ("identifier", "this"):
            return node_text(node)
        if node.type == "member_expression":
            node = node.child_by_field_name("object")
        elif node.type == "call_expression":
            node = callee(node)
        elif node.type in ("await_expression", "parenthesized_expression"):
            named = node.named_children
            node = named[0] if named else None
        else:
            return ""
    return ""


def _callee_path(call: Node) -> tuple[str, ...]:
    return member_path(callee(call)) or ()


def _first_argument(call: Node) -> Node | None:
    args = call_arguments(call)
    return args[0] if args else None


# -- request/token helpers -------------------------------------------------


def _request_member(node: Node, *suffix: str) -> bool:
    path = member_path(node)
    if not path or len(path) != len(suffix) + 1:
        return False
    if path[0] not in REQUEST_NAMES:
        return False
    return all(
        expected == "*" or actual.lower() == expected.lower()
        for actual, expected in zip(path[1:], suffix)
    )


def _reads(*suffix: str) -> Matcher:
    def match(node: Node) -> Node | None:
        if node.type not in ("member_expression", "subscript_expression"):
            return None
        if _is_assignment_target(node):
            return None
        return node if _request_member(node, *suffix) else None

    return match


def _header_call(header: str) -> Matcher:
    """`req.header('X')`, `req.get('X')` or `req.headers.get('X')`."""

    def match(node: Node) -> Node | None:
        if node.type != "call_expression":
            return None
        path = _callee_path(node)
        if not path or path[0] not in REQUEST_NAMES:
            return None
        if path[1:] not in (("header",), ("get",), ("headers", "get")):
            return None
        value = string_value(_first_argument(node))
        if value is not None and value.lower() == header:
            return node
        return None

    return match


def _cookie_set(*, http_only: bool) -> Matcher:
    def match(node: Node) -> Node | None:
        if node.type != "call_expression":
            return None
        path = _callee_path(node)
        if len(path) != 2 or path[0] not in RESPONSE_NAMES or path[1] != "cookie":
            return None
        args = call_arguments(node)
        options = args[2] if len(args) > 2 else None
        declares_http_only = "httpOnly" in object_keys(options)
        if http_only:
            return node if declares_http_only else None
        name = string_value(args[0]) if args else None
        if declares_http_only or name is None or not TOKEN_HINT.search(name):
            return None
        return node

    return match


def _cookie_store_get(node: Node) -> Node | None:
    """Next.js style `cookies().get('token')`."""

    if node.type != "call_expression" or callee_name(node) != "get":
        return None
    receiver = callee_receiver(node)
    if receiver is None or receiver.type != "call_expression":
        return None
    target = callee(receiver)
    if target is not None and node_text(target) == "cookies":
        return node
    return None


def _bearer_extractor(node: Node) -> Node | None:
    if node.type != "call_expression":
        return None
    path = _callee_path(node)
    if len(path) == 2 and path[0] == "ExtractJwt" and path[1].startswith(
        "fromAuthHeader"
    ):
        return node
    return None


def _web_storage(store: str, *, token_key: bool) -> Matcher:
    def match(node: Node) -> Node | None:
        if node.type != "call_expression":
            return None
        path = _callee_path(node)
        if path[:1] == ("window",):
            path = path[1:]
        if len(path) != 2 or path[0] != store or path[1] not in ("getItem", "setItem"):
            return None
        key = string_value(_first_argument(node))
        has_token_key = key is not None and bool(TOKEN_HINT.search(key))
        return node if has_token_key == token_key else None

    return match


def _session_middleware(node: Node) -> Node | None:
    if node.type != "call_expression":
        return None
    target = callee(node)
    if target is None or node_text(target) not in ("session", "expressSession"):
        return None
    first = _first_argument(node)
    return node if first is not None and first.type == "object" else None


def _token_query(node: Node) -> Node | None:
    if node.type not in ("member_expression", "subscript_expression"):
        return None
    path = member_path(node)
    if not path or len(path) != 3 or path[0] not in REQUEST_NAMES:
        return None
    if path[1] == "query" and path[2] in TOKEN_QUERY_KEYS:
        return node
    return None


# -- user property helpers -------------------------------------------------


def _user_property_label(path: tuple[str, ...] | None) -> str | None:
    if not path:
        return None
    if path[0] in REQUEST_NAMES:
        return USER_PROPERTY_PATHS.get(path[1:])
    if path == ("res", "locals", "user"):
        return "res.locals.user"
    return None


def _assigns_user(label: str) -> Matcher:
    def match(node: Node) -> Node | None:
        if node.type != "assignment_expression":
            return None
        left = node.child_by_field_name("left")
        path = member_path(left)
        if _user_property_label(path) == label:
            return node
        # `req.context = { user }` declares req.context.user
        if (
            label == "req.context.user"
            and path
            and len(path) == 2
            and path[0] in REQUEST_NAMES
            and path[1] == "context"
            and "user" in object_keys(node.child_by_field_name("right"))
        ):
            return node
        return None

    return match


def _reads_user(label: str) -> Matcher:
    def match(node: Node) -> Node | None:
        if node.type != "member_expression" or _is_assignment_target(node):
            return None
        return node if _user_property_label(member_path(node)) == label else None

    return match


# -- response helpers ------------------------------------------------------


def _is_response_call(node: Node) -> bool:
    if node.type != "call_expression":
        return False
    path = _callee_path(node)
    if path in WEB_RESPONSE_JSON:
        return True
    if callee_name(node) not in RESPONSE_SEND_METHODS:
        return False
    return _root_identifier(callee_receiver(node)) in RESPONSE_NAMES


def _classify_envelope(payload: Node | None) -> tuple[str, bool] | None:
    """Return (label, literal) for a response payload, None when not an envelope."""

    payload = unwrap_parentheses(payload)
    if payload is None:
        return None
    if payload.type in ("string", "template_string", "number", "true", "false", "null"):
        return None
    if payload.type != "object":
        return ("bare-object", False)
    keys = set(object_keys(payload))
    if not keys:
        return None
    if "success" in keys or "ok" in keys:
        return ("success-flag", True)
    if "data" in keys:
        return ("data-wrapper", True)
    if "result" in keys or "results" in keys:
        return ("result-wrapper", True)
    if "status" in keys and keys & {"payload", "items", "body", "response"}:
        return ("status-wrapper", True)
    if keys <= ERROR_KEYS:
        return None
    return ("bare-object", True)


def _response_envelope(label: str, *, literal: bool) -> Matcher:
    def match(node: Node) -> Node | None:
        if not _is_response_call(node):
            return None
        first = unwrap_parentheses(_first_argument(node))
        # res.send() of anything but an object is a plain-text body
        if callee_name(node) == "send" and first is not None:
            if first.type not in ("object", "identifier"):
                return None
        classified = _classify_envelope(_first_argument(node))
        if classified == (label, literal):
            return node
        return None

    return match


def _response_variable(label: str) -> Matcher:
    def match(node: Node) -> Node | None:
        if node.type != "variable_declarator":
            return None
        name = node.child_by_field_name("name")
        if name is None or not RESPONSE_VARIABLE.match(node_text(name)):
            return None
        value = unwrap_parentheses(node.child_by_field_name("value"))
        if value is None or value.type != "object":
            return None
        classified = _classify_envelope(value)
        if classified is not None and classified[0] == label and classified[1]:
            return node
        return None

    return match


def _explicit_status(node: Node) -> Node | None:
    if node.type == "call_expression":
        if callee_name(node) in STATUS_METHODS:
            receiver = callee_receiver(node)
            if receiver is None or receiver.type != "identifier":
                return None
            if node_text(receiver) not in RESPONSE_NAMES:
                return None
            first = _first_argument(node)
            if first is None:
                return None
            if first.type == "number":
                return node
            path = member_path(first)
            if path and path[0] in STATUS_CONSTANT_ROOTS:
                return node
            return None
        path = _callee_path(node)
        if path in WEB_RESPONSE_JSON:
            args = call_arguments(node)
            if len(args) > 1 and "status" in object_keys(args[1]):
                return node
        return None
    if node.type == "decorator":
        inner = node.named_children[0] if node.named_children else None
        if inner is not None and inner.type == "call_expression":
            if node_text(callee(inner)) == "HttpCode":
                return node
    return None


def _implicit_status(node: Node) -> Node | None:
    if not _is_response_call(node):
        return None
    receiver = callee_receiver(node)
    if receiver is None or receiver.type != "identifier":
        return None
    return node if node_text(receiver) in RESPONSE_NAMES else None


def _error_payload_format(node: Node) -> str | None:
    if not _is_response_call(node):
        return None
    payload = unwrap_parentheses(_first_argument(node))
    keys = object_keys(payload)
    if "error" in keys:
        value = unwrap_parentheses(keys["error"])
        if value is not None and value.type == "object":
            return "error-object"
        return "error-string"
    if "errors" in keys:
        return "error-object"
    if "message" in keys and set(keys) <= ERROR_KEYS:
        return "message-only"
    return None


def _error_format(label: str) -> Matcher:
    def match(node: Node) -> Node | None:
        return node if _error_payload_format(node) == label else None

    return match


# -- error handling helpers ------------------------------------------------


def _is_error_middleware(node: Node) -> bool:
    if node.type not in FUNCTION_NODE_TYPES:
        return False
    names = parameter_names(node)
    return len(names) == 4 and names[0].lower() in ERROR_PARAM_NAMES


def _error_middleware(node: Node) -> Node | None:
    return node if _is_error_middleware(node) else None


def _framework_error_hook(node: Node) -> Node | None:
    if node.type == "call_expression":
        if callee_name(node) in ("setErrorHandler", "onError") and callee_receiver(
            node
        ) is not None:
            return node
        return None
    if node.type == "decorator":
        inner = node.named_children[0] if node.named_children else None
        if inner is not None and inner.type == "call_expression":
            if node_text(callee(inner)) == "Catch":
                return node
    return None


def _try_catch(node: Node) -> Node | None:
    if node.type != "try_statement":
        return None
    return node if node.child_by_field_name("handler") is not None else None


def _promise_catch(node: Node) -> Node | None:
    if node.type != "call_expression" or callee_name(node) != "catch":
        return None
    return node if callee_receiver(node) is not None else None


def _result_type(node: Node) -> Node | None:
    if node.type != "generic_type":
        return None
    name = node.child_by_field_name("name")
    if name is None and node.named_children:
        name = node.named_children[0]
    return node if node_text(name) in ("Result", "Either") else None


def _handler_body(node: Node) -> Node | None:
    """Body of a catch clause, error middleware or `.catch(fn)` callback."""

    if node.type == "catch_clause":
        return node.child_by_field_name("body")
    if _is_error_middleware(node):
        return function_body(node)
    if node.type == "call_expression" and callee_name(node) == "catch":
        handler = _first_argument(node)
        if handler is not None and handler.type in FUNCTION_NODE_TYPES:
            return function_body(handler)
    return None


def _handler_nodes(body: Node) -> Iterator[Node]:
    # expression-bodied arrows (`err => next(err)`) count their own body node
    if body.type != "statement_block":
        yield body
    yield from iter_body(body)


def _propagation_of(body: Node) -> tuple[str, Node] | None:
    found: dict[str, Node] = {}
    for child in _handler_nodes(body):
        if child.type == "throw_statement":
            found.setdefault("rethrow", child)
        elif child.type == "call_expression":
            if node_text(callee(child)) == "next" and call_arguments(child):
                found.setdefault("next-error", child)
            elif _is_response_call(child) or (
                callee_name(child) in ("status", "sendStatus")
                and _root_identifier(callee_receiver(child)) in RESPONSE_NAMES
            ):
                found.setdefault("respond-inline", child)
        elif child.type == "return_statement" and child.named_children:
            returned = unwrap_parentheses(child.named_children[0])
            if returned is not None and not (
                returned.type == "call_expression"
                and _root_identifier(returned) in RESPONSE_NAMES
            ):
                found.setdefault("return-error", child)
    for label in ("rethrow", "next-error", "respond-inline", "return-error"):
        if label in found:
            return label, found[label]
    return None


def _propagates(label: str) -> Matcher:
    def match(node: Node) -> Node | None:
        if node.type == "call_expression" and callee_name(node) == "catch":
            handler = _first_argument(node)
            if handler is not None and node_text(handler) == "next":
                return node if label == "next-error" else None
        body = _handler_body(node)
        if body is None:
            return None
        classified = _propagation_of(body)
        if classified is not None and classified[0] == label:
            return classified[1]
        return None

    return match


def _logging_of(body: Node) -> tuple[str, Node] | None:
    console_call: Node | None = None
    for child in _handler_nodes(body):
        if child.type != "call_expression":
            continue
        path = _callee_path(child)
        if len(path) < 2:
            continue
        if path[0] == "this":
            path = path[1:]
        if len(path) >= 2 and (path[0] in LOGGER_ROOTS or path[-2] == "logger"):
            return "structured-logger", child
        if path[0] == "console" and console_call is None:
            console_call = child
    if console_call is not None:
        return "console", console_call
    return None


def _logs_with(label: str) -> Matcher:
    def match(node: Node) -> Node | None:
        body = _handler_body(node)
        if body is None:
            return None
        classified = _logging_of(body)
        if classified is not None and classified[0] == label:
            return classified[1]
        return None

    return match


# -- catalogue -------------------------------------------------------------

_MEMBER = ("member_expression", "subscript_expression")
_CALL = ("call_expression",)
_CALL_OR_DECORATOR = ("call_expression", "decorator")
_HANDLERS = ("catch_clause", "call_expression", *sorted(FUNCTION_NODE_TYPES))

AUTH = Category.AUTHENTICATION
API = Category.API_RESPONSES
ERR = Category.ERROR_HANDLING

_USER_LABELS = FACET_LABELS[(AUTH, "user_property")]
_ENVELOPE_LABELS = FACET_LABELS[(API, "envelope")]
_WRAPPER_LABELS = ("data-wrapper", "result-wrapper", "success-flag", "status-wrapper")

_ROWS: list[tuple[str, Category, str, str, Iterable[str], Matcher, float]] = [
    # authentication: where the token travels
    ("cookie-read", AUTH, "token_location", "cookie",
     _MEMBER, _reads("cookies"), 0.8),
    ("signed-cookie-read", AUTH, "token_location", "cookie",
     _MEMBER, _reads("signedCookies"), 0.8),
    ("http-only-cookie-set", AUTH, "token_location", "cookie",
     _CALL, _cookie_set(http_only=True), 0.9),
    ("token-cookie-set", AUTH, "token_location", "cookie",
     _CALL, _cookie_set(http_only=False), 0.6),
    ("cookie-store-get", AUTH, "token_location", "cookie",
     _CALL, _cookie_store_get, 0.6),
    ("authorization-header-read", AUTH, "token_location", "authorization-header",
     _MEMBER, _reads("headers", "authorization"), 0.8),
    ("authorization-header-call", AUTH, "token_location", "authorization-header",
     _CALL, _header_call("authorization"), 0.8),
    ("bearer-extractor", AUTH, "token_location", "authorization-header",
     _CALL, _bearer_extractor, 0.9),
    ("api-key-header-read", AUTH, "token_location", "api-key-header",
     _MEMBER, _reads("headers", "x-api-key"), 0.8),
    ("api-key-header-call", AUTH, "token_location", "api-key-header",
     _CALL, _header_call("x-api-key"), 0.8),
    ("local-storage-token", AUTH, "token_location", "local-storage",
     _CALL, _web_storage("localStorage", token_key=True), 0.8),
    ("local-storage-access", AUTH, "token_location", "local-storage",
     _CALL, _web_storage("localStorage", token_key=False), 0.4),
    ("session-storage-token", AUTH, "token_location", "session-storage",
     _CALL, _web_storage("sessionStorage", token_key=True), 0.8),
    ("session-storage-access", AUTH, "token_location", "session-storage",
     _CALL, _web_storage("sessionStorage", token_key=False), 0.4),
    ("session-read", AUTH, "token_location", "session",
     _MEMBER, _reads("session", "*"), 0.6),
    ("session-middleware", AUTH, "token_location", "session",
     _CALL, _session_middleware, 0.7),
    ("token-query-read", AUTH, "token_location", "query-param",
     _MEMBER, _token_query, 0.6),
    # authentication: where the current user lives
    *(
        (f"{label}-assignment", AUTH, "user_property", label,
         ("assignment_expression",), _assigns_user(label), 0.9)
        for label in _USER_LABELS
    ),
    *(
        (f"{label}-read", AUTH, "user_property", label,
         ("member_expression",), _reads_user(label), 0.4)
        for label in _USER_LABELS
    ),
    # api responses: envelope shape
    *(
        (f"{label}-response", API, "envelope", label,
         _CALL, _response_envelope(label, literal=True),
         0.6 if label == "bare-object" else 0.9)
        for label in _ENVELOPE_LABELS
    ),
    ("bare-value-response", API, "envelope", "bare-object",
     _CALL, _response_envelope("bare-object", literal=False), 0.4),
    *(
        (f"{label}-variable", API, "envelope", label,
         ("variable_declarator",), _response_variable(label), 0.5)
        for label in _WRAPPER_LABELS
    ),
    # api responses: status code usage
    ("explicit-status-call", API, "status_codes", "explicit-status",
     _CALL_OR_DECORATOR, _explicit_status, 0.8),
    ("implicit-status-response", API, "status_codes", "implicit-status",
     _CALL, _implicit_status, 0.3),
    # api responses: error payload shape
    *(
        (f"{label}-payload", API, "error_format", label,
         _CALL, _error_format(label), 0.7)
        for label in FACET_LABELS[(API, "error_format")]
    ),
    # error handling: where failures are caught
    ("error-middleware-signature", ERR, "catch_style", "global-middleware",
     FUNCTION_NODE_TYPES, _error_middleware, 0.95),
    ("framework-error-hook", ERR, "catch_style", "global-middleware",
     _CALL_OR_DECORATOR, _framework_error_hook, 0.9),
    ("try-catch-block", ERR, "catch_style", "try-catch",
     ("try_statement",), _try_catch, 0.6),
    ("promise-catch-call", ERR, "catch_style", "promise-catch",
     _CALL, _promise_catch, 0.5),
    ("result-type-reference", ERR, "catch_style", "result-type",
     ("generic_type",), _result_type, 0.6),
    # error handling: how failures leave a handler
    ("handler-rethrows", ERR, "propagation", "rethrow",
     _HANDLERS, _propagates("rethrow"), 0.7),
    ("handler-forwards-next", ERR, "propagation", "next-error",
     _HANDLERS, _propagates("next-error"), 0.8),
    ("handler-responds", ERR, "propagation", "respond-inline",
     _HANDLERS, _propagates("respond-inline"), 0.6),
    ("handler-returns", ERR, "propagation", "return-error",
     _HANDLERS, _propagates("return-error"), 0.5),
    # error handling: logging inside handlers
    ("handler-logger-call", ERR, "logging", "structured-logger",
     _HANDLERS, _logs_with("structured-logger"), 0.8),
    ("handler-console-call", ERR, "logging", "console",
     _HANDLERS, _logs_with("console"), 0.6),
]

CATALOGUE: tuple[ConstructShape, ...] = tuple(
    ConstructShape(
        name=name,
        category=category,
        facet=facet,
        label=label,
        node_types=frozenset(node_types),
        matcher=matcher,
        strength=strength,
    )
    for name, category, facet, label, node_types, matcher, strength in _ROWS
)
"""Every recognized construct shape, in evaluation order."""


def _index_by_node_type(
    shapes: tuple[ConstructShape, ...],
) -> dict[str, tuple[ConstructShape, ...]]:
    index: dict[str, list[ConstructShape]] = {}
    for shape in shapes:
        for node_type in shape.node_types:
            index.setdefault(node_type, []).append(shape)
    return {key: tuple(value) for key, value in index.items()}


SHAPES_BY_NODE_TYPE = _index_by_node_type(CATALOGUE)
"""Dispatch table used by the extractor walk."""


def catalogue_labels() -> set[tuple[Category, str, str]]:
    """Return every (category, facet, label) the catalogue can emit."""

    return {(shape.category, shape.facet, shape.label) for shape in CATALOGUE}
