"""
Expression autocomplete.

Given the text before the cursor, find the path being typed and offer what
can follow it: scope variables and top-level data keys for a bare word,
properties, element access and methods after a dot.

Ranking (higher first, ties alphabetical):
    [0] element access          15
    scope variables             10
    object properties           10
    length property              8
    top-level data keys          5
    methods                      5
"""

from __future__ import annotations
import re
from typing import Any, Sequence

from .paths import (
    DEFAULT_MAX_DEPTH,
    format_type,
    get_methods_for_type,
    infer_type,
    parse_path,
    resolve_path_type,
)
from .types import CompletionItem, CompletionResult, InferredType, PathAtCursor, ScopeVariable


_PATH_CHAR = re.compile(r"[\w.\[\]()$]")

BOOST_ELEMENT = 15
BOOST_SCOPE = 10
BOOST_PROPERTY = 10
BOOST_LENGTH = 8
BOOST_DATA_KEY = 5
BOOST_METHOD = 5


def _expression_start(text: str) -> int:
    start = len(text)
    while start > 0 and _PATH_CHAR.match(text[start - 1]):
        start -= 1
    return start


def _segment_start(text: str) -> int:
    """Offset where the segment under the cursor begins as typed; "[" starts an index segment."""
    segment_start = _expression_start(text)
    depth = 0
    for i in range(segment_start, len(text)):
        char = text[i]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and char == ".":
            segment_start = i + 1
        elif depth == 0 and char == "[":
            segment_start = i
    return segment_start


def extract_path_at_cursor(text_before_cursor: str) -> PathAtCursor:
    """
    The path being typed at the end of the text.

    Example:
        extract_path_at_cursor("customer.orders[0].")  # path=["customer", "orders", "[0]"], partial=""
        extract_path_at_cursor("count + cus")          # path=[], partial="cus"
    """
    expr = text_before_cursor[_expression_start(text_before_cursor):]
    if not expr:
        return PathAtCursor()
    if expr.endswith("."):
        return PathAtCursor(path=parse_path(expr[:-1]), partial="")
    segments = parse_path(expr)
    if not segments:
        return PathAtCursor()
    return PathAtCursor(path=segments[:-1], partial=segments[-1])


def _matches(label: str, prefix: str) -> bool:
    return not prefix or label.lower().startswith(prefix.lower())


def _ranked(items: list[CompletionItem]) -> list[CompletionItem]:
    return sorted(items, key=lambda item: (-item.boost, item.label))


def build_top_level_completions(
    data: Any,
    scope_vars: Sequence[ScopeVariable],
    prefix: str = "",
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[CompletionItem]:
    items: list[CompletionItem] = []
    offered: set[str] = set()
    # innermost first so a shadowed outer variable is not offered twice
    for variable in reversed(scope_vars):
        if variable.name in offered or not _matches(variable.name, prefix):
            continue
        offered.add(variable.name)
        detail = "loop index" if variable.kind == "loop-index" else f"loop item from {variable.array_path}"
        items.append(CompletionItem(
            label=variable.name,
            type="variable",
            detail=detail,
            apply=variable.name,
            boost=BOOST_SCOPE,
        ))

    if isinstance(data, dict):
        for key, value in data.items():
            key = str(key)
            if key in offered or not _matches(key, prefix):
                continue
            inferred = infer_type(value, max_depth)
            items.append(CompletionItem(
                label=key,
                type="variable" if inferred.kind == "array" else "property",
                detail=format_type(inferred),
                apply=key,
                boost=BOOST_DATA_KEY,
            ))
    return _ranked(items)


def build_type_completions(inferred: InferredType, prefix: str = "") -> list[CompletionItem]:
    items: list[CompletionItem] = []
    for method in get_methods_for_type(inferred):
        if not _matches(method.label, prefix):
            continue
        items.append(CompletionItem(
            label=method.label,
            type=method.type,
            detail=method.detail,
            info=method.signature,
            apply=f"{method.label}()" if method.type == "method" else method.label,
            boost=BOOST_LENGTH if method.type == "property" else BOOST_METHOD,
        ))

    if inferred.kind == "object":
        for key, prop_type in (inferred.properties or {}).items():
            if not _matches(key, prefix):
                continue
            items.append(CompletionItem(
                label=key,
                type="property",
                detail=format_type(prop_type),
                apply=key,
                boost=BOOST_PROPERTY,
            ))

    if inferred.kind == "array" and _matches("[0]", prefix):
        element = inferred.element_type or InferredType.unknown()
        items.append(CompletionItem(
            label="[0]",
            type="property",
            detail=f"access {format_type(element)}",
            apply="[0]",
            boost=BOOST_ELEMENT,
        ))
    return _ranked(items)


def get_expression_completions(
    text_before_cursor: str,
    data: Any,
    scope_vars: Sequence[ScopeVariable] = (),
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> CompletionResult | None:
    """
    Completions at the end of text_before_cursor, or None when there is
    nothing to offer. Options replace text_before_cursor[start:end].
    """
    at_cursor = extract_path_at_cursor(text_before_cursor)
    end = len(text_before_cursor)
    start = _segment_start(text_before_cursor) if at_cursor.partial else end

    if not at_cursor.path:
        options = build_top_level_completions(data, scope_vars, at_cursor.partial, max_depth)
        if not options and not at_cursor.partial:
            return None
    else:
        inferred = resolve_path_type(at_cursor.path, data, scope_vars, max_depth)
        if inferred.is_unknown and not at_cursor.partial:
            return None
        options = build_type_completions(inferred, at_cursor.partial)
        if not options:
            return None

    return CompletionResult(
        start=start,
        end=end,
        path=at_cursor.path,
        partial=at_cursor.partial,
        options=options,
    )
