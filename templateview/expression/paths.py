"""
Paths - walking sample data and resolving expression paths against it.

A path is parsed into segments:

    parse_path("order.items[0].name.toUpperCase()")
    # ["order", "items", "[0]", "name", "toUpperCase()"]

Resolution looks the head segment up in the scope first (innermost loop
variable wins), then in the sample data. Nothing here raises on bad input:
unresolvable values come back as MISSING and unresolvable types as "unknown".
Walks over sample data are depth bounded and skip containers already on the
current walk, so cyclic or pathologically deep samples terminate.
"""

from __future__ import annotations
import logging
from typing import Any, Sequence

from ..utils.type_utils import json_kind_or_none
from .types import InferredType, MethodSuggestion, PathInfo, ScopeVariable


logger = logging.getLogger(__name__)


DEFAULT_MAX_DEPTH = 10


class _Missing:
    """Marks a path that does not resolve (distinct from a JSON null)."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


# =============================================================================
# Parsing
# =============================================================================


def parse_path(path: str) -> list[str]:
    """
    Split a path into segments.

    Dots separate properties, brackets become their own "[...]" segment and
    dots inside a method call's parentheses do not split.
    """
    segments: list[str] = []
    current = ""
    depth = 0
    i = 0
    while i < len(path):
        char = path[i]
        if char == "(":
            current += char
            depth += 1
        elif char == ")":
            current += char
            depth -= 1
        elif char == "." and depth == 0:
            if current:
                segments.append(current)
                current = ""
        elif char == "[" and depth == 0:
            if current:
                segments.append(current)
                current = ""
            end = path.find("]", i + 1)
            if end == -1:
                end = len(path)
            segments.append(f"[{path[i + 1:end]}]")
            i = end
        else:
            current += char
        i += 1
    if current:
        segments.append(current)
    return segments


def is_method_call(segment: str) -> bool:
    return segment.endswith(")") and "(" in segment


def get_method_name(segment: str) -> str:
    paren = segment.find("(")
    return segment[:paren] if paren >= 0 else segment


def is_index(segment: str) -> bool:
    return segment.startswith("[") and segment.endswith("]")


def _index_of(segment: str) -> int | None:
    try:
        return int(segment[1:-1])
    except ValueError:
        return None


def normalize_array_path(expression: str) -> list[str]:
    """Segments of a loop's array expression. A leading "$" (the data root) is dropped."""
    segments = parse_path(expression.strip())
    if segments and segments[0] == "$":
        segments = segments[1:]
    return segments


# =============================================================================
# Sample data walks
# =============================================================================


def extract_paths(data: Any, prefix: str = "", max_depth: int = DEFAULT_MAX_DEPTH) -> list[PathInfo]:
    """
    Every reachable path in the sample data with its kind.

    Arrays yield their first element as "path[0]" (and its sub-paths) plus
    "path.length".

    Example:
        extract_paths({"a": {"b": 1}, "c": [1, 2]})
        # a (object), a.b (number), c (array of number), c[0] (number), c.length (number)
    """
    paths: list[PathInfo] = []
    _walk(data, prefix, 0, max_depth, frozenset(), paths)
    return paths


def _describe(path: str, value: Any) -> PathInfo | None:
    kind = json_kind_or_none(value)
    if kind is None:
        return None
    if kind == "array":
        element_kind = (json_kind_or_none(value[0]) or "unknown") if value else "unknown"
        return PathInfo(path=path, kind=kind, element_kind=element_kind, length=len(value))
    return PathInfo(path=path, kind=kind)


def _walk(value: Any, prefix: str, depth: int, max_depth: int, seen: frozenset[int], paths: list[PathInfo]) -> None:
    if depth >= max_depth:
        return
    if isinstance(value, (dict, list, tuple)):
        if id(value) in seen:
            logger.debug(f"Cycle in sample data at {prefix or '(root)'}")
            return
        seen = seen | {id(value)}

    if isinstance(value, dict):
        for key, child in value.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            info = _describe(path, child)
            if info is None:
                continue
            paths.append(info)
            _walk(child, path, depth + 1, max_depth, seen, paths)
    elif isinstance(value, (list, tuple)) and value:
        element_path = f"{prefix}[0]"
        info = _describe(element_path, value[0])
        if info is not None:
            paths.append(info)
            _walk(value[0], element_path, depth + 1, max_depth, seen, paths)
        paths.append(PathInfo(path=f"{prefix}.length" if prefix else "length", kind="number"))


def infer_type(value: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> InferredType:
    """Structural type of a sample value; MISSING and unsupported values are unknown."""
    return _infer(value, 0, max_depth, frozenset())


def _infer(value: Any, depth: int, max_depth: int, seen: frozenset[int]) -> InferredType:
    if value is MISSING or depth > max_depth:
        return InferredType.unknown()
    kind = json_kind_or_none(value)
    if kind is None:
        return InferredType.unknown()
    if kind in ("string", "number", "boolean", "null"):
        return InferredType.primitive(kind)
    if id(value) in seen:
        return InferredType.unknown()
    seen = seen | {id(value)}
    if kind == "array":
        if not value:
            return InferredType.array(InferredType.unknown())
        return InferredType.array(_infer(value[0], depth + 1, max_depth, seen))
    return InferredType.object({
        str(key): _infer(child, depth + 1, max_depth, seen)
        for key, child in value.items()
    })


def format_type(inferred: InferredType) -> str:
    """Display form: "string", "number[]", "object", "unknown"."""
    if inferred.kind == "array":
        return f"{format_type(inferred.element_type or InferredType.unknown())}[]"
    return inferred.kind


# =============================================================================
# Methods
# =============================================================================


def _suggestions(rows: list[tuple[str, str, str]], length_detail: str | None = None) -> list[MethodSuggestion]:
    methods = [MethodSuggestion(label=label, type="method", signature=sig, detail=detail) for label, sig, detail in rows]
    if length_detail:
        methods.append(MethodSuggestion(label="length", type="property", signature=": number", detail=length_detail))
    return methods


STRING_METHODS = _suggestions([
    ("toUpperCase", "(): string", "Converts to uppercase"),
    ("toLowerCase", "(): string", "Converts to lowercase"),
    ("trim", "(): string", "Removes whitespace"),
    ("trimStart", "(): string", "Removes leading whitespace"),
    ("trimEnd", "(): string", "Removes trailing whitespace"),
    ("split", "(sep): string[]", "Splits into array"),
    ("slice", "(start, end?): string", "Extracts section"),
    ("substring", "(start, end?): string", "Extracts substring"),
    ("replace", "(search, replace): string", "Replaces first match"),
    ("replaceAll", "(search, replace): string", "Replaces all matches"),
    ("includes", "(search): boolean", "Checks if contains"),
    ("startsWith", "(search): boolean", "Checks start"),
    ("endsWith", "(search): boolean", "Checks end"),
    ("indexOf", "(search): number", "Finds first index"),
    ("lastIndexOf", "(search): number", "Finds last index"),
    ("charAt", "(index): string", "Gets character at index"),
    ("concat", "(...strings): string", "Concatenates strings"),
    ("padStart", "(length, pad?): string", "Pads start"),
    ("padEnd", "(length, pad?): string", "Pads end"),
    ("repeat", "(count): string", "Repeats string"),
    ("match", "(regex): string[]", "Matches regex"),
], length_detail="String length")

ARRAY_METHODS = _suggestions([
    ("map", "(fn): array", "Transform elements"),
    ("filter", "(fn): array", "Filter elements"),
    ("find", "(fn): element", "Find first match"),
    ("findIndex", "(fn): number", "Find index of match"),
    ("reduce", "(fn, init): any", "Reduce to value"),
    ("some", "(fn): boolean", "Test if any matches"),
    ("every", "(fn): boolean", "Test if all match"),
    ("includes", "(value): boolean", "Check if contains"),
    ("indexOf", "(value): number", "Find first index"),
    ("join", "(separator): string", "Join to string"),
    ("slice", "(start, end?): array", "Extract section"),
    ("concat", "(...arrays): array", "Concatenate arrays"),
    ("flat", "(depth?): array", "Flatten nested arrays"),
    ("flatMap", "(fn): array", "Map then flatten"),
    ("at", "(index): element", "Get element at index"),
    ("sort", "(fn?): array", "Sort elements"),
    ("reverse", "(): array", "Reverse order"),
], length_detail="Array length")

NUMBER_METHODS = _suggestions([
    ("toFixed", "(digits): string", "Format decimals"),
    ("toPrecision", "(digits): string", "Format precision"),
    ("toString", "(radix?): string", "Convert to string"),
    ("toLocaleString", "(locale?): string", "Locale format"),
    ("toExponential", "(digits?): string", "Exponential format"),
])

BOOLEAN_METHODS = _suggestions([
    ("toString", "(): string", "Convert to string"),
])

METHODS_BY_KIND: dict[str, list[MethodSuggestion]] = {
    "string": STRING_METHODS,
    "number": NUMBER_METHODS,
    "boolean": BOOLEAN_METHODS,
    "array": ARRAY_METHODS,
}


def get_methods_for_type(inferred: InferredType) -> list[MethodSuggestion]:
    return list(METHODS_BY_KIND.get(inferred.kind, []))


# Return types: a kind name, "string[]", or "self"/"element" relative to the receiver
_RETURN_TYPES: dict[str, dict[str, str]] = {
    "string": {
        **dict.fromkeys([
            "toUpperCase", "toLowerCase", "trim", "trimStart", "trimEnd", "slice", "substring",
            "replace", "replaceAll", "charAt", "concat", "padStart", "padEnd", "repeat", "toString",
        ], "string"),
        **dict.fromkeys(["indexOf", "lastIndexOf"], "number"),
        **dict.fromkeys(["includes", "startsWith", "endsWith"], "boolean"),
        **dict.fromkeys(["split", "match"], "string[]"),
    },
    "array": {
        **dict.fromkeys(["filter", "slice", "concat", "flat", "reverse", "sort"], "self"),
        **dict.fromkeys(["find", "at"], "element"),
        **dict.fromkeys(["indexOf", "findIndex"], "number"),
        **dict.fromkeys(["includes", "some", "every"], "boolean"),
        **dict.fromkeys(["join", "toString"], "string"),
        **dict.fromkeys(["map", "flatMap"], "unknown[]"),
    },
    "number": dict.fromkeys(["toFixed", "toPrecision", "toString", "toLocaleString", "toExponential"], "string"),
    "boolean": {"toString": "string"},
}


def infer_method_return_type(method: str, receiver: InferredType) -> InferredType:
    result = _RETURN_TYPES.get(receiver.kind, {}).get(method)
    if result is None:
        return InferredType.unknown()
    if result == "self":
        return receiver
    if result == "element":
        return receiver.element_type or InferredType.unknown()
    if result == "string[]":
        return InferredType.array(InferredType.primitive("string"))
    if result == "unknown[]":
        return InferredType.array(InferredType.unknown())
    return InferredType.primitive(result)  # type: ignore[arg-type]


# =============================================================================
# Resolution
# =============================================================================


def find_scope_variable(name: str, scope_vars: Sequence[ScopeVariable]) -> int | None:
    """Position of the innermost variable with this name, None if not in scope."""
    for i in range(len(scope_vars) - 1, -1, -1):
        if scope_vars[i].name == name:
            return i
    return None


def resolve_scope_variable_value(
    scope_vars: Sequence[ScopeVariable],
    position: int,
    data: Any,
) -> Any:
    """
    Sample value of a scope variable.

    Loop indexes are 0. Loop items are the first element of the loop's
    array, which may itself be reached through an outer loop variable.
    """
    variable = scope_vars[position]
    if variable.kind == "loop-index":
        return 0
    array = resolve_path_value(normalize_array_path(variable.array_path), data, scope_vars[:position])
    if isinstance(array, (list, tuple)) and array:
        return array[0]
    return MISSING


def _resolve_nested(segments: Sequence[str], value: Any) -> Any:
    current = value
    for segment in segments:
        if current is MISSING or current is None:
            return MISSING
        if is_index(segment):
            index = _index_of(segment)
            if not isinstance(current, (list, tuple)) or index is None or not -len(current) <= index < len(current):
                return MISSING
            current = current[index]
        elif segment == "length" and isinstance(current, (list, tuple, str)):
            current = len(current)
        elif isinstance(current, dict):
            current = current.get(segment, MISSING)
        else:
            return MISSING
    return current


def resolve_path_value(segments: Sequence[str], data: Any, scope_vars: Sequence[ScopeVariable] = ()) -> Any:
    """Sample value at a path, or MISSING."""
    if not segments:
        return data
    position = find_scope_variable(segments[0], scope_vars)
    if position is not None:
        base = resolve_scope_variable_value(scope_vars, position, data)
        return _resolve_nested(segments[1:], base)
    return _resolve_nested(segments, data)


def _reinfer(segments: Sequence[str], data: Any, scope_vars: Sequence[ScopeVariable], max_depth: int) -> InferredType:
    # types cut off by the depth bound are inferred again from the sample value
    return infer_type(resolve_path_value(segments, data, scope_vars), max_depth)


def resolve_path_type(
    segments: Sequence[str],
    data: Any,
    scope_vars: Sequence[ScopeVariable] = (),
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> InferredType:
    """
    Structural type at a path.

    The head is matched against scope variables first, so a loop item named
    "row" over "orders" resolves to the element type of orders, not to a
    top-level "row" key. Unresolvable paths are "unknown".
    """
    if not segments:
        return infer_type(data, max_depth)

    head = segments[0]
    position = find_scope_variable(head, scope_vars)
    if position is not None:
        current = infer_type(resolve_scope_variable_value(scope_vars, position, data), max_depth)
    elif isinstance(data, dict) and head in data:
        current = infer_type(data[head], max_depth)
    else:
        return InferredType.unknown()

    for i in range(1, len(segments)):
        segment = segments[i]
        if is_method_call(segment):
            current = infer_method_return_type(get_method_name(segment), current)
        elif is_index(segment):
            if current.kind != "array":
                return InferredType.unknown()
            current = current.element_type or InferredType.unknown()
            if current.is_unknown:
                current = _reinfer(segments[:i + 1], data, scope_vars, max_depth)
        elif segment == "length" and current.kind in ("array", "string"):
            current = InferredType.primitive("number")
        elif current.kind == "object" and current.properties and segment in current.properties:
            current = current.properties[segment]
            if current.is_unknown:
                current = _reinfer(segments[:i + 1], data, scope_vars, max_depth)
        else:
            return InferredType.unknown()
        if current.is_unknown:
            return current
    return current
