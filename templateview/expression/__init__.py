"""
Expression - scope resolution and type inference for template expressions.

This module provides:
- scope_variables_at: Loop variables visible at a block
- extract_paths / infer_type: Walk sample data
- parse_path / resolve_path_type / resolve_path_value: Resolve typed paths
- get_expression_completions: Autocomplete for the text before the cursor
- ExpressionService: Previews over a pluggable ExpressionEvaluator
"""

from .types import (
    CompletionItem,
    CompletionResult,
    DataExample,
    EvaluationResult,
    InferredType,
    MethodSuggestion,
    PathAtCursor,
    PathInfo,
    ScopeVariable,
)
from .paths import (
    MISSING,
    extract_paths,
    format_type,
    get_methods_for_type,
    infer_type,
    parse_path,
    resolve_path_type,
    resolve_path_value,
)
from .completion import extract_path_at_cursor, get_expression_completions
from .scope import build_evaluation_context, scope_variables_at
from .service import DEFAULT_TEST_DATA, ExpressionEvaluator, ExpressionService, PreviewOverrides

__all__ = [
    "CompletionItem",
    "CompletionResult",
    "DataExample",
    "EvaluationResult",
    "InferredType",
    "MethodSuggestion",
    "PathAtCursor",
    "PathInfo",
    "ScopeVariable",
    "MISSING",
    "extract_paths",
    "format_type",
    "get_methods_for_type",
    "infer_type",
    "parse_path",
    "resolve_path_type",
    "resolve_path_value",
    "extract_path_at_cursor",
    "get_expression_completions",
    "build_evaluation_context",
    "scope_variables_at",
    "DEFAULT_TEST_DATA",
    "ExpressionEvaluator",
    "ExpressionService",
    "PreviewOverrides",
]
