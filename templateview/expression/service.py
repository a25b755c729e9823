"""
ExpressionService - previews expressions against sample data.

The service never evaluates anything itself. It builds the evaluation
context (sample data plus the scope of the block being previewed) and hands
the expression to an ExpressionEvaluator supplied by the caller, such as a
JSONata binding. Evaluator failures come back as failed EvaluationResults;
nothing is retried.

Usage:
    service = ExpressionService(engine, evaluator)
    service.select_data_example("invoice-1")
    service.evaluate_condition("cond-1")
    service.interpolate_text(text_block.content, scope=context)
"""

from __future__ import annotations
import copy
import json
import logging
import re
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

from ..editor.engine import EditorEngine
from ..editor.types import ConditionalBlock, ExpressionLanguage, LoopBlock
from .completion import get_expression_completions
from .scope import build_evaluation_context, scope_variables_at
from .paths import extract_paths
from .types import CompletionResult, DataExample, EvaluationResult, PathInfo, ScopeVariable


logger = logging.getLogger(__name__)


DEFAULT_TEST_DATA: dict[str, Any] = {
    "name": "John Doe",
    "email": "john@example.com",
    "company": "Example Inc.",
    "order": {
        "id": "ORD-001",
        "items": [
            {"name": "Product A", "price": 99.99, "quantity": 2},
            {"name": "Product B", "price": 49.99, "quantity": 1},
        ],
        "total": 249.97,
    },
}

_PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")

ConditionalOverride = Literal["data", "show", "hide"]


class ExpressionEvaluator(Protocol):

    def evaluate(self, expression: str, language: ExpressionLanguage, context: dict[str, Any]) -> EvaluationResult:
        ...


class PreviewOverrides(BaseModel):
    """Forced preview states: conditionals shown or hidden, loops run a fixed number of times."""
    conditionals: dict[str, ConditionalOverride] = Field(default_factory=dict)
    loops: dict[str, int | Literal["data"]] = Field(default_factory=dict)


def format_value(value: Any) -> str:
    """Text form of an evaluated value for interpolation."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def extract_text(content: Any) -> str:
    """
    Plain text of a rich-text document, with expression nodes written back
    as {{expression}} placeholders.
    """
    if not isinstance(content, dict):
        return ""
    if content.get("type") == "expression":
        attrs = content.get("attrs") or {}
        if attrs.get("expression"):
            return "{{" + str(attrs["expression"]) + "}}"
    if content.get("type") == "text" and isinstance(content.get("text"), str):
        return content["text"]
    children = content.get("content")
    if isinstance(children, list):
        return "".join(extract_text(child) for child in children)
    return ""


class ExpressionService:

    def __init__(
        self,
        engine: EditorEngine,
        evaluator: ExpressionEvaluator,
        test_data: dict[str, Any] | None = None,
    ):
        self.engine = engine
        self.evaluator = evaluator
        self._default_data = copy.deepcopy(test_data if test_data is not None else DEFAULT_TEST_DATA)
        self._test_data = copy.deepcopy(self._default_data)
        self._examples: list[DataExample] = []
        self._selected_example_id: str | None = None
        self.overrides = PreviewOverrides()

    # -------------------------------------------------------------------------
    # Sample data
    # -------------------------------------------------------------------------

    @property
    def test_data(self) -> dict[str, Any]:
        return self._test_data

    def set_test_data(self, data: dict[str, Any]) -> None:
        self._test_data = copy.deepcopy(data)

    @property
    def data_examples(self) -> list[DataExample]:
        return list(self._examples)

    @property
    def selected_data_example_id(self) -> str | None:
        return self._selected_example_id

    def set_data_examples(self, examples: list[DataExample]) -> None:
        self._examples = list(examples)
        if not self._examples:
            self.select_data_example(None)
        elif self._selected_example_id is None or not self._find_example(self._selected_example_id):
            self.select_data_example(self._examples[0].id)

    def add_data_example(self, example: DataExample) -> None:
        self._examples.append(example)

    def update_data_example(self, example_id: str, name: str | None = None, data: dict[str, Any] | None = None) -> bool:
        example = self._find_example(example_id)
        if example is None:
            return False
        if name is not None:
            example.name = name
        if data is not None:
            example.data = data
            if self._selected_example_id == example_id:
                self.set_test_data(data)
        return True

    def delete_data_example(self, example_id: str) -> None:
        was_selected = self._selected_example_id == example_id
        self._examples = [e for e in self._examples if e.id != example_id]
        if was_selected:
            self.select_data_example(self._examples[0].id if self._examples else None)

    def select_data_example(self, example_id: str | None) -> bool:
        """Make an example's data the test data. None falls back to the default data."""
        if example_id is None:
            self._selected_example_id = None
            self.set_test_data(self._default_data)
            return True
        example = self._find_example(example_id)
        if example is None:
            return False
        self._selected_example_id = example_id
        self.set_test_data(example.data)
        return True

    def _find_example(self, example_id: str) -> DataExample | None:
        return next((e for e in self._examples if e.id == example_id), None)

    # -------------------------------------------------------------------------
    # Preview overrides
    # -------------------------------------------------------------------------

    def set_conditional_override(self, block_id: str, value: ConditionalOverride) -> None:
        self.overrides.conditionals[block_id] = value

    def set_loop_override(self, block_id: str, value: int | Literal["data"]) -> None:
        self.overrides.loops[block_id] = value

    def clear_preview_overrides(self) -> None:
        self.overrides = PreviewOverrides()

    # -------------------------------------------------------------------------
    # Scope
    # -------------------------------------------------------------------------

    def scope_variables(self, block_id: str) -> list[ScopeVariable]:
        return scope_variables_at(self.engine.document, block_id)

    def expression_context(self, block_id: str) -> dict[str, Any]:
        """Evaluation context for expressions written inside a block."""
        return build_evaluation_context(self._test_data, self.scope_variables(block_id))

    def completions(self, block_id: str, text_before_cursor: str) -> CompletionResult | None:
        return get_expression_completions(
            text_before_cursor,
            self._test_data,
            self.scope_variables(block_id),
            max_depth=self.engine.config.max_inference_depth,
        )

    def available_paths(self, block_id: str | None = None) -> list[PathInfo]:
        """Paths an expression can reference: the sample data, plus loop variables inside a loop."""
        data = self.expression_context(block_id) if block_id else self._test_data
        return extract_paths(data, max_depth=self.engine.config.max_inference_depth)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate_expression(
        self,
        expression: str,
        language: ExpressionLanguage | None = None,
        scope: dict[str, Any] | None = None,
    ) -> EvaluationResult:
        language = language or self.engine.config.default_language
        context = {**self._test_data, **(scope or {})}
        try:
            return self.evaluator.evaluate(expression, language, context)
        except Exception as e:
            logger.warning(f"Evaluation of {expression!r} failed: {e}")
            return EvaluationResult.fail(str(e))

    def evaluate_condition(self, block_id: str, scope: dict[str, Any] | None = None) -> bool:
        block = self.engine.find_block(block_id)
        if not isinstance(block, ConditionalBlock):
            return False
        override = self.overrides.conditionals.get(block_id, "data")
        if override == "show":
            return True
        if override == "hide":
            return False
        result = self.evaluate_expression(block.condition.raw, block.condition.language, scope)
        passed = result.success and bool(result.value)
        return not passed if block.inverse else passed

    def evaluate_loop_array(self, block_id: str, scope: dict[str, Any] | None = None) -> list[Any]:
        block = self.engine.find_block(block_id)
        if not isinstance(block, LoopBlock):
            return []
        result = self.evaluate_expression(block.expression.raw, block.expression.language, scope)
        if not result.success or result.value is None:
            return []
        if isinstance(result.value, list):
            return result.value
        return [result.value]

    def loop_iteration_count(self, block_id: str, scope: dict[str, Any] | None = None) -> int:
        override = self.overrides.loops.get(block_id, "data")
        if isinstance(override, int):
            return override
        return len(self.evaluate_loop_array(block_id, scope))

    def loop_iteration_context(self, block_id: str, index: int, scope: dict[str, Any] | None = None) -> dict[str, Any]:
        """Scope for one iteration of a loop: its item alias (and index alias) bound."""
        context = dict(scope or {})
        block = self.engine.find_block(block_id)
        if not isinstance(block, LoopBlock):
            return context
        array = self.evaluate_loop_array(block_id, scope)
        context[block.item_alias] = array[index] if 0 <= index < len(array) else None
        if block.index_alias:
            context[block.index_alias] = index
        return context

    def interpolate_text(self, content: dict[str, Any] | None, scope: dict[str, Any] | None = None) -> str:
        """Plain text of rich-text content with every {{expression}} evaluated."""
        if not content:
            return ""
        text = extract_text(content)

        def replace(match: re.Match) -> str:
            result = self.evaluate_expression(match.group(1).strip(), scope=scope)
            return format_value(result.value) if result.success else ""

        return _PLACEHOLDER.sub(replace, text)
