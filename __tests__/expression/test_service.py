"""Tests for ExpressionService previews."""

import pytest
from templateview.config import EditorConfig
from templateview.editor import (
    ConditionalBlock,
    EditorEngine,
    Expression,
    LoopBlock,
    Template,
    TextBlock,
)
from templateview.expression import (
    DEFAULT_TEST_DATA,
    MISSING,
    DataExample,
    EvaluationResult,
    ExpressionService,
    parse_path,
    resolve_path_value,
)


class FakeEvaluator:
    """Resolves plain dotted paths against the context."""

    def __init__(self):
        self.calls = []

    def evaluate(self, expression, language, context):
        self.calls.append((expression, language))
        if expression == "boom":
            raise RuntimeError("evaluator exploded")
        value = resolve_path_value(parse_path(expression), context)
        if value is MISSING:
            return EvaluationResult.fail(f"Cannot resolve {expression}")
        return EvaluationResult.ok(value)


DATA = {
    "name": "Ada",
    "flag": True,
    "off": False,
    "orders": [{"id": "o1"}, {"id": "o2"}, {"id": "o3"}],
    "single": {"id": "only"},
}


def greeting(expression: str) -> dict:
    return {"type": "doc", "content": [{"type": "paragraph", "content": [
        {"type": "text", "text": "Hi "},
        {"type": "expression", "attrs": {"expression": expression}},
        {"type": "text", "text": "!"},
    ]}]}


@pytest.fixture
def engine():
    return EditorEngine(Template(id="tpl", blocks=[
        ConditionalBlock(id="cond", condition=Expression(raw="flag")),
        ConditionalBlock(id="inv", condition=Expression(raw="flag"), inverse=True),
        ConditionalBlock(id="bad", condition=Expression(raw="boom")),
        LoopBlock(id="loop", expression=Expression(raw="orders"), item_alias="order", index_alias="i", children=[
            TextBlock(id="line"),
        ]),
        LoopBlock(id="one", expression=Expression(raw="single"), item_alias="s"),
        LoopBlock(id="none", expression=Expression(raw="missing")),
        TextBlock(id="top"),
    ]))


@pytest.fixture
def evaluator():
    return FakeEvaluator()


@pytest.fixture
def service(engine, evaluator):
    return ExpressionService(engine, evaluator, test_data=DATA)


class TestEvaluateExpression:

    def test_ok(self, service):
        result = service.evaluate_expression("name")
        assert result.success
        assert result.value == "Ada"

    def test_uses_default_language(self, service, evaluator):
        service.evaluate_expression("name")
        assert evaluator.calls == [("name", "jsonata")]

    def test_scope_overrides_data(self, service):
        assert service.evaluate_expression("name", scope={"name": "Bob"}).value == "Bob"

    def test_evaluator_exception_is_a_failed_result(self, service):
        result = service.evaluate_expression("boom")
        assert not result.success
        assert "exploded" in result.error

    def test_default_test_data(self, engine, evaluator):
        service = ExpressionService(engine, evaluator)
        assert service.test_data == DEFAULT_TEST_DATA
        assert service.evaluate_expression("order.id").value == "ORD-001"


class TestConditions:

    def test_condition_from_data(self, service):
        assert service.evaluate_condition("cond")

    def test_inverse(self, service):
        assert not service.evaluate_condition("inv")
        service.set_test_data({**DATA, "flag": False})
        assert service.evaluate_condition("inv")

    def test_failed_evaluation_is_false(self, service):
        assert not service.evaluate_condition("bad")

    def test_overrides(self, service):
        service.set_conditional_override("cond", "hide")
        assert not service.evaluate_condition("cond")
        service.set_conditional_override("bad", "show")
        assert service.evaluate_condition("bad")
        service.clear_preview_overrides()
        assert service.evaluate_condition("cond")

    def test_not_a_conditional(self, service):
        assert not service.evaluate_condition("top")
        assert not service.evaluate_condition("nope")


class TestLoops:

    def test_array(self, service):
        assert service.evaluate_loop_array("loop") == DATA["orders"]
        assert service.loop_iteration_count("loop") == 3

    def test_single_value_is_wrapped(self, service):
        assert service.evaluate_loop_array("one") == [{"id": "only"}]

    def test_unresolved_is_empty(self, service):
        assert service.evaluate_loop_array("none") == []
        assert service.loop_iteration_count("none") == 0

    def test_count_override(self, service):
        service.set_loop_override("loop", 1)
        assert service.loop_iteration_count("loop") == 1
        service.set_loop_override("loop", "data")
        assert service.loop_iteration_count("loop") == 3

    def test_iteration_context(self, service):
        context = service.loop_iteration_context("loop", 1)
        assert context == {"order": {"id": "o2"}, "i": 1}

    def test_iteration_out_of_range(self, service):
        assert service.loop_iteration_context("loop", 7)["order"] is None


class TestScopeAndCompletions:

    def test_scope_variables(self, service):
        assert [v.name for v in service.scope_variables("line")] == ["order", "i"]

    def test_expression_context(self, service):
        context = service.expression_context("line")
        assert context["order"] == {"id": "o1"}
        assert context["i"] == 0

    def test_completions_include_scope(self, service):
        result = service.completions("line", "ord")
        assert [o.label for o in result.options] == ["order", "orders"]

    def test_available_paths(self, service):
        top = {p.path for p in service.available_paths()}
        assert "orders[0].id" in top
        assert "order" not in top
        inside = {p.path for p in service.available_paths("line")}
        assert {"order", "order.id", "i"} <= inside

    def test_inference_depth_from_config(self, evaluator):
        engine = EditorEngine(config=EditorConfig(max_inference_depth=1))
        service = ExpressionService(engine, evaluator, test_data=DATA)
        assert {p.path for p in service.available_paths()} == set(DATA)


class TestInterpolateText:

    def test_expression_node(self, service):
        assert service.interpolate_text(greeting("name")) == "Hi Ada!"

    def test_with_scope(self, service):
        context = service.loop_iteration_context("loop", 2)
        assert service.interpolate_text(greeting("order.id"), scope=context) == "Hi o3!"

    def test_failed_expression_renders_empty(self, service):
        assert service.interpolate_text(greeting("nope")) == "Hi !"

    def test_literal_placeholder(self, service):
        content = {"type": "doc", "content": [{"type": "text", "text": "{{ name }} / {{flag}}"}]}
        assert service.interpolate_text(content) == "Ada / true"

    def test_empty(self, service):
        assert service.interpolate_text(None) == ""


class TestDataExamples:

    def test_select(self, service):
        service.set_data_examples([
            DataExample(id="a", name="A", data={"name": "Alpha"}),
            DataExample(id="b", name="B", data={"name": "Beta"}),
        ])
        assert service.selected_data_example_id == "a"
        assert service.test_data == {"name": "Alpha"}
        assert service.select_data_example("b")
        assert service.evaluate_expression("name").value == "Beta"

    def test_select_unknown(self, service):
        assert not service.select_data_example("zzz")

    def test_update_selected_refreshes_data(self, service):
        service.set_data_examples([DataExample(id="a", name="A", data={"name": "Alpha"})])
        service.update_data_example("a", data={"name": "Omega"})
        assert service.test_data == {"name": "Omega"}
        assert not service.update_data_example("zzz", name="x")

    def test_delete_selected_falls_back(self, service):
        service.set_data_examples([
            DataExample(id="a", name="A", data={"name": "Alpha"}),
            DataExample(id="b", name="B", data={"name": "Beta"}),
        ])
        service.delete_data_example("a")
        assert service.selected_data_example_id == "b"
        service.delete_data_example("b")
        assert service.selected_data_example_id is None
        assert service.test_data == DATA

    def test_add(self, service):
        service.add_data_example(DataExample(id="c", name="C"))
        assert [e.id for e in service.data_examples] == ["c"]
        assert service.selected_data_example_id is None
