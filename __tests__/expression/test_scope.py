"""Tests for loop scope resolution."""

import pytest
from templateview.editor import (
    ContainerBlock,
    Document,
    Expression,
    LoopBlock,
    Template,
    TextBlock,
)
from templateview.expression import ScopeVariable, build_evaluation_context, scope_variables_at


@pytest.fixture
def document():
    return Document(Template(id="tpl", blocks=[
        LoopBlock(id="l1", expression=Expression(raw="orders"), item_alias="order", index_alias="i", children=[
            ContainerBlock(id="box", children=[
                LoopBlock(id="l2", expression=Expression(raw="order.items"), item_alias="line", children=[
                    TextBlock(id="deep"),
                ]),
            ]),
            TextBlock(id="mid"),
        ]),
        TextBlock(id="top"),
    ]))


class TestScopeVariablesAt:

    def test_top_level_has_no_scope(self, document):
        assert scope_variables_at(document, "top") == []

    def test_outermost_first(self, document):
        names = [v.name for v in scope_variables_at(document, "deep")]
        assert names == ["order", "i", "line"]

    def test_variable_details(self, document):
        order, i, line = scope_variables_at(document, "deep")
        assert order.kind == "loop-item"
        assert order.array_path == "orders"
        assert order.block_id == "l1"
        assert i.kind == "loop-index"
        assert line.array_path == "order.items"

    def test_loop_does_not_see_own_aliases(self, document):
        names = [v.name for v in scope_variables_at(document, "l2")]
        assert names == ["order", "i"]
        assert scope_variables_at(document, "l1") == []

    def test_sibling_of_inner_loop(self, document):
        names = [v.name for v in scope_variables_at(document, "mid")]
        assert names == ["order", "i"]

    def test_missing_block(self, document):
        assert scope_variables_at(document, "nope") == []


class TestBuildEvaluationContext:

    def test_first_iteration_values(self, document):
        data = {"orders": [{"items": [{"sku": "a"}, {"sku": "b"}]}, {"items": []}]}
        context = build_evaluation_context(data, scope_variables_at(document, "deep"))
        assert context["order"] == data["orders"][0]
        assert context["i"] == 0
        assert context["line"] == {"sku": "a"}
        assert context["orders"] is data["orders"]

    def test_unresolvable_variables_are_left_out(self):
        scope = [ScopeVariable(name="x", kind="loop-item", array_path="missing")]
        assert build_evaluation_context({"a": 1}, scope) == {"a": 1}

    def test_does_not_mutate_data(self):
        data = {"orders": [1]}
        scope = [ScopeVariable(name="o", kind="loop-item", array_path="orders")]
        build_evaluation_context(data, scope)
        assert data == {"orders": [1]}
