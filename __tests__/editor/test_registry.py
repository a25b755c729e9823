"""Tests for BlockRegistry definitions, validation and placement rules."""

import pytest
from templateview.editor import (
    BlockRegistry,
    Column,
    ColumnsBlock,
    ConditionalBlock,
    ContainerBlock,
    LoopBlock,
    TableBlock,
    TableCell,
    TableRow,
    TextBlock,
)
from templateview.editor.types import BUILTIN_BLOCK_TYPES


@pytest.fixture
def registry():
    return BlockRegistry.default()


class TestDefinitions:
    """Every built-in type is registered with a factory."""

    def test_all_builtin_types_registered(self, registry):
        assert set(registry.types()) == BUILTIN_BLOCK_TYPES

    def test_unknown_type_is_key_error(self, registry):
        assert not registry.has("video")
        with pytest.raises(KeyError):
            registry.get("video")

    @pytest.mark.parametrize("block_type", sorted(BUILTIN_BLOCK_TYPES))
    def test_created_blocks_are_valid(self, registry, block_type):
        block = registry.create(block_type)
        assert block.type == block_type
        assert block.id
        assert registry.validate(block).valid

    def test_create_uses_given_id(self, registry):
        block = registry.create("text", id="intro")
        assert block.id == "intro"

    def test_created_ids_are_unique(self, registry):
        ids = {registry.create("container").id for _ in range(50)}
        assert len(ids) == 50

    def test_columns_default_shape(self, registry):
        block = registry.create("columns")
        assert len(block.columns) == 2
        assert block.gap == 16
        assert all(c.size == 1 for c in block.columns)

    def test_table_default_shape(self, registry):
        block = registry.create("table")
        assert len(block.rows) == 3
        assert all(len(row.cells) == 3 for row in block.rows)
        assert block.rows[0].is_header
        assert not block.rows[1].is_header

    def test_loop_defaults(self, registry):
        block = registry.create("loop")
        assert block.item_alias == "item"
        assert block.index_alias is None
        assert block.expression.language == "jsonata"

    def test_default_language_applies_to_expressions(self):
        registry = BlockRegistry.default(default_language="javascript")
        assert registry.create("conditional").condition.language == "javascript"
        assert registry.create("loop").expression.language == "javascript"


class TestValidation:
    """validate reports reasons and never raises."""

    def test_too_many_columns(self, registry):
        block = ColumnsBlock(id="c", columns=[Column(id=f"col-{i}") for i in range(7)])
        result = registry.validate(block)
        assert not result.valid
        assert "Columns block can have at most 6 columns" in result.errors

    def test_no_columns(self, registry):
        result = registry.validate(ColumnsBlock(id="c", columns=[]))
        assert not result.valid
        assert "Columns block must have at least 1 column" in result.errors

    def test_column_size_below_one(self, registry):
        block = ColumnsBlock(id="c", columns=[Column(id="a", size=0)])
        assert not registry.validate(block).valid

    def test_empty_table(self, registry):
        result = registry.validate(TableBlock(id="t", rows=[]))
        assert "Table block must have at least 1 row" in result.errors

    def test_row_without_cells(self, registry):
        block = TableBlock(id="t", rows=[TableRow(id="r", cells=[])])
        assert not registry.validate(block).valid

    def test_bad_colspan(self, registry):
        block = TableBlock(id="t", rows=[TableRow(id="r", cells=[TableCell(id="c", colspan=0)])])
        assert not registry.validate(block).valid

    def test_loop_needs_item_alias(self, registry):
        result = registry.validate(LoopBlock(id="l", item_alias=""))
        assert not result.valid

    def test_loop_index_alias_must_differ(self, registry):
        result = registry.validate(LoopBlock(id="l", item_alias="row", index_alias="row"))
        assert not result.valid

    def test_missing_id(self, registry):
        assert not registry.validate(TextBlock(id="")).valid


class TestDropContainers:
    """Slots are exposed uniformly across container shapes."""

    def test_simple_container_exposes_itself(self, registry):
        assert registry.drop_containers(ContainerBlock(id="box")) == ["box"]
        assert registry.drop_containers(ConditionalBlock(id="cond")) == ["cond"]

    def test_columns_expose_each_column(self, registry):
        block = ColumnsBlock(id="cols", columns=[Column(id="left"), Column(id="right")])
        assert registry.drop_containers(block) == ["left", "right"]

    def test_table_exposes_every_cell(self, registry):
        block = TableBlock(id="t", rows=[
            TableRow(id="r1", cells=[TableCell(id="a"), TableCell(id="b")]),
            TableRow(id="r2", cells=[TableCell(id="c"), TableCell(id="d")]),
        ])
        assert registry.drop_containers(block) == ["a", "b", "c", "d"]
        assert registry.owned_ids(block) == ["r1", "a", "b", "r2", "c", "d"]

    def test_leaves_expose_nothing(self, registry):
        assert registry.drop_containers(TextBlock(id="t")) == []
        assert registry.drop_containers(registry.create("pagebreak")) == []

    def test_nested_slot_ids(self, registry):
        inner = ContainerBlock(id="inner")
        outer = ColumnsBlock(id="cols", columns=[Column(id="left", children=[inner])])
        assert registry.drop_container_ids([outer]) == ["left", "inner"]


class TestPlacement:
    """can_contain / can_be_placed_in."""

    def test_root_accepts_everything(self, registry):
        for block_type in registry.types():
            assert registry.can_contain("root", block_type)

    def test_text_has_no_children(self, registry):
        assert not registry.can_contain("text", "text")

    @pytest.mark.parametrize("block_type", ["pagebreak", "pageheader", "pagefooter"])
    def test_root_only_types(self, registry, block_type):
        assert registry.can_be_placed_in(block_type, "root")
        assert not registry.can_be_placed_in(block_type, "container")
        assert not registry.can_be_placed_in(block_type, "loop")

    def test_placement_error_messages(self, registry):
        assert registry.placement_error("text", "container") is None
        assert "cannot have children" in registry.placement_error("text", "text")
        assert registry.placement_error("pagebreak", "columns") is not None


class TestCatalog:
    """Palette entries."""

    def test_catalog_lists_every_type(self, registry):
        catalog = registry.catalog()
        assert {item.type for item in catalog} == set(registry.types())

    def test_catalog_sorted_by_group(self, registry):
        groups = [item.group for item in registry.catalog()]
        assert groups == sorted(groups)

    def test_root_only_types_addable_at_root(self, registry):
        entries = {item.type: item for item in registry.catalog()}
        assert entries["pagebreak"].addable_at_root
        assert entries["text"].addable_at_root
