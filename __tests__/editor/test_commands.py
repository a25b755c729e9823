"""Tests for command application and computed inverses."""

import pytest
from templateview.editor import (
    Column,
    ColumnsBlock,
    ContainerBlock,
    Document,
    InsertNode,
    LoopBlock,
    MoveNode,
    NotFound,
    PageBreakBlock,
    RemoveNode,
    ReplaceDocument,
    StructuralViolation,
    Template,
    TextBlock,
    UpdateNode,
    UpdateTemplate,
    apply_command,
    load_command,
)


@pytest.fixture
def document():
    return Document(Template(id="tpl", blocks=[
        ContainerBlock(id="box", children=[TextBlock(id="a"), TextBlock(id="b")]),
        ColumnsBlock(id="cols", columns=[Column(id="left"), Column(id="right")]),
        TextBlock(id="c"),
    ]))


def ids(slot):
    return [b.id for b in slot.children]


class TestInsertNode:
    """Insertion into any slot."""

    def test_insert_at_index(self, document):
        apply_command(document, InsertNode(node=TextBlock(id="new"), target_slot_id="box", index=1))
        assert ids(document.get_slot("box")) == ["a", "new", "b"]

    def test_negative_index_appends(self, document):
        apply_command(document, InsertNode(node=TextBlock(id="new"), target_slot_id="root", index=-1))
        assert ids(document.root)[-1] == "new"

    def test_out_of_range_index_appends(self, document):
        apply_command(document, InsertNode(node=TextBlock(id="new"), target_slot_id="left", index=99))
        assert ids(document.get_slot("left")) == ["new"]

    def test_inverse_is_remove(self, document):
        applied = apply_command(document, InsertNode(node=TextBlock(id="new"), target_slot_id="box"))
        assert applied.inverse == RemoveNode(node_id="new")
        assert applied.affected == 1

    def test_affected_counts_subtree(self, document):
        node = ContainerBlock(id="outer", children=[TextBlock(id="x"), TextBlock(id="y")])
        applied = apply_command(document, InsertNode(node=node, target_slot_id="root"))
        assert applied.affected == 3

    def test_inserted_node_is_copied(self, document):
        node = ContainerBlock(id="outer")
        apply_command(document, InsertNode(node=node, target_slot_id="root"))
        node.children.append(TextBlock(id="sneaky"))
        assert document.find_block("sneaky") is None

    def test_missing_slot(self, document):
        with pytest.raises(NotFound):
            apply_command(document, InsertNode(node=TextBlock(id="new"), target_slot_id="nope"))

    def test_duplicate_id_rejected(self, document):
        before = document.to_dict()
        with pytest.raises(StructuralViolation):
            apply_command(document, InsertNode(node=TextBlock(id="a"), target_slot_id="root"))
        assert document.to_dict() == before

    def test_id_clash_with_column(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, InsertNode(node=TextBlock(id="left"), target_slot_id="root"))

    def test_root_only_type_nested(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, InsertNode(node=PageBreakBlock(id="pb"), target_slot_id="box"))

    def test_invalid_subtree_rejected(self, document):
        node = ColumnsBlock(id="wide", columns=[Column(id=f"w{i}") for i in range(7)])
        with pytest.raises(StructuralViolation, match="at most 6 columns"):
            apply_command(document, InsertNode(node=node, target_slot_id="root"))


class TestRemoveNode:
    """Removal and re-insertion of the same node."""

    def test_remove(self, document):
        apply_command(document, RemoveNode(node_id="a"))
        assert document.find_block("a") is None
        assert ids(document.get_slot("box")) == ["b"]

    def test_inverse_restores_position(self, document):
        before = document.to_dict()
        applied = apply_command(document, RemoveNode(node_id="a"))
        assert applied.inverse.target_slot_id == "box"
        assert applied.inverse.index == 0
        apply_command(document, applied.inverse)
        assert document.to_dict() == before

    def test_removing_container_removes_subtree(self, document):
        applied = apply_command(document, RemoveNode(node_id="box"))
        assert applied.affected == 3
        assert document.find_block("a") is None

    def test_missing_block(self, document):
        with pytest.raises(NotFound):
            apply_command(document, RemoveNode(node_id="nope"))


class TestMoveNode:
    """Moves between slots."""

    def test_move_into_column(self, document):
        apply_command(document, MoveNode(node_id="c", target_slot_id="right", index=0))
        assert ids(document.get_slot("right")) == ["c"]
        assert document.parent_of("c").id == "cols"

    def test_move_within_slot(self, document):
        apply_command(document, MoveNode(node_id="a", target_slot_id="box", index=-1))
        assert ids(document.get_slot("box")) == ["b", "a"]

    def test_inverse_moves_back(self, document):
        before = document.to_dict()
        applied = apply_command(document, MoveNode(node_id="a", target_slot_id="left"))
        apply_command(document, applied.inverse)
        assert document.to_dict() == before

    def test_move_keeps_identity(self, document):
        block = document.find_block("box")
        apply_command(document, MoveNode(node_id="box", target_slot_id="left"))
        assert document.find_block("box") is block

    def test_move_into_itself(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, MoveNode(node_id="box", target_slot_id="box"))

    def test_move_into_own_descendant(self, document):
        apply_command(document, InsertNode(node=ContainerBlock(id="inner"), target_slot_id="box"))
        before = document.to_dict()
        with pytest.raises(StructuralViolation):
            apply_command(document, MoveNode(node_id="box", target_slot_id="inner"))
        assert document.to_dict() == before

    def test_move_columns_into_own_column(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, MoveNode(node_id="cols", target_slot_id="left"))

    def test_missing_target(self, document):
        with pytest.raises(NotFound):
            apply_command(document, MoveNode(node_id="a", target_slot_id="nope"))

    def test_missing_node(self, document):
        with pytest.raises(NotFound):
            apply_command(document, MoveNode(node_id="nope", target_slot_id="root"))


class TestUpdateNode:
    """Field patches."""

    def test_update_field_by_name_or_alias(self, document):
        apply_command(document, InsertNode(node=LoopBlock(id="loop"), target_slot_id="root"))
        apply_command(document, UpdateNode(node_id="loop", patch={"item_alias": "row"}))
        assert document.find_block("loop").item_alias == "row"
        apply_command(document, UpdateNode(node_id="loop", patch={"indexAlias": "i"}))
        assert document.find_block("loop").index_alias == "i"

    def test_inverse_restores_previous_values(self, document):
        before = document.to_dict()
        applied = apply_command(document, UpdateNode(node_id="c", patch={"content": {"type": "doc"}}))
        assert applied.inverse.patch == {"content": None}
        apply_command(document, applied.inverse)
        assert document.to_dict() == before

    def test_cannot_change_type(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, UpdateNode(node_id="c", patch={"type": "container"}))

    def test_cannot_change_id(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, UpdateNode(node_id="c", patch={"id": "d"}))

    def test_unknown_field(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, UpdateNode(node_id="c", patch={"color": "red"}))

    def test_invalid_value(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, UpdateNode(node_id="cols", patch={"gap": "wide"}))

    def test_columns_bounds_enforced(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, UpdateNode(node_id="cols", patch={"columns": []}))
        assert len(document.find_block("cols").columns) == 2

    def test_missing_block(self, document):
        with pytest.raises(NotFound):
            apply_command(document, UpdateNode(node_id="nope", patch={}))


class TestUpdateTemplate:
    """Template metadata patches."""

    def test_rename(self, document):
        applied = apply_command(document, UpdateTemplate(patch={"name": "Receipt"}))
        assert document.to_template().name == "Receipt"
        apply_command(document, applied.inverse)
        assert document.to_template().name == "Untitled"

    def test_blocks_are_protected(self, document):
        with pytest.raises(StructuralViolation):
            apply_command(document, UpdateTemplate(patch={"blocks": []}))

    def test_index_survives_metadata_update(self, document):
        apply_command(document, UpdateTemplate(patch={"themeId": "dark"}))
        apply_command(document, RemoveNode(node_id="a"))
        assert document.find_block("a") is None


class TestReplaceDocument:
    """Whole-document replacement."""

    def test_replace(self, document):
        applied = apply_command(document, ReplaceDocument(document=Template(id="other", blocks=[TextBlock(id="z")])))
        assert applied.inverse is None
        assert document.find_block("z") is not None
        assert document.find_block("a") is None

    def test_invalid_document_rejected(self, document):
        before = document.to_dict()
        bad = Template(id="other", blocks=[TextBlock(id="z"), TextBlock(id="z")])
        with pytest.raises(StructuralViolation):
            apply_command(document, ReplaceDocument(document=bad))
        assert document.to_dict() == before


class TestLoadCommand:
    """Commands from their wire shape."""

    def test_load_insert(self):
        command = load_command({
            "type": "InsertNode",
            "node": {"id": "t", "type": "text"},
            "targetSlotId": "root",
            "index": 0,
        })
        assert isinstance(command, InsertNode)
        assert isinstance(command.node, TextBlock)

    def test_load_move(self):
        command = load_command({"type": "MoveNode", "nodeId": "a", "targetSlotId": "box"})
        assert command.index == -1
