"""Tests for template diff functionality."""

from templateview.editor import (
    Column,
    ColumnsBlock,
    ContainerBlock,
    Template,
    TextBlock,
    diff_templates,
)
from templateview.editor.diff import compute_template_hash, format_diff


def base() -> Template:
    return Template(id="tpl", name="Invoice", blocks=[
        ContainerBlock(id="box", children=[TextBlock(id="a")]),
        ColumnsBlock(id="cols", columns=[Column(id="left"), Column(id="right")]),
        TextBlock(id="b"),
    ])


class TestIdenticalTemplates:
    """Tests for comparing identical templates."""

    def test_identical(self):
        diff = diff_templates(base(), base())
        assert diff.is_identical
        assert diff.change_count == 0
        assert not diff
        assert diff.summary() == "Templates are identical"

    def test_hash_is_stable(self):
        assert compute_template_hash(base()) == compute_template_hash(base())


class TestBlockChanges:
    """Added, removed, moved and modified blocks."""

    def test_added(self):
        new = base()
        new.blocks.append(TextBlock(id="c"))
        diff = diff_templates(base(), new)
        assert diff.get_added_ids() == ["c"]
        assert diff.has_structural_changes

    def test_removed_with_subtree(self):
        new = base()
        del new.blocks[0]
        diff = diff_templates(base(), new)
        assert set(diff.get_removed_ids()) == {"box", "a"}

    def test_modified(self):
        new = base()
        new.blocks[2].content = {"type": "doc"}
        diff = diff_templates(base(), new)
        assert diff.get_modified_ids() == ["b"]
        node = next(diff.iter_changes())
        assert [fc.field for fc in node.field_changes] == ["content"]

    def test_child_changes_do_not_modify_parent(self):
        new = base()
        new.blocks[0].children[0].content = {"type": "doc"}
        diff = diff_templates(base(), new)
        assert diff.get_modified_ids() == ["a"]

    def test_column_size_modifies_columns_block(self):
        new = base()
        new.blocks[1].columns[0].size = 2
        diff = diff_templates(base(), new)
        assert diff.get_modified_ids() == ["cols"]

    def test_moved(self):
        new = base()
        block = new.blocks.pop(2)
        new.blocks[1].columns[0].children.append(block)
        diff = diff_templates(base(), new)
        assert diff.get_moved_ids() == ["b"]
        moved = next(n for n in diff.iter_changes() if n.block_id == "b")
        assert moved.status == "moved"
        assert moved.old_parent == "root"
        assert moved.new_parent == "left"
        assert moved.path == "cols/b"

    def test_reorder_within_slot_is_not_a_move(self):
        new = base()
        new.blocks.reverse()
        diff = diff_templates(base(), new)
        assert not diff.is_identical
        assert diff.get_moved_ids() == []


class TestMetadataChanges:
    """Template-level fields."""

    def test_name_change(self):
        new = base()
        new.name = "Receipt"
        diff = diff_templates(base(), new)
        assert [fc.field for fc in diff.metadata_changes] == ["name"]
        assert diff.metadata_changes[0].old_value == "Invoice"
        assert "metadata: name" in diff.summary()

    def test_page_settings_change(self):
        new = base()
        new.page_settings.orientation = "landscape"
        diff = diff_templates(base(), new)
        assert [fc.field for fc in diff.metadata_changes] == ["pageSettings"]


class TestFormatting:

    def test_summary_counts(self):
        new = base()
        new.blocks.append(TextBlock(id="c"))
        new.blocks[2].content = {"type": "doc"}
        diff = diff_templates(base(), new)
        assert diff.summary() == "1 modified, 1 added"

    def test_format_diff(self):
        new = base()
        new.blocks.append(TextBlock(id="c"))
        text = format_diff(diff_templates(base(), new))
        assert "+ c (text)" in text
