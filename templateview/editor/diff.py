"""
Template Diff - Compare two templates and identify changed blocks.

Blocks carry stable ids, so blocks are matched by id rather than by position:
a block present on one side only is added or removed, a block whose parent
container changed is moved, and a block whose own fields changed is
modified. Template metadata (name, theme, page settings, document styles) is
compared field by field.

Usage:
    from templateview.editor.diff import diff_templates

    diff = diff_templates(saved, current)

    if not diff.is_identical:
        print(diff.summary())
        for node in diff.iter_changes():
            print(f"{node.path}: {node.status}")
"""

from __future__ import annotations
import hashlib
import json
from typing import Any, Iterator, Literal

from pydantic import BaseModel, Field

from .document import Document
from .registry import BlockRegistry
from .types import Template


# =============================================================================
# Diff Models
# =============================================================================

class FieldChange(BaseModel):
    """Represents a change in a single field."""
    field: str
    old_value: Any
    new_value: Any

    def __repr__(self) -> str:
        return f"{self.field}: {self.old_value!r} -> {self.new_value!r}"


class NodeDiff(BaseModel):
    """Diff for a single block, matched by id across both templates."""
    block_id: str
    block_type: str
    path: str = ""
    status: Literal["unchanged", "modified", "moved", "added", "removed"] = "unchanged"
    field_changes: list[FieldChange] = Field(default_factory=list)
    old_parent: str | None = None
    new_parent: str | None = None

    # For added/removed blocks, the block data
    block_data: dict | None = None

    @property
    def has_field_changes(self) -> bool:
        return len(self.field_changes) > 0

    @property
    def is_moved(self) -> bool:
        return self.old_parent != self.new_parent and self.status not in ("added", "removed")

    def __repr__(self) -> str:
        if self.status == "modified":
            fields = [fc.field for fc in self.field_changes]
            return f"NodeDiff(path={self.path!r}, modified: {fields})"
        return f"NodeDiff(path={self.path!r}, {self.status})"


class TemplateDiff(BaseModel):
    """
    Complete diff between two templates.

    Provides per-block comparison with convenience methods for iteration
    and change analysis.
    """
    hash_a: str
    hash_b: str
    nodes: list[NodeDiff] = Field(default_factory=list)
    metadata_changes: list[FieldChange] = Field(default_factory=list)

    @property
    def is_identical(self) -> bool:
        return self.hash_a == self.hash_b

    @property
    def change_count(self) -> int:
        return sum(1 for _ in self.iter_changes()) + len(self.metadata_changes)

    @property
    def has_structural_changes(self) -> bool:
        """True if blocks were added, removed or moved."""
        return any(node.status in ("added", "removed", "moved") for node in self.iter_changes())

    def iter_changes(self) -> Iterator[NodeDiff]:
        for node in self.nodes:
            if node.status != "unchanged":
                yield node

    def iter_all(self) -> Iterator[NodeDiff]:
        return iter(self.nodes)

    def get_changes_by_status(self) -> dict[str, list[NodeDiff]]:
        result: dict[str, list[NodeDiff]] = {
            "added": [],
            "removed": [],
            "moved": [],
            "modified": [],
        }
        for node in self.iter_changes():
            result[node.status].append(node)
        return result

    def get_added_ids(self) -> list[str]:
        return [n.block_id for n in self.iter_changes() if n.status == "added"]

    def get_removed_ids(self) -> list[str]:
        return [n.block_id for n in self.iter_changes() if n.status == "removed"]

    def get_modified_ids(self) -> list[str]:
        return [n.block_id for n in self.iter_changes() if n.status == "modified"]

    def get_moved_ids(self) -> list[str]:
        return [n.block_id for n in self.iter_changes() if n.is_moved]

    def summary(self) -> str:
        """Get human-readable summary of changes."""
        if self.is_identical:
            return "Templates are identical"

        by_status = self.get_changes_by_status()
        parts = []
        for status in ("modified", "moved", "added", "removed"):
            if by_status[status]:
                parts.append(f"{len(by_status[status])} {status}")
        if self.metadata_changes:
            fields = ", ".join(fc.field for fc in self.metadata_changes)
            parts.append(f"metadata: {fields}")
        return ", ".join(parts)

    def __bool__(self) -> bool:
        return not self.is_identical

    def __repr__(self) -> str:
        return f"TemplateDiff({self.summary()})"


# =============================================================================
# Diff Computation
# =============================================================================

METADATA_FIELDS = ("name", "themeId", "pageSettings", "documentStyles")


def compute_template_hash(template: Template) -> str:
    """Content hash of a template's wire form."""
    payload = json.dumps(
        template.model_dump(by_alias=True, exclude_none=True, mode="json"),
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _strip_children(value: Any) -> Any:
    """A block's own fields: everything except nested blocks."""
    if isinstance(value, dict):
        return {k: _strip_children(v) for k, v in value.items() if k != "children"}
    if isinstance(value, list):
        return [_strip_children(v) for v in value]
    return value


def _own_fields(block) -> dict[str, Any]:
    return _strip_children(block.model_dump(by_alias=True, exclude_none=True, mode="json"))


def _field_changes(old: dict[str, Any], new: dict[str, Any], keys=None) -> list[FieldChange]:
    changes = []
    for key in keys or sorted(set(old) | set(new)):
        if old.get(key) != new.get(key):
            changes.append(FieldChange(field=key, old_value=old.get(key), new_value=new.get(key)))
    return changes


def diff_templates(
    template_a: Template,
    template_b: Template,
    registry: BlockRegistry | None = None,
) -> TemplateDiff:
    """
    Compute diff between two templates.

    Args:
        template_a: Original template
        template_b: New template

    Returns:
        TemplateDiff listing every block of both sides
    """
    hash_a = compute_template_hash(template_a)
    hash_b = compute_template_hash(template_b)

    if hash_a == hash_b:
        return TemplateDiff(hash_a=hash_a, hash_b=hash_b)

    doc_a = Document(template_a, registry)
    doc_b = Document(template_b, registry)

    nodes: list[NodeDiff] = []
    for block_b in doc_b.iter_blocks():
        path = str(doc_b.block_path(block_b.id))
        new_slot = doc_b.parent_slot_of(block_b.id)
        block_a = doc_a.find_block(block_b.id)
        if block_a is None:
            nodes.append(NodeDiff(
                block_id=block_b.id,
                block_type=block_b.type,
                path=path,
                status="added",
                new_parent=new_slot.id if new_slot else None,
                block_data=block_b.model_dump(by_alias=True, exclude_none=True),
            ))
            continue
        old_slot = doc_a.parent_slot_of(block_a.id)
        node = NodeDiff(
            block_id=block_b.id,
            block_type=block_b.type,
            path=path,
            old_parent=old_slot.id if old_slot else None,
            new_parent=new_slot.id if new_slot else None,
            field_changes=_field_changes(_own_fields(block_a), _own_fields(block_b)),
        )
        if node.field_changes:
            node.status = "modified"
        elif node.is_moved:
            node.status = "moved"
        nodes.append(node)

    for block_a in doc_a.iter_blocks():
        if not doc_b.has_block(block_a.id):
            old_slot = doc_a.parent_slot_of(block_a.id)
            nodes.append(NodeDiff(
                block_id=block_a.id,
                block_type=block_a.type,
                path=str(doc_a.block_path(block_a.id)),
                status="removed",
                old_parent=old_slot.id if old_slot else None,
                block_data=block_a.model_dump(by_alias=True, exclude_none=True),
            ))

    metadata_a = template_a.model_dump(by_alias=True, mode="json", include={"name", "theme_id", "page_settings", "document_styles"})
    metadata_b = template_b.model_dump(by_alias=True, mode="json", include={"name", "theme_id", "page_settings", "document_styles"})

    return TemplateDiff(
        hash_a=hash_a,
        hash_b=hash_b,
        nodes=nodes,
        metadata_changes=_field_changes(metadata_a, metadata_b, METADATA_FIELDS),
    )


# =============================================================================
# Diff Display Utilities
# =============================================================================

def format_diff(diff: TemplateDiff) -> str:
    """Format the changed blocks one per line, with a status marker."""
    status_char = {
        "unchanged": " ",
        "modified": "~",
        "moved": ">",
        "added": "+",
        "removed": "-",
    }
    lines = []
    for fc in diff.metadata_changes:
        lines.append(f"~ (template) [{fc.field}]")
    for node in diff.iter_changes():
        line = f"{status_char[node.status]} {node.path} ({node.block_type})"
        if node.has_field_changes:
            line += f" [{', '.join(fc.field for fc in node.field_changes)}]"
        if node.is_moved:
            line += f" {node.old_parent} -> {node.new_parent}"
        lines.append(line)
    return "\n".join(lines)
