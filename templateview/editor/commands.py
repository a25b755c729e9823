"""
Commands - the only way the block tree changes.

Every command is validated against the current document before anything is
written; a rejected command raises NotFound or StructuralViolation and leaves
the document exactly as it was. A successful command returns its inverse,
computed at application time, so undo restores the original nodes (same
objects, same ids) instead of recreating them.

    applied = apply_command(document, InsertNode(node=block, target_slot_id="root"))
    apply_command(document, applied.inverse)      # back where we started
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter, ValidationError

from .document import Document
from .errors import EditorError, NotFound, StructuralViolation
from .types import Block, EditorModel, Template


class InsertNode(EditorModel):
    type: Literal["InsertNode"] = "InsertNode"
    node: Block
    target_slot_id: str
    index: int = -1


class RemoveNode(EditorModel):
    type: Literal["RemoveNode"] = "RemoveNode"
    node_id: str


class MoveNode(EditorModel):
    type: Literal["MoveNode"] = "MoveNode"
    node_id: str
    target_slot_id: str
    index: int = -1


class UpdateNode(EditorModel):
    """Shallow patch of a block's fields. Keys may be field names or wire names."""
    type: Literal["UpdateNode"] = "UpdateNode"
    node_id: str
    patch: dict[str, Any]


class UpdateTemplate(EditorModel):
    """Shallow patch of template metadata (name, theme, page settings, styles)."""
    type: Literal["UpdateTemplate"] = "UpdateTemplate"
    patch: dict[str, Any]


class ReplaceDocument(EditorModel):
    type: Literal["ReplaceDocument"] = "ReplaceDocument"
    document: Template


Command = Annotated[
    Union[InsertNode, RemoveNode, MoveNode, UpdateNode, UpdateTemplate, ReplaceDocument],
    Field(discriminator="type"),
]

command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def load_command(data: dict[str, Any]) -> Command:
    """Build a command from its wire shape."""
    return command_adapter.validate_python(data)


@dataclass
class Applied:
    """
    Result of a successfully applied command.

    Attributes:
        inverse: Command that undoes this one, None when not undoable
        affected: Number of blocks touched
        node_id: Block the command targeted, if any
    """
    inverse: Command | None
    affected: int
    node_id: str | None = None


# =============================================================================
# Field patches
# =============================================================================


def normalize_patch(model: type[EditorModel], patch: dict[str, Any], protected: set[str]) -> dict[str, Any]:
    """Map patch keys to wire names, rejecting unknown and protected fields."""
    aliases: dict[str, str] = {}
    for name, field in model.model_fields.items():
        alias = field.alias or name
        aliases[name] = alias
        aliases[alias] = alias
    normalized = {}
    for key, value in patch.items():
        if key not in aliases:
            raise StructuralViolation(f"Unknown field {key!r}")
        if aliases[key] in protected:
            raise StructuralViolation(f"Field {key!r} cannot be changed")
        normalized[aliases[key]] = value
    return normalized


def _patched(model_instance: EditorModel, patch: dict[str, Any]) -> tuple[Any, dict[str, Any]]:
    """Apply a normalized patch. Returns the new instance and the previous values."""
    current = model_instance.model_dump(by_alias=True)
    previous = {key: current.get(key) for key in patch}
    try:
        updated = type(model_instance).model_validate({**current, **patch})
    except ValidationError as e:
        raise StructuralViolation(f"Invalid update: {e.errors()[0]['msg']}") from e
    return updated, previous


# =============================================================================
# Handlers
# =============================================================================


def _insert(document: Document, command: InsertNode) -> Applied:
    slot = document.get_slot(command.target_slot_id)
    if slot is None:
        raise NotFound(f"Container {command.target_slot_id} not found")
    node = command.node.model_copy(deep=True)
    errors = document.check_subtree(node, slot.owner_type, document.all_ids())
    if errors:
        raise StructuralViolation("; ".join(errors))
    if not slot.is_root:
        max_children = document.registry.constraints(slot.owner_type).max_children
        if max_children is not None and len(slot.children) >= max_children:
            raise StructuralViolation(f"Container {slot.id} can hold at most {max_children} blocks")
    document._insert(slot.id, command.index, node)
    return Applied(
        inverse=RemoveNode(node_id=node.id),
        affected=document.subtree_size(node),
        node_id=node.id,
    )


def _remove(document: Document, command: RemoveNode) -> Applied:
    if not document.has_block(command.node_id):
        raise NotFound(f"Block {command.node_id} not found")
    slot_id, index, block = document._remove(command.node_id)
    return Applied(
        inverse=InsertNode(node=block, target_slot_id=slot_id, index=index),
        affected=document.subtree_size(block),
        node_id=block.id,
    )


def _move(document: Document, command: MoveNode) -> Applied:
    block = document.find_block(command.node_id)
    if block is None:
        raise NotFound(f"Block {command.node_id} not found")
    if document.get_slot(command.target_slot_id) is None:
        raise NotFound(f"Container {command.target_slot_id} not found")
    reason = document.check_move(command.node_id, command.target_slot_id)
    if reason:
        raise StructuralViolation(reason)
    source_slot_id, source_index, block = document._remove(command.node_id)
    document._insert(command.target_slot_id, command.index, block)
    return Applied(
        inverse=MoveNode(node_id=block.id, target_slot_id=source_slot_id, index=source_index),
        affected=document.subtree_size(block),
        node_id=block.id,
    )


def _update(document: Document, command: UpdateNode) -> Applied:
    block = document.find_block(command.node_id)
    if block is None:
        raise NotFound(f"Block {command.node_id} not found")
    patch = normalize_patch(type(block), command.patch, protected={"id", "type"})
    updated, previous = _patched(block, patch)

    slot = document.parent_slot_of(block.id)
    assert slot is not None
    taken = document.all_ids() - set(document.subtree_ids(block))
    errors = document.check_subtree(updated, slot.owner_type, taken)
    if errors:
        raise StructuralViolation("; ".join(errors))
    document._replace_block(block.id, updated)
    return Applied(
        inverse=UpdateNode(node_id=block.id, patch=previous),
        affected=1,
        node_id=block.id,
    )


def _update_template(document: Document, command: UpdateTemplate) -> Applied:
    template = document._template
    patch = normalize_patch(Template, command.patch, protected={"id", "blocks"})
    updated, previous = _patched(template, patch)
    # keep the live block list so the index stays valid
    updated.blocks = template.blocks
    document._set_template(updated)
    return Applied(inverse=UpdateTemplate(patch=previous), affected=0)


def _replace(document: Document, command: ReplaceDocument) -> Applied:
    candidate = Document(command.document.model_copy(deep=True), document.registry)
    result = candidate.validate()
    if not result.valid:
        raise StructuralViolation("; ".join(result.errors))
    document._set_template(candidate._template)
    return Applied(inverse=None, affected=document.block_count())


_HANDLERS = {
    InsertNode: _insert,
    RemoveNode: _remove,
    MoveNode: _move,
    UpdateNode: _update,
    UpdateTemplate: _update_template,
    ReplaceDocument: _replace,
}


def apply_command(document: Document, command: Command) -> Applied:
    """
    Validate and apply one command.

    Raises:
        NotFound: a referenced block or container does not exist
        StructuralViolation: the result would break a tree rule
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unknown command: {command!r}")
    return handler(document, command)


def apply_all(document: Document, commands: list[Command]) -> list[Applied]:
    """Apply commands in order; on failure roll back the ones already applied."""
    applied: list[Applied] = []
    try:
        for command in commands:
            applied.append(apply_command(document, command))
    except EditorError:
        for done in reversed(applied):
            if done.inverse is not None:
                apply_command(document, done.inverse)
        raise
    return applied
