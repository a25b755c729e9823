"""
Document - owns the template's block tree and answers read queries about it.

The tree is indexed after every structural change:

    slot id  -> Slot (owner block, owner type, live children list)
    block id -> id of the slot that holds it

Slots are every place a block can sit: the document root (id "root"), a
container's children, a column, a table cell. The registry says which slots a
block exposes, so this module never looks inside a specific block shape.

Mutation helpers are underscored; only the command module calls them.

Usage:
    document = Document(template)
    document.find_block("text-1")
    document.path_to("text-1")        # [loop, container, text]
    document.is_descendant("text-1", "loop-1")
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterator

from .path import BlockPath
from .registry import BlockRegistry, ValidationResult
from .types import Block, DocumentStyles, ROOT, Template


logger = logging.getLogger(__name__)


@dataclass
class Slot:
    """
    A place blocks can be inserted.

    Attributes:
        id: Slot id ("root", a container id, a column id or a cell id)
        owner_id: Id of the block exposing the slot, None for the root
        owner_type: Type of that block, "root" for the root
        children: The live children list (read only outside commands)
    """
    id: str
    owner_id: str | None
    owner_type: str
    children: list[Block]

    @property
    def is_root(self) -> bool:
        return self.owner_id is None


def normalize_index(index: int, length: int) -> int:
    """Negative or out of range indexes append."""
    if index < 0 or index > length:
        return length
    return index


class Document:

    def __init__(self, template: Template, registry: BlockRegistry | None = None):
        self.registry = registry or BlockRegistry.default()
        self._template = template
        self._blocks: dict[str, Block] = {}
        self._parent_slot: dict[str, str] = {}
        self._slots: dict[str, Slot] = {}
        self._owned: dict[str, str] = {}
        self._reindex()

    @classmethod
    def from_json(cls, text: str | bytes, registry: BlockRegistry | None = None) -> Document:
        return cls(Template.model_validate_json(text), registry)

    # -------------------------------------------------------------------------
    # Indexing
    # -------------------------------------------------------------------------

    def _reindex(self) -> None:
        self._blocks.clear()
        self._parent_slot.clear()
        self._slots.clear()
        self._owned.clear()
        self._slots[ROOT] = Slot(id=ROOT, owner_id=None, owner_type=ROOT, children=self._template.blocks)
        self._index_children(ROOT, self._template.blocks, set())

    def _index_children(self, slot_id: str, children: list[Block], ancestors: set[int]) -> None:
        for block in children:
            if id(block) in ancestors:
                logger.error(f"Block {block.id} contains itself, skipping its subtree")
                continue
            self._blocks[block.id] = block
            self._parent_slot[block.id] = slot_id
            for owned_id in self.registry.owned_ids(block):
                self._owned[owned_id] = block.id
            for child_slot_id, slot_children in self.registry.slots(block):
                self._slots[child_slot_id] = Slot(
                    id=child_slot_id,
                    owner_id=block.id,
                    owner_type=block.type,
                    children=slot_children,
                )
                self._index_children(child_slot_id, slot_children, ancestors | {id(block)})

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def root(self) -> Slot:
        return self._slots[ROOT]

    @property
    def document_styles(self) -> DocumentStyles:
        return self._template.document_styles

    def find_block(self, block_id: str) -> Block | None:
        return self._blocks.get(block_id)

    def has_block(self, block_id: str) -> bool:
        return block_id in self._blocks

    def get_slot(self, slot_id: str) -> Slot | None:
        return self._slots.get(slot_id)

    def slots(self) -> list[Slot]:
        return list(self._slots.values())

    def slot_ids(self) -> list[str]:
        return list(self._slots.keys())

    def parent_slot_of(self, block_id: str) -> Slot | None:
        slot_id = self._parent_slot.get(block_id)
        if slot_id is None:
            return None
        return self._slots[slot_id]

    def parent_of(self, block_id: str) -> Block | None:
        """Block owning the slot that holds this block. None at root level."""
        slot = self.parent_slot_of(block_id)
        if slot is None or slot.owner_id is None:
            return None
        return self._blocks[slot.owner_id]

    def index_in_slot(self, block_id: str) -> int | None:
        slot = self.parent_slot_of(block_id)
        if slot is None:
            return None
        for i, child in enumerate(slot.children):
            if child.id == block_id:
                return i
        return None

    def block_path(self, block_id: str) -> BlockPath | None:
        if block_id not in self._blocks:
            return None
        ids = []
        current: str | None = block_id
        while current is not None:
            ids.append(current)
            current = self._slots[self._parent_slot[current]].owner_id
        return BlockPath(list(reversed(ids)))

    def path_to(self, block_id: str) -> list[Block]:
        """Ancestor chain from the outermost block down to the block itself."""
        path = self.block_path(block_id)
        if path is None:
            return []
        return [self._blocks[i] for i in path]

    def is_descendant(self, candidate_id: str, of_id: str) -> bool:
        """True if candidate sits strictly below of_id."""
        path = self.block_path(candidate_id)
        ancestor = self.block_path(of_id)
        return path is not None and ancestor is not None and path.is_strict_descendant_of(ancestor)

    def owner_of(self, owned_id: str) -> Block | None:
        """Block owning a column, row or cell id."""
        block_id = self._owned.get(owned_id)
        return self._blocks.get(block_id) if block_id else None

    def iter_blocks(self) -> Iterator[Block]:
        """All blocks in document order (depth first)."""
        def walk(children: list[Block]) -> Iterator[Block]:
            for block in children:
                yield block
                for _, slot_children in self.registry.slots(block):
                    yield from walk(slot_children)
        yield from walk(self._template.blocks)

    def block_count(self) -> int:
        return len(self._blocks)

    def all_ids(self) -> set[str]:
        """Every id in use: blocks plus columns, rows and cells."""
        return set(self._blocks) | set(self._owned)

    def subtree_ids(self, block: Block) -> list[str]:
        ids = [block.id, *self.registry.owned_ids(block)]
        for _, children in self.registry.slots(block):
            for child in children:
                ids.extend(self.subtree_ids(child))
        return ids

    def subtree_size(self, block: Block) -> int:
        return 1 + sum(
            self.subtree_size(child)
            for _, children in self.registry.slots(block)
            for child in children
        )

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def check_subtree(self, block: Block, parent_type: str, taken_ids: set[str] | None = None) -> list[str]:
        """
        Structural errors of a subtree if it were placed under a parent type.

        Checks placement rules, per-block validation, slot capacity and id
        uniqueness against taken_ids and within the subtree itself.
        """
        errors: list[str] = []
        self._check_block(block, parent_type, set(taken_ids or ()), errors)
        return errors

    def _check_block(self, block: Block, parent_type: str, seen: set[str], errors: list[str]) -> None:
        reason = self.registry.placement_error(block.type, parent_type)
        if reason:
            errors.append(reason)
        if not self.registry.has(block.type):
            return
        errors.extend(self.registry.validate(block).errors)

        duplicate = False
        for block_id in [block.id, *self.registry.owned_ids(block)]:
            if block_id == ROOT:
                errors.append(f"Id {ROOT!r} is reserved for the document root")
            elif block_id in seen:
                errors.append(f"Duplicate id: {block_id}")
                duplicate = True
            seen.add(block_id)
        if duplicate:
            return

        max_children = self.registry.constraints(block.type).max_children
        for slot_id, children in self.registry.slots(block):
            if max_children is not None and len(children) > max_children:
                errors.append(f"Container {slot_id} can hold at most {max_children} blocks")
            for child in children:
                self._check_block(child, block.type, seen, errors)

    def validate(self) -> ValidationResult:
        """Check the whole tree against every structural rule."""
        errors: list[str] = []
        seen: set[str] = set()
        for block in self._template.blocks:
            self._check_block(block, ROOT, seen, errors)
        return ValidationResult.from_errors(errors)

    def check_move(self, block_id: str, slot_id: str) -> str | None:
        """
        Reason a block cannot be moved into a slot, or None.

        Rules apply in order: the slot is real, the owner accepts the block
        type, the block accepts the owner type, the slot is not inside the
        block itself, root-only types stay at root, the slot has room.
        """
        block = self.find_block(block_id)
        if block is None:
            return f"Block {block_id} not found"
        slot = self.get_slot(slot_id)
        if slot is None:
            return f"Drop target {slot_id} is not a container"
        if not self.registry.can_contain(slot.owner_type, block.type):
            return self.registry.placement_error(block.type, slot.owner_type)
        constraints = self.registry.constraints(block.type)
        allowed_parents = constraints.allowed_parent_types
        if allowed_parents is not None and slot.owner_type not in allowed_parents:
            return f"Block type {block.type} cannot be placed in {slot.owner_type}"
        owner_path = self.block_path(slot.owner_id) if slot.owner_id is not None else None
        if owner_path is not None and owner_path.is_descendant_of(self.block_path(block_id)):
            return f"Cannot move block {block_id} into itself or one of its descendants"
        if not slot.is_root and not constraints.can_be_nested:
            return f"Block type {block.type} can only be placed at root level"
        if not slot.is_root:
            max_children = self.registry.constraints(slot.owner_type).max_children
            current = self._parent_slot.get(block_id)
            if max_children is not None and current != slot_id and len(slot.children) >= max_children:
                return f"Container {slot_id} can hold at most {max_children} blocks"
        return None

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def to_template(self) -> Template:
        """Deep copy of the current template."""
        return self._template.model_copy(deep=True)

    def to_dict(self) -> dict:
        return self._template.model_dump(by_alias=True, exclude_none=True)

    def to_json(self, indent: int | None = None) -> str:
        return self._template.model_dump_json(by_alias=True, exclude_none=True, indent=indent)

    # -------------------------------------------------------------------------
    # Mutation (command module only)
    # -------------------------------------------------------------------------

    def _insert(self, slot_id: str, index: int, block: Block) -> int:
        slot = self._slots[slot_id]
        index = normalize_index(index, len(slot.children))
        slot.children.insert(index, block)
        self._reindex()
        return index

    def _remove(self, block_id: str) -> tuple[str, int, Block]:
        slot = self.parent_slot_of(block_id)
        index = self.index_in_slot(block_id)
        assert slot is not None and index is not None
        block = slot.children.pop(index)
        self._reindex()
        return slot.id, index, block

    def _replace_block(self, block_id: str, block: Block) -> None:
        slot = self.parent_slot_of(block_id)
        index = self.index_in_slot(block_id)
        assert slot is not None and index is not None
        slot.children[index] = block
        self._reindex()

    def _set_template(self, template: Template) -> None:
        self._template = template
        self._reindex()

    def __repr__(self) -> str:
        return f"Document(id={self._template.id!r}, blocks={self.block_count()})"
