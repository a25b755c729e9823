"""
DragDropValidator - answers "may this block be dropped there?" without
changing anything.

Answers come from the same rule set MoveNode enforces (Document.check_move),
so a drop the validator allows is a move the engine accepts, and the other
way round. Effecting the drop is the caller's job: dispatch a MoveNode, or
call EditorEngine.drop.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Literal

from .document import Document, normalize_index


RelativePosition = Literal["before", "after", "inside"]


@dataclass(frozen=True)
class DropZone:
    slot_id: str
    owner_id: str | None
    owner_type: str


class DragDropValidator:

    def __init__(self, document: Document):
        self.document = document
        self.registry = document.registry

    def can_drag(self, block_id: str) -> bool:
        block = self.document.find_block(block_id)
        if block is None:
            return False
        return self.registry.constraints(block.type).can_be_dragged

    def explain(self, dragged_id: str, target_slot_id: str, position: int = -1) -> str | None:
        """Reason the drop is rejected, or None if it is allowed."""
        return self.document.check_move(dragged_id, target_slot_id)

    def can_drop(self, dragged_id: str, target_slot_id: str, position: int = -1) -> bool:
        """
        Check a drop of dragged_id into target_slot_id at position.

        Position is the insertion index; -1 or out of range appends, the
        same way MoveNode treats it, so it never decides the answer.
        """
        return self.explain(dragged_id, target_slot_id, position) is None

    def drop_zones(self, dragged_id: str) -> list[DropZone]:
        """Every slot the block could be dropped into, in document order."""
        return [
            DropZone(slot_id=slot.id, owner_id=slot.owner_id, owner_type=slot.owner_type)
            for slot in self.document.slots()
            if self.can_drop(dragged_id, slot.id)
        ]

    def resolve_relative(
        self,
        target_block_id: str,
        position: RelativePosition,
        dragged_id: str | None = None,
    ) -> tuple[str, int] | None:
        """
        Convert a drop relative to a block into (slot_id, index).

        "inside" appends to the block's first slot. When dragged_id already
        sits earlier in the same slot the index accounts for its removal.
        Returns None when the target is missing or has no slot to drop into.
        """
        target = self.document.find_block(target_block_id)
        if target is None:
            return None
        if position == "inside":
            containers = self.registry.drop_containers(target)
            if not containers:
                return None
            slot = self.document.get_slot(containers[0])
            assert slot is not None
            return slot.id, len(slot.children)

        slot = self.document.parent_slot_of(target_block_id)
        index = self.document.index_in_slot(target_block_id)
        assert slot is not None and index is not None
        if position == "after":
            index += 1
        if dragged_id is not None and dragged_id != target_block_id:
            dragged_slot = self.document.parent_slot_of(dragged_id)
            dragged_index = self.document.index_in_slot(dragged_id)
            if dragged_slot is slot and dragged_index is not None and dragged_index < index:
                index -= 1
        return slot.id, normalize_index(index, len(slot.children))
