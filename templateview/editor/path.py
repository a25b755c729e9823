"""
Path - Represents a block's position in the template tree.

A BlockPath is the chain of block ids from the outermost ancestor down to
the block itself. Ids are stable across moves of unrelated blocks, so a path
stays meaningful while the tree is edited around it. Slots (columns, cells)
are not part of the path; only blocks are.

Example:
    path = document.block_path("text-1")
    print(path)                     # "loop-1/container-2/text-1"
    len(path)                       # 3

    if document.block_path("loop-1").is_strict_ancestor_of(path):
        print("loop-1 contains text-1")
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator


SEPARATOR = "/"


@dataclass(frozen=True)
class BlockPath:
    """
    Immutable snapshot of a block's ancestry via ids.

    Attributes:
        ids: Tuple of block ids from the outermost ancestor to the block
    """

    ids: tuple[str, ...]

    def __init__(self, ids: list[str] | tuple[str, ...]):
        object.__setattr__(self, 'ids', tuple(ids))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BlockPath):
            return NotImplemented
        return self.ids == other.ids

    def __hash__(self) -> int:
        return hash(self.ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids)

    def __contains__(self, block_id: object) -> bool:
        return block_id in self.ids

    def __len__(self) -> int:
        return len(self.ids)

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------

    def is_ancestor_of(self, other: BlockPath) -> bool:
        """
        Check if this path is an ancestor of (or equal to) other.

        A path is an ancestor if it's a prefix of the other path.
        """
        if len(self.ids) > len(other.ids):
            return False
        return other.ids[:len(self.ids)] == self.ids

    def is_strict_ancestor_of(self, other: BlockPath) -> bool:
        return self.is_ancestor_of(other) and self != other

    def is_descendant_of(self, other: BlockPath) -> bool:
        return other.is_ancestor_of(self)

    def is_strict_descendant_of(self, other: BlockPath) -> bool:
        return other.is_strict_ancestor_of(self)

    # -------------------------------------------------------------------------
    # String representations
    # -------------------------------------------------------------------------

    def __str__(self) -> str:
        return SEPARATOR.join(self.ids)

    def __repr__(self) -> str:
        return f"BlockPath({list(self.ids)})"
