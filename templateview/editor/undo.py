"""
UndoStack - bounded history of inverse commands.

An entry holds the commands that revert one user action. Most entries hold a
single inverse; a batch holds several, already in the order they must run.
Pushing a new entry clears the redo side; the oldest entries fall off once
the stack is deeper than max_depth.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .commands import Command


@dataclass
class HistoryEntry:
    commands: list[Command]
    label: str | None = None

    def __len__(self) -> int:
        return len(self.commands)


@dataclass
class UndoStack:
    max_depth: int = 100
    _undo: list[HistoryEntry] = field(default_factory=list)
    _redo: list[HistoryEntry] = field(default_factory=list)

    def push(self, entry: HistoryEntry) -> None:
        """Record a new action. Clears redo."""
        self._push_undo(entry)
        self._redo.clear()

    def _push_undo(self, entry: HistoryEntry) -> None:
        self._undo.append(entry)
        if len(self._undo) > self.max_depth:
            del self._undo[0]

    def pop_undo(self) -> HistoryEntry | None:
        return self._undo.pop() if self._undo else None

    def pop_redo(self) -> HistoryEntry | None:
        return self._redo.pop() if self._redo else None

    def push_redo(self, entry: HistoryEntry) -> None:
        self._redo.append(entry)

    def push_undo_from_redo(self, entry: HistoryEntry) -> None:
        """Record the inverse of a redone action without touching redo."""
        self._push_undo(entry)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return len(self._undo) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._redo) > 0

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)
