from enum import Enum


class ErrorKind(str, Enum):
    STRUCTURAL_VIOLATION = "structural_violation"
    NOT_FOUND = "not_found"


class EditorError(Exception):
    kind: ErrorKind = ErrorKind.STRUCTURAL_VIOLATION


class StructuralViolation(EditorError):
    """A mutation would break a tree invariant or a block constraint."""
    kind = ErrorKind.STRUCTURAL_VIOLATION


class NotFound(EditorError):
    """A referenced block or slot does not exist."""
    kind = ErrorKind.NOT_FOUND
