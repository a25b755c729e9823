from .config import EditorConfig, configure_logging
from .editor import (
    BlockRegistry,
    CommandResult,
    Document,
    DragDropValidator,
    EditorEngine,
    Template,
)
from .expression import ExpressionService

__all__ = [
    "EditorConfig",
    "configure_logging",
    "BlockRegistry",
    "CommandResult",
    "Document",
    "DragDropValidator",
    "EditorEngine",
    "Template",
    "ExpressionService",
]
