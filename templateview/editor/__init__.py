"""
Editor - headless editing core for document templates.

This module provides:
- Template, Block variants: The serializable document tree
- BlockRegistry: Per-type factories, validation and placement rules
- Document: Indexed read-only queries over the tree
- Commands: InsertNode, RemoveNode, MoveNode, UpdateNode, ReplaceDocument
- EditorEngine: Dispatch, undo/redo, batching, subscribers, dirty tracking
- DragDropValidator: Pure drop checks that agree with MoveNode
- diff_templates: Block-level comparison of two templates
- resolve_block_styles_with_ancestors: Style cascade from document to block
"""

from .types import (
    Block,
    BlockType,
    Column,
    ColumnsBlock,
    ConditionalBlock,
    ContainerBlock,
    DocumentStyles,
    Expression,
    JsonSchema,
    JsonSchemaProperty,
    LoopBlock,
    Margins,
    PageBreakBlock,
    PageFooterBlock,
    PageHeaderBlock,
    PageSettings,
    ROOT,
    TableBlock,
    TableCell,
    TableRow,
    Template,
    TextBlock,
    ThemeSummary,
    load_block,
)
from .errors import EditorError, ErrorKind, NotFound, StructuralViolation
from .registry import (
    BlockCatalogItem,
    BlockConstraints,
    BlockDefinition,
    BlockRegistry,
    ValidationResult,
    generate_id,
)
from .path import BlockPath
from .document import Document, Slot
from .commands import (
    Command,
    InsertNode,
    MoveNode,
    RemoveNode,
    ReplaceDocument,
    UpdateNode,
    UpdateTemplate,
    apply_command,
    load_command,
)
from .undo import HistoryEntry, UndoStack
from .dnd import DragDropValidator, DropZone
from .diff import TemplateDiff, NodeDiff, diff_templates
from .styles import (
    INHERITABLE_STYLE_KEYS,
    block_styles_in,
    resolve_block_styles,
    resolve_block_styles_with_ancestors,
    resolve_document_styles,
)
from .engine import CommandResult, EditorEngine, EngineState, new_template

__all__ = [
    "Block",
    "BlockType",
    "Column",
    "ColumnsBlock",
    "ConditionalBlock",
    "ContainerBlock",
    "DocumentStyles",
    "Expression",
    "JsonSchema",
    "JsonSchemaProperty",
    "LoopBlock",
    "Margins",
    "PageBreakBlock",
    "PageFooterBlock",
    "PageHeaderBlock",
    "PageSettings",
    "ROOT",
    "TableBlock",
    "TableCell",
    "TableRow",
    "Template",
    "TextBlock",
    "ThemeSummary",
    "load_block",
    "EditorError",
    "ErrorKind",
    "NotFound",
    "StructuralViolation",
    "BlockCatalogItem",
    "BlockConstraints",
    "BlockDefinition",
    "BlockRegistry",
    "ValidationResult",
    "generate_id",
    "BlockPath",
    "Document",
    "Slot",
    "Command",
    "InsertNode",
    "MoveNode",
    "RemoveNode",
    "ReplaceDocument",
    "UpdateNode",
    "UpdateTemplate",
    "apply_command",
    "load_command",
    "HistoryEntry",
    "UndoStack",
    "DragDropValidator",
    "DropZone",
    "TemplateDiff",
    "NodeDiff",
    "diff_templates",
    "INHERITABLE_STYLE_KEYS",
    "block_styles_in",
    "resolve_block_styles",
    "resolve_block_styles_with_ancestors",
    "resolve_document_styles",
    "CommandResult",
    "EditorEngine",
    "EngineState",
    "new_template",
]
