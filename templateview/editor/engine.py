"""
EditorEngine - single owner of the document; every change goes through here.

The engine applies commands, records their inverses for undo, tells
subscribers about every change and tracks whether the document differs from
the last saved version. Errors are returned as values:

    engine = EditorEngine()
    result = engine.add_block("loop")
    if not result.ok:
        print(result.error_kind, result.error)

    with engine.batch("Insert invoice table"):
        engine.add_block("table", slot_id=loop_id)
        engine.add_block("text", slot_id=loop_id)

    engine.undo()        # reverts the whole batch
"""

from __future__ import annotations
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from pydantic import ValidationError

from ..config import EditorConfig
from .commands import (
    Command,
    InsertNode,
    MoveNode,
    RemoveNode,
    ReplaceDocument,
    UpdateNode,
    UpdateTemplate,
    apply_all,
    apply_command,
    load_command,
    normalize_patch,
)
from .diff import TemplateDiff, compute_template_hash, diff_templates
from .dnd import DragDropValidator
from .document import Document
from .errors import EditorError, ErrorKind, NotFound, StructuralViolation
from .registry import BlockRegistry, create_column, create_row, generate_id
from .styles import Styles, block_styles_in, resolve_document_styles
from .types import Block, ColumnsBlock, JsonSchema, ROOT, TableBlock, Template, ThemeSummary
from .undo import HistoryEntry, UndoStack


logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    ok: bool
    error: str | None = None
    error_kind: ErrorKind | None = None
    affected: int = 0
    node_id: str | None = None

    @classmethod
    def failure(cls, error: EditorError) -> CommandResult:
        return cls(ok=False, error=str(error), error_kind=error.kind)

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class EngineState:
    """What subscribers receive after every change."""
    template: Template
    can_undo: bool
    can_redo: bool
    is_dirty: bool
    selected_block_id: str | None = None
    themes: list[ThemeSummary] = field(default_factory=list)
    default_theme: ThemeSummary | None = None
    schema: JsonSchema | None = None


Listener = Callable[[EngineState], None]


def new_template(name: str = "Untitled") -> Template:
    return Template(id=generate_id(), name=name)


class EditorEngine:

    def __init__(
        self,
        template: Template | None = None,
        registry: BlockRegistry | None = None,
        config: EditorConfig | None = None,
    ):
        self.config = config or EditorConfig()
        self.registry = registry or BlockRegistry.default(self.config.default_language)
        template = template.model_copy(deep=True) if template is not None else new_template()
        self._document = Document(template, self.registry)
        result = self._document.validate()
        if not result.valid:
            raise StructuralViolation("; ".join(result.errors))
        self.validator = DragDropValidator(self._document)
        self._history = UndoStack(max_depth=self.config.undo_depth)
        self._pending: list[Command] | None = None
        self._pending_label: str | None = None
        self._listeners: list[Listener] = []
        self._saved_template = self._document.to_template()
        self._saved_hash = compute_template_hash(self._saved_template)
        self._selected_id: str | None = None
        self._themes: list[ThemeSummary] = []
        self._default_theme: ThemeSummary | None = None
        self._schema: JsonSchema | None = None

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def document(self) -> Document:
        """Read-only queries over the current tree."""
        return self._document

    @property
    def template(self) -> Template:
        """Snapshot of the current template."""
        return self._document.to_template()

    def find_block(self, block_id: str) -> Block | None:
        return self._document.find_block(block_id)

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, command: Command | dict[str, Any]) -> CommandResult:
        """Apply a command. Failures leave the document and history untouched."""
        if isinstance(command, dict):
            try:
                command = load_command(command)
            except ValidationError as e:
                logger.warning(f"Rejected malformed command: {e}")
                return CommandResult.failure(StructuralViolation(f"Malformed command: {e}"))
        if isinstance(command, ReplaceDocument):
            return self.replace_document(command.document)

        try:
            applied = apply_command(self._document, command)
        except EditorError as e:
            logger.warning(f"Rejected {command.type}: {e}")
            return CommandResult.failure(e)

        logger.debug(f"Applied {command.type} ({applied.affected} blocks)")
        assert applied.inverse is not None
        self._record(applied.inverse)
        self._changed()
        return CommandResult(ok=True, affected=applied.affected, node_id=applied.node_id)

    def _record(self, inverse: Command) -> None:
        if self._pending is not None:
            self._pending.append(inverse)
        else:
            self._history.push(HistoryEntry([inverse]))

    @contextmanager
    def batch(self, label: str | None = None) -> Iterator[EditorEngine]:
        """
        Group the commands dispatched inside the block into one undo entry.

        Subscribers are notified once, when the outermost batch closes.
        """
        outermost = self._pending is None
        if outermost:
            self._pending = []
            self._pending_label = label
        try:
            yield self
        finally:
            if outermost:
                inverses, self._pending = self._pending, None
                if inverses:
                    self._history.push(HistoryEntry(list(reversed(inverses)), self._pending_label))
                self._changed()

    def undo(self) -> bool:
        entry = self._history.pop_undo()
        if entry is None:
            return False
        try:
            applied = apply_all(self._document, entry.commands)
        except EditorError as e:
            logger.error(f"Undo failed, clearing history: {e}")
            self._history.clear()
            return False
        self._history.push_redo(HistoryEntry([a.inverse for a in reversed(applied)], entry.label))
        logger.debug(f"Undo ({len(entry)} commands)")
        self._changed()
        return True

    def redo(self) -> bool:
        entry = self._history.pop_redo()
        if entry is None:
            return False
        try:
            applied = apply_all(self._document, entry.commands)
        except EditorError as e:
            logger.error(f"Redo failed, clearing history: {e}")
            self._history.clear()
            return False
        self._history.push_undo_from_redo(HistoryEntry([a.inverse for a in reversed(applied)], entry.label))
        logger.debug(f"Redo ({len(entry)} commands)")
        self._changed()
        return True

    def replace_document(self, template: Template | dict[str, Any], saved: bool = False) -> CommandResult:
        """
        Swap in a whole new document. Not undoable; clears undo and redo.

        Args:
            template: The incoming template
            saved: Treat the incoming template as the saved version
        """
        try:
            if isinstance(template, dict):
                template = Template.model_validate(template)
            applied = apply_command(self._document, ReplaceDocument(document=template))
        except ValidationError as e:
            logger.warning(f"Rejected document: {e}")
            return CommandResult.failure(StructuralViolation(f"Malformed document: {e}"))
        except EditorError as e:
            logger.warning(f"Rejected document: {e}")
            return CommandResult.failure(e)

        self._history.clear()
        if self._pending is not None:
            self._pending = []
        if saved:
            self._mark_saved()
        logger.info(f"Document replaced ({applied.affected} blocks)")
        self._changed()
        return CommandResult(ok=True, affected=applied.affected)

    def load(self, template: Template | dict[str, Any]) -> CommandResult:
        """Replace the document with a freshly loaded, saved one."""
        return self.replace_document(template, saved=True)

    # -------------------------------------------------------------------------
    # Block operations
    # -------------------------------------------------------------------------

    def add_block(self, block_type: str, slot_id: str = ROOT, index: int = -1, **fields: Any) -> CommandResult:
        """Create a block of the given type and insert it. Extra fields patch the defaults."""
        block = self.registry.create(block_type)
        try:
            if fields:
                patch = normalize_patch(type(block), fields, protected={"id", "type"})
                block = type(block).model_validate({**block.model_dump(by_alias=True), **patch})
        except EditorError as e:
            return CommandResult.failure(e)
        except ValidationError as e:
            return CommandResult.failure(StructuralViolation(f"Invalid {block_type} block: {e.errors()[0]['msg']}"))
        return self.insert_block(block, slot_id, index)

    def insert_block(self, block: Block, slot_id: str = ROOT, index: int = -1) -> CommandResult:
        return self.dispatch(InsertNode(node=block, target_slot_id=slot_id, index=index))

    def update_block(self, block_id: str, patch: dict[str, Any]) -> CommandResult:
        return self.dispatch(UpdateNode(node_id=block_id, patch=patch))

    def delete_block(self, block_id: str) -> CommandResult:
        return self.dispatch(RemoveNode(node_id=block_id))

    def move_block(self, block_id: str, slot_id: str, index: int = -1) -> CommandResult:
        return self.dispatch(MoveNode(node_id=block_id, target_slot_id=slot_id, index=index))

    def drop(self, dragged_id: str, target_slot_id: str, index: int = -1) -> CommandResult:
        """Move a dragged block if the drop is allowed."""
        if self._document.find_block(dragged_id) is None:
            return CommandResult.failure(NotFound(f"Block {dragged_id} not found"))
        if not self.validator.can_drag(dragged_id):
            return CommandResult.failure(StructuralViolation(f"Block {dragged_id} cannot be dragged"))
        return self.move_block(dragged_id, target_slot_id, index)

    def _require(self, block_id: str, model: type) -> Any:
        block = self._document.find_block(block_id)
        if block is None:
            raise NotFound(f"Block {block_id} not found")
        if not isinstance(block, model):
            raise StructuralViolation(f"Block {block_id} is not a {model.model_fields['type'].default} block")
        return block

    def add_column(self, block_id: str, size: int = 1) -> CommandResult:
        try:
            block: ColumnsBlock = self._require(block_id, ColumnsBlock)
        except EditorError as e:
            return CommandResult.failure(e)
        columns = [c.model_dump(by_alias=True) for c in block.columns]
        columns.append(create_column(size).model_dump(by_alias=True))
        return self.update_block(block_id, {"columns": columns})

    def remove_column(self, block_id: str, column_id: str) -> CommandResult:
        try:
            block: ColumnsBlock = self._require(block_id, ColumnsBlock)
        except EditorError as e:
            return CommandResult.failure(e)
        if not any(c.id == column_id for c in block.columns):
            return CommandResult.failure(NotFound(f"Column {column_id} not found"))
        columns = [c.model_dump(by_alias=True) for c in block.columns if c.id != column_id]
        return self.update_block(block_id, {"columns": columns})

    def add_row(self, block_id: str, index: int = -1, is_header: bool = False) -> CommandResult:
        try:
            block: TableBlock = self._require(block_id, TableBlock)
        except EditorError as e:
            return CommandResult.failure(e)
        if block.rows:
            cell_count = len(block.rows[0].cells)
        else:
            cell_count = len(block.column_widths or []) or 1
        rows = [r.model_dump(by_alias=True) for r in block.rows]
        row = create_row(cell_count, is_header=is_header).model_dump(by_alias=True)
        rows.insert(index if 0 <= index <= len(rows) else len(rows), row)
        return self.update_block(block_id, {"rows": rows})

    def remove_row(self, block_id: str, row_id: str) -> CommandResult:
        try:
            block: TableBlock = self._require(block_id, TableBlock)
        except EditorError as e:
            return CommandResult.failure(e)
        if not any(r.id == row_id for r in block.rows):
            return CommandResult.failure(NotFound(f"Row {row_id} not found"))
        rows = [r.model_dump(by_alias=True) for r in block.rows if r.id != row_id]
        return self.update_block(block_id, {"rows": rows})

    # -------------------------------------------------------------------------
    # Template metadata
    # -------------------------------------------------------------------------

    def update_template(self, patch: dict[str, Any]) -> CommandResult:
        return self.dispatch(UpdateTemplate(patch=patch))

    def rename(self, name: str) -> CommandResult:
        return self.update_template({"name": name})

    def update_theme_id(self, theme_id: str | None) -> CommandResult:
        return self.update_template({"themeId": theme_id})

    def update_page_settings(self, patch: dict[str, Any]) -> CommandResult:
        current = self._document._template.page_settings.model_dump(by_alias=True)
        return self.update_template({"pageSettings": {**current, **patch}})

    def update_document_styles(self, patch: dict[str, Any]) -> CommandResult:
        current = self._document._template.document_styles.model_dump(by_alias=True, exclude_none=True)
        return self.update_template({"documentStyles": {**current, **patch}})

    def resolved_document_styles(self) -> Styles:
        return resolve_document_styles(self._document.document_styles)

    def resolved_block_styles(self, block_id: str) -> Styles:
        """Document styles cascaded through the block's ancestors, then its own styles."""
        return block_styles_in(self._document, block_id)

    # -------------------------------------------------------------------------
    # Themes and data schema
    # -------------------------------------------------------------------------

    @property
    def themes(self) -> list[ThemeSummary]:
        return list(self._themes)

    def set_themes(self, themes: list[ThemeSummary | dict[str, Any]]) -> CommandResult:
        """Replace the themes the template can pick from. Not part of undo history."""
        try:
            loaded = [ThemeSummary.model_validate(t) if isinstance(t, dict) else t for t in themes]
        except ValidationError as e:
            logger.warning(f"Rejected themes: {e}")
            return CommandResult.failure(StructuralViolation(f"Malformed theme: {e.errors()[0]['msg']}"))
        self._themes = loaded
        self._notify()
        return CommandResult(ok=True)

    @property
    def default_theme(self) -> ThemeSummary | None:
        return self._default_theme

    def set_default_theme(self, theme: ThemeSummary | dict[str, Any] | None) -> CommandResult:
        try:
            if isinstance(theme, dict):
                theme = ThemeSummary.model_validate(theme)
        except ValidationError as e:
            logger.warning(f"Rejected default theme: {e}")
            return CommandResult.failure(StructuralViolation(f"Malformed theme: {e.errors()[0]['msg']}"))
        self._default_theme = theme
        self._notify()
        return CommandResult(ok=True)

    def find_theme(self, theme_id: str) -> ThemeSummary | None:
        return next((t for t in self._themes if t.id == theme_id), None)

    @property
    def active_theme(self) -> ThemeSummary | None:
        """The theme the template points at, falling back to the default theme."""
        theme_id = self._document._template.theme_id
        if theme_id is not None:
            theme = self.find_theme(theme_id)
            if theme is not None:
                return theme
        return self._default_theme

    @property
    def schema(self) -> JsonSchema | None:
        return self._schema

    def set_schema(self, schema: JsonSchema | dict[str, Any] | None) -> CommandResult:
        """Set or clear the data contract. Subscribers hear about it only when it changes."""
        try:
            if isinstance(schema, dict):
                schema = JsonSchema.model_validate(schema)
        except ValidationError as e:
            logger.warning(f"Rejected schema: {e}")
            return CommandResult.failure(StructuralViolation(f"Malformed schema: {e.errors()[0]['msg']}"))
        if schema == self._schema:
            return CommandResult(ok=True)
        self._schema = schema
        self._notify()
        return CommandResult(ok=True)

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_block(self, block_id: str | None) -> bool:
        if block_id is not None and not self._document.has_block(block_id):
            return False
        self._selected_id = block_id
        self._notify()
        return True

    @property
    def selected_block(self) -> Block | None:
        if self._selected_id is None:
            return None
        return self._document.find_block(self._selected_id)

    # -------------------------------------------------------------------------
    # Dirty tracking
    # -------------------------------------------------------------------------

    def _mark_saved(self) -> None:
        self._saved_template = self._document.to_template()
        self._saved_hash = compute_template_hash(self._saved_template)

    def mark_as_saved(self) -> None:
        self._mark_saved()
        self._notify()

    @property
    def is_dirty(self) -> bool:
        return compute_template_hash(self._document._template) != self._saved_hash

    def changes_since_saved(self) -> TemplateDiff:
        return diff_templates(self._saved_template, self._document._template, self.registry)

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    def export_json(self, indent: int | None = None) -> str:
        return self._document.to_json(indent=indent)

    def import_json(self, text: str | bytes) -> CommandResult:
        try:
            template = Template.model_validate_json(text)
        except ValidationError as e:
            logger.warning(f"Rejected import: {e}")
            return CommandResult.failure(StructuralViolation(f"Malformed document: {e}"))
        return self.replace_document(template)

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def state(self) -> EngineState:
        return EngineState(
            template=self.template,
            can_undo=self.can_undo,
            can_redo=self.can_redo,
            is_dirty=self.is_dirty,
            selected_block_id=self._selected_id,
            themes=list(self._themes),
            default_theme=self._default_theme,
            schema=self._schema,
        )

    def _changed(self) -> None:
        if self._selected_id is not None and not self._document.has_block(self._selected_id):
            self._selected_id = None
        if self._pending is None:
            self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        state = self.state()
        for listener in list(self._listeners):
            listener(state)


