"""
BlockRegistry - per-type behavior for the block tree.

Each block type declares:
- create: factory for a default instance
- validate: structural well-formedness of one block (not its subtree)
- constraints: which children it accepts and where it may be placed
- slots: the places inside the block where children live

Slots unify the different container shapes. A container exposes its own id,
a columns block exposes one slot per column and a table exposes one slot per
cell. The document, command engine and drag-and-drop validator only ever talk
to slots, so they never special-case block types.

Usage:
    registry = BlockRegistry.default()
    block = registry.create("columns")
    registry.drop_containers(block)   # [column ids...]
    registry.validate(block).valid    # True
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterable
from uuid import uuid4

from .types import (
    Block,
    Column,
    ColumnsBlock,
    ConditionalBlock,
    ContainerBlock,
    Expression,
    ExpressionLanguage,
    LoopBlock,
    PageBreakBlock,
    PageFooterBlock,
    PageHeaderBlock,
    ROOT,
    TableBlock,
    TableCell,
    TableRow,
    TextBlock,
)


MAX_COLUMNS = 6
MIN_COLUMNS = 1

SlotList = list[tuple[str, list[Block]]]


def generate_id() -> str:
    """Generate a short unique ID."""
    return f"block-{uuid4().hex[:12]}"


def create_column(size: int | float = 1) -> Column:
    return Column(id=generate_id(), size=size, children=[])


def create_cell() -> TableCell:
    return TableCell(id=generate_id(), children=[])


def create_row(cell_count: int, is_header: bool = False) -> TableRow:
    return TableRow(
        id=generate_id(),
        cells=[create_cell() for _ in range(cell_count)],
        is_header=is_header,
    )


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]) -> ValidationResult:
        return cls(valid=len(errors) == 0, errors=errors)


@dataclass(frozen=True)
class BlockConstraints:
    """
    Structure and placement rules for a block type.

    Attributes:
        can_have_children: Whether the block owns slots that accept blocks
        allowed_child_types: Accepted child types, None means any
        can_be_dragged: Whether the block can be moved by drag and drop
        can_be_nested: Whether the block may live below the document root
        allowed_parent_types: Parent types ("root" included), None means anywhere
        max_children: Optional cap on children per slot
    """
    can_have_children: bool
    allowed_child_types: frozenset[str] | None = None
    can_be_dragged: bool = True
    can_be_nested: bool = True
    allowed_parent_types: frozenset[str] | None = None
    max_children: int | None = None


@dataclass
class BlockCatalogItem:
    type: str
    label: str
    icon: str | None
    group: str
    order: int
    visible: bool
    addable_at_root: bool


def _no_slots(block: Block) -> SlotList:
    return []


def _own_slot(block: Block) -> SlotList:
    return [(block.id, block.children)]  # type: ignore[union-attr]


def _no_owned_ids(block: Block) -> list[str]:
    return []


@dataclass
class BlockDefinition:
    type: str
    label: str
    create: Callable[[str], Block]
    validate: Callable[[Block], list[str]]
    constraints: BlockConstraints
    slots: Callable[[Block], SlotList] = _no_slots
    owned_ids: Callable[[Block], list[str]] = _no_owned_ids
    icon: str | None = None
    category: str = "Blocks"
    order: int = 0
    visible: bool = True


# =========================================================================
# Built-in validators
# =========================================================================


def _validate_text(block: Block) -> list[str]:
    errors = []
    if block.content is not None and not isinstance(block.content, dict):  # type: ignore[union-attr]
        errors.append("Text block content must be null or an object")
    return errors


def _validate_children(label: str) -> Callable[[Block], list[str]]:
    def validate(block: Block) -> list[str]:
        if not isinstance(getattr(block, "children", None), list):
            return [f"{label} block must have children array"]
        return []
    return validate


def _validate_conditional(block: ConditionalBlock) -> list[str]:
    errors = []
    if block.condition is None or not isinstance(block.condition.raw, str):
        errors.append("Conditional block must have a condition expression")
    errors.extend(_validate_children("Conditional")(block))
    return errors


def _validate_loop(block: LoopBlock) -> list[str]:
    errors = []
    if block.expression is None or not isinstance(block.expression.raw, str):
        errors.append("Loop block must have an expression")
    if not block.item_alias or not isinstance(block.item_alias, str):
        errors.append("Loop block must have an itemAlias")
    if block.index_alias is not None:
        if not block.index_alias:
            errors.append("Loop block indexAlias must not be empty")
        elif block.index_alias == block.item_alias:
            errors.append("Loop block indexAlias must differ from itemAlias")
    errors.extend(_validate_children("Loop")(block))
    return errors


def _validate_columns(block: ColumnsBlock) -> list[str]:
    errors = []
    if len(block.columns) < MIN_COLUMNS:
        errors.append("Columns block must have at least 1 column")
    if len(block.columns) > MAX_COLUMNS:
        errors.append(f"Columns block can have at most {MAX_COLUMNS} columns")
    for col in block.columns:
        if not col.id:
            errors.append("Each column must have an id and children array")
        if col.size < 1:
            errors.append(f"Column {col.id} size must be at least 1")
    if block.gap < 0:
        errors.append("Columns gap must not be negative")
    return errors


def _validate_table(block: TableBlock) -> list[str]:
    errors = []
    if not block.rows:
        errors.append("Table block must have at least 1 row")
    for row in block.rows:
        if not row.id or not row.cells:
            errors.append("Each row must have an id and cells array")
        for cell in row.cells:
            if not cell.id:
                errors.append("Each cell must have an id and children array")
            if cell.colspan is not None and cell.colspan < 1:
                errors.append(f"Cell {cell.id} colspan must be at least 1")
            if cell.rowspan is not None and cell.rowspan < 1:
                errors.append(f"Cell {cell.id} rowspan must be at least 1")
    return errors


def _validate_nothing(block: Block) -> list[str]:
    return []


def _columns_slots(block: ColumnsBlock) -> SlotList:
    return [(col.id, col.children) for col in block.columns]


def _columns_owned_ids(block: ColumnsBlock) -> list[str]:
    return [col.id for col in block.columns]


def _table_slots(block: TableBlock) -> SlotList:
    return [(cell.id, cell.children) for row in block.rows for cell in row.cells]


def _table_owned_ids(block: TableBlock) -> list[str]:
    ids = []
    for row in block.rows:
        ids.append(row.id)
        ids.extend(cell.id for cell in row.cells)
    return ids


ANY_CHILDREN = BlockConstraints(can_have_children=True)
NO_CHILDREN = BlockConstraints(can_have_children=False, allowed_child_types=frozenset())
ROOT_ONLY = frozenset({ROOT})


def default_definitions() -> list[BlockDefinition]:
    return [
        BlockDefinition(
            type="text",
            label="Text",
            icon="text",
            category="Content",
            create=lambda id: TextBlock(id=id, content=None),
            validate=_validate_text,
            constraints=NO_CHILDREN,
        ),
        BlockDefinition(
            type="container",
            label="Container",
            icon="container",
            category="Layout",
            order=10,
            create=lambda id: ContainerBlock(id=id, children=[]),
            validate=_validate_children("Container"),
            constraints=ANY_CHILDREN,
            slots=_own_slot,
        ),
        BlockDefinition(
            type="conditional",
            label="Conditional",
            icon="conditional",
            category="Logic",
            create=lambda id: ConditionalBlock(id=id, condition=Expression(), inverse=False, children=[]),
            validate=_validate_conditional,
            constraints=ANY_CHILDREN,
            slots=_own_slot,
        ),
        BlockDefinition(
            type="loop",
            label="Loop",
            icon="loop",
            category="Logic",
            order=10,
            create=lambda id: LoopBlock(id=id, expression=Expression(), item_alias="item", children=[]),
            validate=_validate_loop,
            constraints=ANY_CHILDREN,
            slots=_own_slot,
        ),
        BlockDefinition(
            type="columns",
            label="Columns",
            icon="columns",
            category="Layout",
            order=20,
            create=lambda id: ColumnsBlock(id=id, columns=[create_column(), create_column()], gap=16),
            validate=_validate_columns,
            constraints=ANY_CHILDREN,
            slots=_columns_slots,
            owned_ids=_columns_owned_ids,
        ),
        BlockDefinition(
            type="table",
            label="Table",
            icon="table",
            category="Layout",
            order=30,
            create=lambda id: TableBlock(
                id=id,
                rows=[create_row(3, is_header=True), create_row(3), create_row(3)],
                border_style="all",
            ),
            validate=_validate_table,
            constraints=ANY_CHILDREN,
            slots=_table_slots,
            owned_ids=_table_owned_ids,
        ),
        BlockDefinition(
            type="pagebreak",
            label="Page Break",
            icon="pagebreak",
            category="Layout",
            order=40,
            create=lambda id: PageBreakBlock(id=id),
            validate=_validate_nothing,
            constraints=BlockConstraints(
                can_have_children=False,
                allowed_child_types=frozenset(),
                can_be_nested=False,
                allowed_parent_types=ROOT_ONLY,
            ),
        ),
        BlockDefinition(
            type="pageheader",
            label="Page Header",
            icon="pageheader",
            category="Layout",
            order=50,
            create=lambda id: PageHeaderBlock(id=id, children=[]),
            validate=_validate_children("Page header"),
            constraints=BlockConstraints(
                can_have_children=True,
                can_be_nested=False,
                allowed_parent_types=ROOT_ONLY,
            ),
            slots=_own_slot,
        ),
        BlockDefinition(
            type="pagefooter",
            label="Page Footer",
            icon="pagefooter",
            category="Layout",
            order=60,
            create=lambda id: PageFooterBlock(id=id, children=[]),
            validate=_validate_children("Page footer"),
            constraints=BlockConstraints(
                can_have_children=True,
                can_be_nested=False,
                allowed_parent_types=ROOT_ONLY,
            ),
            slots=_own_slot,
        ),
    ]


class BlockRegistry:

    def __init__(self, definitions: Iterable[BlockDefinition], default_language: ExpressionLanguage = "jsonata"):
        self._definitions: dict[str, BlockDefinition] = {d.type: d for d in definitions}
        self.default_language = default_language

    @classmethod
    def default(cls, default_language: ExpressionLanguage = "jsonata") -> BlockRegistry:
        return cls(default_definitions(), default_language=default_language)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, block_type: str) -> BlockDefinition:
        """Get a definition. Unknown types are a programming error."""
        try:
            return self._definitions[block_type]
        except KeyError:
            raise KeyError(f"Unknown block type: {block_type}") from None

    def has(self, block_type: str) -> bool:
        return block_type in self._definitions

    def types(self) -> list[str]:
        return list(self._definitions.keys())

    def constraints(self, block_type: str) -> BlockConstraints:
        return self.get(block_type).constraints

    def catalog(self) -> list[BlockCatalogItem]:
        items = []
        for definition in self._definitions.values():
            allowed_parents = definition.constraints.allowed_parent_types
            items.append(BlockCatalogItem(
                type=definition.type,
                label=definition.label,
                icon=definition.icon,
                group=definition.category,
                order=definition.order,
                visible=definition.visible,
                addable_at_root=allowed_parents is None or ROOT in allowed_parents,
            ))
        return sorted(items, key=lambda item: (item.group, item.order, item.label))

    # -------------------------------------------------------------------------
    # Per-block behavior
    # -------------------------------------------------------------------------

    def create(self, block_type: str, id: str | None = None) -> Block:
        block = self.get(block_type).create(id or generate_id())
        if isinstance(block, ConditionalBlock):
            block.condition.language = self.default_language
        elif isinstance(block, LoopBlock):
            block.expression.language = self.default_language
        return block

    def validate(self, block: Block) -> ValidationResult:
        """Validate one block (not its subtree). Never raises."""
        if not self.has(block.type):
            return ValidationResult.from_errors([f"Unknown block type: {block.type}"])
        errors: list[str] = []
        if not block.id:
            errors.append(f"{block.type} block must have an id")
        try:
            errors.extend(self.get(block.type).validate(block))
        except Exception as e:
            errors.append(f"{block.type} block could not be validated: {e}")
        return ValidationResult.from_errors(errors)

    def slots(self, block: Block) -> SlotList:
        return self.get(block.type).slots(block)

    def drop_containers(self, block: Block) -> list[str]:
        """Ids of the slots nested directly inside this block."""
        return [slot_id for slot_id, _ in self.slots(block)]

    def owned_ids(self, block: Block) -> list[str]:
        """Non-block ids owned by this block (columns, rows, cells)."""
        return self.get(block.type).owned_ids(block)

    def drop_container_ids(self, blocks: list[Block]) -> list[str]:
        """Every slot id in a tree, depth first."""
        ids: list[str] = []
        for block in blocks:
            for slot_id, children in self.slots(block):
                ids.append(slot_id)
                ids.extend(self.drop_container_ids(children))
        return ids

    # -------------------------------------------------------------------------
    # Placement rules
    # -------------------------------------------------------------------------

    def can_contain(self, parent_type: str, child_type: str) -> bool:
        if parent_type == ROOT:
            return True
        constraints = self.constraints(parent_type)
        if not constraints.can_have_children:
            return False
        allowed = constraints.allowed_child_types
        return allowed is None or child_type in allowed

    def can_be_placed_in(self, child_type: str, parent_type: str) -> bool:
        constraints = self.constraints(child_type)
        if parent_type != ROOT and not constraints.can_be_nested:
            return False
        allowed = constraints.allowed_parent_types
        return allowed is None or parent_type in allowed

    def placement_error(self, child_type: str, parent_type: str) -> str | None:
        """Reason a child type cannot be placed under a parent type, or None."""
        if not self.has(child_type):
            return f"Unknown block type: {child_type}"
        if not self.can_contain(parent_type, child_type):
            if not self.constraints(parent_type).can_have_children:
                return f"Block type {parent_type} cannot have children"
            return f"Block type {parent_type} does not accept {child_type} children"
        if not self.can_be_placed_in(child_type, parent_type):
            if parent_type == ROOT:
                return f"Block type {child_type} cannot be placed at root level"
            return f"Block type {child_type} cannot be nested in {parent_type}"
        return None
