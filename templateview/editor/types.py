"""
Template types - the block tree and template-level metadata.

Blocks are a closed, tagged set of shapes discriminated by ``type``:

    text, container, conditional, loop, columns, table,
    pagebreak, pageheader, pagefooter

Each shape is its own model; consumers dispatch on ``type`` through the
BlockRegistry instead of an inheritance chain. Field names are snake_case in
Python and camelCase on the wire, so a Template round-trips through JSON:

    template = Template.model_validate(json.loads(payload))
    payload = template.model_dump_json(by_alias=True, exclude_none=True)
"""

from __future__ import annotations
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ExpressionLanguage = Literal["jsonata", "javascript"]

BlockType = Literal[
    "text",
    "container",
    "conditional",
    "loop",
    "columns",
    "table",
    "pagebreak",
    "pageheader",
    "pagefooter",
]

BUILTIN_BLOCK_TYPES: frozenset[str] = frozenset(BlockType.__args__)  # type: ignore[attr-defined]

# Pseudo block type used by constraints to name the document root
ROOT = "root"


class EditorModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        """Serialize to the wire shape (camelCase, no unset optionals)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Expression(EditorModel):
    raw: str = ""
    language: ExpressionLanguage = "jsonata"


# =========================================================================
# Blocks
# =========================================================================


class _BlockFields(EditorModel):
    id: str
    styles: dict[str, Any] | None = None


class TextBlock(_BlockFields):
    type: Literal["text"] = "text"
    content: dict[str, Any] | None = None


class ContainerBlock(_BlockFields):
    type: Literal["container"] = "container"
    children: list[Block] = Field(default_factory=list)


class ConditionalBlock(_BlockFields):
    """Renders children when the condition holds (or fails, when ``inverse``)."""
    type: Literal["conditional"] = "conditional"
    condition: Expression = Field(default_factory=Expression)
    inverse: bool = False
    children: list[Block] = Field(default_factory=list)


class LoopBlock(_BlockFields):
    """Repeats children once per element of the array expression."""
    type: Literal["loop"] = "loop"
    expression: Expression = Field(default_factory=Expression)
    item_alias: str = "item"
    index_alias: str | None = None
    children: list[Block] = Field(default_factory=list)


class Column(EditorModel):
    id: str
    size: int | float = 1
    children: list[Block] = Field(default_factory=list)


class ColumnsBlock(_BlockFields):
    type: Literal["columns"] = "columns"
    columns: list[Column] = Field(default_factory=list)
    gap: int | float = 16


class TableCell(EditorModel):
    id: str
    children: list[Block] = Field(default_factory=list)
    colspan: int | None = None
    rowspan: int | None = None
    styles: dict[str, Any] | None = None


class TableRow(EditorModel):
    id: str
    cells: list[TableCell] = Field(default_factory=list)
    is_header: bool = False


class TableBlock(_BlockFields):
    type: Literal["table"] = "table"
    rows: list[TableRow] = Field(default_factory=list)
    column_widths: list[int | float] | None = None
    border_style: Literal["none", "all", "horizontal", "vertical"] = "all"


class PageBreakBlock(_BlockFields):
    type: Literal["pagebreak"] = "pagebreak"


class PageHeaderBlock(_BlockFields):
    type: Literal["pageheader"] = "pageheader"
    children: list[Block] = Field(default_factory=list)


class PageFooterBlock(_BlockFields):
    type: Literal["pagefooter"] = "pagefooter"
    children: list[Block] = Field(default_factory=list)


Block = Annotated[
    Union[
        TextBlock,
        ContainerBlock,
        ConditionalBlock,
        LoopBlock,
        ColumnsBlock,
        TableBlock,
        PageBreakBlock,
        PageHeaderBlock,
        PageFooterBlock,
    ],
    Field(discriminator="type"),
]


# =========================================================================
# Template
# =========================================================================


class Margins(EditorModel):
    top: int | float = 20
    right: int | float = 20
    bottom: int | float = 20
    left: int | float = 20


class PageSettings(EditorModel):
    format: Literal["A4", "Letter", "Custom"] = "A4"
    orientation: Literal["portrait", "landscape"] = "portrait"
    margins: Margins = Field(default_factory=Margins)


class DocumentStyles(EditorModel):
    """Document-level styles that cascade to child blocks."""
    font_family: str | None = None
    font_size: str | None = None
    font_weight: str | None = None
    color: str | None = None
    line_height: str | None = None
    letter_spacing: str | None = None
    text_align: Literal["left", "center", "right", "justify"] | None = None
    background_color: str | None = None


class Template(EditorModel):
    id: str
    name: str = "Untitled"
    theme_id: str | None = None
    page_settings: PageSettings = Field(default_factory=PageSettings)
    document_styles: DocumentStyles = Field(default_factory=DocumentStyles)
    blocks: list[Block] = Field(default_factory=list)
    version: int = 1


class ThemeSummary(EditorModel):
    """A theme the template can point at through ``themeId``."""
    id: str
    name: str
    description: str | None = None


# =========================================================================
# Data contract
# =========================================================================


SchemaFieldType = Literal["string", "number", "integer", "boolean", "array", "object"]


class JsonSchemaProperty(EditorModel):
    type: SchemaFieldType
    description: str | None = None
    items: JsonSchemaProperty | None = None
    properties: dict[str, JsonSchemaProperty] | None = None
    required: list[str] | None = None


class JsonSchema(EditorModel):
    """JSON Schema subset describing the data a template is rendered with."""
    type: Literal["object"] = "object"
    properties: dict[str, JsonSchemaProperty] | None = None
    required: list[str] | None = None


for _model in (ContainerBlock, ConditionalBlock, LoopBlock, Column, ColumnsBlock,
               TableCell, TableRow, TableBlock, PageHeaderBlock, PageFooterBlock, Template,
               JsonSchemaProperty, JsonSchema):
    _model.model_rebuild()


BLOCK_MODELS: dict[str, type[BaseModel]] = {
    "text": TextBlock,
    "container": ContainerBlock,
    "conditional": ConditionalBlock,
    "loop": LoopBlock,
    "columns": ColumnsBlock,
    "table": TableBlock,
    "pagebreak": PageBreakBlock,
    "pageheader": PageHeaderBlock,
    "pagefooter": PageFooterBlock,
}


def load_block(data: dict[str, Any]) -> Block:
    """Build a block from its wire shape, dispatching on ``type``."""
    block_type = data.get("type")
    model = BLOCK_MODELS.get(block_type)  # type: ignore[arg-type]
    if model is None:
        raise ValueError(f"Unknown block type: {block_type!r}")
    return model.model_validate(data)  # type: ignore[return-value]
