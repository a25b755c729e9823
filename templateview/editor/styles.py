"""
Style cascade - the effective styles of a block.

Document styles and the styles of enclosing blocks pass only inheritable
keys down, the nearest ancestor winning. A block's own styles win over
everything and keep their non-inheritable keys:

    resolve_block_styles_with_ancestors(
        {"fontSize": "14px", "color": "#333333"},
        [{"fontSize": "2rem"}, {"color": "#111111"}],
        {"paddingTop": "8px"},
    )
    # {"fontSize": "2rem", "color": "#111111", "paddingTop": "8px"}
"""

from __future__ import annotations
from typing import Any, Iterable, Mapping

from .document import Document
from .types import DocumentStyles


Styles = dict[str, Any]

INHERITABLE_STYLE_KEYS: tuple[str, ...] = (
    "fontFamily",
    "fontSize",
    "fontWeight",
    "color",
    "lineHeight",
    "letterSpacing",
    "textAlign",
    "backgroundColor",
)


def _inheritable(styles: Mapping[str, Any] | None) -> Styles:
    if not styles:
        return {}
    return {key: value for key, value in styles.items() if key in INHERITABLE_STYLE_KEYS and value is not None}


def resolve_document_styles(document_styles: DocumentStyles | Mapping[str, Any] | None = None) -> Styles:
    """Wire-shaped copy of the document styles, unset keys left out."""
    if document_styles is None:
        return {}
    if isinstance(document_styles, DocumentStyles):
        return document_styles.model_dump(by_alias=True, exclude_none=True)
    return {key: value for key, value in document_styles.items() if value is not None}


def resolve_block_styles_with_ancestors(
    document_styles: DocumentStyles | Mapping[str, Any] | None,
    ancestor_styles: Iterable[Mapping[str, Any] | None],
    block_styles: Mapping[str, Any] | None = None,
) -> Styles:
    """
    Effective styles of a block.

    Args:
        document_styles: Template-level styles
        ancestor_styles: Styles of the enclosing blocks, outermost first
        block_styles: The block's own styles
    """
    resolved = _inheritable(resolve_document_styles(document_styles))
    for styles in ancestor_styles:
        resolved.update(_inheritable(styles))
    resolved.update(block_styles or {})
    return resolved


def resolve_block_styles(
    document_styles: DocumentStyles | Mapping[str, Any] | None = None,
    block_styles: Mapping[str, Any] | None = None,
) -> Styles:
    return resolve_block_styles_with_ancestors(document_styles, [], block_styles)


def block_styles_in(document: Document, block_id: str) -> Styles:
    """Effective styles of a block in a document; {} for an unknown block."""
    path = document.path_to(block_id)
    if not path:
        return {}
    *ancestors, block = path
    return resolve_block_styles_with_ancestors(
        document.document_styles,
        [ancestor.styles for ancestor in ancestors],
        block.styles,
    )
