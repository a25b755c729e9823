"""
Scope resolution - which loop variables a block can reference.

A block sees the item alias (and index alias, when set) of every loop it is
nested in, outermost first. A loop's own aliases are only visible to its
children, not to the loop's expression.

    loop(orders as "order") > loop(order.items as "item") > text
    scope_variables_at(document, "text")
    # [order, item]
"""

from __future__ import annotations
from typing import Any, Sequence

from ..editor.document import Document
from ..editor.types import LoopBlock
from .paths import MISSING, resolve_scope_variable_value
from .types import ScopeVariable


def loop_variables(loop: LoopBlock) -> list[ScopeVariable]:
    variables = [ScopeVariable(
        name=loop.item_alias,
        kind="loop-item",
        array_path=loop.expression.raw,
        block_id=loop.id,
    )]
    if loop.index_alias:
        variables.append(ScopeVariable(
            name=loop.index_alias,
            kind="loop-index",
            array_path=loop.expression.raw,
            block_id=loop.id,
        ))
    return variables


def scope_variables_at(document: Document, block_id: str) -> list[ScopeVariable]:
    """Loop variables visible at a block, outermost first. Unknown blocks have none."""
    variables: list[ScopeVariable] = []
    for ancestor in document.path_to(block_id)[:-1]:
        if isinstance(ancestor, LoopBlock):
            variables.extend(loop_variables(ancestor))
    return variables


def build_evaluation_context(data: Any, scope_vars: Sequence[ScopeVariable]) -> dict[str, Any]:
    """
    Sample data plus a sample value for every scope variable.

    Loop items take the first element of their array and loop indexes take 0,
    so a preview shows the first iteration. Inner variables overwrite outer
    ones with the same name.
    """
    context: dict[str, Any] = dict(data) if isinstance(data, dict) else {}
    for position, variable in enumerate(scope_vars):
        value = resolve_scope_variable_value(scope_vars, position, data)
        if value is not MISSING:
            context[variable.name] = value
    return context
