from __future__ import annotations
from typing import Any, Literal

from pydantic import BaseModel, Field

from ..utils.type_utils import JsonKind


InferredKind = Literal["object", "array", "string", "number", "boolean", "null", "unknown"]
ScopeVariableKind = Literal["loop-item", "loop-index"]


class InferredType(BaseModel):
    """
    Structural description of a value found in sample data.

    Objects list their property types, arrays carry an element type, every
    other kind is a leaf. "unknown" marks anything that could not be resolved.
    """
    kind: InferredKind = "unknown"
    properties: dict[str, InferredType] | None = None
    element_type: InferredType | None = None

    @classmethod
    def unknown(cls) -> InferredType:
        return cls(kind="unknown")

    @classmethod
    def primitive(cls, kind: Literal["string", "number", "boolean", "null"]) -> InferredType:
        return cls(kind=kind)

    @classmethod
    def array(cls, element_type: InferredType | None = None) -> InferredType:
        return cls(kind="array", element_type=element_type or cls.unknown())

    @classmethod
    def object(cls, properties: dict[str, InferredType] | None = None) -> InferredType:
        return cls(kind="object", properties=properties or {})

    @property
    def is_unknown(self) -> bool:
        return self.kind == "unknown"

    @property
    def is_primitive(self) -> bool:
        return self.kind in ("string", "number", "boolean", "null")


InferredType.model_rebuild()


class ScopeVariable(BaseModel):
    """A name introduced by an enclosing loop."""
    name: str
    kind: ScopeVariableKind
    array_path: str
    block_id: str | None = None


class PathInfo(BaseModel):
    path: str
    kind: JsonKind
    element_kind: JsonKind | Literal["unknown"] | None = None
    length: int | None = None


class MethodSuggestion(BaseModel):
    label: str
    type: Literal["method", "property"]
    signature: str
    detail: str


class CompletionItem(BaseModel):
    label: str
    type: Literal["variable", "property", "method"]
    detail: str | None = None
    info: str | None = None
    apply: str
    boost: int = 0


class PathAtCursor(BaseModel):
    path: list[str] = Field(default_factory=list)
    partial: str = ""


class CompletionResult(BaseModel):
    """Completions for the text before the cursor, replacing text[start:end]."""
    start: int
    end: int
    path: list[str]
    partial: str
    options: list[CompletionItem]


class EvaluationResult(BaseModel):
    success: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, value: Any) -> EvaluationResult:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> EvaluationResult:
        return cls(success=False, error=error)


class DataExample(BaseModel):
    """Named sample data for previewing a template."""
    id: str
    name: str
    data: dict[str, Any] = Field(default_factory=dict)
