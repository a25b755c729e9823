from typing import Any, Literal


JsonKind = Literal["object", "array", "string", "number", "boolean", "null"]


KIND_REGISTRY: dict[str, tuple[type, ...]] = {
    "boolean": (bool,),
    "number": (int, float),
    "string": (str,),
    "array": (list, tuple),
    "object": (dict,),
}


class UnknownKind(Exception):
    pass


def json_kind(value: Any) -> JsonKind:
    """
    Classify a JSON-shaped value.

    bool is checked before number since bool is a subclass of int.
    """
    if value is None:
        return "null"
    for kind, types in KIND_REGISTRY.items():
        if isinstance(value, types):
            return kind  # type: ignore[return-value]
    raise UnknownKind(f"Unknown kind for value of type: {type(value).__name__}")


def json_kind_or_none(value: Any) -> JsonKind | None:
    try:
        return json_kind(value)
    except UnknownKind:
        return None
