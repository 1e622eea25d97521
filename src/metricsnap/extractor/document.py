"""Nested status documents and key-path lookup."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence, Union

from ..errors import KeyNotFound, ParseError, TypeMismatch


@dataclass(frozen=True)
class Scalar:
    """A leaf value."""

    value: Any


@dataclass(frozen=True)
class MapNode:
    """An interior node keyed by string."""

    children: Mapping[str, "Node"] = field(default_factory=dict)


Node = Union[MapNode, Scalar]


def _convert(obj: Any) -> Node:
    if isinstance(obj, Mapping):
        return MapNode({str(k): _convert(v) for k, v in obj.items()})
    return Scalar(obj)


def to_document(obj: Any) -> MapNode:
    """Build a tagged document from nested mappings.

    Raises :class:`ParseError` if *obj* is not a mapping at the top level.
    """
    if not isinstance(obj, Mapping):
        raise ParseError(f"status document must be a mapping, got {type(obj).__name__}")
    return MapNode({str(k): _convert(v) for k, v in obj.items()})


def to_float(value: Any, key: str = "") -> float:
    """Coerce a leaf value to float.

    Numbers convert directly, booleans are rejected, anything else goes
    through its string form.  NaN and infinities are rejected.
    """
    if isinstance(value, bool):
        raise ParseError(f"boolean value {value!r} is not a number", field=key or None)
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        try:
            result = float(str(value).strip())
        except ValueError as exc:
            raise ParseError(f"value {value!r} is not a number", field=key or None) from exc
    if not math.isfinite(result):
        raise ParseError(f"value {value!r} is not finite", field=key or None)
    return result


def resolve_path(document: Node, keys: Sequence[str]) -> float:
    """Walk *document* along *keys* and return the leaf as a float.

    Raises :class:`KeyNotFound` when a key is absent, :class:`TypeMismatch`
    when a key has to be looked up in a scalar or the final node is a map,
    and :class:`ParseError` when the leaf is not numeric.
    """
    if not keys:
        raise ValueError("empty key path")
    node = document
    for key in keys:
        if not isinstance(node, MapNode):
            raise TypeMismatch(key)
        if key not in node.children:
            raise KeyNotFound(key)
        node = node.children[key]
    if isinstance(node, MapNode):
        raise TypeMismatch(keys[-1])
    return to_float(node.value, keys[-1])
