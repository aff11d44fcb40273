"""
Normalized nodes.

A NormalizedNode is a document node whose attribute keys are all
fully-qualified meanings. It is the only artifact handed to typed
projection.

Attribute values are one of:

- a scalar (str, int, float, bool)
- a LiteralValue (a scalar carrying a language or datatype)
- a nested NormalizedNode
- a tuple of the above, in document order
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class LiteralValue(BaseModel):
    value: Any
    language: Optional[str] = None
    datatype: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def __str__(self) -> str:
        return str(self.value)


class NormalizedNode(BaseModel):
    identity: Optional[str] = Field(
        None,
        description="Node identifier (@id), opaque",
    )

    type_tags: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Fully-qualified type IRIs (@type)",
    )

    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        description="Fully-qualified meaning -> value",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def has(self, meaning: str) -> bool:
        return meaning in self.attributes

    def get_all(self, meaning: str) -> List[Any]:
        """All values of an attribute, as a list (empty if absent)."""
        value = self.attributes.get(meaning)
        if value is None:
            return []
        if isinstance(value, tuple):
            return list(value)
        return [value]

    def get_one(self, meaning: str) -> Optional[Any]:
        """The first value of an attribute, or None if absent."""
        values = self.get_all(meaning)
        return values[0] if values else None

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def equivalent(self, other: "NormalizedNode") -> bool:
        """
        Equality of meaning: like ==, but the order of values within a
        sequence is ignored.
        """
        return _canonical(self) == _canonical(other)


def _canonical(value: Any) -> Tuple:
    if isinstance(value, NormalizedNode):
        return (
            "node",
            value.identity,
            tuple(sorted(value.type_tags)),
            tuple(
                (meaning, _canonical(value.attributes[meaning]))
                for meaning in sorted(value.attributes)
            ),
        )
    if isinstance(value, tuple):
        return ("seq", tuple(sorted((_canonical(item) for item in value), key=repr)))
    if isinstance(value, LiteralValue):
        return ("literal", type(value.value).__name__, value.value, value.language, value.datatype)
    return ("scalar", type(value).__name__, value)
