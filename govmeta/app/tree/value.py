"""
Generic document tree.

A TreeValue is the deserialized, not-yet-interpreted content of a
document or a remote context: null, boolean, number, string, ordered
array or insertion-ordered object. Every variant is a frozen model with
a literal `kind` discriminator, so downstream code dispatches on an
explicit, closed set of shapes instead of probing raw Python values.

Trees are immutable once built. Resolver and normalizer only read them.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class _TreeBase(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class TreeNull(_TreeBase):
    kind: Literal["null"] = "null"

    def to_python(self) -> None:
        return None


class TreeBoolean(_TreeBase):
    kind: Literal["boolean"] = "boolean"
    value: bool

    def to_python(self) -> bool:
        return self.value


class TreeNumber(_TreeBase):
    kind: Literal["number"] = "number"
    value: Union[int, float]

    def to_python(self) -> Union[int, float]:
        return self.value


class TreeString(_TreeBase):
    kind: Literal["string"] = "string"
    value: str

    def to_python(self) -> str:
        return self.value


class TreeArray(_TreeBase):
    kind: Literal["array"] = "array"
    items: Tuple["TreeValue", ...] = ()

    def to_python(self) -> list:
        return [item.to_python() for item in self.items]


class TreeObject(_TreeBase):
    """
    String-keyed mapping. Key order is the order of the source document.
    """

    kind: Literal["object"] = "object"
    entries: Dict[str, "TreeValue"] = Field(default_factory=dict)

    def get(self, key: str) -> Optional["TreeValue"]:
        return self.entries.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def items(self):
        return self.entries.items()

    def keys(self):
        return self.entries.keys()

    def to_python(self) -> dict:
        return {key: value.to_python() for key, value in self.entries.items()}


TreeValue = Annotated[
    Union[TreeNull, TreeBoolean, TreeNumber, TreeString, TreeArray, TreeObject],
    Field(discriminator="kind"),
]

TreeArray.model_rebuild()
TreeObject.model_rebuild()


# ----------------------------------------------------------------------
# Construction from plain Python data
# ----------------------------------------------------------------------

def tree_from_python(data: Any) -> TreeValue:
    """
    Convert JSON-compatible Python data into a TreeValue.

    bool is checked before int because bool is an int subclass.
    Non-finite floats and non-string object keys are rejected with
    ValueError; the JSON grammar admits neither.
    """
    if data is None:
        return TreeNull()
    if isinstance(data, bool):
        return TreeBoolean(value=data)
    if isinstance(data, (int, float)):
        if isinstance(data, float) and not math.isfinite(data):
            raise ValueError(f"non-finite number {data!r} is not representable")
        return TreeNumber(value=data)
    if isinstance(data, str):
        return TreeString(value=data)
    if isinstance(data, (list, tuple)):
        return TreeArray(items=tuple(tree_from_python(item) for item in data))
    if isinstance(data, dict):
        entries: Dict[str, TreeValue] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                raise ValueError(f"object key {key!r} is not a string")
            entries[key] = tree_from_python(value)
        return TreeObject(entries=entries)
    raise ValueError(f"unsupported value of type {type(data).__name__}")
