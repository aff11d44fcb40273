"""
Context sources.

A document's `@context` entry is one of:

- an inline mapping of terms to meanings
- a remote reference (a location string)
- an array combining several of the above, later entries overriding
  earlier ones
- null, which discards everything accumulated so far

context_sources_from_tree() turns the raw tree found under `@context`
into typed sources. It only checks shape; term definitions are
interpreted by the resolver.
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from govmeta.app.errors import MalformedContext
from govmeta.app.tree.value import (
    TreeArray,
    TreeNull,
    TreeObject,
    TreeString,
    TreeValue,
)


CONTEXT_KEY = "@context"


class _SourceBase(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class InlineContext(_SourceBase):
    """Term definitions declared directly in a document."""

    kind: Literal["inline"] = "inline"
    definitions: TreeObject


class RemoteContext(_SourceBase):
    """A context document to retrieve and resolve recursively."""

    kind: Literal["remote"] = "remote"
    location: str = Field(..., min_length=1)


class NullContext(_SourceBase):
    """Resets the vocabulary accumulated by preceding sources."""

    kind: Literal["null"] = "null"


class NestedContext(_SourceBase):
    """An ordered group of sources; later sources override earlier ones."""

    kind: Literal["nested"] = "nested"
    sources: Tuple["ContextSource", ...] = ()


ContextSource = Annotated[
    Union[InlineContext, RemoteContext, NullContext, NestedContext],
    Field(discriminator="kind"),
]

NestedContext.model_rebuild()


def context_sources_from_tree(
    value: TreeValue,
    location: Optional[str] = None,
) -> List[ContextSource]:
    """
    Convert the value of a `@context` entry into an ordered list of
    sources.

    location identifies the document the value came from and is only
    used in error messages.
    """
    if isinstance(value, TreeArray):
        return [_single_source(item, location, nested=True) for item in value.items]
    return [_single_source(value, location, nested=False)]


def _single_source(value: TreeValue, location: Optional[str], *, nested: bool) -> ContextSource:
    if isinstance(value, TreeObject):
        return InlineContext(definitions=value)
    if isinstance(value, TreeString):
        if not value.value:
            raise MalformedContext("remote context reference is empty", location)
        return RemoteContext(location=value.value)
    if isinstance(value, TreeNull):
        return NullContext()
    if isinstance(value, TreeArray) and nested:
        return NestedContext(
            sources=tuple(_single_source(item, location, nested=True) for item in value.items)
        )
    raise MalformedContext(
        f"context entry must be an object, string, array or null, got {value.kind}",
        location,
    )

