"""
govmeta: linked-data governance metadata resolution.
"""

from govmeta.app.client import LoadResult, MetadataClient
from govmeta.app.errors import (
    CyclicContextReference,
    GovMetaError,
    LoadError,
    LoadStage,
    MalformedContext,
    MalformedInput,
    MalformedNode,
    ProjectionError,
    RetrievalError,
    UnmappableTerm,
    UnreachableContext,
)
from govmeta.app.normalize import NormalizedNode
from govmeta.app.projection import Projectable

__all__ = [
    "LoadResult",
    "MetadataClient",
    "CyclicContextReference",
    "GovMetaError",
    "LoadError",
    "LoadStage",
    "MalformedContext",
    "MalformedInput",
    "MalformedNode",
    "ProjectionError",
    "RetrievalError",
    "UnmappableTerm",
    "UnreachableContext",
    "NormalizedNode",
    "Projectable",
]
