from .sources import (
    ContextSource,
    InlineContext,
    NestedContext,
    NullContext,
    RemoteContext,
    context_sources_from_tree,
)
from .vocabulary import ResolvedVocabulary, TermDefinition
from .resolver import ContextResolver, ResolutionScope

__all__ = [
    "ContextSource",
    "InlineContext",
    "NestedContext",
    "NullContext",
    "RemoteContext",
    "context_sources_from_tree",
    "ResolvedVocabulary",
    "TermDefinition",
    "ContextResolver",
    "ResolutionScope",
]
