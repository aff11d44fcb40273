"""
Node normalization.

Walks a document tree together with its resolved vocabulary and
produces a NormalizedNode whose attribute keys are fully-qualified
meanings.

Term lookup order for a key:

1. a term defined in the active vocabulary
2. an absolute IRI, or a compact IRI whose prefix is a defined term
3. the default vocabulary (@vocab) + term
4. otherwise UnmappableTerm; undefined terms are never dropped

Embedded `@context` entries and term-scoped contexts are resolved on the
way down and merged over the inherited vocabulary with the same
override rule as the resolver.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Optional, Set

from govmeta.app.context.resolver import ContextResolver, ResolutionScope
from govmeta.app.context.sources import CONTEXT_KEY, context_sources_from_tree
from govmeta.app.context.vocabulary import ResolvedVocabulary, TermDefinition
from govmeta.app.errors import MalformedNode, UnmappableTerm
from govmeta.app.normalize.node import LiteralValue, NormalizedNode
from govmeta.app.retrieval.retriever import DocumentRetriever
from govmeta.app.tree.value import (
    TreeArray,
    TreeBoolean,
    TreeNull,
    TreeNumber,
    TreeObject,
    TreeString,
    TreeValue,
)

logger = logging.getLogger(__name__)


ID_KEY = "@id"
TYPE_KEY = "@type"
VALUE_KEY = "@value"

VALUE_OBJECT_KEYS = frozenset({VALUE_KEY, "@language", TYPE_KEY, "@direction"})


class NodeNormalizer:
    """
    Produce NormalizedNodes from document trees.

    The resolver and retriever are only used when a node carries its own
    `@context` or a term has a scoped context.
    """

    def __init__(
        self,
        resolver: ContextResolver,
        retriever: DocumentRetriever,
    ) -> None:
        self._resolver = resolver
        self._retriever = retriever

    async def normalize(
        self,
        tree: TreeValue,
        vocabulary: ResolvedVocabulary,
        *,
        scope: Optional[ResolutionScope] = None,
        base_url: Optional[str] = None,
    ) -> NormalizedNode:
        """
        Normalize an object-shaped tree.

        A `@context` on the tree itself is applied on top of vocabulary.
        Raises UnmappableTerm or MalformedNode, or a ContextError while
        resolving an embedded context.
        """
        if not isinstance(tree, TreeObject):
            raise MalformedNode(f"expected an object, got {tree.kind}", "$")
        if VALUE_KEY in tree:
            raise MalformedNode("a value object cannot be a document node", "$")

        scope = scope if scope is not None else self._resolver.new_scope()
        return await self._node(tree, vocabulary, "$", scope, base_url)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def _node(
        self,
        tree: TreeObject,
        vocabulary: ResolvedVocabulary,
        path: str,
        scope: ResolutionScope,
        base_url: Optional[str],
    ) -> NormalizedNode:
        embedded = tree.get(CONTEXT_KEY)
        if embedded is not None:
            vocabulary = await self._resolver.resolve(
                context_sources_from_tree(embedded, base_url),
                self._retriever,
                base_vocabulary=vocabulary,
                base_url=base_url,
                scope=scope,
            )

        identity: Optional[str] = None
        type_tags: Set[str] = set()
        attributes: Dict[str, Any] = {}

        for key, value in tree.items():
            if key == CONTEXT_KEY:
                continue

            keyword = _keyword(key, vocabulary)
            if keyword == ID_KEY:
                identity = self._identity(value, f"{path}.{key}")
                continue
            if keyword == TYPE_KEY:
                type_tags |= self._type_tags(value, vocabulary, f"{path}.{key}")
                continue
            if key.startswith("@"):
                raise MalformedNode(f"unsupported keyword '{key}'", path)

            definition = vocabulary.lookup(key)
            if definition is not None and definition.iri is None:
                logger.debug("normalize: %s.%s is mapped to null, dropped", path, key)
                continue

            meaning = vocabulary.meaning_of(key)
            if meaning is None:
                raise UnmappableTerm(key, path)

            normalized = await self._attribute(
                value, definition, vocabulary, f"{path}.{key}", scope, base_url
            )
            if normalized is None:
                continue

            if meaning in attributes:
                attributes[meaning] = _as_tuple(attributes[meaning]) + _as_tuple(normalized)
            else:
                attributes[meaning] = normalized

        return NormalizedNode(
            identity=identity,
            type_tags=frozenset(type_tags),
            attributes=attributes,
        )

    def _identity(self, value: TreeValue, path: str) -> str:
        if not isinstance(value, TreeString):
            raise MalformedNode(f"@id must be a string, got {value.kind}", path)
        return value.value

    def _type_tags(
        self,
        value: TreeValue,
        vocabulary: ResolvedVocabulary,
        path: str,
    ) -> FrozenSet[str]:
        if isinstance(value, TreeString):
            raw = [value]
        elif isinstance(value, TreeArray):
            raw = list(value.items)
        else:
            raise MalformedNode(f"@type must be a string or array of strings, got {value.kind}", path)

        tags = set()
        for index, item in enumerate(raw):
            if not isinstance(item, TreeString):
                raise MalformedNode(f"@type entry must be a string, got {item.kind}", f"{path}[{index}]")
            # Type names without a mapping are kept as written.
            tags.add(vocabulary.meaning_of(item.value) or item.value)
        return frozenset(tags)

    # ------------------------------------------------------------------
    # Attribute values
    # ------------------------------------------------------------------

    async def _attribute(
        self,
        value: TreeValue,
        definition: Optional[TermDefinition],
        vocabulary: ResolvedVocabulary,
        path: str,
        scope: ResolutionScope,
        base_url: Optional[str],
    ) -> Any:
        if definition is not None and definition.scoped_context is not None:
            vocabulary = await self._resolver.resolve(
                definition.scoped_context,
                self._retriever,
                base_vocabulary=vocabulary,
                base_url=definition.source_location or base_url,
                scope=scope,
            )

        if isinstance(value, TreeNull):
            return None

        if isinstance(value, TreeArray):
            items = []
            for index, item in enumerate(value.items):
                if isinstance(item, TreeNull):
                    continue
                if isinstance(item, TreeArray):
                    raise MalformedNode("arrays of arrays are not supported", f"{path}[{index}]")
                normalized = await self._item(
                    item, definition, vocabulary, f"{path}[{index}]", scope, base_url
                )
                if normalized is not None:
                    items.append(normalized)
            return tuple(items)

        normalized = await self._item(value, definition, vocabulary, path, scope, base_url)
        if normalized is not None and definition is not None and definition.is_list:
            return (normalized,)
        return normalized

    async def _item(
        self,
        value: TreeValue,
        definition: Optional[TermDefinition],
        vocabulary: ResolvedVocabulary,
        path: str,
        scope: ResolutionScope,
        base_url: Optional[str],
    ) -> Any:
        type_mapping = definition.type_mapping if definition is not None else None

        if isinstance(value, TreeObject):
            if VALUE_KEY in value:
                return self._value_object(value, vocabulary, path)
            return await self._node(value, vocabulary, path, scope, base_url)

        if isinstance(value, TreeString):
            if type_mapping == "@id":
                return NormalizedNode(identity=value.value)
            if type_mapping == "@vocab":
                return NormalizedNode(identity=vocabulary.meaning_of(value.value) or value.value)
            if type_mapping is not None:
                return LiteralValue(value=value.value, datatype=type_mapping)
            return value.value

        if isinstance(value, (TreeNumber, TreeBoolean)):
            if type_mapping is not None and type_mapping not in ("@id", "@vocab"):
                return LiteralValue(value=value.value, datatype=type_mapping)
            return value.value

        raise MalformedNode(f"unexpected {value.kind} value", path)

    def _value_object(
        self,
        value: TreeObject,
        vocabulary: ResolvedVocabulary,
        path: str,
    ) -> Any:
        unknown = [key for key in value.keys() if key not in VALUE_OBJECT_KEYS]
        if unknown:
            raise MalformedNode(f"unsupported entries {sorted(unknown)} in value object", path)

        raw = value.get(VALUE_KEY)
        if isinstance(raw, TreeNull):
            return None
        if not isinstance(raw, (TreeString, TreeNumber, TreeBoolean)):
            raise MalformedNode(f"@value must be a scalar, got {raw.kind}", path)

        language = value.get("@language")
        if language is not None and not isinstance(language, TreeString):
            raise MalformedNode("@language must be a string", path)

        datatype = value.get(TYPE_KEY)
        if datatype is not None and not isinstance(datatype, TreeString):
            raise MalformedNode("@type of a value object must be a string", path)

        if language is None and datatype is None:
            return raw.value

        return LiteralValue(
            value=raw.value,
            language=language.value if language is not None else None,
            datatype=(
                vocabulary.meaning_of(datatype.value) or datatype.value
                if datatype is not None
                else None
            ),
        )


def _keyword(key: str, vocabulary: ResolvedVocabulary) -> Optional[str]:
    """The keyword a key stands for, directly or through an alias."""
    if key in (ID_KEY, TYPE_KEY):
        return key
    definition = vocabulary.lookup(key)
    if definition is not None and definition.is_keyword_alias:
        return definition.iri
    return None


def _as_tuple(value: Any) -> tuple:
    return value if isinstance(value, tuple) else (value,)
