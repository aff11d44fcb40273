"""
Metadata client.

The sole entry point for loading governance metadata:

    client = MetadataClient()
    document = await client.load(Document, "https://example.org/metadata.jsonld")

Execution order of a load:
    1. retrieve bytes at the location (retriever)
    2. parse bytes into a tree (parser)
    3. extract and resolve the document's context
    4. normalize the document node
    5. project the node into the requested type

The first failure stops the load and is raised as a LoadError tagged
with the stage where it occurred; the original error is kept as its
cause. No stage retries.

The client holds no per-load state. Every load gets its own
ResolutionScope, so concurrent loads share nothing.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, List, Optional, Tuple, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from govmeta.app.config import ClientSettings, get_settings
from govmeta.app.context.resolver import ContextResolver, ResolutionScope
from govmeta.app.context.sources import CONTEXT_KEY, context_sources_from_tree
from govmeta.app.context.vocabulary import ResolvedVocabulary
from govmeta.app.errors import (
    ContextError,
    LoadError,
    LoadStage,
    MalformedInput,
    MalformedNode,
    NormalizationError,
    ProjectionError,
    RetrievalError,
)
from govmeta.app.events import (
    LoadEvent,
    LoadEventEmitter,
    LoadEventType,
    NullEventEmitter,
)
from govmeta.app.normalize.node import NormalizedNode
from govmeta.app.normalize.normalizer import NodeNormalizer
from govmeta.app.projection.contract import project
from govmeta.app.retrieval.retriever import DocumentRetriever, HttpDocumentRetriever
from govmeta.app.tree.parser import JsonTreeParser, TreeParser
from govmeta.app.tree.value import TreeArray, TreeObject, TreeValue

logger = logging.getLogger(__name__)


T = TypeVar("T")

GRAPH_KEY = "@graph"


class LoadResult(BaseModel, Generic[T]):
    """
    Outcome of try_load(). Never raised, always returned.
    """

    success: bool
    value: Optional[T] = None
    stage: Optional[LoadStage] = None
    error: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
    )


class MetadataClient:
    """
    Load typed governance metadata from linked-data documents.

    All collaborators are optional; the defaults fetch over HTTP with
    httpx and parse JSON.
    """

    def __init__(
        self,
        *,
        retriever: Optional[DocumentRetriever] = None,
        parser: Optional[TreeParser] = None,
        settings: Optional[ClientSettings] = None,
        emitter: Optional[LoadEventEmitter] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._retriever = retriever or HttpDocumentRetriever(settings=self._settings)
        self._parser = parser or JsonTreeParser()
        self._emitter = emitter or NullEventEmitter()
        self._resolver = ContextResolver(
            parser=self._parser,
            max_remote_contexts=self._settings.max_remote_contexts,
        )
        self._normalizer = NodeNormalizer(self._resolver, self._retriever)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def load(self, target_type: Type[T], location: str) -> T:
        """
        Load the document at location as target_type.

        Raises LoadError.
        """
        load_id = uuid4().hex
        await self._emit(load_id, LoadEventType.LOAD_STARTED, location=location)

        try:
            content = await self._retrieve(location)
            await self._emit(
                load_id,
                LoadEventType.DOCUMENT_RETRIEVED,
                location=location,
                size=len(content),
            )
            value = await self._run(target_type, content, location, load_id)
        except LoadError as exc:
            await self._fail(load_id, exc)
            raise

        await self._emit(load_id, LoadEventType.LOAD_COMPLETED, location=location)
        return value

    async def load_bytes(
        self,
        target_type: Type[T],
        content: bytes,
        location: Optional[str] = None,
    ) -> T:
        """
        Load already-retrieved document bytes as target_type.

        location, when given, is used to resolve relative context
        references and in error reports.
        """
        load_id = uuid4().hex
        await self._emit(load_id, LoadEventType.LOAD_STARTED, location=location)

        try:
            value = await self._run(target_type, content, location, load_id)
        except LoadError as exc:
            await self._fail(load_id, exc)
            raise

        await self._emit(load_id, LoadEventType.LOAD_COMPLETED, location=location)
        return value

    async def load_node(self, location: str) -> NormalizedNode:
        """
        Retrieve, resolve and normalize a document without projecting it.
        """
        load_id = uuid4().hex
        await self._emit(load_id, LoadEventType.LOAD_STARTED, location=location)

        try:
            content = await self._retrieve(location)
            await self._emit(
                load_id,
                LoadEventType.DOCUMENT_RETRIEVED,
                location=location,
                size=len(content),
            )
            node = await self._normalize(content, location, load_id)
        except LoadError as exc:
            await self._fail(load_id, exc)
            raise

        await self._emit(load_id, LoadEventType.LOAD_COMPLETED, location=location)
        return node

    async def try_load(self, target_type: Type[T], location: str) -> LoadResult[T]:
        """Like load(), but reports failure in the returned result."""
        try:
            value = await self.load(target_type, location)
        except LoadError as exc:
            return LoadResult(success=False, stage=exc.stage, error=str(exc.cause))
        return LoadResult(success=True, value=value)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(
        self,
        target_type: Type[T],
        content: bytes,
        location: Optional[str],
        load_id: str,
    ) -> T:
        node = await self._normalize(content, location, load_id)

        try:
            value = project(target_type, node)
        except ProjectionError as exc:
            raise LoadError(LoadStage.PROJECTION, exc, location) from exc

        type_name = getattr(target_type, "__name__", str(target_type))
        await self._emit(
            load_id,
            LoadEventType.PROJECTION_COMPLETED,
            target_type=type_name,
        )
        logger.info("load: %s projected as %s", location or "<bytes>", type_name)
        return value

    async def _retrieve(self, location: str) -> bytes:
        try:
            return await self._retriever.fetch(location)
        except RetrievalError as exc:
            raise LoadError(LoadStage.RETRIEVAL, exc, location) from exc

    async def _normalize(
        self,
        content: bytes,
        location: Optional[str],
        load_id: str,
    ) -> NormalizedNode:
        try:
            tree = self._parser.parse(content)
        except MalformedInput as exc:
            raise LoadError(LoadStage.PARSE, exc, location) from exc

        scope = self._resolver.new_scope()

        try:
            document = _first_node(tree)
            document, vocabulary = await self._document_vocabulary(
                tree, document, location, scope
            )
        except ContextError as exc:
            raise LoadError(LoadStage.CONTEXT, exc, location) from exc
        except MalformedNode as exc:
            raise LoadError(LoadStage.NORMALIZATION, exc, location) from exc

        reported: List[str] = []
        await self._report_fetched(load_id, scope, reported)
        await self._emit(
            load_id,
            LoadEventType.CONTEXT_RESOLVED,
            terms=len(vocabulary.terms),
            remote_contexts=scope.fetched,
        )

        try:
            node = await self._normalizer.normalize(
                document,
                vocabulary,
                scope=scope,
                base_url=location,
            )
        except ContextError as exc:
            raise LoadError(LoadStage.CONTEXT, exc, location) from exc
        except NormalizationError as exc:
            raise LoadError(LoadStage.NORMALIZATION, exc, location) from exc

        # Embedded and scoped contexts are only fetched during normalization
        await self._report_fetched(load_id, scope, reported)
        await self._emit(
            load_id,
            LoadEventType.NODE_NORMALIZED,
            attributes=len(node.attributes),
            type_tags=sorted(node.type_tags),
        )
        return node

    async def _document_vocabulary(
        self,
        tree: TreeValue,
        document: TreeObject,
        location: Optional[str],
        scope: ResolutionScope,
    ) -> Tuple[TreeObject, ResolvedVocabulary]:
        """
        Extract and resolve the contexts that apply to the document node:
        the @context of an enclosing @graph object, then the node's own
        @context. Returns the node without its @context entry.

        Contexts of nested nodes are left to the normalizer.
        """
        vocabulary = ResolvedVocabulary()
        declarations = []
        if document is not tree and isinstance(tree, TreeObject) and CONTEXT_KEY in tree:
            declarations.append(tree.get(CONTEXT_KEY))
        if CONTEXT_KEY in document:
            declarations.append(document.get(CONTEXT_KEY))

        for declaration in declarations:
            vocabulary = await self._resolver.resolve(
                context_sources_from_tree(declaration, location),
                self._retriever,
                base_vocabulary=vocabulary,
                base_url=location,
                scope=scope,
            )

        if CONTEXT_KEY in document:
            document = TreeObject(
                entries={
                    key: value
                    for key, value in document.items()
                    if key != CONTEXT_KEY
                }
            )
        return document, vocabulary

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def _report_fetched(
        self,
        load_id: str,
        scope: ResolutionScope,
        reported: List[str],
    ) -> None:
        for location in scope.fetched:
            if location in reported:
                continue
            reported.append(location)
            await self._emit(load_id, LoadEventType.CONTEXT_FETCHED, location=location)

    async def _fail(self, load_id: str, exc: LoadError) -> None:
        logger.warning("load: %s failed during %s: %s", exc.location, exc.stage.value, exc.cause)
        await self._emit(
            load_id,
            LoadEventType.LOAD_FAILED,
            location=exc.location,
            stage=exc.stage.value,
            error=type(exc.cause).__name__,
        )

    async def _emit(self, load_id: str, event_type: LoadEventType, **details: Any) -> None:
        try:
            await self._emitter.emit(
                LoadEvent(load_id=load_id, event_type=event_type, details=details or None)
            )
        except Exception as exc:
            # Emission failures are logged, never raised
            logger.warning("load: event emission failed: %s", exc)


def _first_node(tree: TreeValue) -> TreeObject:
    """
    The node a document describes.

    A top-level array or a @graph object yields its first node.
    """
    if isinstance(tree, TreeObject) and GRAPH_KEY in tree:
        graph = tree.get(GRAPH_KEY)
        candidates = graph.items if isinstance(graph, TreeArray) else (graph,)
    elif isinstance(tree, TreeArray):
        candidates = tree.items
    else:
        candidates = (tree,)

    if not candidates:
        raise MalformedNode("no nodes in document")

    first = candidates[0]
    if not isinstance(first, TreeObject):
        raise MalformedNode(f"object in document isn't a node ({first.kind})")
    return first
