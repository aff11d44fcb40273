"""
Context resolution.

Merges context sources into a single ResolvedVocabulary:

- sources are applied left to right; a later definition of a term
  replaces an earlier one as a whole (the same applies to @vocab)
- nested sources are applied recursively with the same rule
- remote references are fetched through the injected retriever, parsed
  through the tree parser, and their own `@context` is applied in place

Remote reference cycles are detected with an explicit in-progress set
held by a ResolutionScope. A scope belongs to exactly one top-level load
and is never shared between loads.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence, Union
from urllib.parse import urljoin

from govmeta.app.context.sources import (
    CONTEXT_KEY,
    ContextSource,
    InlineContext,
    NestedContext,
    NullContext,
    RemoteContext,
    context_sources_from_tree,
)
from govmeta.app.context.vocabulary import (
    KEYWORD_ALIASES,
    ResolvedVocabulary,
    TermDefinition,
    expand_iri,
)
from govmeta.app.errors import (
    CyclicContextReference,
    MalformedContext,
    MalformedInput,
    RetrievalError,
    UnreachableContext,
)
from govmeta.app.retrieval.retriever import DocumentRetriever
from govmeta.app.tree.parser import JsonTreeParser, TreeParser
from govmeta.app.tree.value import (
    TreeArray,
    TreeNull,
    TreeNumber,
    TreeObject,
    TreeString,
    TreeValue,
)

logger = logging.getLogger(__name__)


DEFAULT_MAX_REMOTE_CONTEXTS = 32

# Context-level keywords that never become terms.
CONTEXT_KEYWORDS = frozenset(
    {"@vocab", "@base", "@version", "@language", "@direction", "@protected", "@propagate"}
)

# Keys accepted inside an expanded term definition.
TERM_DEFINITION_KEYS = frozenset(
    {"@id", "@container", "@type", "@context", "@language", "@direction", "@protected", "@prefix"}
)

CONTAINERS = frozenset({"@set", "@list"})


# ----------------------------------------------------------------------
# Per-load resolution state
# ----------------------------------------------------------------------

class ResolutionScope:
    """
    Mutable state of one top-level load.

    - in-progress remote references, in the order they were entered
    - parsed remote context documents, so a location referenced by
      several siblings is fetched once
    """

    def __init__(self, max_remote_contexts: int = DEFAULT_MAX_REMOTE_CONTEXTS) -> None:
        self.max_remote_contexts = max_remote_contexts
        self._in_progress: List[str] = []
        self._documents: Dict[str, TreeValue] = {}

    @property
    def fetched(self) -> List[str]:
        """Remote context locations dereferenced so far."""
        return list(self._documents)

    @property
    def in_progress(self) -> List[str]:
        return list(self._in_progress)

    @contextmanager
    def entering(self, location: str) -> Iterator[None]:
        """
        Mark a remote reference as in progress for the duration of the
        block. Entering a location that is already in progress is a
        cycle.
        """
        if location in self._in_progress:
            raise CyclicContextReference(location, self._in_progress + [location])
        self._in_progress.append(location)
        try:
            yield
        finally:
            self._in_progress.pop()

    def cached(self, location: str) -> Optional[TreeValue]:
        return self._documents.get(location)

    def remember(self, location: str, document: TreeValue) -> None:
        if len(self._documents) >= self.max_remote_contexts:
            raise MalformedContext(
                f"more than {self.max_remote_contexts} remote contexts referenced",
                location,
            )
        self._documents[location] = document


# ----------------------------------------------------------------------
# Mutable accumulator used while applying sources
# ----------------------------------------------------------------------

class _VocabularyBuilder:
    def __init__(self, start: Optional[ResolvedVocabulary]) -> None:
        self.terms: Dict[str, TermDefinition] = dict(start.terms) if start else {}
        self.vocab: Optional[str] = start.vocab if start else None
        self.was_reset = False

    def reset(self) -> None:
        self.terms = {}
        self.vocab = None
        self.was_reset = True

    def define(self, term: str, definition: TermDefinition) -> None:
        previous = self.terms.get(term)
        if previous is not None and previous != definition:
            logger.debug(
                "context: term %s redefined %s -> %s",
                term,
                previous.iri,
                definition.iri,
            )
        self.terms[term] = definition

    def build(self) -> ResolvedVocabulary:
        return ResolvedVocabulary(terms=dict(self.terms), vocab=self.vocab)

    def absorb(self, child: "_VocabularyBuilder") -> None:
        """
        Take over the state of a nested group resolved from this one.

        A reset inside the group only discards what the group saw, so
        its result is overlaid on the terms held here.
        """
        result = child.build()
        if child.was_reset:
            result = self.build().merged_with(result)
        self.terms = dict(result.terms)
        self.vocab = result.vocab


# ----------------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------------

class ContextResolver:
    """
    Resolve context sources into a ResolvedVocabulary.

    The resolver itself is stateless; all per-load state lives in the
    ResolutionScope passed to resolve().
    """

    def __init__(
        self,
        *,
        parser: Optional[TreeParser] = None,
        max_remote_contexts: int = DEFAULT_MAX_REMOTE_CONTEXTS,
    ) -> None:
        self._parser = parser or JsonTreeParser()
        self._max_remote_contexts = max_remote_contexts

    def new_scope(self) -> ResolutionScope:
        return ResolutionScope(max_remote_contexts=self._max_remote_contexts)

    async def resolve(
        self,
        sources: Union[ContextSource, Sequence[ContextSource]],
        retriever: DocumentRetriever,
        *,
        base_vocabulary: Optional[ResolvedVocabulary] = None,
        base_url: Optional[str] = None,
        scope: Optional[ResolutionScope] = None,
    ) -> ResolvedVocabulary:
        """
        Apply sources, in order, on top of base_vocabulary.

        base_url is the location of the document the sources came from;
        relative remote references are resolved against it.

        Raises UnreachableContext, CyclicContextReference or
        MalformedContext.
        """
        if isinstance(sources, (InlineContext, RemoteContext, NullContext, NestedContext)):
            sources = [sources]

        scope = scope if scope is not None else self.new_scope()
        builder = _VocabularyBuilder(base_vocabulary)

        for source in sources:
            await self._apply(source, builder, retriever, base_url, scope)

        return builder.build()

    async def _apply(
        self,
        source: ContextSource,
        builder: _VocabularyBuilder,
        retriever: DocumentRetriever,
        base_url: Optional[str],
        scope: ResolutionScope,
    ) -> None:
        if isinstance(source, InlineContext):
            self._apply_inline(source.definitions, builder, base_url)
        elif isinstance(source, NestedContext):
            child = _VocabularyBuilder(builder.build())
            for nested in source.sources:
                await self._apply(nested, child, retriever, base_url, scope)
            builder.absorb(child)
        elif isinstance(source, RemoteContext):
            await self._apply_remote(source.location, builder, retriever, base_url, scope)
        elif isinstance(source, NullContext):
            builder.reset()
        else:
            raise MalformedContext(f"unsupported context source {source!r}", base_url)

    # ------------------------------------------------------------------
    # Remote references
    # ------------------------------------------------------------------

    async def _apply_remote(
        self,
        reference: str,
        builder: _VocabularyBuilder,
        retriever: DocumentRetriever,
        base_url: Optional[str],
        scope: ResolutionScope,
    ) -> None:
        location = urljoin(base_url, reference) if base_url else reference

        with scope.entering(location):
            document = scope.cached(location)
            if document is None:
                document = await self._fetch_context_document(location, retriever)
                scope.remember(location, document)
            else:
                logger.debug("context: reusing %s", location)

            if not isinstance(document, TreeObject) or CONTEXT_KEY not in document:
                raise MalformedContext(
                    "remote context document has no @context entry",
                    location,
                )

            for source in context_sources_from_tree(document.get(CONTEXT_KEY), location):
                await self._apply(source, builder, retriever, location, scope)

    async def _fetch_context_document(
        self,
        location: str,
        retriever: DocumentRetriever,
    ) -> TreeValue:
        logger.info("context: fetching %s", location)
        try:
            content = await retriever.fetch(location)
        except RetrievalError as exc:
            logger.warning("context: %s unreachable: %s", location, exc)
            raise UnreachableContext(location, exc) from exc

        try:
            return self._parser.parse(content)
        except MalformedInput as exc:
            raise MalformedContext(exc.reason, location) from exc

    # ------------------------------------------------------------------
    # Inline definitions
    # ------------------------------------------------------------------

    def _apply_inline(
        self,
        definitions: TreeObject,
        builder: _VocabularyBuilder,
        base_url: Optional[str],
    ) -> None:
        entries = definitions.entries

        version = entries.get("@version")
        if version is not None and not (
            isinstance(version, TreeNumber) and version.value == 1.1
        ):
            raise MalformedContext("@version must be 1.1", base_url)

        base = entries.get("@base")
        if base is not None and not isinstance(base, (TreeString, TreeNull)):
            raise MalformedContext("@base must be a string or null", base_url)

        if "@vocab" in entries:
            builder.vocab = self._vocab_mapping(entries["@vocab"], builder, base_url)

        defined: Dict[str, bool] = {}
        for term in entries:
            if term in CONTEXT_KEYWORDS:
                continue
            self._define_term(term, entries, builder, defined, base_url)

    def _vocab_mapping(
        self,
        value: TreeValue,
        builder: _VocabularyBuilder,
        base_url: Optional[str],
    ) -> Optional[str]:
        if isinstance(value, TreeNull):
            return None
        if not isinstance(value, TreeString) or not value.value:
            raise MalformedContext("@vocab must be a non-empty string or null", base_url)
        if ":" not in value.value:
            raise MalformedContext(
                f"@vocab '{value.value}' is not an absolute or compact IRI",
                base_url,
            )
        return expand_iri(value.value, builder.terms, None)

    def _define_term(
        self,
        term: str,
        local: Dict[str, TreeValue],
        builder: _VocabularyBuilder,
        defined: Dict[str, bool],
        base_url: Optional[str],
    ) -> None:
        if term in defined:
            if defined[term]:
                return
            raise MalformedContext(f"cyclic IRI mapping for term '{term}'", base_url)

        if not term:
            raise MalformedContext("empty term", base_url)
        if term.startswith("@"):
            raise MalformedContext(f"keyword '{term}' cannot be redefined", base_url)

        defined[term] = False
        definition = self._term_definition(term, local[term], local, builder, defined, base_url)
        builder.define(term, definition)
        defined[term] = True

    def _term_definition(
        self,
        term: str,
        value: TreeValue,
        local: Dict[str, TreeValue],
        builder: _VocabularyBuilder,
        defined: Dict[str, bool],
        base_url: Optional[str],
    ) -> TermDefinition:
        if isinstance(value, TreeNull):
            return TermDefinition(iri=None, source_location=base_url)

        if isinstance(value, TreeString):
            iri = self._term_iri(term, value.value, local, builder, defined, base_url)
            return TermDefinition(iri=iri, source_location=base_url)

        if not isinstance(value, TreeObject):
            raise MalformedContext(
                f"definition of term '{term}' must be a string, object or null, "
                f"got {value.kind}",
                base_url,
            )

        unknown = [key for key in value.keys() if key not in TERM_DEFINITION_KEYS]
        if unknown:
            raise MalformedContext(
                f"unsupported entries {sorted(unknown)} in definition of term '{term}'",
                base_url,
            )

        raw_id = value.get("@id")
        if raw_id is None:
            iri = self._implicit_iri(term, local, builder, defined, base_url)
        elif isinstance(raw_id, TreeNull):
            iri = None
        elif isinstance(raw_id, TreeString):
            iri = self._term_iri(term, raw_id.value, local, builder, defined, base_url)
        else:
            raise MalformedContext(f"@id of term '{term}' must be a string or null", base_url)

        scoped = value.get("@context")
        return TermDefinition(
            iri=iri,
            container=self._container(term, value.get("@container"), base_url),
            type_mapping=self._type_mapping(term, value.get("@type"), local, builder, defined, base_url),
            scoped_context=(
                tuple(context_sources_from_tree(scoped, base_url))
                if scoped is not None
                else None
            ),
            source_location=base_url,
        )

    def _term_iri(
        self,
        term: str,
        raw: str,
        local: Dict[str, TreeValue],
        builder: _VocabularyBuilder,
        defined: Dict[str, bool],
        base_url: Optional[str],
    ) -> str:
        if raw in KEYWORD_ALIASES:
            return raw
        if raw.startswith("@"):
            raise MalformedContext(
                f"term '{term}' aliases unsupported keyword '{raw}'",
                base_url,
            )

        if raw == term:
            return self._implicit_iri(term, local, builder, defined, base_url)

        iri = self._expand(raw, local, builder, defined, base_url)
        if iri is None:
            raise MalformedContext(
                f"term '{term}' maps to '{raw}', which does not expand to an IRI",
                base_url,
            )
        return iri

    def _implicit_iri(
        self,
        term: str,
        local: Dict[str, TreeValue],
        builder: _VocabularyBuilder,
        defined: Dict[str, bool],
        base_url: Optional[str],
    ) -> str:
        if ":" in term[1:]:
            prefix = term.split(":", 1)[0]
            if prefix in local and defined.get(prefix) is not True:
                self._define_term(prefix, local, builder, defined, base_url)
            iri = expand_iri(term, {k: v for k, v in builder.terms.items() if k != term}, None)
            if iri is not None:
                return iri
        if builder.vocab:
            return builder.vocab + term
        raise MalformedContext(
            f"term '{term}' does not expand to an IRI and no @vocab is in effect",
            base_url,
        )

    def _expand(
        self,
        value: str,
        local: Dict[str, TreeValue],
        builder: _VocabularyBuilder,
        defined: Dict[str, bool],
        base_url: Optional[str],
    ) -> Optional[str]:
        # Terms of the same inline context may be used before they are
        # declared; define them on demand.
        if value in local and value not in CONTEXT_KEYWORDS and defined.get(value) is not True:
            self._define_term(value, local, builder, defined, base_url)

        if ":" in value[1:]:
            prefix = value.split(":", 1)[0]
            if prefix in local and prefix not in CONTEXT_KEYWORDS and defined.get(prefix) is not True:
                self._define_term(prefix, local, builder, defined, base_url)

        return expand_iri(value, builder.terms, builder.vocab)

    def _container(
        self,
        term: str,
        value: Optional[TreeValue],
        base_url: Optional[str],
    ) -> Optional[str]:
        if value is None or isinstance(value, TreeNull):
            return None
        if isinstance(value, TreeArray) and len(value.items) == 1:
            value = value.items[0]
        if isinstance(value, TreeString) and value.value in CONTAINERS:
            return value.value
        raise MalformedContext(
            f"unsupported @container for term '{term}' (expected @set or @list)",
            base_url,
        )

    def _type_mapping(
        self,
        term: str,
        value: Optional[TreeValue],
        local: Dict[str, TreeValue],
        builder: _VocabularyBuilder,
        defined: Dict[str, bool],
        base_url: Optional[str],
    ) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, TreeString):
            raise MalformedContext(f"@type of term '{term}' must be a string", base_url)
        if value.value in ("@id", "@vocab"):
            return value.value
        if value.value.startswith("@"):
            raise MalformedContext(
                f"unsupported @type '{value.value}' for term '{term}'",
                base_url,
            )
        datatype = self._expand(value.value, local, builder, defined, base_url)
        if datatype is None or ":" not in datatype:
            raise MalformedContext(
                f"@type of term '{term}' does not expand to an IRI",
                base_url,
            )
        return datatype
