"""
Resolved vocabulary.

A ResolvedVocabulary maps short document terms to fully-qualified
meanings (IRIs). It is produced by the ContextResolver and is immutable
once built.

Per-term hints:

- container: "@set" or "@list"; the term's value is always a list
- type_mapping: "@id" (string values are node references), "@vocab"
  (string values are expanded like terms) or a datatype IRI
- scoped_context: the term's value is a nested node whose vocabulary is
  refined by these sources

Override rule: a term definition is replaced as a whole by a later one;
hints are never unioned across definitions.
"""

from __future__ import annotations

from typing import Dict, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from govmeta.app.context.sources import ContextSource


KEYWORD_ALIASES = frozenset({"@id", "@type"})


class TermDefinition(BaseModel):
    iri: Optional[str] = Field(
        ...,
        description=(
            "Fully-qualified meaning, a keyword alias (@id or @type), "
            "or None when the term is explicitly unmapped"
        ),
    )

    container: Optional[Literal["@set", "@list"]] = None

    type_mapping: Optional[str] = None

    scoped_context: Optional[Tuple[ContextSource, ...]] = None

    source_location: Optional[str] = Field(
        None,
        description="Location of the context that defined the term",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def is_keyword_alias(self) -> bool:
        return self.iri in KEYWORD_ALIASES

    @property
    def is_list(self) -> bool:
        return self.container is not None


def expand_iri(
    value: str,
    terms: Mapping[str, TermDefinition],
    vocab: Optional[str],
) -> Optional[str]:
    """
    Expand a term, compact IRI or absolute IRI.

    Order: defined term, then prefix:suffix (absolute IRIs and blank
    node identifiers pass through), then the default vocabulary.
    Returns None when nothing applies or when the term is explicitly
    mapped to null.
    """
    definition = terms.get(value)
    if definition is not None:
        return definition.iri

    if ":" in value[1:]:
        prefix, suffix = value.split(":", 1)
        if prefix == "_" or suffix.startswith("//"):
            return value
        prefix_definition = terms.get(prefix)
        if (
            prefix_definition is not None
            and prefix_definition.iri is not None
            and not prefix_definition.is_keyword_alias
        ):
            return prefix_definition.iri + suffix
        return value

    if vocab:
        return vocab + value

    return None


class ResolvedVocabulary(BaseModel):
    """
    The complete term -> meaning mapping that applies to a node.
    """

    terms: Dict[str, TermDefinition] = Field(default_factory=dict)

    vocab: Optional[str] = Field(
        None,
        description="Default meaning prefix applied to undefined terms",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def lookup(self, term: str) -> Optional[TermDefinition]:
        return self.terms.get(term)

    def meaning_of(self, term: str) -> Optional[str]:
        """Fully-qualified meaning of a term, or None if unmappable."""
        return expand_iri(term, self.terms, self.vocab)

    def merged_with(self, other: "ResolvedVocabulary") -> "ResolvedVocabulary":
        """
        Overlay another vocabulary on this one.

        Terms in other replace same-named terms here; other's vocab
        replaces this vocab when other declares one.
        """
        terms = dict(self.terms)
        terms.update(other.terms)
        return ResolvedVocabulary(
            terms=terms,
            vocab=other.vocab if other.vocab is not None else self.vocab,
        )
