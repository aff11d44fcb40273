"""
CIP-108 governance action rationale.

Extends CIP-100 with a structured body (title, abstract, motivation,
rationale). Authors, witnesses and references are shared with CIP-100.
"""

from __future__ import annotations

from typing import List

from govmeta.app.documents.cip100 import (
    Author,
    CIP100Fields,
    Reference,
    DocumentModel,
)
from govmeta.app.normalize.node import NormalizedNode
from govmeta.app.projection.contract import node_list, require_node, require_str


CIP108_NAMESPACE = "https://github.com/cardano-foundation/CIPs/blob/master/CIP-0108/README.md#"


class CIP108Fields:
    BODY = CIP108_NAMESPACE + "body"
    TITLE = CIP108_NAMESPACE + "title"
    ABSTRACT = CIP108_NAMESPACE + "abstract"
    MOTIVATION = CIP108_NAMESPACE + "motivation"
    RATIONALE = CIP108_NAMESPACE + "rationale"
    REFERENCES = CIP108_NAMESPACE + "references"


class RationaleBody(DocumentModel):
    title: str
    abstract: str
    motivation: str
    rationale: str
    references: List[Reference]

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "RationaleBody":
        return cls(
            title=require_str(node, CIP108Fields.TITLE, "title"),
            abstract=require_str(node, CIP108Fields.ABSTRACT, "abstract"),
            motivation=require_str(node, CIP108Fields.MOTIVATION, "motivation"),
            rationale=require_str(node, CIP108Fields.RATIONALE, "rationale"),
            references=node_list(
                node, CIP108Fields.REFERENCES, "reference", Reference.try_from_node
            ),
        )


class RationaleDocument(DocumentModel):
    """A CIP-108 governance action rationale document."""

    hash_algorithm: str
    authors: List[Author]
    body: RationaleBody

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "RationaleDocument":
        return cls(
            hash_algorithm=require_str(node, CIP100Fields.HASH_ALGORITHM, "hash_algorithm"),
            authors=node_list(node, CIP100Fields.AUTHORS, "author", Author.try_from_node),
            body=RationaleBody.try_from_node(
                require_node(node, CIP108Fields.BODY, "body")
            ),
        )
