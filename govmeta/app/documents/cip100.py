"""
CIP-100 governance metadata.

Typed projections of the CIP-100 governance metadata document: the
document itself, its body, authors and their witnesses, references and
external update sources.

Every type here is loadable through MetadataClient because it implements
try_from_node(); nothing in the resolution engine knows these types
exist.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import AnyUrl, BaseModel, ConfigDict, TypeAdapter, ValidationError

from govmeta.app.errors import ProjectionError
from govmeta.app.normalize.node import NormalizedNode
from govmeta.app.projection.contract import node_list, require_node, require_str


CIP100_NAMESPACE = "https://github.com/cardano-foundation/CIPs/blob/master/CIP-0100/README.md#"


class CIP100Fields:
    """
    Fully-qualified meanings used by CIP-100 documents.
    """

    HASH_ALGORITHM = CIP100_NAMESPACE + "hashAlgorithm"
    AUTHORS = CIP100_NAMESPACE + "authors"
    BODY = CIP100_NAMESPACE + "body"
    BODY_REFERENCES = CIP100_NAMESPACE + "references"
    BODY_COMMENT = CIP100_NAMESPACE + "comment"
    BODY_EXTERNAL_UPDATES = CIP100_NAMESPACE + "externalUpdates"
    UPDATE_TITLE = CIP100_NAMESPACE + "update-title"
    UPDATE_URI = CIP100_NAMESPACE + "update-uri"
    REFERENCE_TYPE = CIP100_NAMESPACE + "referenceType"
    REFERENCE_TYPE_GOVERNANCE_METADATA = CIP100_NAMESPACE + "GovernanceMetadataReference"
    REFERENCE_TYPE_OTHER = CIP100_NAMESPACE + "OtherReference"
    REFERENCE_LABEL = CIP100_NAMESPACE + "reference-label"
    REFERENCE_URI = CIP100_NAMESPACE + "reference-uri"
    AUTHOR_NAME = "http://xmlns.com/foaf/0.1/name"
    AUTHOR_WITNESS = CIP100_NAMESPACE + "witness"
    WITNESS_ALGORITHM = CIP100_NAMESPACE + "witnessAlgorithm"
    WITNESS_PUBLIC_KEY = CIP100_NAMESPACE + "publicKey"
    WITNESS_SIGNATURE = CIP100_NAMESPACE + "signature"


_URL = TypeAdapter(AnyUrl)


def require_uri(node: NormalizedNode, meaning: str, label: str) -> str:
    """A required string attribute that must be an absolute URI."""
    raw = require_str(node, meaning, label)
    try:
        _URL.validate_python(raw)
    except ValidationError as exc:
        raise ProjectionError(meaning, f"{label} is not a valid IRI") from exc
    return raw


class DocumentModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class Witness(DocumentModel):
    """A witness from an author who has signed the document."""

    algorithm: str
    public_key: str
    signature: str

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "Witness":
        return cls(
            algorithm=require_str(node, CIP100Fields.WITNESS_ALGORITHM, "witness algorithm"),
            public_key=require_str(node, CIP100Fields.WITNESS_PUBLIC_KEY, "witness public key"),
            signature=require_str(node, CIP100Fields.WITNESS_SIGNATURE, "witness signature"),
        )


class Author(DocumentModel):
    """
    An author who has signed the metadata document.

    The name is self-reported and may be inaccurate unless it is
    associated with the witness public key by other means.
    """

    name: str
    witness: Witness

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "Author":
        return cls(
            name=require_str(node, CIP100Fields.AUTHOR_NAME, "author name"),
            witness=Witness.try_from_node(
                require_node(node, CIP100Fields.AUTHOR_WITNESS, "author witness")
            ),
        )


class ReferenceType(str, Enum):
    # Parse the referenced document as another governance metadata document.
    GOVERNANCE_METADATA = "governance_metadata"
    # Any other document; not assumed to be CIP-100 compatible.
    OTHER = "other"


REFERENCE_TYPES: Dict[str, ReferenceType] = {
    CIP100Fields.REFERENCE_TYPE_GOVERNANCE_METADATA: ReferenceType.GOVERNANCE_METADATA,
    CIP100Fields.REFERENCE_TYPE_OTHER: ReferenceType.OTHER,
}


class Reference(DocumentModel):
    """A reference to another document giving context to this one."""

    reference_type: ReferenceType
    label: str
    uri: str

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "Reference":
        if len(node.type_tags) != 1:
            raise ProjectionError(
                CIP100Fields.REFERENCE_TYPE,
                "reference type must have exactly one type",
            )
        (tag,) = node.type_tags
        reference_type = REFERENCE_TYPES.get(tag)
        if reference_type is None:
            raise ProjectionError(tag, "invalid reference type")

        return cls(
            reference_type=reference_type,
            label=require_str(node, CIP100Fields.REFERENCE_LABEL, "reference label"),
            uri=require_uri(node, CIP100Fields.REFERENCE_URI, "reference uri"),
        )


class Update(DocumentModel):
    """A place to find updated information pertaining to the document."""

    title: str
    uri: str

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "Update":
        return cls(
            title=require_str(node, CIP100Fields.UPDATE_TITLE, "update title"),
            uri=require_uri(node, CIP100Fields.UPDATE_URI, "update uri"),
        )


class Body(DocumentModel):
    """
    Body of a governance metadata document.

    External updates are unauthenticated material.
    """

    references: List[Reference]
    comment: str
    external_updates: List[Update]

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "Body":
        return cls(
            references=node_list(
                node, CIP100Fields.BODY_REFERENCES, "reference", Reference.try_from_node
            ),
            comment=require_str(node, CIP100Fields.BODY_COMMENT, "body comment"),
            external_updates=node_list(
                node, CIP100Fields.BODY_EXTERNAL_UPDATES, "external update", Update.try_from_node
            ),
        )


class Document(DocumentModel):
    """A CIP-100 governance metadata document."""

    hash_algorithm: str
    authors: List[Author]
    body: Body

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "Document":
        return cls(
            hash_algorithm=require_str(node, CIP100Fields.HASH_ALGORITHM, "hash_algorithm"),
            authors=node_list(node, CIP100Fields.AUTHORS, "author", Author.try_from_node),
            body=Body.try_from_node(require_node(node, CIP100Fields.BODY, "body")),
        )
