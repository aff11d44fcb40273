"""
CIP-100 projection against the published test vector.

The document uses scoped term contexts and compact IRIs; projection only
ever sees fully-qualified meanings.
"""

import copy

import anyio
import pytest

from govmeta.app.client import MetadataClient
from govmeta.app.config import ClientSettings
from govmeta.app.documents.cip100 import (
    Author,
    Body,
    CIP100Fields,
    Document,
    Reference,
    ReferenceType,
    Update,
    Witness,
)
from govmeta.app.errors import LoadError, LoadStage, ProjectionError
from govmeta.app.normalize.node import NormalizedNode
from govmeta.tests.fixtures.documents import (
    CIP100_CONTEXT,
    CIP100_README,
    PUBLIC_KEY,
    SIGNATURE,
    as_bytes,
    cip100_document,
    serve,
)


CONTEXT_URL = "https://example.org/cip-0100.common.jsonld"


def _load(document, retriever=None) -> Document:
    client = MetadataClient(retriever=retriever or serve({}), settings=ClientSettings())

    async def _run():
        return await client.load_bytes(Document, as_bytes(document))

    return anyio.run(_run)


EXPECTED = Document(
    hash_algorithm="blake2b-256",
    authors=[
        Author(
            name="Pi Lanningham",
            witness=Witness(
                algorithm="ed25519",
                public_key=PUBLIC_KEY,
                signature=SIGNATURE,
            ),
        )
    ],
    body=Body(
        references=[
            Reference(
                reference_type=ReferenceType.OTHER,
                label="CIP-100",
                uri=CIP100_README,
            )
        ],
        comment="This is a test vector for CIP-100",
        external_updates=[Update(title="Blog", uri="https://314pool.com")],
    ),
)


# ---------------------------------------------------------------------------
# Test vector
# ---------------------------------------------------------------------------

def test_projects_the_test_vector():
    assert _load(cip100_document()) == EXPECTED


def test_projects_with_remote_context():
    retriever = serve({CONTEXT_URL: {"@context": CIP100_CONTEXT}})

    assert _load(cip100_document(context=CONTEXT_URL), retriever) == EXPECTED
    assert retriever.requests == [CONTEXT_URL]


def test_renamed_terms_project_identically():
    """Only meanings matter: a renamed short term projects the same."""
    document = cip100_document()
    context = document["@context"]
    context["algo"] = context.pop("hashAlgorithm")
    document["algo"] = document.pop("hashAlgorithm")

    assert _load(document) == EXPECTED


def test_governance_metadata_reference():
    document = cip100_document()
    document["body"]["references"][0]["@type"] = "GovernanceMetadata"

    reference = _load(document).body.references[0]

    assert reference.reference_type == ReferenceType.GOVERNANCE_METADATA


# ---------------------------------------------------------------------------
# Projection failures
# ---------------------------------------------------------------------------

def _projection_failure(document) -> ProjectionError:
    with pytest.raises(LoadError) as excinfo:
        _load(document)

    assert excinfo.value.stage == LoadStage.PROJECTION
    assert isinstance(excinfo.value.cause, ProjectionError)
    return excinfo.value.cause


def test_missing_hash_algorithm():
    document = cip100_document()
    del document["hashAlgorithm"]

    error = _projection_failure(document)

    assert error.meaning == CIP100Fields.HASH_ALGORITHM
    assert error.reason == "no hash_algorithm field"


def test_unknown_reference_type():
    document = cip100_document()
    document["body"]["references"][0]["@type"] = "Website"

    error = _projection_failure(document)

    assert error.reason == "invalid reference type"


def test_reference_needs_exactly_one_type():
    document = cip100_document()
    document["body"]["references"][0]["@type"] = ["Other", "GovernanceMetadata"]

    error = _projection_failure(document)

    assert error.meaning == CIP100Fields.REFERENCE_TYPE


def test_invalid_update_uri():
    document = cip100_document()
    document["body"]["externalUpdates"][0]["uri"] = "not a uri"

    error = _projection_failure(document)

    assert error.meaning == CIP100Fields.UPDATE_URI


def test_witness_must_be_an_object():
    document = cip100_document()
    document["authors"][0]["witness"] = "ed25519"

    error = _projection_failure(document)

    assert error.reason == "author witness field isn't an object"


def test_body_must_be_present():
    document = cip100_document()
    del document["body"]

    assert _projection_failure(document).meaning == CIP100Fields.BODY


# ---------------------------------------------------------------------------
# Direct projection
# ---------------------------------------------------------------------------

def test_witness_from_node():
    node = NormalizedNode(
        attributes={
            CIP100Fields.WITNESS_ALGORITHM: "ed25519",
            CIP100Fields.WITNESS_PUBLIC_KEY: PUBLIC_KEY,
            CIP100Fields.WITNESS_SIGNATURE: SIGNATURE,
        }
    )

    assert Witness.try_from_node(node) == EXPECTED.authors[0].witness


def test_empty_references_and_updates():
    document = copy.deepcopy(cip100_document())
    document["body"]["references"] = []
    del document["body"]["externalUpdates"]

    body = _load(document).body

    assert body.references == []
    assert body.external_updates == []
