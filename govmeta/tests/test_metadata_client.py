"""
End-to-end tests for MetadataClient.

Coverage matrix:

  happy path          bytes -> tree -> context -> node -> typed value
  stage tagging       retrieval / parse / context / normalization /
                      projection failures carry their stage and cause
  documents           @graph containers and top-level arrays
  try_load            failures reported, never raised
  events              ordered stage events, terminal event closes stream
  isolation           concurrent loads share no resolution state
"""

import anyio
import pytest

from govmeta.app.client import LoadResult, MetadataClient
from govmeta.app.config import ClientSettings
from govmeta.app.errors import (
    CyclicContextReference,
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
from govmeta.app.events import LoadEventType, MemoryQueueEventEmitter
from govmeta.app.normalize.node import NormalizedNode
from govmeta.app.projection.contract import require_str
from govmeta.tests.fixtures.documents import serve


NAME = "http://example.org/name"
DOC = "https://example.org/alice.jsonld"
CONTEXT = "https://example.org/context.jsonld"


class Named:
    def __init__(self, name: str):
        self.name = name

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "Named":
        return cls(require_str(node, NAME, "name"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _client(documents=None, emitter=None) -> MetadataClient:
    return MetadataClient(
        retriever=serve(documents or {}),
        settings=ClientSettings(),
        emitter=emitter,
    )


def _load(client: MetadataClient, location: str = DOC, target_type=Named):
    async def _run():
        return await client.load(target_type, location)

    return anyio.run(_run)


def _failure(documents, location: str = DOC, target_type=Named) -> LoadError:
    with pytest.raises(LoadError) as excinfo:
        _load(_client(documents), location, target_type)
    return excinfo.value


ALICE = {"@context": {"name": NAME}, "name": "Alice"}


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

def test_loads_alice():
    named = _load(_client({DOC: ALICE}))

    assert named.name == "Alice"


def test_load_bytes_resolves_relative_context_against_location():
    client = _client({CONTEXT: {"@context": {"name": NAME}}})

    async def _run():
        return await client.load_bytes(
            Named,
            b'{"@context": "context.jsonld", "name": "Alice"}',
            location=DOC,
        )

    assert anyio.run(_run).name == "Alice"


def test_load_node_returns_normalized_node():
    client = _client(
        {
            DOC: {
                "@context": {"name": NAME},
                "@type": ["RationaleDocument", "GovernanceMetadata"],
                "name": "Alice",
            }
        }
    )

    async def _run():
        return await client.load_node(DOC)

    node = anyio.run(_run)

    assert node.type_tags == frozenset({"GovernanceMetadata", "RationaleDocument"})
    assert node.attributes == {NAME: "Alice"}


def test_graph_document_uses_first_node_and_graph_context():
    document = {
        "@context": {"name": NAME},
        "@graph": [{"name": "Alice"}, {"name": "Bob"}],
    }

    assert _load(_client({DOC: document})).name == "Alice"


def test_node_context_overrides_graph_context():
    document = {
        "@context": {"name": "http://example.org/other"},
        "@graph": {"@context": {"name": NAME}, "name": "Alice"},
    }

    assert _load(_client({DOC: document})).name == "Alice"


def test_top_level_array_uses_first_node():
    document = [ALICE, {"@context": {"name": NAME}, "name": "Bob"}]

    assert _load(_client({DOC: document})).name == "Alice"


# ---------------------------------------------------------------------------
# Stage tagging
# ---------------------------------------------------------------------------

def test_retrieval_failure():
    error = _failure({})

    assert error.stage == LoadStage.RETRIEVAL
    assert isinstance(error.cause, RetrievalError)
    assert error.location == DOC


def test_parse_failure():
    error = _failure({DOC: b"{not json"})

    assert error.stage == LoadStage.PARSE
    assert isinstance(error.cause, MalformedInput)


def test_unreachable_remote_context():
    error = _failure({DOC: {"@context": CONTEXT, "name": "Alice"}})

    assert error.stage == LoadStage.CONTEXT
    assert isinstance(error.cause, UnreachableContext)
    assert error.cause.location == CONTEXT
    assert error.__cause__ is error.cause


def test_cyclic_remote_context():
    other = "https://example.org/other.jsonld"
    error = _failure(
        {
            DOC: {"@context": CONTEXT, "name": "Alice"},
            CONTEXT: {"@context": other},
            other: {"@context": CONTEXT},
        }
    )

    assert error.stage == LoadStage.CONTEXT
    assert isinstance(error.cause, CyclicContextReference)


def test_malformed_context():
    error = _failure({DOC: {"@context": 42, "name": "Alice"}})

    assert error.stage == LoadStage.CONTEXT
    assert isinstance(error.cause, MalformedContext)


def test_nested_context_failure_is_a_context_failure():
    error = _failure(
        {DOC: {"@context": {"name": NAME, "x": NAME}, "name": "Alice", "x": {"@context": CONTEXT}}}
    )

    assert error.stage == LoadStage.CONTEXT
    assert isinstance(error.cause, UnreachableContext)


def test_unmappable_term():
    error = _failure({DOC: {"@context": {"name": NAME}, "name": "Alice", "age": 30}})

    assert error.stage == LoadStage.NORMALIZATION
    assert isinstance(error.cause, UnmappableTerm)
    assert error.cause.term == "age"


@pytest.mark.parametrize(
    "document",
    [
        [],
        {"@graph": []},
        ["not a node"],
        "just a string",
    ],
)
def test_documents_without_a_node(document):
    error = _failure({DOC: document})

    assert error.stage == LoadStage.NORMALIZATION
    assert isinstance(error.cause, MalformedNode)


def test_projection_failure():
    error = _failure({DOC: {"@context": {"other": "http://example.org/other"}, "other": "x"}})

    assert error.stage == LoadStage.PROJECTION
    assert isinstance(error.cause, ProjectionError)
    assert error.cause.meaning == NAME


# ---------------------------------------------------------------------------
# try_load
# ---------------------------------------------------------------------------

def test_try_load_success():
    client = _client({DOC: ALICE})

    async def _run():
        return await client.try_load(Named, DOC)

    result = anyio.run(_run)

    assert isinstance(result, LoadResult)
    assert result.success
    assert result.value.name == "Alice"
    assert result.stage is None


def test_try_load_failure_is_returned_not_raised():
    client = _client({DOC: {"@context": CONTEXT, "name": "Alice"}})

    async def _run():
        return await client.try_load(Named, DOC)

    result = anyio.run(_run)

    assert not result.success
    assert result.value is None
    assert result.stage == LoadStage.CONTEXT
    assert CONTEXT in result.error


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

async def _collect(client: MetadataClient, emitter: MemoryQueueEventEmitter, location: str):
    try:
        await client.load(Named, location)
    except LoadError:
        pass
    return [event async for event in emitter.stream()]


def test_events_follow_stage_order():
    emitter = MemoryQueueEventEmitter()
    client = _client({DOC: ALICE}, emitter=emitter)

    events = anyio.run(_collect, client, emitter, DOC)

    assert [e.event_type for e in events] == [
        LoadEventType.LOAD_STARTED,
        LoadEventType.DOCUMENT_RETRIEVED,
        LoadEventType.CONTEXT_RESOLVED,
        LoadEventType.NODE_NORMALIZED,
        LoadEventType.PROJECTION_COMPLETED,
        LoadEventType.LOAD_COMPLETED,
    ]
    assert len({e.load_id for e in events}) == 1
    assert events[2].details["terms"] == 1


def test_each_remote_context_is_reported_once():
    emitter = MemoryQueueEventEmitter()
    client = _client(
        {
            DOC: {"@context": [CONTEXT, CONTEXT], "name": "Alice"},
            CONTEXT: {"@context": {"name": NAME}},
        },
        emitter=emitter,
    )

    events = anyio.run(_collect, client, emitter, DOC)

    fetched = [e for e in events if e.event_type == LoadEventType.CONTEXT_FETCHED]
    assert [e.details["location"] for e in fetched] == [CONTEXT]
    assert events[-1].event_type == LoadEventType.LOAD_COMPLETED


def test_failure_event_names_the_stage():
    emitter = MemoryQueueEventEmitter()
    client = _client({}, emitter=emitter)

    events = anyio.run(_collect, client, emitter, DOC)

    assert [e.event_type for e in events] == [
        LoadEventType.LOAD_STARTED,
        LoadEventType.LOAD_FAILED,
    ]
    assert events[-1].details["stage"] == "retrieval"
    assert events[-1].details["error"] == "RetrievalError"


def test_unexpected_projection_exception_fails_the_load():
    class Exploding:
        @classmethod
        def try_from_node(cls, node: NormalizedNode) -> "Exploding":
            raise ValueError("bad field")

    emitter = MemoryQueueEventEmitter()
    client = _client({DOC: ALICE}, emitter=emitter)

    async def _run():
        with pytest.raises(LoadError) as excinfo:
            await client.load(Exploding, DOC)
        events = [event async for event in emitter.stream()]
        return excinfo.value, events

    error, events = anyio.run(_run)

    assert error.stage == LoadStage.PROJECTION
    assert isinstance(error.cause, ProjectionError)
    assert isinstance(error.cause.__cause__, ValueError)
    assert "bad field" in str(error.cause)
    assert events[-1].event_type == LoadEventType.LOAD_FAILED
    assert events[-1].details["stage"] == "projection"


def test_load_node_emits_lifecycle_events():
    emitter = MemoryQueueEventEmitter()
    client = _client({DOC: ALICE}, emitter=emitter)

    async def _run():
        node = await client.load_node(DOC)
        return node, [event async for event in emitter.stream()]

    node, events = anyio.run(_run)

    assert node.attributes == {NAME: "Alice"}
    assert [e.event_type for e in events] == [
        LoadEventType.LOAD_STARTED,
        LoadEventType.DOCUMENT_RETRIEVED,
        LoadEventType.CONTEXT_RESOLVED,
        LoadEventType.NODE_NORMALIZED,
        LoadEventType.LOAD_COMPLETED,
    ]


def test_load_node_failure_ends_the_event_stream():
    emitter = MemoryQueueEventEmitter()
    client = _client({DOC: {"@context": CONTEXT, "name": "Alice"}}, emitter=emitter)

    async def _run():
        with pytest.raises(LoadError):
            await client.load_node(DOC)
        return [event async for event in emitter.stream()]

    events = anyio.run(_run)

    assert [e.event_type for e in events][0] == LoadEventType.LOAD_STARTED
    assert events[-1].event_type == LoadEventType.LOAD_FAILED
    assert events[-1].details["stage"] == "context"


def test_emitter_failure_never_fails_a_load():
    class BrokenEmitter:
        async def emit(self, event):
            raise RuntimeError("listener went away")

    client = _client({DOC: ALICE}, emitter=BrokenEmitter())

    assert _load(client).name == "Alice"


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------

def test_concurrent_loads_share_no_state():
    bob = "https://example.org/bob.jsonld"
    client = _client(
        {
            DOC: {"@context": CONTEXT, "name": "Alice"},
            bob: {"@context": CONTEXT, "name": "Bob"},
            CONTEXT: {"@context": {"name": NAME}},
        }
    )
    results = {}

    async def _one(location):
        results[location] = await client.load(Named, location)

    async def _run():
        async with anyio.create_task_group() as tg:
            tg.start_soon(_one, DOC)
            tg.start_soon(_one, bob)

    anyio.run(_run)

    assert results[DOC].name == "Alice"
    assert results[bob].name == "Bob"
