"""
Tests for the retrieval collaborators.

The HTTP retriever is exercised against httpx.MockTransport; no network
access is needed.

  200           body returned, User-Agent / Accept headers sent
  404 / 500     RetrievalError(kind="unreachable")
  timeout       RetrievalError(kind="timeout")
  connect error RetrievalError(kind="unreachable")
  oversize      RetrievalError(kind="unreachable")
"""

import anyio
import httpx
import pytest

from govmeta.app.config import ClientSettings
from govmeta.app.errors import RetrievalError
from govmeta.app.retrieval.retriever import (
    ACCEPT_HEADER,
    HttpDocumentRetriever,
    StaticDocumentRetriever,
)


URL = "https://example.org/metadata.jsonld"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fetch(handler, settings: ClientSettings = None, location: str = URL) -> bytes:
    settings = settings or ClientSettings()

    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            retriever = HttpDocumentRetriever(settings=settings, client=client)
            return await retriever.fetch(location)

    return anyio.run(_run)


def _fetch_error(handler, settings: ClientSettings = None) -> RetrievalError:
    with pytest.raises(RetrievalError) as excinfo:
        _fetch(handler, settings)
    assert excinfo.value.location == URL
    return excinfo.value


# ---------------------------------------------------------------------------
# HTTP retriever
# ---------------------------------------------------------------------------

def test_returns_body_and_sends_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["user_agent"] = request.headers["user-agent"]
        seen["accept"] = request.headers["accept"]
        return httpx.Response(200, content=b'{"@context": {}}')

    content = _fetch(handler, ClientSettings(user_agent="govmeta-test/1.0"))

    assert content == b'{"@context": {}}'
    assert seen == {"user_agent": "govmeta-test/1.0", "accept": ACCEPT_HEADER}


@pytest.mark.parametrize("status", [404, 500])
def test_error_status_is_unreachable(status):
    error = _fetch_error(lambda request: httpx.Response(status))

    assert error.kind == "unreachable"
    assert error.detail == f"HTTP {status}"


def test_timeout():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    assert _fetch_error(handler).kind == "timeout"


def test_connection_error_is_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert _fetch_error(handler).kind == "unreachable"


def test_oversized_document_is_rejected():
    error = _fetch_error(
        lambda request: httpx.Response(200, content=b"x" * 64),
        ClientSettings(max_document_bytes=16),
    )

    assert error.kind == "unreachable"
    assert "16 bytes" in error.detail


def test_document_at_size_limit_is_accepted():
    content = _fetch(
        lambda request: httpx.Response(200, content=b"x" * 16),
        ClientSettings(max_document_bytes=16),
    )

    assert len(content) == 16


# ---------------------------------------------------------------------------
# Static retriever
# ---------------------------------------------------------------------------

def test_static_retriever_serves_and_records():
    retriever = StaticDocumentRetriever({URL: '{"a": 1}'})

    async def _run():
        return await retriever.fetch(URL)

    assert anyio.run(_run) == b'{"a": 1}'
    assert retriever.requests == [URL]


def test_static_retriever_unknown_location():
    retriever = StaticDocumentRetriever()

    async def _run():
        return await retriever.fetch(URL)

    with pytest.raises(RetrievalError) as excinfo:
        anyio.run(_run)

    assert excinfo.value.kind == "unreachable"
