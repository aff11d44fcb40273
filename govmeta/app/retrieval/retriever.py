"""
Retrieval collaborators.

The engine never performs network I/O directly. Documents and remote
contexts are fetched through a DocumentRetriever injected into the
client and the context resolver.

Retrievers report failures as RetrievalError with kind "unreachable" or
"timeout". They never retry; retry policy, if any, belongs to a caller
supplied retriever.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Protocol, Union

import httpx

from govmeta.app.config import ClientSettings, get_settings
from govmeta.app.errors import RetrievalError

logger = logging.getLogger(__name__)


ACCEPT_HEADER = "application/ld+json, application/json;q=0.9, */*;q=0.1"


class DocumentRetriever(Protocol):
    async def fetch(self, location: str) -> bytes:
        ...


# ----------------------------------------------------------------------
# HTTP retriever
# ----------------------------------------------------------------------

class HttpDocumentRetriever:
    """
    Fetch documents over HTTP(S) with httpx.

    A caller-owned httpx.AsyncClient may be injected (connection pooling,
    proxies, test transports). Otherwise a short-lived client is opened
    for each fetch.
    """

    def __init__(
        self,
        *,
        settings: Optional[ClientSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    async def fetch(self, location: str) -> bytes:
        if self._client is not None:
            return await self._fetch_with(self._client, location)

        async with httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            follow_redirects=self._settings.follow_redirects,
        ) as client:
            return await self._fetch_with(client, location)

    async def _fetch_with(self, client: httpx.AsyncClient, location: str) -> bytes:
        headers = {
            "User-Agent": self._settings.user_agent,
            "Accept": ACCEPT_HEADER,
        }
        limit = self._settings.max_document_bytes

        logger.info("fetch: %s", location)
        try:
            async with client.stream(
                "GET",
                location,
                headers=headers,
                timeout=self._settings.http_timeout_seconds,
                follow_redirects=self._settings.follow_redirects,
            ) as response:
                if response.status_code < 200 or response.status_code >= 300:
                    logger.error("fetch: %s returned HTTP %s", location, response.status_code)
                    raise RetrievalError(
                        location, "unreachable", f"HTTP {response.status_code}"
                    )

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > limit:
                        raise RetrievalError(
                            location,
                            "unreachable",
                            f"document exceeds {limit} bytes",
                        )
                    chunks.append(chunk)
        except httpx.TimeoutException as exc:
            logger.error("fetch: %s timed out: %s", location, exc)
            raise RetrievalError(location, "timeout", str(exc)) from exc
        except httpx.InvalidURL as exc:
            raise RetrievalError(location, "unreachable", str(exc)) from exc
        except httpx.RequestError as exc:
            logger.error("fetch: %s connection error: %s", location, exc)
            raise RetrievalError(location, "unreachable", str(exc)) from exc

        return b"".join(chunks)


# ----------------------------------------------------------------------
# In-memory retriever
# ----------------------------------------------------------------------

class StaticDocumentRetriever:
    """
    Serve documents from memory.

    Useful for preloading well-known contexts so that loads work
    offline, and for tests. Unknown locations are unreachable.
    """

    def __init__(self, documents: Optional[Mapping[str, Union[bytes, str]]] = None) -> None:
        self._documents: Dict[str, bytes] = {}
        self.requests: list[str] = []
        for location, content in (documents or {}).items():
            self.add(location, content)

    def add(self, location: str, content: Union[bytes, str]) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._documents[location] = content

    async def fetch(self, location: str) -> bytes:
        self.requests.append(location)
        try:
            return self._documents[location]
        except KeyError:
            raise RetrievalError(location, "unreachable", "no such document") from None
