from .retriever import (
    DocumentRetriever,
    HttpDocumentRetriever,
    StaticDocumentRetriever,
)

__all__ = [
    "DocumentRetriever",
    "HttpDocumentRetriever",
    "StaticDocumentRetriever",
]
