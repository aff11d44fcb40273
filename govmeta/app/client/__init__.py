from .metadata_client import LoadResult, MetadataClient

__all__ = [
    "LoadResult",
    "MetadataClient",
]
