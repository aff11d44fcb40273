"""
Runtime configuration for the governance metadata client.

Pydantic v2 settings management: values are read from the environment
(prefix GOVMETA_) once, validated strictly, and frozen. Configuration
only bounds resource usage and transport behavior; it never changes how
a document is interpreted.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """
    Settings for MetadataClient and its default collaborators.
    """

    # ---------------------------------------------------------------------
    # HTTP retrieval
    # ---------------------------------------------------------------------

    http_timeout_seconds: Annotated[
        float,
        Field(
            default=30.0,
            gt=0,
            description="Per-request timeout for document and context fetches",
        ),
    ]

    user_agent: Annotated[
        str,
        Field(
            default="govmeta/0.1",
            min_length=1,
            description="User-Agent header sent with every fetch",
        ),
    ]

    follow_redirects: Annotated[
        bool,
        Field(
            default=True,
            description="Follow HTTP redirects when fetching documents",
        ),
    ]

    max_document_bytes: Annotated[
        int,
        Field(
            default=5 * 1024 * 1024,
            ge=1,
            description="Upper bound on the size of a fetched document",
        ),
    ]

    # ---------------------------------------------------------------------
    # Context resolution
    # ---------------------------------------------------------------------

    max_remote_contexts: Annotated[
        int,
        Field(
            default=32,
            ge=1,
            description=(
                "Maximum number of distinct remote contexts dereferenced "
                "during a single load"
            ),
        ),
    ]

    model_config = SettingsConfigDict(
        env_prefix="GOVMETA_",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    """
    Process-wide settings, read from the environment on first use.
    """
    return ClientSettings()
