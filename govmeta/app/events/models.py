from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types
# ----------------------------------------------------------------------
class LoadEventType(str, Enum):
    """
    Stage progression events emitted while loading a document.

    Events are observational only; they never influence a load.
    """

    LOAD_STARTED = "load_started"
    DOCUMENT_RETRIEVED = "document_retrieved"
    CONTEXT_FETCHED = "context_fetched"
    CONTEXT_RESOLVED = "context_resolved"
    NODE_NORMALIZED = "node_normalized"
    PROJECTION_COMPLETED = "projection_completed"

    # Terminal
    LOAD_COMPLETED = "load_completed"
    LOAD_FAILED = "load_failed"


TERMINAL_EVENTS = frozenset({LoadEventType.LOAD_COMPLETED, LoadEventType.LOAD_FAILED})


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class LoadEvent(BaseModel):
    """
    An immutable observation of a stage transition within one load.
    """

    event_id: UUID = Field(default_factory=uuid4)
    load_id: str = Field(..., description="Identifier of the load")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: LoadEventType

    # Optional stage metadata (location, counts, failing stage, ...)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
