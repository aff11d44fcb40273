"""
Error taxonomy for governance metadata loading.

Every stage of a load raises its own exception family:

- retrieval / parsing (collaborator failures)
- context resolution
- node normalization
- typed projection

The client wraps whichever stage failed in a LoadError that records the
stage and keeps the original exception as its cause. No stage swallows or
downgrades an error raised below it.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class GovMetaError(Exception):
    """Base class for every error raised by this package."""


# ----------------------------------------------------------------------
# Collaborator failures
# ----------------------------------------------------------------------

class RetrievalError(GovMetaError):
    """
    A location could not be fetched.

    kind is "unreachable" (connection failure, bad status, unknown
    location) or "timeout".
    """

    def __init__(self, location: str, kind: str, detail: str = "") -> None:
        self.location = location
        self.kind = kind
        self.detail = detail
        message = f"{kind} while fetching {location}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MalformedInput(GovMetaError):
    """Raw bytes could not be parsed into a tree."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"malformed input: {reason}")


# ----------------------------------------------------------------------
# Context resolution
# ----------------------------------------------------------------------

class ContextError(GovMetaError):
    pass


class UnreachableContext(ContextError):
    def __init__(self, location: str, cause: Optional[BaseException] = None) -> None:
        self.location = location
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"remote context {location} is unreachable{detail}")


class CyclicContextReference(ContextError):
    """
    A remote context referenced itself, directly or through other
    remote contexts. chain lists the in-flight references in the
    order they were entered, ending with the repeated location.
    """

    def __init__(self, location: str, chain: List[str]) -> None:
        self.location = location
        self.chain = list(chain)
        super().__init__(
            "cyclic remote context reference: " + " -> ".join(self.chain)
        )


class MalformedContext(ContextError):
    def __init__(self, reason: str, location: Optional[str] = None) -> None:
        self.reason = reason
        self.location = location
        where = f" (in {location})" if location else ""
        super().__init__(f"malformed context{where}: {reason}")


# ----------------------------------------------------------------------
# Normalization
# ----------------------------------------------------------------------

class NormalizationError(GovMetaError):
    pass


class UnmappableTerm(NormalizationError):
    def __init__(self, term: str, path: str) -> None:
        self.term = term
        self.path = path
        super().__init__(
            f"term '{term}' at {path} has no mapping in the active vocabulary "
            "and no default vocabulary is set"
        )


class MalformedNode(NormalizationError):
    def __init__(self, reason: str, path: str = "$") -> None:
        self.reason = reason
        self.path = path
        super().__init__(f"malformed node at {path}: {reason}")


# ----------------------------------------------------------------------
# Projection
# ----------------------------------------------------------------------

class ProjectionError(GovMetaError):
    """
    A normalized node could not be projected into a domain type.

    meaning is the fully-qualified attribute or type tag at fault, or
    None when the failure is not tied to a single attribute.
    """

    def __init__(self, meaning: Optional[str], reason: str) -> None:
        self.meaning = meaning
        self.reason = reason
        if meaning:
            super().__init__(f"{reason} ({meaning})")
        else:
            super().__init__(reason)


# ----------------------------------------------------------------------
# Facade
# ----------------------------------------------------------------------

class LoadStage(str, Enum):
    """Stage of a load at which a failure occurred."""

    RETRIEVAL = "retrieval"
    PARSE = "parse"
    CONTEXT = "context"
    NORMALIZATION = "normalization"
    PROJECTION = "projection"


class LoadError(GovMetaError):
    def __init__(
        self,
        stage: LoadStage,
        cause: GovMetaError,
        location: Optional[str] = None,
    ) -> None:
        self.stage = stage
        self.cause = cause
        self.location = location
        where = f" {location}" if location else ""
        super().__init__(f"failed to load{where} during {stage.value}: {cause}")
