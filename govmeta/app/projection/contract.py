"""
Typed projection contract.

Any domain type becomes loadable by implementing a single classmethod:

    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> "MyType":
        ...

raising ProjectionError when the node does not fit. The engine never
enumerates candidate types; the caller names the target type and the
engine calls its constructor contract. Supporting a new document type
never requires changes to context resolution or normalization.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Protocol, Type, TypeVar, runtime_checkable

from govmeta.app.errors import ProjectionError
from govmeta.app.normalize.node import LiteralValue, NormalizedNode


T = TypeVar("T")


@runtime_checkable
class Projectable(Protocol):
    @classmethod
    def try_from_node(cls, node: NormalizedNode) -> Any:
        ...


def project(target_type: Type[T], node: NormalizedNode) -> T:
    """
    Construct target_type from a normalized node.

    A ProjectionError raised by the target type propagates unmodified.
    Any other exception it raises (a pydantic ValidationError from its
    own field checks, say) becomes a ProjectionError chained to it.
    """
    name = getattr(target_type, "__name__", str(target_type))
    if not isinstance(target_type, Projectable):
        raise ProjectionError(None, f"{name} does not implement try_from_node")

    try:
        return target_type.try_from_node(node)
    except ProjectionError:
        raise
    except Exception as exc:
        raise ProjectionError(
            None,
            f"{name}.try_from_node raised {type(exc).__name__}: {exc}",
        ) from exc


# ----------------------------------------------------------------------
# Helpers for implementations
# ----------------------------------------------------------------------

def _scalar(value: Any) -> Any:
    return value.value if isinstance(value, LiteralValue) else value


def optional_str(node: NormalizedNode, meaning: str, label: str) -> Optional[str]:
    value = node.get_one(meaning)
    if value is None:
        return None
    value = _scalar(value)
    if not isinstance(value, str):
        raise ProjectionError(meaning, f"{label} is not a string")
    return value


def require_str(node: NormalizedNode, meaning: str, label: str) -> str:
    value = optional_str(node, meaning, label)
    if value is None:
        raise ProjectionError(meaning, f"no {label} field")
    return value


def require_node(node: NormalizedNode, meaning: str, label: str) -> NormalizedNode:
    value = node.get_one(meaning)
    if value is None:
        raise ProjectionError(meaning, f"no {label} field")
    if not isinstance(value, NormalizedNode):
        raise ProjectionError(meaning, f"{label} field isn't an object")
    return value


def node_list(
    node: NormalizedNode,
    meaning: str,
    label: str,
    build: Callable[[NormalizedNode], T],
) -> List[T]:
    """
    Project every value of a multi-valued attribute. An absent
    attribute yields an empty list.
    """
    results: List[T] = []
    for value in node.get_all(meaning):
        if not isinstance(value, NormalizedNode):
            raise ProjectionError(meaning, f"{label} entry isn't an object")
        results.append(build(value))
    return results
