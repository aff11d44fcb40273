"""
Tree parsing collaborator.

The engine never implements byte-level grammar itself; it depends on a
TreeParser. JsonTreeParser is the default used by MetadataClient.
"""

from __future__ import annotations

import json
from typing import Protocol

from govmeta.app.errors import MalformedInput
from govmeta.app.tree.value import TreeValue, tree_from_python


class TreeParser(Protocol):
    def parse(self, content: bytes) -> TreeValue:
        ...


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


class JsonTreeParser:
    """
    Parse UTF-8 JSON (and JSON-LD) bytes into a TreeValue.

    NaN and Infinity are rejected; they are accepted by the json module
    but are not JSON.
    """

    def parse(self, content: bytes) -> TreeValue:
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise MalformedInput(f"content is not UTF-8: {exc}") from exc

        try:
            data = json.loads(text, parse_constant=_reject_constant)
        except ValueError as exc:
            raise MalformedInput(f"invalid JSON: {exc}") from exc

        try:
            return tree_from_python(data)
        except ValueError as exc:
            raise MalformedInput(str(exc)) from exc
