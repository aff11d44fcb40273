from .value import (
    TreeArray,
    TreeBoolean,
    TreeNull,
    TreeNumber,
    TreeObject,
    TreeString,
    TreeValue,
    tree_from_python,
)
from .parser import JsonTreeParser, TreeParser

__all__ = [
    "TreeArray",
    "TreeBoolean",
    "TreeNull",
    "TreeNumber",
    "TreeObject",
    "TreeString",
    "TreeValue",
    "tree_from_python",
    "JsonTreeParser",
    "TreeParser",
]
