from .contract import (
    Projectable,
    node_list,
    optional_str,
    project,
    require_node,
    require_str,
)

__all__ = [
    "Projectable",
    "node_list",
    "optional_str",
    "project",
    "require_node",
    "require_str",
]
