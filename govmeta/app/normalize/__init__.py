from .node import LiteralValue, NormalizedNode
from .normalizer import NodeNormalizer

__all__ = [
    "LiteralValue",
    "NormalizedNode",
    "NodeNormalizer",
]
