from .errors import (
    TreeServiceError,
    InvalidInputError,
    NodeNotFoundError,
    EmptyTreeError,
    StoreUnavailableError,
    CacheDegradedError,
)
from .tree_builder import build_forest

__all__ = [
    "TreeServiceError",
    "InvalidInputError",
    "NodeNotFoundError",
    "EmptyTreeError",
    "StoreUnavailableError",
    "CacheDegradedError",
    "build_forest",
]
