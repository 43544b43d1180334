"""
Error taxonomy shared by the store, the tree builder, the cache and the API.
"""


class TreeServiceError(Exception):
    """Base class for all tree service errors."""


class InvalidInputError(TreeServiceError):
    """Malformed or out-of-policy request data."""


class NodeNotFoundError(TreeServiceError):
    """Referenced node or parent does not exist."""

    def __init__(self, node_id: int, message: str = "node not found"):
        super().__init__(message)
        self.node_id = node_id


class EmptyTreeError(TreeServiceError):
    """A page produced no top-level nodes."""


class StoreUnavailableError(TreeServiceError):
    """The backing store could not be reached."""


class CacheDegradedError(TreeServiceError):
    """The cache backend is unavailable. Never surfaced to API callers."""
