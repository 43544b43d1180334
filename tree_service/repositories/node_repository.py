from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from tree_service.config import Config
from tree_service.core.errors import InvalidInputError
from tree_service.models.tree import Node


class NodeRepository(ABC):
    """Node store contract.

    Implementations must be safe to share between concurrent requests.
    """

    MAX_LABEL_LENGTH = Config.MAX_LABEL_LENGTH

    def initialize(self) -> None:
        """Prepare the backing store (schema, connections)."""

    def close(self) -> None:
        """Release resources held by the store."""

    def ping(self) -> bool:
        return True

    @abstractmethod
    def create(self, label: str, parent_id: Optional[int] = None) -> int:
        """Insert a node and return its id.

        Raises:
            InvalidInputError: empty or over-long label
            NodeNotFoundError: parent_id given but absent
        """

    @abstractmethod
    def get(self, node_id: int) -> Node:
        """Raises NodeNotFoundError when absent."""

    @abstractmethod
    def list_page(self, page: int, page_size: int) -> Tuple[List[Node], int]:
        """Return one page of rows in ascending id order and the full row count."""

    @abstractmethod
    def update(self, node_id: int, label: str, parent_id: Optional[int] = None) -> None:
        """Replace label and parent of a node.

        Raises:
            InvalidInputError: bad label, or parent_id is the node or one of its descendants
            NodeNotFoundError: node or parent absent
        """

    @abstractmethod
    def delete(self, node_id: int) -> int:
        """Delete a node with all of its descendants atomically.

        Returns:
            int: number of rows removed
        """

    def validate_label(self, label: Optional[str]) -> str:
        if not label:
            raise InvalidInputError("label must not be empty")
        if len(label) > self.MAX_LABEL_LENGTH:
            raise InvalidInputError(f"label must be at most {self.MAX_LABEL_LENGTH} characters")
        return label

    @staticmethod
    def page_offset(page: int, page_size: int) -> Optional[int]:
        """Row offset of a page, or None when the page cannot hold rows."""
        if page < 1 or page_size < 1:
            return None
        return (page - 1) * page_size
