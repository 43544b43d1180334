import itertools
from collections import deque
from threading import Lock
from typing import Dict, List, Optional, Set, Tuple

from tree_service.core.errors import InvalidInputError, NodeNotFoundError
from tree_service.models.tree import Node
from tree_service.repositories.node_repository import NodeRepository


class InMemoryNodeRepository(NodeRepository):
    """Process-local node store for tests and local runs."""

    def __init__(self):
        self._nodes: Dict[int, Node] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()

    def close(self) -> None:
        with self._lock:
            self._nodes.clear()

    def create(self, label: str, parent_id: Optional[int] = None) -> int:
        label = self.validate_label(label)
        with self._lock:
            if parent_id is not None and parent_id not in self._nodes:
                raise NodeNotFoundError(parent_id, "parent node not found")
            node_id = next(self._ids)
            self._nodes[node_id] = Node(id=node_id, label=label, parent_id=parent_id)
            return node_id

    def get(self, node_id: int) -> Node:
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise NodeNotFoundError(node_id)
            return Node(id=node.id, label=node.label, parent_id=node.parent_id)

    def list_page(self, page: int, page_size: int) -> Tuple[List[Node], int]:
        with self._lock:
            total = len(self._nodes)
            offset = self.page_offset(page, page_size)
            if offset is None:
                return [], total
            ids = sorted(self._nodes)[offset:offset + page_size]
            rows = [
                Node(id=n.id, label=n.label, parent_id=n.parent_id)
                for n in (self._nodes[i] for i in ids)
            ]
            return rows, total

    def update(self, node_id: int, label: str, parent_id: Optional[int] = None) -> None:
        label = self.validate_label(label)
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise NodeNotFoundError(node_id)

            if parent_id is not None:
                if parent_id == node_id:
                    raise InvalidInputError("node cannot be its own parent")
                if parent_id not in self._nodes:
                    raise NodeNotFoundError(parent_id, "parent node not found")
                if parent_id in self._subtree_ids(node_id):
                    raise InvalidInputError("parent cannot be a descendant of the node")

            node.label = label
            node.parent_id = parent_id

    def delete(self, node_id: int) -> int:
        with self._lock:
            if node_id not in self._nodes:
                raise NodeNotFoundError(node_id)
            ids = self._subtree_ids(node_id)
            for i in ids:
                del self._nodes[i]
            return len(ids)

    def _subtree_ids(self, node_id: int) -> Set[int]:
        children: Dict[int, List[int]] = {}
        for node in self._nodes.values():
            if node.parent_id is not None:
                children.setdefault(node.parent_id, []).append(node.id)

        seen = {node_id}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for child_id in children.get(current, []):
                if child_id not in seen:
                    seen.add(child_id)
                    queue.append(child_id)
        return seen
