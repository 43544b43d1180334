from .node_repository import NodeRepository
from .sql_node_repository import SQLNodeRepository
from .memory_node_repository import InMemoryNodeRepository

__all__ = ["NodeRepository", "SQLNodeRepository", "InMemoryNodeRepository"]
