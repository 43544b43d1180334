import logging
from typing import Dict, List, Optional, Sequence

from tree_service.core.errors import EmptyTreeError
from tree_service.models.tree import Node, TreeNode

logger = logging.getLogger(__name__)


def build_forest(rows: Sequence[Node]) -> List[TreeNode]:
    """Assemble one page of flat rows into a forest.

    Rows are expected in ascending id order. A row whose parent is not on
    the page is returned as a top-level entry for this page only. Roots and
    siblings keep the order in which their rows were encountered.

    Raises:
        EmptyTreeError: the page is empty or produced no top-level entries
    """
    if not rows:
        raise EmptyTreeError("tree not found")

    # Pass 1: every row gets its display node before any linking happens,
    # children may precede their parent in iteration order.
    lookup: Dict[int, TreeNode] = {}
    for row in rows:
        lookup[row.id] = TreeNode(id=row.id, label=row.label)

    effective_parent: Dict[int, Optional[int]] = {
        row.id: row.parent_id if row.parent_id in lookup else None
        for row in rows
    }

    # Pass 2: link children to in-page parents.
    roots: List[TreeNode] = []
    for row in rows:
        node = lookup[row.id]
        parent_id = effective_parent[row.id]

        if parent_id is None:
            roots.append(node)
        elif _closes_cycle(row.id, parent_id, effective_parent):
            logger.warning(f"[TreeBuilder] Cycle through node {row.id}, rendering it top-level")
            effective_parent[row.id] = None
            roots.append(node)
        else:
            lookup[parent_id].add_child(node)

    if not roots:
        raise EmptyTreeError("tree not found")

    return roots


def _closes_cycle(
    node_id: int,
    parent_id: int,
    effective_parent: Dict[int, Optional[int]]
) -> bool:
    seen = set()
    current: Optional[int] = parent_id
    while current is not None:
        if current == node_id:
            return True
        if current in seen:
            # cycle above us that does not include node_id; it is broken
            # when its own members are linked
            return False
        seen.add(current)
        current = effective_parent.get(current)
    return False
