import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Node:
    """Persisted node row."""
    id: int
    label: str
    parent_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "parentId": self.parent_id
        }


@dataclass
class TreeNode:
    """Display node with nested children, built per response."""
    id: int
    label: str
    children: List["TreeNode"] = field(default_factory=list)

    def add_child(self, child: "TreeNode") -> None:
        self.children.append(child)

    @classmethod
    def from_dict(cls, data: dict) -> "TreeNode":
        return cls(
            id=data["id"],
            label=data["label"],
            children=[cls.from_dict(child) for child in data.get("children") or []]
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "children": [child.to_dict() for child in self.children]
        }


@dataclass
class Pagination:
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def compute(cls, page: int, page_size: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / page_size) if total > 0 else 0
        return cls(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Pagination":
        return cls(
            page=data["page"],
            page_size=data["pageSize"],
            total=data["total"],
            total_pages=data["totalPages"],
            has_next=data["hasNext"],
            has_prev=data["hasPrev"]
        )

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "pageSize": self.page_size,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev
        }


@dataclass
class PaginatedResult:
    """One page of the forest plus its pagination envelope.

    `total` counts node rows, not trees. Nodes whose parent sits on another
    page are listed as top-level entries of this page only.
    """
    data: List[TreeNode]
    pagination: Pagination

    @classmethod
    def from_dict(cls, data: dict) -> "PaginatedResult":
        return cls(
            data=[TreeNode.from_dict(node) for node in data.get("data") or []],
            pagination=Pagination.from_dict(data["pagination"])
        )

    def to_dict(self) -> dict:
        return {
            "data": [node.to_dict() for node in self.data],
            "pagination": self.pagination.to_dict()
        }
