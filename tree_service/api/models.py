from pydantic import BaseModel, Field
from typing import List, Optional

from tree_service.config import Config


class CreateNodeRequest(BaseModel):
    label: str = Field(..., min_length=1, max_length=Config.MAX_LABEL_LENGTH)
    parentId: Optional[int] = Field(default=None, gt=0)

class UpdateNodeRequest(BaseModel):
    label: str = Field(..., min_length=1, max_length=Config.MAX_LABEL_LENGTH)
    parentId: Optional[int] = Field(default=None, gt=0)

class NodeResponse(BaseModel):
    id: int
    label: str
    parentId: Optional[int] = None

class TreeNodeResponse(BaseModel):
    id: int
    label: str
    children: List['TreeNodeResponse'] = Field(default_factory=list)

class PaginationInfo(BaseModel):
    page: int
    pageSize: int
    total: int
    totalPages: int
    hasNext: bool
    hasPrev: bool

class PaginatedTreeResponse(BaseModel):
    data: List[TreeNodeResponse]
    pagination: PaginationInfo


TreeNodeResponse.model_rebuild()
