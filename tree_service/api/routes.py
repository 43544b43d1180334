import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from slowapi import Limiter

from tree_service.config import Config
from tree_service.api.models import (
    CreateNodeRequest, UpdateNodeRequest, NodeResponse, PaginatedTreeResponse
)
from tree_service.core.errors import InvalidInputError, NodeNotFoundError, StoreUnavailableError
from tree_service.services import TreeService


router = APIRouter()
logger = logging.getLogger(__name__)

def get_real_ip(request: Request) -> str:
    TRUSTED_PROXIES = {'127.0.0.1', 'localhost'}

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for and request.client and request.client.host in TRUSTED_PROXIES:
        first_ip = forwarded_for.split(",")[0].strip()
        return first_ip

    return request.client.host if request.client else "unknown"

limiter = Limiter(
    key_func=get_real_ip,
    default_limits=[Config.RATE_LIMIT_DEFAULT],
    enabled=not Config.DISABLE_RATE_LIMIT
)


def get_tree_service(request: Request) -> TreeService:
    return request.app.state.tree_service


def _store_unavailable(e: StoreUnavailableError) -> HTTPException:
    logger.error(f"[Tree] Store unavailable: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Tree store unavailable"
    )


@router.get("/tree", response_model=PaginatedTreeResponse)
def get_tree(
    page: int = Query(1, ge=1),
    page_size: int = Query(Config.DEFAULT_PAGE_SIZE, alias="pageSize", ge=1, le=Config.MAX_PAGE_SIZE),
    service: TreeService = Depends(get_tree_service)
) -> Dict[str, Any]:
    """List one page of the forest.

    Nodes whose parent is on a different page are returned as top-level
    entries of this page; they are not necessarily roots of the forest.
    """
    try:
        result = service.get_page(page, page_size)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    return result.to_dict()


@router.get("/tree/{node_id}", response_model=NodeResponse)
def get_node(node_id: int, service: TreeService = Depends(get_tree_service)) -> Dict[str, Any]:
    try:
        node = service.get_node(node_id)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    return node.to_dict()


@router.post("/tree", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(Config.RATE_LIMIT_WRITE)
def create_node(
    request: Request,
    req: CreateNodeRequest,
    service: TreeService = Depends(get_tree_service)
) -> Dict[str, Any]:
    logger.info(f"[Tree] Create request - parentId: {req.parentId}")

    try:
        node = service.create_node(req.label, req.parentId)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NodeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    return node.to_dict()


@router.put("/tree/{node_id}", response_model=NodeResponse)
@limiter.limit(Config.RATE_LIMIT_WRITE)
def update_node(
    request: Request,
    node_id: int,
    req: UpdateNodeRequest,
    service: TreeService = Depends(get_tree_service)
) -> Dict[str, Any]:
    logger.info(f"[Tree] Update request - id: {node_id}, parentId: {req.parentId}")

    try:
        node = service.update_node(node_id, req.label, req.parentId)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NodeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    return node.to_dict()


@router.delete("/tree/{node_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(Config.RATE_LIMIT_WRITE)
def delete_node(
    request: Request,
    node_id: int,
    service: TreeService = Depends(get_tree_service)
) -> Response:
    logger.info(f"[Tree] Delete request - id: {node_id}")

    try:
        service.delete_node(node_id)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/cache/stats")
def get_cache_stats(service: TreeService = Depends(get_tree_service)):
    return {"status": "success", "cache_stats": service.cache_stats()}

@router.post("/cache/clear")
def clear_cache(service: TreeService = Depends(get_tree_service)):
    service.clear_cache()
    return {"status": "success", "message": "Cache cleared successfully"}
