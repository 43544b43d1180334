"""
Tree Service - read and write paths for the node forest

책임:
- 페이지 단위 트리 조회 (cache probe -> store -> tree builder -> cache put)
- 노드 생성/수정/삭제 후 전체 캐시 무효화
"""

import logging
from typing import Any, Dict, Optional

from tree_service.config import Config
from tree_service.core.errors import CacheDegradedError, EmptyTreeError, InvalidInputError
from tree_service.core.tree_builder import build_forest
from tree_service.models.tree import Node, PaginatedResult, Pagination
from tree_service.repositories.node_repository import NodeRepository
from tree_service.utils.cache import CacheProvider

logger = logging.getLogger(__name__)


class TreeService:
    """Coordinates the node store and the paginated cache.

    Any successful mutation invalidates every cached page: with offset
    pagination a single insert or delete shifts rows across all later pages.
    """

    def __init__(
        self,
        repository: NodeRepository,
        cache: CacheProvider,
        max_page_size: int = Config.MAX_PAGE_SIZE
    ):
        """
        Args:
            repository: 노드 저장소
            cache: 페이지 캐시 (테스트에서 교체 가능)
            max_page_size: 허용되는 최대 pageSize
        """
        self.repository = repository
        self.cache = cache
        self.max_page_size = max_page_size

    def validate_pagination(self, page: int, page_size: int) -> None:
        if page < 1:
            raise InvalidInputError("page must be greater than 0")
        if page_size <= 0:
            raise InvalidInputError("page size must be greater than 0")
        if page_size > self.max_page_size:
            raise InvalidInputError(f"page size cannot exceed {self.max_page_size}")

    def get_page(self, page: int = 1, page_size: int = Config.DEFAULT_PAGE_SIZE) -> PaginatedResult:
        self.validate_pagination(page, page_size)

        cached = self._cache_get(page, page_size)
        if cached is not None:
            logger.debug(f"[Tree] Cache hit page={page} pageSize={page_size}")
            return cached

        logger.debug(f"[Tree] Cache miss page={page} pageSize={page_size}")
        rows, total = self.repository.list_page(page, page_size)

        try:
            data = build_forest(rows)
        except EmptyTreeError:
            data = []

        result = PaginatedResult(
            data=data,
            pagination=Pagination.compute(page, page_size, total)
        )
        self._cache_put(page, page_size, result)
        return result

    def get_node(self, node_id: int) -> Node:
        return self.repository.get(node_id)

    def create_node(self, label: str, parent_id: Optional[int] = None) -> Node:
        node_id = self.repository.create(label, parent_id)
        self._invalidate()
        logger.info(f"[Tree] Created node {node_id} (parent={parent_id})")
        return Node(id=node_id, label=label, parent_id=parent_id)

    def update_node(self, node_id: int, label: str, parent_id: Optional[int] = None) -> Node:
        self.repository.update(node_id, label, parent_id)
        self._invalidate()
        logger.info(f"[Tree] Updated node {node_id} (parent={parent_id})")
        return Node(id=node_id, label=label, parent_id=parent_id)

    def delete_node(self, node_id: int) -> int:
        removed = self.repository.delete(node_id)
        self._invalidate()
        logger.info(f"[Tree] Deleted node {node_id} and {removed - 1} descendant(s)")
        return removed

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self._invalidate()

    def _cache_get(self, page: int, page_size: int) -> Optional[PaginatedResult]:
        try:
            return self.cache.get(page, page_size)
        except CacheDegradedError as e:
            logger.warning(f"[Tree] Cache degraded on read: {e}")
            return None

    def _cache_put(self, page: int, page_size: int, result: PaginatedResult) -> None:
        try:
            self.cache.put(page, page_size, result)
        except CacheDegradedError as e:
            logger.warning(f"[Tree] Cache degraded on write: {e}")

    def _invalidate(self) -> None:
        try:
            self.cache.invalidate_all()
        except CacheDegradedError as e:
            logger.warning(f"[Tree] Cache degraded on invalidation: {e}")
