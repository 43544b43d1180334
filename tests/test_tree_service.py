"""
Tests for the read path (cache probe, store, builder) and write-path invalidation.
"""
import pytest
from unittest.mock import MagicMock

from tree_service.core.errors import (
    CacheDegradedError, InvalidInputError, NodeNotFoundError, StoreUnavailableError
)
from tree_service.services import TreeService
from tree_service.utils.cache import MemoryCacheProvider


class TestGetPage:

    def test_empty_store_returns_empty_page(self, tree_service):
        result = tree_service.get_page(1, 10)

        assert result.data == []
        assert result.pagination.to_dict() == {
            "page": 1, "pageSize": 10, "total": 0,
            "totalPages": 0, "hasNext": False, "hasPrev": False
        }

    def test_builds_forest(self, tree_service):
        root = tree_service.create_node("root")
        child = tree_service.create_node("child", root.id)

        result = tree_service.get_page(1, 10)

        assert [n.to_dict() for n in result.data] == [{
            "id": root.id, "label": "root",
            "children": [{"id": child.id, "label": "child", "children": []}]
        }]
        assert result.pagination.total == 2

    def test_pagination_fields(self, tree_service):
        for i in range(25):
            tree_service.create_node(f"n{i}")

        middle = tree_service.get_page(2, 10).pagination

        assert middle.total_pages == 3
        assert middle.has_next is True
        assert middle.has_prev is True
        assert tree_service.get_page(3, 10).pagination.has_next is False

    def test_page_beyond_total(self, tree_service):
        tree_service.create_node("only")

        result = tree_service.get_page(999, 10)

        assert result.data == []
        assert result.pagination.total == 1
        assert result.pagination.has_prev is True

    def test_orphan_on_second_page(self, tree_service):
        root = tree_service.create_node("root")
        tree_service.create_node("sibling")
        child = tree_service.create_node("child", root.id)

        second = tree_service.get_page(2, 2)

        assert [n.id for n in second.data] == [child.id]

    @pytest.mark.parametrize("page,page_size", [(0, 10), (-1, 10), (1, 0), (1, 101)])
    def test_rejects_out_of_range(self, tree_service, page, page_size):
        with pytest.raises(InvalidInputError):
            tree_service.get_page(page, page_size)

    def test_max_page_size_accepted(self, tree_service):
        assert tree_service.get_page(1, 100).pagination.page_size == 100


class TestCaching:

    def test_second_read_served_from_cache(self, sql_repository, cache):
        repo = MagicMock(wraps=sql_repository)
        service = TreeService(repo, cache)
        sql_repository.create("root")

        first = service.get_page(1, 10)
        second = service.get_page(1, 10)

        assert repo.list_page.call_count == 1
        assert first.to_dict() == second.to_dict()

    def test_other_page_size_recomputes(self, sql_repository, cache):
        repo = MagicMock(wraps=sql_repository)
        service = TreeService(repo, cache)

        service.get_page(1, 10)
        service.get_page(1, 20)

        assert repo.list_page.call_count == 2

    @pytest.mark.parametrize("mutation", ["create", "update", "delete"])
    def test_mutation_invalidates_every_page(self, tree_service, cache, mutation):
        node = tree_service.create_node("a")
        tree_service.get_page(1, 10)
        tree_service.get_page(2, 10)
        assert cache.get(1, 10) is not None

        if mutation == "create":
            tree_service.create_node("b")
        elif mutation == "update":
            tree_service.update_node(node.id, "renamed")
        else:
            tree_service.delete_node(node.id)

        assert cache.get(1, 10) is None
        assert cache.get(2, 10) is None

    def test_read_after_write_is_fresh(self, tree_service):
        node = tree_service.create_node("old")
        tree_service.get_page(1, 10)

        tree_service.update_node(node.id, "new")

        assert tree_service.get_page(1, 10).data[0].label == "new"

    def test_failed_mutation_keeps_cache(self, tree_service, cache):
        tree_service.create_node("a")
        tree_service.get_page(1, 10)

        with pytest.raises(NodeNotFoundError):
            tree_service.delete_node(999)

        assert cache.get(1, 10) is not None

    def test_ttl_expiry_recomputes(self, sql_repository, cache, clock):
        repo = MagicMock(wraps=sql_repository)
        service = TreeService(repo, cache)

        service.get_page(1, 10)
        clock.advance(61)
        service.get_page(1, 10)

        assert repo.list_page.call_count == 2

    def test_degraded_cache_is_absorbed(self, sql_repository):
        broken = MagicMock(spec=MemoryCacheProvider)
        broken.get.side_effect = CacheDegradedError("down")
        broken.put.side_effect = CacheDegradedError("down")
        broken.invalidate_all.side_effect = CacheDegradedError("down")
        service = TreeService(sql_repository, broken)

        node = service.create_node("root")
        result = service.get_page(1, 10)

        assert result.data[0].id == node.id

    def test_store_failure_propagates(self, cache):
        repo = MagicMock()
        repo.list_page.side_effect = StoreUnavailableError("down")
        service = TreeService(repo, cache)

        with pytest.raises(StoreUnavailableError):
            service.get_page(1, 10)
        assert cache.get(1, 10) is None


class TestMutations:

    def test_delete_cascade(self, tree_service):
        a = tree_service.create_node("A")
        b = tree_service.create_node("B", a.id)
        c = tree_service.create_node("C", b.id)

        assert tree_service.delete_node(a.id) == 3
        with pytest.raises(NodeNotFoundError):
            tree_service.get_node(c.id)

    def test_create_with_missing_parent(self, tree_service):
        with pytest.raises(NodeNotFoundError):
            tree_service.create_node("child", 12345)
