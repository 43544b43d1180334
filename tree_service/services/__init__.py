"""
Service Layer - 비즈니스 로직 계층

구조:
- TreeService: 페이지 조회, 노드 변경, 캐시 무효화
"""

from .tree_service import TreeService

__all__ = ["TreeService"]
