import logging
import os
from contextlib import contextmanager
from typing import Iterator, List, Optional, Set, Tuple

from sqlalchemy import delete, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased, sessionmaker

from tree_service.config import Config
from tree_service.core.errors import InvalidInputError, NodeNotFoundError, StoreUnavailableError
from tree_service.models.tree import Node
from tree_service.repositories.database import Base, NodeTable, create_db_engine
from tree_service.repositories.node_repository import NodeRepository

logger = logging.getLogger(__name__)


class SQLNodeRepository(NodeRepository):
    """Relational node store (SQLite or PostgreSQL) built on SQLAlchemy.

    Every public operation runs in its own transaction; driver errors are
    reported as StoreUnavailableError.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None
    ):
        """
        Args:
            database_url: SQLAlchemy URL (default: Config.DATABASE_URL)
            engine: Pre-built engine, takes precedence over database_url
        """
        self.engine = engine or create_db_engine(
            database_url or Config.DATABASE_URL,
            pool_size=Config.DB_POOL_SIZE,
            max_overflow=Config.DB_MAX_OVERFLOW,
            echo=Config.DB_ECHO,
        )
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    def initialize(self) -> None:
        database = self.engine.url.database
        if self.engine.url.get_backend_name() == "sqlite" and database and database != ":memory:":
            directory = os.path.dirname(database)
            if directory:
                os.makedirs(directory, exist_ok=True)

        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            logger.error(f"[Store] Schema creation failed: {type(e).__name__}")
            raise StoreUnavailableError("Tree store unavailable") from e

    def close(self) -> None:
        self.engine.dispose()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"[Store] Ping failed: {type(e).__name__}")
            return False

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"[Store] Database error: {type(e).__name__}")
            raise StoreUnavailableError("Tree store unavailable") from e

    def create(self, label: str, parent_id: Optional[int] = None) -> int:
        label = self.validate_label(label)

        with self._transaction() as session:
            if parent_id is not None and session.get(NodeTable, parent_id) is None:
                raise NodeNotFoundError(parent_id, "parent node not found")

            row = NodeTable(label=label, parent_id=parent_id)
            session.add(row)
            self._flush_with_parent(session, parent_id)
            return row.id

    def get(self, node_id: int) -> Node:
        with self._transaction() as session:
            row = session.get(NodeTable, node_id)
            if row is None:
                raise NodeNotFoundError(node_id)
            return _to_node(row)

    def list_page(self, page: int, page_size: int) -> Tuple[List[Node], int]:
        with self._transaction() as session:
            total = session.scalar(select(func.count()).select_from(NodeTable)) or 0

            offset = self.page_offset(page, page_size)
            if offset is None or offset >= total:
                return [], total

            rows = session.scalars(
                select(NodeTable)
                .order_by(NodeTable.id)
                .limit(page_size)
                .offset(offset)
            ).all()
            return [_to_node(row) for row in rows], total

    def update(self, node_id: int, label: str, parent_id: Optional[int] = None) -> None:
        label = self.validate_label(label)

        with self._transaction() as session:
            row = session.get(NodeTable, node_id, with_for_update=True)
            if row is None:
                raise NodeNotFoundError(node_id)

            if parent_id is not None:
                if parent_id == node_id:
                    raise InvalidInputError("node cannot be its own parent")
                if session.get(NodeTable, parent_id) is None:
                    raise NodeNotFoundError(parent_id, "parent node not found")
                if parent_id in self._subtree_ids(session, node_id):
                    raise InvalidInputError("parent cannot be a descendant of the node")

            row.label = label
            row.parent_id = parent_id
            self._flush_with_parent(session, parent_id)

    def _flush_with_parent(self, session: Session, parent_id: Optional[int]) -> None:
        """Flush, reporting a parent removed since it was checked as not found."""
        try:
            session.flush()
        except IntegrityError as e:
            if parent_id is None:
                raise
            logger.warning(f"[Store] Parent {parent_id} vanished before write: {type(e).__name__}")
            raise NodeNotFoundError(parent_id, "parent node not found") from e

    def delete(self, node_id: int) -> int:
        with self._transaction() as session:
            if session.get(NodeTable, node_id, with_for_update=True) is None:
                raise NodeNotFoundError(node_id)

            ids = self._subtree_ids(session, node_id)
            session.execute(
                delete(NodeTable)
                .where(NodeTable.id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            return len(ids)

    def _subtree_ids(self, session: Session, node_id: int) -> Set[int]:
        """Ids of the node and every transitive descendant."""
        subtree = (
            select(NodeTable.id)
            .where(NodeTable.id == node_id)
            .cte(name="subtree", recursive=True)
        )
        child = aliased(NodeTable, name="child")
        # UNION drops revisited ids, so cyclic rows cannot recurse forever
        subtree = subtree.union(
            select(child.id).where(child.parent_id == subtree.c.id)
        )
        return set(session.scalars(select(subtree.c.id)))


def _to_node(row: NodeTable) -> Node:
    return Node(id=row.id, label=row.label, parent_id=row.parent_id)
