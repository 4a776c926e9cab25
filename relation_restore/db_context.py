import logging
import traceback
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import wraps
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)

# One connection per context; nested transactions reuse it as savepoints
_current_connection: ContextVar[asyncpg.Connection | None] = ContextVar(
    "current_connection", default=None
)
_db_pools: dict[str, asyncpg.Pool] = {}


@dataclass
class QueryLog:
    """A statement recorded by a QueryTracker"""

    query: str
    params: list[Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    stack_trace: str | None = None


@dataclass
class QueryTracker:
    """Statements executed while `enabled` is set"""

    enabled: bool = False
    queries: list[QueryLog] = field(default_factory=list)

    def record(self, query: str, params: list[Any], stack_trace: str | None = None):
        if self.enabled:
            self.queries.append(QueryLog(query, list(params), stack_trace=stack_trace))

    def get_queries(self) -> list[QueryLog]:
        return list(self.queries)

    def count(self) -> int:
        return len(self.queries)


_query_tracker: ContextVar[QueryTracker | None] = ContextVar(
    "query_tracker", default=None
)


@contextmanager
def _bind(var: ContextVar, value: Any):
    token = var.set(value)
    try:
        yield value
    finally:
        var.reset(token)


class DatabaseManager:
    """Registry of asyncpg pools and owner of the per-context connection"""

    @classmethod
    async def add_pool(cls, name: str, pool: asyncpg.Pool):
        """Register a pool under a name"""
        _db_pools[name] = pool

    @classmethod
    async def get_pool(cls, name: str = "default") -> asyncpg.Pool:
        """Get a registered pool.

        Raises:
            ValueError: if no pool was registered under that name
        """
        try:
            return _db_pools[name]
        except KeyError:
            raise ValueError(f"Database pool '{name}' not found") from None

    @classmethod
    def get_current_connection(cls) -> asyncpg.Connection | None:
        """Connection of the enclosing transaction, if any"""
        return _current_connection.get()

    @classmethod
    def get_query_tracker(cls) -> QueryTracker | None:
        """Tracker of the enclosing track_queries() block, if any"""
        return _query_tracker.get()

    @classmethod
    def log_query(cls, query: str, params: list[Any]):
        """Hand a statement to the active tracker, with the caller's stack"""
        tracker = _query_tracker.get()
        if tracker is None or not tracker.enabled:
            return
        # Drop this frame and the two DatabaseOperations frames
        stack = traceback.format_list(traceback.extract_stack()[:-3])
        tracker.record(query, params, "".join(stack))

    @classmethod
    @asynccontextmanager
    async def transaction(cls, db_name: str = "default", track_queries: bool = False):
        """Run the block inside a transaction.

        Inside an existing transaction the same connection is reused and a
        nested transaction (savepoint) is opened. Otherwise a connection is
        acquired from the named pool and released when the block exits.

        Args:
            db_name: Name of the registered pool
            track_queries: Track the statements of this transaction
        """
        outer = _current_connection.get()
        if outer is not None:
            async with outer.transaction():
                yield outer
            return

        pool = await cls.get_pool(db_name)
        async with pool.acquire() as conn, conn.transaction():
            logger.debug("Opened transaction on pool %r", db_name)
            with _bind(_current_connection, conn):
                if track_queries and _query_tracker.get() is None:
                    with _bind(_query_tracker, QueryTracker(enabled=True)):
                        yield conn
                else:
                    yield conn

    @classmethod
    @asynccontextmanager
    async def track_queries(cls):
        """Track every statement executed inside the block.

        An enclosing tracker is reused and switched on for the block.

        async with DatabaseManager.transaction():
            async with DatabaseManager.track_queries() as tracker:
                await comment_repo.auto_remove(comment_id, PARENT_REMOVED)
                assert tracker.count() == 2
        """
        tracker = _query_tracker.get()
        if tracker is None:
            with _bind(_query_tracker, QueryTracker(enabled=True)) as tracker:
                yield tracker
            return

        was_enabled, tracker.enabled = tracker.enabled, True
        try:
            yield tracker
        finally:
            tracker.enabled = was_enabled


def transactional(db_name: str = "default", query_logs: bool = False):
    """Run the decorated coroutine inside DatabaseManager.transaction().

    Example:
        @transactional()
        async def remove_post(post_id):
            await comment_repo.where("post_id", post_id).auto_remove_all(PARENT_REMOVED)
            return await post_repo.delete(post_id)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            async with DatabaseManager.transaction(db_name, track_queries=query_logs):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
