import logging
from typing import Any

import asyncpg

from relation_restore.db_context import DatabaseManager

logger = logging.getLogger(__name__)


class DatabaseOperations:
    """Executes statements on the connection of the current transaction"""

    @staticmethod
    def get_connection() -> asyncpg.Connection:
        conn = DatabaseManager.get_current_connection()
        if not conn:
            raise ValueError(
                "No active transaction found. Repository methods must be called within a transaction context."
            )
        return conn

    @staticmethod
    def _record(query: str, params: list[Any]) -> None:
        logger.debug("SQL: %s | params=%r", query, params)
        DatabaseManager.log_query(query, params)

    async def fetch_all(self, query: str, params: list[Any]) -> list[Any]:
        conn = self.get_connection()
        self._record(query, params)
        return await conn.fetch(query, *params)

    async def fetch_one(self, query: str, params: list[Any]) -> Any:
        conn = self.get_connection()
        self._record(query, params)
        return await conn.fetchrow(query, *params)

    async def fetch_value(self, query: str, params: list[Any]) -> Any:
        conn = self.get_connection()
        self._record(query, params)
        return await conn.fetchval(query, *params)

    async def execute_query(self, query: str, params: list[Any]) -> str:
        """Execute a statement and return asyncpg's status string (e.g. 'UPDATE 1')"""
        conn = self.get_connection()
        self._record(query, params)
        return await conn.execute(query, *params)
