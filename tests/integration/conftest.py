"""
Fixtures for tests against a real PostgreSQL started with testcontainers.

Skipped when no Docker daemon is reachable.
"""

import asyncpg
import pytest
import pytest_asyncio
from docker.errors import DockerException
from testcontainers.postgres import PostgresContainer

from relation_restore.db_context import DatabaseManager
from relation_restore.features import AutoRemoveFeature, SoftDeleteFeature
from relation_restore.repository import Repository, RepositoryConfig
from tests.comment_entities import PARENT_REMOVED, Comment, CommentUpdate


@pytest.fixture(scope="session")
def postgres_container():
    """Start a PostgreSQL test container for the session."""
    try:
        container = PostgresContainer("postgres:17")
        container.start()
    except DockerException as exc:
        pytest.skip(f"Docker is not available: {exc}")

    try:
        yield container
    finally:
        container.stop()


@pytest_asyncio.fixture
async def test_db_pool(postgres_container):
    """Fresh pool and comments table for each test."""
    host = postgres_container.get_container_host_ip()
    port = postgres_container.get_exposed_port(5432)
    dsn = f"postgresql://{postgres_container.username}:{postgres_container.password}@{host}:{port}/{postgres_container.dbname}"

    # A pool per test avoids sharing connections across event loops
    pool = await asyncpg.create_pool(dsn, min_size=1, max_size=5)

    async with pool.acquire() as conn:
        await conn.execute("DROP TABLE IF EXISTS comments")
        await conn.execute(
            """
            CREATE TABLE comments (
                id UUID PRIMARY KEY,
                post_id UUID NOT NULL,
                body TEXT NOT NULL,
                deleted_at TIMESTAMP WITH TIME ZONE,
                auto_remove INTEGER CHECK (auto_remove > 0)
            )
        """
        )

    await DatabaseManager.add_pool("test_db", pool)

    yield pool

    async with pool.acquire() as conn:
        await conn.execute("DROP TABLE IF EXISTS comments")
    await pool.close()


@pytest.fixture
def comments(test_db_pool):
    """Repository with soft delete and auto-remove over the real table"""
    return Repository(
        entity_schema_class=Comment,
        update_class=CommentUpdate,
        table_name="comments",
        config=RepositoryConfig(
            features=[SoftDeleteFeature(), AutoRemoveFeature(default_code=PARENT_REMOVED)]
        ),
    )
