"""Soft Delete feature: mark rows deleted with a timestamp instead of removing them"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from relation_restore.features.base_feature import RepositoryFeature
from relation_restore.query_builder import QueryBuilder


class TrashedMode(str, Enum):
    """Which rows a soft-delete aware query scans"""

    EXCLUDE = "exclude"
    INCLUDE = "include"
    ONLY = "only"


class SoftDeleteFeature(RepositoryFeature):
    """
    Feature that adds soft delete functionality to repositories.

    This feature:
    - Adds the timestamp column (default 'deleted_at') to entities
    - Turns delete() into an UPDATE of that column
    - Filters out soft-deleted records in queries by default

    Usage:
        config = RepositoryConfig(features=[SoftDeleteFeature()])
        repo = Repository(Comment, update_class=CommentUpdate, table_name="comments", config=config)

        await repo.delete(id)                  # sets deleted_at
        await repo.force_delete(id)            # removes the row
        await repo.restore(id)                 # clears deleted_at
        await repo.with_trashed().get()        # include soft-deleted
        await repo.only_trashed().get()        # only soft-deleted
    """

    def __init__(self, column: str = "deleted_at"):
        self.column = column

    @staticmethod
    def deletion_timestamp() -> datetime:
        return datetime.now(UTC)

    def before_create(self, data: dict[str, Any]) -> dict[str, Any]:
        """New entities start out not deleted unless explicitly given a timestamp"""
        data.setdefault(self.column, None)
        return data

    def augment_entity_class(self, entity_class: type[BaseModel]) -> type[BaseModel]:
        return self._add_field(
            entity_class, "WithSoftDelete", self.column, datetime | None
        )

    def apply_query_filters(
        self, builder: QueryBuilder, mode: TrashedMode
    ) -> QueryBuilder:
        """Restrict the scan according to the trashed mode"""
        if mode is TrashedMode.ONLY:
            return builder.scope(f"{self.column} IS NOT NULL")
        if mode is TrashedMode.EXCLUDE:
            return builder.scope(f"{self.column} IS NULL")
        return builder

    def is_trashed(self, entity: BaseModel) -> bool:
        return getattr(entity, self.column, None) is not None
