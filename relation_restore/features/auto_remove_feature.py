"""Auto-remove feature: tag automatic soft deletions with a reason code"""

from typing import Any

from pydantic import BaseModel

from relation_restore.features.base_feature import RepositoryFeature
from relation_restore.query_builder import QueryBuilder


class AutoRemoveFeature(RepositoryFeature):
    """
    Distinguishes automatic soft deletions from manual ones.

    A record is auto-removed when it is soft-deleted AND carries a non-null
    code in the auto-remove column. A soft-deleted record without a code was
    deleted manually. Requires SoftDeleteFeature in the same config.

    Usage:
        PARENT_REMOVED = 1

        config = RepositoryConfig(
            features=[SoftDeleteFeature(), AutoRemoveFeature(default_code=PARENT_REMOVED)]
        )
        comments = Repository(Comment, update_class=CommentUpdate, table_name="comments", config=config)

        await comments.auto_remove(comment_id, PARENT_REMOVED)
        await comments.only_auto_removed(PARENT_REMOVED).get()
        await comments.auto_restore(comment_id)

    Args:
        column: name of the auto-remove code column
        default_code: code reported by get_auto_remove() when a record has none
    """

    def __init__(self, column: str = "auto_remove", default_code: int | None = None):
        self.column = column
        self.default_code = default_code

    def before_create(self, data: dict[str, Any]) -> dict[str, Any]:
        data.setdefault(self.column, None)
        return data

    def augment_entity_class(self, entity_class: type[BaseModel]) -> type[BaseModel]:
        return self._add_field(entity_class, "WithAutoRemove", self.column, int | None)

    def _match_code(self, builder: QueryBuilder, code: int | None) -> QueryBuilder:
        if code is None:
            return builder.where_not_null(self.column)
        return builder.where(self.column, code)

    def with_auto_removed(
        self, builder: QueryBuilder, deleted_at_column: str, code: int | None = None
    ) -> QueryBuilder:
        """Live rows plus rows auto-removed with `code` (any code when None).

        The caller must also include trashed rows in the scan.
        """
        return builder.scope(
            lambda group: self._match_code(
                group.where_not_null(deleted_at_column), code
            ).or_where_null(deleted_at_column)
        )

    def only_auto_removed(
        self, builder: QueryBuilder, code: int | None = None
    ) -> QueryBuilder:
        """Rows with a code (or exactly `code`); pair with the only-trashed mode"""
        return builder.scope(lambda group: self._match_code(group, code))

    def only_not_auto_removed(self, builder: QueryBuilder) -> QueryBuilder:
        """Rows without a code; pair with the only-trashed mode"""
        return builder.scope(f"{self.column} IS NULL")

    def is_auto_removed(self, entity: BaseModel, deleted_at_column: str) -> bool:
        return (
            getattr(entity, deleted_at_column, None) is not None
            and getattr(entity, self.column, None) is not None
        )

    def get_auto_remove(self, entity: BaseModel) -> int | None:
        """The entity's own code, falling back to the configured default"""
        code = getattr(entity, self.column, None)
        return code if code is not None else self.default_code
