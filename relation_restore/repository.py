"""Repository class"""

import copy
import logging
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

from relation_restore.database_operations import DatabaseOperations
from relation_restore.db_context import DatabaseManager
from relation_restore.entity_mapper import EntityMapper
from relation_restore.exceptions import (
    FeatureConfigurationError,
    FeatureNotEnabledError,
)
from relation_restore.features import (
    AutoRemoveFeature,
    RepositoryFeature,
    SoftDeleteFeature,
    TrashedMode,
)
from relation_restore.query_builder import QueryBuilder

logger = logging.getLogger(__name__)

T_schema = TypeVar("T_schema", bound=BaseModel)  # Stored entity (includes feature columns)
T_domain = TypeVar("T_domain", bound=BaseModel)  # Domain/business entity
U = TypeVar("U", bound=BaseModel)  # Update model type
F = TypeVar("F", bound=RepositoryFeature)


class RepositoryConfig(BaseModel):
    """Configuration options for Repository"""

    model_config = {"arbitrary_types_allowed": True}

    db_schema: str | None = Field(default=None, description="Database schema name")
    features: list[RepositoryFeature] = Field(
        default_factory=list, description="Features enabled for this repository"
    )


class Repository(Generic[T_schema, T_domain, U]):
    """Repository over one table, with a fluent immutable query interface.

    Fluent methods (where, with_trashed, only_auto_removed, ...) return a new
    repository; the async methods execute on the connection of the current
    DatabaseManager.transaction().

    Type Parameters:
        T_schema: Database schema entity (augmented with feature columns)
        T_domain: Domain/business entity (what users work with)
        U: Update model type
    """

    def __init__(
        self,
        entity_schema_class: type[T_schema],
        entity_domain_class: type[T_domain] | None = None,
        update_class: type[U] | None = None,
        table_name: str | None = None,
        config: RepositoryConfig | None = None,
    ):
        if entity_schema_class is None:
            raise ValueError("entity_schema_class is required")
        if table_name is None:
            raise ValueError("table_name is required")
        if update_class is None:
            raise ValueError("update_class is required")

        self.config = config or RepositoryConfig()
        self.features = list(self.config.features)
        self._soft_delete = self._find_feature(SoftDeleteFeature)
        self._auto_remove = self._find_feature(AutoRemoveFeature)
        if self._auto_remove and not self._soft_delete:
            raise FeatureConfigurationError(
                "AutoRemoveFeature requires SoftDeleteFeature in the same config"
            )

        for feature in self.features:
            entity_schema_class = feature.augment_entity_class(entity_schema_class)

        # Schema doubles as the domain entity unless a separate class is given
        if entity_domain_class is None:
            entity_domain_class = entity_schema_class  # type: ignore[assignment]

        self.entity_schema_class = entity_schema_class
        self.entity_domain_class = entity_domain_class
        self.update_class = update_class
        self.table_name = table_name
        self._qualified_table_name = (
            f"{self.config.db_schema}.{table_name}"
            if self.config.db_schema
            else table_name
        )
        self._query_builder: QueryBuilder | None = None
        self._trashed = TrashedMode.EXCLUDE

        self.db_ops = DatabaseOperations()
        self.entity_mapper = EntityMapper(entity_schema_class)

    def _find_feature(self, feature_class: type[F]) -> F | None:
        for feature in self.features:
            if isinstance(feature, feature_class):
                return feature
        return None

    def _require_soft_delete(self, operation: str) -> SoftDeleteFeature:
        if self._soft_delete is None:
            raise FeatureNotEnabledError("SoftDeleteFeature", operation)
        return self._soft_delete

    def _require_auto_remove(self, operation: str) -> AutoRemoveFeature:
        if self._auto_remove is None:
            raise FeatureNotEnabledError("AutoRemoveFeature", operation)
        return self._auto_remove

    def to_domain_entity(self, schema_entity: T_schema) -> T_domain:
        """Convert schema entity to domain entity.

        Override in subclasses to customize the mapping from storage to domain.
        """
        if self.entity_schema_class == self.entity_domain_class:
            return schema_entity  # type: ignore[return-value]
        return self.entity_domain_class(**schema_entity.model_dump())  # type: ignore[return-value]

    def _get_or_create_query_builder(self) -> QueryBuilder:
        if self._query_builder is None:
            return QueryBuilder(self._qualified_table_name)
        return self._query_builder

    def _clone_with_query_builder(
        self, query_builder: QueryBuilder, trashed: TrashedMode | None = None
    ) -> "Repository[T_schema, T_domain, U]":
        """Shallow copy sharing config and operations, with a new builder"""
        new_repo = copy.copy(self)
        new_repo._query_builder = query_builder
        if trashed is not None:
            new_repo._trashed = trashed
        return new_repo

    def _scoped_builder(self) -> QueryBuilder:
        """Current builder with the soft delete filter for the trashed mode"""
        builder = self._get_or_create_query_builder()
        if self._soft_delete:
            builder = self._soft_delete.apply_query_filters(builder, self._trashed)
        return builder

    @staticmethod
    def _affected_rows(status: str) -> int:
        """Row count from an asyncpg status string such as 'UPDATE 3'"""
        return int(status.split()[-1])

    # Fluent query methods that return a new repository instance
    def select(self, *fields: str) -> "Repository[T_schema, T_domain, U]":
        """Set the SELECT fields; get() then returns plain dicts."""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().select(*fields)
        )

    def where(self, field: Any, *args: Any) -> "Repository[T_schema, T_domain, U]":
        """Add a WHERE condition: where(field, value) or where(field, operator, value)"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where(field, *args)
        )

    def or_where(self, field: Any, *args: Any) -> "Repository[T_schema, T_domain, U]":
        """Add an OR WHERE condition: or_where(field, value) or or_where(field, operator, value)"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().or_where(field, *args)
        )

    def where_null(self, field: Any) -> "Repository[T_schema, T_domain, U]":
        """Add a WHERE field IS NULL condition"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where_null(field)
        )

    def where_not_null(self, field: Any) -> "Repository[T_schema, T_domain, U]":
        """Add a WHERE field IS NOT NULL condition"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where_not_null(field)
        )

    def where_in(self, field: Any, values: list) -> "Repository[T_schema, T_domain, U]":
        """Add a WHERE field IN (...) condition"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where_in(field, values)
        )

    def where_not_in(
        self, field: Any, values: list
    ) -> "Repository[T_schema, T_domain, U]":
        """Add a WHERE field NOT IN (...) condition"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where_not_in(field, values)
        )

    def order_by(self, field: Any) -> "Repository[T_schema, T_domain, U]":
        """Order ascending by a field; chain for several fields"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().order_by(field)
        )

    def order_by_desc(self, field: Any) -> "Repository[T_schema, T_domain, U]":
        """Order descending by a field; chain for several fields"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().order_by_desc(field)
        )

    def limit(self, count: int) -> "Repository[T_schema, T_domain, U]":
        """Limit the number of returned records"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().limit(count)
        )

    def offset(self, count: int) -> "Repository[T_schema, T_domain, U]":
        """Skip the first `count` records"""
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().offset(count)
        )

    def paginate(
        self, page: int, per_page: int = 10
    ) -> "Repository[T_schema, T_domain, U]":
        """Return one 1-based page of `per_page` records.

        Raises:
            ValueError: if page or per_page is smaller than 1
        """
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().paginate(page, per_page)
        )

    # Soft delete scopes
    def with_trashed(self) -> "Repository[T_schema, T_domain, U]":
        """Include soft-deleted records in query results"""
        self._require_soft_delete("with_trashed")
        return self._clone_with_query_builder(
            self._get_or_create_query_builder(), trashed=TrashedMode.INCLUDE
        )

    def only_trashed(self) -> "Repository[T_schema, T_domain, U]":
        """Only return soft-deleted records"""
        self._require_soft_delete("only_trashed")
        return self._clone_with_query_builder(
            self._get_or_create_query_builder(), trashed=TrashedMode.ONLY
        )

    # Auto-remove scopes
    def with_auto_removed(
        self, code: int | None = None
    ) -> "Repository[T_schema, T_domain, U]":
        """Live records plus records auto-removed with `code` (any code when None).

        Manually deleted records stay hidden.
        """
        auto_remove = self._require_auto_remove("with_auto_removed")
        builder = auto_remove.with_auto_removed(
            self._get_or_create_query_builder(), self._soft_delete.column, code
        )
        return self._clone_with_query_builder(builder, trashed=TrashedMode.INCLUDE)

    def only_auto_removed(
        self, code: int | None = None
    ) -> "Repository[T_schema, T_domain, U]":
        """Only records auto-removed with `code` (any code when None)"""
        auto_remove = self._require_auto_remove("only_auto_removed")
        builder = auto_remove.only_auto_removed(
            self._get_or_create_query_builder(), code
        )
        return self._clone_with_query_builder(builder, trashed=TrashedMode.ONLY)

    def only_not_auto_removed(self) -> "Repository[T_schema, T_domain, U]":
        """Only soft-deleted records without an auto-remove code (manual deletions)"""
        auto_remove = self._require_auto_remove("only_not_auto_removed")
        builder = auto_remove.only_not_auto_removed(
            self._get_or_create_query_builder()
        )
        return self._clone_with_query_builder(builder, trashed=TrashedMode.ONLY)

    # Execution methods for fluent queries
    async def get(self) -> list[T_domain]:
        """Execute the query and return all matching entities as domain entities"""
        builder = self._scoped_builder()
        query, params = builder.build()
        rows = await self.db_ops.fetch_all(query, params)

        # Custom SELECT fields return raw rows as dictionaries
        if builder.select_fields.strip() != "*":
            return [dict(row) for row in rows]  # type: ignore[return-value]

        return [
            self.to_domain_entity(schema_entity)
            for schema_entity in self.entity_mapper.map_rows_to_entities(rows)
        ]

    async def first(self) -> T_domain | None:
        """Execute the query and return the first matching domain entity"""
        query, params = self._scoped_builder().limit(1).build()
        row = await self.db_ops.fetch_one(query, params)
        if row:
            return self.to_domain_entity(self.entity_mapper.map_row_to_entity(row))
        return None

    async def count(self) -> int:
        """Execute the query and return the count of matching records"""
        query, params = self._scoped_builder().select("COUNT(*)").build()
        result = await self.db_ops.fetch_value(query, params)
        return result or 0

    async def exists(self) -> bool:
        """Whether the query matches at least one record"""
        return await self.count() > 0

    def to_sql(self) -> str:
        """Return the SQL the query would execute, soft delete filters included"""
        return self._scoped_builder().to_sql()

    def build(self) -> tuple[str, list[Any]]:
        """Return the SQL and parameters the query would execute"""
        return self._scoped_builder().build()

    @staticmethod
    def get_query_tracker():
        """The active QueryTracker, or None when tracking is off"""
        return DatabaseManager.get_query_tracker()

    # CRUD operations
    async def find_by_id(self, entity_id: UUID) -> T_domain | None:
        """Find one entity by ID within the current query and trashed mode"""
        return await self.where("id", str(entity_id)).first()

    async def create(self, entity: T_domain) -> T_domain:
        """Insert a domain entity; features fill in their columns"""
        fields = entity.model_dump()
        for feature in self.features:
            fields = feature.before_create(fields)

        # Only persist columns that exist in the schema definition
        schema_field_names = set(self.entity_schema_class.model_fields)
        fields = {k: v for k, v in fields.items() if k in schema_field_names}

        columns = ", ".join(fields.keys())
        values = list(fields.values())
        placeholders = ", ".join(f"${i + 1}" for i in range(len(values)))

        await self.db_ops.execute_query(
            f"INSERT INTO {self._qualified_table_name} ({columns}) VALUES ({placeholders})",
            values,
        )

        return self.to_domain_entity(self.entity_schema_class(**fields))

    async def _save_columns(self, entity_id: UUID, values: dict[str, Any]) -> bool:
        """Write the given columns of one row, regardless of its trashed state"""
        set_clause = ", ".join(f"{column} = ${i + 2}" for i, column in enumerate(values))
        result = await self.db_ops.execute_query(
            f"UPDATE {self._qualified_table_name} SET {set_clause} WHERE id = $1",
            [str(entity_id), *values.values()],
        )
        return result != "UPDATE 0"

    async def update(self, entity_id: UUID, update_data: U) -> T_domain | None:
        """Update the fields explicitly set on update_data and return the entity"""
        # exclude_unset keeps explicit None values (clearing a column)
        update_dict = update_data.model_dump(exclude_unset=True)
        if update_dict:
            await self._save_columns(entity_id, update_dict)
        return await self.find_by_id(entity_id)

    async def delete(self, entity_id: UUID | None = None) -> bool | int:
        """
        Delete entity by ID or delete all records matching the current query.

        - repo.delete(id) -> Delete a single entity by ID, returns bool
        - repo.where(...).delete() -> Delete all matching records, returns count

        Performs a soft delete if SoftDeleteFeature is enabled, hard delete otherwise.
        """
        if entity_id is not None:
            if self._soft_delete:
                return await self._save_columns(
                    entity_id,
                    {self._soft_delete.column: self._soft_delete.deletion_timestamp()},
                )
            return await self.force_delete(entity_id)

        if (
            self._query_builder is None
            or not self._query_builder.has_filters()
        ):
            raise ValueError("Cannot delete without entity_id or WHERE conditions")

        if self._soft_delete:
            where_clause, params = self._scoped_builder().build_where(param_offset=1)
            result = await self.db_ops.execute_query(
                f"UPDATE {self._qualified_table_name} "
                f"SET {self._soft_delete.column} = $1{where_clause}",
                [self._soft_delete.deletion_timestamp(), *params],
            )
        else:
            where_clause, params = self._query_builder.build_where()
            result = await self.db_ops.execute_query(
                f"DELETE FROM {self._qualified_table_name}{where_clause}", params
            )
        return self._affected_rows(result)

    async def force_delete(self, entity_id: UUID) -> bool:
        """Permanently delete entity by ID, bypassing soft delete"""
        result = await self.db_ops.execute_query(
            f"DELETE FROM {self._qualified_table_name} WHERE id = $1", [str(entity_id)]
        )
        return result != "DELETE 0"

    async def _refetch(self, entity_id: UUID) -> T_domain | None:
        """Load a row by id alone, ignoring this repository's filters and scopes"""
        return await self._clone_with_query_builder(
            QueryBuilder(self._qualified_table_name), trashed=TrashedMode.INCLUDE
        ).find_by_id(entity_id)

    async def _restore_row(self, entity_id: UUID) -> bool:
        """Clear the soft delete timestamp; False without soft delete"""
        if self._soft_delete is None:
            return False
        return await self._save_columns(entity_id, {self._soft_delete.column: None})

    async def restore(self, entity_id: UUID) -> T_domain | None:
        """Clear the soft delete timestamp; None if nothing was restored"""
        if not await self._restore_row(entity_id):
            return None
        return await self._refetch(entity_id)

    def is_trashed(self, entity: BaseModel) -> bool:
        """Whether the entity carries a soft delete timestamp"""
        return self._require_soft_delete("is_trashed").is_trashed(entity)

    # Auto-remove operations
    async def auto_remove(self, entity_id: UUID, code: int) -> bool:
        """
        Soft delete an entity, tagging it with an auto-remove code.

        Writes the code first, then performs the soft delete.

        Args:
            entity_id: ID of the entity to remove
            code: auto-remove code, not validated

        Returns:
            The soft delete result
        """
        auto_remove = self._require_auto_remove("auto_remove")
        await self._save_columns(entity_id, {auto_remove.column: code})
        removed = bool(await self.delete(entity_id))
        logger.info(
            "Auto-removed %s %s with code %r: %s",
            self.table_name,
            entity_id,
            code,
            removed,
        )
        return removed

    async def auto_restore(self, entity_id: UUID) -> T_domain | None:
        """
        Restore an entity and clear its auto-remove code.

        The code is only cleared once the restore succeeded; a failed restore
        leaves the row untouched and returns None.
        """
        auto_remove = self._require_auto_remove("auto_restore")
        if not await self._restore_row(entity_id):
            logger.info(
                "Restore of %s %s failed; auto-remove code kept",
                self.table_name,
                entity_id,
            )
            return None

        await self._save_columns(entity_id, {auto_remove.column: None})
        logger.info("Auto-restored %s %s", self.table_name, entity_id)
        return await self._refetch(entity_id)

    async def auto_remove_all(self, code: int) -> int:
        """Auto-remove every record matching the current query in one UPDATE.

        Honours the trashed mode, so by default only live records are tagged.

        Returns:
            Number of records removed
        """
        auto_remove = self._require_auto_remove("auto_remove_all")
        if self._query_builder is None or not self._query_builder.has_filters():
            raise ValueError("Cannot auto-remove without WHERE conditions")

        where_clause, params = self._scoped_builder().build_where(param_offset=2)
        result = await self.db_ops.execute_query(
            f"UPDATE {self._qualified_table_name} "
            f"SET {auto_remove.column} = $1, {self._soft_delete.column} = $2"
            f"{where_clause}",
            [code, self._soft_delete.deletion_timestamp(), *params],
        )
        removed = self._affected_rows(result)
        logger.info(
            "Auto-removed %d %s row(s) with code %r", removed, self.table_name, code
        )
        return removed

    async def auto_restore_all(self, code: int | None = None) -> int:
        """Restore every matching record auto-removed with `code` (any code when None).

        Manually deleted records are left in the trash.

        Returns:
            Number of records restored
        """
        auto_remove = self._require_auto_remove("auto_restore_all")
        where_clause, params = self.only_auto_removed(code)._scoped_builder().build_where()
        result = await self.db_ops.execute_query(
            f"UPDATE {self._qualified_table_name} "
            f"SET {self._soft_delete.column} = NULL, {auto_remove.column} = NULL"
            f"{where_clause}",
            params,
        )
        restored = self._affected_rows(result)
        logger.info(
            "Auto-restored %d %s row(s) with code %r", restored, self.table_name, code
        )
        return restored

    def is_auto_removed(self, entity: BaseModel) -> bool:
        """True iff the entity is soft-deleted and carries an auto-remove code"""
        auto_remove = self._require_auto_remove("is_auto_removed")
        return auto_remove.is_auto_removed(entity, self._soft_delete.column)

    def get_auto_remove(self, entity: BaseModel) -> int | None:
        """The entity's auto-remove code, or the feature's default code"""
        return self._require_auto_remove("get_auto_remove").get_auto_remove(entity)
