from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class EntityMapper(Generic[T]):
    """Maps asyncpg records onto (possibly feature-augmented) entity classes"""

    def __init__(self, entity_class: type[T]):
        self.entity_class = entity_class

    def map_row_to_entity(self, row: Any) -> T:
        """Build one entity from an asyncpg Record (or any mapping)"""
        return self.entity_class(**dict(row))

    def map_rows_to_entities(self, rows: list[Any]) -> list[T]:
        """Build an entity per row, preserving order"""
        return [self.map_row_to_entity(row) for row in rows]
