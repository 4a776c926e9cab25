from typing import ClassVar, Generic, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel
from pydantic import Field as ModelField
from pydantic.config import ConfigDict

T = TypeVar("T")


class Field(Generic[T]):
    """Type-safe column handle for schema classes.

    Usage:
        class CommentSchema(SchemaBase):
            post_id = Field[UUID]("post_id")
            auto_remove = Field[int]("auto_remove")

        repo.where(CommentSchema.post_id, post_id).only_auto_removed(PARENT_REMOVED)
    """

    def __init__(self, column_name: str):
        """
        Args:
            column_name: Database column this handle renders as
        """
        self._column_name = column_name

    @property
    def column(self) -> str:
        """The underlying database column name"""
        return self._column_name

    def __str__(self) -> str:
        return self._column_name

    def __repr__(self) -> str:
        return f"Field({self._column_name})"


class SchemaBase:
    """Base class for schema definitions holding Field handles."""


class BaseEntity(BaseModel):
    """Base entity class for all database models."""

    model_config: ClassVar[ConfigDict] = ConfigDict(use_enum_values=True, extra="allow")
    id: UUID = ModelField(default_factory=uuid4)
