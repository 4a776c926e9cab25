"""Base feature interface for repository features"""

from typing import Any

from pydantic import BaseModel, create_model


class RepositoryFeature:
    """
    Base class for repository features.

    Features hook into the repository lifecycle to add columns and
    behaviour such as soft deletes or auto-remove codes.
    """

    def before_create(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Hook called before inserting an entity.

        Args:
            data: Entity data dictionary

        Returns:
            Modified data dictionary
        """
        return data

    def augment_entity_class(self, entity_class: type[BaseModel]) -> type[BaseModel]:
        """
        Hook to add the feature's columns to the entity class.

        Args:
            entity_class: Original entity class

        Returns:
            Augmented entity class (the same class if nothing is missing)
        """
        return entity_class

    @staticmethod
    def _add_field(
        entity_class: type[BaseModel], suffix: str, name: str, annotation: Any
    ) -> type[BaseModel]:
        if name in entity_class.model_fields:
            return entity_class

        return create_model(
            f"{entity_class.__name__}{suffix}",
            __base__=entity_class,
            **{name: (annotation, None)},
        )
