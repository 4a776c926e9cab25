"""
Unit tests for SoftDeleteFeature
"""

from datetime import UTC, datetime
from uuid import uuid4

from relation_restore.features import SoftDeleteFeature, TrashedMode
from relation_restore.query_builder import QueryBuilder
from tests.comment_entities import Comment


class TestSoftDeleteFeature:
    def test_augments_entity_with_timestamp_column(self):
        augmented = SoftDeleteFeature().augment_entity_class(Comment)
        entity = augmented(post_id=uuid4(), body="hello")

        assert augmented.__name__ == "CommentWithSoftDelete"
        assert entity.deleted_at is None

    def test_custom_column_name(self):
        feature = SoftDeleteFeature(column="trashed_at")
        augmented = feature.augment_entity_class(Comment)

        assert "trashed_at" in augmented.model_fields
        assert "deleted_at" not in augmented.model_fields
        assert feature.before_create({}) == {"trashed_at": None}

    def test_query_filters_per_mode(self):
        feature = SoftDeleteFeature()
        builder = QueryBuilder("comments")

        assert feature.apply_query_filters(builder, TrashedMode.EXCLUDE).to_sql() == (
            "SELECT * FROM comments WHERE deleted_at IS NULL"
        )
        assert feature.apply_query_filters(builder, TrashedMode.ONLY).to_sql() == (
            "SELECT * FROM comments WHERE deleted_at IS NOT NULL"
        )
        assert feature.apply_query_filters(builder, TrashedMode.INCLUDE) is builder

    def test_is_trashed(self):
        feature = SoftDeleteFeature()
        augmented = feature.augment_entity_class(Comment)

        assert feature.is_trashed(augmented(post_id=uuid4(), body="a")) is False
        assert (
            feature.is_trashed(
                augmented(post_id=uuid4(), body="a", deleted_at=datetime.now(UTC))
            )
            is True
        )

    def test_deletion_timestamp_is_timezone_aware(self):
        assert SoftDeleteFeature.deletion_timestamp().tzinfo is not None
