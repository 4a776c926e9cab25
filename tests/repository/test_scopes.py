"""
SQL produced by the soft delete and auto-remove scopes of Repository
"""

from uuid import uuid4

import pytest

from relation_restore.exceptions import FeatureNotEnabledError
from relation_restore.features import AutoRemoveFeature, SoftDeleteFeature
from relation_restore.repository import Repository, RepositoryConfig
from tests.comment_entities import (
    AUTHOR_BANNED,
    PARENT_REMOVED,
    Comment,
    CommentSchema,
    CommentUpdate,
)


class TestSoftDeleteScopes:
    def test_default_excludes_trashed(self, comment_repo):
        assert comment_repo.to_sql() == "SELECT * FROM comments WHERE deleted_at IS NULL"

    def test_with_trashed_has_no_filter(self, comment_repo):
        assert comment_repo.with_trashed().to_sql() == "SELECT * FROM comments"

    def test_only_trashed(self, comment_repo):
        assert comment_repo.only_trashed().to_sql() == (
            "SELECT * FROM comments WHERE deleted_at IS NOT NULL"
        )

    def test_or_where_stays_inside_soft_delete_filter(self, comment_repo):
        sql = comment_repo.where("body", "a").or_where("body", "b").to_sql()

        assert sql == (
            "SELECT * FROM comments WHERE (body = $1 OR body = $2) AND deleted_at IS NULL"
        )

    def test_scopes_return_new_repositories(self, comment_repo):
        trashed = comment_repo.only_trashed()

        assert trashed is not comment_repo
        assert comment_repo.to_sql() == "SELECT * FROM comments WHERE deleted_at IS NULL"

    def test_repository_without_soft_delete_has_no_filter(self):
        repo = Repository(Comment, update_class=CommentUpdate, table_name="comments")

        assert repo.to_sql() == "SELECT * FROM comments"
        with pytest.raises(FeatureNotEnabledError):
            repo.with_trashed()

    def test_schema_qualified_table(self):
        repo = Repository(
            Comment,
            update_class=CommentUpdate,
            table_name="comments",
            config=RepositoryConfig(db_schema="app", features=[SoftDeleteFeature()]),
        )

        assert repo.to_sql() == "SELECT * FROM app.comments WHERE deleted_at IS NULL"


class TestAutoRemoveScopes:
    def test_with_auto_removed_any_code(self, comment_repo):
        query, params = comment_repo.with_auto_removed().build()

        assert query == (
            "SELECT * FROM comments WHERE "
            "((deleted_at IS NOT NULL AND auto_remove IS NOT NULL) OR deleted_at IS NULL)"
        )
        assert params == []

    def test_with_auto_removed_code_combined_with_filters(self, comment_repo):
        post_id = uuid4()
        query, params = (
            comment_repo.where(CommentSchema.post_id, post_id)
            .with_auto_removed(PARENT_REMOVED)
            .build()
        )

        assert query == (
            "SELECT * FROM comments WHERE post_id = $1 AND "
            "((deleted_at IS NOT NULL AND auto_remove = $2) OR deleted_at IS NULL)"
        )
        assert params == [post_id, PARENT_REMOVED]

    def test_only_auto_removed(self, comment_repo):
        assert comment_repo.only_auto_removed().to_sql() == (
            "SELECT * FROM comments WHERE auto_remove IS NOT NULL AND deleted_at IS NOT NULL"
        )

    def test_only_auto_removed_with_code(self, comment_repo):
        query, params = comment_repo.only_auto_removed(AUTHOR_BANNED).build()

        assert query == (
            "SELECT * FROM comments WHERE auto_remove = $1 AND deleted_at IS NOT NULL"
        )
        assert params == [AUTHOR_BANNED]

    def test_only_not_auto_removed(self, comment_repo):
        assert comment_repo.only_not_auto_removed().to_sql() == (
            "SELECT * FROM comments WHERE auto_remove IS NULL AND deleted_at IS NOT NULL"
        )

    def test_custom_column_names(self, recording_ops):
        repo = Repository(
            Comment,
            update_class=CommentUpdate,
            table_name="comments",
            config=RepositoryConfig(
                features=[
                    SoftDeleteFeature(column="trashed_at"),
                    AutoRemoveFeature(column="removal_reason"),
                ]
            ),
        )

        assert repo.only_not_auto_removed().to_sql() == (
            "SELECT * FROM comments WHERE removal_reason IS NULL AND trashed_at IS NOT NULL"
        )
        assert {"trashed_at", "removal_reason"} <= set(repo.entity_schema_class.model_fields)

    @pytest.mark.parametrize(
        "scope", ["with_auto_removed", "only_auto_removed", "only_not_auto_removed"]
    )
    def test_scopes_require_auto_remove_feature(self, soft_delete_only_repo, scope):
        with pytest.raises(FeatureNotEnabledError, match="AutoRemoveFeature"):
            getattr(soft_delete_only_repo, scope)()
