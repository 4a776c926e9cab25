import pytest

from relation_restore.features import AutoRemoveFeature, SoftDeleteFeature
from relation_restore.repository import Repository, RepositoryConfig
from tests.comment_entities import PARENT_REMOVED, Comment, CommentUpdate
from tests.fakes import RecordingOperations


@pytest.fixture
def recording_ops():
    return RecordingOperations()


@pytest.fixture
def comment_repo(recording_ops):
    """Comments with soft delete and auto-remove, executing against recording_ops"""
    repo = Repository(
        entity_schema_class=Comment,
        update_class=CommentUpdate,
        table_name="comments",
        config=RepositoryConfig(
            features=[
                SoftDeleteFeature(),
                AutoRemoveFeature(default_code=PARENT_REMOVED),
            ]
        ),
    )
    repo.db_ops = recording_ops
    return repo


@pytest.fixture
def soft_delete_only_repo(recording_ops):
    repo = Repository(
        entity_schema_class=Comment,
        update_class=CommentUpdate,
        table_name="comments",
        config=RepositoryConfig(features=[SoftDeleteFeature()]),
    )
    repo.db_ops = recording_ops
    return repo
