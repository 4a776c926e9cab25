"""Soft delete with auto-remove reason codes for asyncpg repositories"""

from relation_restore.db_context import DatabaseManager, transactional
from relation_restore.exceptions import (
    FeatureConfigurationError,
    FeatureNotEnabledError,
    RepositoryError,
)
from relation_restore.features import (
    AutoRemoveFeature,
    RepositoryFeature,
    SoftDeleteFeature,
    TrashedMode,
)
from relation_restore.repository import Repository, RepositoryConfig

__all__ = [
    "DatabaseManager",
    "transactional",
    "Repository",
    "RepositoryConfig",
    "RepositoryFeature",
    "SoftDeleteFeature",
    "AutoRemoveFeature",
    "TrashedMode",
    "RepositoryError",
    "FeatureNotEnabledError",
    "FeatureConfigurationError",
]
