"""Repository features package"""

from relation_restore.features.auto_remove_feature import AutoRemoveFeature
from relation_restore.features.base_feature import RepositoryFeature
from relation_restore.features.soft_delete_feature import (
    SoftDeleteFeature,
    TrashedMode,
)

__all__ = ["RepositoryFeature", "SoftDeleteFeature", "TrashedMode", "AutoRemoveFeature"]
