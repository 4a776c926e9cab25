"""Exceptions raised by repositories and features"""


class RepositoryError(Exception):
    """Base class for repository usage errors"""


class FeatureNotEnabledError(RepositoryError, ValueError):
    """Raised when an operation needs a feature the repository was not configured with"""

    def __init__(self, feature_name: str, operation: str):
        self.feature_name = feature_name
        self.operation = operation
        super().__init__(
            f"{operation}() requires {feature_name} in the repository config"
        )


class FeatureConfigurationError(RepositoryError, ValueError):
    """Raised when the configured features cannot work together"""
