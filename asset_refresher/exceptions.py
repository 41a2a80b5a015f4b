"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class AssetRefresherError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(AssetRefresherError):
    """Raised for issues related to configuration loading or validation."""


class NetworkUnavailableError(AssetRefresherError):
    """Raised when an operation needs connectivity and none is available."""


class TransferFailedError(AssetRefresherError):
    """Raised when the download subsystem could not fetch the asset."""


class RevalidationProbeError(AssetRefresherError):
    """
    Raised when the conditional freshness probe fails at the transport level.
    """


class PromotionFailedError(AssetRefresherError):
    """Raised when a downloaded file cannot be moved into the canonical path."""
