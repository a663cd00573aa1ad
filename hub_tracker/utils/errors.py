"""
Custom exception classes for the repository tracker.
"""

from typing import Optional, Dict, Any


class HubTrackerError(Exception):
    """Base exception for all hub tracker errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
    
    def __str__(self) -> str:
        cause = self.details.get("error")
        if cause:
            return f"{self.message}: {cause}"
        return self.message


class TrackerError(HubTrackerError):
    """Repository-level error that aborts a tracking pass."""
    pass


class TrackingCancelledError(TrackerError):
    """Raised when the shared execution context has been cancelled."""
    pass


class PackageError(HubTrackerError):
    """Error affecting a single package; the tracking pass continues."""
    pass


class MetadataError(HubTrackerError):
    """Exception raised when a metadata file is missing or invalid."""
    pass


class DatabaseError(HubTrackerError):
    """Exception raised during database operations."""
    pass


class ConfigurationError(HubTrackerError):
    """Exception raised for configuration-related issues."""
    pass


class ValidationError(HubTrackerError):
    """Exception raised for data validation failures."""
    pass
