"""
Exceptions raised by the Compendium sync client.
"""

from typing import Optional


class CompendiumError(Exception):
    """Base exception for all Compendium client errors."""
    pass


class NotConnectedError(CompendiumError):
    """Operation requires an active identity."""
    pass


class InvalidArgumentError(CompendiumError, ValueError):
    """Argument rejected before any state was touched (e.g. unknown tech id)."""
    pass


class AuthError(CompendiumError):
    """Identity code, connect or token refresh exchange was rejected."""
    pass


class SyncError(CompendiumError):
    """A sync exchange with the server failed."""
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class StorageCorruptionError(CompendiumError):
    """Persisted snapshot could not be parsed."""
    pass


class ApiError(CompendiumError):
    """Application-level error reported by the server (HTTP 4xx)."""
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ServerError(CompendiumError):
    """Server failure (HTTP 5xx or unexpected status) or transport error."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
