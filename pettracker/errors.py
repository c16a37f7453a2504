"""
Error taxonomy for the local-first sync engine.

Remote failures are split by how the caller should react:
- RateLimitError is transient and retried inside the gateway
- RemoteError (and RemoteUnavailableError) leave the queue entry in place
- ConfigurationError stops any remote call before it is made
- NotFoundError / ValidationError are raised to record service callers
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all errors raised by the sync engine."""


class ConfigurationError(SyncError):
    """Proxy URL, credential or data source mapping is missing."""


class RemoteError(SyncError):
    """The remote API answered with a non-2xx status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class RateLimitError(RemoteError):
    """The remote API answered 429; retry after ``retry_after`` seconds."""

    def __init__(self, retry_after: float = 1.0):
        super().__init__(f"Rate limited. Retry after {retry_after}s", status=429)
        self.retry_after = retry_after


class RemoteUnavailableError(RemoteError):
    """The request never produced a response (offline, DNS, timeout)."""


class NotFoundError(SyncError):
    """A local record does not exist."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection} record {record_id} not found")
        self.collection = collection
        self.record_id = record_id


class ValidationError(SyncError):
    """A record is missing a required field."""
