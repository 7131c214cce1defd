"""
Error taxonomy for platform synchronization.

Adapters raise these; the orchestrator and the catalog sync service catch
them per platform so that one marketplace failing never aborts the others.
"""
from typing import Optional


class PlatformSyncError(Exception):
    """Base class for every error raised by the sync engine."""

    def __init__(self, message: str, platform: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.platform = platform

    def __str__(self) -> str:
        if self.platform:
            return f"[{self.platform}] {self.message}"
        return self.message


class MappingError(PlatformSyncError):
    """A status or value has no translation for the target platform."""


class RemoteError(PlatformSyncError):
    """The platform rejected the call or could not be reached."""

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        status_code: Optional[int] = None,
        transient: bool = False
    ):
        super().__init__(message, platform)
        self.status_code = status_code
        self.transient = transient


class PlatformConnectionError(RemoteError):
    """Transport-level failure: timeout, refused connection, DNS, TLS."""

    def __init__(self, message: str, platform: Optional[str] = None):
        super().__init__(message, platform, status_code=None, transient=True)


class UnsupportedOperationError(RemoteError):
    """The platform API has no endpoint for the requested operation."""


class PayloadCipherError(PlatformSyncError):
    """Envelope encryption could not be performed."""


class DecodeError(PayloadCipherError):
    """An envelope or response body could not be decrypted or parsed."""


class IngestError(PlatformSyncError):
    """An inbound order payload is malformed or cannot be attributed."""
