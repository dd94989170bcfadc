"""
Error taxonomy for the file access layer.

Backend adapters translate backend-specific failures (HTTP status codes, S3
error codes, OS errors) into these kinds at the adapter boundary. Only
``AuthExpired`` is inspected by the retry middleware; everything else
propagates to the caller untouched.
"""


class FileAccessError(Exception):
    """Base exception for all file access errors."""


class NotFound(FileAccessError):
    """Raised when an object id does not resolve."""


class NotADirectory(FileAccessError):
    """Raised when an operation needs a directory and got something else."""


class NotAFile(FileAccessError):
    """Raised when an operation needs a file and got a directory."""


class AuthRequired(FileAccessError):
    """Raised when there is no usable credential and interactive authorization is needed."""


class AuthExpired(FileAccessError):
    """Raised when the backend rejects the current access token."""


class Unsupported(FileAccessError):
    """Raised when the backend does not implement the requested operation."""


class Conflict(FileAccessError):
    """Raised when the destination already exists or a precondition failed."""


class TransportError(FileAccessError):
    """Raised on network or backend-side failures unrelated to auth."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status


class ProviderNotFound(FileAccessError):
    """Raised when the registry has no provider for the given ProviderId."""


class ProviderConfigError(FileAccessError, ValueError):
    """Raised when a provider cannot be built from the given configuration."""


def is_auth_expired(exc: BaseException) -> bool:
    """Default authorization-failure predicate for the retry middleware."""
    return isinstance(exc, AuthExpired)
