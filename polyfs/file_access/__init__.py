"""
File access layer.

Unified, capability-based interface over heterogeneous storage backends:
- Local disk (including mounted NAS shares)
- OneDrive
- Google Drive
- S3-compatible object stores
"""

from polyfs.file_access.base import FileSystem, Provider, Trash
from polyfs.file_access.errors import (
    AuthExpired,
    AuthRequired,
    Conflict,
    FileAccessError,
    NotADirectory,
    NotAFile,
    NotFound,
    ProviderConfigError,
    ProviderNotFound,
    TransportError,
    Unsupported,
)
from polyfs.file_access.registry import ProviderRegistry, ProvidersOptions
from polyfs.file_access.types import File, FileType, Metadata, ObjectId, ProviderId, ProviderType

__all__ = [
    "AuthExpired",
    "AuthRequired",
    "Conflict",
    "File",
    "FileAccessError",
    "FileSystem",
    "FileType",
    "Metadata",
    "NotADirectory",
    "NotAFile",
    "NotFound",
    "ObjectId",
    "Provider",
    "ProviderConfigError",
    "ProviderId",
    "ProviderNotFound",
    "ProviderRegistry",
    "ProviderType",
    "ProvidersOptions",
    "TransportError",
    "Trash",
    "Unsupported",
]
