# polyfs/__init__.py

"""
polyfs: one async file access API over local disk, OneDrive, Google Drive
and S3-compatible buckets.

Most callers only need the registry and the object model:

	registry = ProviderRegistry()
	await registry.load()
	fs = registry.get_provider(ProviderId("docs", ProviderType.LOCAL_DISK)).as_filesystem()

The version comes from the top-level `VERSION` file when running from a
checkout, and falls back to the released version otherwise.
"""

from pathlib import Path

from polyfs.file_access import (
	File,
	FileType,
	Metadata,
	ObjectId,
	ProviderId,
	ProviderRegistry,
	ProvidersOptions,
	ProviderType,
)

_version_file = Path(__file__).resolve().parents[1] / "VERSION"
if _version_file.exists():
	__version__ = _version_file.read_text(encoding="utf-8").strip()
else:
	__version__ = "0.1.0"

__all__ = [
	"File",
	"FileType",
	"Metadata",
	"ObjectId",
	"ProviderId",
	"ProviderRegistry",
	"ProviderType",
	"ProvidersOptions",
	"__version__",
]
