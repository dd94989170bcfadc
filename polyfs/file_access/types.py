"""
Normalized object model shared by every storage backend.

Each backend addresses its entities through an ``ObjectId`` (a backend-relative
path or opaque item id plus a type tag) and reports them as ``File`` records
with sparse ``Metadata``. No backend fills every metadata field, so every field
is optional and ``None`` always means "unknown", never zero.
"""
import posixpath
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

DIRECTORY_MIME_TYPE = "directory"


class FileType(str, Enum):
    """Kind of entity an ObjectId refers to."""
    DIRECTORY = "directory"
    FILE = "file"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class ObjectId:
    """
    Address of an entity within one backend.

    ``path`` is a backend-relative path for path-addressed backends (local disk,
    object store) and the opaque item id for id-addressed cloud drives. An empty
    path always denotes the backend's root directory. Equality and hashing use
    both ``path`` and ``file_type``.
    """
    path: str
    file_type: FileType = FileType.FILE

    @classmethod
    def root(cls) -> "ObjectId":
        return cls("", FileType.DIRECTORY)

    @classmethod
    def directory(cls, path: str) -> "ObjectId":
        return cls(path, FileType.DIRECTORY)

    @classmethod
    def plain_file(cls, path: str) -> "ObjectId":
        return cls(path, FileType.FILE)

    @classmethod
    def symlink(cls, path: str) -> "ObjectId":
        return cls(path, FileType.SYMLINK)

    def is_directory(self) -> bool:
        return self.file_type == FileType.DIRECTORY

    def is_root(self) -> bool:
        return self.path == ""

    @property
    def name(self) -> str:
        """Last path segment (path-addressed backends only)."""
        return posixpath.basename(self.path.rstrip("/"))

    def parent(self) -> "ObjectId":
        """Parent directory id (path-addressed backends only)."""
        return ObjectId.directory(posixpath.dirname(self.path.rstrip("/")))

    def child(self, name: str, file_type: FileType = FileType.FILE) -> "ObjectId":
        if not self.path:
            return ObjectId(name, file_type)
        return ObjectId(posixpath.join(self.path, name), file_type)

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "file_type": self.file_type.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectId":
        return cls(data["path"], FileType(data.get("file_type", FileType.FILE.value)))

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class UserAndGroup:
    uid: int
    gid: int


@dataclass(frozen=True)
class UniqueId:
    value: str


@dataclass(frozen=True)
class NotApplicable:
    pass


UserId = Union[UserAndGroup, UniqueId, NotApplicable]


@dataclass(frozen=True)
class User:
    id: UserId
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.id, UserAndGroup):
            user_id: Dict[str, Any] = {"uid": self.id.uid, "gid": self.id.gid}
        elif isinstance(self.id, UniqueId):
            user_id = {"unique_id": self.id.value}
        else:
            user_id = {}
        return {"id": user_id, "name": self.name}


@dataclass(frozen=True)
class UnixPermissions:
    mode: int


# Only unix mode bits exist today; other backends report None.
Permissions = UnixPermissions


@dataclass
class Metadata:
    """Backend-sparse metadata; every field is independently optional."""
    mime_type: Optional[str] = None
    open_path: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    meta_changed_at: Optional[datetime] = None
    accessed_at: Optional[datetime] = None
    size: Optional[int] = None
    owner: Optional[User] = None
    permissions: Optional[Permissions] = None

    def is_directory_hint(self) -> bool:
        return self.mime_type == DIRECTORY_MIME_TYPE

    def to_dict(self) -> Dict[str, Any]:
        def _ts(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value is not None else None

        return {
            "mime_type": self.mime_type,
            "open_path": self.open_path,
            "created_at": _ts(self.created_at),
            "modified_at": _ts(self.modified_at),
            "meta_changed_at": _ts(self.meta_changed_at),
            "accessed_at": _ts(self.accessed_at),
            "size": self.size,
            "owner": self.owner.to_dict() if self.owner else None,
            "permissions": {"unix": self.permissions.mode} if self.permissions else None,
        }


@dataclass
class File:
    """
    Entry reported by a backend.

    ``name`` is what the backend reports and may differ from the last segment
    of ``id.path`` (the object store synthesizes directory names from key
    prefixes).
    """
    id: ObjectId
    name: str
    metadata: Optional[Metadata] = None

    def is_directory(self) -> bool:
        if self.id.is_directory():
            return True
        return bool(self.metadata and self.metadata.is_directory_hint())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id.to_dict(),
            "name": self.name,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


class ProviderType(str, Enum):
    LOCAL_DISK = "nativefs"
    ONEDRIVE = "onedrive"
    GOOGLE_DRIVE = "googledrive"
    S3 = "s3"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ProviderId:
    """Identifies one configured backend instance within the registry."""
    id: str
    provider_type: ProviderType

    @property
    def file_name(self) -> str:
        """Credential file name: ``{id}.{provider_type}``."""
        return f"{self.id}.{self.provider_type.value}"

    @classmethod
    def from_file_name(cls, file_name: str) -> "ProviderId":
        """
        Parse a credential file name back into a ProviderId.

        Raises:
            ValueError: If the suffix is not a known provider type
        """
        provider_id, sep, type_value = file_name.rpartition(".")
        if not sep or not provider_id:
            raise ValueError(f"Not a provider file name: {file_name!r}")
        return cls(provider_id, ProviderType(type_value))

    def __str__(self) -> str:
        return self.file_name
