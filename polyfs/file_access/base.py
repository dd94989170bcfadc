"""
Capability interfaces for storage providers.

A provider instance advertises zero or more capabilities from a fixed set
(``FileSystem``, ``Trash``). Callers probe for a capability through
``Provider.as_filesystem()`` / ``Provider.as_trash()`` instead of checking the
concrete backend type.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from polyfs.file_access.errors import Unsupported
from polyfs.file_access.types import File, Metadata, ObjectId, ProviderType


class FileSystem(ABC):
    """
    File operations every FileSystem-capable backend implements.

    All methods are async since they may block on network I/O.
    """

    @abstractmethod
    async def read_file(self, object_id: ObjectId) -> bytes:
        """
        Read file contents as bytes.

        Raises:
            NotFound: If the id does not resolve
        """

    @abstractmethod
    async def write_file(self, object_id: ObjectId, content: bytes) -> None:
        """Write bytes to a file, overwriting unconditionally."""

    @abstractmethod
    async def delete(self, object_id: ObjectId) -> None:
        """
        Delete a file or directory.

        Backends may require directories to be empty (``Conflict`` otherwise).
        """

    @abstractmethod
    async def move_to(self, object_id: ObjectId, new_parent_id: ObjectId) -> ObjectId:
        """
        Move an object under a new parent.

        Returns:
            The id of the object at its new location

        Raises:
            NotFound: If either id is invalid
            Conflict: If the destination already exists
        """

    @abstractmethod
    async def rename(self, object_id: ObjectId, new_name: str) -> ObjectId:
        """Change only the last path segment; returns the new id."""

    @abstractmethod
    async def read_directory(self, object_id: ObjectId) -> List[File]:
        """
        List the children of a directory. Ordering is backend-defined.

        Raises:
            NotADirectory: If the id does not denote a directory
        """

    @abstractmethod
    async def create(self, parent_id: ObjectId, file: File) -> None:
        """
        Create an empty file or a directory under ``parent_id``.

        A directory is created when ``file.id`` is a directory id or when the
        descriptor's metadata carries the ``"directory"`` mime type.
        """

    @abstractmethod
    async def get_metadata(self, object_id: ObjectId) -> Metadata:
        """
        Get metadata for an object.

        Raises:
            NotFound: If the id does not resolve
        """

    async def read_link(self, object_id: ObjectId) -> ObjectId:
        """Resolve a symlink to the id it points at."""
        raise Unsupported(f"{self.__class__.__name__} does not support symlinks")

    async def create_link(self, parent_id: ObjectId, name: str, target_id: ObjectId) -> ObjectId:
        """Create a symlink ``name`` under ``parent_id`` pointing at ``target_id``."""
        raise Unsupported(f"{self.__class__.__name__} does not support symlinks")


class Trash(ABC):
    """Recoverable deletion. Backends without a trash must not advertise it."""

    @abstractmethod
    async def send_to_trash(self, object_id: ObjectId) -> None:
        """Move an object to the backend's (or the OS's) trash."""


class Provider(ABC):
    """
    One configured backend instance.

    Subclasses set ``provider_type`` and implement the capability mixins they
    support. The default accessors return ``self`` when the instance implements
    the capability and ``None`` otherwise.
    """

    provider_type: ProviderType

    def as_filesystem(self) -> Optional[FileSystem]:
        return self if isinstance(self, FileSystem) else None

    def as_trash(self) -> Optional[Trash]:
        return self if isinstance(self, Trash) else None

    @abstractmethod
    def serialize(self) -> Dict[str, Any]:
        """
        Return the JSON-compatible blob persisted by the registry.

        For OAuth backends this is the credential record; for the others it is
        the configuration needed to rebuild the instance.
        """

    async def close(self) -> None:
        """Release any held resources. No-op by default."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} type={self.provider_type.value}>"
