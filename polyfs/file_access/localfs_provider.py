# polyfs/file_access/localfs_provider.py
"""
Local disk provider.

Works with local directories and anything mounted into the local filesystem
(NFS, SMB/CIFS shares). ObjectId paths are relative to the configured root;
an empty root makes ids absolute paths.
"""
import asyncio
import errno
import mimetypes
import os
import posixpath
import stat
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import aiofiles
import aiofiles.os
from send2trash import send2trash

from polyfs.file_access.base import FileSystem, Provider, Trash
from polyfs.file_access.errors import (
    Conflict,
    NotADirectory,
    NotAFile,
    NotFound,
    ProviderConfigError,
    TransportError,
)
from polyfs.file_access.types import (
    DIRECTORY_MIME_TYPE,
    File,
    FileType,
    Metadata,
    ObjectId,
    ProviderType,
    UnixPermissions,
    User,
    UserAndGroup,
)
from polyfs.monitoring.logger import log


@contextmanager
def translate_os_errors(path: str) -> Iterator[None]:
    """Map OSError subclasses raised inside the block onto the error taxonomy."""
    try:
        yield
    except FileNotFoundError as exc:
        raise NotFound(f"No such file or directory: {path}") from exc
    except NotADirectoryError as exc:
        raise NotADirectory(f"Not a directory: {path}") from exc
    except IsADirectoryError as exc:
        raise NotAFile(f"Is a directory: {path}") from exc
    except FileExistsError as exc:
        raise Conflict(f"Already exists: {path}") from exc
    except OSError as exc:
        if exc.errno == errno.ENOTEMPTY:
            raise Conflict(f"Directory not empty: {path}") from exc
        log("ERROR", f"OS error on {path}: {exc}", module="localfs_provider")
        raise TransportError(f"OS error on {path}: {exc}") from exc


def _timestamp(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _file_type(st: os.stat_result) -> FileType:
    if stat.S_ISLNK(st.st_mode):
        return FileType.SYMLINK
    if stat.S_ISDIR(st.st_mode):
        return FileType.DIRECTORY
    return FileType.FILE


class LocalDiskProvider(Provider, FileSystem, Trash):
    """
    Local filesystem provider.

    Config schema:
    {
        "root": "/path/to/storage",   # Required; "" means ids are absolute paths
        "create_dirs": false          # Optional, create missing parents on write
    }
    """

    provider_type = ProviderType.LOCAL_DISK

    def __init__(self, root: str, create_dirs: bool = False):
        if root is None:
            raise ProviderConfigError("LocalDiskProvider requires 'root'")
        self.root = os.path.abspath(root) if root else ""
        self.create_dirs = create_dirs

        log("INFO", f"LocalDiskProvider initialized with root={self.root or '/'}",
            module="localfs_provider")

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs: Any) -> "LocalDiskProvider":
        if "root" not in config:
            raise ProviderConfigError("LocalDiskProvider requires 'root' in config")
        return cls(config["root"], create_dirs=config.get("create_dirs", False))

    def _resolve_path(self, path: str) -> str:
        """Absolute OS path for an id path; ids escaping a non-empty root do not resolve."""
        if not self.root:
            return os.path.normpath(path) if path else os.sep
        resolved = os.path.normpath(os.path.join(self.root, path.lstrip("/")))
        if os.path.commonpath([self.root, resolved]) != self.root:
            raise NotFound(f"Path '{path}' is outside the provider root")
        return resolved

    def _child_path(self, parent_path: str, name: str) -> str:
        """Absolute OS path for the entry ``name`` directly under the id path ``parent_path``."""
        if not name or name in (".", "..") or "/" in name or os.sep in name:
            raise NotFound(f"Invalid entry name: {name!r}")
        return self._resolve_path(posixpath.join(parent_path, name))

    def _relative_id(self, absolute: str, file_type: FileType) -> ObjectId:
        absolute = os.path.normpath(absolute)
        if not self.root:
            return ObjectId(absolute, file_type)
        if os.path.commonpath([self.root, absolute]) != self.root:
            raise NotFound(f"Path '{absolute}' is outside the provider root")
        relative = os.path.relpath(absolute, self.root)
        return ObjectId("" if relative == "." else relative.replace(os.sep, "/"), file_type)

    def _metadata(self, absolute: str, st: os.stat_result) -> Metadata:
        file_type = _file_type(st)
        if file_type == FileType.DIRECTORY:
            mime_type = DIRECTORY_MIME_TYPE
        elif file_type == FileType.FILE:
            mime_type, _ = mimetypes.guess_type(absolute)
        else:
            mime_type = None
        return Metadata(
            mime_type=mime_type,
            open_path=absolute,
            created_at=_timestamp(getattr(st, "st_birthtime", None)),
            modified_at=_timestamp(st.st_mtime),
            meta_changed_at=_timestamp(st.st_ctime),
            accessed_at=_timestamp(st.st_atime),
            size=st.st_size,
            owner=User(UserAndGroup(st.st_uid, st.st_gid)),
            permissions=UnixPermissions(st.st_mode),
        )

    async def _lexists(self, absolute: str) -> bool:
        return await aiofiles.os.path.exists(absolute) or await aiofiles.os.path.islink(absolute)

    async def read_file(self, object_id: ObjectId) -> bytes:
        path = self._resolve_path(object_id.path)
        with translate_os_errors(object_id.path):
            async with aiofiles.open(path, "rb") as f:
                return await f.read()

    async def write_file(self, object_id: ObjectId, content: bytes) -> None:
        path = self._resolve_path(object_id.path)
        with translate_os_errors(object_id.path):
            if self.create_dirs:
                await aiofiles.os.makedirs(os.path.dirname(path), exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)

    async def delete(self, object_id: ObjectId) -> None:
        """Remove a file or symlink; directories must be empty."""
        path = self._resolve_path(object_id.path)
        with translate_os_errors(object_id.path):
            st = await aiofiles.os.stat(path, follow_symlinks=False)
            if stat.S_ISDIR(st.st_mode):
                await aiofiles.os.rmdir(path)
            else:
                await aiofiles.os.remove(path)

    async def _move(self, object_id: ObjectId, destination: str) -> ObjectId:
        source = self._resolve_path(object_id.path)
        with translate_os_errors(object_id.path):
            if not await self._lexists(source):
                raise NotFound(f"No such file or directory: {object_id.path}")
            if await self._lexists(destination):
                raise Conflict(f"Destination already exists: {destination}")
            await aiofiles.os.rename(source, destination)
        return self._relative_id(destination, object_id.file_type)

    async def move_to(self, object_id: ObjectId, new_parent_id: ObjectId) -> ObjectId:
        parent = self._resolve_path(new_parent_id.path)
        if not await aiofiles.os.path.isdir(parent):
            raise NotFound(f"No such directory: {new_parent_id.path}")
        return await self._move(object_id, self._child_path(new_parent_id.path, object_id.name))

    async def rename(self, object_id: ObjectId, new_name: str) -> ObjectId:
        parent_path = posixpath.dirname(object_id.path.rstrip("/"))
        return await self._move(object_id, self._child_path(parent_path, new_name))

    async def read_directory(self, object_id: ObjectId) -> List[File]:
        path = self._resolve_path(object_id.path)
        with translate_os_errors(object_id.path):
            names = await aiofiles.os.listdir(path)
            files = []
            for name in names:
                child = os.path.join(path, name)
                try:
                    st = await aiofiles.os.stat(child, follow_symlinks=False)
                except FileNotFoundError:
                    # removed between listdir and stat
                    continue
                file_type = _file_type(st)
                files.append(File(
                    id=self._relative_id(child, file_type),
                    name=name,
                    metadata=self._metadata(child, st),
                ))
        return files

    async def create(self, parent_id: ObjectId, file: File) -> None:
        """Create a directory, or an empty (truncated) file, named ``file.name`` under the parent."""
        path = self._child_path(parent_id.path, file.name)
        with translate_os_errors(parent_id.child(file.name).path):
            if file.is_directory():
                await aiofiles.os.mkdir(path)
            else:
                async with aiofiles.open(path, "wb"):
                    pass

    async def get_metadata(self, object_id: ObjectId) -> Metadata:
        path = self._resolve_path(object_id.path)
        with translate_os_errors(object_id.path):
            st = await aiofiles.os.stat(path, follow_symlinks=False)
        return self._metadata(path, st)

    async def read_link(self, object_id: ObjectId) -> ObjectId:
        """Resolve one level of symlink; the returned id is typed by what it points at."""
        path = self._resolve_path(object_id.path)
        with translate_os_errors(object_id.path):
            target = await aiofiles.os.readlink(path)
            target = os.path.normpath(os.path.join(os.path.dirname(path), target))
            try:
                st = await aiofiles.os.stat(target, follow_symlinks=False)
                file_type = _file_type(st)
            except FileNotFoundError:
                # dangling link
                file_type = FileType.FILE
        return self._relative_id(target, file_type)

    async def create_link(self, parent_id: ObjectId, name: str, target_id: ObjectId) -> ObjectId:
        link_path = self._child_path(parent_id.path, name)
        target = self._resolve_path(target_id.path)
        link_id = self._relative_id(link_path, FileType.SYMLINK)
        with translate_os_errors(link_id.path):
            await aiofiles.os.symlink(target, link_path)
        return link_id

    async def send_to_trash(self, object_id: ObjectId) -> None:
        path = self._resolve_path(object_id.path)
        if not await self._lexists(path):
            raise NotFound(f"No such file or directory: {object_id.path}")
        with translate_os_errors(object_id.path):
            await asyncio.to_thread(send2trash, path)
        log("INFO", f"Sent to trash: {object_id.path}", module="localfs_provider")

    def serialize(self) -> Dict[str, Any]:
        return {"root": self.root}
