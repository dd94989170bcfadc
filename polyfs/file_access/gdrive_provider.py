# polyfs/file_access/gdrive_provider.py
"""
Google Drive provider.

ObjectIds carry Drive file ids; the empty id is the ``root`` alias. The
persisted credential record maps a scope key (the requested scopes joined by
``" _ "``) to the token granted for those scopes.
"""
from typing import Any, Dict, List, Optional

import aiohttp

from polyfs.config import settings
from polyfs.file_access.chunked_upload import DRIVE_ALIGNMENT, upload_in_chunks
from polyfs.file_access.cloud_base import CloudDriveProvider, parse_timestamp
from polyfs.file_access.credentials import OAuthToken
from polyfs.file_access.errors import NotADirectory, ProviderConfigError
from polyfs.file_access.types import (
    DIRECTORY_MIME_TYPE,
    File,
    FileType,
    Metadata,
    ObjectId,
    ProviderType,
    UniqueId,
    User,
)
from polyfs.integrations.gdrive_client import (
    FOLDER_MIME_TYPE,
    GOOGLE_DRIVE_SCOPES,
    GoogleDriveClient,
    drive_file_id,
)
from polyfs.integrations.oauth import AuthorizationCodeReceiver, OAuth2Client, OAuthClientConfig
from polyfs.integrations.oauth_redirect import loopback_redirect_uri
from polyfs.monitoring.logger import log

SCOPE_SEPARATOR = " _ "


def scope_key(scopes: List[str]) -> str:
    return SCOPE_SEPARATOR.join(scopes)


def _file_metadata(data: Dict[str, Any]) -> Metadata:
    mime_type = data.get("mimeType")
    if mime_type == FOLDER_MIME_TYPE:
        mime_type = DIRECTORY_MIME_TYPE
    owner = None
    owners = data.get("owners") or []
    if owners and owners[0].get("permissionId"):
        owner = User(UniqueId(owners[0]["permissionId"]), owners[0].get("displayName"))
    size = data.get("size")
    return Metadata(
        mime_type=mime_type,
        open_path=data.get("webViewLink"),
        created_at=parse_timestamp(data.get("createdTime")),
        modified_at=parse_timestamp(data.get("modifiedTime")),
        accessed_at=parse_timestamp(data.get("viewedByMeTime")),
        # Drive reports size as a string and omits it for folders / native docs
        size=int(size) if size is not None else None,
        owner=owner,
    )


def _to_file(data: Dict[str, Any]) -> File:
    is_folder = data.get("mimeType") == FOLDER_MIME_TYPE
    return File(
        id=ObjectId(data["id"], FileType.DIRECTORY if is_folder else FileType.FILE),
        name=data.get("name", ""),
        metadata=_file_metadata(data),
    )


class GoogleDriveProvider(CloudDriveProvider):
    """
    Google Drive through the Drive v3 REST API.

    Config schema:
    {
        "client_secret": "{...}",   # installed-app client secret JSON (string)
        "tokens": {"<scope key>": {...}}   # Optional persisted credential record
    }
    """

    provider_type = ProviderType.GOOGLE_DRIVE

    def __init__(
        self,
        client_secret: str,
        token: Optional[OAuthToken] = None,
        receiver: Optional[AuthorizationCodeReceiver] = None,
        session: Optional[aiohttp.ClientSession] = None,
        scopes: Optional[List[str]] = None,
        chunk_size: Optional[int] = None,
        simple_upload_limit: Optional[int] = None,
    ):
        if not client_secret:
            raise ProviderConfigError("GoogleDriveProvider requires a client secret")
        self.scopes = list(scopes or GOOGLE_DRIVE_SCOPES)
        redirect_uri = getattr(receiver, "redirect_uri", None) or loopback_redirect_uri()
        config = OAuthClientConfig.from_google_client_secret(client_secret, self.scopes, redirect_uri)
        super().__init__(OAuth2Client(config, session), token, receiver)
        self.client = GoogleDriveClient(session)
        self.chunk_size = chunk_size or settings.GOOGLE_UPLOAD_CHUNK_SIZE
        if simple_upload_limit is None:
            simple_upload_limit = settings.GOOGLE_SIMPLE_UPLOAD_LIMIT
        self.simple_upload_limit = simple_upload_limit

        log("INFO", "GoogleDriveProvider initialized", module="gdrive_provider")

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs: Any) -> "GoogleDriveProvider":
        scopes = list(config.get("scopes") or GOOGLE_DRIVE_SCOPES)
        tokens = config.get("tokens") or {}
        token_data = tokens.get(scope_key(scopes))
        token = OAuthToken.from_dict(token_data) if token_data else None
        return cls(config.get("client_secret"), token=token, scopes=scopes, **kwargs)

    @property
    def scope_key(self) -> str:
        return scope_key(self.scopes)

    async def read_file(self, object_id: ObjectId) -> bytes:
        return await self._call(lambda token: self.client.download(token, object_id.path))

    async def write_file(self, object_id: ObjectId, content: bytes) -> None:
        file_id = drive_file_id(object_id.path)
        if len(content) <= self.simple_upload_limit:
            await self._call(lambda token: self.client.upload_media(token, file_id, content))
            return
        session_uri = await self._call(
            lambda token: self.client.start_resumable_upload(token, file_id, len(content))
        )

        async def send_chunk(chunk):
            return await self._call(lambda token: self.client.upload_chunk(token, session_uri, chunk))

        await upload_in_chunks(content, send_chunk, self.chunk_size, DRIVE_ALIGNMENT)
        log("INFO", f"Resumable upload completed: {file_id} ({len(content)} bytes)",
            module="gdrive_provider")

    async def delete(self, object_id: ObjectId) -> None:
        await self._call(lambda token: self.client.delete_file(token, drive_file_id(object_id.path)))

    async def send_to_trash(self, object_id: ObjectId) -> None:
        file_id = drive_file_id(object_id.path)
        await self._call(lambda token: self.client.update_file(token, file_id, {"trashed": True}))

    async def move_to(self, object_id: ObjectId, new_parent_id: ObjectId) -> ObjectId:
        """Swap the file's parents; Drive keeps the file id."""
        file_id = drive_file_id(object_id.path)
        current = await self._call(lambda token: self.client.get_file(token, file_id))
        params = {"addParents": drive_file_id(new_parent_id.path)}
        old_parents = current.get("parents") or []
        if old_parents:
            params["removeParents"] = ",".join(old_parents)
        data = await self._call(lambda token: self.client.update_file(token, file_id, params=params))
        return ObjectId(data.get("id", object_id.path), object_id.file_type)

    async def rename(self, object_id: ObjectId, new_name: str) -> ObjectId:
        file_id = drive_file_id(object_id.path)
        data = await self._call(lambda token: self.client.update_file(token, file_id, {"name": new_name}))
        return ObjectId(data.get("id", object_id.path), object_id.file_type)

    async def read_directory(self, object_id: ObjectId) -> List[File]:
        if not object_id.is_root() and not object_id.is_directory():
            raise NotADirectory(f"Not a directory: {object_id.path}")
        files = await self._call(lambda token: self.client.list_children(token, object_id.path))
        return [_to_file(data) for data in files]

    async def create(self, parent_id: ObjectId, file: File) -> None:
        mime_type = FOLDER_MIME_TYPE if file.is_directory() else None
        await self._call(
            lambda token: self.client.create_file(token, parent_id.path, file.name, mime_type)
        )

    async def get_metadata(self, object_id: ObjectId) -> Metadata:
        data = await self._call(lambda token: self.client.get_file(token, object_id.path))
        return _file_metadata(data)

    def serialize(self) -> Dict[str, Any]:
        token = self.credentials.snapshot()
        if token is None:
            return {}
        return {self.scope_key: token.to_dict()}
