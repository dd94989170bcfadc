# polyfs/file_access/onedrive_provider.py
"""
OneDrive provider.

Maps the FileSystem / Trash contract onto Microsoft Graph drive items of the
signed-in user. ObjectIds carry Graph item ids; the empty id is the drive root.
"""
from typing import Any, Dict, List, Optional

import aiohttp

from polyfs.config import settings
from polyfs.file_access.chunked_upload import GRAPH_ALIGNMENT, upload_in_chunks
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
from polyfs.integrations.oauth import AuthorizationCodeReceiver, OAuth2Client, OAuthClientConfig
from polyfs.integrations.oauth_redirect import loopback_redirect_uri
from polyfs.integrations.onedrive_client import ONEDRIVE_SCOPES, OneDriveClient
from polyfs.monitoring.logger import log


def onedrive_oauth_config(client_id: str, redirect_uri: Optional[str] = None) -> OAuthClientConfig:
    authority = settings.MS_AUTHORITY_URL.rstrip("/")
    return OAuthClientConfig(
        client_id=client_id,
        authorize_url=f"{authority}/authorize",
        token_url=f"{authority}/token",
        redirect_uri=redirect_uri or loopback_redirect_uri(),
        scopes=list(ONEDRIVE_SCOPES),
    )


def _item_metadata(item: Dict[str, Any]) -> Metadata:
    if "folder" in item:
        mime_type = DIRECTORY_MIME_TYPE
    else:
        mime_type = (item.get("file") or {}).get("mimeType")
    owner = None
    creator = (item.get("createdBy") or {}).get("user") or {}
    if creator.get("id"):
        owner = User(UniqueId(creator["id"]), creator.get("displayName"))
    return Metadata(
        mime_type=mime_type,
        open_path=item.get("webUrl"),
        created_at=parse_timestamp(item.get("createdDateTime")),
        modified_at=parse_timestamp(item.get("lastModifiedDateTime")),
        size=item.get("size"),
        owner=owner,
    )


def _item_to_file(item: Dict[str, Any]) -> File:
    file_type = FileType.DIRECTORY if "folder" in item else FileType.FILE
    return File(
        id=ObjectId(item["id"], file_type),
        name=item.get("name", ""),
        metadata=_item_metadata(item),
    )


class OneDriveProvider(CloudDriveProvider):
    """
    OneDrive (personal or business) through Microsoft Graph.

    Config schema (as handed over by the registry):
    {
        "client_id": "...",   # Azure app registration (public client)
        "token": {...}        # Optional persisted OAuthToken record
    }
    """

    provider_type = ProviderType.ONEDRIVE

    def __init__(
        self,
        client_id: str,
        token: Optional[OAuthToken] = None,
        receiver: Optional[AuthorizationCodeReceiver] = None,
        session: Optional[aiohttp.ClientSession] = None,
        chunk_size: Optional[int] = None,
    ):
        if not client_id:
            raise ProviderConfigError("OneDriveProvider requires a client id")
        redirect_uri = getattr(receiver, "redirect_uri", None)
        super().__init__(OAuth2Client(onedrive_oauth_config(client_id, redirect_uri), session), token, receiver)
        self.client = OneDriveClient(session)
        self.chunk_size = chunk_size or settings.ONEDRIVE_UPLOAD_CHUNK_SIZE

        log("INFO", "OneDriveProvider initialized", module="onedrive_provider")

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs: Any) -> "OneDriveProvider":
        token_data = config.get("token")
        token = OAuthToken.from_dict(token_data) if token_data else None
        return cls(config.get("client_id"), token=token, **kwargs)

    async def read_file(self, object_id: ObjectId) -> bytes:
        return await self._call(lambda token: self.client.download(token, object_id.path))

    async def write_file(self, object_id: ObjectId, content: bytes) -> None:
        """
        Overwrite an item's content.

        Non-empty payloads go through an upload session in ``chunk_size``
        ranges; every range is wrapped by the retry middleware on its own.
        """
        if not content:
            await self._call(lambda token: self.client.put_content(token, object_id.path, b""))
            return
        upload_url = await self._call(
            lambda token: self.client.create_upload_session(token, object_id.path)
        )

        async def send_chunk(chunk):
            return await self._call(lambda _token: self.client.upload_chunk(upload_url, chunk))

        await upload_in_chunks(content, send_chunk, self.chunk_size, GRAPH_ALIGNMENT)
        log("INFO", f"Upload completed: {object_id.path} ({len(content)} bytes)",
            module="onedrive_provider")

    async def delete(self, object_id: ObjectId) -> None:
        await self._call(lambda token: self.client.permanent_delete_item(token, object_id.path))

    async def send_to_trash(self, object_id: ObjectId) -> None:
        await self._call(lambda token: self.client.delete_item(token, object_id.path))

    async def move_to(self, object_id: ObjectId, new_parent_id: ObjectId) -> ObjectId:
        item = await self._call(
            lambda token: self.client.move_item(token, object_id.path, new_parent_id.path)
        )
        return ObjectId(item.get("id", object_id.path), object_id.file_type)

    async def rename(self, object_id: ObjectId, new_name: str) -> ObjectId:
        item = await self._call(lambda token: self.client.rename_item(token, object_id.path, new_name))
        return ObjectId(item.get("id", object_id.path), object_id.file_type)

    async def read_directory(self, object_id: ObjectId) -> List[File]:
        if not object_id.is_root() and not object_id.is_directory():
            raise NotADirectory(f"Not a directory: {object_id.path}")
        items = await self._call(lambda token: self.client.list_children(token, object_id.path))
        return [_item_to_file(item) for item in items]

    async def create(self, parent_id: ObjectId, file: File) -> None:
        if file.is_directory():
            await self._call(lambda token: self.client.create_folder(token, parent_id.path, file.name))
        else:
            await self._call(lambda token: self.client.create_file(token, parent_id.path, file.name))

    async def get_metadata(self, object_id: ObjectId) -> Metadata:
        item = await self._call(lambda token: self.client.get_item(token, object_id.path))
        return _item_metadata(item)

    def serialize(self) -> Dict[str, Any]:
        token = self.credentials.snapshot()
        return token.to_dict() if token else {}
