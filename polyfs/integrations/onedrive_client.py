"""polyfs/integrations/onedrive_client.py
OneDrive client wrapper for Microsoft Graph operations.

Responsibilities:
- Address drive items by their Graph item id (empty id = drive root)
- Expose the item calls the OneDrive provider needs: get, list children,
  download, upload session + chunk PUTs, simple PUT, patch, delete
- Leave retry/refresh to the caller: every method takes the token to use for
  exactly one attempt

Notes:
- Errors are translated to the file access taxonomy by ``HttpClient``.
- Upload session URLs are pre-authenticated; chunk PUTs carry no bearer token.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from polyfs.config import settings
from polyfs.file_access.chunked_upload import Chunk
from polyfs.file_access.credentials import OAuthToken
from polyfs.file_access.errors import TransportError
from polyfs.integrations.http import HttpClient
from polyfs.monitoring.logger import log

ONEDRIVE_SCOPES = ["Files.ReadWrite.All", "offline_access"]


class OneDriveClient:
    """Thin client for OneDrive operations on the signed-in user's drive (``/me/drive``)."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.MS_GRAPH_BASE_URL).rstrip("/")
        self._http = HttpClient(session, component="onedrive_client")

    def _item_url(self, item_id: str) -> str:
        if not item_id:
            return f"{self.base_url}/me/drive/root"
        return f"{self.base_url}/me/drive/items/{item_id}"

    def _child_path_url(self, parent_id: str, name: str) -> str:
        # Graph path addressing relative to an item: /items/{id}:/{name}:
        return f"{self._item_url(parent_id)}:/{quote(name, safe='')}:"

    async def get_item(self, token: OAuthToken, item_id: str) -> Dict[str, Any]:
        resp = await self._http.request("GET", self._item_url(item_id), "Get item", token=token)
        return resp.json()

    async def list_children(self, token: OAuthToken, item_id: str) -> List[Dict[str, Any]]:
        """List every child of a folder, following ``@odata.nextLink`` pages."""
        url: Optional[str] = f"{self._item_url(item_id)}/children"
        items: List[Dict[str, Any]] = []
        while url:
            resp = await self._http.request("GET", url, "List children", token=token)
            data = resp.json()
            items.extend(data.get("value", []))
            url = data.get("@odata.nextLink")
        log("INFO", f"Listed {len(items)} items", module="onedrive_client")
        return items

    async def download(self, token: OAuthToken, item_id: str) -> bytes:
        resp = await self._http.request("GET", f"{self._item_url(item_id)}/content", "Download", token=token)
        return resp.body

    async def put_content(self, token: OAuthToken, item_id: str, data: bytes) -> Dict[str, Any]:
        """Simple upload replacing the content of an existing item."""
        resp = await self._http.request(
            "PUT",
            f"{self._item_url(item_id)}/content",
            "Upload",
            token=token,
            headers={"Content-Type": "application/octet-stream"},
            data=data,
        )
        return resp.json()

    async def create_file(self, token: OAuthToken, parent_id: str, name: str) -> Dict[str, Any]:
        resp = await self._http.request(
            "PUT",
            f"{self._child_path_url(parent_id, name)}/content",
            "Create file",
            token=token,
            headers={"Content-Type": "text/plain", "Content-Length": "0"},
            data=b"",
        )
        return resp.json()

    async def create_folder(self, token: OAuthToken, parent_id: str, name: str) -> Dict[str, Any]:
        body = {"name": name, "folder": {}, "@microsoft.graph.conflictBehavior": "fail"}
        resp = await self._http.request(
            "POST", f"{self._item_url(parent_id)}/children", "Create folder", token=token, json=body
        )
        return resp.json()

    async def create_upload_session(self, token: OAuthToken, item_id: str) -> str:
        """Open an upload session overwriting ``item_id``; returns the upload URL."""
        body = {"item": {"@microsoft.graph.conflictBehavior": "replace"}}
        resp = await self._http.request(
            "POST",
            f"{self._item_url(item_id)}/createUploadSession",
            "Create upload session",
            token=token,
            json=body,
        )
        upload_url = resp.json().get("uploadUrl")
        if not upload_url:
            raise TransportError("Create upload session returned no uploadUrl")
        return upload_url

    async def upload_chunk(self, upload_url: str, chunk: Chunk) -> Dict[str, Any]:
        """PUT one range; Graph answers 202 for intermediate chunks and 200/201 with the item for the last."""
        resp = await self._http.request(
            "PUT",
            upload_url,
            f"Upload chunk {chunk.content_range}",
            headers=chunk.headers(),
            data=chunk.data,
            allow_redirects=False,
        )
        return resp.json()

    async def update_item(self, token: OAuthToken, item_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._http.request(
            "PATCH", self._item_url(item_id), "Update item", token=token, json=changes
        )
        return resp.json()

    async def move_item(self, token: OAuthToken, item_id: str, new_parent_id: str) -> Dict[str, Any]:
        if new_parent_id:
            reference = {"id": new_parent_id}
        else:
            reference = {"path": "/drive/root"}
        return await self.update_item(token, item_id, {"parentReference": reference})

    async def rename_item(self, token: OAuthToken, item_id: str, new_name: str) -> Dict[str, Any]:
        return await self.update_item(token, item_id, {"name": new_name})

    async def delete_item(self, token: OAuthToken, item_id: str) -> None:
        """Graph DELETE; the item goes to the drive's recycle bin."""
        await self._http.request("DELETE", self._item_url(item_id), "Delete item", token=token)

    async def permanent_delete_item(self, token: OAuthToken, item_id: str) -> None:
        await self._http.request(
            "POST", f"{self._item_url(item_id)}/permanentDelete", "Permanent delete", token=token
        )
