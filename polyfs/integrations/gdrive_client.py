"""polyfs/integrations/gdrive_client.py
Google Drive v3 client wrapper.

Responsibilities:
- Address files by Drive file id (empty id = the ``root`` alias)
- Expose the file calls the Google Drive provider needs: get, list children,
  download, media / resumable upload, create, patch, delete
- One attempt per call; retry/refresh stays with the caller
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import aiohttp

from polyfs.config import settings
from polyfs.file_access.chunked_upload import Chunk
from polyfs.file_access.credentials import OAuthToken
from polyfs.file_access.errors import TransportError
from polyfs.integrations.http import HttpClient
from polyfs.monitoring.logger import log

GOOGLE_DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = (
    "id,name,mimeType,size,createdTime,modifiedTime,viewedByMeTime,"
    "webViewLink,parents,owners(displayName,permissionId)"
)


def drive_file_id(object_path: str) -> str:
    return object_path or "root"


class GoogleDriveClient:
    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: Optional[str] = None,
        upload_url: Optional[str] = None,
    ):
        self.base_url = (base_url or settings.GOOGLE_DRIVE_BASE_URL).rstrip("/")
        self.upload_url = (upload_url or settings.GOOGLE_UPLOAD_BASE_URL).rstrip("/")
        self._http = HttpClient(session, component="gdrive_client")

    async def get_file(self, token: OAuthToken, file_id: str) -> Dict[str, Any]:
        resp = await self._http.request(
            "GET",
            f"{self.base_url}/files/{drive_file_id(file_id)}",
            "Get file",
            token=token,
            params={"fields": FILE_FIELDS},
        )
        return resp.json()

    async def list_children(self, token: OAuthToken, folder_id: str) -> List[Dict[str, Any]]:
        """List the non-trashed children of a folder across all result pages."""
        params = {
            "q": f"'{drive_file_id(folder_id)}' in parents and trashed = false",
            "fields": f"nextPageToken,files({FILE_FIELDS})",
            "pageSize": "1000",
        }
        files: List[Dict[str, Any]] = []
        while True:
            resp = await self._http.request(
                "GET", f"{self.base_url}/files", "List files", token=token, params=dict(params)
            )
            data = resp.json()
            files.extend(data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
        log("INFO", f"Listed {len(files)} files", module="gdrive_client")
        return files

    async def download(self, token: OAuthToken, file_id: str) -> bytes:
        resp = await self._http.request(
            "GET",
            f"{self.base_url}/files/{drive_file_id(file_id)}",
            "Download",
            token=token,
            params={"alt": "media"},
        )
        return resp.body

    async def upload_media(self, token: OAuthToken, file_id: str, data: bytes) -> Dict[str, Any]:
        """Single-request content replacement."""
        resp = await self._http.request(
            "PATCH",
            f"{self.upload_url}/files/{file_id}",
            "Media upload",
            token=token,
            params={"uploadType": "media"},
            headers={"Content-Type": "application/octet-stream"},
            data=data,
        )
        return resp.json()

    async def start_resumable_upload(self, token: OAuthToken, file_id: str, total: int) -> str:
        """Open a resumable session replacing the content of ``file_id``; returns the session URI."""
        resp = await self._http.request(
            "PATCH",
            f"{self.upload_url}/files/{file_id}",
            "Start resumable upload",
            token=token,
            params={"uploadType": "resumable"},
            headers={"X-Upload-Content-Length": str(total)},
            json={},
        )
        location = resp.header("Location")
        if not location:
            raise TransportError("Resumable upload session returned no Location header")
        return location

    async def upload_chunk(self, token: OAuthToken, session_uri: str, chunk: Chunk) -> Dict[str, Any]:
        # intermediate chunks answer 308 Resume Incomplete with an empty body
        resp = await self._http.request(
            "PUT",
            session_uri,
            f"Upload chunk {chunk.content_range}",
            token=token,
            headers=chunk.headers(),
            data=chunk.data,
            allow_redirects=False,
        )
        return resp.json()

    async def create_file(
        self, token: OAuthToken, parent_id: str, name: str, mime_type: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": name, "parents": [drive_file_id(parent_id)]}
        if mime_type:
            body["mimeType"] = mime_type
        resp = await self._http.request(
            "POST",
            f"{self.base_url}/files",
            "Create file",
            token=token,
            params={"fields": FILE_FIELDS},
            json=body,
        )
        return resp.json()

    async def update_file(
        self,
        token: OAuthToken,
        file_id: str,
        changes: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        query = {"fields": FILE_FIELDS, **(params or {})}
        resp = await self._http.request(
            "PATCH",
            f"{self.base_url}/files/{file_id}",
            "Update file",
            token=token,
            params=query,
            json=changes or {},
        )
        return resp.json()

    async def delete_file(self, token: OAuthToken, file_id: str) -> None:
        await self._http.request("DELETE", f"{self.base_url}/files/{file_id}", "Delete file", token=token)
