"""
Shared fakes for the polyfs test suite.

HTTP backends get a hand-written aiohttp-shaped session; S3 gets an in-memory
aioboto3-shaped session. Both are injected through the constructors.
"""
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlparse

import pytest
from botocore.exceptions import ClientError

from polyfs.file_access.credentials import OAuthToken


class FakeResp:
    def __init__(self, status: int = 200, json_payload: Any = None, body: bytes = None,
                 headers: Optional[Dict[str, str]] = None):
        self.status = status
        if body is None:
            body = json.dumps(json_payload).encode() if json_payload is not None else b""
        self._body = body
        self.headers = headers or {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def read(self) -> bytes:
        return self._body


class RecordedRequest:
    def __init__(self, method: str, url: str, kwargs: Dict[str, Any]):
        self.method = method
        self.url = url
        self.kwargs = kwargs

    @property
    def headers(self) -> Dict[str, str]:
        return self.kwargs.get("headers") or {}

    @property
    def params(self) -> Dict[str, str]:
        return self.kwargs.get("params") or {}

    def __repr__(self) -> str:
        return f"<{self.method} {self.url}>"


class FakeSession:
    """
    aiohttp.ClientSession stand-in.

    ``responder`` is either a list of FakeResp returned in order, or a callable
    ``(RecordedRequest) -> FakeResp``.
    """

    def __init__(self, responder: Union[List[FakeResp], Callable[[RecordedRequest], FakeResp]]):
        self.responder = responder
        self.requests: List[RecordedRequest] = []

    def request(self, method, url, **kwargs):
        req = RecordedRequest(method, url, kwargs)
        self.requests.append(req)
        if callable(self.responder):
            return self.responder(req)
        return self.responder.pop(0)

    async def close(self):
        return None


def token_response(access: str = "new-access", refresh: Optional[str] = "refresh-2") -> FakeResp:
    payload = {"access_token": access, "token_type": "Bearer", "expires_in": 3600}
    if refresh:
        payload["refresh_token"] = refresh
    return FakeResp(200, payload)


def is_token_request(req: RecordedRequest) -> bool:
    return req.method == "POST" and req.url.endswith("/token")


class FakeReceiver:
    """AuthorizationCodeReceiver that echoes the state of the authorization URL."""

    def __init__(self, code: str = "auth-code", state: Optional[str] = None):
        self.code = code
        self.state = state
        self.urls: List[str] = []

    async def obtain_authorization_code(self, auth_url: str):
        self.urls.append(auth_url)
        state = self.state or parse_qs(urlparse(auth_url).query)["state"][0]
        return self.code, state


# --- S3 -----------------------------------------------------------------

def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeBody:
    def __init__(self, data: bytes):
        self._data = data

    async def read(self) -> bytes:
        return self._data


class FakePaginator:
    def __init__(self, store: Dict[str, bytes]):
        self.store = store

    async def paginate(self, Bucket, Prefix="", PaginationConfig=None):
        keys = sorted(k for k in self.store if k.startswith(Prefix))
        if PaginationConfig and PaginationConfig.get("MaxItems"):
            keys = keys[:PaginationConfig["MaxItems"]]
        if keys:
            yield {"Contents": [{"Key": k, "Size": len(self.store[k])} for k in keys]}
        else:
            yield {"KeyCount": 0}


class FakeS3Client:
    def __init__(self, owner: "FakeS3Session"):
        self.owner = owner
        self.store = owner.store

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def put_object(self, Bucket, Key, Body=b""):
        self.owner.calls.append(("put_object", Key))
        self.store[Key] = bytes(Body)

    async def get_object(self, Bucket, Key):
        if Key not in self.store:
            raise client_error("NoSuchKey", "GetObject")
        return {"Body": FakeBody(self.store[Key])}

    async def head_object(self, Bucket, Key):
        if self.owner.fail_code:
            raise client_error(self.owner.fail_code, "HeadObject")
        if Key not in self.store:
            raise client_error("404", "HeadObject")
        return {"ContentLength": len(self.store[Key]), "ContentType": "binary/octet-stream"}

    async def copy_object(self, Bucket, Key, CopySource):
        self.owner.calls.append(("copy_object", CopySource["Key"], Key))
        if self.owner.fail_copy:
            raise client_error("InternalError", "CopyObject")
        self.store[Key] = self.store[CopySource["Key"]]

    async def delete_object(self, Bucket, Key):
        self.owner.calls.append(("delete_object", Key))
        if self.owner.fail_delete:
            raise client_error("InternalError", "DeleteObject")
        self.store.pop(Key, None)

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return FakePaginator(self.store)


class FakeS3Session:
    """In-memory single-bucket aioboto3.Session stand-in."""

    def __init__(self, keys: Optional[Dict[str, bytes]] = None):
        self.store: Dict[str, bytes] = dict(keys or {})
        self.calls: List[tuple] = []
        self.client_kwargs: List[Dict[str, Any]] = []
        self.fail_copy = False
        self.fail_delete = False
        self.fail_code: Optional[str] = None

    def client(self, service_name, **kwargs):
        assert service_name == "s3"
        self.client_kwargs.append(kwargs)
        return FakeS3Client(self)


# --- fixtures -------------------------------------------------------------

@pytest.fixture
def valid_token() -> OAuthToken:
    return OAuthToken(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def google_client_secret() -> str:
    return json.dumps({
        "installed": {
            "client_id": "gid.apps.googleusercontent.com",
            "client_secret": "gsecret",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    })


@pytest.fixture
def s3_session() -> FakeS3Session:
    return FakeS3Session()
