# polyfs/file_access/s3_provider.py
"""
S3-compatible object store provider.

There are no real directories in a bucket: a "directory" is every key sharing
a ``prefix/`` and, once created through ``create``, a zero-byte ``prefix/``
marker key. Listings group keys by the next ``/`` after the queried prefix.
Moves and renames are copy-then-delete. No trash, no symlinks.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import aioboto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from polyfs.file_access.base import FileSystem, Provider
from polyfs.file_access.errors import (
    AuthRequired,
    Conflict,
    NotADirectory,
    NotFound,
    ProviderConfigError,
    TransportError,
)
from polyfs.file_access.types import DIRECTORY_MIME_TYPE, File, FileType, Metadata, ObjectId, ProviderType

logger = structlog.get_logger()

NOT_FOUND_CODES = {"NoSuchKey", "404", "NoSuchBucket", "NotFound"}
AUTH_CODES = {"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch", "403"}


def _error_code(exc: ClientError) -> Optional[str]:
    return (getattr(exc, "response", None) or {}).get("Error", {}).get("Code")


@contextmanager
def translate_errors(operation: str, key: str) -> Iterator[None]:
    """Map botocore failures raised inside the block onto the error taxonomy."""
    try:
        yield
    except ClientError as exc:
        code = _error_code(exc)
        if code in NOT_FOUND_CODES:
            raise NotFound(f"{operation}: no such key {key!r}") from exc
        if code in AUTH_CODES:
            raise AuthRequired(f"{operation}: access denied ({code})") from exc
        logger.error("s3_request_failed", operation=operation, key=key, code=code)
        raise TransportError(f"{operation} failed: {code}") from exc
    except BotoCoreError as exc:
        logger.error("s3_transport_failed", operation=operation, key=key, error=str(exc))
        raise TransportError(f"{operation} failed: {exc}") from exc


def directory_prefix(path: str) -> str:
    """Key prefix for a directory path; the root maps to the empty prefix."""
    path = path.strip("/")
    return f"{path}/" if path else ""


def group_listing(objects: Iterable[Dict[str, Any]], prefix: str) -> List[File]:
    """
    Turn a flat prefix listing into the direct children of ``prefix``.

    Keys are stripped of ``prefix``; anything with a further ``/`` collapses
    into one directory entry named by its first segment. The directory's own
    marker key is skipped. Order follows the first appearance of each child.
    """
    files: List[File] = []
    seen_dirs = set()
    for obj in objects:
        key = obj["Key"]
        if not key.startswith(prefix):
            continue
        rest = key[len(prefix):]
        if not rest:
            continue
        name, sep, _ = rest.partition("/")
        if sep:
            if name in seen_dirs:
                continue
            seen_dirs.add(name)
            files.append(File(
                id=ObjectId.directory(prefix + name),
                name=name,
                metadata=Metadata(mime_type=DIRECTORY_MIME_TYPE),
            ))
        else:
            files.append(File(
                id=ObjectId.plain_file(key),
                name=name,
                metadata=Metadata(size=obj.get("Size"), modified_at=obj.get("LastModified")),
            ))
    return files


class S3Provider(Provider, FileSystem):
    """
    One bucket on an S3-compatible endpoint, path-style addressing.

    Config schema:
    {
        "bucket": "my-bucket",
        "credentials": {
            "region": "us-east-1",
            "endpoint": "https://s3.example.com",   # Optional for AWS
            "access_key": "...",
            "secret_key": "..."
        }
    }
    """

    provider_type = ProviderType.S3

    def __init__(
        self,
        bucket: str,
        region: Optional[str],
        endpoint: Optional[str],
        access_key: str,
        secret_key: str,
        session: Optional[Any] = None,
    ):
        if not bucket:
            raise ProviderConfigError("S3Provider requires a bucket")
        if not access_key or not secret_key:
            raise ProviderConfigError("S3Provider requires access_key and secret_key")
        self.bucket = bucket
        self.region = region
        self.endpoint = endpoint
        self.access_key = access_key
        self.secret_key = secret_key
        self.session = session or aioboto3.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )
        logger.info("s3_provider_initialized", bucket=bucket, endpoint=endpoint)

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs: Any) -> "S3Provider":
        credentials = config.get("credentials") or {}
        try:
            return cls(
                bucket=config["bucket"],
                region=credentials.get("region"),
                endpoint=credentials.get("endpoint"),
                access_key=credentials["access_key"],
                secret_key=credentials["secret_key"],
                **kwargs,
            )
        except KeyError as exc:
            raise ProviderConfigError(f"S3 config missing {exc}") from exc

    def _get_client(self):
        return self.session.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            config=Config(s3={"addressing_style": "path"}),
        )

    @staticmethod
    def _key(object_id: ObjectId) -> str:
        if object_id.is_directory():
            return directory_prefix(object_id.path)
        return object_id.path.lstrip("/")

    async def _list_objects(self, s3_client, prefix: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        objects: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix}
        if limit is not None:
            params["PaginationConfig"] = {"MaxItems": limit}
        paginator = s3_client.get_paginator("list_objects_v2")
        async for page in paginator.paginate(**params):
            objects.extend(page.get("Contents", []))
        return objects

    async def _exists(self, s3_client, key: str) -> bool:
        if key.endswith("/") or key == "":
            return bool(await self._list_objects(s3_client, key, limit=1))
        try:
            await s3_client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in NOT_FOUND_CODES:
                return False
            raise
        return True

    async def read_file(self, object_id: ObjectId) -> bytes:
        key = self._key(object_id)
        with translate_errors("read_file", key):
            async with self._get_client() as s3_client:
                response = await s3_client.get_object(Bucket=self.bucket, Key=key)
                return await response["Body"].read()

    async def write_file(self, object_id: ObjectId, content: bytes) -> None:
        key = self._key(object_id)
        with translate_errors("write_file", key):
            async with self._get_client() as s3_client:
                await s3_client.put_object(Bucket=self.bucket, Key=key, Body=content)
        logger.debug("s3_object_written", key=key, size=len(content))

    async def delete(self, object_id: ObjectId) -> None:
        """Delete a key; a directory must be empty apart from its marker."""
        key = self._key(object_id)
        with translate_errors("delete", key):
            async with self._get_client() as s3_client:
                if object_id.is_directory():
                    keys = [obj["Key"] for obj in await self._list_objects(s3_client, key)]
                    if not keys:
                        raise NotFound(f"No such directory: {object_id.path}")
                    if any(k != key for k in keys):
                        raise Conflict(f"Directory not empty: {object_id.path}")
                elif not await self._exists(s3_client, key):
                    raise NotFound(f"No such key: {key}")
                await s3_client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("s3_object_deleted", key=key)

    async def _relocate(
        self, object_id: ObjectId, destination: ObjectId, parent_prefix: Optional[str] = None
    ) -> ObjectId:
        """
        Copy every key of ``object_id`` to ``destination`` then delete the sources.

        ``parent_prefix``, when given, must already exist in the bucket.

        Raises:
            NotFound: If the source or ``parent_prefix`` is missing
            Conflict: If the destination exists, or if deleting a source fails
                after all copies succeeded (both copies are then present)
        """
        src = self._key(object_id)
        dst = self._key(destination)
        with translate_errors("move", src):
            async with self._get_client() as s3_client:
                if parent_prefix and not await self._exists(s3_client, parent_prefix):
                    raise NotFound(f"No such directory: {parent_prefix}")
                if await self._exists(s3_client, dst):
                    raise Conflict(f"Destination already exists: {destination.path}")
                if object_id.is_directory():
                    pairs: List[Tuple[str, str]] = [
                        (obj["Key"], dst + obj["Key"][len(src):])
                        for obj in await self._list_objects(s3_client, src)
                    ]
                    if not pairs:
                        raise NotFound(f"No such directory: {object_id.path}")
                else:
                    if not await self._exists(s3_client, src):
                        raise NotFound(f"No such key: {src}")
                    pairs = [(src, dst)]

                for source_key, target_key in pairs:
                    await s3_client.copy_object(
                        Bucket=self.bucket,
                        Key=target_key,
                        CopySource={"Bucket": self.bucket, "Key": source_key},
                    )
                    logger.debug("s3_object_copied", source=source_key, target=target_key)

                for source_key, _ in pairs:
                    try:
                        await s3_client.delete_object(Bucket=self.bucket, Key=source_key)
                    except (ClientError, BotoCoreError) as exc:
                        logger.error("s3_move_delete_failed", source=source_key, error=str(exc))
                        raise Conflict(
                            f"Copied {object_id.path} to {destination.path} but could not delete the source"
                        ) from exc
        logger.info("s3_object_moved", source=src, target=dst)
        return destination

    async def move_to(self, object_id: ObjectId, new_parent_id: ObjectId) -> ObjectId:
        parent = ObjectId.directory(new_parent_id.path.strip("/"))
        destination = parent.child(object_id.name, object_id.file_type)
        if parent.is_root():
            return await self._relocate(object_id, destination)
        return await self._relocate(object_id, destination, directory_prefix(parent.path))

    async def rename(self, object_id: ObjectId, new_name: str) -> ObjectId:
        parent = ObjectId.directory(object_id.path.strip("/")).parent()
        return await self._relocate(object_id, parent.child(new_name, object_id.file_type))

    async def read_directory(self, object_id: ObjectId) -> List[File]:
        if not object_id.is_root() and not object_id.is_directory():
            raise NotADirectory(f"Not a directory: {object_id.path}")
        prefix = directory_prefix(object_id.path)
        with translate_errors("read_directory", prefix):
            async with self._get_client() as s3_client:
                objects = await self._list_objects(s3_client, prefix)
        if prefix and not objects:
            raise NotFound(f"No such directory: {object_id.path}")
        return group_listing(objects, prefix)

    async def create(self, parent_id: ObjectId, file: File) -> None:
        file_type = FileType.DIRECTORY if file.is_directory() else FileType.FILE
        target = ObjectId.directory(parent_id.path.strip("/")).child(file.name, file_type)
        key = self._key(target)
        with translate_errors("create", key):
            async with self._get_client() as s3_client:
                if file_type == FileType.DIRECTORY and await self._exists(s3_client, key):
                    raise Conflict(f"Directory already exists: {target.path}")
                await s3_client.put_object(Bucket=self.bucket, Key=key, Body=b"")
        logger.info("s3_object_created", key=key, directory=file_type == FileType.DIRECTORY)

    async def get_metadata(self, object_id: ObjectId) -> Metadata:
        if object_id.is_root():
            return Metadata(mime_type=DIRECTORY_MIME_TYPE)
        key = self._key(object_id)
        with translate_errors("get_metadata", key):
            async with self._get_client() as s3_client:
                if object_id.is_directory():
                    if not await self._exists(s3_client, key):
                        raise NotFound(f"No such directory: {object_id.path}")
                    return Metadata(mime_type=DIRECTORY_MIME_TYPE)
                head = await s3_client.head_object(Bucket=self.bucket, Key=key)
        return Metadata(
            mime_type=head.get("ContentType"),
            modified_at=head.get("LastModified"),
            size=head.get("ContentLength"),
        )

    def serialize(self) -> Dict[str, Any]:
        return {
            "bucket": self.bucket,
            "credentials": {
                "region": self.region,
                "endpoint": self.endpoint,
                "access_key": self.access_key,
                "secret_key": self.secret_key,
            },
        }
