# tests/test_object_model.py
"""
Tests for the normalized object model and capability accessors.
"""
from datetime import datetime, timezone

import pytest

from polyfs.file_access.localfs_provider import LocalDiskProvider
from polyfs.file_access.s3_provider import S3Provider
from polyfs.file_access.types import (
    File,
    FileType,
    Metadata,
    ObjectId,
    ProviderId,
    ProviderType,
    UniqueId,
    UnixPermissions,
    User,
    UserAndGroup,
)
from conftest import FakeS3Session


def test_object_id_identity_includes_type():
    assert ObjectId.root() != ObjectId.plain_file("")
    assert ObjectId.directory("a") == ObjectId("a", FileType.DIRECTORY)
    ids = {ObjectId.root(), ObjectId.plain_file(""), ObjectId.directory("")}
    assert len(ids) == 2


def test_object_id_helpers():
    root = ObjectId.root()
    assert root.is_root() and root.is_directory()
    assert str(root) == ""

    child = root.child("docs", FileType.DIRECTORY)
    assert child == ObjectId.directory("docs")
    nested = child.child("report.pdf")
    assert nested.path == "docs/report.pdf"
    assert nested.name == "report.pdf"
    assert nested.parent() == ObjectId.directory("docs")
    assert ObjectId.directory("docs/").name == "docs"
    assert ObjectId.symlink("l").file_type == FileType.SYMLINK


def test_object_id_dict_form():
    oid = ObjectId.directory("a/b")
    assert oid.to_dict() == {"path": "a/b", "file_type": "directory"}
    assert ObjectId.from_dict(oid.to_dict()) == oid
    assert ObjectId.from_dict({"path": "x"}) == ObjectId.plain_file("x")


def test_file_directory_hint_from_metadata():
    f = File(ObjectId.plain_file("new"), "new", Metadata(mime_type="directory"))
    assert f.is_directory()
    assert not File(ObjectId.plain_file("x"), "x").is_directory()
    assert File(ObjectId.directory("d"), "d").is_directory()


def test_metadata_to_dict_sparse():
    ts = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    meta = Metadata(
        modified_at=ts,
        size=0,
        owner=User(UserAndGroup(1000, 100)),
        permissions=UnixPermissions(0o100644),
    )
    data = meta.to_dict()
    assert data["modified_at"] == "2024-01-02T03:04:05+00:00"
    assert data["size"] == 0
    assert data["created_at"] is None
    assert data["owner"] == {"id": {"uid": 1000, "gid": 100}, "name": None}
    assert data["permissions"] == {"unix": 0o100644}
    assert User(UniqueId("u1"), "Ada").to_dict() == {"id": {"unique_id": "u1"}, "name": "Ada"}


def test_provider_id_file_name():
    pid = ProviderId("work", ProviderType.ONEDRIVE)
    assert pid.file_name == "work.onedrive"
    assert str(pid) == "work.onedrive"
    assert ProviderId.from_file_name("work.onedrive") == pid
    # ids may themselves contain dots
    assert ProviderId.from_file_name("my.bucket.s3") == ProviderId("my.bucket", ProviderType.S3)
    assert ProviderId("a", ProviderType.S3) != ProviderId("a", ProviderType.LOCAL_DISK)


@pytest.mark.parametrize("name", ["noextension", "a.unknown", ".s3"])
def test_provider_id_rejects_bad_file_names(name):
    with pytest.raises(ValueError):
        ProviderId.from_file_name(name)


def test_provider_type_values():
    assert ProviderType("nativefs") is ProviderType.LOCAL_DISK
    assert ProviderType("googledrive") is ProviderType.GOOGLE_DRIVE
    assert str(ProviderType.S3) == "s3"


def test_capability_accessors(tmp_path):
    local = LocalDiskProvider(str(tmp_path))
    assert local.as_filesystem() is local
    assert local.as_trash() is local

    s3 = S3Provider("bucket", "us-east-1", None, "ak", "sk", session=FakeS3Session())
    assert s3.as_filesystem() is s3
    assert s3.as_trash() is None
