# tests/test_s3_provider.py
"""
Tests for S3Provider against an in-memory bucket.
"""
import pytest

from polyfs.file_access.errors import (
    AuthRequired,
    Conflict,
    NotADirectory,
    NotFound,
    ProviderConfigError,
    TransportError,
    Unsupported,
)
from polyfs.file_access.s3_provider import S3Provider, directory_prefix, group_listing
from polyfs.file_access.types import File, FileType, ObjectId
from conftest import FakeS3Session


def make_provider(session):
    return S3Provider("bucket", "us-east-1", "http://localhost:9000", "ak", "sk", session=session)


def test_group_listing_synthesizes_unique_directories():
    objects = [{"Key": "a/x.txt", "Size": 3}, {"Key": "a/b/y.txt", "Size": 1}, {"Key": "a/b/z.txt", "Size": 1}]
    files = group_listing(objects, "a/")
    assert [(f.name, f.id.file_type) for f in files] == [("x.txt", FileType.FILE), ("b", FileType.DIRECTORY)]
    assert files[0].id == ObjectId.plain_file("a/x.txt")
    assert files[0].metadata.size == 3
    assert files[1].id == ObjectId.directory("a/b")


def test_group_listing_skips_directory_marker():
    files = group_listing([{"Key": "a/"}, {"Key": "a/x"}], "a/")
    assert [f.name for f in files] == ["x"]


def test_directory_prefix():
    assert directory_prefix("") == ""
    assert directory_prefix("a/b") == "a/b/"
    assert directory_prefix("/a/b/") == "a/b/"


@pytest.mark.asyncio
async def test_pseudo_directory_listing():
    session = FakeS3Session({"a/x.txt": b"x", "a/b/y.txt": b"y", "a/b/z.txt": b"z", "top.txt": b"t"})
    provider = make_provider(session)

    listing = await provider.read_directory(ObjectId.directory("a"))
    assert sorted((f.name, f.is_directory()) for f in listing) == [("b", True), ("x.txt", False)]

    root = await provider.read_directory(ObjectId.root())
    assert sorted(f.name for f in root) == ["a", "top.txt"]

    with pytest.raises(NotFound):
        await provider.read_directory(ObjectId.directory("missing"))
    with pytest.raises(NotADirectory):
        await provider.read_directory(ObjectId.plain_file("top.txt"))


@pytest.mark.asyncio
async def test_client_uses_path_style_addressing(s3_session):
    provider = make_provider(s3_session)
    await provider.write_file(ObjectId.plain_file("k"), b"v")
    kwargs = s3_session.client_kwargs[0]
    assert kwargs["endpoint_url"] == "http://localhost:9000"
    assert kwargs["config"].s3 == {"addressing_style": "path"}


@pytest.mark.asyncio
async def test_write_read_and_metadata(s3_session):
    provider = make_provider(s3_session)
    await provider.write_file(ObjectId.plain_file("docs/readme.md"), b"# hi")
    assert await provider.read_file(ObjectId.plain_file("docs/readme.md")) == b"# hi"

    meta = await provider.get_metadata(ObjectId.plain_file("docs/readme.md"))
    assert meta.size == 4
    dir_meta = await provider.get_metadata(ObjectId.directory("docs"))
    assert dir_meta.mime_type == "directory"

    with pytest.raises(NotFound):
        await provider.read_file(ObjectId.plain_file("nope"))
    with pytest.raises(NotFound):
        await provider.get_metadata(ObjectId.plain_file("nope"))


@pytest.mark.asyncio
async def test_create_directory_writes_marker(s3_session):
    provider = make_provider(s3_session)
    await provider.create(ObjectId.root(), File(ObjectId.directory("photos"), "photos"))
    assert s3_session.store == {"photos/": b""}

    assert await provider.read_directory(ObjectId.directory("photos")) == []
    with pytest.raises(Conflict):
        await provider.create(ObjectId.root(), File(ObjectId.directory("photos"), "photos"))

    await provider.create(ObjectId.directory("photos"), File(ObjectId.plain_file("a.jpg"), "a.jpg"))
    listing = await provider.read_directory(ObjectId.directory("photos"))
    assert [f.name for f in listing] == ["a.jpg"]


@pytest.mark.asyncio
async def test_move_is_copy_then_delete():
    session = FakeS3Session({"inbox/m.txt": b"m", "archive/": b""})
    provider = make_provider(session)

    moved = await provider.move_to(ObjectId.plain_file("inbox/m.txt"), ObjectId.directory("archive"))
    assert moved == ObjectId.plain_file("archive/m.txt")
    assert session.store == {"archive/": b"", "archive/m.txt": b"m"}
    assert [c[0] for c in session.calls] == ["copy_object", "delete_object"]


@pytest.mark.asyncio
async def test_move_to_missing_directory_is_not_found():
    session = FakeS3Session({"inbox/m.txt": b"m"})
    provider = make_provider(session)
    with pytest.raises(NotFound):
        await provider.move_to(ObjectId.plain_file("inbox/m.txt"), ObjectId.directory("nowhere"))
    assert session.store == {"inbox/m.txt": b"m"}
    assert session.calls == []


@pytest.mark.asyncio
async def test_move_to_root_needs_no_marker():
    session = FakeS3Session({"inbox/m.txt": b"m"})
    provider = make_provider(session)
    moved = await provider.move_to(ObjectId.plain_file("inbox/m.txt"), ObjectId.root())
    assert moved == ObjectId.plain_file("m.txt")
    assert session.store == {"m.txt": b"m"}


@pytest.mark.asyncio
async def test_move_onto_existing_destination_conflicts():
    session = FakeS3Session({"a/m.txt": b"new", "b/m.txt": b"old"})
    provider = make_provider(session)
    with pytest.raises(Conflict):
        await provider.move_to(ObjectId.plain_file("a/m.txt"), ObjectId.directory("b"))
    assert session.store == {"a/m.txt": b"new", "b/m.txt": b"old"}
    assert session.calls == []


@pytest.mark.asyncio
async def test_copy_failure_leaves_source_untouched():
    session = FakeS3Session({"a/m.txt": b"m"})
    session.fail_copy = True
    provider = make_provider(session)
    with pytest.raises(TransportError):
        await provider.rename(ObjectId.plain_file("a/m.txt"), "n.txt")
    assert session.store == {"a/m.txt": b"m"}


@pytest.mark.asyncio
async def test_delete_failure_after_copy_reports_conflict_with_both_present():
    session = FakeS3Session({"a/m.txt": b"m"})
    session.fail_delete = True
    provider = make_provider(session)
    with pytest.raises(Conflict):
        await provider.rename(ObjectId.plain_file("a/m.txt"), "n.txt")
    assert session.store == {"a/m.txt": b"m", "a/n.txt": b"m"}


@pytest.mark.asyncio
async def test_rename_directory_moves_every_key():
    session = FakeS3Session({"old/": b"", "old/x": b"x", "old/sub/y": b"y"})
    provider = make_provider(session)

    renamed = await provider.rename(ObjectId.directory("old"), "new")
    assert renamed == ObjectId.directory("new")
    assert session.store == {"new/": b"", "new/x": b"x", "new/sub/y": b"y"}

    restored = await provider.rename(renamed, "old")
    assert restored == ObjectId.directory("old")
    assert await provider.read_file(ObjectId.plain_file("old/sub/y")) == b"y"


@pytest.mark.asyncio
async def test_delete():
    session = FakeS3Session({"d/": b"", "d/f": b"f"})
    provider = make_provider(session)
    with pytest.raises(Conflict):
        await provider.delete(ObjectId.directory("d"))
    await provider.delete(ObjectId.plain_file("d/f"))
    await provider.delete(ObjectId.directory("d"))
    assert session.store == {}
    with pytest.raises(NotFound):
        await provider.delete(ObjectId.plain_file("d/f"))


@pytest.mark.asyncio
async def test_access_denied_maps_to_auth_required(s3_session):
    s3_session.fail_code = "AccessDenied"
    provider = make_provider(s3_session)
    with pytest.raises(AuthRequired):
        await provider.get_metadata(ObjectId.plain_file("x"))


@pytest.mark.asyncio
async def test_no_links_and_no_trash(s3_session):
    provider = make_provider(s3_session)
    assert provider.as_trash() is None
    with pytest.raises(Unsupported):
        await provider.read_link(ObjectId.plain_file("x"))
    with pytest.raises(Unsupported):
        await provider.create_link(ObjectId.root(), "l", ObjectId.plain_file("x"))


def test_serialize_round_trip(s3_session):
    provider = make_provider(s3_session)
    data = provider.serialize()
    assert data == {
        "bucket": "bucket",
        "credentials": {
            "region": "us-east-1",
            "endpoint": "http://localhost:9000",
            "access_key": "ak",
            "secret_key": "sk",
        },
    }
    rebuilt = S3Provider.from_config(data, session=s3_session)
    assert rebuilt.serialize() == data

    with pytest.raises(ProviderConfigError):
        S3Provider.from_config({"credentials": {"access_key": "a", "secret_key": "s"}}, session=s3_session)
    with pytest.raises(ProviderConfigError):
        S3Provider.from_config({"bucket": "b", "credentials": {}}, session=s3_session)
