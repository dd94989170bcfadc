# tests/test_chunked_upload.py
"""
Tests for the range-tagged chunked upload protocol.
"""
import math

import pytest

from polyfs.file_access.chunked_upload import (
    DRIVE_ALIGNMENT,
    GRAPH_ALIGNMENT,
    split_chunks,
    upload_in_chunks,
    validate_chunk_size,
)


def test_chunks_reconstruct_payload_with_remainder():
    chunk_size = GRAPH_ALIGNMENT
    data = bytes(range(256)) * ((3 * chunk_size + 17) // 256) + b"x" * ((3 * chunk_size + 17) % 256)
    assert len(data) == 3 * chunk_size + 17

    chunks = split_chunks(data, chunk_size)

    assert len(chunks) == math.ceil(len(data) / chunk_size) == 4
    assert b"".join(c.data for c in chunks) == data
    assert [c.start for c in chunks] == [0, chunk_size, 2 * chunk_size, 3 * chunk_size]
    assert all(len(c.data) == chunk_size for c in chunks[:-1])
    assert len(chunks[-1].data) == 17
    assert chunks[-1].last_byte == len(data) - 1
    assert chunks[-1].is_last and not chunks[0].is_last


def test_exact_multiple_has_no_short_chunk():
    data = b"a" * 16
    chunks = split_chunks(data, 8, alignment=4)
    assert len(chunks) == 2
    assert chunks[1].content_range == "bytes 8-15/16"


def test_content_range_headers():
    chunks = split_chunks(b"0123456789", 4, alignment=2)
    assert [c.content_range for c in chunks] == [
        "bytes 0-3/10",
        "bytes 4-7/10",
        "bytes 8-9/10",
    ]
    assert chunks[2].headers() == {"Content-Length": "2", "Content-Range": "bytes 8-9/10"}


def test_empty_payload_has_no_chunks():
    assert split_chunks(b"", DRIVE_ALIGNMENT, DRIVE_ALIGNMENT) == []


@pytest.mark.parametrize("chunk_size", [0, -GRAPH_ALIGNMENT, GRAPH_ALIGNMENT + 1, 1000])
def test_misaligned_chunk_size_is_rejected(chunk_size):
    with pytest.raises(ValueError):
        validate_chunk_size(chunk_size, GRAPH_ALIGNMENT)
    with pytest.raises(ValueError):
        split_chunks(b"data", chunk_size)


@pytest.mark.asyncio
async def test_upload_sends_chunks_in_increasing_order():
    sent = []

    async def send_chunk(chunk):
        sent.append(chunk)
        return {"id": "item", "last": chunk.is_last}

    data = bytes(25)
    result = await upload_in_chunks(data, send_chunk, chunk_size=8, alignment=4)

    assert [c.start for c in sent] == [0, 8, 16, 24]
    assert sent[-1].content_range == "bytes 24-24/25"
    assert result == {"id": "item", "last": True}


@pytest.mark.asyncio
async def test_upload_of_empty_payload_sends_nothing():
    async def send_chunk(chunk):
        raise AssertionError("no chunk expected")

    assert await upload_in_chunks(b"", send_chunk, chunk_size=8, alignment=4) is None
