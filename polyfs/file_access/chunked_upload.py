"""
Chunked (range-tagged) upload protocol.

Backends that cap request bodies or use resumable sessions receive the payload
as consecutive chunks. Every chunk but the last has the configured size, which
must be a multiple of the backend's alignment; each chunk is tagged with a
``Content-Range: bytes {first}-{last}/{total}`` header (inclusive bounds).
Chunks are always sent in increasing offset order.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, List, Optional

import structlog

logger = structlog.get_logger()

# Microsoft Graph upload sessions want byte ranges in multiples of 320 KiB
GRAPH_ALIGNMENT = 320 * 1024
# Google Drive resumable uploads want multiples of 256 KiB
DRIVE_ALIGNMENT = 256 * 1024


@dataclass(frozen=True)
class Chunk:
    """One slice of the payload, ``data == payload[start:stop]``."""
    start: int
    stop: int
    total: int
    data: bytes

    @property
    def last_byte(self) -> int:
        return self.stop - 1

    @property
    def is_last(self) -> bool:
        return self.stop == self.total

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.last_byte}/{self.total}"

    def headers(self) -> dict:
        return {
            "Content-Length": str(len(self.data)),
            "Content-Range": self.content_range,
        }


def validate_chunk_size(chunk_size: int, alignment: int) -> None:
    if chunk_size <= 0 or chunk_size % alignment != 0:
        raise ValueError(
            f"Chunk size {chunk_size} must be a positive multiple of {alignment}"
        )


def iter_chunks(data: bytes, chunk_size: int, alignment: int = GRAPH_ALIGNMENT) -> Iterator[Chunk]:
    """
    Yield the chunks of ``data`` in increasing offset order.

    Produces ``ceil(len(data) / chunk_size)`` chunks; an empty payload yields
    nothing.
    """
    validate_chunk_size(chunk_size, alignment)
    total = len(data)
    view = memoryview(data)
    for start in range(0, total, chunk_size):
        stop = min(start + chunk_size, total)
        yield Chunk(start=start, stop=stop, total=total, data=bytes(view[start:stop]))


def split_chunks(data: bytes, chunk_size: int, alignment: int = GRAPH_ALIGNMENT) -> List[Chunk]:
    return list(iter_chunks(data, chunk_size, alignment))


async def upload_in_chunks(
    data: bytes,
    send_chunk: Callable[[Chunk], Awaitable[Any]],
    chunk_size: int,
    alignment: int = GRAPH_ALIGNMENT,
) -> Optional[Any]:
    """
    Send ``data`` chunk by chunk through ``send_chunk``.

    ``send_chunk`` performs the network call for one chunk and is expected to
    be wrapped in the retry middleware by the caller, so a token refresh only
    repeats the chunk in flight. Chunks are awaited strictly one after another.

    Returns:
        The result of the last ``send_chunk`` call (usually the created item),
        or None for an empty payload
    """
    result = None
    for chunk in iter_chunks(data, chunk_size, alignment):
        result = await send_chunk(chunk)
        logger.debug(
            "upload_chunk_sent",
            content_range=chunk.content_range,
            last=chunk.is_last,
        )
    return result
