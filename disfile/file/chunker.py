"""
Payload Chunker

Design Decision: Chunk Size
===========================

The webhook rejects attachments above a hard ceiling, so every piece must
stay below it. The size is not a module global: each PayloadChunker is
built from TransportConfig.chunk_size.

| Size    | Pros                          | Cons                           |
|---------|-------------------------------|--------------------------------|
| 8MB     | Fits the smallest tiers       | More requests, more rate limit |
| 20MB    | Few requests per file         | Needs a boosted upload limit   |

Decision: 20 MiB default, configurable per transport.

Chunking Strategy: Fixed-Size, lazy
- Buffers are sliced, file objects are read chunk_size bytes at a time
- Iterable sources: each incoming unit becomes one piece (never merged);
  oversized units are split so the bound always holds
- Empty units are skipped, so no piece is ever empty
- Pieces carry their index from creation; the "NNN_name" display form
  only exists at the transport boundary
"""

import asyncio
import inspect
import io
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterator

from ..config import DEFAULT_CHUNK_SIZE
from ..errors import ChunkerError, ManifestError, ValidationError

logger = logging.getLogger(__name__)

_BYTES_LIKE = (bytes, bytearray, memoryview)


@dataclass(frozen=True)
class Piece:
    """One bounded slice of a payload."""
    index: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def display_name(self, file_name: str) -> str:
        return piece_display_name(self.index, file_name)


def piece_display_name(index: int, file_name: str) -> str:
    """Name a piece is stored under: zero-padded index, '_', original name."""
    return f"{index:03d}_{file_name}"


def parse_piece_index(display_name: str) -> int:
    """
    Recover a piece index from its display name.

    The index is the leading integer before the first '_'.

    Raises:
        ManifestError: If the name carries no index
    """
    prefix, sep, _ = display_name.partition('_')
    if not sep or not prefix.isdecimal():
        raise ManifestError(f"Piece name {display_name!r} has no index prefix")
    return int(prefix)


def _is_async_iterable(source: Any) -> bool:
    return hasattr(source, '__aiter__')


def _is_file_like(source: Any) -> bool:
    return callable(getattr(source, 'read', None))


def _is_iterable(source: Any) -> bool:
    if isinstance(source, (str, bytes, bytearray, memoryview)):
        return False
    try:
        iter(source)
    except TypeError:
        return False
    return True


async def check_byte_source(source: Any) -> None:
    """
    Check that source is something PayloadChunker can read.

    Accepted: bytes-like buffers, binary file objects (sync or async read),
    async iterables and iterables of bytes.

    Raises:
        ValidationError: If the source is missing, textual, closed,
            unreadable or of an unsupported kind
    """
    if source is None:
        raise ValidationError("Invalid byte source: got None")

    if isinstance(source, str):
        raise ValidationError("Invalid byte source: got str, expected bytes")

    if isinstance(source, _BYTES_LIKE):
        return

    if not (_is_file_like(source) or _is_async_iterable(source) or _is_iterable(source)):
        raise ValidationError(
            f"Invalid byte source: {type(source).__name__} is not readable"
        )

    mode = getattr(source, 'mode', None)
    if isinstance(source, io.TextIOBase) or (isinstance(mode, str) and 'b' not in mode):
        raise ValidationError("Invalid byte source: stream is open in text mode")

    if getattr(source, 'closed', False) is True:
        raise ValidationError("Invalid byte source: stream is closed")

    readable = getattr(source, 'readable', None)
    if callable(readable):
        try:
            result = readable()
            if inspect.isawaitable(result):
                result = await result
        except (OSError, ValueError) as e:
            raise ValidationError(f"Invalid byte source: {e}") from e
        if result is False:
            raise ValidationError("Invalid byte source: stream is not readable")


class PayloadChunker:
    """
    Splits payloads into ordered pieces of at most chunk_size bytes.

    Features:
    - Lazy: nothing is read ahead of the consumer
    - Works on buffers, file objects and (async) iterables of bytes
    - Zero-length sources yield zero pieces
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValidationError(f"chunk_size must be a positive integer, got {chunk_size!r}")
        self.chunk_size = chunk_size

    def get_chunk_count(self, payload_size: int) -> int:
        """Calculate number of pieces for a payload of given size."""
        return (payload_size + self.chunk_size - 1) // self.chunk_size

    def split(self, buffer) -> Iterator[Piece]:
        """
        Split an in-memory buffer.

        Yields:
            Piece objects in payload order
        """
        view = memoryview(buffer).cast('B')
        for index, offset in enumerate(range(0, len(view), self.chunk_size)):
            yield Piece(index=index, data=bytes(view[offset:offset + self.chunk_size]))

    async def pieces(self, source: Any) -> AsyncIterator[Piece]:
        """
        Split any supported byte source.

        Yields:
            Piece objects in source order

        Raises:
            ChunkerError: If reading the source fails or yields non-bytes
        """
        if isinstance(source, _BYTES_LIKE):
            for piece in self.split(source):
                yield piece
            return

        index = 0
        async for unit in self._units(source):
            if not isinstance(unit, _BYTES_LIKE):
                raise ChunkerError(
                    f"Byte source produced {type(unit).__name__}, expected bytes"
                )
            # Oversized units are re-split; smaller ones are passed through as-is
            for offset in range(0, len(unit), self.chunk_size):
                data = bytes(unit[offset:offset + self.chunk_size])
                logger.debug(f"Piece {index}: {len(data)} bytes")
                yield Piece(index=index, data=data)
                index += 1

    async def _units(self, source: Any) -> AsyncIterator[Any]:
        """Read raw units from the source, wrapping read failures."""
        try:
            if _is_file_like(source):
                read = source.read
                # Blocking reads go to a worker thread
                threaded = not inspect.iscoroutinefunction(read)
                while True:
                    if threaded:
                        unit = await asyncio.to_thread(read, self.chunk_size)
                    else:
                        unit = read(self.chunk_size)
                    if inspect.isawaitable(unit):
                        unit = await unit
                    if not unit:
                        break
                    yield unit
            elif _is_async_iterable(source):
                async for unit in source:
                    yield unit
            else:
                for unit in source:
                    yield unit
        except ChunkerError:
            raise
        except Exception as e:
            raise ChunkerError(f"Failed reading byte source: {e}") from e
