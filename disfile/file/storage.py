"""
Local File Helpers

Thin aiofiles wrappers used by the DisFile facade: read a file as a
bounded-chunk stream for upload, write a downloaded payload to disk.
"""

import os
import uuid
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import aiofiles.os

from ..config import DEFAULT_CHUNK_SIZE
from ..errors import ValidationError


async def iter_file_chunks(file_path: Path,
                           chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """
    Read a file in chunk_size reads.

    Yields:
        Non-empty byte strings of at most chunk_size bytes
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise ValidationError(f"File doesn't exist: {file_path}")

    async with aiofiles.open(file_path, 'rb') as f:
        while True:
            data = await f.read(chunk_size)
            if not data:
                break
            yield data


async def read_payload(file_path: Path) -> bytes:
    """Read a whole file into memory."""
    file_path = Path(file_path)
    if not file_path.is_file():
        raise ValidationError(f"File doesn't exist: {file_path}")

    async with aiofiles.open(file_path, 'rb') as f:
        return await f.read()


async def write_payload(file_path: Path, data: bytes) -> Path:
    """
    Write a payload to disk.

    Writes atomically (temp file in the same directory, then rename) so a
    failed write never leaves a truncated file at file_path.

    Returns:
        The path written
    """
    file_path = Path(file_path)
    await aiofiles.os.makedirs(file_path.parent, exist_ok=True)

    temp_path = file_path.with_name(f".{file_path.name}.{uuid.uuid4().hex}.tmp")
    try:
        async with aiofiles.open(temp_path, 'wb') as f:
            await f.write(data)
        await aiofiles.os.replace(temp_path, file_path)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise

    return file_path
