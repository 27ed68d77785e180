"""
DisFile - Main Entry Point

Combines the transport client, uploader and downloader behind one object:
- upload_stream(source, name) / upload_bytes(data, name) / upload_file(path)
- download_buffer(primary_id) / download_file(primary_id, path)

Everything about a stored file is reachable from its primary id; DisFile
itself keeps no state between calls besides the shared pacer.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from .config import TransportConfig
from .errors import ValidationError
from .file.manifest import UploadResult
from .file.storage import iter_file_chunks
from .transfer import PayloadDownloader, PayloadUploader, PieceTransportClient, RequestPacer
from .transfer.uploader import validate_file_name

logger = logging.getLogger(__name__)


class DisFile:
    """
    Stores files of any size through a size-limited webhook.

    Usage:
        config = TransportConfig(endpoint="https://discord.com/api/webhooks/...")
        async with DisFile(config) as disfile:
            receipt = await disfile.upload_file("backup.tar")
            data = await disfile.download_buffer(receipt.primary_id)
    """

    def __init__(self, config: TransportConfig,
                 http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize DisFile.

        Args:
            config: Transport configuration (endpoint, chunk size, pacing)
            http_client: Optional pre-built httpx client; not closed by DisFile
        """
        self.config = config
        self.client = PieceTransportClient(config, http_client=http_client)

        # Uploads and downloads draw from one rate budget
        self.pacer = RequestPacer(config.pacing_delay)
        self.uploader = PayloadUploader(self.client, config, pacer=self.pacer)
        self.downloader = PayloadDownloader(self.client, config, pacer=self.pacer)

    async def __aenter__(self) -> 'DisFile':
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        await self.client.aclose()

    # === Upload ===

    async def upload_stream(self, source: Any, file_name: str) -> UploadResult:
        """
        Upload from a stream-like source.

        Args:
            source: Binary file object, async file, or (async) iterable of bytes
            file_name: Name to store the file under (including extension)
        """
        return await self.uploader.upload(source, file_name)

    async def upload_bytes(self, data: bytes, file_name: str) -> UploadResult:
        """Upload an in-memory buffer."""
        return await self.uploader.upload(data, file_name)

    async def upload_file(self, file_path: Path,
                          file_name: Optional[str] = None) -> UploadResult:
        """
        Upload a file from disk.

        Args:
            file_path: Path of the file to upload
            file_name: Stored name; defaults to the file's own name

        Raises:
            ValidationError: If the file doesn't exist or the name is blank
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise ValidationError(f"File doesn't exist: {file_path}")

        file_name = validate_file_name(file_path.name if file_name is None else file_name)

        logger.info(f"Uploading file {file_path} as {file_name}")
        chunks = iter_file_chunks(file_path, self.config.chunk_size)
        return await self.uploader.upload(chunks, file_name)

    # === Download ===

    async def download_buffer(self, primary_id: str) -> bytes:
        """Download a stored file into memory."""
        return await self.downloader.download(primary_id)

    async def download_file(self, primary_id: str, file_path: Path) -> Path:
        """Download a stored file and save it to file_path."""
        return await self.downloader.download_to(primary_id, Path(file_path))

    def get_stats(self) -> dict:
        """Get transfer statistics."""
        return {
            'uploader': self.uploader.get_stats(),
            'downloader': {
                'files_downloaded': self.downloader.files_downloaded,
                'total_bytes': self.downloader.total_bytes,
            },
        }


async def upload(config: TransportConfig, source: Any, file_name: str,
                 http_client: Optional[httpx.AsyncClient] = None) -> UploadResult:
    """Upload a payload and return its receipt (convenience function)."""
    async with DisFile(config, http_client=http_client) as disfile:
        return await disfile.upload_stream(source, file_name)


async def download(config: TransportConfig, primary_id: str,
                   http_client: Optional[httpx.AsyncClient] = None) -> bytes:
    """Download a payload by primary id (convenience function)."""
    async with DisFile(config, http_client=http_client) as disfile:
        return await disfile.download_buffer(primary_id)
