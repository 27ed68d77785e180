"""
Payload Uploader

Upload Flow:
1. Validate the file name and byte source (no network before this)
2. Chunk the payload lazily
3. Post pieces through a bounded window, named "NNN_<file name>"
4. Order the returned handles by piece index, not completion order
5. Post the manifest; its id is the primary handle

A failed piece aborts the upload at once. Pieces already posted stay on
the webhook; there is no delete step, so a caller that needs atomicity
should treat an upload as done only once it holds the primary handle.
"""

import logging
from typing import Any, Dict, Optional

from ..config import TransportConfig
from ..errors import PartialUploadError, TransportError, ValidationError
from ..file.chunker import PayloadChunker, Piece, check_byte_source
from ..file.manifest import Manifest, UploadResult
from .pacing import RequestPacer, TransferWindow
from .webhook import PieceTransportClient

logger = logging.getLogger(__name__)


def validate_file_name(file_name: Any) -> str:
    """Reject empty or whitespace-only names."""
    if not isinstance(file_name, str) or not file_name.strip():
        raise ValidationError("fileName cannot be empty.")
    return file_name


class PayloadUploader:
    """
    Pushes a payload to the webhook as pieces plus a manifest.

    Holds no per-upload state; one instance can run many uploads, all
    sharing the same pacer (and so the same rate budget).
    """

    def __init__(self, client: PieceTransportClient, config: TransportConfig,
                 pacer: Optional[RequestPacer] = None):
        self.client = client
        self.config = config
        self.chunker = PayloadChunker(config.chunk_size)
        self.pacer = pacer or RequestPacer(config.pacing_delay)

        # Statistics
        self.files_uploaded = 0
        self.pieces_uploaded = 0
        self.bytes_uploaded = 0

    async def upload(self, source: Any, file_name: str) -> UploadResult:
        """
        Upload a payload.

        Args:
            source: Bytes, a binary file object, or an (async) iterable of bytes
            file_name: Original name, recorded in the manifest

        Returns:
            UploadResult with the primary handle and ordered piece handles

        Raises:
            ValidationError: Bad name or source; nothing was sent
            ChunkerError: The source failed while being read
            PartialUploadError: A piece upload failed
            TransportError: The manifest upload failed
        """
        validate_file_name(file_name)
        await check_byte_source(source)

        logger.info(f"Uploading {file_name}")

        window = TransferWindow(self.config.max_concurrent_uploads, self.pacer)
        try:
            async for piece in self.chunker.pieces(source):
                await window.submit(
                    piece.index,
                    lambda piece=piece: self._put_piece(piece, file_name),
                )
            handles: Dict[int, str] = await window.drain()
        finally:
            await window.close()

        # Handles are keyed by the index captured at submission
        ids = [handles[index] for index in sorted(handles)]

        manifest = Manifest(file_name=file_name, ids=list(ids))
        primary_id = await self.client.put_manifest(manifest)

        self.files_uploaded += 1
        logger.info(f"Uploaded {file_name}: {len(ids)} pieces, primary id {primary_id}")

        return UploadResult(primary_id=primary_id, file_name=file_name, file_chunk_ids=ids)

    async def _put_piece(self, piece: Piece, file_name: str) -> str:
        name = piece.display_name(file_name)
        try:
            handle = await self.client.put_piece(piece.data, name)
        except TransportError as e:
            logger.error(f"Upload of piece {piece.index} ({name}) failed: {e}")
            raise PartialUploadError(
                f"Upload failed at piece {piece.index} ({name}): {e}",
                piece_index=piece.index,
                piece_name=name,
            ) from e

        self.pieces_uploaded += 1
        self.bytes_uploaded += piece.size
        return handle

    def get_stats(self) -> dict:
        """Get uploader statistics."""
        return {
            'files_uploaded': self.files_uploaded,
            'pieces_uploaded': self.pieces_uploaded,
            'bytes_uploaded': self.bytes_uploaded,
        }
