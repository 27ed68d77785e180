"""
Payload Downloader

Design Decision: Reassembly Order
=================================

The webhook gives no ordering guarantee, and lookups/fetches may finish
in any order when they run concurrently.

Options Considered:
1. Trust the manifest's ids order
   - Breaks if the manifest was ever written out of order
2. Trust completion order
   - Wrong as soon as two fetches overlap
3. Sort by the index embedded in each piece's display name

Decision: Option 3
- "NNN_<name>" -> NNN is the authoritative position
- Indices must be exactly 0..n-1; anything else is a bad manifest

Download Flow:
1. Fetch and decode the manifest
2. For each handle: look up the message, fetch the attachment
   (bounded window, paced; one at a time by default)
3. Abort on the first failed piece
4. Sort by piece index, concatenate, return

Nothing is streamed out: the payload is returned only once every piece
has arrived.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from ..config import TransportConfig
from ..errors import DisFileError, ManifestError, PartialDownloadError
from ..file.manifest import Manifest
from ..file.storage import write_payload
from .pacing import RequestPacer, TransferWindow
from .webhook import PieceTransportClient

logger = logging.getLogger(__name__)


def assemble_pieces(pieces: List[Tuple[int, bytes]], expected_count: int) -> bytes:
    """
    Concatenate (index, data) pairs in index order.

    Raises:
        ManifestError: If the indices are not exactly 0..expected_count-1
    """
    ordered = sorted(pieces, key=lambda p: p[0])
    indices = [index for index, _ in ordered]

    if indices != list(range(expected_count)):
        raise ManifestError(
            f"Piece indices {indices} do not cover 0..{expected_count - 1}"
        )

    return b''.join(data for _, data in ordered)


class PayloadDownloader:
    """
    Rebuilds a payload from its primary handle.

    Shares its pacer across downloads so concurrent downloads from one
    instance stay within one rate budget.
    """

    def __init__(self, client: PieceTransportClient, config: TransportConfig,
                 pacer: Optional[RequestPacer] = None):
        self.client = client
        self.config = config
        self.pacer = pacer or RequestPacer(config.pacing_delay)

        # Statistics
        self.files_downloaded = 0
        self.total_bytes = 0

    async def download(self, primary_id: str) -> bytes:
        """
        Download a payload.

        Args:
            primary_id: The manifest's message id

        Returns:
            The original payload bytes

        Raises:
            TransportError: The manifest could not be fetched
            ManifestError: The manifest or piece names are malformed
            PartialDownloadError: A piece lookup or fetch failed
        """
        manifest = await self.client.get_manifest(primary_id)
        logger.info(f"Downloading {manifest.file_name}: {manifest.piece_count} pieces")

        pieces = await self._fetch_pieces(manifest)
        payload = assemble_pieces(pieces, manifest.piece_count)

        self.files_downloaded += 1
        self.total_bytes += len(payload)
        logger.info(f"Downloaded {manifest.file_name} ({len(payload):,} bytes)")

        return payload

    async def download_to(self, primary_id: str, output_path: Path) -> Path:
        """Download a payload and write it to output_path."""
        payload = await self.download(primary_id)
        result_path = await write_payload(output_path, payload)
        logger.info(f"File saved to {result_path}")
        return result_path

    async def _fetch_pieces(self, manifest: Manifest) -> List[Tuple[int, bytes]]:
        window = TransferWindow(self.config.max_concurrent_downloads, self.pacer)
        try:
            for position, handle in enumerate(manifest.ids):
                await window.submit(
                    position,
                    lambda position=position, handle=handle: self._fetch_piece(position, handle),
                )
            results = await window.drain()
        finally:
            await window.close()

        return list(results.values())

    async def _fetch_piece(self, position: int, handle: str) -> Tuple[int, bytes]:
        try:
            ref = await self.client.lookup_piece(handle)
            index = ref.index
            data = await self.client.fetch_piece(ref)
        except DisFileError as e:
            logger.error(f"Download of piece {position} ({handle}) failed: {e}")
            raise PartialDownloadError(
                f"Error downloading piece {position} ({handle}): {e}",
                piece_index=position,
                handle=handle,
            ) from e

        logger.debug(f"Piece {index} ({ref.file_name}) ready, {len(data):,} bytes")
        return index, data
