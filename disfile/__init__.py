"""
disfile - Chunked file storage over a size-limited webhook

Large payloads are split into pieces small enough for the webhook, posted
one attachment per message, and indexed by a manifest message whose id is
the only handle a caller has to keep.
"""

from .config import DEFAULT_CHUNK_SIZE, DEFAULT_PACING_DELAY, TransportConfig, load_config
from .disfile import DisFile, download, upload
from .errors import (
    ChunkerError, DisFileError, ManifestError, PartialDownloadError,
    PartialTransferError, PartialUploadError, TransportError, ValidationError,
)
from .file import Manifest, PayloadChunker, Piece, UploadResult
from .log import setup_logging

__all__ = [
    'DEFAULT_CHUNK_SIZE',
    'DEFAULT_PACING_DELAY',
    'TransportConfig',
    'load_config',
    'DisFile',
    'upload',
    'download',
    'DisFileError',
    'ValidationError',
    'ChunkerError',
    'ManifestError',
    'TransportError',
    'PartialTransferError',
    'PartialUploadError',
    'PartialDownloadError',
    'Manifest',
    'PayloadChunker',
    'Piece',
    'UploadResult',
    'setup_logging',
]
