"""
File Module - Chunking, Manifests and Local I/O

Everything that happens to a payload before it reaches the transport.
"""

from .chunker import (
    PayloadChunker, Piece, check_byte_source, parse_piece_index,
    piece_display_name,
)
from .manifest import Manifest, UploadResult, decode_manifest, encode_manifest
from .storage import iter_file_chunks, read_payload, write_payload

__all__ = [
    'PayloadChunker',
    'Piece',
    'check_byte_source',
    'parse_piece_index',
    'piece_display_name',
    'Manifest',
    'UploadResult',
    'decode_manifest',
    'encode_manifest',
    'iter_file_chunks',
    'read_payload',
    'write_payload',
]
