"""
Transfer Module - Webhook Upload/Download

Moves pieces and manifests to and from the webhook.
"""

from .pacing import RequestPacer, TransferWindow
from .webhook import PieceRef, PieceTransportClient, WebhookAttachment, WebhookMessage
from .uploader import PayloadUploader, validate_file_name
from .downloader import PayloadDownloader, assemble_pieces

__all__ = [
    'RequestPacer',
    'TransferWindow',
    'PieceRef',
    'PieceTransportClient',
    'WebhookAttachment',
    'WebhookMessage',
    'PayloadUploader',
    'validate_file_name',
    'PayloadDownloader',
    'assemble_pieces',
]
