"""
Error Taxonomy

Every failure surfaced by upload/download is one of these. Nothing is
retried automatically; the originating exception is chained as __cause__.
"""

from typing import Optional


class DisFileError(Exception):
    """Base class for all disfile errors."""
    pass


class ValidationError(DisFileError):
    """Bad caller input: blank file name, invalid byte source, bad config."""
    pass


class ChunkerError(DisFileError):
    """The byte source failed or produced something that is not bytes."""
    pass


class ManifestError(DisFileError):
    """Manifest content (or a piece's index metadata) could not be parsed."""
    pass


class TransportError(DisFileError):
    """
    A webhook request failed.

    Raised for network errors, non-2xx responses, unparseable response
    bodies and truncated downloads.
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 retry_after: Optional[float] = None):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class PartialTransferError(DisFileError):
    """One piece of a multi-piece transfer failed; the whole call aborted."""

    def __init__(self, message: str, piece_index: int):
        super().__init__(message)
        self.piece_index = piece_index


class PartialUploadError(PartialTransferError):
    """
    A piece upload failed.

    Pieces stored before the failure are left behind on the transport.
    """

    def __init__(self, message: str, piece_index: int, piece_name: str):
        super().__init__(message, piece_index)
        self.piece_name = piece_name


class PartialDownloadError(PartialTransferError):
    """A piece lookup or fetch failed; no partial payload is returned."""

    def __init__(self, message: str, piece_index: int, handle: str):
        super().__init__(message, piece_index)
        self.handle = handle
