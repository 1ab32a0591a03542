"""Typed errors for blobdir."""
from typing import Optional


class BlobDirError(Exception):
    """Base exception for all blobdir errors."""


class InvalidInput(BlobDirError, ValueError):
    """Raised for content the planner cannot accept (empty, too many chunks)."""


class RemoteStateError(BlobDirError):
    """Raised when the remote state of a key cannot be read or reconciled."""

    def __init__(self, key: str, message: str, tx_hash: Optional[str] = None):
        self.key = key
        self.tx_hash = tx_hash
        super().__init__(f"{key}: {message}")


class EstimationError(BlobDirError):
    """Raised when no usable gas limit or fee value could be obtained."""


class SubmissionError(BlobDirError):
    """Raised when a transaction cannot be sent or its receipt reports failure."""

    def __init__(self, key: str, message: str, tx_hash: Optional[str] = None):
        self.key = key
        self.tx_hash = tx_hash
        super().__init__(f"{key}: {message}")


class DownloadFailure(BlobDirError):
    """Raised when any chunk of a key cannot be fetched."""
