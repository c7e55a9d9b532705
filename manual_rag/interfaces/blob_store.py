"""Abstract base class for durable object storage of manual PDFs."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   LocalBlobStore - files under a local directory
#   S3BlobStore    - an S3 bucket via boto3
# Located in: manual_rag/providers/storage/
class IBlobStore(ABC):
    """Contract for writing blobs and resolving their public URLs."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store *data* at *path* (overwriting) and return its public URL.

        Raises
        ------
        manual_rag.utils.errors.BlobStoreError
            If the write fails.
        """

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Return the public URL for *path* without touching storage."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"local"`` or ``"s3"``."""
