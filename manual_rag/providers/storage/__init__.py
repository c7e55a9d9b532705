from manual_rag.providers.storage.local_blob_store import LocalBlobStore
from manual_rag.providers.storage.s3_blob_store import S3BlobStore

__all__ = ["LocalBlobStore", "S3BlobStore"]
