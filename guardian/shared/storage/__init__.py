"""Blob storage for audio evidence."""
from .blob_store import (
    BlobStore,
    LocalBlobStore,
    S3BlobStore,
    StorageConfig,
    UploadHandle,
    recording_path,
)

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "StorageConfig",
    "UploadHandle",
    "recording_path",
]
