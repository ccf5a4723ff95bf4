"""Blob storage for audio evidence.

Uploads are two-phase: the core hands out a write-capable handle scoped
to ``{user_id}/{alert_id}/{timestamp}.webm``, the client uploads the bytes
directly, then calls back with the path to finalize the recording row.
"""
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from guardian.shared.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """Blob storage settings."""
    bucket: str = "audio-recordings"
    region: str = "us-east-1"
    upload_url_expires_seconds: int = 900
    public_base_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Environment variables:
            AUDIO_BUCKET: Bucket holding recordings (default audio-recordings)
            AWS_REGION: Bucket region (default us-east-1)
            UPLOAD_URL_EXPIRES_SECONDS: Upload handle lifetime (default 900)
            AUDIO_PUBLIC_BASE_URL: Retrieval base URL override (CDN)
        """
        return cls(
            bucket=os.getenv("AUDIO_BUCKET", "audio-recordings"),
            region=os.getenv("AWS_REGION", "us-east-1"),
            upload_url_expires_seconds=int(os.getenv("UPLOAD_URL_EXPIRES_SECONDS", "900")),
            public_base_url=os.getenv("AUDIO_PUBLIC_BASE_URL"),
        )


@dataclass(frozen=True)
class UploadHandle:
    """Write-capable, time-limited upload target."""
    file_path: str
    upload_url: str
    expires_in: int


def recording_path(user_id: str, alert_id: str, at: Optional[datetime] = None) -> str:
    """Object key for a new recording."""
    moment = at or utcnow()
    return f"{user_id}/{alert_id}/{int(moment.timestamp() * 1000)}.webm"


class BlobStore(ABC):
    """Blob-storage collaborator."""

    @abstractmethod
    def create_upload_handle(self, file_path: str) -> UploadHandle:
        """Reserve an upload slot for ``file_path``."""

    @abstractmethod
    def public_url(self, file_path: str) -> str:
        """Durable retrieval URL for an uploaded object."""


class S3BlobStore(BlobStore):
    """S3-backed storage using presigned PUT URLs."""

    def __init__(self, config: StorageConfig):
        self.config = config
        self._s3_client = None

        logger.info(
            "S3_BLOB_STORE_INITIALIZED",
            extra={"bucket": config.bucket, "region": config.region}
        )

    @property
    def s3_client(self):
        """Lazy initialization of S3 client."""
        if self._s3_client is None:
            import boto3
            self._s3_client = boto3.client("s3", region_name=self.config.region)
        return self._s3_client

    def create_upload_handle(self, file_path: str) -> UploadHandle:
        url = self.s3_client.generate_presigned_url(
            "put_object",
            Params={
                "Bucket": self.config.bucket,
                "Key": file_path,
                "ContentType": "audio/webm",
            },
            ExpiresIn=self.config.upload_url_expires_seconds,
        )
        return UploadHandle(
            file_path=file_path,
            upload_url=url,
            expires_in=self.config.upload_url_expires_seconds,
        )

    def public_url(self, file_path: str) -> str:
        if self.config.public_base_url:
            return f"{self.config.public_base_url.rstrip('/')}/{file_path}"
        return f"https://{self.config.bucket}.s3.{self.config.region}.amazonaws.com/{file_path}"


class LocalBlobStore(BlobStore):
    """Development storage: hands out URLs under a local base URL."""

    def __init__(self, base_url: str = "http://localhost:9000/audio-recordings"):
        self.base_url = base_url.rstrip("/")

    def create_upload_handle(self, file_path: str) -> UploadHandle:
        return UploadHandle(
            file_path=file_path,
            upload_url=f"{self.base_url}/upload/{file_path}",
            expires_in=900,
        )

    def public_url(self, file_path: str) -> str:
        return f"{self.base_url}/{file_path}"
