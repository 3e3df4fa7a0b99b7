"""Object storage supporting S3-compatible services and the local filesystem.

Objects are addressed by an explicit (bucket, key) pair so stored references
keep working even if the configured default bucket changes.
"""

import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from tubely.core.config import Settings, settings
from tubely.core.metrics import record_object_store_request
from tubely.core.tracing import create_span


class StorageError(Exception):
    """Raised when the object store cannot serve a request."""

    pass


@dataclass
class StorageResult:
    """Result of a storage write."""
    success: bool
    bucket: str
    key: str
    file_size: int = 0
    etag: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class StorageConfig:
    """Storage configuration."""
    backend: str  # s3, minio, aws, local
    bucket: str = ""
    region: str = "us-east-1"
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: Optional[str] = None
    use_ssl: bool = True
    local_path: str = "./storage"


class ObjectStore(ABC):
    """Abstract base class for object store backends."""

    @abstractmethod
    def put_object(
        self,
        bucket: str,
        key: str,
        file_path: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Upload a local file. Failures are reported in the result."""
        pass

    @abstractmethod
    def presign_get(self, bucket: str, key: str, expires_in: int) -> str:
        """Return a time-limited GET URL for an object.

        Raises:
            StorageError: If the URL cannot be produced
        """
        pass


class S3ObjectStore(ObjectStore):
    """S3/MinIO compatible object store."""

    def __init__(self, config: StorageConfig, client=None):
        self.config = config
        self._client = client

    def _get_client(self):
        """Get or create the boto3 S3 client."""
        if self._client is None:
            import boto3
            from botocore.config import Config as BotoConfig

            client_kwargs = {
                "service_name": "s3",
                "region_name": self.config.region or "us-east-1",
            }
            if self.config.access_key and self.config.secret_key:
                client_kwargs["aws_access_key_id"] = self.config.access_key
                client_kwargs["aws_secret_access_key"] = self.config.secret_key

            # Presigned URLs are SigV4 (X-Amz-* query parameters)
            boto_config = BotoConfig(signature_version="s3v4")

            # MinIO and other S3-compatible services
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
                boto_config = boto_config.merge(BotoConfig(s3={"addressing_style": "path"}))
                if not self.config.use_ssl:
                    client_kwargs["use_ssl"] = False

            client_kwargs["config"] = boto_config
            self._client = boto3.client(**client_kwargs)

        return self._client

    def put_object(
        self,
        bucket: str,
        key: str,
        file_path: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Upload a file to S3/MinIO."""
        with create_span("storage.put_object", attributes={"storage.bucket": bucket, "storage.key": key}):
            try:
                client = self._get_client()
                file_size = os.path.getsize(file_path)

                with open(file_path, "rb") as f:
                    response = client.put_object(
                        Bucket=bucket,
                        Key=key,
                        Body=f,
                        ContentType=content_type,
                    )

                record_object_store_request("put_object", True)
                return StorageResult(
                    success=True,
                    bucket=bucket,
                    key=key,
                    file_size=file_size,
                    etag=response.get("ETag", "").strip('"'),
                )
            except Exception as e:
                record_object_store_request("put_object", False)
                return StorageResult(
                    success=False,
                    bucket=bucket,
                    key=key,
                    error_message=str(e),
                )

    def presign_get(self, bucket: str, key: str, expires_in: int) -> str:
        """Generate a presigned GET URL."""
        with create_span("storage.presign_get", attributes={"storage.bucket": bucket, "storage.key": key}):
            try:
                url = self._get_client().generate_presigned_url(
                    "get_object",
                    Params={"Bucket": bucket, "Key": key},
                    ExpiresIn=expires_in,
                )
            except Exception as e:
                record_object_store_request("presign_get", False)
                raise StorageError(f"Could not presign {bucket}/{key}: {e}") from e

            record_object_store_request("presign_get", True)
            return url


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store for development.

    Objects live at ``<local_path>/<bucket>/<key>``.
    """

    def __init__(self, config: StorageConfig):
        self.base_path = Path(config.local_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, bucket: str, key: str) -> Path:
        full_path = (self.base_path / bucket / key).resolve()
        if not full_path.is_relative_to(self.base_path.resolve()):
            raise StorageError(f"Key escapes storage root: {key}")
        return full_path

    def put_object(
        self,
        bucket: str,
        key: str,
        file_path: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Copy a file into local storage."""
        try:
            dest_path = self._get_full_path(bucket, key)
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(file_path, dest_path)
            record_object_store_request("put_object", True)
            return StorageResult(
                success=True,
                bucket=bucket,
                key=key,
                file_size=dest_path.stat().st_size,
            )
        except (OSError, StorageError) as e:
            record_object_store_request("put_object", False)
            return StorageResult(
                success=False,
                bucket=bucket,
                key=key,
                error_message=str(e),
            )

    def presign_get(self, bucket: str, key: str, expires_in: int) -> str:
        """Return a file URL; local files carry the expiry only as a hint."""
        path = self._get_full_path(bucket, key)
        record_object_store_request("presign_get", True)
        return f"{path.as_uri()}?{urlencode({'expires': expires_in})}"


def create_object_store(config: StorageConfig) -> ObjectStore:
    """Create the configured object store backend."""
    backend_type = config.backend.lower()

    if backend_type == "local":
        return LocalObjectStore(config)
    elif backend_type in ("s3", "minio", "aws"):
        return S3ObjectStore(config)
    else:
        raise ValueError(f"Unsupported storage backend: {backend_type}")


def storage_config_from_settings(app_settings: Optional[Settings] = None) -> StorageConfig:
    app_settings = app_settings or settings
    return StorageConfig(
        backend=app_settings.STORAGE_BACKEND,
        bucket=app_settings.STORAGE_BUCKET,
        region=app_settings.STORAGE_REGION,
        access_key=app_settings.STORAGE_ACCESS_KEY,
        secret_key=app_settings.STORAGE_SECRET_KEY,
        endpoint_url=app_settings.STORAGE_ENDPOINT_URL,
        use_ssl=app_settings.STORAGE_USE_SSL,
        local_path=app_settings.LOCAL_STORAGE_PATH,
    )
