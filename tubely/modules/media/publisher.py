"""Publishing processed media to object storage.

Records persist an ``ObjectReference`` encoded as ``bucket,key``; playback
URLs are presigned on read and never stored.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from starlette.concurrency import run_in_threadpool

from tubely.core.exceptions import DependencyError
from tubely.core.storage import ObjectStore, StorageError
from tubely.modules.media.ffmpeg import ProcessedArtifact

logger = logging.getLogger(__name__)

REFERENCE_SEPARATOR = ","
DEFAULT_URL_EXPIRES_IN = 600  # 10 minutes


class PublishError(DependencyError):
    """Raised when the object store rejects an upload."""

    status_code = 502
    stage = "publish"


class SigningError(DependencyError):
    """Raised when a presigned URL cannot be produced."""

    stage = "sign"


@dataclass(frozen=True)
class ObjectReference:
    """Location of an object in the store."""
    bucket: str
    key: str

    def encode(self) -> str:
        return f"{self.bucket}{REFERENCE_SEPARATOR}{self.key}"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ObjectReference"]:
        """Decode a stored ``bucket,key`` value.

        Returns None unless the value has exactly two non-empty parts.
        """
        if not value:
            return None
        parts = value.split(REFERENCE_SEPARATOR)
        if len(parts) != 2 or not all(parts):
            return None
        return cls(bucket=parts[0], key=parts[1])


def looks_like_url(value: str) -> bool:
    """True for absolute http(s) URLs stored by older records."""
    return value.startswith(("http://", "https://"))


class ObjectPublisher:
    """Uploads processed artifacts and signs stored references."""

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        url_expires_in: int = DEFAULT_URL_EXPIRES_IN,
    ):
        self.store = store
        self.bucket = bucket
        self.url_expires_in = url_expires_in

    @staticmethod
    def build_key(artifact: ProcessedArtifact) -> str:
        """Key partitioned by orientation: ``<aspect_ratio>/<filename>``."""
        return f"{artifact.aspect_ratio.value}/{artifact.filename}"

    async def publish(self, artifact: ProcessedArtifact, content_type: str) -> ObjectReference:
        """Upload an artifact and return where it landed.

        Raises:
            PublishError: The store reported a failure
        """
        key = self.build_key(artifact)
        result = await run_in_threadpool(
            self.store.put_object, self.bucket, key, artifact.path, content_type
        )
        if not result.success:
            raise PublishError(f"Upload of {self.bucket}/{key} failed: {result.error_message}")

        logger.info(
            "Published media object",
            extra={"bucket": self.bucket, "key": key, "file_size": result.file_size},
        )
        return ObjectReference(bucket=self.bucket, key=key)

    async def sign(self, reference: ObjectReference) -> str:
        """Presign a GET URL valid for ``url_expires_in`` seconds.

        Raises:
            SigningError: The store could not presign the object
        """
        try:
            return await run_in_threadpool(
                self.store.presign_get, reference.bucket, reference.key, self.url_expires_in
            )
        except StorageError as e:
            raise SigningError(f"Unable to create signed URL: {e}") from e

    async def sign_video_url(self, value: Optional[str]) -> Optional[str]:
        """Turn a stored video reference into a playback URL.

        Values that are not a ``bucket,key`` reference (legacy absolute
        URLs, malformed data) are returned unchanged.
        """
        if not value or looks_like_url(value):
            return value

        reference = ObjectReference.parse(value)
        if reference is None:
            logger.warning("Stored video reference is malformed", extra={"video_url": value})
            return value
        return await self.sign(reference)
