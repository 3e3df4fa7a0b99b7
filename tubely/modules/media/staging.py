"""Scratch staging for uploads.

ffmpeg and ffprobe need a real file path, so uploads are copied to a
uniquely named scratch file first. The file, and anything derived from it,
is removed when the staging context exits.
"""

import base64
import logging
import os
import secrets
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

import anyio
from starlette.datastructures import UploadFile

from tubely.core.exceptions import ClientError, DependencyError
from tubely.modules.media.validation import UploadTooLargeError, media_subtype

logger = logging.getLogger(__name__)

RANDOM_NAME_BYTES = 32
COPY_CHUNK_SIZE = 1024 * 1024  # 1 MiB


class StagingCreateError(DependencyError):
    """Raised when the scratch file cannot be created."""

    stage = "stage"


class StagingCopyError(ClientError):
    """Raised when upload bytes cannot be copied to scratch."""

    stage = "stage"


def generate_filename(media_type: str) -> str:
    """Random URL-safe filename with an extension taken from the media type.

    The client-supplied filename is never used.
    """
    token = base64.urlsafe_b64encode(secrets.token_bytes(RANDOM_NAME_BYTES)).rstrip(b"=").decode("ascii")
    return f"{token}.{media_subtype(media_type)}"


@dataclass
class StagedUpload:
    """Upload bytes on scratch storage for the lifetime of one request."""
    path: str
    media_type: str
    size: int = 0
    derived_paths: list[str] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)

    def track(self, path: str) -> None:
        """Register a file derived from this upload for cleanup."""
        self.derived_paths.append(path)

    def cleanup(self) -> None:
        for path in [*self.derived_paths, self.path]:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Failed to remove scratch file", extra={"path": path, "error": str(e)})


class Stager:
    """Copies uploads into a scratch directory."""

    def __init__(self, scratch_dir: Optional[str] = None):
        self.scratch_dir = scratch_dir or tempfile.gettempdir()

    @asynccontextmanager
    async def stage(
        self,
        upload: UploadFile,
        media_type: str,
        max_bytes: Optional[int] = None,
    ) -> AsyncIterator[StagedUpload]:
        """Stage an upload and remove it, and its derived files, on exit.

        Args:
            upload: Validated upload
            media_type: Validated media type, used for the extension
            max_bytes: Abort once more bytes than this have been copied

        Raises:
            StagingCreateError: Scratch file could not be created
            StagingCopyError: Copy failed
            UploadTooLargeError: Upload exceeded ``max_bytes``
        """
        path = os.path.join(self.scratch_dir, generate_filename(media_type))
        try:
            out = await anyio.open_file(path, "xb")
        except OSError as e:
            raise StagingCreateError(f"Issue creating temporary file: {e}") from e

        staged = StagedUpload(path=path, media_type=media_type)
        try:
            async with out:
                await self._copy(upload, out, staged, max_bytes)
            yield staged
        finally:
            staged.cleanup()

    async def _copy(
        self,
        upload: UploadFile,
        out: anyio.AsyncFile,
        staged: StagedUpload,
        max_bytes: Optional[int],
    ) -> None:
        """Copy in chunks; disk writes run in a worker thread."""
        try:
            await upload.seek(0)
            while True:
                chunk = await upload.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                staged.size += len(chunk)
                if max_bytes is not None and staged.size > max_bytes:
                    raise UploadTooLargeError(f"Upload exceeds {max_bytes} bytes")
                await out.write(chunk)
        except OSError as e:
            raise StagingCopyError(f"Issue copying to temporary file: {e}") from e
