"""Video service: upload pipelines and signed reads.

Video uploads run validate -> stage -> fast-start + probe -> publish ->
record update. Any failure aborts the remaining stages; staged files are
removed on every exit path and the record is only written after a
successful publish and signing.
"""

import logging
import uuid
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from tubely.core.exceptions import (
    AuthorizationError,
    ClientError,
    DependencyError,
    NotFoundError,
    TubelyError,
)
from tubely.core.logging import log_error, log_info, log_warning, upload_context
from tubely.core.metrics import record_upload
from tubely.core.tracing import create_span, record_exception
from tubely.modules.media.ffmpeg import FFmpegProcessor
from tubely.modules.media.publisher import ObjectPublisher
from tubely.modules.media.staging import Stager
from tubely.modules.media.validation import (
    MAX_THUMBNAIL_UPLOAD_BYTES,
    MAX_VIDEO_UPLOAD_BYTES,
    THUMBNAIL_MEDIA_TYPES,
    VIDEO_MEDIA_TYPES,
    UploadTooLargeError,
    validate_upload,
)
from tubely.modules.thumbnail.store import Thumbnail, ThumbnailStore
from tubely.modules.video.models import Video
from tubely.modules.video.repository import VideoRepository, VideoUpdateError
from tubely.modules.video.schemas import VideoResponse

logger = logging.getLogger(__name__)


class VideoNotFoundError(NotFoundError):
    """Raised when video is not found."""

    pass


class VideoOwnershipError(AuthorizationError):
    """Raised when a user acts on a video they do not own."""

    pass


class ThumbnailNotFoundError(NotFoundError):
    """Raised when a video has no stored thumbnail."""

    pass


class RecordUpdateError(DependencyError):
    """Raised when the video record cannot be updated."""

    stage = "update"


class VideoService:
    """Service for video media uploads and reads."""

    def __init__(
        self,
        repository: VideoRepository,
        processor: FFmpegProcessor,
        publisher: ObjectPublisher,
        stager: Stager,
        thumbnails: ThumbnailStore,
        thumbnail_base_url: str,
        max_video_bytes: int = MAX_VIDEO_UPLOAD_BYTES,
        max_thumbnail_bytes: int = MAX_THUMBNAIL_UPLOAD_BYTES,
    ):
        self.repository = repository
        self.processor = processor
        self.publisher = publisher
        self.stager = stager
        self.thumbnails = thumbnails
        self.thumbnail_base_url = thumbnail_base_url.rstrip("/")
        self.max_video_bytes = max_video_bytes
        self.max_thumbnail_bytes = max_thumbnail_bytes

    async def get_video_record(self, video_id: uuid.UUID) -> Video:
        """Get video by ID.

        Raises:
            VideoNotFoundError: If video not found
        """
        video = await self.repository.get_by_id(video_id)
        if video is None:
            raise VideoNotFoundError("Video not found")
        return video

    async def get_owned_video(self, video_id: uuid.UUID, user_id: uuid.UUID) -> Video:
        """Get a video the user is allowed to modify.

        Raises:
            VideoNotFoundError: If video not found
            VideoOwnershipError: If the user is not the owner
        """
        video = await self.get_video_record(video_id)
        if video.user_id != user_id:
            raise VideoOwnershipError("Unauthorized user")
        return video

    async def to_response(self, video: Video) -> VideoResponse:
        """Response view of a record with a presigned ``video_url``.

        The record itself is not modified.
        """
        signed_url = await self.publisher.sign_video_url(video.video_url)
        return self._response(video, signed_url)

    @staticmethod
    def _response(video: Video, signed_url: Optional[str]) -> VideoResponse:
        response = VideoResponse.model_validate(video)
        return response.model_copy(update={"video_url": signed_url})

    async def get_video(self, video_id: uuid.UUID) -> VideoResponse:
        video = await self.get_video_record(video_id)
        return await self.to_response(video)

    async def get_thumbnail(self, video_id: uuid.UUID) -> Thumbnail:
        thumbnail = await run_in_threadpool(self.thumbnails.get, video_id)
        if thumbnail is None:
            raise ThumbnailNotFoundError("Thumbnail not found")
        return thumbnail

    def thumbnail_url(self, video_id: uuid.UUID) -> str:
        return f"{self.thumbnail_base_url}/thumbnails/{video_id}"

    async def upload_video(
        self,
        video_id: uuid.UUID,
        user_id: uuid.UUID,
        upload: Optional[UploadFile],
    ) -> VideoResponse:
        """Process and publish a video upload.

        Args:
            video_id: Target video UUID
            user_id: Authenticated user UUID
            upload: Multipart ``video`` field

        Returns:
            VideoResponse: Updated record with a presigned ``video_url``

        Raises:
            TubelyError: Carries the failing stage and its HTTP status
        """
        with upload_context(kind="video", video_id=video_id, user_id=user_id), \
                create_span("upload.video", attributes={"video.id": str(video_id)}):
            log_info(logger, "Uploading video")
            try:
                video = await self.get_owned_video(video_id, user_id)
                media_type = validate_upload(upload, VIDEO_MEDIA_TYPES, "video")

                async with self.stager.stage(upload, media_type, self.max_video_bytes) as staged:
                    artifact = await self.processor.process(staged.path)
                    staged.track(artifact.path)
                    reference = await self.publisher.publish(artifact, media_type)
                    size = staged.size

                # The record is written only after every stage, signing included, succeeded
                signed_url = await self.publisher.sign(reference)
                video.video_url = reference.encode()
                video = await self._save(video)
                response = self._response(video, signed_url)
            except TubelyError as e:
                self._report_failure("video", e)
                raise

            record_upload("video", "success", size)
            log_info(logger, "Video published", bucket=reference.bucket, key=reference.key)
        return response

    async def upload_thumbnail(
        self,
        video_id: uuid.UUID,
        user_id: uuid.UUID,
        upload: Optional[UploadFile],
    ) -> VideoResponse:
        """Store a thumbnail and point the record at it.

        Args:
            video_id: Target video UUID
            user_id: Authenticated user UUID
            upload: Multipart ``thumbnail`` field

        Returns:
            VideoResponse: Updated record
        """
        with upload_context(kind="thumbnail", video_id=video_id, user_id=user_id), \
                create_span("upload.thumbnail", attributes={"video.id": str(video_id)}):
            log_info(logger, "Uploading thumbnail")
            try:
                video = await self.get_owned_video(video_id, user_id)
                media_type = validate_upload(upload, THUMBNAIL_MEDIA_TYPES, "thumbnail")

                data = await upload.read(self.max_thumbnail_bytes + 1)
                if len(data) > self.max_thumbnail_bytes:
                    raise UploadTooLargeError(f"Thumbnail exceeds {self.max_thumbnail_bytes} bytes")

                signed_url = await self.publisher.sign_video_url(video.video_url)
                await run_in_threadpool(self.thumbnails.put, video_id, data, media_type)

                video.thumbnail_url = self.thumbnail_url(video_id)
                video = await self._save(video)
                response = self._response(video, signed_url)
            except TubelyError as e:
                self._report_failure("thumbnail", e)
                raise

            record_upload("thumbnail", "success", len(data))
            log_info(logger, "Thumbnail stored", thumbnail_url=video.thumbnail_url)
        return response

    async def _save(self, video: Video) -> Video:
        try:
            return await self.repository.update(video)
        except VideoUpdateError as e:
            raise RecordUpdateError(f"Video unable to be updated: {e}") from e

    def _report_failure(self, kind: str, error: TubelyError) -> None:
        record_upload(kind, error.stage)
        record_exception(error)
        context = {"stage": error.stage, "status_code": error.status_code}
        if isinstance(error, ClientError):
            log_warning(logger, f"{kind.capitalize()} upload rejected: {error}", **context)
        else:
            log_error(logger, f"{kind.capitalize()} upload failed: {error}", error, **context)
