"""FastAPI dependency providers for the video module.

Long-lived collaborators (settings, object store, thumbnail store) live on
``app.state``; everything else is built per request. Each collaborator has
its own provider so tests can override them one at a time through
``app.dependency_overrides``.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.config import Settings
from tubely.core.database import get_db
from tubely.core.storage import ObjectStore
from tubely.modules.media.ffmpeg import FFmpegProcessor
from tubely.modules.media.publisher import ObjectPublisher
from tubely.modules.media.staging import Stager
from tubely.modules.thumbnail.store import ThumbnailStore
from tubely.modules.video.repository import VideoRepository
from tubely.modules.video.service import VideoService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_video_repository(db: AsyncSession = Depends(get_db)) -> VideoRepository:
    return VideoRepository(db)


def get_storage(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_thumbnail_store(request: Request) -> ThumbnailStore:
    return request.app.state.thumbnail_store


def get_media_processor(app_settings: Settings = Depends(get_settings)) -> FFmpegProcessor:
    return FFmpegProcessor(
        ffmpeg_path=app_settings.FFMPEG_PATH,
        ffprobe_path=app_settings.FFPROBE_PATH,
        timeout_seconds=app_settings.MEDIA_TOOL_TIMEOUT_SECONDS,
    )


def get_stager(app_settings: Settings = Depends(get_settings)) -> Stager:
    return Stager(app_settings.SCRATCH_DIR)


def get_publisher(
    store: ObjectStore = Depends(get_storage),
    app_settings: Settings = Depends(get_settings),
) -> ObjectPublisher:
    return ObjectPublisher(
        store=store,
        bucket=app_settings.STORAGE_BUCKET,
        url_expires_in=app_settings.PRESIGNED_URL_EXPIRE_SECONDS,
    )


def get_video_service(
    repository: VideoRepository = Depends(get_video_repository),
    processor: FFmpegProcessor = Depends(get_media_processor),
    publisher: ObjectPublisher = Depends(get_publisher),
    stager: Stager = Depends(get_stager),
    thumbnails: ThumbnailStore = Depends(get_thumbnail_store),
    app_settings: Settings = Depends(get_settings),
) -> VideoService:
    return VideoService(
        repository=repository,
        processor=processor,
        publisher=publisher,
        stager=stager,
        thumbnails=thumbnails,
        thumbnail_base_url=f"{app_settings.PUBLIC_BASE_URL.rstrip('/')}{app_settings.API_PREFIX}",
        max_video_bytes=app_settings.MAX_VIDEO_UPLOAD_BYTES,
        max_thumbnail_bytes=app_settings.MAX_THUMBNAIL_UPLOAD_BYTES,
    )
