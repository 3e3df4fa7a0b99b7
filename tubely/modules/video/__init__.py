"""Video records and media upload endpoints."""

from tubely.modules.video.models import Video
from tubely.modules.video.repository import VideoRepository, VideoUpdateError
from tubely.modules.video.router import router
from tubely.modules.video.service import (
    RecordUpdateError,
    ThumbnailNotFoundError,
    VideoNotFoundError,
    VideoOwnershipError,
    VideoService,
)

__all__ = [
    "Video",
    "VideoRepository",
    "VideoUpdateError",
    "router",
    "RecordUpdateError",
    "ThumbnailNotFoundError",
    "VideoNotFoundError",
    "VideoOwnershipError",
    "VideoService",
]
