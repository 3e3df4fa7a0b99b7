"""Video API router.

Upload endpoints for videos and thumbnails, plus signed reads.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from tubely.core.exceptions import TubelyError
from tubely.modules.auth.jwt import get_current_user_id
from tubely.modules.video.dependencies import get_video_service
from tubely.modules.video.schemas import ErrorResponse, VideoResponse
from tubely.modules.video.service import VideoService

router = APIRouter(tags=["videos"])

UPLOAD_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid ID, missing file or unreadable upload"},
    401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
    403: {"model": ErrorResponse, "description": "Video belongs to another user"},
    404: {"model": ErrorResponse, "description": "Video not found"},
    413: {"model": ErrorResponse, "description": "Upload too large"},
    415: {"model": ErrorResponse, "description": "Media type not allowed"},
}


def parse_video_id(video_id: str) -> uuid.UUID:
    """Path parameter dependency; malformed IDs are a 400, not a 422."""
    try:
        return uuid.UUID(video_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ID")


def to_http_exception(error: TubelyError) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if error.status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=error.status_code, detail=str(error), headers=headers)


@router.api_route(
    "/video_upload/{video_id}",
    methods=["POST", "PUT"],
    response_model=VideoResponse,
    responses={
        **UPLOAD_ERROR_RESPONSES,
        422: {"model": ErrorResponse, "description": "ffmpeg/ffprobe could not process the file"},
        502: {"model": ErrorResponse, "description": "Object store rejected the upload"},
    },
)
async def upload_video(
    video_id: uuid.UUID = Depends(parse_video_id),
    user_id: uuid.UUID = Depends(get_current_user_id),
    video: Optional[UploadFile] = File(None),
    service: VideoService = Depends(get_video_service),
):
    """Upload an MP4 for a video the caller owns.

    The file is remuxed for fast start, classified by aspect ratio and
    stored under ``<landscape|portrait|other>/<random>.mp4``.
    """
    try:
        return await service.upload_video(video_id, user_id, video)
    except TubelyError as e:
        raise to_http_exception(e)


@router.api_route(
    "/thumbnail_upload/{video_id}",
    methods=["POST", "PUT"],
    response_model=VideoResponse,
    responses=UPLOAD_ERROR_RESPONSES,
)
async def upload_thumbnail(
    video_id: uuid.UUID = Depends(parse_video_id),
    user_id: uuid.UUID = Depends(get_current_user_id),
    thumbnail: Optional[UploadFile] = File(None),
    service: VideoService = Depends(get_video_service),
):
    """Upload a JPEG or PNG thumbnail for a video the caller owns."""
    try:
        return await service.upload_thumbnail(video_id, user_id, thumbnail)
    except TubelyError as e:
        raise to_http_exception(e)


@router.get("/videos/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: uuid.UUID = Depends(parse_video_id),
    service: VideoService = Depends(get_video_service),
):
    """Get a video with a short-lived playback URL."""
    try:
        return await service.get_video(video_id)
    except TubelyError as e:
        raise to_http_exception(e)


@router.get(
    "/thumbnails/{video_id}",
    response_class=Response,
    responses={200: {"content": {"image/jpeg": {}, "image/png": {}}}},
)
async def get_thumbnail(
    video_id: uuid.UUID = Depends(parse_video_id),
    service: VideoService = Depends(get_video_service),
):
    """Serve a stored thumbnail."""
    try:
        thumbnail = await service.get_thumbnail(video_id)
    except TubelyError as e:
        raise to_http_exception(e)
    return Response(content=thumbnail.data, media_type=thumbnail.media_type)
