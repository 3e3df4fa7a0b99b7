"""Media pipeline: validation, staging, ffmpeg processing and publishing."""

from tubely.modules.media.ffmpeg import (
    AspectRatio,
    FastStartError,
    FFmpegProcessor,
    MediaToolError,
    MediaToolTimeoutError,
    ProbeError,
    ProcessedArtifact,
    classify_aspect_ratio,
)
from tubely.modules.media.publisher import (
    ObjectPublisher,
    ObjectReference,
    PublishError,
    SigningError,
)
from tubely.modules.media.staging import StagedUpload, Stager, generate_filename
from tubely.modules.media.validation import (
    THUMBNAIL_MEDIA_TYPES,
    VIDEO_MEDIA_TYPES,
    UnsupportedMediaTypeError,
    validate_upload,
)

__all__ = [
    "AspectRatio",
    "FastStartError",
    "FFmpegProcessor",
    "MediaToolError",
    "MediaToolTimeoutError",
    "ProbeError",
    "ProcessedArtifact",
    "classify_aspect_ratio",
    "ObjectPublisher",
    "ObjectReference",
    "PublishError",
    "SigningError",
    "StagedUpload",
    "Stager",
    "generate_filename",
    "THUMBNAIL_MEDIA_TYPES",
    "VIDEO_MEDIA_TYPES",
    "UnsupportedMediaTypeError",
    "validate_upload",
]
