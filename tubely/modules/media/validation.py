"""Upload validation.

Checks run before any scratch or object storage is touched.
"""

import re
from typing import Optional

from starlette.datastructures import UploadFile

from tubely.core.exceptions import ClientError

VIDEO_MEDIA_TYPES = frozenset({"video/mp4"})
THUMBNAIL_MEDIA_TYPES = frozenset({"image/jpeg", "image/png"})

MAX_VIDEO_UPLOAD_BYTES = 1 << 30  # 1 GiB
MAX_THUMBNAIL_UPLOAD_BYTES = 10 << 20  # 10 MiB

_MEDIA_TYPE_RE = re.compile(r"^[a-z0-9][a-z0-9!#$&^_.+-]*/[a-z0-9][a-z0-9!#$&^_.+-]*$")


class MissingUploadError(ClientError):
    """Raised when the expected multipart file field is absent."""

    stage = "validate"


class InvalidMediaTypeError(ClientError):
    """Raised when the declared Content-Type cannot be parsed."""

    stage = "validate"


class UnsupportedMediaTypeError(ClientError):
    """Raised when the declared media type is not allow-listed."""

    status_code = 415
    stage = "validate"


class UploadTooLargeError(ClientError):
    """Raised when an upload exceeds its size ceiling."""

    status_code = 413
    stage = "validate"


def parse_media_type(content_type: Optional[str]) -> str:
    """Parse a Content-Type header value into a bare ``type/subtype``.

    Parameters such as ``; charset=...`` are dropped and the result is
    lower-cased.

    Raises:
        InvalidMediaTypeError: If the value is empty or malformed
    """
    if not content_type:
        raise InvalidMediaTypeError("Missing media type")

    media_type = content_type.split(";", 1)[0].strip().lower()
    if not _MEDIA_TYPE_RE.match(media_type):
        raise InvalidMediaTypeError(f"Malformed media type: {content_type!r}")
    return media_type


def media_subtype(media_type: str) -> str:
    """``video/mp4`` -> ``mp4``."""
    return media_type.split("/", 1)[1]


def validate_upload(
    upload: Optional[UploadFile],
    allowed: frozenset[str],
    field_name: str,
) -> str:
    """Validate a multipart file field and return its media type.

    Args:
        upload: The uploaded file, or None when the field was absent
        allowed: Exact media types accepted
        field_name: Form field name, used in error messages

    Returns:
        str: The validated media type

    Raises:
        MissingUploadError: Field absent
        InvalidMediaTypeError: Content-Type unparsable
        UnsupportedMediaTypeError: Media type not in ``allowed``
    """
    if upload is None or not isinstance(upload, UploadFile):
        raise MissingUploadError(f"Couldn't get {field_name} from request")

    media_type = parse_media_type(upload.content_type)
    if media_type not in allowed:
        raise UnsupportedMediaTypeError(
            f"Media type not compatible: {media_type}. Allowed: {', '.join(sorted(allowed))}"
        )
    return media_type
