"""Tests for upload media type validation."""

import io

import pytest
from starlette.datastructures import Headers, UploadFile

from tubely.modules.media.validation import (
    THUMBNAIL_MEDIA_TYPES,
    VIDEO_MEDIA_TYPES,
    InvalidMediaTypeError,
    MissingUploadError,
    UnsupportedMediaTypeError,
    media_subtype,
    parse_media_type,
    validate_upload,
)


def upload_with_type(content_type):
    headers = Headers({"content-type": content_type}) if content_type is not None else Headers({})
    return UploadFile(file=io.BytesIO(b"data"), filename="upload", headers=headers)


class TestParseMediaType:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("video/mp4", "video/mp4"),
            ("VIDEO/MP4", "video/mp4"),
            ("image/png; charset=binary", "image/png"),
            ("  image/jpeg  ", "image/jpeg"),
            ("application/vnd.apple.mpegurl", "application/vnd.apple.mpegurl"),
        ],
    )
    def test_valid_headers(self, header: str, expected: str) -> None:
        assert parse_media_type(header) == expected

    @pytest.mark.parametrize("header", [None, "", "mp4", "video/", "/mp4", "video mp4", "video/mp4/extra"])
    def test_malformed_headers(self, header) -> None:
        with pytest.raises(InvalidMediaTypeError):
            parse_media_type(header)

    def test_media_subtype(self) -> None:
        assert media_subtype("image/jpeg") == "jpeg"


class TestValidateUpload:
    def test_accepts_allow_listed_video(self) -> None:
        assert validate_upload(upload_with_type("video/mp4"), VIDEO_MEDIA_TYPES, "video") == "video/mp4"

    @pytest.mark.parametrize("content_type", ["image/jpeg", "image/png"])
    def test_accepts_allow_listed_thumbnails(self, content_type: str) -> None:
        upload = upload_with_type(content_type)
        assert validate_upload(upload, THUMBNAIL_MEDIA_TYPES, "thumbnail") == content_type

    @pytest.mark.parametrize("content_type", ["video/webm", "video/mp4v", "image/gif", "text/plain"])
    def test_rejects_other_types(self, content_type: str) -> None:
        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            validate_upload(upload_with_type(content_type), VIDEO_MEDIA_TYPES, "video")

        assert exc_info.value.status_code == 415
        assert exc_info.value.stage == "validate"

    def test_missing_field(self) -> None:
        with pytest.raises(MissingUploadError) as exc_info:
            validate_upload(None, VIDEO_MEDIA_TYPES, "video")

        assert str(exc_info.value) == "Couldn't get video from request"
        assert exc_info.value.status_code == 400

    def test_plain_form_value_is_not_a_file(self) -> None:
        with pytest.raises(MissingUploadError):
            validate_upload("just a string", VIDEO_MEDIA_TYPES, "video")

    def test_missing_content_type(self) -> None:
        with pytest.raises(InvalidMediaTypeError) as exc_info:
            validate_upload(upload_with_type(None), VIDEO_MEDIA_TYPES, "video")

        assert exc_info.value.status_code == 400
