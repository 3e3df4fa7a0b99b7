"""Tests for publishing artifacts and signing stored references."""

from unittest.mock import MagicMock

import pytest
from hypothesis import given, settings, strategies as st

from tubely.core.storage import ObjectStore, StorageError, StorageResult
from tubely.modules.media.ffmpeg import AspectRatio, ProcessedArtifact
from tubely.modules.media.publisher import (
    ObjectPublisher,
    ObjectReference,
    PublishError,
    SigningError,
    looks_like_url,
)

# Bucket and key segments never contain the separator
segment_strategy = st.text(
    alphabet=st.characters(exclude_characters=",", exclude_categories=("Cs",)),
    min_size=1,
    max_size=64,
)


def mock_store(success: bool = True) -> MagicMock:
    store = MagicMock(spec=ObjectStore)
    store.put_object.side_effect = lambda bucket, key, path, content_type: StorageResult(
        success=success,
        bucket=bucket,
        key=key,
        file_size=42 if success else 0,
        error_message=None if success else "SlowDown",
    )
    store.presign_get.side_effect = lambda bucket, key, expires_in: (
        f"https://{bucket}.s3.amazonaws.com/{key}?X-Amz-Expires={expires_in}"
    )
    return store


class TestObjectReference:
    @given(bucket=segment_strategy, key=segment_strategy)
    @settings(max_examples=100)
    def test_encoded_reference_parses_back(self, bucket: str, key: str) -> None:
        reference = ObjectReference(bucket=bucket, key=key)
        assert ObjectReference.parse(reference.encode()) == reference

    @pytest.mark.parametrize(
        "value",
        [None, "", "bucket", "bucket,", ",key", "a,b,c", ","],
    )
    def test_malformed_values_parse_to_none(self, value) -> None:
        assert ObjectReference.parse(value) is None

    def test_looks_like_url(self) -> None:
        assert looks_like_url("https://cdn.example.com/a.mp4")
        assert looks_like_url("http://localhost:8091/assets/a.mp4")
        assert not looks_like_url("tubely-media,landscape/a.mp4")


class TestPublish:
    @pytest.mark.asyncio
    async def test_key_is_partitioned_by_orientation(self) -> None:
        store = mock_store()
        publisher = ObjectPublisher(store, bucket="tubely-media")
        artifact = ProcessedArtifact(path="/tmp/Zm9v.mp4.processing", aspect_ratio=AspectRatio.LANDSCAPE)

        reference = await publisher.publish(artifact, "video/mp4")

        assert reference == ObjectReference(bucket="tubely-media", key="landscape/Zm9v.mp4")
        store.put_object.assert_called_once_with(
            "tubely-media", "landscape/Zm9v.mp4", "/tmp/Zm9v.mp4.processing", "video/mp4"
        )

    @pytest.mark.asyncio
    async def test_store_failure_raises(self) -> None:
        publisher = ObjectPublisher(mock_store(success=False), bucket="tubely-media")
        artifact = ProcessedArtifact(path="/tmp/a.mp4.processing", aspect_ratio=AspectRatio.OTHER)

        with pytest.raises(PublishError) as exc_info:
            await publisher.publish(artifact, "video/mp4")

        assert exc_info.value.status_code == 502
        assert "SlowDown" in str(exc_info.value)


class TestSignVideoUrl:
    @pytest.mark.asyncio
    async def test_reference_is_signed_for_ten_minutes(self) -> None:
        store = mock_store()
        publisher = ObjectPublisher(store, bucket="tubely-media")

        url = await publisher.sign_video_url("tubely-media,portrait/a.mp4")

        assert url == "https://tubely-media.s3.amazonaws.com/portrait/a.mp4?X-Amz-Expires=600"
        store.presign_get.assert_called_once_with("tubely-media", "portrait/a.mp4", 600)

    @pytest.mark.asyncio
    async def test_reference_keeps_its_own_bucket(self) -> None:
        store = mock_store()
        publisher = ObjectPublisher(store, bucket="new-bucket", url_expires_in=60)

        await publisher.sign_video_url("old-bucket,landscape/a.mp4")

        store.presign_get.assert_called_once_with("old-bucket", "landscape/a.mp4", 60)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value",
        [None, "", "https://cdn.example.com/a.mp4", "garbage", "a,b,c"],
    )
    async def test_other_values_pass_through(self, value) -> None:
        store = mock_store()
        publisher = ObjectPublisher(store, bucket="tubely-media")

        assert await publisher.sign_video_url(value) == value
        store.presign_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_presign_failure_raises_signing_error(self) -> None:
        store = mock_store()
        store.presign_get.side_effect = StorageError("expired credentials")
        publisher = ObjectPublisher(store, bucket="tubely-media")

        with pytest.raises(SigningError) as exc_info:
            await publisher.sign_video_url("tubely-media,landscape/a.mp4")

        assert exc_info.value.status_code == 500
