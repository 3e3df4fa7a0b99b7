"""Tests for structured log records and bound upload context."""

import json
import logging
import sys

from tubely.core.logging import (
    ContextFilter,
    StructuredFormatter,
    clear_correlation_id,
    set_correlation_id,
    upload_context,
)
from tubely.modules.media.ffmpeg import FastStartError


def make_record(message: str = "Probed media dimensions", exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord("tubely.modules.media.ffmpeg", logging.INFO, __file__, 10, message, None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def render(record: logging.LogRecord) -> dict:
    ContextFilter().filter(record)
    return json.loads(StructuredFormatter().format(record))


class TestStructuredLogging:
    def test_upload_context_is_attached(self) -> None:
        set_correlation_id("req-1")
        try:
            with upload_context(kind="video", video_id="v-1", user_id="u-1"):
                document = render(make_record(width=1920))
        finally:
            clear_correlation_id()

        assert document["correlation_id"] == "req-1"
        assert document["context"]["video_id"] == "v-1"
        assert document["context"]["kind"] == "video"
        assert document["context"]["width"] == 1920

    def test_context_is_unbound_after_block(self) -> None:
        with upload_context(video_id="v-1"):
            pass

        assert "video_id" not in render(make_record()).get("context", {})

    def test_nested_context_shadows_outer(self) -> None:
        with upload_context(video_id="outer", kind="video"):
            with upload_context(video_id="inner"):
                document = render(make_record())

        assert document["context"]["video_id"] == "inner"
        assert document["context"]["kind"] == "video"

    def test_explicit_extra_wins_over_context(self) -> None:
        with upload_context(video_id="bound"):
            document = render(make_record(video_id="explicit"))

        assert document["context"]["video_id"] == "explicit"

    def test_exception_carries_failed_stage(self) -> None:
        try:
            raise FastStartError("Issue processing file for fast start")
        except FastStartError:
            document = render(make_record("Video upload rejected", exc_info=sys.exc_info()))

        assert document["exception"]["type"] == "FastStartError"
        assert document["exception"]["stage"] == "transcode"
        assert "Traceback" in document["exception"]["stack_trace"]

    def test_unserializable_extra_is_stringified(self) -> None:
        document = render(make_record(path=object()))

        assert document["context"]["path"].startswith("<object object")
