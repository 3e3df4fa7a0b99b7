"""Tests for request body ceilings and path normalization."""

import pytest
from fastapi import HTTPException

from tubely.core.middleware import BodySizeLimitMiddleware, normalize_path


class RecordingApp:
    """ASGI app that drains the request body."""

    def __init__(self):
        self.called = False
        self.body = b""

    async def __call__(self, scope, receive, send):
        self.called = True
        more_body = True
        while more_body:
            message = await receive()
            self.body += message.get("body", b"")
            more_body = message.get("more_body", False)
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"ok"})


def http_scope(path: str, content_length=None) -> dict:
    headers = []
    if content_length is not None:
        headers.append((b"content-length", str(content_length).encode()))
    return {"type": "http", "method": "POST", "path": path, "headers": headers}


def body_receiver(*chunks: bytes):
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]

    async def receive():
        return messages.pop(0)

    return receive


class Sent:
    def __init__(self):
        self.messages = []

    async def __call__(self, message):
        self.messages.append(message)

    @property
    def status(self):
        return self.messages[0]["status"]


LIMITS = {r"^/api/video_upload/": 10}


class TestBodySizeLimitMiddleware:
    @pytest.mark.asyncio
    async def test_declared_length_over_limit_is_refused_unread(self) -> None:
        inner = RecordingApp()
        middleware = BodySizeLimitMiddleware(inner, LIMITS)
        sent = Sent()

        await middleware(http_scope("/api/video_upload/1", content_length=11), body_receiver(b"x" * 11), sent)

        assert sent.status == 413
        assert not inner.called

    @pytest.mark.asyncio
    async def test_streamed_body_over_limit_aborts(self) -> None:
        inner = RecordingApp()
        middleware = BodySizeLimitMiddleware(inner, LIMITS)

        with pytest.raises(HTTPException) as exc_info:
            await middleware(http_scope("/api/video_upload/1"), body_receiver(b"x" * 6, b"x" * 6), Sent())

        assert exc_info.value.status_code == 413
        assert inner.body == b"x" * 6

    @pytest.mark.asyncio
    async def test_body_at_limit_passes(self) -> None:
        inner = RecordingApp()
        middleware = BodySizeLimitMiddleware(inner, LIMITS)
        sent = Sent()

        await middleware(http_scope("/api/video_upload/1", content_length=10), body_receiver(b"x" * 10), sent)

        assert sent.status == 200
        assert inner.body == b"x" * 10

    @pytest.mark.asyncio
    async def test_unlimited_paths_are_untouched(self) -> None:
        inner = RecordingApp()
        middleware = BodySizeLimitMiddleware(inner, LIMITS)
        sent = Sent()

        await middleware(http_scope("/api/videos/1", content_length=1000), body_receiver(b"x" * 1000), sent)

        assert sent.status == 200


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/api/videos/3f2b6a0e-9c1d-4e55-8a2b-0c9d7e6f5a4b", "/api/videos/{id}"),
        ("/api/video_upload/42", "/api/video_upload/{id}"),
        ("/health", "/health"),
    ],
)
def test_normalize_path(path: str, expected: str) -> None:
    assert normalize_path(path) == expected
