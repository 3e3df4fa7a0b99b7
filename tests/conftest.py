"""Shared fixtures: in-memory collaborators and a wired test application."""

import json
import os
import shutil
import uuid
from datetime import datetime, timezone
from typing import Optional

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("THUMBNAIL_STORE", "memory")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from fastapi.testclient import TestClient

from tubely.core.config import Settings
from tubely.core.storage import ObjectStore, StorageError, StorageResult
from tubely.main import create_app
from tubely.modules.auth.jwt import create_access_token
from tubely.modules.media.ffmpeg import FFmpegProcessor, ToolResult
from tubely.modules.video.dependencies import get_media_processor, get_video_repository
from tubely.modules.video.models import Video
from tubely.modules.video.repository import VideoUpdateError

TEST_SECRET = "test-secret-key"
TEST_BUCKET = "tubely-test"

_RECORD_FIELDS = (
    "id",
    "user_id",
    "title",
    "description",
    "thumbnail_url",
    "video_url",
    "created_at",
    "updated_at",
)


class FakeVideoRepository:
    """Record store keeping field snapshots, so callers never share objects."""

    def __init__(self):
        self.records: dict[uuid.UUID, dict] = {}
        self.fail_update = False
        self.update_calls = 0

    def add(self, user_id: uuid.UUID, **fields) -> uuid.UUID:
        now = datetime.now(timezone.utc)
        video_id = fields.pop("id", None) or uuid.uuid4()
        self.records[video_id] = {
            "id": video_id,
            "user_id": user_id,
            "title": fields.pop("title", "Boot.dev beats"),
            "description": fields.pop("description", None),
            "thumbnail_url": fields.pop("thumbnail_url", None),
            "video_url": fields.pop("video_url", None),
            "created_at": now,
            "updated_at": now,
        }
        return video_id

    def snapshot(self, video_id: uuid.UUID) -> dict:
        return dict(self.records[video_id])

    async def get_by_id(self, video_id: uuid.UUID) -> Optional[Video]:
        record = self.records.get(video_id)
        return Video(**record) if record is not None else None

    async def update(self, video: Video) -> Video:
        self.update_calls += 1
        if self.fail_update:
            raise VideoUpdateError("database is locked")
        video.updated_at = datetime.now(timezone.utc)
        self.records[video.id] = {name: getattr(video, name) for name in _RECORD_FIELDS}
        return video


class RecordingObjectStore(ObjectStore):
    """Object store that remembers puts and signs with a fake URL."""

    def __init__(self):
        self.puts: list[dict] = []
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_put = False
        self.fail_presign = False

    def put_object(self, bucket, key, file_path, content_type="application/octet-stream"):
        if self.fail_put:
            return StorageResult(success=False, bucket=bucket, key=key, error_message="AccessDenied")
        with open(file_path, "rb") as f:
            data = f.read()
        self.objects[(bucket, key)] = data
        self.puts.append({"bucket": bucket, "key": key, "content_type": content_type, "size": len(data)})
        return StorageResult(success=True, bucket=bucket, key=key, file_size=len(data))

    def presign_get(self, bucket, key, expires_in):
        if self.fail_presign:
            raise StorageError("no credentials")
        return f"https://{bucket}.s3.test/{key}?X-Amz-Expires={expires_in}"


class StubFFmpegProcessor(FFmpegProcessor):
    """Processor whose tools are simulated instead of spawned."""

    def __init__(self, width: int = 1920, height: int = 1080):
        super().__init__(ffmpeg_path="ffmpeg", ffprobe_path="ffprobe", timeout_seconds=5)
        self.width = width
        self.height = height
        self.ffmpeg_returncode = 0
        self.ffprobe_returncode = 0
        self.probe_output: Optional[bytes] = None
        self.commands: list[list[str]] = []

    async def _run(self, cmd: list[str]) -> ToolResult:
        self.commands.append(cmd)
        if cmd[0] == self.ffmpeg_path:
            if self.ffmpeg_returncode != 0:
                return ToolResult(returncode=self.ffmpeg_returncode, stdout=b"", stderr=b"moov atom not found")
            shutil.copyfile(cmd[cmd.index("-i") + 1], cmd[-1])
            return ToolResult(returncode=0, stdout=b"", stderr=b"")

        if self.ffprobe_returncode != 0:
            return ToolResult(returncode=self.ffprobe_returncode, stdout=b"", stderr=b"Invalid data found")
        output = self.probe_output
        if output is None:
            output = json.dumps(
                {"streams": [{"codec_type": "video", "width": self.width, "height": self.height}]}
            ).encode()
        return ToolResult(returncode=0, stdout=output, stderr=b"")


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def repository() -> FakeVideoRepository:
    return FakeVideoRepository()


@pytest.fixture
def object_store() -> RecordingObjectStore:
    return RecordingObjectStore()


@pytest.fixture
def processor() -> StubFFmpegProcessor:
    return StubFFmpegProcessor()


@pytest.fixture
def app_settings(scratch_dir) -> Settings:
    return Settings(
        SECRET_KEY=TEST_SECRET,
        STORAGE_BUCKET=TEST_BUCKET,
        THUMBNAIL_STORE="memory",
        SCRATCH_DIR=str(scratch_dir),
        PUBLIC_BASE_URL="http://testserver",
        LOG_JSON=False,
    )


@pytest.fixture
def app(app_settings, repository, object_store, processor):
    application = create_app(app_settings)
    application.state.object_store = object_store
    application.dependency_overrides[get_video_repository] = lambda: repository
    application.dependency_overrides[get_media_processor] = lambda: processor
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def auth_headers(owner_id) -> dict:
    return {"Authorization": f"Bearer {create_access_token(owner_id, TEST_SECRET)}"}
