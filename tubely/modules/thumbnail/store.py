"""Thumbnail storage backends.

Thumbnails are keyed by video ID. The store is injected into handlers, so
each app (and each test) owns its own instance.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from tubely.core.exceptions import DependencyError
from tubely.modules.media.validation import THUMBNAIL_MEDIA_TYPES, media_subtype

_EXTENSION_MEDIA_TYPES = {media_subtype(media_type): media_type for media_type in THUMBNAIL_MEDIA_TYPES}


class ThumbnailStoreError(DependencyError):
    """Raised when a thumbnail cannot be persisted."""

    stage = "store"


@dataclass
class Thumbnail:
    """Thumbnail bytes and their media type."""
    data: bytes
    media_type: str


class ThumbnailStore(ABC):
    """Abstract base class for thumbnail stores."""

    @abstractmethod
    def put(self, video_id: uuid.UUID, data: bytes, media_type: str) -> None:
        """Store (or replace) the thumbnail for a video."""
        pass

    @abstractmethod
    def get(self, video_id: uuid.UUID) -> Optional[Thumbnail]:
        """Fetch the thumbnail for a video, if any."""
        pass


class InMemoryThumbnailStore(ThumbnailStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self):
        self._thumbnails: dict[uuid.UUID, Thumbnail] = {}

    def put(self, video_id: uuid.UUID, data: bytes, media_type: str) -> None:
        self._thumbnails[video_id] = Thumbnail(data=data, media_type=media_type)

    def get(self, video_id: uuid.UUID) -> Optional[Thumbnail]:
        return self._thumbnails.get(video_id)

    def __len__(self) -> int:
        return len(self._thumbnails)


class FileSystemThumbnailStore(ThumbnailStore):
    """Stores thumbnails as ``<assets_root>/<video_id>.<ext>``."""

    def __init__(self, assets_root: str):
        self.assets_root = Path(assets_root)
        self.assets_root.mkdir(parents=True, exist_ok=True)

    def _path(self, video_id: uuid.UUID, extension: str) -> Path:
        return self.assets_root / f"{video_id}.{extension}"

    def put(self, video_id: uuid.UUID, data: bytes, media_type: str) -> None:
        extension = media_subtype(media_type)
        path = self._path(video_id, extension)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise ThumbnailStoreError(f"Error saving thumbnail: {e}") from e

        # A new upload may change the extension
        for other in _EXTENSION_MEDIA_TYPES:
            if other != extension:
                self._path(video_id, other).unlink(missing_ok=True)

    def get(self, video_id: uuid.UUID) -> Optional[Thumbnail]:
        for extension, media_type in _EXTENSION_MEDIA_TYPES.items():
            path = self._path(video_id, extension)
            if path.is_file():
                return Thumbnail(data=path.read_bytes(), media_type=media_type)
        return None


def create_thumbnail_store(backend: str, assets_root: str) -> ThumbnailStore:
    """Create the configured thumbnail store."""
    backend = backend.lower()
    if backend == "filesystem":
        return FileSystemThumbnailStore(assets_root)
    elif backend == "memory":
        return InMemoryThumbnailStore()
    else:
        raise ValueError(f"Unsupported thumbnail store: {backend}")

