"""Thumbnail storage."""

from tubely.modules.thumbnail.store import (
    FileSystemThumbnailStore,
    InMemoryThumbnailStore,
    Thumbnail,
    ThumbnailStore,
    ThumbnailStoreError,
    create_thumbnail_store,
)

__all__ = [
    "FileSystemThumbnailStore",
    "InMemoryThumbnailStore",
    "Thumbnail",
    "ThumbnailStore",
    "ThumbnailStoreError",
    "create_thumbnail_store",
]
