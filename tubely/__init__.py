"""Tubely video hosting backend.

Handles media uploads for video records: videos are remuxed for fast start,
classified by aspect ratio and published to object storage; thumbnails are
kept in a pluggable thumbnail store.

Modules:
    - core: Configuration, database, storage, logging, metrics, tracing
    - modules.auth: Bearer token extraction and JWT validation
    - modules.media: Upload validation, staging, ffmpeg adapter, publisher
    - modules.thumbnail: Thumbnail storage backends
    - modules.video: Video records and the upload endpoints
"""

__version__ = "0.1.0"
