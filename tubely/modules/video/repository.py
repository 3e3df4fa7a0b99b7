"""Video repository for database operations."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.modules.video.models import Video


class VideoUpdateError(Exception):
    """Raised when a video record cannot be written."""

    pass


class VideoRepository:
    """Repository for Video reads and updates."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, video_id: uuid.UUID) -> Optional[Video]:
        """Get video by ID.

        Args:
            video_id: Video UUID

        Returns:
            Optional[Video]: Video if found
        """
        result = await self.session.execute(select(Video).where(Video.id == video_id))
        return result.scalar_one_or_none()

    async def update(self, video: Video) -> Video:
        """Persist changes to a video and commit.

        Raises:
            VideoUpdateError: If the write fails; the session is rolled back
        """
        try:
            self.session.add(video)
            await self.session.commit()
            await self.session.refresh(video)
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise VideoUpdateError(str(e)) from e
        return video
