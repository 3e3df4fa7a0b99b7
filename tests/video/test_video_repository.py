"""Tests for VideoRepository against an in-memory SQLite database."""

import uuid
from contextlib import asynccontextmanager

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tubely.core.database import Base
from tubely.modules.video.models import Video
from tubely.modules.video.repository import VideoRepository, VideoUpdateError


@asynccontextmanager
async def memory_session():
    engine = create_async_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_maker() as session:
            yield session
    finally:
        await engine.dispose()


class TestVideoRepository:
    @pytest.mark.asyncio
    async def test_get_and_update(self) -> None:
        async with memory_session() as session:
            owner = uuid.uuid4()
            video = Video(user_id=owner, title="Boots in the wild")
            session.add(video)
            await session.commit()
            repository = VideoRepository(session)

            fetched = await repository.get_by_id(video.id)
            fetched.video_url = "tubely-media,landscape/abc.mp4"
            await repository.update(fetched)

            reloaded = await repository.get_by_id(video.id)
            assert reloaded.user_id == owner
            assert reloaded.video_url == "tubely-media,landscape/abc.mp4"
            assert reloaded.created_at is not None

    @pytest.mark.asyncio
    async def test_unknown_id(self) -> None:
        async with memory_session() as session:
            assert await VideoRepository(session).get_by_id(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_commit_failure_is_wrapped_and_rolled_back(self) -> None:
        async with memory_session() as session:
            video = Video(user_id=uuid.uuid4(), title="Boots")
            session.add(video)
            await session.commit()

            async def failing_commit():
                raise OperationalError("UPDATE videos", {}, Exception("database is locked"))

            session.commit = failing_commit
            video.thumbnail_url = "http://localhost:8091/api/thumbnails/x"

            with pytest.raises(VideoUpdateError):
                await VideoRepository(session).update(video)

            await session.refresh(video)
            assert video.thumbnail_url is None
