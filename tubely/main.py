"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from tubely.core.config import Settings, settings
from tubely.core.database import init_db
from tubely.core.logging import setup_logging
from tubely.core.metrics import get_content_type, get_metrics, set_app_info
from tubely.core.storage import create_object_store, storage_config_from_settings
from tubely.core.middleware import (
    BodySizeLimitMiddleware,
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
    TracingMiddleware,
)
from tubely.core.tracing import setup_tracing, shutdown_tracing
from tubely.modules.thumbnail.store import create_thumbnail_store
from tubely.modules.video import router as video_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_settings: Settings = app.state.settings
    setup_tracing(
        service_name=app_settings.PROJECT_NAME,
        service_version=app_settings.VERSION,
        environment=app_settings.ENVIRONMENT,
        otlp_endpoint=app_settings.OTLP_ENDPOINT,
    )
    await init_db()
    yield
    shutdown_tracing()


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the application.

    Args:
        app_settings: Settings to use instead of the environment-derived ones
    """
    app_settings = app_settings or settings
    prefix = app_settings.API_PREFIX

    setup_logging(
        level="DEBUG" if app_settings.DEBUG else "INFO",
        json_format=app_settings.LOG_JSON,
        include_stack_trace=True,
    )
    set_app_info(version=app_settings.VERSION, environment=app_settings.ENVIRONMENT)

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        version=app_settings.VERSION,
        description="""
## Tubely API

Upload videos and thumbnails for your video records.

* **Videos** - MP4 uploads are remuxed for fast start, sorted by aspect
  ratio and stored privately; reads return a 10 minute presigned URL
* **Thumbnails** - JPEG/PNG images served back by this API

Upload endpoints require a JWT bearer token:

```
Authorization: Bearer <access_token>
```
        """,
        openapi_url=f"{prefix}/openapi.json",
        docs_url=f"{prefix}/docs",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.object_store = create_object_store(storage_config_from_settings(app_settings))
    app.state.thumbnail_store = create_thumbnail_store(
        app_settings.THUMBNAIL_STORE, app_settings.ASSETS_ROOT
    )

    # The last middleware added runs first
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(TracingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    if app_settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=app_settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(
        BodySizeLimitMiddleware,
        limits={
            rf"^{prefix}/video_upload/": app_settings.MAX_VIDEO_UPLOAD_BYTES,
            rf"^{prefix}/thumbnail_upload/": app_settings.MAX_THUMBNAIL_UPLOAD_BYTES,
        },
    )

    app.include_router(video_router, prefix=prefix)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        return {"status": "healthy", "version": app_settings.VERSION}

    @app.get("/metrics", tags=["health"], include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=get_metrics(), media_type=get_content_type())

    return app


app = create_app()
