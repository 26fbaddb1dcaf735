import logging
from contextlib import asynccontextmanager
from typing import Any
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from tubely.assets.local import LocalAssetStore
from tubely.config import Settings, get_settings
from tubely.database import create_db_engine, create_session_factory
from tubely.dependencies import build_upload_deps
from tubely.errors import UploadPipelineError
from tubely.routers import users, videos

logger = logging.getLogger(__name__)


async def upload_error_handler(request: Request, exc: UploadPipelineError):
    if exc.status_code >= 500 and not exc.logged:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc.cause)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


def create_app(settings: Settings | None = None, s3_client: Any = None) -> FastAPI:
    """Build the API with its own dependencies. Tests pass their own settings and a fake S3 client."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    upload_deps = build_upload_deps(settings, s3_client=s3_client)
    engine = create_db_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if isinstance(upload_deps.thumbnail_store, LocalAssetStore):
            upload_deps.thumbnail_store.ensure()
        logger.info("Starting tubely on platform %s (thumbnails: %s)", settings.platform, settings.thumbnail_storage)
        yield
        engine.dispose()

    app = FastAPI(title="Tubely API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.upload_deps = upload_deps
    app.state.db_engine = engine
    app.state.session_factory = create_session_factory(engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(UploadPipelineError, upload_error_handler)

    app.include_router(users.router)
    app.include_router(videos.router)

    if isinstance(upload_deps.thumbnail_store, LocalAssetStore):
        app.mount(
            "/assets",
            StaticFiles(directory=upload_deps.thumbnail_store.root, check_dir=False),
            name="assets",
        )

    @app.get("/api/healthz")
    def healthz():
        return {"status": "ok"}

    return app


app = create_app()
