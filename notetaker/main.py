import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from notetaker.app.api import routes_lectures
from notetaker.app.container import build_service
from notetaker.config import Settings, get_settings
from notetaker.domain.services.job_service import LectureService

logger = logging.getLogger("uvicorn.access")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


class LogRequestsMiddleware(BaseHTTPMiddleware):
    """Log when a request is received (before body is read), so long uploads show up immediately."""

    async def dispatch(self, request, call_next):
        method = request.method
        path = request.url.path
        logger.info("Request started: %s %s", method, path)
        response = await call_next(request)
        return response


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[LectureService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        lecture_service = service or build_service(settings)
        app.state.lecture_service = lecture_service
        lecture_service.queue.start()
        await lecture_service.recover()
        try:
            yield
        finally:
            await lecture_service.queue.stop()
            close = getattr(lecture_service.repository, "close", None)
            if close is not None:
                close()

    app = FastAPI(title="Lecture Notetaker API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(LogRequestsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes_lectures.router)

    @app.get("/health")
    async def health():
        lecture_service: LectureService = app.state.lecture_service
        return {
            "status": "ok",
            "features": {
                "audio_preprocessing": lecture_service.pipeline.audio_tools_available,
                "background_processing": lecture_service.queue.running,
                "chunked_processing": lecture_service.pipeline.audio_tools_available,
            },
            "queued_lectures": lecture_service.queue.pending(),
        }

    # When running in Docker, serve built frontend from /static
    static_path = Path("static")
    if static_path.is_dir():
        if (static_path / "assets").is_dir():
            app.mount("/assets", StaticFiles(directory="static/assets"), name="assets")

        @app.get("/")
        async def index():
            return FileResponse("static/index.html")

        @app.get("/{full_path:path}", include_in_schema=False)
        async def serve_spa(full_path: str):
            if full_path.startswith("api/") or full_path.startswith("assets/"):
                raise HTTPException(status_code=404, detail="Not found")
            path = static_path / full_path
            if path.is_file():
                return FileResponse(path)
            return FileResponse("static/index.html")

    return app


app = create_app()
