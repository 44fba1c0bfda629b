from __future__ import annotations

from typing import Optional, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
import logging
from logging.handlers import RotatingFileHandler

from notetaker.config import Settings
from notetaker.errors import (
    CaptureNotFound,
    ConfigurationError,
    FileTooLarge,
    MeetingConflict,
    NotetakerError,
    PermissionDenied,
    ServiceError,
)
from notetaker.models.base import engine, init_db
from notetaker.api.calendar import router as calendar_router
from notetaker.api.devices import router as devices_router
from notetaker.api.meetings import router as meetings_router
from notetaker.api.recordings import router as recordings_router
from notetaker.api.settings import router as settings_router
from notetaker.deps import get_settings
from notetaker.services.audio_capture import AudioRecorder
from notetaker.services.pipeline import fail_interrupted


logger = logging.getLogger("notetaker")

# Most specific first
_ERROR_STATUS: Tuple[Tuple[Type[NotetakerError], int], ...] = (
    (PermissionDenied, 403),
    (FileTooLarge, 413),
    (ConfigurationError, 400),
    (CaptureNotFound, 404),
    (MeetingConflict, 409),
    (ServiceError, 502),
)


def status_for(exc: NotetakerError) -> int:
    for cls, code in _ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return 500


def _configure_file_logging(settings: Settings) -> None:
    log_file = settings.logs_dir / "backend.log"
    handler = RotatingFileHandler(str(log_file), maxBytes=5_000_000, backupCount=2)
    handler.setFormatter(logging.Formatter(fmt='%(asctime)s %(levelname)s %(name)s %(message)s'))
    root = logging.getLogger()
    if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        root.addHandler(handler)
    root.setLevel(logging.INFO)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Meeting Notetaker Backend", version="0.1.0")

    # CORS for local dev and Tauri
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "tauri://localhost",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.recorder = AudioRecorder(
        sample_rate=settings.capture_sample_rate,
        blocksize=settings.capture_blocksize,
        tick_interval=settings.capture_tick_interval,
    )
    # Outlook sign-in state, keyed by client id
    app.state.calendar_sessions = {}

    @app.on_event("startup")
    def _startup() -> None:
        settings.ensure_dirs()
        try:
            _configure_file_logging(settings)
        except OSError:
            logger.warning("File logging unavailable; continuing with console logging")
        init_db()
        with Session(engine) as session:
            fail_interrupted(session)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        app.state.recorder.close_all()

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(calendar_router)
    app.include_router(devices_router)
    app.include_router(meetings_router)
    app.include_router(recordings_router)
    app.include_router(settings_router)

    @app.exception_handler(NotetakerError)
    async def _notetaker_error_handler(request: Request, exc: NotetakerError):  # type: ignore[override]
        code = status_for(exc)
        if code >= 500:
            logger.exception("Request failed", exc_info=exc)
        else:
            logger.warning("Request rejected: %s", exc, extra={"path": request.url.path, "status": code})
        return JSONResponse(status_code=code, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        logger.exception("Unhandled exception", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return app


app = create_app()


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Meeting Notetaker Backend Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")

    args = parser.parse_args()

    uvicorn.run(
        "notetaker.main:app" if args.reload else app,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
