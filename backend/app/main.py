"""PartsCatalog FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from app import __version__
from app.config import settings
from app.services import init_services, shutdown_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # === STARTUP ===
    _setup_logging()

    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)

    await init_services()
    logger.info(
        "PartsCatalog v%s started — listening on %s:%s (auth=%s, failures=%s)",
        __version__, settings.host, settings.port,
        settings.auth_mode, settings.catalog_failure_mode,
    )

    try:
        yield
    finally:
        # === SHUTDOWN ===
        await shutdown_services()
        logger.info("PartsCatalog shutting down")


def _setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("aiosqlite", "apscheduler", "httpx", "httpcore", "google_auth_oauthlib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Application factory."""
    from app.api.routes import api_router

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        debug=settings.debug,
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_prefix)

    # Optional admin frontend (index.html + assets) next to the backend
    static_dir = Path(settings.static_dir)
    if static_dir.is_dir() and (static_dir / "index.html").exists():
        _index = static_dir / "index.html"
        _root = static_dir.resolve()

        @app.get("/", include_in_schema=False)
        async def _frontend_root():
            return FileResponse(_index)

        @app.get("/{full_path:path}", include_in_schema=False)
        async def _frontend_file(full_path: str):
            file_path = (static_dir / full_path).resolve()
            if full_path and file_path.is_file() and file_path.is_relative_to(_root):
                return FileResponse(file_path)
            return FileResponse(_index)

        logger.info("Frontend mounted from %s", static_dir)
    else:
        logger.info("No frontend found at %s — API-only mode", static_dir)

    return app


app = create_app()


def run(**kwargs: Any) -> None:
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=settings.uvicorn_workers,
        log_level=settings.log_level.lower(),
        **kwargs,
    )


if __name__ == "__main__":
    run()
