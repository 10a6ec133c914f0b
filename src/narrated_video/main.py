"""FastAPI application entrypoint."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from narrated_video.api.routes import router
from narrated_video.config import settings
from narrated_video.render.backends.registry import resolve_chain

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog once per process: console output, or JSON lines."""
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


configure_logging(settings.log_level, settings.log_json)


# ---------------------------------------------------------------------------
# CORS configuration
# ---------------------------------------------------------------------------

_DEFAULT_ORIGINS = {
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
}


def _get_allowed_origins() -> set[str]:
    origins = set(_DEFAULT_ORIGINS)
    if settings.allowed_origins:
        origins.update(o.strip() for o in settings.allowed_origins.split(",") if o.strip())
    return origins


_ALLOWED_ORIGINS = _get_allowed_origins()


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Report which render backends can run on this host."""
    chain = resolve_chain(settings)
    available = []
    for backend in chain:
        try:
            await backend.ensure_available()
        except Exception as exc:
            logger.warning("app.backend_unavailable", backend=backend.name, error=str(exc))
        else:
            available.append(backend.name)
    logger.info(
        "app.startup",
        allowed_origins=sorted(_ALLOWED_ORIGINS),
        backends=[b.name for b in chain],
        available_backends=available,
    )
    yield
    logger.info("app.shutdown")


app = FastAPI(
    title="Narrated Video Generator",
    description="Turns a topic into a narrated, captioned explainer video",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(_ALLOWED_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

# Finished videos and caption files
_OUTPUT_DIR = Path(settings.output_base_dir)
_OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/files/output", StaticFiles(directory=str(_OUTPUT_DIR)), name="output")


@app.get("/health")
async def health_check():
    return {"status": "ok"}
