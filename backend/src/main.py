import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv


# Load .env FIRST before any other imports that might need env vars
BACKEND_DIR = Path(__file__).parent.parent
ENV_PATH = BACKEND_DIR / ".env"
load_dotenv(ENV_PATH)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError
from starlette.middleware.sessions import SessionMiddleware

from .assignments.router import router as assignments_router
from .config.logging import setup_logging
from .config.settings import get_settings
from .courses.router import router as courses_router
from .database.session import engine
from .media.router import router as media_router
from .middleware.error_handlers import register_error_handlers
from .middleware.security import SimpleSecurityMiddleware, limiter
from .playback.router import router as playback_router
from .progress.router import router as progress_router
from .quizzes.router import router as quizzes_router
from .storage.router import router as files_router
from .transcode.router import router as transcode_router
from .transcode.watchdog import run_watchdog


setup_logging()
logger = logging.getLogger(__name__)


def _register_routers(app: FastAPI) -> None:
    """Register all application routers."""
    app.include_router(media_router)
    app.include_router(transcode_router)
    app.include_router(playback_router)
    app.include_router(courses_router)
    app.include_router(quizzes_router)
    app.include_router(assignments_router)
    app.include_router(progress_router)  # Course completion
    app.include_router(files_router)  # Signed URLs for local storage


async def _startup_database() -> None:
    """Initialize database with retry logic."""
    max_retries = 5
    retry_delay = 1  # seconds

    for attempt in range(max_retries):
        try:
            from src.database.init import init_database

            await init_database(engine)
            logger.info("Database initialization completed successfully")
            break

        except OperationalError:
            if attempt == max_retries - 1:
                logger.exception("Startup failed after %d attempts", max_retries)
                raise

            logger.warning(
                "Database connection attempt %d failed, retrying in %ds...",
                attempt + 1,
                retry_delay,
            )
            await asyncio.sleep(retry_delay)
            retry_delay *= 2  # Exponential backoff


async def _shutdown_cleanup(watchdog: asyncio.Task | None) -> None:
    """Clean up resources on shutdown."""
    logger.info("Starting graceful shutdown...")

    if watchdog is not None:
        watchdog.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watchdog

    try:
        await engine.dispose()
        logger.info("Database engine disposed successfully")
    except Exception as e:
        logger.warning(f"Error disposing database engine: {e}")

    logger.info("Shutdown complete")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    settings = get_settings()
    await _startup_database()

    watchdog = None
    if settings.TRANSCODE_WATCHDOG_ENABLED:
        watchdog = asyncio.create_task(run_watchdog(settings.TRANSCODE_WATCHDOG_INTERVAL_SECONDS))

    yield

    await _shutdown_cleanup(watchdog)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    try:
        settings = get_settings()
    except Exception:
        logger.exception("Failed to load settings")
        raise

    app = FastAPI(
        title="LearnStream API",
        description="Video delivery and completion tracking for online courses",
        version="0.1.0",
        debug=settings.DEBUG,
        lifespan=lifespan if settings.ENVIRONMENT != "test" else None,
    )

    # Note: When allow_credentials=True, allow_origins cannot be ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Cookie handling for browser clients carrying access_token
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY,
        https_only=settings.ENVIRONMENT == "production",
    )

    # Security headers
    app.add_middleware(SimpleSecurityMiddleware)

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_error_handlers(app)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Check application health status."""
        return {"status": "healthy"}

    _register_routers(app)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=get_settings().API_PORT)
