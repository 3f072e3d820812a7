import asyncio
import logging
import os
from typing import Optional

from dotenv import load_dotenv  # load .env variables

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from sqlalchemy.exc import DBAPIError, OperationalError

import arena.database as database
from arena.context import ArenaContext, build_context
from arena.errors import ArenaError

# ----- Load environment variables -----
load_dotenv()

# ----- Logging -----
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

# ----- Routers -----
from arena.routes.auth import router as auth_router
from arena.routes.challenges import router as challenge_router
from arena.routes.teams import router as team_router
from arena.routes.applications import router as application_router
from arena.routes.uploads import router as upload_router
from arena.routes.leaderboard import router as leaderboard_router

logger = logging.getLogger("arena")


def sqlite_fallback_allowed(current_url: str) -> bool:
    """Decide if we may fall back to the bundled SQLite database."""

    configured = os.getenv("DB_ALLOW_SQLITE_FALLBACK")
    if configured is not None:
        return configured.lower() in {"1", "true", "yes", "on"}
    return current_url == database.DEFAULT_SQLITE_URL


async def connect_with_retry(database_url: str) -> ArenaContext:
    """Create the tables (retrying while the database warms up) and build the context."""

    max_attempts = int(os.getenv("DB_INIT_MAX_ATTEMPTS", "10"))
    base_delay = float(os.getenv("DB_INIT_RETRY_SECONDS", "1.0"))

    engine = database.create_engine_for(database_url)
    attempt = 0
    while True:
        attempt += 1
        try:
            await database.init_models(engine)
        except (OperationalError, DBAPIError, OSError) as exc:  # pragma: no cover - depends on timing
            if attempt >= max_attempts:
                if sqlite_fallback_allowed(database_url) and database_url != database.DEFAULT_SQLITE_URL:
                    logger.error(
                        "Database not reachable after %s attempts: %s."
                        " Falling back to local SQLite for development.",
                        attempt,
                        exc,
                    )
                    await engine.dispose()
                    database_url = database.DEFAULT_SQLITE_URL
                    engine = database.create_engine_for(database_url)
                    attempt = 0
                    continue

                logger.exception("Database not reachable after %s attempts", attempt)
                await engine.dispose()
                raise

            wait_time = base_delay * min(2 ** (attempt - 1), 8)
            logger.warning(
                "Database not ready (attempt %s/%s): %s. Retrying in %.1f seconds...",
                attempt,
                max_attempts,
                exc,
                wait_time,
            )
            await asyncio.sleep(wait_time)
        else:
            logger.info("Arena API started and database tables ensured.")
            return build_context(engine)


def _configure_cors(app: FastAPI) -> None:
    raw_origins = os.getenv("ALLOWED_ORIGINS", "").strip()
    if not raw_origins:
        return
    allowed_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
        max_age=86400,
    )


def create_app(context: Optional[ArenaContext] = None) -> FastAPI:
    """Build the API. A prebuilt ``context`` skips the start-up database work."""

    app = FastAPI(
        title="Arena Backend",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.context = context

    _configure_cors(app)

    @app.exception_handler(ArenaError)
    async def arena_error_handler(request: Request, exc: ArenaError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # ----- Include routers -----
    app.include_router(auth_router, prefix="/auth")
    app.include_router(challenge_router)
    app.include_router(team_router)
    app.include_router(application_router)
    app.include_router(upload_router)
    app.include_router(leaderboard_router)

    if os.getenv("BLOB_STORAGE", "local").lower() == "local":
        blob_dir = os.getenv("BLOB_LOCAL_PATH", "storage/blobs")
        os.makedirs(blob_dir, exist_ok=True)
        app.mount("/blobs", StaticFiles(directory=blob_dir), name="blobs")

    @app.on_event("startup")
    async def on_startup():
        if app.state.context is not None:
            return
        app.state.context = await connect_with_retry(database.database_url_from_env(os.environ))

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.context is not None:
            await app.state.context.close()
            app.state.context = None

    # ----- Health check endpoint -----
    @app.get("/health", tags=["meta"])
    async def health():
        return {"ok": True}

    return app


# Avoid logging secrets; log booleans instead
if os.getenv("DATABASE_URL"):
    logging.info("DATABASE_URL loaded.")
if os.getenv("JWT_SECRET"):
    logging.info("JWT_SECRET loaded.")

app = create_app()
