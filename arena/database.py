# arena/database.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

load_dotenv()


def _default_db_url() -> str:
    """File-based SQLite next to the package when no DATABASE_URL is set."""
    root = Path(__file__).resolve().parents[1]
    return f"sqlite+aiosqlite:///{(root / 'arena.db').as_posix()}"


def _translate_sslmode(value: str) -> Optional[str]:
    """Translate libpq sslmode values to asyncpg-compatible flags."""

    normalized = value.strip().lower()
    if normalized in {"require", "verify-ca", "verify-full"}:
        return "true"
    if normalized == "disable":
        return "false"

    # "prefer" and "allow" have no asyncpg equivalent; leave driver defaults.
    return None


def normalize_database_url(raw_url: Optional[str]) -> Optional[str]:
    """Force async drivers for Postgres and SQLite URLs."""

    if not raw_url:
        return raw_url

    try:
        url = make_url(raw_url)
    except Exception:
        return raw_url

    driver = url.drivername.lower()
    if driver in {"postgresql", "postgres"} or (
        driver.startswith("postgresql+") and driver != "postgresql+asyncpg"
    ):
        url = url.set(drivername="postgresql+asyncpg")
    elif driver == "sqlite":
        url = url.set(drivername="sqlite+aiosqlite")

    if url.drivername == "postgresql+asyncpg":
        query = dict(url.query)
        sslmode = query.pop("sslmode", None)
        if sslmode is not None:
            translated = _translate_sslmode(sslmode)
            if translated is not None:
                query["ssl"] = translated
        if query != dict(url.query):
            url = url.set(query=query)

    return url.render_as_string(hide_password=False)


def database_url_from_env(env: Mapping[str, str]) -> str:
    """Pick the first configured database URL, falling back to local SQLite."""

    for key in ("DATABASE_URL", "POSTGRES_URL"):
        normalized = normalize_database_url(env.get(key))
        if normalized:
            return normalized
    return DEFAULT_SQLITE_URL


DEFAULT_SQLITE_URL: str = _default_db_url()

# Optional echo flag for local debugging
ECHO = os.getenv("SQLALCHEMY_ECHO", "0").lower() in {"1", "true", "yes"}

Base = declarative_base()


def create_engine_for(database_url: str) -> AsyncEngine:
    return create_async_engine(
        database_url,
        echo=ECHO,
        pool_pre_ping=True,
    )


def create_session_factory(bind_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


async def init_models(bind_engine: AsyncEngine) -> None:
    """Import the mapped models so they register with Base, then create tables."""

    import arena.models  # noqa: F401

    async with bind_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
