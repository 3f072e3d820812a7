from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from arena.database import create_session_factory
from arena.rate_limiter import RateLimiter, build_submission_rate_limiter
from arena.services.applications import ApplicationService
from arena.services.challenges import ChallengeService
from arena.services.identity import GitHubIdentityProvider
from arena.services.storage import BlobStorage, build_blob_storage
from arena.services.store import DocumentStore
from arena.services.teams import TeamService
from arena.services.users import AuthService


@dataclass
class ArenaContext:
    """Everything a request handler needs, built once per application."""

    engine: AsyncEngine
    store: DocumentStore
    challenges: ChallengeService
    teams: TeamService
    applications: ApplicationService
    auth: AuthService
    blobs: BlobStorage
    submission_limiter: Optional[RateLimiter] = None

    async def close(self) -> None:
        await self.engine.dispose()


def build_context(
    engine: AsyncEngine,
    *,
    identity_provider: Optional[GitHubIdentityProvider] = None,
    blobs: Optional[BlobStorage] = None,
    limiter: Optional[RateLimiter] = None,
) -> ArenaContext:
    store = DocumentStore(create_session_factory(engine))
    challenges = ChallengeService(store)
    return ArenaContext(
        engine=engine,
        store=store,
        challenges=challenges,
        teams=TeamService(store, challenges),
        applications=ApplicationService(store, challenges),
        auth=AuthService(store, identity_provider or GitHubIdentityProvider()),
        blobs=blobs or build_blob_storage(),
        submission_limiter=limiter if limiter is not None else build_submission_rate_limiter(),
    )


__all__ = ["ArenaContext", "build_context"]
