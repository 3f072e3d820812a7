from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from arena.auth_token import create_access_token, decode_access_token
from arena.errors import NotFound
from arena.schemas import GitHubProfile, LeaderboardEntry, PlatformStats, User, UserPreferences
from arena.services.identity import GitHubIdentityProvider, ProviderIdentity
from arena.services.store import USERS, DocumentStore
from arena.utils import utcnow

_LOGGER = logging.getLogger(__name__)

STARTING_RATING = 1200


class AuthService:
    """Turns a provider login into an application session and a user document.

    Users are created on first login and merged on every later one; the
    newest login wins field by field.
    """

    def __init__(self, store: DocumentStore, provider: GitHubIdentityProvider) -> None:
        self.store = store
        self.provider = provider
        # jti -> token expiry (unix seconds); expired entries are pruned
        self._revoked: dict[str, float] = {}

    async def sign_in(
        self,
        code: str,
        redirect_uri: Optional[str] = None,
        *,
        mock_id: Optional[str] = None,
    ) -> tuple[User, str]:
        result = await self.provider.start_login(code, redirect_uri, mock_id=mock_id)
        profile = await self.provider.fetch_profile(result.access_token)
        user = await self.create_or_update_user(result.identity, profile)
        token = create_access_token({"uid": user.uid})
        _LOGGER.info("User %s signed in", user.uid)
        return user, token

    async def create_or_update_user(self, identity: ProviderIdentity, profile: GitHubProfile) -> User:
        existing = await self.get_user(identity.uid)
        now = utcnow()

        if existing is not None:
            github = {
                **existing.github.model_dump(mode="json"),
                **profile.model_dump(mode="json", exclude_unset=True),
            }
            platform = existing.platform.model_copy(update={"last_active": now})
            await self.store.update(
                USERS,
                identity.uid,
                {
                    "email": identity.email or existing.email,
                    "display_name": identity.display_name or existing.display_name,
                    "photo_url": identity.photo_url or existing.photo_url,
                    "github": github,
                    "platform": platform.model_dump(mode="json"),
                },
            )
        else:
            platform = PlatformStats(
                rating=STARTING_RATING,
                joined_at=now,
                last_active=now,
                preferences=UserPreferences(preferred_languages=profile.languages[:3]),
            )
            await self.store.set(
                USERS,
                identity.uid,
                {
                    "uid": identity.uid,
                    "email": identity.email or "",
                    "display_name": identity.display_name,
                    "photo_url": identity.photo_url,
                    "github": profile.model_dump(mode="json"),
                    "platform": platform.model_dump(mode="json"),
                },
            )
            _LOGGER.info("Created user %s (%s)", identity.uid, profile.username)

        user = await self.get_user(identity.uid)
        if user is None:
            raise NotFound("User not found")
        return user

    async def get_user(self, uid: str) -> Optional[User]:
        doc = await self.store.get(USERS, uid)
        return User.model_validate(doc.as_record()) if doc else None

    async def update_profile(
        self, uid: str, updates: Mapping[str, Any], *, expected_version: Optional[int] = None
    ) -> User:
        await self.store.update(USERS, uid, updates, expected_version=expected_version)
        user = await self.get_user(uid)
        if user is None:
            raise NotFound("User not found")
        return user

    def _prune_revoked(self) -> None:
        now = utcnow().timestamp()
        for jti in [jti for jti, exp in self._revoked.items() if exp <= now]:
            del self._revoked[jti]

    def end_session(self, token: str) -> None:
        payload = decode_access_token(token)
        self._prune_revoked()
        self._revoked[payload["jti"]] = float(payload["exp"])
        _LOGGER.info("Session ended for %s", payload["uid"])

    def is_revoked(self, jti: str) -> bool:
        self._prune_revoked()
        return jti in self._revoked

    async def leaderboard(self, limit: int = 100) -> list[LeaderboardEntry]:
        page = await self.store.query(USERS, order_by="platform.rating", limit=limit)
        entries = []
        for rank, doc in enumerate(page.items, start=1):
            user = User.model_validate(doc.as_record())
            entries.append(
                LeaderboardEntry(
                    rank=rank,
                    user_uid=user.uid,
                    username=user.github.username,
                    avatar_url=user.platform.profile_image_url or user.github.avatar_url,
                    rating=user.platform.rating,
                    challenges_won=user.platform.challenges_won,
                    challenges_participated=user.platform.challenges_participated,
                )
            )
        return entries


__all__ = ["AuthService", "STARTING_RATING"]
