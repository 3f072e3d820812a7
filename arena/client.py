"""Async client for the arena API that keeps the session and challenge caches current."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from arena.errors import ArenaError
from arena.schemas import Challenge, ChallengePage, User
from arena.state import ChallengeCache, SessionStore

_LOGGER = logging.getLogger(__name__)


class ApiError(ArenaError):
    """The arena API answered with an error."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class ArenaClient:
    """Signs in, calls the API and mirrors the results into local caches.

    Use as ``async with ArenaClient(base_url) as client: ...``; the caches
    belong to the client and die with it.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self.token: Optional[str] = None
        self.session = SessionStore()
        self.cache = ChallengeCache()

    async def __aenter__(self) -> "ArenaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = await self._http.request(method, url, headers=headers, **kwargs)
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise ApiError(response.status_code, str(detail))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    async def sign_in(self, code: str, *, mock_id: Optional[str] = None) -> User:
        self.session.set_loading(True)
        params = {"code": code}
        if mock_id is not None:
            params["mock_id"] = mock_id
        try:
            body = await self._request("GET", "/auth/github/callback", params=params)
        except ApiError:
            self.session.set_loading(False)
            raise
        self.token = body["access_token"]
        user = User.model_validate(body["user"])
        self.session.set_user(user)
        return user

    def subscribe_auth_state(self, callback):
        return self.session.subscribe(callback)

    async def sign_out(self) -> None:
        if self.token:
            await self._request("POST", "/auth/logout")
        self.token = None
        self.session.clear_user()
        self.cache.clear()

    # ------------------------------------------------------------------
    # Challenges
    # ------------------------------------------------------------------
    async def list_challenges(self, *, cursor: Optional[str] = None, **filters: Any) -> ChallengePage:
        params = {k: v for k, v in filters.items() if v is not None}
        if cursor:
            params["cursor"] = cursor
        return ChallengePage.model_validate(await self._request("GET", "/challenges/", params=params))

    async def fetch_challenges(self, filters: Optional[dict[str, Any]] = None, reset: bool = False) -> list[Challenge]:
        await self.cache.fetch(self, filters, reset=reset)
        return self.cache.challenges

    async def load_more(self) -> list[Challenge]:
        await self.cache.load_more(self)
        return self.cache.challenges

    async def refresh(self) -> list[Challenge]:
        await self.cache.refresh(self)
        return self.cache.challenges

    async def get_challenge(self, challenge_id: str) -> Challenge:
        challenge = Challenge.model_validate(await self._request("GET", f"/challenges/{challenge_id}"))
        self.cache.set_current(challenge)
        return challenge

    async def create_challenge(self, payload: dict[str, Any]) -> Challenge:
        challenge = Challenge.model_validate(await self._request("POST", "/challenges/", json=payload))
        self.cache.add(challenge)
        return challenge

    async def join_challenge(self, challenge_id: str, team_id: Optional[str] = None) -> Challenge:
        await self._request("POST", f"/challenges/{challenge_id}/join", json={"team_id": team_id})
        return await self._reload(challenge_id)

    async def leave_challenge(self, challenge_id: str) -> Challenge:
        await self._request("POST", f"/challenges/{challenge_id}/leave")
        return await self._reload(challenge_id)

    async def submit_solution(self, challenge_id: str, payload: dict[str, Any]) -> Challenge:
        await self._request("POST", f"/challenges/{challenge_id}/submissions", json=payload)
        return await self._reload(challenge_id)

    async def _reload(self, challenge_id: str) -> Challenge:
        challenge = Challenge.model_validate(await self._request("GET", f"/challenges/{challenge_id}"))
        self.cache.replace(challenge)
        _LOGGER.debug("Refreshed cached challenge %s (version %s)", challenge_id, challenge.version)
        return challenge


__all__ = ["ApiError", "ArenaClient"]
