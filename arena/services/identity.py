from __future__ import annotations

import asyncio
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from arena.errors import IdentityError
from arena.schemas import GitHubProfile

_LOGGER = logging.getLogger(__name__)

GITHUB_OAUTH_URL = "https://github.com/login/oauth/access_token"
# GitHub caps a single repo page at 100 entries
REPO_PAGE_SIZE = 100
_MOCK_TOKEN_PREFIX = "mock:"


@dataclass(slots=True)
class ProviderIdentity:
    uid: str
    email: str
    display_name: Optional[str]
    photo_url: Optional[str]


@dataclass(slots=True)
class LoginResult:
    identity: ProviderIdentity
    access_token: str


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def infer_languages(repos: list[dict[str, Any]]) -> list[str]:
    """Distinct non-null repo languages, first-seen order."""
    seen = dict.fromkeys(
        repo["language"] for repo in repos[:REPO_PAGE_SIZE] if repo.get("language")
    )
    return list(seen)


class GitHubIdentityProvider:
    """Exchanges GitHub OAuth codes and reads the external profile snapshot.

    With ``mock`` enabled no network call is made and a deterministic
    identity is derived from ``mock_id``. Without it every code goes to GitHub.
    """

    def __init__(
        self,
        *,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        api_url: Optional[str] = None,
        oauth_url: Optional[str] = None,
        mock: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id if client_id is not None else os.getenv("GITHUB_CLIENT_ID", "")
        self.client_secret = (
            client_secret if client_secret is not None else os.getenv("GITHUB_CLIENT_SECRET", "")
        )
        self.api_url = (api_url or os.getenv("GITHUB_API_URL", "https://api.github.com")).rstrip("/")
        self.oauth_url = oauth_url or GITHUB_OAUTH_URL
        self.mock = _env_flag("GITHUB_OAUTH_MOCK") if mock is None else mock
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def start_login(
        self, code: str, redirect_uri: Optional[str] = None, *, mock_id: Optional[str] = None
    ) -> LoginResult:
        if self.mock:
            return self._mock_login(mock_id)

        if not (self.client_id and self.client_secret):
            raise IdentityError("GitHub OAuth is not configured")

        try:
            async with self._client() as client:
                token_resp = await client.post(
                    self.oauth_url,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "code": code,
                        "redirect_uri": redirect_uri or "",
                    },
                    headers={"Accept": "application/json"},
                )
                if token_resp.status_code != 200:
                    raise IdentityError("Failed to exchange GitHub code")
                access_token = token_resp.json().get("access_token")
                if not access_token:
                    raise IdentityError("Failed to get GitHub access token")

                me_resp = await client.get(
                    f"{self.api_url}/user", headers={"Authorization": f"token {access_token}"}
                )
                if me_resp.status_code != 200:
                    raise IdentityError("Failed to read GitHub identity")
                me = me_resp.json()
        except httpx.HTTPError as exc:
            _LOGGER.error("GitHub login failed", exc_info=True)
            raise IdentityError("GitHub is unreachable") from exc

        uid = str(me.get("id") or "").strip()
        if not uid:
            raise IdentityError("GitHub identity has no id")

        return LoginResult(
            identity=ProviderIdentity(
                uid=f"github:{uid}",
                email=me.get("email") or "",
                display_name=me.get("name") or me.get("login"),
                photo_url=me.get("avatar_url"),
            ),
            access_token=access_token,
        )

    async def fetch_profile(self, access_token: str) -> GitHubProfile:
        if access_token.startswith(_MOCK_TOKEN_PREFIX):
            return self._mock_profile(access_token[len(_MOCK_TOKEN_PREFIX):])

        headers = {"Authorization": f"token {access_token}"}
        try:
            async with self._client() as client:
                user_resp, repos_resp = await asyncio.gather(
                    client.get(f"{self.api_url}/user", headers=headers),
                    client.get(
                        f"{self.api_url}/user/repos",
                        params={"per_page": REPO_PAGE_SIZE},
                        headers=headers,
                    ),
                )
        except httpx.HTTPError as exc:
            _LOGGER.error("Error fetching GitHub data", exc_info=True)
            raise IdentityError("GitHub is unreachable") from exc

        if user_resp.status_code != 200 or repos_resp.status_code != 200:
            raise IdentityError("Failed to fetch GitHub profile")

        user_data = user_resp.json()
        repos = repos_resp.json()
        return GitHubProfile(
            username=user_data.get("login") or "",
            avatar_url=user_data.get("avatar_url"),
            bio=user_data.get("bio"),
            public_repos=user_data.get("public_repos") or 0,
            languages=infer_languages(repos if isinstance(repos, list) else []),
            created_at=user_data.get("created_at"),
            html_url=user_data.get("html_url"),
            followers=user_data.get("followers") or 0,
            following=user_data.get("following") or 0,
        )

    # ------------------------------------------------------------------
    # Mock mode
    # ------------------------------------------------------------------
    def _mock_login(self, mock_id: Optional[str]) -> LoginResult:
        mid = str(mock_id or "test").strip() or "test"
        digest = hashlib.sha256(mid.encode("utf-8")).hexdigest()[:12]
        return LoginResult(
            identity=ProviderIdentity(
                uid=f"mock_{digest}",
                email=f"{mid}@example.com",
                display_name=mid,
                photo_url=None,
            ),
            access_token=f"{_MOCK_TOKEN_PREFIX}{mid}",
        )

    def _mock_profile(self, mid: str) -> GitHubProfile:
        return GitHubProfile(
            username=mid,
            avatar_url=None,
            bio=None,
            public_repos=3,
            languages=["Python", "TypeScript", "Go", "Rust"],
            html_url=f"https://github.com/{mid}",
        )


__all__ = ["GitHubIdentityProvider", "LoginResult", "ProviderIdentity", "infer_languages"]
