import pytest

from arena.auth_token import decode_access_token
from arena.errors import AuthenticationError, NotFound
from arena.schemas import GitHubProfile
from arena.services.identity import GitHubIdentityProvider, ProviderIdentity
from arena.services.store import USERS
from arena.services.users import STARTING_RATING, AuthService


@pytest.fixture
def auth(store):
    return AuthService(store, GitHubIdentityProvider(mock=True))


@pytest.mark.anyio
async def test_first_sign_in_creates_user_with_defaults(auth):
    user, token = await auth.sign_in("mock", mock_id="ada")

    assert user.email == "ada@example.com"
    assert user.platform.rating == STARTING_RATING
    assert user.platform.challenges_created == 0
    assert user.platform.preferences.preferred_languages == ["Python", "TypeScript", "Go"]
    assert user.github.username == "ada"
    assert decode_access_token(token)["uid"] == user.uid


@pytest.mark.anyio
async def test_later_sign_in_merges_without_clobbering(auth, store):
    user, _ = await auth.sign_in("mock", mock_id="ada")
    await store.update(USERS, user.uid, {"platform": {**user.platform.model_dump(mode="json"), "rating": 1500}})

    identity = ProviderIdentity(uid=user.uid, email="", display_name=None, photo_url="https://img/new.png")
    profile = GitHubProfile(username="ada", bio="hello")
    merged = await auth.create_or_update_user(identity, profile)

    assert merged.email == "ada@example.com"
    assert merged.display_name == "ada"
    assert merged.photo_url == "https://img/new.png"
    assert merged.github.bio == "hello"
    assert merged.github.languages == user.github.languages
    assert merged.platform.rating == 1500
    assert merged.platform.last_active >= user.platform.last_active


@pytest.mark.anyio
async def test_update_profile_and_missing_user(auth):
    user, _ = await auth.sign_in("mock", mock_id="grace")

    updated = await auth.update_profile(user.uid, {"display_name": "Grace H."})
    assert updated.display_name == "Grace H."
    assert await auth.get_user("nobody") is None


@pytest.mark.anyio
async def test_end_session_revokes_the_token(auth):
    _, token = await auth.sign_in("mock", mock_id="ada")
    jti = decode_access_token(token)["jti"]

    assert not auth.is_revoked(jti)
    auth.end_session(token)
    assert auth.is_revoked(jti)


@pytest.mark.anyio
async def test_expired_revocations_are_pruned(auth):
    _, token = await auth.sign_in("mock", mock_id="ada")
    auth._revoked["stale"] = 0.0

    auth.end_session(token)

    assert "stale" not in auth._revoked
    assert auth.is_revoked(decode_access_token(token)["jti"])


@pytest.mark.anyio
async def test_update_profile_raises_when_the_user_vanishes(auth, monkeypatch):
    user, _ = await auth.sign_in("mock", mock_id="grace")

    async def _vanished(uid):
        return None

    monkeypatch.setattr(auth, "get_user", _vanished)
    with pytest.raises(NotFound, match="User not found"):
        await auth.update_profile(user.uid, {"display_name": "Gone"})

    with pytest.raises(NotFound):
        await auth.update_profile("nobody", {"display_name": "x"})


def test_tampered_token_is_rejected():
    with pytest.raises(AuthenticationError):
        decode_access_token("not.a.jwt")


@pytest.mark.anyio
async def test_leaderboard_ranks_by_rating(auth, store):
    for name, rating in (("low", 1000), ("high", 1800), ("mid", 1300)):
        user, _ = await auth.sign_in("mock", mock_id=name)
        platform = {**user.platform.model_dump(mode="json"), "rating": rating}
        await store.update(USERS, user.uid, {"platform": platform})

    board = await auth.leaderboard(limit=2)

    assert [(e.rank, e.username, e.rating) for e in board] == [(1, "high", 1800), (2, "mid", 1300)]
