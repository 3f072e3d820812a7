import asyncio

import pytest

from arena.context import build_context
from arena.database import create_engine_for, create_session_factory, init_models
from arena.schemas import ChallengeCreate
from arena.services.challenges import ChallengeService
from arena.services.identity import GitHubIdentityProvider
from arena.services.storage import LocalBlobStorage
from arena.services.store import DocumentStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{(tmp_path / 'arena.db').as_posix()}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return DocumentStore(create_session_factory(engine))


@pytest.fixture
def challenges(store):
    return ChallengeService(store)


@pytest.fixture
def context(engine, tmp_path):
    return build_context(
        engine,
        identity_provider=GitHubIdentityProvider(mock=True),
        blobs=LocalBlobStorage(base_path=str(tmp_path / "blobs"), public_base_url="/blobs"),
    )


def _challenge_payload(**overrides) -> ChallengeCreate:
    data = {
        "type": "duel",
        "title": "Fastest JSON parser",
        "description": "Write a streaming JSON parser.",
        "difficulty": "medium",
        "duration_hours": 24,
        "languages_allowed": ["Python"],
        "problem": {
            "statement": "Parse the input document.",
            "requirements": ["Handle nested arrays"],
            "submission_format": "A public repository link",
            "judging_criteria": ["Correctness", "Speed"],
        },
    }
    data.update(overrides)
    return ChallengeCreate.model_validate(data)


@pytest.fixture
def make_payload():
    return _challenge_payload


class GatedStore(DocumentStore):
    """Holds every update until ``writers`` callers are waiting to write.

    Lets concurrent read-modify-write calls all read the same version first.
    """

    def __init__(self, session_factory, writers: int) -> None:
        super().__init__(session_factory)
        self._writers = writers
        self._waiting = 0
        self._ready = asyncio.Event()

    async def update(self, *args, **kwargs):
        self._waiting += 1
        if self._waiting >= self._writers:
            self._ready.set()
        await self._ready.wait()
        return await super().update(*args, **kwargs)


@pytest.fixture
def gated_store(engine):
    def _build(writers: int) -> GatedStore:
        return GatedStore(create_session_factory(engine), writers)

    return _build
