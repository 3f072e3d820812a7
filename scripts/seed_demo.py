import asyncio
import os

import arena.database as database
from arena.context import build_context
from arena.schemas import ChallengeCreate
from arena.services.identity import GitHubIdentityProvider

DEMO_CHALLENGES = [
    {
        "type": "duel",
        "title": "FizzBuzz speedrun",
        "description": "Two players, one classic. Fastest correct solution wins.",
        "difficulty": "easy",
        "duration_hours": 2,
        "languages_allowed": ["Python", "Go", "Rust"],
        "problem": {
            "statement": "Print FizzBuzz for 1..n.",
            "requirements": ["Read n from stdin"],
            "submission_format": "Link to a gist or repository",
            "judging_criteria": ["Correctness", "Runtime"],
        },
    },
    {
        "type": "team-event",
        "title": "Weekend URL shortener",
        "description": "Build a URL shortener with your team over the weekend.",
        "difficulty": "medium",
        "duration_hours": 48,
        "languages_allowed": ["Python", "TypeScript"],
        "max_team_size": 4,
        "problem": {
            "statement": "Ship a URL shortener with an HTTP API.",
            "requirements": ["Persistent storage", "Custom aliases"],
            "submission_format": "Public repository with a README",
            "judging_criteria": ["Features", "Code quality"],
        },
    },
]


async def main() -> None:
    """Create the tables and seed a demo user with a couple of challenges."""

    # Engine follows the current env (DATABASE_URL normalised inside database.py)
    engine = database.create_engine_for(database.database_url_from_env(os.environ))
    await database.init_models(engine)
    context = build_context(engine, identity_provider=GitHubIdentityProvider(mock=True))
    try:
        user, _ = await context.auth.sign_in("mock", mock_id="demo")
        for payload in DEMO_CHALLENGES:
            await context.challenges.create_challenge(user.uid, ChallengeCreate.model_validate(payload))
    finally:
        await context.close()
    print(f"Seeded {len(DEMO_CHALLENGES)} demo challenges for {user.uid}.")


if __name__ == "__main__":
    asyncio.run(main())
