from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from arena.errors import (
    AlreadySubmitted,
    AuthenticationError,
    Forbidden,
    InvalidRequest,
    InvalidTransition,
    NotEligible,
    NotFound,
)
from arena.schemas import (
    Challenge,
    ChallengeCreate,
    ChallengePage,
    Participant,
    SolutionSubmission,
    UserChallenges,
)
from arena.services.store import CHALLENGES, DocumentStore
from arena.utils import utcnow

_LOGGER = logging.getLogger(__name__)

DUEL_MAX_PARTICIPANTS = 2
# team events and bounties have no real cap
OPEN_MAX_PARTICIPANTS = 999

JOINABLE_STATUSES = frozenset({"pending"})
SUBMITTABLE_STATUSES = frozenset({"active", "submission_phase"})

STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"active", "cancelled"}),
    "active": frozenset({"submission_phase", "cancelled"}),
    "submission_phase": frozenset({"judging", "cancelled"}),
    "judging": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}


def _dump_list(items) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


class ChallengeService:
    """Challenge CRUD plus the join/leave/submit rules layered on top of it.

    Every mutation reads the current document, derives the new state and
    writes it back conditioned on the version that was read.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    async def create_challenge(self, creator_uid: Optional[str], payload: ChallengeCreate) -> Challenge:
        if not creator_uid:
            raise AuthenticationError("You must be logged in to create a challenge")

        languages = [lang for lang in payload.languages_allowed if lang.strip()]
        if not languages:
            raise InvalidRequest("Please select at least one programming language")

        problem = payload.problem
        if not problem.statement.strip():
            raise InvalidRequest("Problem statement is required")
        if not problem.requirements:
            raise InvalidRequest("At least one requirement is required")
        if not problem.submission_format.strip():
            raise InvalidRequest("Submission format is required")
        if not problem.judging_criteria:
            raise InvalidRequest("At least one judging criterion is required")

        max_participants = (
            DUEL_MAX_PARTICIPANTS if payload.type == "duel" else OPEN_MAX_PARTICIPANTS
        )
        data = payload.model_dump(mode="json")
        data.update(
            creator_uid=creator_uid,
            languages_allowed=languages,
            status="pending",
            max_participants=max_participants,
            participants=[],
            submissions=[],
        )

        challenge_id = await self.store.create(CHALLENGES, data)
        _LOGGER.info("Challenge %s (%s) created by %s", challenge_id, payload.type, creator_uid)
        return await self.require_challenge(challenge_id)

    async def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        doc = await self.store.get(CHALLENGES, challenge_id)
        return Challenge.model_validate(doc.as_record()) if doc else None

    async def require_challenge(self, challenge_id: str) -> Challenge:
        challenge = await self.get_challenge(challenge_id)
        if challenge is None:
            raise NotFound("Challenge not found")
        return challenge

    async def list_challenges(
        self,
        *,
        type: Optional[str] = None,
        difficulty: Optional[str] = None,
        status: Optional[str] = None,
        creator_uid: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> ChallengePage:
        filters = {
            key: value
            for key, value in {
                "type": type,
                "difficulty": difficulty,
                "status": status,
                "creator_uid": creator_uid,
            }.items()
            if value is not None
        }
        page = await self.store.query(CHALLENGES, filters=filters, limit=limit, cursor=cursor)
        return ChallengePage(
            items=[Challenge.model_validate(doc.as_record()) for doc in page.items],
            next_cursor=page.next_cursor,
        )

    async def update_challenge(self, challenge_id: str, updates: Mapping[str, Any]) -> Challenge:
        """Free-form patch; callers gate who may use it."""
        await self.store.update(CHALLENGES, challenge_id, updates)
        return await self.require_challenge(challenge_id)

    async def delete_challenge(self, challenge_id: str) -> None:
        await self.require_challenge(challenge_id)
        await self.store.delete(CHALLENGES, challenge_id)
        _LOGGER.info("Challenge %s deleted", challenge_id)

    async def get_user_challenges(self, user_uid: str) -> UserChallenges:
        created = await self.store.query(CHALLENGES, filters={"creator_uid": user_uid})
        everything = await self.store.query(CHALLENGES)

        participating = []
        for doc in everything.items:
            challenge = Challenge.model_validate(doc.as_record())
            if challenge.creator_uid == user_uid:
                continue
            if any(p.user_uid == user_uid for p in challenge.participants):
                participating.append(challenge)

        return UserChallenges(
            created=[Challenge.model_validate(doc.as_record()) for doc in created.items],
            participating=participating,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def transition_status(self, challenge_id: str, actor_uid: str, new_status: str) -> Challenge:
        challenge = await self.require_challenge(challenge_id)
        if challenge.creator_uid != actor_uid:
            raise Forbidden("Only the challenge creator can change its status")

        allowed = STATUS_TRANSITIONS.get(challenge.status, frozenset())
        if new_status not in allowed:
            raise InvalidTransition(f"Cannot move a challenge from {challenge.status} to {new_status}")

        patch: dict[str, Any] = {"status": new_status}
        now = utcnow()
        if new_status == "active":
            patch["started_at"] = now
        elif new_status in {"completed", "cancelled"}:
            patch["ended_at"] = now

        await self.store.update(CHALLENGES, challenge_id, patch, expected_version=challenge.version)
        _LOGGER.info("Challenge %s moved %s -> %s", challenge_id, challenge.status, new_status)
        return await self.require_challenge(challenge_id)

    async def join_challenge(
        self, challenge_id: str, user_uid: str, team_id: Optional[str] = None
    ) -> Challenge:
        challenge = await self.require_challenge(challenge_id)

        if challenge.status not in JOINABLE_STATUSES:
            raise NotEligible("Challenge is not open for joining")
        if challenge.creator_uid == user_uid:
            raise NotEligible("Creators cannot join their own challenge")
        if any(p.user_uid == user_uid for p in challenge.participants):
            raise NotEligible("Already participating in this challenge")
        if len(challenge.participants) >= challenge.max_participants:
            raise NotEligible("Challenge is full")

        participant = Participant(user_uid=user_uid, team_id=team_id, joined_at=utcnow(), status="active")
        participants = [*challenge.participants, participant]
        await self.store.update(
            CHALLENGES,
            challenge_id,
            {"participants": _dump_list(participants)},
            expected_version=challenge.version,
        )
        _LOGGER.info("User %s joined challenge %s", user_uid, challenge_id)
        return await self.require_challenge(challenge_id)

    async def leave_challenge(self, challenge_id: str, user_uid: str) -> Challenge:
        challenge = await self.require_challenge(challenge_id)

        record = next((p for p in challenge.participants if p.user_uid == user_uid), None)
        if record is None:
            raise NotFound("User not found in challenge")

        # remove by value: every entry equal to the stored record goes
        remaining = [p for p in challenge.participants if p != record]
        await self.store.update(
            CHALLENGES,
            challenge_id,
            {"participants": _dump_list(remaining)},
            expected_version=challenge.version,
        )
        _LOGGER.info("User %s left challenge %s", user_uid, challenge_id)
        return await self.require_challenge(challenge_id)

    async def submit_solution(
        self,
        challenge_id: str,
        user_uid: str,
        *,
        submission_url: str,
        description: str,
        github_repo: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> Challenge:
        if not (submission_url or "").strip():
            raise InvalidRequest("Submission URL is required")
        if not (description or "").strip():
            raise InvalidRequest("Submission description is required")

        challenge = await self.require_challenge(challenge_id)
        if challenge.status not in SUBMITTABLE_STATUSES:
            raise NotEligible("Challenge is not accepting submissions")
        if not any(p.user_uid == user_uid and p.status == "active" for p in challenge.participants):
            raise NotEligible("Only active participants can submit")
        if any(s.user_uid == user_uid for s in challenge.submissions):
            raise AlreadySubmitted("You already submitted a solution for this challenge")

        submission = SolutionSubmission(
            user_uid=user_uid,
            team_id=team_id,
            submission_url=submission_url.strip(),
            github_repo=github_repo,
            description=description.strip(),
            submitted_at=utcnow(),
        )
        await self.store.update(
            CHALLENGES,
            challenge_id,
            {"submissions": _dump_list([*challenge.submissions, submission])},
            expected_version=challenge.version,
        )
        _LOGGER.info("User %s submitted a solution to challenge %s", user_uid, challenge_id)
        return await self.require_challenge(challenge_id)


__all__ = [
    "ChallengeService",
    "DUEL_MAX_PARTICIPANTS",
    "OPEN_MAX_PARTICIPANTS",
    "STATUS_TRANSITIONS",
]
