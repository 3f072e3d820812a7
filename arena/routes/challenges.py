from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from arena.auth_token import get_current_user
from arena.deps import get_context
from arena.errors import Forbidden
from arena.schemas import (
    Challenge,
    ChallengeCreate,
    ChallengeJoin,
    ChallengePage,
    ChallengeStatusChange,
    ChallengeUpdate,
    SolutionCreate,
    User,
    UserChallenges,
)

router = APIRouter(prefix="/challenges", tags=["Challenges"])


async def _require_creator(context, challenge_id: str, user: User) -> Challenge:
    challenge = await context.challenges.require_challenge(challenge_id)
    if challenge.creator_uid != user.uid:
        raise Forbidden("Only the challenge creator can do this")
    return challenge


@router.post("/", response_model=Challenge, status_code=status.HTTP_201_CREATED)
async def create_challenge(
    payload: ChallengeCreate,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.challenges.create_challenge(current_user.uid, payload)


@router.get("/", response_model=ChallengePage)
async def list_challenges(
    type: Optional[str] = None,
    difficulty: Optional[str] = None,
    status: Optional[str] = None,
    creator_uid: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    cursor: Optional[str] = None,
    context=Depends(get_context),
):
    return await context.challenges.list_challenges(
        type=type,
        difficulty=difficulty,
        status=status,
        creator_uid=creator_uid,
        limit=limit,
        cursor=cursor,
    )


@router.get("/mine", response_model=UserChallenges)
async def my_challenges(
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.challenges.get_user_challenges(current_user.uid)


@router.get("/{challenge_id}", response_model=Challenge)
async def get_challenge(challenge_id: str, context=Depends(get_context)):
    return await context.challenges.require_challenge(challenge_id)


@router.patch("/{challenge_id}", response_model=Challenge)
async def update_challenge(
    challenge_id: str,
    payload: ChallengeUpdate,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    await _require_creator(context, challenge_id, current_user)
    updates = payload.model_dump(exclude_unset=True)
    # status only moves along the lifecycle graph
    new_status = updates.pop("status", None)
    if new_status is not None:
        challenge = await context.challenges.transition_status(challenge_id, current_user.uid, new_status)
        if not updates:
            return challenge
    return await context.challenges.update_challenge(challenge_id, updates)


@router.delete("/{challenge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_challenge(
    challenge_id: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    await _require_creator(context, challenge_id, current_user)
    await context.challenges.delete_challenge(challenge_id)


@router.post("/{challenge_id}/join", response_model=Challenge)
async def join_challenge(
    challenge_id: str,
    payload: Optional[ChallengeJoin] = None,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    team_id = payload.team_id if payload else None
    return await context.challenges.join_challenge(challenge_id, current_user.uid, team_id)


@router.post("/{challenge_id}/leave", response_model=Challenge)
async def leave_challenge(
    challenge_id: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.challenges.leave_challenge(challenge_id, current_user.uid)


@router.post("/{challenge_id}/submissions", response_model=Challenge)
async def submit_solution(
    challenge_id: str,
    payload: SolutionCreate,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    if context.submission_limiter is not None:
        await context.submission_limiter.check(current_user.uid)
    return await context.challenges.submit_solution(
        challenge_id,
        current_user.uid,
        submission_url=payload.submission_url,
        description=payload.description,
        github_repo=payload.github_repo,
        team_id=payload.team_id,
    )


@router.post("/{challenge_id}/status", response_model=Challenge)
async def change_status(
    challenge_id: str,
    payload: ChallengeStatusChange,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.challenges.transition_status(challenge_id, current_user.uid, payload.status)
