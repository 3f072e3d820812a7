# arena/routes/teams.py

import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status

from arena.auth_token import get_current_user
from arena.deps import get_context
from arena.errors import Forbidden
from arena.schemas import Team, TeamCreate, TeamUpdate, User

logger = logging.getLogger("teams")

router = APIRouter(tags=["Teams"])


# Create team --------------------------------------------------------

@router.post("/challenges/{challenge_id}/teams", response_model=Team, status_code=status.HTTP_201_CREATED)
async def create_team(
    challenge_id: str,
    payload: TeamCreate,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.teams.create_team(
        challenge_id, current_user.uid, payload.name, payload.description
    )


# Read ---------------------------------------------------------------

@router.get("/challenges/{challenge_id}/teams", response_model=List[Team])
async def list_challenge_teams(challenge_id: str, context=Depends(get_context)):
    return await context.teams.get_teams_by_challenge(challenge_id)


@router.get("/teams/mine", response_model=List[Team])
async def my_teams(
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.teams.get_user_teams(current_user.uid)


@router.get("/teams/{team_id}", response_model=Team)
async def get_team(team_id: str, context=Depends(get_context)):
    return await context.teams.require_team(team_id)


@router.patch("/teams/{team_id}", response_model=Team)
async def update_team(
    team_id: str,
    payload: TeamUpdate,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    team = await context.teams.require_team(team_id)
    if team.leader_uid != current_user.uid:
        raise Forbidden("Only the team leader can edit the team")
    return await context.teams.update_team(team_id, payload.model_dump(exclude_unset=True))


# Membership ---------------------------------------------------------

@router.post("/teams/{team_id}/join", response_model=Team)
async def join_team(
    team_id: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.teams.join_team(team_id, current_user.uid)


@router.post("/teams/{team_id}/leave")
async def leave_team(
    team_id: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    team = await context.teams.leave_team(team_id, current_user.uid)
    if team is None:
        logger.info("Team %s disbanded after its last member left", team_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return team


@router.delete("/teams/{team_id}/members/{member_uid}", response_model=Team)
async def remove_member(
    team_id: str,
    member_uid: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.teams.remove_member(team_id, current_user.uid, member_uid)
