from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from arena.errors import AlreadyMember, Forbidden, InvalidRequest, NotEligible, NotFound, TeamFull
from arena.schemas import Team, TeamMember
from arena.services.challenges import ChallengeService
from arena.services.store import TEAMS, DocumentStore
from arena.utils import utcnow

logger = logging.getLogger("teams")


def _dump_members(members: list[TeamMember]) -> list[dict[str, Any]]:
    return [m.model_dump(mode="json") for m in members]


class TeamService:
    """Team membership bookkeeping for team events.

    Leadership passes to the first other active member in stored list order
    when the leader leaves; a leader leaving alone deletes the team.
    """

    def __init__(self, store: DocumentStore, challenges: ChallengeService) -> None:
        self.store = store
        self.challenges = challenges

    async def create_team(
        self,
        challenge_id: str,
        leader_uid: str,
        name: str,
        description: Optional[str] = None,
    ) -> Team:
        if not (name or "").strip():
            raise InvalidRequest("Team name is required")

        challenge = await self.challenges.require_challenge(challenge_id)
        if challenge.type != "team-event" or not challenge.max_team_size or challenge.max_team_size <= 1:
            raise NotEligible("This challenge does not use teams")

        now = utcnow()
        leader = TeamMember(user_uid=leader_uid, role="leader", joined_at=now, status="active")
        team_id = await self.store.create(
            TEAMS,
            {
                "challenge_id": challenge_id,
                "name": name.strip(),
                "description": description,
                "leader_uid": leader_uid,
                "members": _dump_members([leader]),
                "max_size": challenge.max_team_size,
                "is_open": True,
            },
        )
        logger.info("Team %s created for challenge %s by %s", team_id, challenge_id, leader_uid)
        return await self.require_team(team_id)

    async def get_team(self, team_id: str) -> Optional[Team]:
        doc = await self.store.get(TEAMS, team_id)
        return Team.model_validate(doc.as_record()) if doc else None

    async def require_team(self, team_id: str) -> Team:
        team = await self.get_team(team_id)
        if team is None:
            raise NotFound("Team not found")
        return team

    async def get_teams_by_challenge(self, challenge_id: str) -> list[Team]:
        page = await self.store.query(TEAMS, filters={"challenge_id": challenge_id})
        return [Team.model_validate(doc.as_record()) for doc in page.items]

    async def get_user_teams(self, user_uid: str) -> list[Team]:
        page = await self.store.query(TEAMS)
        teams = [Team.model_validate(doc.as_record()) for doc in page.items]
        return [t for t in teams if any(m.user_uid == user_uid for m in t.active_members())]

    async def join_team(self, team_id: str, user_uid: str) -> Team:
        team = await self.require_team(team_id)

        if len(team.active_members()) >= team.max_size:
            raise TeamFull("Team is full")
        if any(m.user_uid == user_uid for m in team.active_members()):
            raise AlreadyMember("User is already a member of this team")

        member = TeamMember(user_uid=user_uid, role="member", joined_at=utcnow(), status="active")
        await self.store.update(
            TEAMS,
            team_id,
            {"members": _dump_members([*team.members, member])},
            expected_version=team.version,
        )
        logger.info("User %s joined team %s", user_uid, team_id)
        return await self.require_team(team_id)

    async def leave_team(self, team_id: str, user_uid: str) -> Optional[Team]:
        """Returns the updated team, or None when the team was deleted."""
        team = await self.require_team(team_id)

        member = next((m for m in team.active_members() if m.user_uid == user_uid), None)
        if member is None:
            raise NotFound("User is not a member of this team")

        if member.role != "leader":
            members = [
                m.model_copy(update={"status": "left"})
                if m.user_uid == user_uid and m.status == "active"
                else m
                for m in team.members
            ]
            await self.store.update(
                TEAMS, team_id, {"members": _dump_members(members)}, expected_version=team.version
            )
            logger.info("User %s left team %s", user_uid, team_id)
            return await self.require_team(team_id)

        others = [m for m in team.active_members() if m.user_uid != user_uid]
        if not others:
            await self.store.delete(TEAMS, team_id)
            logger.info("Team %s deleted after its last member %s left", team_id, user_uid)
            return None

        new_leader = others[0]
        members = []
        for m in team.members:
            if m.user_uid == new_leader.user_uid and m.status == "active":
                m = m.model_copy(update={"role": "leader"})
            elif m.user_uid == user_uid and m.status == "active":
                m = m.model_copy(update={"status": "left"})
            members.append(m)

        await self.store.update(
            TEAMS,
            team_id,
            {"leader_uid": new_leader.user_uid, "members": _dump_members(members)},
            expected_version=team.version,
        )
        logger.info(
            "Leader %s left team %s; leadership passed to %s", user_uid, team_id, new_leader.user_uid
        )
        return await self.require_team(team_id)

    async def remove_member(self, team_id: str, leader_uid: str, member_uid: str) -> Team:
        team = await self.require_team(team_id)

        if team.leader_uid != leader_uid:
            raise Forbidden("Only team leader can remove members")
        if member_uid == leader_uid:
            raise Forbidden("Leader cannot remove themselves")
        if not any(m.user_uid == member_uid for m in team.active_members()):
            raise NotFound("User is not a member of this team")

        members = [
            m.model_copy(update={"status": "removed"})
            if m.user_uid == member_uid and m.status == "active"
            else m
            for m in team.members
        ]
        await self.store.update(
            TEAMS, team_id, {"members": _dump_members(members)}, expected_version=team.version
        )
        logger.info("Leader %s removed %s from team %s", leader_uid, member_uid, team_id)
        return await self.require_team(team_id)

    async def update_team(self, team_id: str, updates: Mapping[str, Any]) -> Team:
        await self.store.update(TEAMS, team_id, updates)
        return await self.require_team(team_id)

    async def delete_team(self, team_id: str) -> None:
        await self.store.delete(TEAMS, team_id)


__all__ = ["TeamService"]
