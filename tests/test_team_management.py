import asyncio

import pytest

from arena.errors import AlreadyMember, ConflictError, Forbidden, InvalidRequest, NotEligible, NotFound, TeamFull
from arena.services.challenges import ChallengeService
from arena.services.teams import TeamService


@pytest.fixture
def teams(store, challenges):
    return TeamService(store, challenges)


@pytest.fixture
def team_event(challenges, make_payload):
    async def _create(max_team_size=3):
        return await challenges.create_challenge(
            "creator", make_payload(type="team-event", max_team_size=max_team_size)
        )

    return _create


@pytest.mark.anyio
async def test_create_team_makes_the_creator_leader(teams, team_event):
    event = await team_event(max_team_size=3)

    team = await teams.create_team(event.id, "leader", "Rustaceans", "fast code")

    assert team.leader_uid == "leader"
    assert team.max_size == 3
    assert team.is_open is True
    assert [(m.user_uid, m.role, m.status) for m in team.members] == [("leader", "leader", "active")]


@pytest.mark.anyio
async def test_create_team_rejects_non_team_challenges(teams, challenges, make_payload):
    duel = await challenges.create_challenge("creator", make_payload(type="duel"))
    with pytest.raises(NotEligible):
        await teams.create_team(duel.id, "leader", "Solo")


@pytest.mark.anyio
async def test_create_team_rejects_single_seat_teams(teams, team_event):
    event = await team_event(max_team_size=1)
    with pytest.raises(NotEligible):
        await teams.create_team(event.id, "leader", "Solo")


@pytest.mark.anyio
async def test_create_team_requires_a_name(teams, team_event):
    event = await team_event()
    with pytest.raises(InvalidRequest):
        await teams.create_team(event.id, "leader", "   ")


@pytest.mark.anyio
async def test_join_enforces_capacity_and_uniqueness(teams, team_event):
    event = await team_event(max_team_size=2)
    team = await teams.create_team(event.id, "leader", "Pair")

    with pytest.raises(AlreadyMember):
        await teams.join_team(team.id, "leader")

    await teams.join_team(team.id, "m1")
    with pytest.raises(TeamFull):
        await teams.join_team(team.id, "m2")


@pytest.mark.anyio
async def test_leader_leaving_hands_over_to_first_active_member(teams, team_event):
    event = await team_event(max_team_size=4)
    team = await teams.create_team(event.id, "leader", "Crew")
    await teams.join_team(team.id, "m1")
    await teams.join_team(team.id, "m2")

    updated = await teams.leave_team(team.id, "leader")

    assert updated.leader_uid == "m1"
    roles = {m.user_uid: (m.role, m.status) for m in updated.members}
    assert roles["m1"] == ("leader", "active")
    assert roles["m2"] == ("member", "active")
    assert roles["leader"][1] == "left"


@pytest.mark.anyio
async def test_lone_leader_leaving_deletes_the_team(teams, team_event):
    event = await team_event()
    team = await teams.create_team(event.id, "leader", "Alone")

    assert await teams.leave_team(team.id, "leader") is None
    assert await teams.get_team(team.id) is None


@pytest.mark.anyio
async def test_member_leaving_is_marked_left_and_frees_a_seat(teams, team_event):
    event = await team_event(max_team_size=2)
    team = await teams.create_team(event.id, "leader", "Pair")
    await teams.join_team(team.id, "m1")

    updated = await teams.leave_team(team.id, "m1")
    assert [m.user_uid for m in updated.active_members()] == ["leader"]

    await teams.join_team(team.id, "m2")

    with pytest.raises(NotFound):
        await teams.leave_team(team.id, "m1")


@pytest.mark.anyio
async def test_only_the_leader_can_remove_members(teams, team_event):
    event = await team_event()
    team = await teams.create_team(event.id, "leader", "Crew")
    await teams.join_team(team.id, "m1")
    await teams.join_team(team.id, "m2")

    with pytest.raises(Forbidden):
        await teams.remove_member(team.id, "m1", "m2")
    with pytest.raises(NotFound):
        await teams.remove_member(team.id, "leader", "stranger")

    updated = await teams.remove_member(team.id, "leader", "m2")
    statuses = {m.user_uid: m.status for m in updated.members}
    assert statuses == {"leader": "active", "m1": "active", "m2": "removed"}


@pytest.mark.anyio
async def test_listing_teams_by_challenge_and_member(teams, team_event):
    event = await team_event()
    first = await teams.create_team(event.id, "a", "First")
    second = await teams.create_team(event.id, "b", "Second")
    await teams.join_team(first.id, "c")

    by_challenge = await teams.get_teams_by_challenge(event.id)
    assert {t.id for t in by_challenge} == {first.id, second.id}

    mine = await teams.get_user_teams("c")
    assert [t.id for t in mine] == [first.id]


@pytest.mark.anyio
async def test_leaving_after_removal_keeps_the_removed_record(teams, team_event):
    event = await team_event(max_team_size=3)
    team = await teams.create_team(event.id, "leader", "Crew")
    await teams.join_team(team.id, "m1")
    await teams.remove_member(team.id, "leader", "m1")
    await teams.join_team(team.id, "m1")

    updated = await teams.leave_team(team.id, "m1")

    history = [m.status for m in updated.members if m.user_uid == "m1"]
    assert history == ["removed", "left"]


@pytest.mark.anyio
async def test_concurrent_leaves_conflict_on_version(teams, team_event, gated_store):
    event = await team_event(max_team_size=3)
    team = await teams.create_team(event.id, "leader", "Crew")
    await teams.join_team(team.id, "m1")
    await teams.join_team(team.id, "m2")

    store = gated_store(2)
    racing = TeamService(store, ChallengeService(store))
    results = await asyncio.gather(
        racing.leave_team(team.id, "m1"),
        racing.leave_team(team.id, "m2"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, ConflictError) for r in results) == 1
    stored = await teams.require_team(team.id)
    assert len(stored.active_members()) == 2
    assert [m.status for m in stored.members].count("left") == 1
