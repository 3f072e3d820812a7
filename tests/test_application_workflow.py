import pytest

from arena.errors import Forbidden, InvalidTransition, NotFound
from arena.services.applications import ApplicationService


@pytest.fixture
def applications(store, challenges):
    return ApplicationService(store, challenges)


@pytest.fixture
async def private_challenge(challenges, make_payload):
    return await challenges.create_challenge("creator", make_payload(type="bounty", privacy="private"))


@pytest.mark.anyio
async def test_submit_and_approve(applications, challenges, private_challenge):
    application = await applications.submit_application(private_challenge.id, "alice", "let me in")

    assert application.status == "pending"
    assert application.message == "let me in"

    approved = await applications.approve(application.id, "creator")
    assert approved.status == "approved"

    # approval does not admit the applicant by itself
    challenge = await challenges.require_challenge(private_challenge.id)
    assert challenge.participants == []


@pytest.mark.anyio
async def test_only_the_creator_decides(applications, private_challenge):
    application = await applications.submit_application(private_challenge.id, "alice")

    with pytest.raises(Forbidden):
        await applications.reject(application.id, "alice")

    rejected = await applications.reject(application.id, "creator")
    assert rejected.status == "rejected"


@pytest.mark.anyio
async def test_decisions_are_final(applications, private_challenge):
    application = await applications.submit_application(private_challenge.id, "alice")
    await applications.approve(application.id, "creator")

    with pytest.raises(InvalidTransition):
        await applications.reject(application.id, "creator")


@pytest.mark.anyio
async def test_status_must_be_a_decision(applications, private_challenge):
    application = await applications.submit_application(private_challenge.id, "alice")
    with pytest.raises(InvalidTransition):
        await applications.update_application_status(application.id, "creator", "pending")


@pytest.mark.anyio
async def test_applying_to_a_missing_challenge(applications):
    with pytest.raises(NotFound):
        await applications.submit_application("missing", "alice")


@pytest.mark.anyio
async def test_lookups(applications, private_challenge):
    first = await applications.submit_application(private_challenge.id, "alice", "first")
    await applications.submit_application(private_challenge.id, "alice", "again")
    await applications.submit_application(private_challenge.id, "bob")

    by_challenge = await applications.get_applications_by_challenge(private_challenge.id)
    assert len(by_challenge) == 3

    mine = await applications.get_user_application(private_challenge.id, "alice")
    assert mine.id == first.id

    assert await applications.get_user_application(private_challenge.id, "carol") is None
    assert len(await applications.get_user_applications("alice")) == 2
