from typing import List, Optional

from fastapi import APIRouter, Depends, status

from arena.auth_token import get_current_user
from arena.deps import get_context
from arena.errors import Forbidden
from arena.schemas import Application, ApplicationCreate, User

router = APIRouter(tags=["Applications"])


@router.post(
    "/challenges/{challenge_id}/applications",
    response_model=Application,
    status_code=status.HTTP_201_CREATED,
)
async def apply(
    challenge_id: str,
    payload: ApplicationCreate,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    if context.submission_limiter is not None:
        await context.submission_limiter.check(current_user.uid)
    return await context.applications.submit_application(challenge_id, current_user.uid, payload.message)


@router.get("/challenges/{challenge_id}/applications", response_model=List[Application])
async def list_applications(
    challenge_id: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    challenge = await context.challenges.require_challenge(challenge_id)
    if challenge.creator_uid != current_user.uid:
        raise Forbidden("Only the challenge creator can review applications")
    return await context.applications.get_applications_by_challenge(challenge_id)


@router.get("/challenges/{challenge_id}/applications/mine", response_model=Optional[Application])
async def my_application(
    challenge_id: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.applications.get_user_application(challenge_id, current_user.uid)


@router.get("/applications/mine", response_model=List[Application])
async def my_applications(
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.applications.get_user_applications(current_user.uid)


@router.post("/applications/{application_id}/approve", response_model=Application)
async def approve_application(
    application_id: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.applications.approve(application_id, current_user.uid)


@router.post("/applications/{application_id}/reject", response_model=Application)
async def reject_application(
    application_id: str,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    return await context.applications.reject(application_id, current_user.uid)
