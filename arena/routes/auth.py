# arena/routes/auth.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from arena.auth_token import get_current_user, oauth2_scheme
from arena.deps import get_context
from arena.schemas import LoginResponse, User, UserProfileUpdate

logger = logging.getLogger("auth")

router = APIRouter(tags=["Auth"])


@router.get("/github/callback", response_model=LoginResponse)
async def github_callback(
    code: str,
    mock_id: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    context=Depends(get_context),
):
    user, token = await context.auth.sign_in(code, redirect_uri, mock_id=mock_id)
    return LoginResponse(access_token=token, user=user)


@router.get("/me", response_model=User)
async def read_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=User)
async def update_me(
    payload: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    updates = payload.model_dump(exclude_unset=True, exclude={"preferences"})
    if payload.preferences is not None:
        platform = current_user.platform.model_copy(update={"preferences": payload.preferences})
        updates["platform"] = platform.model_dump(mode="json")
    if not updates:
        return current_user
    return await context.auth.update_profile(
        current_user.uid, updates, expected_version=current_user.version
    )


@router.post("/logout")
async def logout(
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    context.auth.end_session(token)
    return {"ok": True}
