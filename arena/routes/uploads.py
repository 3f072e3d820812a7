from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from arena.auth_token import get_current_user
from arena.deps import get_context
from arena.errors import Forbidden, InvalidRequest
from arena.schemas import UploadResult, User
from arena.services.storage import (
    MAX_IMAGE_BYTES,
    avatar_path,
    banner_path,
    submission_file_path,
    validate_image,
)

router = APIRouter(prefix="/uploads", tags=["Uploads"])


async def _read_image(upload: UploadFile) -> bytes:
    data = await upload.read()
    await upload.close()
    validate_image(upload.content_type, len(data))
    return data


@router.post("/challenges/{challenge_id}/banner", response_model=UploadResult)
async def upload_banner(
    challenge_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    challenge = await context.challenges.require_challenge(challenge_id)
    if challenge.creator_uid != current_user.uid:
        raise Forbidden("Only the challenge creator can change the banner")

    data = await _read_image(file)
    stored = await context.blobs.put(data, banner_path(challenge_id, file.content_type), file.content_type)
    await context.challenges.update_challenge(challenge_id, {"banner_image_url": stored.url})
    return UploadResult(url=stored.url, path=stored.path, size=stored.size)


@router.post("/avatar", response_model=UploadResult)
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    data = await _read_image(file)
    stored = await context.blobs.put(data, avatar_path(current_user.uid, file.content_type), file.content_type)
    platform = current_user.platform.model_copy(update={"profile_image_url": stored.url})
    await context.auth.update_profile(current_user.uid, {"platform": platform.model_dump(mode="json")})
    return UploadResult(url=stored.url, path=stored.path, size=stored.size)


@router.post("/challenges/{challenge_id}/submission-file", response_model=UploadResult)
async def upload_submission_file(
    challenge_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    context=Depends(get_context),
):
    challenge = await context.challenges.require_challenge(challenge_id)
    if not any(p.user_uid == current_user.uid for p in challenge.participants):
        raise Forbidden("Only participants can upload submission files")

    data = await file.read()
    await file.close()
    if not data:
        raise InvalidRequest("Uploaded file is empty")
    if len(data) > MAX_IMAGE_BYTES:
        raise InvalidRequest("Files must be 10MB or smaller")

    path = submission_file_path(challenge_id, current_user.uid, file.filename)
    stored = await context.blobs.put(data, path, file.content_type)
    return UploadResult(url=stored.url, path=stored.path, size=stored.size)
