# arena/routes/leaderboard.py
from typing import List

from fastapi import APIRouter, Depends, Query

from arena.deps import get_context
from arena.schemas import LeaderboardEntry

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])


@router.get("/", response_model=List[LeaderboardEntry])
async def leaderboard(
    limit: int = Query(default=100, ge=1, le=500),
    context=Depends(get_context),
):
    return await context.auth.leaderboard(limit)
