# doubt_solver/routers/chat.py
import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from doubt_solver.core.config import settings
from doubt_solver.core.errors import InternalError
from doubt_solver.models.schemas import ErrorResponse, HistoryResponse, SolveRequest, SolveResponse
from doubt_solver.repositories.history_repo import HistoryRepository
from doubt_solver.services.cache import ResponseCache
from doubt_solver.services.completion import CompletionClient
from doubt_solver.services.solver import DoubtSolver

router = APIRouter(prefix="/api/chat", tags=["Chat"])

logger = logging.getLogger("doubts.chat")


@lru_cache(maxsize=1)
def get_history_repo() -> HistoryRepository:
    return HistoryRepository(collection=settings.HISTORY_COLLECTION)


@lru_cache(maxsize=1)
def get_solver() -> DoubtSolver:
    # one solver per process so every request shares the cache table
    return DoubtSolver(
        completion=CompletionClient.from_settings(settings),
        cache=ResponseCache(ttl_seconds=settings.CACHE_TTL_SECONDS),
        history=get_history_repo(),
    )


@router.post(
    "",
    response_model=SolveResponse,
    responses={400: {"model": ErrorResponse}, 408: {"model": ErrorResponse},
               429: {"model": ErrorResponse}, 500: {"model": ErrorResponse},
               502: {"model": ErrorResponse}},
)
async def solve_doubt(payload: SolveRequest, bg: BackgroundTasks, solver: DoubtSolver = Depends(get_solver)):
    return await solver.solve(payload, background=bg)


@router.get("/history/{user_id}", response_model=HistoryResponse)
async def get_history(
    user_id: str,
    limit: int = Query(10, ge=1, le=100),
    subject: Optional[str] = None,
    repo: HistoryRepository = Depends(get_history_repo),
):
    try:
        doubts = await repo.recent(user_id, limit=limit, subject=subject)
    except Exception as e:
        logger.exception("History fetch failed: %s", e)
        raise InternalError("Failed to fetch history")
    return HistoryResponse(doubts=doubts)
