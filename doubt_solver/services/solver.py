"""
Request orchestration for one doubt submission.

Lifecycle:

    Received -> Validated -> CacheChecked -> CacheHit -> Responded
                                          -> CacheMiss -> PromptBuilt -> Completing
                                             -> Parsed -> Cached -> PersistAttempted -> Responded
    any failure -> Rejected (tagged with the error kind)

The history write is scheduled, not awaited: it runs as a FastAPI background
task after the response when the caller hands us ``BackgroundTasks``, and as a
tracked asyncio task otherwise. Its failures only reach the log.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Protocol, Set

from fastapi import BackgroundTasks

from doubt_solver.core.errors import SolveError, InternalError
from doubt_solver.models.schemas import (
    HistoryRecord,
    SolveMetadata,
    SolveRequest,
    SolveResponse,
    Subject,
)
from doubt_solver.services.cache import ResponseCache, cache_key
from doubt_solver.services.completion import RawCompletion
from doubt_solver.services.prompts import build_prompt
from doubt_solver.services.step_parser import parse
from doubt_solver.services.validator import normalize_subject, validate

logger = logging.getLogger("doubts.solver")


class RequestState(str, Enum):
    RECEIVED = "Received"
    VALIDATED = "Validated"
    CACHE_CHECKED = "CacheChecked"
    CACHE_HIT = "CacheHit"
    CACHE_MISS = "CacheMiss"
    PROMPT_BUILT = "PromptBuilt"
    COMPLETING = "Completing"
    PARSED = "Parsed"
    CACHED = "Cached"
    PERSIST_ATTEMPTED = "PersistAttempted"
    RESPONDED = "Responded"
    REJECTED = "Rejected"


class Completer(Protocol):
    async def complete(self, prompt: str) -> RawCompletion: ...


class HistoryWriter(Protocol):
    async def add(self, record: HistoryRecord) -> str: ...


class _Lifecycle:
    """Per-request state trail, logged at DEBUG when the request ends."""

    def __init__(self, request_tag: str):
        self.request_tag = request_tag
        self.states: List[RequestState] = [RequestState.RECEIVED]

    def advance(self, state: RequestState) -> None:
        self.states.append(state)

    def close(self, state: RequestState, error_kind: Optional[str] = None) -> None:
        self.advance(state)
        trail = " -> ".join(s.value for s in self.states)
        if error_kind:
            trail = f"{trail} [{error_kind}]"
        logger.debug("%s: %s", self.request_tag, trail)


class DoubtSolver:
    """
    Validate, answer from cache or the model, parse, remember.

    Usage:
        solver = DoubtSolver(completion=CompletionClient.from_settings(settings),
                             cache=ResponseCache(), history=HistoryRepository())
        response = await solver.solve(SolveRequest(userId="u1", query="...", subject="physics"))
    """

    def __init__(
        self,
        completion: Completer,
        cache: ResponseCache,
        history: Optional[HistoryWriter] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.completion = completion
        self.cache = cache
        self.history = history
        self._clock = clock
        self._pending: Set[asyncio.Task] = set()

    async def solve(self, payload: SolveRequest, background: Optional[BackgroundTasks] = None) -> SolveResponse:
        start = self._clock()
        query = payload.query or ""
        lifecycle = _Lifecycle(f"{normalize_subject(payload.subject) or '?'}|{len(query)} chars")

        error = validate(payload.user_id, payload.query, payload.subject)
        if error:
            lifecycle.close(RequestState.REJECTED, error.kind)
            raise error
        subject = Subject(normalize_subject(payload.subject))
        lifecycle.advance(RequestState.VALIDATED)
        logger.info("Request: %s | %d chars", subject.value, len(query))

        key = cache_key(query, subject.value)
        cached = self.cache.get(key)
        lifecycle.advance(RequestState.CACHE_CHECKED)
        if cached is not None:
            logger.info("Cache hit")
            lifecycle.advance(RequestState.CACHE_HIT)
            lifecycle.close(RequestState.RESPONDED)
            return cached.model_copy(update={"cached": True})
        lifecycle.advance(RequestState.CACHE_MISS)

        try:
            prompt = build_prompt(subject.value, query)
            lifecycle.advance(RequestState.PROMPT_BUILT)

            lifecycle.advance(RequestState.COMPLETING)
            raw = await self.completion.complete(prompt)
            logger.info(
                "Completion: model=%s finish=%s tokens=%d/%d",
                raw.model, raw.finish_reason, raw.prompt_tokens, raw.completion_tokens,
            )

            solution = parse(raw.text)
            lifecycle.advance(RequestState.PARSED)
        except SolveError as e:
            lifecycle.close(RequestState.REJECTED, e.kind)
            raise
        except Exception as e:
            logger.exception("Error processing request: %s", e)
            lifecycle.close(RequestState.REJECTED, InternalError.kind)
            raise InternalError() from e

        logger.info("Processed: %d steps", len(solution.steps))
        response = SolveResponse(
            steps=solution.steps,
            final_answer=solution.final_answer,
            metadata=SolveMetadata(
                subject=subject,
                step_count=len(solution.steps),
                response_time_ms=int((self._clock() - start) * 1000),
            ),
            cached=False,
        )

        self.cache.put(key, response)
        lifecycle.advance(RequestState.CACHED)

        record = HistoryRecord(
            user_id=payload.user_id,
            query_text=query,
            subject=subject,
            solution_steps=solution.steps,
            final_answer=solution.final_answer,
            created_at=datetime.now(timezone.utc),
        )
        self._schedule_persist(record, background)
        lifecycle.advance(RequestState.PERSIST_ATTEMPTED)

        lifecycle.close(RequestState.RESPONDED)
        return response

    # ------------------------------------------------------------------
    # fire-and-forget history write
    # ------------------------------------------------------------------

    def _schedule_persist(self, record: HistoryRecord, background: Optional[BackgroundTasks]) -> None:
        if self.history is None:
            return
        if background is not None:
            background.add_task(self._persist, record)
            return
        task = asyncio.get_running_loop().create_task(self._persist(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, record: HistoryRecord) -> None:
        try:
            await self.history.add(record)
        except Exception as e:
            logger.warning("DB save failed: %s", e)

    async def drain(self) -> None:
        """Wait for history writes scheduled without ``BackgroundTasks``."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
