from __future__ import annotations

# stdlib
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

# third-party
import httpx

# local
from doubt_solver.core.config import Settings
from doubt_solver.core.errors import (
    CompletionTimeout,
    ConfigurationError,
    EmptyCompletion,
    RateLimited,
    SafetyBlocked,
    UpstreamError,
)

logger = logging.getLogger("doubts.completion")

HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
BLOCKED_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}


@dataclass
class RawCompletion:
    """Text of the single candidate plus what the provider told us about it."""
    text: str
    finish_reason: Optional[str] = None
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0


class CompletionClient:
    """
    One-shot Gemini ``generateContent`` caller.

    Each call makes exactly one request; retrying is the caller's business.
    Failures are raised as the ``CompletionError`` subclasses from
    ``core.errors`` so the route layer can map them to status codes.

    Usage:
        client = CompletionClient.from_settings(settings)
        raw = await client.complete(prompt)
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str,
        timeout: float = 30.0,
        temperature: float = 0.1,
        top_p: float = 0.8,
        max_output_tokens: int = 1500,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.top_p = top_p
        self.max_output_tokens = max_output_tokens
        self._transport = transport

    @classmethod
    def from_settings(cls, s: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "CompletionClient":
        return cls(
            api_key=s.GOOGLE_API_KEY,
            model=s.GEMINI_MODEL,
            base_url=s.GEMINI_BASE_URL,
            timeout=s.COMPLETION_TIMEOUT_SECONDS,
            temperature=s.GENERATION_TEMPERATURE,
            top_p=s.GENERATION_TOP_P,
            max_output_tokens=s.GENERATION_MAX_OUTPUT_TOKENS,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "topP": self.top_p,
                "maxOutputTokens": self.max_output_tokens,
                "candidateCount": 1,
            },
            "safetySettings": [
                {"category": c, "threshold": "BLOCK_NONE"} for c in HARM_CATEGORIES
            ],
        }

    async def complete(self, prompt: str) -> RawCompletion:
        if not self.configured:
            raise ConfigurationError()

        try:
            # the httpx timeout bounds each phase; wait_for bounds the whole exchange
            data = await asyncio.wait_for(self._post(prompt), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning("Completion timed out after %.1fs (%s)", self.timeout, e.__class__.__name__)
            raise CompletionTimeout() from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                logger.warning("Completion rate limited by provider")
                raise RateLimited() from e
            logger.error("Completion failed with HTTP %d", status)
            raise UpstreamError() from e
        except httpx.HTTPError as e:
            logger.error("Completion transport error: %s", e.__class__.__name__)
            raise UpstreamError() from e
        except ValueError as e:
            logger.error("Completion returned unreadable JSON: %s", e)
            raise UpstreamError() from e

        return self._read_candidate(data)

    async def _post(self, prompt: str) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            r = await client.post(self.endpoint, json=self.build_payload(prompt), headers=headers)
            r.raise_for_status()
        return r.json()

    def _read_candidate(self, data: Any) -> RawCompletion:
        if not isinstance(data, dict):
            raise UpstreamError()

        feedback = data.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            logger.info("Prompt blocked by provider: %s", feedback.get("blockReason"))
            raise SafetyBlocked()

        candidates = data.get("candidates") or []
        if not candidates:
            raise EmptyCompletion()
        candidate = candidates[0] or {}

        finish_reason = candidate.get("finishReason")
        if finish_reason in BLOCKED_FINISH_REASONS:
            logger.info("Candidate blocked by provider: %s", finish_reason)
            raise SafetyBlocked()

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text") or "" for p in parts if isinstance(p, dict))
        if not text.strip():
            raise EmptyCompletion()

        usage = data.get("usageMetadata") or {}
        return RawCompletion(
            text=text,
            finish_reason=finish_reason,
            model=data.get("modelVersion") or self.model,
            prompt_tokens=int(usage.get("promptTokenCount") or 0),
            completion_tokens=int(usage.get("candidatesTokenCount") or 0),
        )
