from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol, Sequence

import requests

from gameday_briefing.core.config import (
    ENHANCER_API_BASE,
    ENHANCER_API_KEY,
    ENHANCER_BATCH_MAX,
    ENHANCER_ENABLED,
    ENHANCER_MAX_CALLS_PER_RUN,
    ENHANCER_MAX_OUTPUT_TOKENS,
    ENHANCER_MODEL,
    ENHANCER_TIMEOUT_SEC,
)
from gameday_briefing.core.errors import EnhancerBudgetExceeded, EnhancerError
from gameday_briefing.models.news import Excerpt
from gameday_briefing.processing.formatting import strip_bullet_prefix
from gameday_briefing.processing.prompts.briefing_prompt import (
    CATEGORY_INSTRUCTIONS,
    MERGE_INSTRUCTION,
    format_bullet_batch,
    format_excerpt_batch,
)

logger = logging.getLogger(__name__)

_MIN_BULLET_CHARS = 10
_UNAVAILABLE_LOGGED: set[str] = set()


def log_enhancer_unavailable(reason: str) -> None:
    # each reason is logged once per process
    if reason in _UNAVAILABLE_LOGGED:
        return
    logger.warning("enhancer unavailable: %s", reason)
    _UNAVAILABLE_LOGGED.add(reason)


def parse_bullets(text: str) -> list[str]:
    """Newline separated model output -> bullet strings."""
    bullets: list[str] = []
    for line in (text or "").splitlines():
        cleaned = strip_bullet_prefix(line)
        if len(cleaned) > _MIN_BULLET_CHARS:
            bullets.append(cleaned)
    return bullets


def _extract_gemini_text(payload: dict[str, Any]) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
        return "".join(p.get("text", "") for p in parts).strip()
    except Exception:
        return ""


class Enhancer(Protocol):
    @property
    def enabled(self) -> bool: ...

    @property
    def calls_made(self) -> int: ...

    def reset_call_counter(self) -> None: ...

    async def enhance(self, instruction: str, batch: Sequence[str]) -> list[str]: ...

    async def merge_duplicates(self, bullets: Sequence[str]) -> list[str]: ...

    async def summarize(self, category: str, excerpts: Sequence[Excerpt]) -> list[str]: ...


class DisabledEnhancer:
    """Enhancer that never does I/O and always answers with nothing."""

    enabled = False
    calls_made = 0

    def reset_call_counter(self) -> None:
        return None

    async def enhance(self, instruction: str, batch: Sequence[str]) -> list[str]:
        return []

    async def merge_duplicates(self, bullets: Sequence[str]) -> list[str]:
        return []

    async def summarize(self, category: str, excerpts: Sequence[Excerpt]) -> list[str]:
        return []


class LLMEnhancer:
    """Gemini-backed bullet writer with a per-run call budget.

    The blocking HTTP call runs in a worker thread under a hard
    `asyncio.wait_for` timeout; on timeout the result is abandoned. Every
    failure is logged and answered with an empty list so callers fall back
    to rule-based output.
    """

    enabled = True

    def __init__(
        self,
        *,
        api_key: str = ENHANCER_API_KEY,
        api_base: str = ENHANCER_API_BASE,
        model: str = ENHANCER_MODEL,
        timeout_sec: float = ENHANCER_TIMEOUT_SEC,
        max_calls_per_run: int = ENHANCER_MAX_CALLS_PER_RUN,
        batch_max: int = ENHANCER_BATCH_MAX,
        max_output_tokens: int = ENHANCER_MAX_OUTPUT_TOKENS,
        post_func: Callable[..., Any] = requests.post,
    ) -> None:
        self._api_key = api_key
        self._url = f"{api_base.rstrip('/')}/models/{model}:generateContent"
        self._timeout = timeout_sec
        self._max_calls = max(0, max_calls_per_run)
        self._batch_max = max(1, batch_max)
        self._max_output_tokens = max_output_tokens
        self._post = post_func
        self._calls = 0

    @property
    def calls_made(self) -> int:
        return self._calls

    def reset_call_counter(self) -> None:
        self._calls = 0

    def _reserve_call(self) -> None:
        if self._calls >= self._max_calls:
            raise EnhancerBudgetExceeded(f"call budget of {self._max_calls} per run spent")
        self._calls += 1

    def _generate(self, instruction: str, user_prompt: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "systemInstruction": {"parts": [{"text": instruction}]},
            "generationConfig": {"temperature": 0.2, "maxOutputTokens": self._max_output_tokens},
        }
        try:
            resp = self._post(
                self._url,
                headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
                json=payload,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise EnhancerError(f"{type(exc).__name__}: {exc}") from exc
        if not resp.ok:
            raise EnhancerError(f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise EnhancerError("response is not JSON") from exc
        text = _extract_gemini_text(data)
        if not text:
            raise EnhancerError("empty completion")
        return text

    async def enhance(self, instruction: str, batch: Sequence[str]) -> list[str]:
        if not batch:
            return []
        try:
            self._reserve_call()
        except EnhancerBudgetExceeded as exc:
            logger.info("skipping enhancer call: %s", exc)
            return []
        user_prompt = "\n\n".join(batch[: self._batch_max])
        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self._generate, instruction, user_prompt),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("enhancer timed out after %.1fs", self._timeout)
            return []
        except EnhancerError as exc:
            logger.warning("enhancer call failed: %s", exc)
            return []
        return parse_bullets(text)

    async def merge_duplicates(self, bullets: Sequence[str]) -> list[str]:
        return await self.enhance(MERGE_INSTRUCTION, format_bullet_batch(bullets[: self._batch_max]))

    async def summarize(self, category: str, excerpts: Sequence[Excerpt]) -> list[str]:
        instruction = CATEGORY_INSTRUCTIONS.get(category)
        if instruction is None:
            return []
        return await self.enhance(instruction, format_excerpt_batch(excerpts[: self._batch_max]))


def build_enhancer(*, enabled: bool = ENHANCER_ENABLED, api_key: str = ENHANCER_API_KEY) -> Enhancer:
    if not enabled:
        return DisabledEnhancer()
    if not api_key:
        log_enhancer_unavailable("ENHANCER_API_KEY not set")
        return DisabledEnhancer()
    return LLMEnhancer(api_key=api_key)
