from __future__ import annotations

import asyncio
import json
import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

from gameday_briefing.core.config import (
    DEFERRED_DELAY_SEC,
    DEFERRED_MAX_ITEMS,
    DEFERRED_RETRY_CEILING,
    HTTP_BACKOFF_BASE_MS,
    HTTP_BACKOFF_CAP_MS,
    HTTP_BACKOFF_JITTER_MS,
    HTTP_MAX_RETRIES,
    HTTP_TIMEOUT_SEC,
)
from gameday_briefing.core.errors import (
    FetchFailure,
    RequestError,
    RequestFailedError,
    TransientRequestError,
)
from gameday_briefing.models.queue import DeferredItem, DrainResult, FetchRequest, HttpResponse, QueueStats
from gameday_briefing.net.clock import Scheduler
from gameday_briefing.net.rate_limiter import RateLimiter
from gameday_briefing.net.transport import Transport

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class QueueConfig:
    max_retries: int = HTTP_MAX_RETRIES
    backoff_base_sec: float = HTTP_BACKOFF_BASE_MS / 1000.0
    backoff_cap_sec: float = HTTP_BACKOFF_CAP_MS / 1000.0
    jitter_sec: float = HTTP_BACKOFF_JITTER_MS / 1000.0
    default_timeout_sec: float = HTTP_TIMEOUT_SEC
    deferred_max_items: int = DEFERRED_MAX_ITEMS
    deferred_retry_ceiling: int = DEFERRED_RETRY_CEILING
    deferred_delay_sec: float = DEFERRED_DELAY_SEC


def _parse_retry_after(headers: Any) -> float | None:
    raw = (headers or {}).get("Retry-After") or (headers or {}).get("retry-after")
    if not raw:
        return None
    try:
        return max(0.0, float(str(raw).strip()))
    except ValueError:
        return None


class RequestQueue:
    """Single entry point for every third-party HTTP call.

    Calls pass through the shared `RateLimiter`, carry a per-call timeout,
    and are retried with capped exponential backoff on 429, 5xx, timeouts
    and connection errors. When retries run out the request either joins
    the deferred backlog (`submit(..., defer=True)`) or raises
    `RequestFailedError`. Bodies that cannot be decoded come back as a
    neutral empty value instead of an error.
    """

    def __init__(
        self,
        *,
        limiter: RateLimiter,
        transport: Transport,
        config: QueueConfig | None = None,
        scheduler: Scheduler | None = None,
        random_func: Callable[[], float] = random.random,
    ) -> None:
        self._limiter = limiter
        self._transport = transport
        self._config = config or QueueConfig()
        self._scheduler = scheduler or limiter.scheduler
        self._random = random_func
        self._backlog: deque[DeferredItem] = deque()
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._total = 0
        self._successful = 0
        self._retried = 0
        self._deferred = 0
        self._failed = 0

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def deferred_items(self) -> list[DeferredItem]:
        return list(self._backlog)

    def backoff_delay(self, attempt: int, retry_after: float | None = None) -> float:
        cfg = self._config
        delay = min(cfg.backoff_base_sec * (2 ** attempt), cfg.backoff_cap_sec)
        if retry_after:
            delay = max(delay, min(retry_after, cfg.backoff_cap_sec))
        return delay + cfg.jitter_sec * self._random()

    async def submit(self, request: FetchRequest, *, defer: bool = False) -> Any:
        self._total += 1
        attempt = 0
        while True:
            try:
                response = await self._attempt(request)
            except TransientRequestError as exc:
                if attempt < self._config.max_retries:
                    delay = self.backoff_delay(attempt, exc.retry_after)
                    self._retried += 1
                    logger.debug(
                        "%s for [%s], retrying in %.2fs (attempt %d/%d)",
                        exc.reason, request.tag, delay, attempt + 1, self._config.max_retries,
                    )
                    await self._scheduler.sleep(delay)
                    attempt += 1
                    continue
                failure = FetchFailure.from_exception(exc, request.url)
                if defer:
                    self._admit_deferred(request, attempts=attempt + 1, reason=failure.to_note())
                    return None
                self._failed += 1
                logger.warning("request failed after %d attempts [%s]: %s", attempt + 1, request.tag, exc)
                raise RequestFailedError(
                    f"{request.url}: retries exhausted ({failure.kind})", url=request.url, status=exc.status
                ) from exc
            except RequestError as exc:
                self._failed += 1
                logger.warning("request rejected [%s]: %s", request.tag, exc)
                raise
            self._successful += 1
            return self._decode(request, response)

    async def _attempt(self, request: FetchRequest) -> HttpResponse:
        timeout = request.timeout_sec or self._config.default_timeout_sec
        await self._limiter.acquire()
        try:
            try:
                response = await asyncio.wait_for(self._transport.get(request), timeout=timeout)
            except asyncio.TimeoutError as exc:
                raise TransientRequestError(
                    f"timeout after {timeout}s", url=request.url, reason="timeout"
                ) from exc
            self._raise_for_status(request, response)
        except TransientRequestError as exc:
            self._limiter.release_on_failure(refund=exc.reason == "connection")
            raise
        except BaseException:
            self._limiter.release_on_failure()
            raise
        self._limiter.release()
        return response

    def _raise_for_status(self, request: FetchRequest, response: HttpResponse) -> None:
        status = response.status
        if status < 400:
            return
        if status in TRANSIENT_STATUSES or status >= 500:
            raise TransientRequestError(
                f"HTTP {status}",
                url=request.url,
                status=status,
                retry_after=_parse_retry_after(response.headers) if status == 429 else None,
            )
        raise RequestError(f"HTTP {status}", url=request.url, status=status)

    def _decode(self, request: FetchRequest, response: HttpResponse) -> Any:
        body = response.text or ""
        if request.expect == "text":
            return body
        if not body.strip():
            logger.info("empty body from [%s], treating as no data", request.tag)
            return {}
        try:
            return json.loads(body)
        except ValueError:
            logger.warning("unparseable JSON from [%s], treating as no data", request.tag)
            return {}

    def _admit_deferred(self, request: FetchRequest, *, attempts: int, reason: str) -> None:
        now = self._scheduler.now()
        if len(self._backlog) >= max(1, self._config.deferred_max_items):
            evicted = self._backlog.popleft()
            self._failed += 1
            logger.warning("deferred backlog full, dropping oldest [%s]", evicted.request.tag)
        self._backlog.append(
            DeferredItem(
                request=request,
                attempts=attempts,
                next_eligible_at=now + self._config.deferred_delay_sec,
                reason=reason,
                added_at=now,
            )
        )
        self._deferred += 1
        logger.info("deferred [%s] after %d attempts (%s)", request.tag, attempts, reason)

    async def drain_deferred(self) -> DrainResult:
        """Retry backlog items oldest-first, one attempt each.

        Items that fail again go back to the backlog until they reach the
        retry ceiling, then are dropped and counted as failed.
        """
        if not self._backlog:
            return DrainResult(processed=0, successful=0)

        pending = list(self._backlog)
        self._backlog.clear()
        requeue: list[DeferredItem] = []
        results: list[tuple[FetchRequest, Any]] = []
        successful = 0
        dropped = 0
        logger.info("draining %d deferred requests", len(pending))

        for item in pending:
            wait = item.next_eligible_at - self._scheduler.now()
            if wait > 0:
                await self._scheduler.sleep(wait)
            self._retried += 1
            try:
                response = await self._attempt(item.request)
            except RequestError as exc:
                item.attempts += 1
                item.reason = FetchFailure.from_exception(exc, item.request.url).to_note()
                retryable = isinstance(exc, TransientRequestError)
                if not retryable or item.attempts >= self._config.deferred_retry_ceiling:
                    dropped += 1
                    self._failed += 1
                    logger.warning(
                        "deferred [%s] dropped after %d attempts (%s)", item.request.tag, item.attempts, item.reason
                    )
                else:
                    item.next_eligible_at = self._scheduler.now() + self._config.deferred_delay_sec
                    requeue.append(item)
                continue
            successful += 1
            self._successful += 1
            results.append((item.request, self._decode(item.request, response)))

        # re-queued items are older than anything admitted while draining
        self._backlog.extendleft(reversed(requeue))
        logger.info("deferred drain: %d/%d successful, %d still deferred", successful, len(pending), len(requeue))
        return DrainResult(
            processed=len(pending),
            successful=successful,
            still_deferred=len(requeue),
            dropped=dropped,
            results=tuple(results),
        )

    def stats(self) -> QueueStats:
        return QueueStats(
            total_requests=self._total,
            successful=self._successful,
            retried=self._retried,
            deferred=self._deferred,
            failed=self._failed,
            deferred_pending=len(self._backlog),
            limiter=self._limiter.stats(),
        )

    def reset_stats(self) -> None:
        """Operator reset: zero the counters and clear the backlog."""
        self._reset_counters()
        self._backlog.clear()

    async def close(self) -> None:
        cancel = getattr(self._scheduler, "cancel", None)
        if callable(cancel):
            cancel()
        await self._transport.close()
