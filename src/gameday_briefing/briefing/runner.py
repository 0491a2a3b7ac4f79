from __future__ import annotations

import logging
from typing import Sequence

from gameday_briefing.briefing.assembler import BriefingAssembler
from gameday_briefing.core.constants import DEFAULT_RUN_TYPE
from gameday_briefing.models.briefing import Briefing
from gameday_briefing.models.schedule import ScheduleWindow
from gameday_briefing.net.rate_limiter import RateLimiter
from gameday_briefing.net.request_queue import RequestQueue
from gameday_briefing.net.transport import AiohttpTransport
from gameday_briefing.processing.aggregator import NewsAggregator
from gameday_briefing.processing.dedupe import DedupeEngine
from gameday_briefing.processing.enhancer import Enhancer, build_enhancer
from gameday_briefing.schedule.resolver import ScheduleConfig, ScheduleResolver
from gameday_briefing.schedule.sources import ScheduleSource, default_sources

logger = logging.getLogger(__name__)


class BriefingRunner:
    """One aggregation run: schedule, news, deferred drain, assembly."""

    def __init__(
        self,
        *,
        queue: RequestQueue,
        resolver: ScheduleResolver,
        aggregator: NewsAggregator,
        enhancer: Enhancer,
        assembler: BriefingAssembler | None = None,
    ) -> None:
        self._queue = queue
        self._resolver = resolver
        self._aggregator = aggregator
        self._enhancer = enhancer
        self._assembler = assembler or BriefingAssembler()

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    async def run(
        self,
        subject: str = "",
        run_type: str = DEFAULT_RUN_TYPE,
        *,
        window: ScheduleWindow | None = None,
    ) -> Briefing:
        self._enhancer.reset_call_counter()
        logger.info("briefing run started (subject=%r, run_type=%s)", subject or "league", run_type)

        schedule_result = await self._resolver.resolve(window)
        buckets = await self._aggregator.build_buckets(subject, run_type)

        drained = await self._queue.drain_deferred()
        if drained.processed:
            # late results are counted only; the run already has its data
            logger.info(
                "deferred drain after run: %d processed, %d successful, %d dropped",
                drained.processed, drained.successful, drained.dropped,
            )

        briefing = self._assembler.assemble(schedule_result, buckets, subject=subject, run_type=run_type)
        stats = self._queue.stats()
        briefing["queueStats"] = stats.as_dict()
        logger.info(
            "queue stats: total=%d ok=%d retried=%d deferred=%d failed=%d reservoir=%s enhancer_calls=%d",
            stats.total_requests, stats.successful, stats.retried, stats.deferred, stats.failed,
            stats.limiter.reservoir_label if stats.limiter else "unlimited", self._enhancer.calls_made,
        )
        return briefing

    async def close(self) -> None:
        await self._queue.close()


def build_runner(
    *,
    base_days: int | None = None,
    sources: Sequence[ScheduleSource] | None = None,
) -> BriefingRunner:
    """Wire the production components around one shared limiter and queue."""
    limiter = RateLimiter()
    queue = RequestQueue(limiter=limiter, transport=AiohttpTransport())
    schedule_config = ScheduleConfig() if base_days is None else ScheduleConfig(base_days=base_days)
    resolver = ScheduleResolver(sources if sources is not None else default_sources(queue), config=schedule_config)
    enhancer = build_enhancer()
    aggregator = NewsAggregator(queue, dedupe_engine=DedupeEngine(), enhancer=enhancer)
    return BriefingRunner(queue=queue, resolver=resolver, aggregator=aggregator, enhancer=enhancer)
