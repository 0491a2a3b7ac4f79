from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class FetchRequest:
    url: str
    params: tuple[tuple[str, str], ...] = ()
    timeout_sec: float | None = None
    source: str = ""
    subject: str = ""
    expect: str = "json"  # "json" | "text"
    headers: tuple[tuple[str, str], ...] = ()

    @property
    def tag(self) -> str:
        if self.subject:
            return f"{self.source or 'unknown'}:{self.subject}"
        return self.source or "unknown"

    @classmethod
    def build(
        cls,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        timeout_sec: float | None = None,
        source: str = "",
        subject: str = "",
        expect: str = "json",
    ) -> "FetchRequest":
        pairs = tuple((str(k), str(v)) for k, v in (params or {}).items())
        return cls(url=url, params=pairs, timeout_sec=timeout_sec, source=source, subject=subject, expect=expect)


@dataclass(frozen=True)
class HttpResponse:
    status: int
    text: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass
class DeferredItem:
    request: FetchRequest
    attempts: int
    next_eligible_at: float
    reason: str
    added_at: float = 0.0


@dataclass(frozen=True)
class LimiterStats:
    enabled: bool
    reservoir: int | None  # None means unlimited
    capacity: int | None
    running: int
    queued: int
    acquired: int
    released_on_failure: int

    @property
    def reservoir_label(self) -> str:
        return "unlimited" if self.reservoir is None else str(self.reservoir)


@dataclass(frozen=True)
class QueueStats:
    total_requests: int
    successful: int
    retried: int
    deferred: int
    failed: int
    deferred_pending: int
    limiter: LimiterStats | None = None

    @property
    def success_rate(self) -> float:
        if self.total_requests <= 0:
            return 0.0
        return self.successful / self.total_requests

    def as_dict(self) -> dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "successful": self.successful,
            "retried": self.retried,
            "deferred": self.deferred,
            "failed": self.failed,
            "deferredPending": self.deferred_pending,
            "successRate": round(self.success_rate, 3),
            "reservoir": self.limiter.reservoir_label if self.limiter else "unlimited",
        }


@dataclass(frozen=True)
class DrainResult:
    processed: int
    successful: int
    still_deferred: int = 0
    dropped: int = 0
    results: tuple[tuple[FetchRequest, Any], ...] = ()
