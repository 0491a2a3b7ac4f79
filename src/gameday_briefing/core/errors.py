from __future__ import annotations

from dataclasses import dataclass


class BriefingError(Exception):
    pass


class ConfigError(BriefingError):
    """Missing or invalid startup configuration."""


class RequestError(BriefingError):
    def __init__(self, message: str, *, url: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class TransientRequestError(RequestError):
    """429, 5xx, timeout or connection failure. Safe to retry."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status: int | None = None,
        reason: str = "",
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, url=url, status=status)
        self.reason = reason or (str(status) if status else "network")
        self.retry_after = retry_after


class RequestFailedError(RequestError):
    """Retries exhausted and the caller did not opt into deferral."""


class SourceError(BriefingError):
    pass


class EnhancerError(BriefingError):
    pass


class EnhancerBudgetExceeded(EnhancerError):
    pass


@dataclass(frozen=True)
class FetchFailure:
    kind: str
    message: str
    url: str

    def to_note(self) -> str:
        safe = (self.message or "").replace("\n", " ").replace("|", " ").strip()
        return f"request_error:{self.kind}:{safe}" if safe else f"request_error:{self.kind}"

    @classmethod
    def from_exception(cls, exc: BaseException, url: str) -> "FetchFailure":
        if isinstance(exc, TransientRequestError):
            kind = exc.reason
        elif isinstance(exc, RequestError) and exc.status:
            kind = str(exc.status)
        else:
            kind = type(exc).__name__
        return cls(kind=kind, message=str(exc), url=url)
