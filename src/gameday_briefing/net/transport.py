from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from gameday_briefing.core.config import HTTP_TIMEOUT_SEC
from gameday_briefing.core.constants import USER_AGENT
from gameday_briefing.core.errors import TransientRequestError
from gameday_briefing.models.queue import FetchRequest, HttpResponse

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def get(self, request: FetchRequest) -> HttpResponse: ...

    async def close(self) -> None: ...


class AiohttpTransport:
    """Single shared aiohttp session for every outbound GET.

    Network-level failures surface as `TransientRequestError`; HTTP status
    interpretation is left to the request queue.
    """

    def __init__(
        self,
        *,
        default_timeout_sec: float = HTTP_TIMEOUT_SEC,
        user_agent: str = USER_AGENT,
        connector_limit: int = 10,
    ) -> None:
        self._default_timeout = default_timeout_sec
        self._user_agent = user_agent
        self._connector_limit = connector_limit
        self._session: aiohttp.ClientSession | None = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=self._connector_limit, limit_per_host=2),
                headers={"User-Agent": self._user_agent, "Accept-Language": "en-US,en;q=0.8"},
            )
        return self._session

    async def get(self, request: FetchRequest) -> HttpResponse:
        session = await self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=request.timeout_sec or self._default_timeout)
        try:
            async with session.get(
                request.url,
                params=list(request.params) or None,
                headers=dict(request.headers) or None,
                timeout=timeout,
                allow_redirects=True,
            ) as resp:
                text = await resp.text(errors="replace")
                return HttpResponse(
                    status=resp.status,
                    text=text,
                    url=str(resp.url),
                    headers={k: v for k, v in resp.headers.items()},
                )
        except asyncio.TimeoutError as exc:
            raise TransientRequestError(
                f"timeout after {timeout.total}s", url=request.url, reason="timeout"
            ) from exc
        except aiohttp.ClientConnectionError as exc:
            raise TransientRequestError(str(exc) or "connection error", url=request.url, reason="connection") from exc
        except aiohttp.ClientError as exc:
            raise TransientRequestError(str(exc) or "client error", url=request.url, reason="network") from exc

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AiohttpTransport":
        await self._ensure_session()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
