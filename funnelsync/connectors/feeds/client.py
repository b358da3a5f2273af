"""FunnelSync - Upstream Feed Client.

Handles bounded retry with linear backoff and JSON decoding for the
upstream ads and CRM endpoints.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import httpx

from funnelsync.core.events import (
    DECODE_FAILED,
    FETCH_EXHAUSTED,
    FETCH_OK,
    FETCH_RETRY,
    EventSink,
    default_sink,
)
from funnelsync.core.exceptions import DecodeError, FetchExhausted

USER_AGENT = "FunnelSync-ETL/1.0"


class FeedClient:
    """Async HTTP client for the upstream JSON feeds."""

    def __init__(
        self,
        timeout: float,
        max_retries: int,
        backoff: float,
        events: EventSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff = backoff
        self.events = events or default_sink
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def get_bytes(self, url: str) -> bytes:
        """GET ``url`` with linear backoff; raise FetchExhausted when out of attempts."""
        client = await self._get_client()
        last_error: object = None

        for attempt in range(1, self.max_retries + 1):
            try:
                resp = await client.get(url)
                resp.raise_for_status()
                self.events.emit(
                    FETCH_OK, url=url, attempt=attempt, status_code=resp.status_code
                )
                return resp.content

            except httpx.HTTPStatusError as e:
                last_error = f"HTTP error: {e.response.status_code}"
            except httpx.RequestError as e:
                last_error = e

            if attempt < self.max_retries:
                wait = self.backoff * attempt
                self.events.emit(
                    FETCH_RETRY,
                    url=url,
                    attempt=attempt,
                    max_retries=self.max_retries,
                    error=str(last_error),
                )
                await self._sleep(wait)

        self.events.emit(
            FETCH_EXHAUSTED, url=url, attempt=self.max_retries, error=str(last_error)
        )
        raise FetchExhausted(url, self.max_retries, last_error)

    async def fetch_json(self, url: str, source: str) -> Any:
        """Fetch ``url`` and decode its body as JSON. Decode errors are not retried."""
        body = await self.get_bytes(url)
        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.events.emit(DECODE_FAILED, source=source, url=url, error=str(e))
            raise DecodeError(source, str(e)) from e
