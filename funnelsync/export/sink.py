"""FunnelSync - Analytics Sink Client.

Single-shot signed POST. Retrying is the caller's decision.
"""

from typing import Optional

import httpx

from funnelsync.connectors.feeds.client import USER_AGENT
from funnelsync.core.exceptions import SinkDeliveryFailure
from funnelsync.core.logging import get_logger

logger = get_logger("export.sink")


class SinkClient:
    """Delivers signed export payloads to the configured sink URL."""

    def __init__(
        self,
        sink_url: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.sink_url = sink_url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport, follow_redirects=True
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def deliver(self, payload: bytes, signature: str) -> int:
        """POST the exact signed bytes. Returns the sink's status code."""
        client = await self._get_client()
        headers = {
            "Content-Type": "application/json",
            "X-Signature": signature,
            "User-Agent": USER_AGENT,
        }
        try:
            resp = await client.post(self.sink_url, content=payload, headers=headers)
        except httpx.RequestError as e:
            raise SinkDeliveryFailure(self.sink_url, body=str(e)) from e

        if not resp.is_success:
            raise SinkDeliveryFailure(self.sink_url, resp.status_code, resp.text)

        logger.info(
            f"Delivered {len(payload)} bytes to sink",
            extra={"url": self.sink_url, "status_code": resp.status_code},
        )
        return resp.status_code
