"""
Pangea decoded-logs client with async streaming.

Handles:
1. One long-lived HTTP request for ThalaSwap + Cellana decoded logs
2. Re-aligning body chunks on record boundaries
3. Releasing the response and session exactly once

Performance notes:
- Chunks are yielded as soon as aiohttp hands them over (no buffering
  beyond the trailing partial line)
- All I/O is non-blocking (pure asyncio)
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

import aiohttp

from ..config import (
    ADD_LIQUIDITY_EVENT,
    CELLANA_ADDRESS,
    DEFAULT_FROM_BLOCK,
    DEFAULT_PANGEA_ENDPOINT,
    REMOVE_LIQUIDITY_EVENT,
    SWAP_EVENT,
    SYNC_EVENT,
    THALASWAP_ADDRESS,
    Settings,
)

logger = logging.getLogger(__name__)

LOGS_PATH = "/v1/api/logs/decoded"
CHAIN = "APTOS"


class PangeaClient:
    """
    Async Pangea client streaming decoded Aptos logs as byte chunks.

    Usage:
        client = PangeaClient()
        await client.connect()
        try:
            async for chunk in client.chunks():
                ...
        finally:
            await client.close()
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_PANGEA_ENDPOINT,
        username: str = "",
        password: str = "",
        from_block: str = DEFAULT_FROM_BLOCK,
        addresses: tuple[str, ...] = (CELLANA_ADDRESS, THALASWAP_ADDRESS),
        event_names: tuple[str, ...] = (
            SWAP_EVENT, ADD_LIQUIDITY_EVENT, REMOVE_LIQUIDITY_EVENT, SYNC_EVENT,
        ),
    ) -> None:
        self.endpoint = endpoint
        self.from_block = from_block
        self.addresses = addresses
        self.event_names = event_names
        self._auth = aiohttp.BasicAuth(username, password) if username else None

        self._session: aiohttp.ClientSession | None = None
        self._response: aiohttp.ClientResponse | None = None
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Settings) -> PangeaClient:
        return cls(
            endpoint=settings.endpoint,
            username=settings.username,
            password=settings.password,
            from_block=settings.from_block,
            addresses=settings.engine.addresses,
            event_names=settings.engine.event_names,
        )

    def _build_url(self) -> str:
        """Accept a bare host (as in PANGEA_URL) or a full base URL."""
        base = self.endpoint.rstrip("/")
        if not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        return f"{base}{LOGS_PATH}"

    def _build_params(self) -> dict[str, str]:
        return {
            "chains": CHAIN,
            "from_block": self.from_block,
            "to_block": "none",
            "address__in": ",".join(self.addresses),
            "event_name__in": ",".join(self.event_names),
            "format": "json_stream",
        }

    @property
    def connected(self) -> bool:
        return self._response is not None and not self._closed

    async def connect(self) -> None:
        """Open the session and start the streaming request."""
        if self._closed:
            raise RuntimeError("client already closed")

        self._session = aiohttp.ClientSession(
            auth=self._auth,
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=30),
        )
        try:
            self._response = await self._session.get(self._build_url(), params=self._build_params())
            self._response.raise_for_status()
        except aiohttp.ClientError as e:
            logger.error("Pangea connect failed: %s", e)
            await self.close()
            raise

        logger.info("Connected to %s from block %s", self.endpoint, self.from_block)

    async def chunks(self) -> AsyncIterator[bytes]:
        """
        Yield body chunks that each end on a record boundary.

        A trailing partial line is held back and prefixed to the next chunk;
        whatever remains at end of stream is flushed as a final chunk.
        """
        if self._response is None:
            raise RuntimeError("connect() must be called before chunks()")

        tail = b""
        async for data in self._response.content.iter_any():
            data = tail + data
            cut = data.rfind(b"\n")
            if cut < 0:
                tail = data
                continue
            tail = data[cut + 1:]
            yield data[:cut + 1]

        if tail.strip():
            yield tail

    async def close(self) -> None:
        """Release the response and session. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        if self._response is not None:
            self._response.release()
        if self._session is not None:
            await self._session.close()
        logger.info("Pangea connection released")
