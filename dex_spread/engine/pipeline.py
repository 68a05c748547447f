"""
Chunk pipeline: transport chunks in, one Snapshot per chunk out.

Pull-based: the consumer drives iteration and the only suspension points are
awaiting the next chunk and releasing the connection. There is no queue or
throttling here; chunks are folded as fast as they arrive.
"""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator, Protocol

from ..types import Snapshot
from .context import EngineContext

logger = logging.getLogger(__name__)


class ChunkSource(Protocol):
    """Transport collaborator delivering newline-delimited JSON byte chunks."""

    async def connect(self) -> None: ...

    def chunks(self) -> AsyncIterator[bytes]: ...

    async def close(self) -> None: ...


async def stream_snapshots(
    source: ChunkSource,
    ctx: EngineContext | None = None,
) -> AsyncIterator[Snapshot]:
    """
    Fold every chunk from `source` into `ctx` and yield a snapshot per chunk.

    The connection is released exactly once when iteration ends for any
    reason: end of stream, consumer aclose()/cancellation, or a connect or
    transport error, which then propagates unchanged.
    """
    if ctx is None:
        ctx = EngineContext()

    try:
        await source.connect()
        ctx.status.connected = True
        logger.info("Stream connected")

        async for chunk in source.chunks():
            received_at_ms = int(time.time() * 1000)
            ctx.fold_chunk(chunk, received_at_ms)
            yield ctx.snapshot()
    finally:
        ctx.status.connected = False
        await source.close()
        logger.info(
            "Stream closed after %d chunks, %d events",
            ctx.chunks_processed, ctx.status.events_processed,
        )
