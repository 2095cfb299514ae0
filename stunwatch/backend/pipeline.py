"""
backend/pipeline.py

The capture queue and the ring-buffer safe_put() helper used by the
capture layer to enqueue without blocking.

The capture queue absorbs packet bursts between scapy's sniffer thread and
the ingest consumer coroutine. When full, safe_put() drops the *oldest*
datagram rather than blocking the producer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .metrics import METRICS

logger = logging.getLogger(__name__)


# Lazily initialised so tests can create fresh queues without import side effects.
# Call init_queues() once at startup (done inside main.py).

capture_queue: asyncio.Queue | None = None


def init_queues(capture_size: int = 10_000) -> asyncio.Queue:
    """
    Initialise the capture queue and return it.
    Must be called from within a running asyncio event loop.
    """
    global capture_queue
    capture_queue = asyncio.Queue(maxsize=capture_size)
    logger.info("Capture queue initialised — size=%d", capture_size)
    return capture_queue


async def safe_put(queue: asyncio.Queue, item: Any) -> bool:
    """
    Non-blocking enqueue with ring-buffer drop semantics.

    If the queue is full, the *oldest* item is discarded to make room,
    METRICS.datagrams_dropped is incremented, and a warning is logged.

    Returns:
        True  — item was enqueued successfully.
        False — item could not be enqueued (extremely unlikely race condition).
    """
    if queue.full():
        try:
            queue.get_nowait()
            queue.task_done()
            METRICS.datagrams_dropped.inc()
            logger.warning(
                "Capture queue full (%d/%d) — oldest datagram dropped",
                queue.qsize(),
                queue.maxsize,
            )
        except asyncio.QueueEmpty:
            pass  # drained between the full() check and get_nowait()

    try:
        queue.put_nowait(item)
        return True
    except asyncio.QueueFull:
        METRICS.datagrams_dropped.inc()
        logger.error("safe_put: queue still full after drop — datagram lost")
        return False
