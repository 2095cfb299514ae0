from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Callable, NoReturn, Sequence

import uvicorn

from .api.main import create_app
from .api.ws_manager import CONNECTIONS_CHANNEL, WebSocketManager, ws_manager
from .capture import (
    PacketCapture,
    auto_detect_device,
    build_bpf_filter,
    list_devices,
    local_addresses,
)
from .config import settings
from .metrics import METRICS
from .models import P2PConnection, RawDatagram
from .pipeline import init_queues
from .stun import ConnectionTracker

logger = logging.getLogger("stunwatch.main")


# ---------------------------------------------------------------------------
# Ingest consumer — capture_queue → ConnectionTracker
# ---------------------------------------------------------------------------

async def ingest_consumer(
    tracker: ConnectionTracker,
    queue: asyncio.Queue,
    shutdown_event: asyncio.Event,
) -> None:
    """Feed captured datagrams into the tracker one at a time."""
    logger.info("Ingest consumer started")
    while not shutdown_event.is_set():
        try:
            datagram: RawDatagram = await asyncio.wait_for(queue.get(), timeout=0.5)
            queue.task_done()
            tracker.ingest(datagram)
        except asyncio.TimeoutError:
            continue
        except asyncio.CancelledError:
            break
    logger.info("Ingest consumer exiting")


def live_feed_observer(
    loop: asyncio.AbstractEventLoop,
    manager: WebSocketManager,
) -> Callable[[P2PConnection], None]:
    """
    Build the tracker observer that pushes each new connection to every
    live-feed client.

    The broadcast is scheduled on *loop* rather than awaited, so the
    observer returns immediately whichever thread calls it.
    """

    def _on_detected(conn: P2PConnection) -> None:
        asyncio.run_coroutine_threadsafe(
            manager.broadcast(CONNECTIONS_CHANNEL, conn.to_dict()),
            loop,
        )

    return _on_detected


async def stats_logger(
    tracker: ConnectionTracker,
    shutdown_event: asyncio.Event,
    interval: float = 30.0,
) -> None:
    while not shutdown_event.is_set():
        await asyncio.sleep(interval)
        logger.info(
            "METRICS capture=%s tracker=%s ws=%s",
            METRICS.as_dict(), tracker.stats, ws_manager.all_counts(),
        )


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

async def run(
    iface: str,
    bpf_filter: str,
    local_ips: Sequence[str],
    host: str,
    port: int,
) -> None:
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    queue = init_queues(capture_size=settings.CAPTURE_QUEUE_SIZE)

    def _signal_handler(_signum, _frame) -> None:
        logger.info("Shutdown signal received")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    # Core
    tracker = ConnectionTracker(local_ips)
    tracker.register_observer(live_feed_observer(loop, ws_manager))

    # Capture
    capture = PacketCapture(
        queue=queue,
        loop=loop,
        iface=iface,
        bpf_filter=bpf_filter,
    )
    capture.start()

    # FastAPI + uvicorn
    app = create_app(tracker, ws_manager)
    uv_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="warning",
        loop="none",
    )
    uv_server = uvicorn.Server(uv_config)

    tasks = [
        asyncio.create_task(ingest_consumer(tracker, queue, shutdown_event), name="ingest"),
        asyncio.create_task(
            stats_logger(tracker, shutdown_event, settings.STATS_INTERVAL_SECONDS),
            name="stats",
        ),
        asyncio.create_task(uv_server.serve(), name="api"),
    ]

    logger.info(
        "StunWatch — iface=%r filter=%r local_ips=%s  dashboard=http://%s:%d",
        iface, bpf_filter, list(local_ips), host, port,
    )

    await shutdown_event.wait()

    uv_server.should_exit = True
    for t in tasks[:-1]:
        t.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    capture.stop()
    logger.info("Final stats — tracker=%s", tracker.stats)
    logger.info("StunWatch stopped cleanly")


def _print_devices() -> None:
    for device in list_devices():
        if not device.routable_addresses:
            continue
        print(device.name)
        print(f"\t{device.description}\n\t{', '.join(device.addresses)}")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stunwatch",
        description="Detect STUN-based peer-to-peer connections on this host",
    )
    parser.add_argument("--iface", default=settings.INTERFACE,
                        help="capture device (auto-detected when omitted)")
    parser.add_argument("--list-devices", action="store_true",
                        help="list capture devices and exit")
    parser.add_argument("--filter", default=settings.BPF_FILTER, dest="bpf")
    parser.add_argument("--local-ip", action="append", default=[], dest="local_ips",
                        help="extra address owned by this host (repeatable)")
    parser.add_argument("--host", default=settings.API_HOST)
    parser.add_argument("--port", type=int, default=settings.API_PORT)
    parser.add_argument(
        "--log-level", default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> NoReturn:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        if args.list_devices:
            _print_devices()
            sys.exit(0)

        devices = list_devices()
        iface = args.iface
        if not iface:
            iface = auto_detect_device(devices)
            logger.info("Auto-detected device: %s", iface)

        local_ips = local_addresses(
            devices, extra=[*settings.EXTRA_LOCAL_IPS, *args.local_ips]
        )
    except RuntimeError as exc:  # includes DeviceNotFoundError
        logger.error("%s", exc)
        sys.exit(1)

    if not local_ips:
        logger.error("No local addresses found — nothing can be classified as inbound")
        sys.exit(1)

    bpf = args.bpf or build_bpf_filter(exclude_ports=settings.EXCLUDE_PORTS)

    asyncio.run(
        run(iface=iface, bpf_filter=bpf, local_ips=local_ips,
            host=args.host, port=args.port)
    )
    sys.exit(0)


if __name__ == "__main__":
    main()
