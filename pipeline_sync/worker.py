"""Command-line entry point.

Commands:
    serve  Run the HTTP server (inbound events and read endpoints)
    sync   Run one reconciliation cycle and exit
    run    Run reconciliation cycles on an interval, optionally with the server
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import Any

import uvicorn

from .config.exceptions import ConfigurationError
from .config.loader import ConfigurationLoader
from .context import AppContext
from .exceptions import PipelineSyncError
from .server.app import create_app
from .sync.reconciler import CycleReport

logger = logging.getLogger(__name__)


class SyncWorker:
    """Runs reconciliation cycles until asked to stop."""

    def __init__(self, context: AppContext, interval: int | None = None):
        """Initialize the worker.

        Args:
            context: Application context, already started
            interval: Seconds between cycles; defaults to the configured one
        """
        self.context = context
        self.interval = interval or context.config.reconciliation.interval
        self.running = False
        self.shutdown_event = asyncio.Event()
        self.stats: dict[str, Any] = {
            "total_cycles": 0,
            "failed_cycles": 0,
            "last_cycle_at": None,
            "last_error": None,
        }

    async def run_once(self) -> list[CycleReport]:
        """Run the cross-branch and pull-request cycles once, concurrently."""
        cycle_start = datetime.now(UTC)
        reports = await asyncio.gather(
            self.context.cross_branch.run_cycle(),
            self.context.pull_requests.run_cycle(),
        )
        self.stats["total_cycles"] += 1
        self.stats["last_cycle_at"] = cycle_start
        return list(reports)

    async def run(self) -> None:
        """Run cycles every ``interval`` seconds until shutdown."""
        self.running = True
        logger.info(f"Starting reconciliation loop (interval: {self.interval}s)")

        while self.running and not self.shutdown_event.is_set():
            try:
                await self.run_once()
            except PipelineSyncError as e:
                # Per-unit failures never get here; this is a whole-cycle failure
                logger.error(f"Reconciliation cycle failed: {e}")
                self.stats["failed_cycles"] += 1
                self.stats["last_error"] = {
                    "message": str(e),
                    "timestamp": datetime.now(UTC),
                }

            try:
                await asyncio.wait_for(
                    self.shutdown_event.wait(), timeout=self.interval
                )
                break
            except TimeoutError:
                continue

        self.running = False
        logger.info("Reconciliation loop stopped")

    def setup_signal_handlers(self) -> None:
        """Set the shutdown event on SIGINT/SIGTERM."""

        def signal_handler(sig: int, frame: Any) -> None:
            logger.info(f"Received signal {sig}, initiating shutdown...")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def shutdown(self) -> None:
        logger.info("Shutting down reconciliation loop...")
        self.shutdown_event.set()


def _uvicorn_server(context: AppContext) -> uvicorn.Server:
    app = create_app(context)
    config = uvicorn.Config(
        app,
        host=context.config.server.host,
        port=context.config.server.port,
        log_config=None,
    )
    return uvicorn.Server(config)


async def _serve(context: AppContext) -> int:
    await _uvicorn_server(context).serve()
    return 0


async def _sync(context: AppContext) -> int:
    reports = await SyncWorker(context).run_once()
    failures = sum(report.failure_count for report in reports)
    resolved = sum(report.resolved_count for report in reports)
    logger.info(f"Sync finished: {resolved} resolved, {failures} failures")
    return 1 if failures else 0


async def _run(context: AppContext, interval: int | None, with_server: bool) -> int:
    worker = SyncWorker(context, interval)
    server: uvicorn.Server | None = None
    server_task: asyncio.Task[None] | None = None

    if with_server:
        server = _uvicorn_server(context)
        server_task = asyncio.create_task(server.serve())
        # The server handles SIGINT/SIGTERM itself; stop the loop when it exits
        server_task.add_done_callback(lambda _: worker.shutdown_event.set())
    else:
        worker.setup_signal_handlers()

    try:
        await worker.run()
    finally:
        if server is not None and server_task is not None and not server_task.done():
            server.should_exit = True
            with contextlib.suppress(asyncio.CancelledError):
                await server_task
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipeline-sync",
        description="Track pull requests and keep the tracking board in sync",
    )
    parser.add_argument("--config", help="Configuration file path")
    parser.add_argument("--log-level", help="Log level (overrides configuration)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("serve", help="Run the HTTP server")
    subparsers.add_parser("sync", help="Run one reconciliation cycle and exit")
    run_parser = subparsers.add_parser("run", help="Run reconciliation on an interval")
    run_parser.add_argument(
        "--interval", type=int, help="Seconds between cycles (overrides configuration)"
    )
    run_parser.add_argument(
        "--serve", action="store_true", help="Also run the HTTP server"
    )
    return parser


async def main(argv: list[str] | None = None) -> int:
    """Main entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = ConfigurationLoader().load(args.config)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Configuration error: {e}")
        return 2

    log_level = args.log_level or config.system.log_level.value
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    context = AppContext.from_config(config)
    try:
        await context.start()
        if args.command == "serve":
            return await _serve(context)
        if args.command == "sync":
            return await _sync(context)
        return await _run(context, args.interval, args.serve)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except PipelineSyncError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        await context.close()


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
