#!/usr/bin/env python3
"""
Standalone question worker process.

Run this as a separate process from the web server so long generation
passes never block HTTP workers.

Usage:
    python -m questionforge.jobs.run_worker          # poll forever
    python -m questionforge.jobs.run_worker --once   # one pass, then exit
"""

import argparse
import asyncio
import json
import signal
import sys

from questionforge.config import config
from questionforge.errors import ConfigError
from questionforge.jobs.runner import JobRunner
from questionforge.jobs.scheduler import QuestionWorker
from questionforge.utils.logging import configure_logging, job_logger as logger


async def run_once() -> int:
    summary = await JobRunner(config).run_pass()
    print(json.dumps(summary.to_dict()))
    return 0 if summary.success else 1


async def run_forever() -> int:
    """Run the scheduler until SIGTERM/SIGINT."""
    try:
        config.validate_required()
    except ConfigError as e:
        logger.critical("Worker cannot start", error=str(e))
        return 1

    worker = QuestionWorker(config)
    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        logger.info("Received shutdown signal", signal=signum)
        shutdown_event.set()

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    try:
        worker.start()
        await worker.tick()
        await shutdown_event.wait()
    finally:
        worker.shutdown()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the question generation worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass and exit (exit code 1 if the pass failed)"
    )
    args = parser.parse_args()

    configure_logging(config.LOG_LEVEL)
    if args.once:
        return asyncio.run(run_once())
    return asyncio.run(run_forever())


if __name__ == "__main__":
    sys.exit(main())
