#!/usr/bin/env python3
"""
Notification worker CLI - the scheduler-facing entry points.

Usage:
    uv run python -m notification.worker process          # one "process now" run
    uv run python -m notification.worker cleanup          # weekly cleanup jobs
    uv run python -m notification.worker serve            # loop: process every 5 min, cleanup weekly
    uv run python -m notification.worker rq --burst       # RQ worker for async first attempts
    uv run python -m notification.worker rotate-secrets --shared-secret ... --gateway-key ... --updated-by ops
    uv run python -m notification.worker init-db
"""

import os
import sys
import json
import time
import signal
import argparse
import logging
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from redis import Redis
from rq import Worker

from core.app_context import AppContext
from core.config_loader import load_config
from notification.credentials import rotate_secrets
from notification.exceptions import DeliveryConfigError
from notification.maintenance import run_cleanup

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
running = True


def signal_handler(sig, frame):
    global running
    logger.info("Shutdown signal received")
    running = False


def process_now(context: AppContext) -> dict:
    result = context.processor.process_due()
    return result.to_dict()


def cleanup_now(context: AppContext) -> dict:
    return run_cleanup(context.session_factory, context.config)


def serve(context: AppContext) -> None:
    """Run process/cleanup on their configured intervals until signalled."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    process_interval = context.config.schedule.process_interval_seconds
    cleanup_interval = context.config.schedule.cleanup_interval_seconds
    last_cleanup = 0.0

    logger.info(f"Serving: process every {process_interval}s, cleanup every {cleanup_interval}s")
    while running:
        cycle_start = time.time()
        try:
            process_now(context)
            if cycle_start - last_cleanup >= cleanup_interval:
                cleanup_now(context)
                last_cleanup = cycle_start
        except Exception as e:
            logger.error(f"Error in worker loop: {e}", exc_info=True)

        # Sleep in short chunks to allow responsive shutdown
        while running and time.time() - cycle_start < process_interval:
            time.sleep(1)


def start_rq_worker(redis_url: str, burst: bool = False, queues: list = None):
    """Start the RQ worker for async first attempts."""
    if queues is None:
        queues = ['notifications']

    logger.info(f"Starting RQ Worker")
    logger.info(f"Redis URL: {redis_url}")
    logger.info(f"Queues: {', '.join(queues)}")
    logger.info(f"Burst mode: {burst}")

    try:
        redis_conn = Redis.from_url(redis_url)
        redis_conn.ping()
        logger.info("✓ Connected to Redis")

        worker = Worker(queues, connection=redis_conn)

        if burst:
            logger.info("Running in burst mode...")
            worker.work(burst=True)
        else:
            logger.info("Worker started. Press Ctrl+C to stop.")
            worker.work()

    except KeyboardInterrupt:
        logger.info("\nWorker stopped")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Ringcall Notification Worker')
    parser.add_argument('--config', default=os.environ.get('RINGCALL_CONFIG', 'config.yaml'))
    parser.add_argument('--verbose', action='store_true')

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('process', help='Drain due retry items once')
    sub.add_parser('cleanup', help='Deactivate stale subscriptions and prune old rows')
    sub.add_parser('serve', help='Run process/cleanup on their schedule until stopped')
    sub.add_parser('init-db', help='Create tables and seed the delivery config row')

    rq_parser = sub.add_parser('rq', help='Run the RQ worker for async first attempts')
    rq_parser.add_argument('--burst', action='store_true', help='Process all and exit')
    rq_parser.add_argument('--queues', nargs='+', default=['notifications'])

    rotate = sub.add_parser('rotate-secrets', help='Rotate the push gateway credentials')
    rotate.add_argument('--shared-secret', required=True)
    rotate.add_argument('--gateway-key', required=True)
    rotate.add_argument('--updated-by', required=True)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = load_config(args.config)

    if args.command == 'init-db':
        from database.init_db import init_db
        init_db()
        return 0

    if args.command == 'rq':
        start_rq_worker(config.notifications.redis_url or 'redis://localhost:6379/0', args.burst, args.queues)
        return 0

    context = AppContext.build(config)

    if args.command == 'process':
        print(json.dumps(process_now(context), indent=2))
    elif args.command == 'cleanup':
        print(json.dumps(cleanup_now(context), indent=2))
    elif args.command == 'serve':
        serve(context)
    elif args.command == 'rotate-secrets':
        try:
            summary = rotate_secrets(args.shared_secret, args.gateway_key, args.updated_by, context.session_factory)
        except DeliveryConfigError as e:
            logger.error(f"Rotation rejected: {e}")
            return 2
        print(json.dumps(summary, indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
