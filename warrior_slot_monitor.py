#!/usr/bin/env python3
"""
Warrior recreation slot monitor

Polls the UWaterloo Warrior booking site for the configured programs and
sends an ntfy push notification when a full program opens up.
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from availability_client import AvailabilityClient
from config import MonitorConfig, config_path, load_config
from errors import ConfigError, NotifyError
from notifier import NotificationDispatcher
from orchestrator import Orchestrator
from scheduler import PollScheduler
from state_store import StateStore

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Warrior recreation slot monitor")
    parser.add_argument('--config', help="Path to config.toml (default: $WARRIOR_CONFIG or ./config.toml)")
    parser.add_argument('--once', action='store_true', help="Run a single check of every program and exit")
    parser.add_argument('--verbose', action='store_true', help="Enable debug logging")
    return parser.parse_args(argv)


def startup_message(config: MonitorConfig) -> str:
    lines = ["Monitoring:"]
    for program in config.program_ids:
        lines.append(f"• {program.name} ({program.id})")
    lines.append(f"\nChecking every {config.interval_seconds} seconds for newly opened spots.")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"\nPlease check {config_path(args.config)}. It needs at least:")
        print('interval_seconds = 60')
        print('ntfy_endpoint = "https://ntfy.sh/your-topic"')
        print('[[program_ids]]')
        print('id = "program-guid"')
        print('name = "Display name"')
        return 1

    logger.info(f"Checking every {config.interval_seconds} seconds")
    logger.info(f"Notifications will be sent to {config.ntfy_endpoint}")
    logger.info(f"Monitoring {len(config.program_ids)} programs")
    for program in config.program_ids:
        logger.info(f"  {program.name} ({program.id})")

    client = AvailabilityClient(timeout=config.request_timeout_seconds, pool_size=config.max_concurrency)
    dispatcher = NotificationDispatcher(config.ntfy_endpoint, timeout=config.request_timeout_seconds)
    orchestrator = Orchestrator(
        client,
        StateStore(config.program_ids),
        dispatcher,
        max_concurrency=config.max_concurrency,
        backoff_threshold=config.backoff_threshold,
        max_backoff_ticks=config.max_backoff_ticks,
    )

    try:
        if config.notify_on_startup:
            try:
                dispatcher.send_text("Warrior Slot Monitor Started", startup_message(config))
            except NotifyError as e:
                logger.error(f"Startup notification failed: {e}")

        if args.once:
            orchestrator.run_tick()
            return 0

        scheduler = PollScheduler(config.interval_seconds)

        def handle_signal(signum, frame):
            scheduler.stop()

        previous_handlers = {
            signum: signal.signal(signum, handle_signal) for signum in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            orchestrator.run(scheduler)
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)
        if scheduler.stopped:
            logger.info("Received shutdown signal, finished current check")
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        client.close()
        dispatcher.close()
        logger.info("Shutting down...")

    return 0


if __name__ == "__main__":
    sys.exit(main())
