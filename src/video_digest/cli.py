"""
Command line interface for video-digest.

The CLI is the composition root: it loads the environment and config, sets
up logging once, wires the gateway, collaborators, fan-out, orchestrator
and scheduler together, and owns their shutdown.

Modes:

- (default): wait for the cron schedule and run the digest on each firing
- --run-now: run the digest once immediately; exit code reflects the result
- --run-now --dry-run: generate the message and print it instead of sending
- --test-send: send a fixed test message to every destination
"""

import argparse
import asyncio
import os
import signal
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional, List

from dotenv import load_dotenv

from . import __version__
from .config import load_config, get_schedule_config
from .delivery.fanout import FanOut
from .delivery.gateway import ConnectivityGate, EvolutionGateway
from .delivery.sender import DestinationSender
from .errors import ConfigError, VideoDigestError
from .llm.base import get_llm_provider
from .logging import setup_logging, get_logger, shutdown_logging
from .pipeline import StageOrchestrator
from .scheduler import DigestScheduler
from .summarizer import Summarizer
from .youtube import YouTubeFetcher

TEST_MESSAGE = (
    "*Test - video-digest*\n\n"
    "If you received this message, the Evolution API integration is working! \U0001F64F"
)

# Exit code for a run stopped by SIGINT/SIGTERM
EXIT_INTERRUPTED = 130

# Upper bound to wait for an in-flight run after a shutdown request
SHUTDOWN_GRACE_SECONDS = 60


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="video-digest",
        description="Summarize a channel's newest YouTube video and send it to WhatsApp every day."
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"video-digest {__version__}"
    )
    parser.add_argument(
        "--run-now",
        action="store_true",
        help="Run the digest once immediately instead of starting the scheduler"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="With --run-now: print the generated message instead of sending it"
    )
    parser.add_argument(
        "--test-send",
        action="store_true",
        help="Send a test message to every configured destination and exit"
    )
    parser.add_argument(
        "--config",
        help="Path to an optional JSON configuration file",
        default=None
    )
    parser.add_argument(
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
        default=None
    )

    args = parser.parse_args(argv)

    if args.dry_run and not args.run_now:
        parser.error("--dry-run requires --run-now")
    if args.test_send and args.run_now:
        parser.error("--test-send cannot be combined with --run-now")

    return args


def _load_env() -> None:
    """Load .env from the working directory or the project root."""
    env_paths = [
        ".env",
        os.path.join(os.path.dirname(__file__), '..', '..', '.env'),
    ]

    for env_path in env_paths:
        expanded = os.path.abspath(env_path)
        if os.path.exists(expanded):
            load_dotenv(expanded)
            return


@dataclass
class Components:
    """Everything one process needs, built once from the config."""
    gate: ConnectivityGate
    fan_out: FanOut
    orchestrator: StageOrchestrator
    stop_event: asyncio.Event


def build_components(
    config: Dict[str, Any],
    stop_event: asyncio.Event,
    dry_run: bool = False,
) -> Components:
    """
    Wire collaborators for one process.

    Raises:
        ConfigError: If gateway or LLM settings are incomplete
    """
    gateway = EvolutionGateway.from_config(config)
    gate = ConnectivityGate(gateway)
    fan_out = FanOut(
        DestinationSender.from_config(config),
        pacing_seconds=config["delivery"]["pacing_seconds"],
        stop_event=stop_event,
    )
    summarizer = Summarizer.from_config(get_llm_provider(config), config, stop_event=stop_event)

    orchestrator = StageOrchestrator(
        gate=gate,
        fetcher=YouTubeFetcher.from_config(config),
        summarizer=summarizer,
        deliverer=fan_out,
        destinations_raw=config["gateway"]["targets"],
        dry_run=dry_run,
        on_message=_print_message,
        stop_event=stop_event,
    )
    return Components(
        gate=gate,
        fan_out=fan_out,
        orchestrator=orchestrator,
        stop_event=stop_event,
    )


def _print_message(message: str) -> None:
    print("\n========== GENERATED MESSAGE ==========\n")
    print(message)
    print("\n=======================================\n")


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Route SIGINT/SIGTERM to the stop event."""
    logger = get_logger("cli")
    loop = asyncio.get_running_loop()

    def _request_stop(signame: str) -> None:
        if not stop_event.is_set():
            logger.info("%s received, shutting down...", signame)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig.name)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler
            signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(
                _request_stop, signal.Signals(signum).name))


async def cmd_run_now(config: Dict[str, Any], dry_run: bool = False) -> int:
    """
    Run one digest immediately.

    Returns:
        Exit code (0 for success, 1 for failure, 130 if stopped by a signal)
    """
    logger = get_logger("cli")
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    components = build_components(config, stop_event, dry_run=dry_run)
    logger.info("Mode: immediate run%s", " (dry run)" if dry_run else "")

    scheduler = DigestScheduler(components.orchestrator.run)
    result = await scheduler.run_now()

    logger.info("Run result: %s", result.to_dict())
    if stop_event.is_set():
        return EXIT_INTERRUPTED
    return 0 if result.success else 1


async def cmd_test_send(config: Dict[str, Any]) -> int:
    """
    Send TEST_MESSAGE to every destination.

    Returns:
        0 if at least one destination received it, 130 if stopped by a
        signal, else 1
    """
    logger = get_logger("cli")
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)
    components = build_components(config, stop_event)

    try:
        if not await components.gate.check_ready():
            logger.warning("WhatsApp is not connected, test message not sent")
            return 1
        report = await components.fan_out.deliver(TEST_MESSAGE, config["gateway"]["targets"])
    except VideoDigestError as e:
        logger.error("Test send failed: %s", e)
        return 1

    if stop_event.is_set():
        logger.warning("Test send interrupted after %d destination(s)", len(report.outcomes))
        return EXIT_INTERRUPTED
    logger.info("Test finished: %d/%d sent", report.success_count, len(report.outcomes))
    return 0 if report.success_count > 0 else 1


async def cmd_schedule(config: Dict[str, Any]) -> int:
    """
    Run the digest on the configured cron schedule until a stop signal.

    Returns:
        Exit code (0 on clean shutdown, 1 on invalid schedule)
    """
    logger = get_logger("cli")
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    components = build_components(config, stop_event)
    scheduler = DigestScheduler(components.orchestrator.run)

    logger.info("Mode: continuous scheduler")
    try:
        scheduler.start(get_schedule_config(config))
    except ConfigError as e:
        logger.error("Invalid schedule: %s", e)
        return 1

    logger.info("Waiting for the scheduled time. Use --run-now to run immediately.")
    await stop_event.wait()

    scheduler.shutdown()
    await _wait_for_in_flight(components.orchestrator)
    return 0


async def _wait_for_in_flight(orchestrator: StageOrchestrator) -> None:
    """Let a run that is already sending finish before the loop closes."""
    logger = get_logger("cli")
    if not orchestrator.running:
        return

    logger.info("Waiting for the current run to finish...")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + SHUTDOWN_GRACE_SECONDS
    while orchestrator.running and loop.time() < deadline:
        await asyncio.sleep(0.5)

    if orchestrator.running:
        logger.warning("Run still in progress after %ds, exiting anyway", SHUTDOWN_GRACE_SECONDS)


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = parse_args(argv)
    _load_env()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        setup_logging(log_level=args.log_level)
        logger = get_logger("cli")
        logger.error("Configuration error: %s", e)
        logger.error("Copy .env.example to .env and fill in every value.")
        shutdown_logging()
        sys.exit(1)

    setup_logging(config=config, log_level=args.log_level)
    logger = get_logger("cli")
    logger.info("video-digest %s started (Python %s)", __version__, sys.version.split()[0])

    try:
        if args.test_send:
            exit_code = asyncio.run(cmd_test_send(config))
        elif args.run_now:
            exit_code = asyncio.run(cmd_run_now(config, dry_run=args.dry_run))
        else:
            exit_code = asyncio.run(cmd_schedule(config))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        exit_code = 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        exit_code = 1
    finally:
        shutdown_logging()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
