"""
Entry point for running the topic discovery service.

Usage:
    python -m smipmqtt.runtime [--data-root DIR] [--events FILE|-]
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import NoReturn

import structlog

from smipmqtt.config import Settings
from smipmqtt.runtime.orchestrator import Orchestrator
from smipmqtt.runtime.sources import replay

logger = structlog.get_logger()


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure structlog on top of stdlib logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smip-mqtt",
        description="Learn MQTT topic names and cache subscribed values",
    )
    parser.add_argument("--data-root", type=Path, help="Shared data root directory")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-format", choices=["console", "json"])
    parser.add_argument("--heartbeat-interval", type=float, help="Seconds between heartbeats")
    parser.add_argument(
        "--events",
        help="JSON-lines event feed to replay ('-' for stdin); exits when done",
    )
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Environment settings overridden by command-line options."""
    overrides = {
        "data_root": args.data_root,
        "log_level": args.log_level,
        "log_format": args.log_format,
        "heartbeat_interval_seconds": args.heartbeat_interval,
    }
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


async def run_service(settings: Settings, events: str | None = None) -> None:
    """Run the service until the feed is exhausted or a signal arrives."""
    logger.info("smip_mqtt_initializing", data_root=str(settings.data_root))

    orchestrator = Orchestrator(settings)

    shutdown_event = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_signal, sig)
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            logger.debug("signal_handler_unsupported", signal=sig.name)

    try:
        async with orchestrator.run_context():
            logger.info("smip_mqtt_running", services=orchestrator.service_registry.list_names())

            if events is not None:
                if events == "-":
                    await replay(orchestrator.message_bus, sys.stdin)
                else:
                    with open(events, encoding="utf-8") as f:
                        await replay(orchestrator.message_bus, f)
            else:
                await shutdown_event.wait()

            logger.info("service_health", **orchestrator.get_health())

    except Exception:
        logger.exception("smip_mqtt_error")
        raise

    logger.info("smip_mqtt_stopped")


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = load_settings(args)
    configure_logging(settings.log_level, settings.log_format)

    try:
        asyncio.run(run_service(settings, args.events))
        sys.exit(0)
    except KeyboardInterrupt:
        logger.info("interrupted")
        sys.exit(130)
    except Exception:
        logger.exception("fatal_error")
        sys.exit(1)


if __name__ == "__main__":
    main()
