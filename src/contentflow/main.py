"""
contentflow entry point.

This file handles startup concerns (arg-parsing, env setup, logging) and launches the requested
agent: the interactive chat shell or a single pipeline AI step.
"""

import argparse
import logging
import sys
from pathlib import Path

from contentflow.config import settings
from contentflow.engine import build_engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )
    # Keep HTTP client chatter out of the agent logs
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the contentflow application.

    Sets up the command-line interface, initializes logging, assembles the engine and runs either
    the chat shell or one pipeline step.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the contentflow AI agent")
    parser.add_argument(
        "--mode",
        choices=["chat", "pipeline"],
        type=str.lower,
        default="chat",
        help="Interactive chat shell or a single pipeline step (default: chat)",
    )
    parser.add_argument("--job", type=Path, help="JSON job file for --mode pipeline")
    parser.add_argument(
        "--provider",
        type=str.lower,
        default=settings.PROVIDER,
        help="AI provider (default from env: %(default)s)",
    )
    parser.add_argument("--model", default=None, help="Model identifier (default: provider default)")
    parser.add_argument(
        "--max-turns",
        type=int,
        default=settings.MAX_TURNS,
        help="Maximum AI round-trips per run (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    if args.mode == "pipeline" and args.job is None:
        parser.error("--mode pipeline requires --job")

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting contentflow [%s mode, provider=%s]", args.mode, args.provider)
    secrets = {"OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_SEARCH_API_KEY"}
    logger.debug("Settings: %s", settings.model_dump(exclude=secrets))

    engine = build_engine(settings)

    # Lazy import to keep engine assembly independent of the terminal client
    from contentflow.client.cli import (  # pylint: disable=import-outside-toplevel
        run_cli,
        run_pipeline_job,
    )

    if args.mode == "chat":
        run_cli(engine, args.provider, args.model, args.max_turns)
    else:
        sys.exit(run_pipeline_job(engine, args.job, args.provider, args.model, args.max_turns))


if __name__ == "__main__":
    main()
