"""Command-line entrypoint.

Loads the message configuration, compiles every message (refusing to start on
any configuration or compile error) and, given a weather snapshot, prints the
rendered messages one per line. Positions are kept: skipped or failed messages
print as empty lines.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from whattowear import __version__
from whattowear.config.loader import load_config
from whattowear.config.settings import Settings
from whattowear.core.exceptions import CompileError, ConfigurationError
from whattowear.evaluation.evaluator import MessageEvaluator
from whattowear.utils.logging import configure_logging, get_logger
from whattowear.weather.data import load_evaluation_data
from whattowear.weather.environment import build_data_schema, build_environment

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="whattowear",
        description="Render weather-conditioned messages from a configuration file",
    )
    parser.add_argument("--config", type=Path, help="Config file (YAML)")
    parser.add_argument("--data", type=Path, help="Weather snapshot (JSON) to evaluate against")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Turns on verbose information on the update process. Otherwise, only errors cause output.",
    )
    parser.add_argument("--debug", action="store_true", help="Turns on debug information")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    parser.add_argument("--workers", type=int, help="Evaluate messages on N threads")
    parser.add_argument("--version", action="store_true", help="Print version information and exit")
    return parser


def resolve_log_level(args: argparse.Namespace, settings: Settings) -> str:
    if args.debug:
        return "DEBUG"
    if args.verbose:
        return "INFO"
    return settings.log_level


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"whattowear version {__version__}")
        return 0

    try:
        settings = Settings()
    except ValidationError as e:
        configure_logging(level="ERROR", json_logs=args.json_logs)
        logger.error("Invalid settings: %s", e)
        return 1

    configure_logging(
        level=resolve_log_level(args, settings),
        json_logs=args.json_logs or settings.json_logs,
    )

    config_file = args.config or settings.config_file
    if config_file is None:
        logger.error("Please provide a config file to read")
        parser.print_usage(sys.stderr)
        return 1

    workers = args.workers if args.workers is not None else settings.max_workers
    if workers < 1:
        parser.error("--workers must be at least 1")

    try:
        config = load_config(config_file)
        evaluator = MessageEvaluator(build_data_schema(), max_workers=workers)
        compiled = evaluator.compile_all(config.messages)
    except ConfigurationError as e:
        logger.error("Could not load config file: %s", e)
        return 1
    except CompileError as e:
        logger.error("Could not compile messages: %s", e)
        return 1

    if args.data is None:
        print(f"Compiled {len(compiled)} messages")
        return 0

    try:
        data = load_evaluation_data(args.data)
    except ConfigurationError as e:
        logger.error("Could not load weather data: %s", e)
        return 1

    for line in evaluator.evaluate_all(compiled, build_environment(data)):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
