"""CLI entry point: one briefing run written as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from gameday_briefing.briefing.runner import build_runner
from gameday_briefing.core.config import LOG_LEVEL, validate_startup_config
from gameday_briefing.core.constants import DEFAULT_RUN_TYPE, LOOKBACK_HOURS
from gameday_briefing.core.errors import ConfigError
from gameday_briefing.models.briefing import Briefing

logger = logging.getLogger(__name__)


def _atomic_write_json(path: str, payload: Briefing) -> None:
    """Write to a temp file, then swap it into place."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gameday-briefing", description="Build an NFL gameday briefing")
    parser.add_argument("--subject", default="", help="Team or player to focus the news feeds on")
    parser.add_argument(
        "--run-type",
        default=DEFAULT_RUN_TYPE,
        choices=sorted(LOOKBACK_HOURS),
        help=f"Lookback profile (default: {DEFAULT_RUN_TYPE})",
    )
    parser.add_argument("--output", help="Write the briefing JSON here instead of stdout")
    parser.add_argument("--days", type=int, help="Base schedule window in days")
    return parser


async def _run(subject: str, run_type: str, days: int | None) -> Briefing:
    runner = build_runner(base_days=days)
    try:
        return await runner.run(subject, run_type)
    finally:
        await runner.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        validate_startup_config()
        if args.days is not None and args.days <= 0:
            raise ConfigError(f"--days must be positive (got {args.days})")
    except ConfigError as exc:
        logger.error("configuration error: %s", exc)
        return 2

    briefing = asyncio.run(_run(args.subject.strip(), args.run_type, args.days))

    if args.output:
        _atomic_write_json(args.output, briefing)
        logger.info("wrote briefing to %s", args.output)
    else:
        json.dump(briefing, sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
