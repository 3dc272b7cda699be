"""CLI for Tag Reaper."""

import argparse
import sys
from pathlib import Path

from .config import Config
from .services.reaper import Reaper


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description=(
            "Reap registry tags not used by any running workload beyond "
            "a retention count."
        )
    )
    parser.add_argument(
        "-c",
        "--config-file",
        "--file",
        type=Path,
        help="reaper config file",
        default=Path("/etc/tag-reaper/config.yaml"),
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
        default=False,
    )
    parser.add_argument(
        "-x",
        "--dry-run",
        action="store_true",
        help="Dry run only: do not delete any images",
        default=False,
    )
    parser.add_argument(
        "-t",
        "--task",
        action="append",
        help="Run only this task (may be repeated)",
        default=[],
    )
    return parser.parse_args(argv)


def _load_config(args: argparse.Namespace) -> Config:
    cfg = Config.from_file(args.config_file)

    # Override settings in config, if dry_run or debug are specified here
    if args.debug:
        cfg.debug = True
    if args.dry_run:
        for task in cfg.tasks:
            task.registry.dry_run = True
    return cfg


def main(argv: list[str] | None = None) -> int:
    """Run the configured cleanup tasks; nonzero exit on any error."""
    args = _parse_args(argv)
    cfg = _load_config(args)

    reaper = Reaper(cfg)
    reaper.run(args.task)
    reaper.report()
    if any(reaper.errors().values()):
        return 1
    return 0


def reap() -> None:
    """Console script entry point."""
    sys.exit(main())
