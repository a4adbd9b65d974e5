"""Command-line entry point for the site migrator."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import Iterable, Sequence

from .config import MigrationConfig
from .pipeline import (
    run_crawl_stage,
    run_images_stage,
    run_migration,
    run_optimize_stage,
    run_process_stage,
    run_validate_stage,
)

logger = logging.getLogger("site_migrator.cli")

BASE_URL_ENV = "SITE_MIGRATOR_BASE_URL"
COMMANDS = ("crawl", "process", "images", "optimize", "validate", "full")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return ("full",)
    first = argv[0]
    if first in commands or first in ("-h", "--help"):
        return argv
    return ("full", *argv)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--base-url",
        default=os.getenv(BASE_URL_ENV),
        help=f"Root URL of the site being migrated (default: ${BASE_URL_ENV})",
    )
    parser.add_argument(
        "--output",
        default=".",
        type=Path,
        help="Project root where crawl data, content and assets are written",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=5,
        help="Number of pages or images processed concurrently",
    )
    parser.add_argument(
        "--batch-delay",
        type=float,
        default=1.0,
        help="Seconds to pause between batches",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_crawl_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=2.0,
        help="Seconds to wait after DOM content loads before reading HTML",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window while crawling",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Migrate a legacy website into Markdown content, redirects and optimized images.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    help_text = {
        "crawl": "Crawl the site and save page records",
        "process": "Convert saved page records into Markdown content",
        "images": "Download images discovered during the crawl",
        "optimize": "Generate responsive WebP/JPEG variants of downloaded images",
        "validate": "Check generated content for missing fields and broken references",
        "full": "Run crawl, process, images and optimize in order",
    }
    for command in COMMANDS:
        sub = subparsers.add_parser(command, help=help_text[command])
        _add_common_arguments(sub)
        if command in ("crawl", "full"):
            _add_crawl_arguments(sub)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    args = parser.parse_args(argv)
    if not args.base_url:
        parser.error(f"--base-url is required (or set {BASE_URL_ENV})")
    return args


def build_config(args: argparse.Namespace) -> MigrationConfig:
    config = MigrationConfig(
        base_url=args.base_url,
        output_root=Path(args.output).resolve(),
        batch_size=args.batch_size,
        batch_delay=args.batch_delay,
    )
    if hasattr(args, "timeout"):
        config.navigation_timeout = args.timeout
        config.settle_delay = args.wait
        config.headless = not args.headed
    return config


def _run_command(args: argparse.Namespace, config: MigrationConfig) -> None:
    if args.command == "crawl":
        result = asyncio.run(run_crawl_stage(config))
        logger.info(
            "%d pages crawled, %d images found, %d errors",
            len(result.pages),
            len(result.images),
            len(result.errors),
        )
    elif args.command == "process":
        processed = run_process_stage(config)
        logger.info("%d pages processed: %s", len(processed.documents), processed.category_counts())
    elif args.command == "images":
        fetched = asyncio.run(run_images_stage(config))
        logger.info("%d images downloaded, %d errors", len(fetched.downloaded), len(fetched.errors))
    elif args.command == "optimize":
        tree = run_optimize_stage(config)
        logger.info("%d variants written, %d errors", len(tree.written), len(tree.errors))
    elif args.command == "validate":
        report = run_validate_stage(config)
        for error in report.errors[:10]:
            logger.error("%s", error)
        for warning in report.warnings[:5]:
            logger.warning("%s", warning)
    else:
        summary = asyncio.run(run_migration(config))
        for category, count in sorted(summary.pages_by_category.items()):
            logger.info("  %s: %d", category, count)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    overall_start = time.perf_counter()
    try:
        config = build_config(args)
        _run_command(args, config)
    except Exception:  # pylint: disable=broad-except
        logger.exception("%s failed", args.command)
        return 1
    logger.info("Finished %s in %.2fs", args.command, time.perf_counter() - overall_start)
    return 0


if __name__ == "__main__":
    sys.exit(main())
