"""High-level orchestration of the crawl, content, image and validation stages."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

import requests

from .config import MigrationConfig
from .crawler import PageRenderer, crawl_site, load_image_list, load_page_records, save_crawl_results
from .images import ImageFetcher, write_manifest
from .models import CrawlResult, FetchResult
from .normalizer import ProcessResult, process_pages
from .transcoder import TreeResult, transcode_tree
from .validator import ValidationReport, validate_content, write_report

logger = logging.getLogger("site_migrator")


@dataclass
class MigrationSummary:
    """Single run report aggregated across every stage."""

    source_url: str
    pages_crawled: int = 0
    crawl_errors: int = 0
    pages_by_category: Dict[str, int] = field(default_factory=dict)
    pages_excluded: int = 0
    images_requested: int = 0
    images_downloaded: int = 0
    images_cached: int = 0
    images_failed: int = 0
    variants_written: int = 0
    variant_errors: int = 0
    elapsed_seconds: float = 0.0
    status: str = "running"
    error: str = ""


async def run_crawl_stage(
    config: MigrationConfig,
    renderer: Optional[PageRenderer] = None,
) -> CrawlResult:
    result = await crawl_site(config, renderer)
    save_crawl_results(result, config.crawl_dir, config.base_url)
    return result


def run_process_stage(config: MigrationConfig) -> ProcessResult:
    records = load_page_records(config.pages_data_path)
    logger.info("Loaded %d page record(s) from %s", len(records), config.pages_data_path)
    return process_pages(records, config)


async def run_images_stage(
    config: MigrationConfig,
    session: Optional[requests.Session] = None,
) -> FetchResult:
    images = load_image_list(config.images_list_path)
    fetcher = ImageFetcher(
        config.images_dir,
        session=session,
        batch_size=config.batch_size,
        batch_delay=config.batch_delay,
        timeout=config.download_timeout,
    )
    result = await fetcher.fetch_all(images)
    write_manifest(result, config.manifest_path)
    return result


def run_optimize_stage(config: MigrationConfig) -> TreeResult:
    return transcode_tree(config.images_dir, config.optimized_dir, config.transcode)


def run_validate_stage(config: MigrationConfig) -> ValidationReport:
    report = validate_content(config.content_dir, config.images_dir)
    write_report(report, config.validation_report_path)
    return report


def write_summary(summary: MigrationSummary, config: MigrationConfig) -> None:
    payload = {"migration_date": datetime.now(timezone.utc).isoformat(), "summary": asdict(summary)}
    config.migration_report_path.parent.mkdir(parents=True, exist_ok=True)
    config.migration_report_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
    )
    logger.info("Saved migration report to %s", config.migration_report_path)


async def run_migration(
    config: MigrationConfig,
    renderer: Optional[PageRenderer] = None,
    session: Optional[requests.Session] = None,
) -> MigrationSummary:
    """Run every stage in order; any stage exception aborts the run.

    The failure is recorded in the migration report before it propagates.
    """
    overall_start = time.perf_counter()
    summary = MigrationSummary(source_url=config.base_url)
    try:
        await _run_stages(config, summary, renderer, session)
    except Exception as exc:
        summary.status = "failed"
        summary.error = f"{exc.__class__.__name__}: {exc}"
        summary.elapsed_seconds = round(time.perf_counter() - overall_start, 3)
        write_summary(summary, config)
        raise

    summary.elapsed_seconds = round(time.perf_counter() - overall_start, 3)
    summary.status = "completed"
    write_summary(summary, config)
    logger.info(
        "Migration completed in %.2fs: %d page(s), %d image(s) downloaded, %d failed",
        summary.elapsed_seconds,
        sum(summary.pages_by_category.values()),
        summary.images_downloaded,
        summary.images_failed,
    )
    return summary


async def _run_stages(
    config: MigrationConfig,
    summary: MigrationSummary,
    renderer: Optional[PageRenderer],
    session: Optional[requests.Session],
) -> None:
    logger.info("STEP 1: Crawling %s", config.base_url)
    crawl_result = await run_crawl_stage(config, renderer)
    summary.pages_crawled = len(crawl_result.pages)
    summary.crawl_errors = len(crawl_result.errors)

    logger.info("STEP 2: Processing content")
    processed = run_process_stage(config)
    summary.pages_by_category = processed.category_counts()
    summary.pages_excluded = len(processed.exclusions)

    logger.info("STEP 3: Downloading images")
    fetched = await run_images_stage(config, session)
    summary.images_requested = fetched.requested
    summary.images_downloaded = len(fetched.downloaded)
    summary.images_cached = len(fetched.images) - len(fetched.downloaded)
    summary.images_failed = len(fetched.errors)

    logger.info("STEP 4: Optimizing images")
    tree = run_optimize_stage(config)
    summary.variants_written = len(tree.written)
    summary.variant_errors = len(tree.errors)
