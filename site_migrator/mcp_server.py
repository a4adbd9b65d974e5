"""MCP server exposing the migration stages as tools."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from .config import MigrationConfig
from .pipeline import (
    run_crawl_stage,
    run_images_stage,
    run_optimize_stage,
    run_process_stage,
    run_validate_stage,
)

logger = logging.getLogger("site_migrator.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="site-migrator")


def _config(base_url: str, output: str) -> MigrationConfig:
    return MigrationConfig(base_url=base_url, output_root=Path(output).expanduser().resolve())


@mcp.tool()
async def crawl_site(base_url: str, output: str = ".") -> str:
    """Crawl every same-origin page of a site and save the page records."""
    result = await run_crawl_stage(_config(base_url, output))
    return json.dumps(
        {
            "pages": len(result.pages),
            "images": len(result.images),
            "skipped_assets": len(result.skipped_assets),
            "errors": [asdict(error) for error in result.errors],
        }
    )


@mcp.tool()
async def process_content(base_url: str, output: str = ".") -> str:
    """Convert saved page records into Markdown content files and redirects."""
    result = run_process_stage(_config(base_url, output))
    return json.dumps(
        {
            "documents": [str(document.output_path) for document in result.documents],
            "categories": result.category_counts(),
            "excluded": [asdict(exclusion) for exclusion in result.exclusions],
        }
    )


@mcp.tool()
async def fetch_images(base_url: str, output: str = ".") -> str:
    """Download the images discovered during the crawl."""
    result = await run_images_stage(_config(base_url, output))
    return json.dumps(
        {
            "requested": result.requested,
            "downloaded": len(result.downloaded),
            "errors": [asdict(error) for error in result.errors],
        }
    )


@mcp.tool()
async def optimize_images(base_url: str, output: str = ".") -> str:
    """Generate responsive WebP and JPEG variants for downloaded images."""
    tree = run_optimize_stage(_config(base_url, output))
    return json.dumps(
        {
            "written": [str(path) for path in tree.written],
            "copied": [str(path) for path in tree.copied],
            "errors": [{"path": str(path), "error": error} for path, error in tree.errors],
        }
    )


@mcp.tool()
async def validate_content(base_url: str, output: str = ".") -> str:
    """Validate generated content and return the findings."""
    report = run_validate_stage(_config(base_url, output))
    return json.dumps(
        {
            "summary": asdict(report.stats),
            "errors": report.errors,
            "warnings": report.warnings,
        }
    )


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
