"""Same-origin link-graph crawl driven by a headless browser."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from playwright.async_api import (
    Browser,
    BrowserContext,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .classifier import categorize
from .config import DEFAULT_CONTENT_SELECTORS, MigrationConfig
from .content import extract_page_record
from .models import CrawlResult, CrawlVisitState, ImageRef, PageRecord
from .utils import (
    has_asset_extension,
    is_same_origin,
    normalize_url,
    safe_record_name,
)

logger = logging.getLogger("site_migrator")


@dataclass
class RenderedPage:
    """HTML captured after the page settled, plus the URL the browser ended on."""

    html: str
    final_url: str


class PageRenderer(Protocol):
    async def render(self, url: str) -> RenderedPage:
        ...


class PlaywrightRenderer:
    """Render pages in one shared Chromium context, one tab per URL."""

    def __init__(self, config: MigrationConfig) -> None:
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "PlaywrightRenderer":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
        self._context = await self._browser.new_context(
            user_agent=self.config.user_agent,
            viewport={"width": 1920, "height": 1080},
        )
        logger.info("Browser launched")
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._context is not None:
            await self._context.close()
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        logger.debug("Browser closed")

    async def render(self, url: str) -> RenderedPage:
        """Navigate to a URL and return the HTML once dynamic content settles."""
        if self._context is None:
            raise RuntimeError("PlaywrightRenderer must be used as an async context manager")
        page = await self._context.new_page()
        page.set_default_navigation_timeout(self.config.navigation_timeout * 1000)
        try:
            await page.goto(url, wait_until="domcontentloaded")
            if self.config.settle_delay:
                await page.wait_for_timeout(int(self.config.settle_delay * 1000))
            html = await page.content()
            final_url = page.url
        finally:
            await page.close()
        return RenderedPage(html=html, final_url=final_url)


async def _visit(
    url: str,
    renderer: PageRenderer,
    state: CrawlVisitState,
    same_origin: Callable[[str], bool],
    content_selectors: Sequence[str],
) -> None:
    if not state.mark_visited(url):
        return
    logger.info("Crawling %s", url)
    try:
        rendered = await renderer.render(url)
    except PlaywrightTimeoutError as exc:
        logger.error("Timeout while loading %s: %s", url, exc)
        state.add_error(url, f"Timeout: {exc}")
        return
    except Exception as exc:  # pylint: disable=broad-except
        logger.error("Error crawling %s: %s", url, exc)
        state.add_error(url, str(exc) or exc.__class__.__name__)
        return

    final_url = normalize_url(rendered.final_url or url)
    if final_url != url:
        if not same_origin(final_url):
            logger.warning("%s redirected outside the site to %s", url, final_url)
            state.add_error(url, f"Redirected outside scope to {final_url}")
            return
        if not state.mark_visited(final_url):
            logger.debug("%s redirected to already captured %s", url, final_url)
            return

    try:
        record = extract_page_record(rendered.html, url, final_url, content_selectors)
    except Exception as exc:  # pylint: disable=broad-except
        logger.error("Failed to extract %s: %s", url, exc)
        state.add_error(url, f"Extraction failed: {exc}")
        return

    state.pages.append(record)
    for link in record.links:
        if not same_origin(link.url):
            continue
        if has_asset_extension(link.url):
            state.add_skipped_asset(link.url)
        else:
            state.add_link(link.url)
    for image in record.images:
        state.add_image(image)
    logger.info("Extracted %s", record.title or "Untitled")


async def crawl(
    start_url: str,
    renderer: PageRenderer,
    is_same_origin_fn: Optional[Callable[[str], bool]] = None,
    batch_size: int = 5,
    batch_delay: float = 1.0,
    content_selectors: Sequence[str] = DEFAULT_CONTENT_SELECTORS,
) -> CrawlResult:
    """Visit every same-origin page reachable from ``start_url`` exactly once.

    The start page is fetched first; afterwards the frontier (discovered but
    unvisited links) is processed in batches of ``batch_size`` with a pause of
    ``batch_delay`` seconds between batches, and recomputed until empty.
    """
    start = normalize_url(start_url)
    same_origin = is_same_origin_fn or (lambda candidate: is_same_origin(candidate, start))
    state = CrawlVisitState()

    await _visit(start, renderer, state, same_origin, content_selectors)

    frontier = state.frontier()
    while frontier:
        logger.info("Processing frontier of %d page(s)", len(frontier))
        for offset in range(0, len(frontier), batch_size):
            batch = frontier[offset : offset + batch_size]
            await asyncio.gather(
                *(
                    _visit(url, renderer, state, same_origin, content_selectors)
                    for url in batch
                )
            )
            if batch_delay:
                await asyncio.sleep(batch_delay)
        frontier = state.frontier()

    logger.info(
        "Crawl finished: %d page(s), %d image(s), %d error(s)",
        len(state.pages),
        len(state.discovered_images),
        len(state.errors),
    )
    return CrawlResult(
        start_url=start,
        pages=list(state.pages),
        images=list(state.discovered_images.values()),
        errors=list(state.errors),
        skipped_assets=list(state.skipped_assets),
        visited=sorted(state.visited),
    )


async def crawl_site(
    config: MigrationConfig,
    renderer: Optional[PageRenderer] = None,
) -> CrawlResult:
    """Crawl ``config.base_url``, launching Playwright unless a renderer is given."""
    kwargs: Dict[str, Any] = {
        "batch_size": config.batch_size,
        "batch_delay": config.batch_delay,
        "content_selectors": config.content_selectors,
    }
    if renderer is not None:
        return await crawl(config.base_url + "/", renderer, **kwargs)
    async with PlaywrightRenderer(config) as browser_renderer:
        return await crawl(config.base_url + "/", browser_renderer, **kwargs)


def _average_text_size(pages: Sequence[PageRecord]) -> int:
    if not pages:
        return 0
    return round(sum(len(page.text) for page in pages) / len(pages))


def _heading_counts(pages: Sequence[PageRecord]) -> Dict[str, int]:
    counts: Counter = Counter()
    for page in pages:
        for heading in page.headings:
            counts[f"h{heading.level}"] += 1
    return dict(sorted(counts.items()))


def build_crawl_summary(result: CrawlResult, base_url: str) -> Dict[str, Any]:
    categories = Counter(categorize(page) for page in result.pages)
    return {
        "crawl_date": datetime.now(timezone.utc).isoformat(),
        "base_url": base_url,
        "total_pages": len(result.pages),
        "total_images": len(result.images),
        "errors": [asdict(error) for error in result.errors],
        "visited_urls": result.visited,
        "skipped_assets": result.skipped_assets,
        "performance": {
            "average_page_size": _average_text_size(result.pages),
            "common_elements": _heading_counts(result.pages),
            "content_types": dict(categories),
        },
    }


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def save_crawl_results(result: CrawlResult, crawl_dir: Path, base_url: str) -> Dict[str, Any]:
    """Persist page records, the image list and the crawl summary."""
    pages_dir = crawl_dir / "pages"
    pages_dir.mkdir(parents=True, exist_ok=True)

    _write_json(crawl_dir / "pages-data.json", [page.to_dict() for page in result.pages])
    for page in result.pages:
        _write_json(pages_dir / f"{safe_record_name(page.url, base_url)}.json", page.to_dict())
    _write_json(crawl_dir / "images-list.json", [asdict(image) for image in result.images])

    summary = build_crawl_summary(result, base_url)
    _write_json(crawl_dir / "crawl-summary.json", summary)
    logger.info(
        "Saved crawl results to %s (%d pages, %d images, %d errors)",
        crawl_dir,
        len(result.pages),
        len(result.images),
        len(result.errors),
    )
    return summary


def load_page_records(path: Path) -> List[PageRecord]:
    """Read ``pages-data.json``; a missing or malformed file is a stage failure."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of page records")
    return [PageRecord.from_dict(item) for item in data]


def load_image_list(path: Path) -> List[ImageRef]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of image entries")
    return [ImageRef.coerce(item) for item in data]
