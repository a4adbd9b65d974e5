"""Turn crawled page records into Markdown content files and redirects."""

from __future__ import annotations

import hashlib
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .classifier import (
    categorize,
    clean_description,
    clean_title,
    description_from_body,
    exclusion_reason,
)
from .config import MigrationConfig
from .markdown import compose_markdown, html_to_markdown
from .models import (
    ContentDocument,
    Exclusion,
    FrontMatter,
    PageRecord,
    RedirectRule,
    SeoMeta,
)
from .utils import normalize_url, redirect_source, slug_for_url

logger = logging.getLogger("site_migrator")

ARTICLE_DIR = "articles"
PAGE_DIR = "pages"


@dataclass
class ProcessResult:
    documents: List[ContentDocument] = field(default_factory=list)
    exclusions: List[Exclusion] = field(default_factory=list)
    failures: List[Exclusion] = field(default_factory=list)
    redirects: List[RedirectRule] = field(default_factory=list)

    def category_counts(self) -> Dict[str, int]:
        return dict(Counter(document.category for document in self.documents))


def collection_for(category: str) -> str:
    return ARTICLE_DIR if category == "article" else PAGE_DIR


def _fallback_title(record: PageRecord, slug: str) -> str:
    for heading in record.headings:
        if heading.level == 1 and heading.text:
            return heading.text
    return slug.replace("-", " ").title()


def normalize_page(
    record: PageRecord,
    config: MigrationConfig,
    publish_date: Optional[str] = None,
    slugs: Optional[Mapping[str, str]] = None,
) -> Union[ContentDocument, Exclusion]:
    """Classify a page and build its content document, or explain its exclusion.

    ``slugs`` holds the final slug of every page in the run, so links and the
    page's own slug agree after collisions were resolved.
    """
    reason = exclusion_reason(record)
    if reason:
        logger.info("Skipping %s (%s): %s", record.url, reason, record.title)
        return Exclusion(url=record.url, reason=reason)

    slugs = slugs or {}
    slug = slugs.get(normalize_url(record.url)) or slug_for_url(record.url, config.base_url)
    category = categorize(record)
    body, _ = html_to_markdown(
        record.main_html,
        record.url,
        config.base_url,
        image_prefix=config.image_path_prefix,
        unwanted_selectors=config.unwanted_selectors,
        slugs=slugs,
    )

    title = clean_title(record.title) or _fallback_title(record, slug)
    description = clean_description(record.meta.description) or description_from_body(body)
    frontmatter = FrontMatter(
        title=title,
        description=description,
        publish_date=publish_date or date.today().isoformat(),
        category=category,
        original_url=record.url,
        slug=slug,
        seo=SeoMeta(
            title=record.meta.og_title or record.title,
            description=clean_description(record.meta.og_description or record.meta.description),
            canonical=record.meta.canonical,
        ),
    )
    return ContentDocument(slug=slug, category=category, frontmatter=frontmatter, body=body)


def disambiguate_slug(slug: str, url: str) -> str:
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"


def assign_slugs(records: Sequence[PageRecord], base_url: str) -> Dict[str, str]:
    """Map each normalized content page URL to a unique slug.

    The first page to claim a slug keeps it; later pages get a hash suffix.
    """
    slugs: Dict[str, str] = {}
    owners: Dict[str, str] = {}
    for record in records:
        key = normalize_url(record.url)
        if key in slugs or exclusion_reason(record):
            continue
        slug = slug_for_url(record.url, base_url)
        if slug in owners:
            new_slug = disambiguate_slug(slug, record.url)
            logger.warning(
                "Slug %s already used by %s; writing %s as %s",
                slug,
                owners[slug],
                record.url,
                new_slug,
            )
            slug = new_slug
        owners[slug] = record.url
        slugs[key] = slug
    return slugs


def write_document(document: ContentDocument, content_dir: Path) -> Path:
    output_dir = content_dir / collection_for(document.category)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{document.slug}.md"
    output_path.write_text(compose_markdown(document.frontmatter, document.body), encoding="utf-8")
    document.output_path = output_path
    return output_path


def build_redirects(documents: Sequence[ContentDocument], base_url: str) -> List[RedirectRule]:
    return [
        RedirectRule(
            source=redirect_source(document.frontmatter.original_url, base_url),
            target=f"/{document.slug}",
        )
        for document in documents
    ]


def write_redirects(redirects: Sequence[RedirectRule], json_path: Path, text_path: Path) -> None:
    """Write the redirect map as JSON and as ``from to status`` lines."""
    json_path.parent.mkdir(parents=True, exist_ok=True)
    json_path.write_text(
        json.dumps([rule.to_dict() for rule in redirects], ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    text_path.parent.mkdir(parents=True, exist_ok=True)
    text_path.write_text("\n".join(rule.to_line() for rule in redirects) + "\n", encoding="utf-8")


def process_pages(
    records: Sequence[PageRecord],
    config: MigrationConfig,
    write: bool = True,
) -> ProcessResult:
    """Normalize every record, writing documents and the redirect map.

    A failure on one page is logged and recorded; the remaining pages are
    still processed.
    """
    result = ProcessResult()
    slugs = assign_slugs(records, config.base_url)

    for record in records:
        try:
            outcome = normalize_page(record, config, slugs=slugs)
            if isinstance(outcome, Exclusion):
                result.exclusions.append(outcome)
                continue

            if write:
                write_document(outcome, config.content_dir)
            result.documents.append(outcome)
            logger.info("Processed %s (%s)", outcome.frontmatter.title, outcome.category)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Error processing %s: %s", record.url, exc)
            result.failures.append(Exclusion(url=record.url, reason=str(exc)))

    result.redirects = build_redirects(result.documents, config.base_url)
    if write:
        write_redirects(result.redirects, config.redirects_path, config.host_redirects_path)

    logger.info(
        "Filtering: %d total -> %d content pages (%d excluded, %d failed)",
        len(records),
        len(result.documents),
        len(result.exclusions),
        len(result.failures),
    )
    return result
