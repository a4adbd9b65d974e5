"""Post-migration checks over the generated content tree."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .normalizer import ARTICLE_DIR, PAGE_DIR
from .utils import has_asset_extension

logger = logging.getLogger("site_migrator")

REQUIRED_FIELDS = ("title", "description", "publishDate", "category")
MIN_BODY_CHARS = 100

_FRONTMATTER = re.compile(r"^---\n(.*?)\n---\n?", re.DOTALL)
_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\(([^)\s]+)[^)]*\)")
_HTML_IMAGE = re.compile(r"<img\b[^>]*\bsrc=\"([^\"]+)\"", re.IGNORECASE)
_INTERNAL_LINK = re.compile(r"(?:\]\(|href=\")(/[^)\"#?\s]*)")


@dataclass
class ValidationStats:
    total_pages: int = 0
    total_articles: int = 0
    pages_with_missing_images: int = 0
    broken_internal_links: int = 0
    missing_descriptions: int = 0


@dataclass
class ValidationReport:
    stats: ValidationStats = field(default_factory=ValidationStats)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def recommendations(self) -> List[str]:
        items: List[str] = []
        if self.stats.missing_descriptions:
            items.append("Add meaningful descriptions to pages missing them")
        if self.stats.pages_with_missing_images:
            items.append("Fix broken image references or remove them from content")
        if self.stats.broken_internal_links:
            items.append("Review internal links that do not match any migrated page")
        if self.errors:
            items.append("Fix all validation errors before deployment")
        if self.stats.total_articles == 0:
            items.append("Consider creating a blog section if the original site had articles")
        return items


def _split_document(text: str) -> Optional[Tuple[str, str]]:
    match = _FRONTMATTER.match(text)
    if not match:
        return None
    return match.group(1), text[match.end():]


def _field_value(frontmatter: str, name: str) -> Optional[str]:
    match = re.search(rf"^{re.escape(name)}:\s*\"((?:[^\"\\]|\\.)*)\"", frontmatter, re.MULTILINE)
    return match.group(1) if match else None


def _image_references(body: str) -> List[str]:
    return _MARKDOWN_IMAGE.findall(body) + _HTML_IMAGE.findall(body)


def _content_files(content_dir: Path, collection: str) -> List[Path]:
    directory = content_dir / collection
    if not directory.is_dir():
        return []
    return sorted(directory.glob("*.md"))


def _validate_file(
    path: Path,
    kind: str,
    images_dir: Path,
    known_slugs: Set[str],
    report: ValidationReport,
    used_images: Set[str],
) -> None:
    name = path.name
    parts = _split_document(path.read_text(encoding="utf-8"))
    if parts is None:
        report.errors.append(f"{name}: Missing frontmatter")
        return
    frontmatter, body = parts

    for required in REQUIRED_FIELDS:
        if not re.search(rf"^{re.escape(required)}:", frontmatter, re.MULTILINE):
            report.errors.append(f"{name}: Missing required field '{required}'")

    description = _field_value(frontmatter, "description")
    if description is not None and not description.strip():
        report.warnings.append(f"{name}: Empty description")
        report.stats.missing_descriptions += 1

    stripped = body.strip()
    if len(stripped) < MIN_BODY_CHARS:
        report.warnings.append(f"{name}: Very short content ({len(stripped)} chars)")

    for target in _INTERNAL_LINK.findall(body):
        if has_asset_extension(target):
            continue
        slug = target.strip("/") or "index"
        if slug not in known_slugs:
            report.stats.broken_internal_links += 1
            report.warnings.append(f"{name}: Internal link to unknown page {target}")

    references = _image_references(body)
    if not references and kind == "article":
        report.warnings.append(f"{name}: No images found")

    missing = False
    for reference in references:
        image_name = Path(reference).name
        used_images.add(image_name)
        if "/assets/images/" not in reference:
            continue
        if not (images_dir / image_name).exists():
            report.errors.append(f"{name}: Referenced image not found: {image_name}")
            missing = True
    if missing:
        report.stats.pages_with_missing_images += 1


def validate_content(content_dir: Path, images_dir: Path) -> ValidationReport:
    """Inspect generated content files; findings are reported, never fixed."""
    report = ValidationReport()
    pages = _content_files(content_dir, PAGE_DIR)
    articles = _content_files(content_dir, ARTICLE_DIR)
    if not pages and not articles:
        raise FileNotFoundError(f"No content files found under {content_dir}")

    known_slugs = {path.stem for path in pages + articles}
    used_images: Set[str] = set()

    for path in pages:
        _validate_file(path, "page", images_dir, known_slugs, report, used_images)
        report.stats.total_pages += 1
    for path in articles:
        _validate_file(path, "article", images_dir, known_slugs, report, used_images)
        report.stats.total_articles += 1

    if images_dir.is_dir():
        unused = [
            image.name
            for image in images_dir.iterdir()
            if image.is_file() and not image.name.startswith(".") and image.name not in used_images
        ]
        if unused:
            report.warnings.append(f"Found {len(unused)} potentially unused images")

    logger.info(
        "Validation: %d page(s), %d article(s), %d error(s), %d warning(s)",
        report.stats.total_pages,
        report.stats.total_articles,
        len(report.errors),
        len(report.warnings),
    )
    return report


def write_report(report: ValidationReport, path: Path) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "validation_date": datetime.now(timezone.utc).isoformat(),
        "summary": asdict(report.stats),
        "errors": report.errors,
        "warnings": report.warnings,
        "recommendations": report.recommendations(),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return payload
