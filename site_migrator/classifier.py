"""Content-worthiness and category heuristics for crawled pages."""

from __future__ import annotations

import html
import re
from typing import List, Optional, Pattern, Tuple

from .config import DESCRIPTION_MAX_CHARS
from .models import PageRecord
from .utils import has_asset_extension

MEDIA_UPLOAD_SEGMENTS: Tuple[str, ...] = ("/wp-content/uploads/",)

TECHNICAL_PATTERNS: Tuple[str, ...] = (
    "/feed/", "/rss/", "/sitemap", "/robots.txt",
    "/wp-admin/", "/wp-includes/", "/wp-content/plugins/",
    "/wp-json/", "?rest_route=",
    "?preview=", "?p=", "?attachment_id=",
)

ASSET_TITLE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^\d+x\d+$"),
    re.compile(r"\.(jpe?g|png|gif|pdf)$", re.IGNORECASE),
    re.compile(r"^img_\d+", re.IGNORECASE),
    re.compile(r"^imagem\d+$", re.IGNORECASE),
)

# Ordered: the first matching rule decides the category.
CATEGORY_RULES: Tuple[Tuple[str, Tuple[str, ...], Tuple[str, ...]], ...] = (
    ("article", ("/blog/", "/news/", "/artigo/", "/article/", "/post/"), ("artigo",)),
    ("service", ("/servico", "/service"), ("serviço",)),
    ("about", ("/sobre", "/about"), ("sobre",)),
    ("contact", ("/contato", "/contact"), ("contacto",)),
    ("resource", ("/recurso", "/resource", "/documento"), ()),
)
DEFAULT_CATEGORY = "page"

_TAG_PATTERN = re.compile(r"<[^>]+>")
_JSON_FRAGMENT = re.compile(r"\{[^}]*\}")
_ATTRIBUTE_FRAGMENT = re.compile(r"[\w:-]+=\"[^\"]*\"")
_WHITESPACE = re.compile(r"\s+")
_MARKDOWN_MARKERS = re.compile(r"[#*]+")


def exclusion_reason(record: PageRecord) -> Optional[str]:
    """Return why a page should not become content, or None if it qualifies."""
    url = record.url.lower()
    raw_title = record.title or ""
    title = raw_title.lower()

    # Short pages whose URL carries an asset extension fall under this rule too.
    if has_asset_extension(url):
        return "asset file extension"
    if any(segment in url for segment in MEDIA_UPLOAD_SEGMENTS):
        return "media upload"
    if any(pattern in url for pattern in TECHNICAL_PATTERNS):
        return "technical page"
    for pattern in ASSET_TITLE_PATTERNS:
        if pattern.search(title) or pattern.search(raw_title):
            return "asset-like title"
    return None


def categorize(record: PageRecord) -> str:
    """Assign exactly one category; rules are tried in a fixed order."""
    url = record.url.lower()
    title = (record.title or "").lower()
    for category, url_markers, title_markers in CATEGORY_RULES:
        if any(marker in url for marker in url_markers):
            return category
        if any(marker in title for marker in title_markers):
            return category
    return DEFAULT_CATEGORY


def clean_title(title: str) -> str:
    """Drop ``| Site Name`` and `` - tagline`` suffixes."""
    title = re.sub(r"\s*\|.*$", "", title or "")
    title = re.sub(r"\s+[-–—]\s+.*$", "", title)
    return title.strip()


def clean_description(description: str) -> str:
    if not description:
        return ""
    text = html.unescape(description)
    text = _TAG_PATTERN.sub("", text)
    text = _JSON_FRAGMENT.sub("", text)
    text = _ATTRIBUTE_FRAGMENT.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:DESCRIPTION_MAX_CHARS]


def _sentences(text: str) -> List[str]:
    return [part.strip() for part in text.split(".") if len(part.strip()) > 20]


def description_from_body(body: str) -> str:
    """Summarize a body as its first one or two meaningful sentences."""
    text = _TAG_PATTERN.sub(" ", body)
    text = _MARKDOWN_MARKERS.sub("", text)
    text = _WHITESPACE.sub(" ", html.unescape(text)).strip()
    sentences = _sentences(text)
    if not sentences:
        return text[:DESCRIPTION_MAX_CHARS]
    description = sentences[0] + "."
    if len(description) < 120 and len(sentences) > 1:
        description += " " + sentences[1] + "."
    return description[:DESCRIPTION_MAX_CHARS]
