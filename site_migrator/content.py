"""HTML extraction and metadata parsing utilities."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .config import DEFAULT_CONTENT_SELECTORS
from .models import Heading, ImageRef, LinkRef, PageMeta, PageRecord
from .utils import normalize_url

_IGNORED_LINK_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return str(tag["content"]).strip()
    return ""


def _canonical_href(soup: BeautifulSoup, base_url: str) -> str:
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "canonical" in (value.lower() for value in rel):
            return urljoin(base_url, link["href"].strip())
    return ""


def extract_meta(soup: BeautifulSoup, page_url: str) -> PageMeta:
    """Collect description, keywords and open-graph fields from the head."""
    return PageMeta(
        description=_meta_content(soup, name="description"),
        keywords=_meta_content(soup, name="keywords"),
        author=_meta_content(soup, name="author"),
        robots=_meta_content(soup, name="robots"),
        canonical=_canonical_href(soup, page_url),
        og_title=_meta_content(soup, property="og:title"),
        og_description=_meta_content(soup, property="og:description"),
        og_image=_meta_content(soup, property="og:image"),
    )


def select_main_region(
    soup: BeautifulSoup,
    selectors: Sequence[str] = DEFAULT_CONTENT_SELECTORS,
) -> Optional[Tag]:
    """Return the first element matching the selector chain, else the body."""
    for selector in selectors:
        candidate = soup.select_one(selector)
        if candidate is not None:
            return candidate
    return soup.body


def _plain_text(soup: BeautifulSoup) -> str:
    root = soup.body or soup
    clone = BeautifulSoup(str(root), "html.parser")
    for tag in clone(["script", "style", "noscript", "template"]):
        tag.decompose()
    return "\n".join(clone.stripped_strings)


def _int_attr(tag: Tag, name: str) -> Optional[int]:
    value = str(tag.get(name) or "").strip().removesuffix("px")
    return int(value) if value.isdigit() and int(value) > 0 else None


def extract_images(soup: BeautifulSoup, page_url: str) -> List[ImageRef]:
    images: List[ImageRef] = []
    for img in soup.find_all("img"):
        src = str(img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        images.append(
            ImageRef(
                url=urljoin(page_url, src),
                alt=str(img.get("alt") or "").strip(),
                width=_int_attr(img, "width"),
                height=_int_attr(img, "height"),
            )
        )
    return images


def extract_links(soup: BeautifulSoup, page_url: str) -> List[LinkRef]:
    links: List[LinkRef] = []
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href or href.lower().startswith(_IGNORED_LINK_SCHEMES):
            continue
        links.append(
            LinkRef(
                url=normalize_url(urljoin(page_url, href)),
                text=anchor.get_text(" ", strip=True),
            )
        )
    return links


def extract_page_record(
    html: str,
    url: str,
    final_url: Optional[str] = None,
    content_selectors: Sequence[str] = DEFAULT_CONTENT_SELECTORS,
) -> PageRecord:
    """Parse rendered HTML into a PageRecord.

    ``url`` is the key the page was requested under; relative references are
    resolved against ``final_url`` when the browser followed a redirect.
    """
    resolve_base = final_url or url
    soup = BeautifulSoup(html, "html.parser")

    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()

    headings = [
        Heading(level=int(tag.name[1]), text=tag.get_text(" ", strip=True))
        for tag in soup.find_all(["h1", "h2", "h3"])
        if tag.get_text(strip=True)
    ]

    main = select_main_region(soup, content_selectors)
    main_html = main.decode_contents() if main is not None else ""

    record = PageRecord(
        url=url,
        fetched_at=datetime.now(timezone.utc).isoformat(),
        title=title,
        meta=extract_meta(soup, resolve_base),
        headings=headings,
        main_html=main_html,
        text=_plain_text(soup),
        images=extract_images(soup, resolve_base),
        links=extract_links(soup, resolve_base),
    )
    return record
