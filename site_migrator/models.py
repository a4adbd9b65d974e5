"""Data models used throughout the migration pipeline."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


@dataclass
class ImageRef:
    """Image reference discovered on a page, normalized at ingestion."""

    url: str
    alt: str = ""
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def coerce(cls, item: Union[str, Mapping[str, Any], "ImageRef"]) -> "ImageRef":
        """Accept a bare URL or a mapping keyed by ``url`` or ``src``."""
        if isinstance(item, ImageRef):
            return item
        if isinstance(item, str):
            return cls(url=item.strip())
        if isinstance(item, Mapping):
            url = item.get("url") or item.get("src") or ""
            return cls(
                url=str(url).strip(),
                alt=str(item.get("alt") or "").strip(),
                width=_optional_int(item.get("width")),
                height=_optional_int(item.get("height")),
            )
        raise TypeError(f"Unsupported image entry: {item!r}")

    @property
    def dimensions(self) -> Optional[str]:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None


@dataclass
class Heading:
    level: int
    text: str


@dataclass
class LinkRef:
    url: str
    text: str = ""


@dataclass
class PageMeta:
    """Named metadata fields read from the page head."""

    description: str = ""
    keywords: str = ""
    author: str = ""
    robots: str = ""
    canonical: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""


@dataclass
class PageRecord:
    """One crawled page, immutable once captured."""

    url: str
    fetched_at: str
    title: str = ""
    meta: PageMeta = field(default_factory=PageMeta)
    headings: List[Heading] = field(default_factory=list)
    main_html: str = ""
    text: str = ""
    images: List[ImageRef] = field(default_factory=list)
    links: List[LinkRef] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PageRecord":
        if not data.get("url"):
            raise ValueError("page record is missing 'url'")
        meta_fields = {f.name for f in dataclasses.fields(PageMeta)}
        meta = PageMeta(
            **{k: str(v or "") for k, v in (data.get("meta") or {}).items() if k in meta_fields}
        )
        return cls(
            url=str(data["url"]),
            fetched_at=str(data.get("fetched_at") or ""),
            title=str(data.get("title") or ""),
            meta=meta,
            headings=[
                Heading(level=int(h["level"]), text=str(h.get("text") or ""))
                for h in data.get("headings") or []
            ],
            main_html=str(data.get("main_html") or ""),
            text=str(data.get("text") or ""),
            images=[ImageRef.coerce(img) for img in data.get("images") or []],
            links=[
                LinkRef(url=str(link.get("url") or ""), text=str(link.get("text") or ""))
                for link in data.get("links") or []
            ],
        )


@dataclass
class CrawlError:
    url: str
    message: str


@dataclass
class CrawlVisitState:
    """Accumulated state for a single crawl invocation.

    Every mutation is an idempotent add so concurrent batch members can share
    one instance without ordering concerns.
    """

    visited: Set[str] = field(default_factory=set)
    discovered_links: Dict[str, None] = field(default_factory=dict)
    discovered_images: Dict[str, ImageRef] = field(default_factory=dict)
    skipped_assets: Dict[str, None] = field(default_factory=dict)
    errors: List[CrawlError] = field(default_factory=list)
    pages: List[PageRecord] = field(default_factory=list)

    def mark_visited(self, url: str) -> bool:
        """Record ``url`` as visited; return False if it already was."""
        if url in self.visited:
            return False
        self.visited.add(url)
        return True

    def add_link(self, url: str) -> None:
        self.discovered_links.setdefault(url, None)

    def add_image(self, image: ImageRef) -> None:
        self.discovered_images.setdefault(image.url, image)

    def add_skipped_asset(self, url: str) -> None:
        self.skipped_assets.setdefault(url, None)

    def add_error(self, url: str, message: str) -> None:
        self.errors.append(CrawlError(url=url, message=message))

    def frontier(self) -> List[str]:
        """Discovered links that have not been visited yet, in discovery order."""
        return [url for url in self.discovered_links if url not in self.visited]


@dataclass
class CrawlResult:
    start_url: str
    pages: List[PageRecord]
    images: List[ImageRef]
    errors: List[CrawlError]
    skipped_assets: List[str]
    visited: List[str]


@dataclass
class SeoMeta:
    title: str = ""
    description: str = ""
    canonical: str = ""


@dataclass
class FrontMatter:
    title: str
    description: str
    publish_date: str
    category: str
    original_url: str
    slug: str
    seo: SeoMeta = field(default_factory=SeoMeta)

    def to_yaml_fields(self) -> List[Tuple[str, Any]]:
        """Ordered front matter keys as they appear in content files."""
        return [
            ("title", self.title),
            ("description", self.description),
            ("publishDate", self.publish_date),
            ("category", self.category),
            ("originalUrl", self.original_url),
            ("slug", self.slug),
            (
                "seo",
                [
                    ("title", self.seo.title),
                    ("description", self.seo.description),
                    ("canonical", self.seo.canonical),
                ],
            ),
        ]


@dataclass
class ContentDocument:
    """A normalized content unit derived from one qualifying page."""

    slug: str
    category: str
    frontmatter: FrontMatter
    body: str
    output_path: Optional[Path] = None


@dataclass
class Exclusion:
    """A page deliberately left out of the content output."""

    url: str
    reason: str


@dataclass
class RedirectRule:
    source: str
    target: str
    status: int = 301

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.source, "to": self.target, "status": self.status}

    def to_line(self) -> str:
        return f"{self.source} {self.target} {self.status}"


@dataclass
class DownloadedImage:
    """A fetched image stored on disk."""

    original_url: str
    filename: str
    path: Path
    alt: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    cached: bool = False

    @property
    def dimensions(self) -> Optional[str]:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None


@dataclass
class FetchError:
    url: str
    error: str


@dataclass
class FetchResult:
    requested: int = 0
    images: List[DownloadedImage] = field(default_factory=list)
    errors: List[FetchError] = field(default_factory=list)

    @property
    def downloaded(self) -> List[DownloadedImage]:
        return [image for image in self.images if not image.cached]


@dataclass
class ImageAsset:
    """One source image and the variants derived from it."""

    source_path: Path
    variants: Dict[Tuple[str, str], Path] = field(default_factory=dict)


@dataclass
class TranscodeResult:
    asset: ImageAsset
    written: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    errors: List[Tuple[Path, str]] = field(default_factory=list)
    optimized: bool = True
