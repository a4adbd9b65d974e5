"""Configuration objects and constants for the migration pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; SiteMigrator/1.0; Site Migration Bot)"
)

# Main content region, tried in order; the document body is the last resort.
DEFAULT_CONTENT_SELECTORS: Tuple[str, ...] = (
    "main",
    ".main-content",
    "#content",
    ".content",
)

DEFAULT_UNWANTED_SELECTORS: Tuple[str, ...] = (
    "script",
    "style",
    "noscript",
    "nav",
    ".navigation",
    "#navigation",
    ".menu",
    ".header",
    ".footer",
    ".sidebar",
    ".ads",
    ".social-share",
    ".breadcrumb",
    ".pagination",
)

ASSET_EXTENSIONS: Tuple[str, ...] = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".zip", ".rar", ".tar", ".gz",
    ".mp3", ".mp4", ".avi", ".mov", ".wmv",
    ".css", ".js", ".xml", ".json",
)

DESCRIPTION_MAX_CHARS = 160


@dataclass(frozen=True)
class SizeClass:
    """Target width for one responsive variant; ``None`` keeps the source size."""

    width: Optional[int]
    name: str

    @property
    def suffix(self) -> str:
        return f"-{self.name}" if self.name else ""


DEFAULT_SIZES: Tuple[SizeClass, ...] = (
    SizeClass(400, "sm"),
    SizeClass(800, "md"),
    SizeClass(1200, "lg"),
    SizeClass(None, ""),
)


@dataclass
class TranscodeConfig:
    """Settings for responsive image variant generation."""

    sizes: Tuple[SizeClass, ...] = DEFAULT_SIZES
    webp_quality: int = 85
    jpeg_quality: int = 90
    image_extensions: Tuple[str, ...] = (".jpg", ".jpeg", ".png", ".webp")


@dataclass
class MigrationConfig:
    """Top-level settings that control crawling, processing and image handling."""

    base_url: str
    output_root: Path = Path(".")
    batch_size: int = 5
    batch_delay: float = 1.0
    navigation_timeout: float = 30.0
    settle_delay: float = 2.0
    download_timeout: float = 30.0
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    content_selectors: Tuple[str, ...] = DEFAULT_CONTENT_SELECTORS
    unwanted_selectors: Tuple[str, ...] = DEFAULT_UNWANTED_SELECTORS
    image_path_prefix: str = "../assets/images/"
    transcode: TranscodeConfig = field(default_factory=TranscodeConfig)

    def __post_init__(self) -> None:
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url must be an absolute http(s) URL, got: {self.base_url}")
        self.base_url = self.base_url.rstrip("/")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.batch_delay < 0:
            raise ValueError(f"batch_delay must be >= 0, got {self.batch_delay}")
        self.output_root = Path(self.output_root)

    @property
    def crawl_dir(self) -> Path:
        return self.output_root / "crawled-data"

    @property
    def pages_data_path(self) -> Path:
        return self.crawl_dir / "pages-data.json"

    @property
    def images_list_path(self) -> Path:
        return self.crawl_dir / "images-list.json"

    @property
    def content_dir(self) -> Path:
        return self.output_root / "src" / "content"

    @property
    def images_dir(self) -> Path:
        return self.output_root / "src" / "assets" / "images"

    @property
    def optimized_dir(self) -> Path:
        return self.output_root / "public" / "assets" / "images"

    @property
    def redirects_path(self) -> Path:
        return self.output_root / "redirects.json"

    @property
    def host_redirects_path(self) -> Path:
        return self.output_root / "public" / "_redirects"

    @property
    def manifest_path(self) -> Path:
        return self.output_root / "image-manifest.json"

    @property
    def validation_report_path(self) -> Path:
        return self.output_root / "validation-report.json"

    @property
    def migration_report_path(self) -> Path:
        return self.output_root / "migration-report.json"
