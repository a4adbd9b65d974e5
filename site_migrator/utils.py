"""Utility helpers for URL normalization, slugs and path handling."""

from __future__ import annotations

import hashlib
import posixpath
import re
from typing import Optional
from urllib.parse import unquote, urldefrag, urlparse, urlunparse

from .config import ASSET_EXTENSIONS

URL_SLUG_PATTERN = re.compile(r"[^a-z0-9-]+")
FILENAME_PATTERN = re.compile(r"[^a-z0-9.-]+")
HYPHEN_RUN = re.compile(r"-+")


def normalize_url(url: str) -> str:
    """Drop the fragment, lower-case scheme and host, and root empty paths."""
    url, _ = urldefrag(url.strip())
    parsed = urlparse(url)
    path = parsed.path
    if parsed.netloc and not path:
        path = "/"
    return urlunparse(
        parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            path=path,
        )
    )


def normalized_hostname(url: str) -> Optional[str]:
    """Return the lower-cased hostname, or None for malformed/non-web URLs."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not hostname:
        return None
    return hostname.rstrip(".")


def is_same_origin(candidate: str, start_url: str) -> bool:
    """True when both URLs resolve to the same hostname."""
    host = normalized_hostname(candidate)
    return host is not None and host == normalized_hostname(start_url)


def has_asset_extension(url: str) -> bool:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    return path.endswith(ASSET_EXTENSIONS)


def _strip_base(url: str, base_url: Optional[str]) -> str:
    if base_url and url.startswith(base_url):
        return url[len(base_url):]
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return urlunparse(parsed._replace(scheme="", netloc=""))
    return url


def slug_for_url(url: str, base_url: Optional[str] = None) -> str:
    """Derive a content slug from a page URL.

    ``https://site/`` becomes ``index``; anything else is lower-cased with each
    run of characters outside ``[a-z0-9-]`` replaced by a single hyphen.
    """
    url, _ = urldefrag(url)
    remainder = _strip_base(url, base_url.rstrip("/") if base_url else None)
    remainder = unquote(remainder).strip("/")
    if not remainder:
        return "index"
    slug = URL_SLUG_PATTERN.sub("-", remainder.lower())
    slug = HYPHEN_RUN.sub("-", slug).strip("-")
    return slug or "index"


def redirect_source(url: str, base_url: Optional[str] = None) -> str:
    """Path (plus query) of the original page, used as a redirect source."""
    url, _ = urldefrag(url)
    remainder = _strip_base(url, base_url.rstrip("/") if base_url else None)
    if not remainder.startswith("/"):
        remainder = "/" + remainder
    return remainder


def url_filename(url: str) -> str:
    """Last path segment of a URL, percent-decoded."""
    try:
        path = urlparse(url).path
    except ValueError:
        path = url
    return posixpath.basename(unquote(path))


def asset_filename(url: str, default_extension: str = ".jpg") -> str:
    """Deterministic local filename for a remote asset.

    Built from the URL's basename plus a short hash of the normalized URL
    (query and fragment dropped) so different paths sharing a basename do not
    collide.
    """
    parsed = urlparse(normalize_url(url))
    identity = urlunparse(parsed._replace(query="", params=""))
    digest = hashlib.sha1(identity.encode("utf-8")).hexdigest()[:8]

    name = url_filename(identity).lower()
    stem, extension = posixpath.splitext(name)
    if not extension:
        extension = default_extension
    stem = FILENAME_PATTERN.sub("-", stem)
    stem = HYPHEN_RUN.sub("-", stem).strip("-.") or "image"
    extension = FILENAME_PATTERN.sub("", extension.lower()) or default_extension
    return f"{stem[:80]}-{digest}{extension}"


def alt_text_from_filename(filename: str) -> str:
    """Turn ``my_photo-01.jpg`` into ``My Photo 01``."""
    stem = re.sub(r"\.[^/.]+$", "", filename)
    words = re.sub(r"[_-]+", " ", stem).split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def safe_record_name(url: str, base_url: Optional[str] = None) -> str:
    """Filename stem for a per-page crawl record."""
    remainder = _strip_base(urldefrag(url)[0], base_url)
    name = re.sub(r"[^a-zA-Z0-9_-]+", "-", remainder)
    name = HYPHEN_RUN.sub("-", name).strip("-")
    return name or "homepage"
