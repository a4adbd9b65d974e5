"""Narrow HTML to Markdown conversion and front matter composition."""

from __future__ import annotations

import html
import re
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import (
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

from .config import DEFAULT_UNWANTED_SELECTORS
from .models import FrontMatter
from .utils import (
    alt_text_from_filename,
    asset_filename,
    has_asset_extension,
    is_same_origin,
    normalize_url,
    slug_for_url,
    url_filename,
)

_EXCESS_BREAKS = re.compile(r"\n\s*\n\s*\n")
_VOID_ELEMENTS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
}
_SKIPPED_NODES = (Comment, Declaration, Doctype, ProcessingInstruction)


def _heading(level: int) -> Callable[[str], str]:
    return lambda inner: f"{'#' * level} {inner.strip()}\n\n"


# Whitelisted tags; anything else is emitted unchanged as HTML.
CONVERTERS: Dict[str, Callable[[str], str]] = {
    "h1": _heading(1),
    "h2": _heading(2),
    "h3": _heading(3),
    "h4": _heading(4),
    "h5": _heading(5),
    "h6": _heading(6),
    "p": lambda inner: f"{inner.strip()}\n\n",
    "strong": lambda inner: f"**{inner}**",
    "em": lambda inner: f"*{inner}*",
    "br": lambda inner: "\n",
}


def _attribute_value(value: Union[str, Sequence[str]]) -> str:
    if isinstance(value, (list, tuple)):
        value = " ".join(value)
    return html.escape(str(value), quote=True)


def _open_tag(tag: Tag) -> str:
    attrs = "".join(f' {name}="{_attribute_value(value)}"' for name, value in tag.attrs.items())
    return f"<{tag.name}{attrs}>"


def render_node(node: Union[Tag, NavigableString]) -> str:
    """Render a parse-tree node, converting whitelisted tags to Markdown."""
    if isinstance(node, _SKIPPED_NODES):
        return ""
    if isinstance(node, NavigableString):
        return html.escape(str(node), quote=False)
    inner = "".join(render_node(child) for child in node.children)
    converter = CONVERTERS.get(node.name)
    if converter is not None:
        return converter(inner)
    if node.name in _VOID_ELEMENTS:
        return _open_tag(node)
    return f"{_open_tag(node)}{inner}</{node.name}>"


def remove_unwanted(soup: BeautifulSoup, selectors: Sequence[str]) -> None:
    for selector in selectors:
        for element in soup.select(selector):
            element.decompose()


def rewrite_images(soup: BeautifulSoup, page_url: str, image_prefix: str) -> List[str]:
    """Point every image at its local asset path; returns the source URLs."""
    sources: List[str] = []
    for img in soup.find_all("img"):
        src = str(img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        absolute = urljoin(page_url, src)
        sources.append(absolute)
        img["src"] = f"{image_prefix}{asset_filename(absolute)}"
        if not str(img.get("alt") or "").strip():
            img["alt"] = alt_text_from_filename(url_filename(absolute)) or "Image"
    return sources


def rewrite_links(
    soup: BeautifulSoup,
    page_url: str,
    base_url: str,
    slugs: Optional[Mapping[str, str]] = None,
) -> None:
    """Replace same-origin hrefs with the slug path of their target.

    ``slugs`` maps normalized page URLs to their final slugs; URLs not in it
    fall back to the slug derived from the URL itself.
    """
    slugs = slugs or {}
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
            continue
        absolute = urljoin(page_url, href)
        if is_same_origin(absolute, base_url) and not has_asset_extension(absolute):
            slug = slugs.get(normalize_url(absolute)) or slug_for_url(absolute, base_url)
            anchor["href"] = f"/{slug}"


def collapse_breaks(text: str) -> str:
    return _EXCESS_BREAKS.sub("\n\n", text)


def html_to_markdown(
    fragment: str,
    page_url: str,
    base_url: str,
    image_prefix: str = "../assets/images/",
    unwanted_selectors: Sequence[str] = DEFAULT_UNWANTED_SELECTORS,
    slugs: Optional[Mapping[str, str]] = None,
) -> Tuple[str, List[str]]:
    """Convert a main-content fragment into a Markdown body.

    Returns the body and the absolute URLs of the images it references.
    """
    soup = BeautifulSoup(fragment or "", "html.parser")
    remove_unwanted(soup, unwanted_selectors)
    images = rewrite_images(soup, page_url, image_prefix)
    rewrite_links(soup, page_url, base_url, slugs)
    body = "".join(render_node(child) for child in soup.children)
    return collapse_breaks(body).strip(), images


def yaml_scalar(value: Optional[object]) -> str:
    """Double-quoted YAML scalar with quotes escaped and newlines flattened."""
    if value is None:
        return '""'
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    text = re.sub(r"\s+", " ", text.replace("\r", " ").replace("\n", " ")).strip()
    return f'"{text}"'


def compose_markdown(frontmatter: FrontMatter, body: str) -> str:
    """Generate the final Markdown file including front matter."""
    lines = ["---"]
    for key, value in frontmatter.to_yaml_fields():
        if isinstance(value, list):
            lines.append(f"{key}:")
            lines.extend(f"  {sub_key}: {yaml_scalar(sub_value)}" for sub_key, sub_value in value)
        else:
            lines.append(f"{key}: {yaml_scalar(value)}")
    lines.append("---")
    return "\n".join(lines) + "\n\n" + body.strip() + "\n"
