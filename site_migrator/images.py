"""Bulk image downloading and manifest generation."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Set, Tuple, Union

import requests
from filetype import guess

from .models import DownloadedImage, FetchError, FetchResult, ImageRef
from .utils import asset_filename

logger = logging.getLogger("site_migrator")

CHUNK_SIZE = 64 * 1024
SNIFF_BYTES = 261

ImageItem = Union[str, Mapping[str, Any], ImageRef]


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def infer_image_extension(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Guess an image file extension from HTTP metadata or file signature."""
    detected = detect_image_format(data)
    if detected:
        return detected
    if not content_type:
        return None
    parts = content_type.split(";")[0].split("/")
    if len(parts) == 2 and parts[0].strip().lower() == "image":
        ext = parts[1].strip().lower()
        if ext == "jpeg":
            ext = "jpg"
        return ext
    return None


class ImageFetcher:
    """Download discovered images into a flat directory in polite batches."""

    def __init__(
        self,
        output_dir: Path,
        session: Optional[requests.Session] = None,
        batch_size: int = 5,
        batch_delay: float = 1.0,
        timeout: float = 30.0,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.session = session or requests.Session()
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.timeout = timeout

    def _download(self, url: str, destination: Path) -> None:
        """Stream ``url`` to ``destination`` through a ``.part`` file."""
        partial = destination.with_name(destination.name + ".part")
        try:
            with self.session.get(url, timeout=self.timeout, stream=True) as resp:
                resp.raise_for_status()
                content_type = resp.headers.get("Content-Type", "")
                head = b""
                with partial.open("wb") as handle:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if not chunk:
                            continue
                        if len(head) < SNIFF_BYTES:
                            head += chunk[: SNIFF_BYTES - len(head)]
                        handle.write(chunk)
            if not infer_image_extension(content_type, head):
                raise ValueError(f"unsupported image type (Content-Type={content_type or 'unknown'})")
            partial.replace(destination)
        finally:
            if partial.exists():
                partial.unlink()

    async def _fetch_one(self, image: ImageRef, filename: str) -> Union[DownloadedImage, FetchError]:
        destination = self.output_dir / filename
        if destination.exists():
            logger.info("Skipping existing %s", filename)
            return DownloadedImage(
                original_url=image.url,
                filename=filename,
                path=destination,
                alt=image.alt,
                width=image.width,
                height=image.height,
                cached=True,
            )
        try:
            await asyncio.to_thread(self._download, image.url, destination)
        except requests.Timeout:
            logger.error("Download timeout for %s", image.url)
            return FetchError(url=image.url, error="Download timeout")
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Error downloading %s: %s", image.url, exc)
            return FetchError(url=image.url, error=str(exc) or exc.__class__.__name__)
        logger.info("Downloaded %s", filename)
        return DownloadedImage(
            original_url=image.url,
            filename=filename,
            path=destination,
            alt=image.alt,
            width=image.width,
            height=image.height,
        )

    async def fetch_all(self, items: Iterable[ImageItem]) -> FetchResult:
        """Download every image once; per-item failures end up in ``errors``."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        result = FetchResult()
        claimed: Set[str] = set()
        queue: List[Tuple[ImageRef, str]] = []

        for item in items:
            image = ImageRef.coerce(item)
            if not image.url or image.url.startswith("data:"):
                continue
            result.requested += 1
            try:
                filename = asset_filename(image.url)
            except ValueError as exc:
                result.errors.append(FetchError(url=image.url, error=f"Invalid URL: {exc}"))
                continue
            if filename in claimed:
                logger.debug("Duplicate image %s -> %s", image.url, filename)
                continue
            claimed.add(filename)
            queue.append((image, filename))

        logger.info("Processing %d image(s)", len(queue))
        for offset in range(0, len(queue), self.batch_size):
            batch = queue[offset : offset + self.batch_size]
            outcomes = await asyncio.gather(
                *(self._fetch_one(image, filename) for image, filename in batch)
            )
            for outcome in outcomes:
                if isinstance(outcome, FetchError):
                    result.errors.append(outcome)
                else:
                    result.images.append(outcome)
            if self.batch_delay and offset + self.batch_size < len(queue):
                await asyncio.sleep(self.batch_delay)

        logger.info(
            "Images: %d downloaded, %d cached, %d failed",
            len(result.downloaded),
            len(result.images) - len(result.downloaded),
            len(result.errors),
        )
        return result


def build_manifest(result: FetchResult) -> dict:
    return {
        "generated_date": datetime.now(timezone.utc).isoformat(),
        "total_requested": result.requested,
        "total_images": len(result.images),
        "errors": [{"url": error.url, "error": error.error} for error in result.errors],
        "images": [
            {
                "filename": image.filename,
                "original_url": image.original_url,
                "alt": image.alt,
                "dimensions": image.dimensions,
                "cached": image.cached,
            }
            for image in result.images
        ],
    }


def write_manifest(result: FetchResult, path: Path) -> dict:
    manifest = build_manifest(result)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Saved image manifest to %s", path)
    return manifest
