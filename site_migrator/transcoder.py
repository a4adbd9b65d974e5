"""Responsive image variant generation with Pillow."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, ImageOps, features

from .config import SizeClass, TranscodeConfig
from .models import ImageAsset, TranscodeResult

logger = logging.getLogger("site_migrator")

# (format name used in variant keys, file extension, Pillow encoder)
OUTPUT_FORMATS: Tuple[Tuple[str, str, str], ...] = (
    ("webp", ".webp", "WEBP"),
    ("jpeg", ".jpg", "JPEG"),
)


@dataclass
class TreeResult:
    """Aggregate outcome of processing a directory tree."""

    images: List[TranscodeResult] = field(default_factory=list)
    copied: List[Path] = field(default_factory=list)
    errors: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def written(self) -> List[Path]:
        return [path for result in self.images for path in result.written]


def codecs_available() -> bool:
    """True when this Pillow build can encode both WebP and JPEG."""
    return bool(features.check("webp")) and bool(features.check("jpg"))


def is_stale(source: Path, target: Path) -> bool:
    """A target needs regenerating unless it exists and is newer than its source."""
    try:
        target_mtime = target.stat().st_mtime
    except FileNotFoundError:
        return True
    return source.stat().st_mtime >= target_mtime


def variant_path(output_dir: Path, stem: str, size: SizeClass, extension: str) -> Path:
    return output_dir / f"{stem}{size.suffix}{extension}"


def _fit_width(image: Image.Image, width: Optional[int]) -> Image.Image:
    if not width or image.width <= width:
        return image
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def _prepare_mode(image: Image.Image, encoder: str) -> Image.Image:
    if encoder == "JPEG":
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return image.convert("RGB") if image.mode != "RGB" else image
    if image.mode not in ("RGB", "RGBA"):
        keep_alpha = image.mode in ("LA", "PA") or "transparency" in image.info
        return image.convert("RGBA" if keep_alpha else "RGB")
    return image


def _encode(source: Path, target: Path, width: Optional[int], encoder: str, quality: int) -> None:
    """Encode one variant into a temp file, then move it over ``target``."""
    handle, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.stem}-", suffix=target.suffix)
    os.close(handle)
    tmp_path = Path(tmp_name)
    try:
        with Image.open(source) as raw:
            image = ImageOps.exif_transpose(raw)
            image = _prepare_mode(_fit_width(image, width), encoder)
            options = {"quality": quality}
            if encoder == "JPEG":
                options.update(optimize=True, progressive=True)
            image.save(tmp_path, format=encoder, **options)
        os.replace(tmp_path, target)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def copy_if_stale(source: Path, target: Path) -> bool:
    """Copy ``source`` byte-for-byte unless ``target`` is already fresh."""
    if not is_stale(source, target):
        logger.debug("Skipping %s (up to date)", target.name)
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)
    return True


def transcode(
    source: Path,
    output_dir: Path,
    config: Optional[TranscodeConfig] = None,
) -> TranscodeResult:
    """Generate every size/format variant of one source image.

    Variants whose output is newer than the source are left alone. Size
    classes wider than the source are not generated.
    """
    config = config or TranscodeConfig()
    source = Path(source)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    result = TranscodeResult(asset=ImageAsset(source_path=source))

    if not codecs_available():
        target = output_dir / source.name
        logger.warning("Image codecs unavailable, copying %s (no optimization)", source.name)
        result.optimized = False
        if copy_if_stale(source, target):
            result.written.append(target)
        else:
            result.skipped.append(target)
        return result

    try:
        with Image.open(source) as opened:
            source_width = ImageOps.exif_transpose(opened).width
    except Exception as exc:  # pylint: disable=broad-except
        logger.error("Cannot read image %s: %s", source, exc)
        result.errors.append((source, str(exc)))
        return result

    logger.info("Processing %s", source.name)
    for size in config.sizes:
        if size.width and size.width > source_width:
            logger.debug("Skipping %s size for %s (source is %dpx)", size.name, source.name, source_width)
            continue
        for format_name, extension, encoder in OUTPUT_FORMATS:
            target = variant_path(output_dir, source.stem, size, extension)
            result.asset.variants[(size.name or "original", format_name)] = target
            if not is_stale(source, target):
                logger.debug("Skipping %s (up to date)", target.name)
                result.skipped.append(target)
                continue
            quality = config.webp_quality if encoder == "WEBP" else config.jpeg_quality
            try:
                _encode(source, target, size.width, encoder, quality)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Error generating %s: %s", target.name, exc)
                result.errors.append((target, str(exc)))
                continue
            logger.info("Generated %s", target.name)
            result.written.append(target)
    return result


def transcode_tree(
    source_dir: Path,
    output_dir: Path,
    config: Optional[TranscodeConfig] = None,
) -> TreeResult:
    """Mirror ``source_dir`` into ``output_dir``, transcoding images on the way."""
    config = config or TranscodeConfig()
    source_dir = Path(source_dir)
    output_dir = Path(output_dir)
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Image source directory does not exist: {source_dir}")

    tree = TreeResult()
    output_dir.mkdir(parents=True, exist_ok=True)
    for entry in sorted(source_dir.iterdir()):
        if entry.name.startswith(".") or entry.name.endswith(".part"):
            continue
        if entry.is_dir():
            nested = transcode_tree(entry, output_dir / entry.name, config)
            tree.images.extend(nested.images)
            tree.copied.extend(nested.copied)
            tree.errors.extend(nested.errors)
        elif entry.is_file():
            if entry.suffix.lower() in config.image_extensions:
                outcome = transcode(entry, output_dir, config)
                tree.images.append(outcome)
                tree.errors.extend(outcome.errors)
            else:
                target = output_dir / entry.name
                if copy_if_stale(entry, target):
                    logger.info("Copied %s", entry.name)
                    tree.copied.append(target)
    return tree


def picture_element(
    name: str,
    alt: str = "",
    base_path: str = "/assets/images",
    config: Optional[TranscodeConfig] = None,
) -> str:
    """Responsive ``<picture>`` markup for the variant family of ``name``."""
    config = config or TranscodeConfig()
    stem = Path(name).stem
    lines = ["<picture>"]
    fallback_suffix = ""
    for size in config.sizes:
        if size.width:
            media = f' media="(max-width: {size.width}px)"'
        else:
            media = ""
            fallback_suffix = size.suffix
        lines.append(f'  <source{media} srcset="{base_path}/{stem}{size.suffix}.webp" type="image/webp">')
        if size.width:
            lines.append(f'  <source{media} srcset="{base_path}/{stem}{size.suffix}.jpg" type="image/jpeg">')
    lines.append(f'  <img src="{base_path}/{stem}{fallback_suffix}.jpg" alt="{alt}" loading="lazy">')
    lines.append("</picture>")
    return "\n".join(lines)
