"""Tests for responsive variant generation."""

import os
import time

import pytest
from PIL import Image

from site_migrator import transcoder
from site_migrator.config import SizeClass, TranscodeConfig
from site_migrator.transcoder import (
    codecs_available,
    is_stale,
    picture_element,
    transcode,
    transcode_tree,
)

requires_codecs = pytest.mark.skipif(
    not codecs_available(), reason="Pillow build lacks WebP or JPEG support"
)


def _make_image(path, width, height, mode="RGB"):
    colors = {"RGBA": (200, 30, 30, 128), "LA": (200, 128)}
    color = colors.get(mode, (200, 30, 30))
    Image.new(mode, (width, height), color).save(path)
    _backdate(path)
    return path


def _backdate(path, seconds=3600):
    past = time.time() - seconds
    os.utime(path, (past, past))


def _names(paths):
    return sorted(path.name for path in paths)


@requires_codecs
def test_wide_source_gets_every_variant(tmp_path):
    source = _make_image(tmp_path / "photo.png", 1500, 1000)
    out = tmp_path / "out"

    result = transcode(source, out)

    assert result.errors == []
    assert result.optimized
    assert _names(result.written) == [
        "photo-lg.jpg", "photo-lg.webp",
        "photo-md.jpg", "photo-md.webp",
        "photo-sm.jpg", "photo-sm.webp",
        "photo.jpg", "photo.webp",
    ]
    assert result.asset.variants[("sm", "webp")] == out / "photo-sm.webp"
    assert result.asset.variants[("original", "jpeg")] == out / "photo.jpg"
    with Image.open(out / "photo-sm.jpg") as small:
        assert small.size == (400, 267)
    with Image.open(out / "photo.webp") as original:
        assert original.size == (1500, 1000)


@requires_codecs
def test_size_classes_wider_than_source_are_skipped(tmp_path):
    source = _make_image(tmp_path / "thumb.png", 1000, 500)
    result = transcode(source, tmp_path / "out")
    assert _names(result.written) == [
        "thumb-md.jpg", "thumb-md.webp",
        "thumb-sm.jpg", "thumb-sm.webp",
        "thumb.jpg", "thumb.webp",
    ]


@requires_codecs
def test_small_source_only_gets_original_size(tmp_path):
    source = _make_image(tmp_path / "icon.png", 300, 200)
    out = tmp_path / "out"

    result = transcode(source, out)

    assert _names(result.written) == ["icon.jpg", "icon.webp"]
    assert _names(out.iterdir()) == ["icon.jpg", "icon.webp"]


@requires_codecs
def test_second_run_is_a_no_op(tmp_path):
    source = _make_image(tmp_path / "photo.png", 900, 600)
    out = tmp_path / "out"
    first = transcode(source, out)
    before = {path.name: path.read_bytes() for path in first.written}

    second = transcode(source, out)

    assert second.written == []
    assert _names(second.skipped) == _names(first.written)
    assert {path.name: path.read_bytes() for path in out.iterdir()} == before


@requires_codecs
def test_newer_source_is_regenerated(tmp_path):
    source = _make_image(tmp_path / "photo.png", 500, 500)
    out = tmp_path / "out"
    first = transcode(source, out)
    future = time.time() + 3600
    os.utime(source, (future, future))

    second = transcode(source, out)

    assert _names(second.written) == _names(first.written)


@requires_codecs
def test_transparent_png_is_flattened_for_jpeg(tmp_path):
    source = _make_image(tmp_path / "logo.png", 420, 100, mode="RGBA")
    result = transcode(source, tmp_path / "out")
    assert result.errors == []
    with Image.open(tmp_path / "out" / "logo.jpg") as jpeg:
        assert jpeg.mode == "RGB"
    with Image.open(tmp_path / "out" / "logo-sm.webp") as webp:
        assert webp.size == (400, 95)


@requires_codecs
def test_grayscale_alpha_keeps_transparency_in_webp(tmp_path):
    source = _make_image(tmp_path / "icon.png", 420, 100, mode="LA")
    result = transcode(source, tmp_path / "out")
    assert result.errors == []
    with Image.open(tmp_path / "out" / "icon.webp") as webp:
        assert webp.mode == "RGBA"
    with Image.open(tmp_path / "out" / "icon-sm.jpg") as jpeg:
        assert jpeg.mode == "RGB"


@requires_codecs
def test_failed_variant_leaves_other_variants_and_previous_output(tmp_path, monkeypatch):
    source = _make_image(tmp_path / "photo.png", 1500, 1000)
    out = tmp_path / "out"
    out.mkdir()
    previous = out / "photo-sm.webp"
    previous.write_bytes(b"previous good")
    _backdate(previous, seconds=7200)

    original = transcoder._prepare_mode

    def failing(image, encoder):
        if encoder == "WEBP" and image.width == 400:
            raise OSError("encoder crashed")
        return original(image, encoder)

    monkeypatch.setattr(transcoder, "_prepare_mode", failing)
    result = transcode(source, out)

    assert result.errors == [(previous, "encoder crashed")]
    assert previous not in result.written
    assert len(result.written) == 7
    assert all(path.exists() for path in result.written)
    assert previous.read_bytes() == b"previous good"
    assert not [path for path in out.iterdir() if path.name.startswith(".")]


def test_missing_codecs_fall_back_to_copy(tmp_path, monkeypatch):
    monkeypatch.setattr(transcoder, "codecs_available", lambda: False)
    source = _make_image(tmp_path / "photo.png", 800, 600)
    out = tmp_path / "out"

    result = transcode(source, out)

    assert not result.optimized
    assert result.written == [out / "photo.png"]
    assert (out / "photo.png").read_bytes() == source.read_bytes()


@requires_codecs
def test_unreadable_image_is_reported(tmp_path):
    source = tmp_path / "broken.jpg"
    source.write_bytes(b"not an image")
    result = transcode(source, tmp_path / "out")
    assert result.written == []
    assert result.errors and result.errors[0][0] == source


@requires_codecs
def test_transcode_tree_mirrors_directories(tmp_path):
    src = tmp_path / "src"
    (src / "team").mkdir(parents=True)
    _make_image(src / "hero.png", 300, 300)
    _make_image(src / "team" / "ana.png", 300, 300)
    (src / "icon.svg").write_text("<svg/>", encoding="utf-8")
    _backdate(src / "icon.svg")
    (src / ".DS_Store").write_bytes(b"junk")
    (src / "partial.jpg.part").write_bytes(b"junk")
    out = tmp_path / "out"

    tree = transcode_tree(src, out)

    assert tree.errors == []
    assert _names(tree.written) == ["ana.jpg", "ana.webp", "hero.jpg", "hero.webp"]
    assert (out / "team" / "ana.webp").exists()
    assert tree.copied == [out / "icon.svg"]
    assert (out / "icon.svg").read_text(encoding="utf-8") == "<svg/>"
    assert not (out / ".DS_Store").exists()
    assert not (out / "partial.jpg.part").exists()

    again = transcode_tree(src, out)
    assert again.written == []
    assert again.copied == []


def test_transcode_tree_requires_source_dir(tmp_path):
    with pytest.raises(FileNotFoundError):
        transcode_tree(tmp_path / "missing", tmp_path / "out")


def test_is_stale(tmp_path):
    source = tmp_path / "a.png"
    target = tmp_path / "a.webp"
    source.write_bytes(b"x")
    assert is_stale(source, target)
    _backdate(source)
    target.write_bytes(b"y")
    assert not is_stale(source, target)


def test_picture_element():
    config = TranscodeConfig(sizes=(SizeClass(400, "sm"), SizeClass(None, "")))
    markup = picture_element("hero.png", alt="Hero", config=config)
    assert markup == "\n".join(
        [
            "<picture>",
            '  <source media="(max-width: 400px)" srcset="/assets/images/hero-sm.webp" type="image/webp">',
            '  <source media="(max-width: 400px)" srcset="/assets/images/hero-sm.jpg" type="image/jpeg">',
            '  <source srcset="/assets/images/hero.webp" type="image/webp">',
            '  <img src="/assets/images/hero.jpg" alt="Hero" loading="lazy">',
            "</picture>",
        ]
    )
