"""Tests for URL and slug helpers."""

from site_migrator.utils import (
    alt_text_from_filename,
    asset_filename,
    has_asset_extension,
    is_same_origin,
    normalize_url,
    redirect_source,
    slug_for_url,
)


def test_slug_for_root_is_index():
    """The site root maps to the index slug."""
    assert slug_for_url("https://site/") == "index"
    assert slug_for_url("https://site") == "index"
    assert slug_for_url("https://obraabc.org/", "https://obraabc.org") == "index"


def test_slug_collapses_non_alphanumerics():
    """Non-alphanumeric runs become single hyphens, trimmed at both ends."""
    assert slug_for_url("https://site/Sobre-Nós/") == "sobre-n-s"
    assert slug_for_url("https://site/blog/2021/Hello_World/") == "blog-2021-hello-world"
    assert slug_for_url("https://site/a--b//c/") == "a-b-c"


def test_slug_is_deterministic():
    """Same URL, same slug."""
    url = "https://site/servicos/obras-publicas/"
    assert slug_for_url(url) == slug_for_url(url)


def test_slug_decodes_percent_escapes():
    """Browser-encoded paths slug the same as their literal form."""
    assert slug_for_url("https://site/Sobre-N%C3%B3s/") == "sobre-n-s"


def test_slug_ignores_fragment():
    assert slug_for_url("https://site/contact/#form") == "contact"


def test_redirect_source_is_path():
    assert redirect_source("https://site.org/sobre/", "https://site.org") == "/sobre/"
    assert redirect_source("https://site.org", "https://site.org") == "/"


def test_is_same_origin():
    """Hostnames are compared case-insensitively; malformed URLs are external."""
    assert is_same_origin("https://Site.org/about", "https://site.org/")
    assert is_same_origin("http://site.org/about", "https://site.org/")
    assert not is_same_origin("https://other.org/", "https://site.org/")
    assert not is_same_origin("mailto:hello@site.org", "https://site.org/")
    assert not is_same_origin("http://[::1", "https://site.org/")
    assert not is_same_origin("not a url", "https://site.org/")


def test_normalize_url_drops_fragment_and_roots_path():
    assert normalize_url("HTTPS://Site.org#top") == "https://site.org/"
    assert normalize_url("https://site.org/a/b?x=1#c") == "https://site.org/a/b?x=1"


def test_has_asset_extension():
    assert has_asset_extension("https://site.org/files/report.PDF")
    assert has_asset_extension("https://site.org/img/photo.jpg?v=2")
    assert not has_asset_extension("https://site.org/blog/post/")


def test_asset_filename_is_deterministic_and_disambiguated():
    """Same normalized URL gives the same name; different paths do not collide."""
    first = asset_filename("https://site.org/uploads/2021/Photo One.JPG?ver=3")
    second = asset_filename("https://SITE.org/uploads/2021/Photo One.JPG#x")
    other = asset_filename("https://site.org/uploads/2022/Photo One.JPG")
    assert first == second
    assert first != other
    assert first.startswith("photo-one-")
    assert first.endswith(".jpg")


def test_asset_filename_defaults_extension():
    assert asset_filename("https://site.org/image").endswith(".jpg")


def test_alt_text_from_filename():
    assert alt_text_from_filename("my_photo-01.jpg") == "My Photo 01"
    assert alt_text_from_filename("logo.png") == "Logo"
