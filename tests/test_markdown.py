"""Tests for the HTML to Markdown converter."""

from bs4 import BeautifulSoup

from site_migrator.markdown import (
    collapse_breaks,
    compose_markdown,
    html_to_markdown,
    render_node,
    yaml_scalar,
)
from site_migrator.models import FrontMatter, SeoMeta
from site_migrator.utils import asset_filename

PAGE = "https://site.org/sobre/"
BASE = "https://site.org"


def _render(fragment):
    soup = BeautifulSoup(fragment, "html.parser")
    return "".join(render_node(child) for child in soup.children)


def test_whitelisted_tags_convert():
    assert _render("<h1>Title</h1>") == "# Title\n\n"
    assert _render("<h3> Spaced </h3>") == "### Spaced\n\n"
    assert _render("<p>Hello <strong>bold</strong> and <em>soft</em></p>") == (
        "Hello **bold** and *soft*\n\n"
    )
    assert _render("<p>a<br>b</p>") == "a\nb\n\n"


def test_unknown_tags_pass_through():
    """Lists, tables and divs stay as HTML; their whitelisted children still convert."""
    assert _render("<ul><li><strong>One</strong></li></ul>") == "<ul><li>**One**</li></ul>"
    assert _render('<div class="box">text</div>') == '<div class="box">text</div>'
    assert _render('<img src="a.jpg" alt="A">') == '<img src="a.jpg" alt="A">'
    assert _render("<b>x</b><i>y</i>") == "<b>x</b><i>y</i>"


def test_bold_and_italic_tags_are_not_converted():
    body, _ = html_to_markdown("<p><b>Bold</b> and <i>it</i></p>", PAGE, BASE)
    assert body == "<b>Bold</b> and <i>it</i>"


def test_comments_are_dropped_and_text_escaped():
    assert _render("<p>1 &lt; 2<!-- hidden --></p>") == "1 &lt; 2\n\n"


def test_html_to_markdown_removes_unwanted_regions():
    body, images = html_to_markdown(
        "<nav>Menu</nav><script>alert(1)</script><p>Content</p><div class='footer'>Foot</div>",
        PAGE,
        BASE,
    )
    assert body == "Content"
    assert images == []


def test_images_are_rewritten_with_alt_text():
    body, images = html_to_markdown(
        '<p><img src="/wp-content/uploads/my_photo-01.jpg"></p>'
        '<p><img src="https://cdn.site.org/logo.png" alt="Logo da empresa"></p>'
        '<p><img src="data:image/png;base64,AAAA"></p>',
        PAGE,
        BASE,
    )
    first = "https://site.org/wp-content/uploads/my_photo-01.jpg"
    second = "https://cdn.site.org/logo.png"
    assert images == [first, second]
    assert f'src="../assets/images/{asset_filename(first)}"' in body
    assert 'alt="My Photo 01"' in body
    assert f'src="../assets/images/{asset_filename(second)}"' in body
    assert 'alt="Logo da empresa"' in body
    assert "data:image/png" in body


def test_same_origin_links_point_at_slugs():
    body, _ = html_to_markdown(
        '<p><a href="/servicos/obras/">Obras</a> '
        '<a href="https://other.org/x">Other</a> '
        '<a href="mailto:a@site.org">Mail</a> '
        '<a href="../">Home</a></p>',
        PAGE,
        BASE,
    )
    assert '<a href="/servicos-obras">Obras</a>' in body
    assert '<a href="https://other.org/x">Other</a>' in body
    assert '<a href="mailto:a@site.org">Mail</a>' in body
    assert '<a href="/index">Home</a>' in body


def test_same_origin_asset_links_are_untouched():
    body, _ = html_to_markdown('<p><a href="/files/catalogo.pdf">PDF</a></p>', PAGE, BASE)
    assert body == '<a href="/files/catalogo.pdf">PDF</a>'


def test_collapse_breaks():
    assert collapse_breaks("a\n\n\n\nb\n \n \nc") == "a\n\nb\n\nc"
    assert collapse_breaks("a\n\nb") == "a\n\nb"


def test_body_has_no_triple_breaks():
    body, _ = html_to_markdown("<p>One</p><p></p><p></p><p>Two</p>", PAGE, BASE)
    assert body == "One\n\nTwo"


def test_yaml_scalar_escapes():
    assert yaml_scalar('Say "hi"') == '"Say \\"hi\\""'
    assert yaml_scalar("line\nbreak") == '"line break"'
    assert yaml_scalar(None) == '""'


def test_compose_markdown_layout():
    frontmatter = FrontMatter(
        title="Sobre Nós",
        description="Quem somos",
        publish_date="2024-01-01",
        category="about",
        original_url=PAGE,
        slug="sobre",
        seo=SeoMeta(title="Sobre Nós", description="Quem somos", canonical=PAGE),
    )
    document = compose_markdown(frontmatter, "# Sobre\n\nTexto\n\n")
    assert document == (
        "---\n"
        'title: "Sobre Nós"\n'
        'description: "Quem somos"\n'
        'publishDate: "2024-01-01"\n'
        'category: "about"\n'
        'originalUrl: "https://site.org/sobre/"\n'
        'slug: "sobre"\n'
        "seo:\n"
        '  title: "Sobre Nós"\n'
        '  description: "Quem somos"\n'
        '  canonical: "https://site.org/sobre/"\n'
        "---\n"
        "\n"
        "# Sobre\n\nTexto\n"
    )
