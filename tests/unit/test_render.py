"""
Unit tests for Markdown rendering.
"""

import markdown
import pytest

from mdhttp.render import DOCTYPE, MarkdownRenderer, Renderer, RenderError


@pytest.fixture(scope="module")
def renderer() -> MarkdownRenderer:
    return MarkdownRenderer()


def render_text(renderer: MarkdownRenderer, text: str, **kwargs) -> str:
    return renderer.render(text.encode("utf-8"), kwargs.pop("title", "Landing page"), **kwargs).decode("utf-8")


class TestPage:
    """Tests for the page around the rendered body."""

    def test_skeleton(self, renderer):
        page = render_text(renderer, "# example header\n")

        assert page.startswith(DOCTYPE + "\n")
        assert '<html xmlns="http://www.w3.org/1999/xhtml">' in page
        assert "<title>Landing page</title>" in page
        assert '<meta charset="utf-8" />' in page
        assert f'content="Python-Markdown {markdown.__version__}"' in page
        assert page.endswith("</body>\n</html>\n")

    def test_title_is_escaped(self, renderer):
        page = render_text(renderer, "x", title="<Docs & more>")
        assert "<title>&lt;Docs &amp; more&gt;</title>" in page

    def test_stylesheet_link(self, renderer):
        page = render_text(renderer, "x", stylesheet="default.css")
        assert '<link rel="stylesheet" type="text/css" href="default.css" />' in page

    def test_no_stylesheet_link(self, renderer):
        assert "<link" not in render_text(renderer, "x")

    def test_returns_utf8_bytes(self, renderer):
        page = renderer.render("# Grüße\n".encode("utf-8"), "t")

        assert isinstance(page, bytes)
        assert "Grüße".encode("utf-8") in page

    def test_deterministic(self, renderer):
        source = b"# a\n\ntext https://example.com\n"
        assert renderer.render(source, "t") == renderer.render(source, "t")

    def test_is_a_renderer(self, renderer):
        assert isinstance(renderer, Renderer)


class TestMarkdownDialect:
    """Tests for the enabled Markdown features."""

    def test_heading_ids(self, renderer):
        page = render_text(renderer, "# example header\n")
        assert '<h1 id="example-header">example header</h1>' in page

    def test_table(self, renderer):
        page = render_text(renderer, "| a | b |\n|---|---|\n| 1 | 2 |\n")

        assert "<table>" in page
        assert "<td>1</td>" in page

    def test_fenced_code(self, renderer):
        page = render_text(renderer, "```\nprint(1)\n```\n")
        assert "<code>print(1)\n</code>" in page

    def test_strikethrough(self, renderer):
        assert "<del>gone</del>" in render_text(renderer, "~~gone~~")

    def test_single_tilde_is_literal(self, renderer):
        assert "<sub>" not in render_text(renderer, "H~2~O")

    def test_footnotes(self, renderer):
        page = render_text(renderer, "Text[^1]\n\n[^1]: note\n")

        assert 'class="footnote"' in page
        assert "footnote-backref" in page

    def test_autolink_bare_url(self, renderer):
        page = render_text(renderer, "see https://example.com now")
        assert 'href="https://example.com"' in page

    def test_absolute_links_open_new_tab(self, renderer):
        page = render_text(renderer, "[site](https://example.com)")
        assert 'target="_blank"' in page

    def test_relative_links_stay(self, renderer):
        page = render_text(renderer, "[other](other.html) and [top](#top)")
        assert 'target="_blank"' not in page

    def test_footnote_refs_stay(self, renderer):
        page = render_text(renderer, "Text[^1]\n\n[^1]: note\n")
        assert 'target="_blank"' not in page


class TestErrors:

    def test_invalid_utf8(self, renderer):
        with pytest.raises(RenderError) as exc_info:
            renderer.render(b"\xff\xfe\xfa", "t")

        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_bom_is_ignored(self, renderer):
        page = renderer.render(b"\xef\xbb\xbf# title\n", "t").decode("utf-8")
        assert '<h1 id="title">title</h1>' in page
