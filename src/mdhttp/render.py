"""
=============================================================================
MARKDOWN RENDERING
=============================================================================

Turns the Markdown source into one complete XHTML page. Runs exactly once
per process, before the server starts listening.

=============================================================================
THE PAGE
=============================================================================

    <!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN" "...">
    <html xmlns="http://www.w3.org/1999/xhtml">
    <head>
      <title>Landing page</title>                            ← --title
      <meta name="GENERATOR" content="Python-Markdown 3.x" />
      <meta charset="utf-8" />
      <link rel="stylesheet" type="text/css" href="default.css" />  ← --css
    </head>
    <body>

    <h1 id="example-header">example header</h1>              ← body
    </body>
    </html>

=============================================================================
MARKDOWN DIALECT
=============================================================================

    ┌────────────────────────────┬───────────────────────────────────────┐
    │ Feature                    │ Provided by                           │
    ├────────────────────────────┼───────────────────────────────────────┤
    │ tables, fenced code,       │ markdown "extra"                      │
    │ footnotes (+ return links),│                                       │
    │ definition lists           │                                       │
    │ heading ids                │ markdown "toc" (slugified text)       │
    │ smart quotes and dashes    │ markdown "smarty"                     │
    │ ~~strikethrough~~          │ pymdownx.tilde                        │
    │ bare URL autolinks         │ pymdownx.magiclink                    │
    │ target="_blank"            │ TargetBlankExtension (this module)    │
    └────────────────────────────┴───────────────────────────────────────┘

Absolute links (with a scheme) open in a new tab; relative links and
in-page anchors such as footnote references do not.

=============================================================================
"""

import html
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor


logger = logging.getLogger(__name__)


class RenderError(Exception):
    """The document could not be rendered; the cause is chained."""


class Renderer(ABC):
    """
    Converts document source into a finished HTML page.

    Implementations must be deterministic: the page fingerprint is derived
    from their output.
    """

    @abstractmethod
    def render(self, source: bytes, title: str, stylesheet: Optional[str] = None) -> bytes:
        """
        Args:
            source: Raw document bytes.
            title: Page title, inserted escaped.
            stylesheet: href for a <link rel="stylesheet">, or None.

        Returns:
            The complete page, UTF-8 encoded.

        Raises:
            RenderError: If the source cannot be rendered.
        """


# =============================================================================
# TARGET="_BLANK" FOR ABSOLUTE LINKS
# =============================================================================

_ABSOLUTE_URL = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


class _TargetBlankTreeprocessor(Treeprocessor):
    def run(self, root):
        for anchor in root.iter("a"):
            if _ABSOLUTE_URL.match(anchor.get("href", "")):
                anchor.set("target", "_blank")


class TargetBlankExtension(Extension):
    """Adds target="_blank" to every link with an absolute URL."""

    def extendMarkdown(self, md):
        # Priority 0: after the inline processor has created the <a> elements
        md.treeprocessors.register(_TargetBlankTreeprocessor(md), "target_blank", 0)


# =============================================================================
# MARKDOWN RENDERER
# =============================================================================

DOCTYPE = (
    '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN" '
    '"http://www.w3.org/TR/xhtml1/DTD/xhtml1-transitional.dtd">'
)

DEFAULT_EXTENSIONS = (
    "extra",
    "toc",
    "smarty",
    "pymdownx.tilde",
    "pymdownx.magiclink",
)

DEFAULT_EXTENSION_CONFIGS = {
    # ~text~ stays literal; only ~~text~~ means strikethrough
    "pymdownx.tilde": {"subscript": False},
}


class MarkdownRenderer(Renderer):
    """
    Python-Markdown based renderer producing a complete XHTML page.

        renderer = MarkdownRenderer()
        page = renderer.render(b"# example header\\n", "Docs", "default.css")
    """

    def __init__(self, extensions=DEFAULT_EXTENSIONS, extension_configs=None):
        self.extensions = list(extensions) + [TargetBlankExtension()]
        self.extension_configs = dict(extension_configs or DEFAULT_EXTENSION_CONFIGS)

    def _markdown(self) -> markdown.Markdown:
        return markdown.Markdown(
            extensions=self.extensions,
            extension_configs=self.extension_configs,
            output_format="xhtml",
        )

    def render_body(self, source: bytes) -> str:
        """Render the document to an HTML fragment."""
        try:
            text = source.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise RenderError(f"document is not valid UTF-8: {e}") from e

        try:
            return self._markdown().convert(text)
        except Exception as e:
            raise RenderError(f"failed to convert markdown: {e}") from e

    def render(self, source: bytes, title: str, stylesheet: Optional[str] = None) -> bytes:
        logger.debug("converting markdown to html", extra={"bytes": len(source)})
        body = self.render_body(source)

        head = [
            f"  <title>{html.escape(title)}</title>",
            f'  <meta name="GENERATOR" content="Python-Markdown {markdown.__version__}" />',
            '  <meta charset="utf-8" />',
        ]
        if stylesheet:
            head.append(
                f'  <link rel="stylesheet" type="text/css" href="{html.escape(stylesheet)}" />'
            )

        page = "\n".join([
            DOCTYPE,
            '<html xmlns="http://www.w3.org/1999/xhtml">',
            "<head>",
            *head,
            "</head>",
            "<body>",
            "",
            body,
            "",
            "</body>",
            "</html>",
            "",
        ])
        return page.encode("utf-8")
