"""Markdown rendering for Postlight.

Post bodies are converted with mistune using a custom HTML renderer that adds
anchor ids to headings and highlights fenced code blocks with Pygments.
LaTeX-style ``\\(...\\)`` and ``\\[...\\]`` delimiters are normalised to the
dollar syntax understood by mistune's math plugin before parsing.

Key items:
- render_markdown: Convert a Markdown string to HTML.
- normalize_math_delimiters: Rewrite LaTeX delimiters to dollar delimiters.
"""

from __future__ import annotations

import re

import mistune

MARKDOWN_PLUGINS = ["strikethrough", "table", "url", "math"]

_MATH_DELIMITER_RE = re.compile(r"\\\((?P<inline>.+?)\\\)|\\\[(?P<display>.+?)\\\]", re.DOTALL)


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def normalize_math_delimiters(text: str) -> str:
    """Rewrite ``\\(x\\)`` to ``$x$`` and ``\\[x\\]`` to a ``$$`` block.

    Inline math that spans several lines is promoted to a display block.

    Args:
        text: Markdown source.

    Returns:
        Markdown with dollar math delimiters.
    """

    def repl(match: re.Match) -> str:
        inline = match.group("inline")
        if inline is not None and "\n" not in inline:
            return f"${inline.strip()}$"
        content = (inline if inline is not None else match.group("display")).strip()
        return f"\n\n$$\n{content}\n$$\n\n"

    return _MATH_DELIMITER_RE.sub(repl, text)


class _PostRenderer(mistune.HTMLRenderer):
    """HTML renderer with heading anchors and syntax highlighting."""

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Unknown languages fall back to a plain escaped ``<pre><code>`` block.
        """
        lang = info.split()[0] if info else ""
        if lang:
            from pygments import highlight
            from pygments.formatters import HtmlFormatter
            from pygments.lexers import get_lexer_by_name
            from pygments.util import ClassNotFound

            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


def render_markdown(text: str) -> str:
    """Render Markdown source to HTML.

    Args:
        text: Markdown source.

    Returns:
        Rendered HTML.
    """
    # one instance per document: the renderer tracks heading ids seen so far
    markdown = mistune.create_markdown(renderer=_PostRenderer(), plugins=MARKDOWN_PLUGINS)
    return markdown(normalize_math_delimiters(text))
