"""Template rendering for Postlight.

This module uses Jinja2 to merge posts and the post index into the site layout.
The layout is loaded once per site snapshot and validated up front, so a
broken layout is reported when content is loaded rather than on a request.

Layout variables:
- title: Page title (escaped).
- content: Page body (trusted HTML).
- banner: Banner/navigation fragment, passed through unmodified.
- posts: The post index as a ``<ul>`` list, on every page.

Key class:
- TemplateRenderer: Renders post, index and not-found pages.
"""

from __future__ import annotations

from collections.abc import Iterable

from jinja2 import Environment, TemplateSyntaxError, meta
from markupsafe import Markup

from .errors import TemplateError
from .parser import Post, PostSummary
from .utils import inject_before_body_end

REQUIRED_PLACEHOLDERS = ("content", "title")

DEFAULT_NOT_FOUND = (
    "<h1>Not found</h1>"
    "{% if slug %}<p>There is no post named <code>{{ slug }}</code>.</p>"
    "{% else %}<p>The page you requested does not exist.</p>{% endif %}"
)

_POST_ARTICLE = Markup(
    '<article class="post"><h1>{title}</h1>'
    '<p class="post-date"><time datetime="{date}">{date}</time></p>'
    "{body}</article>"
)
_INDEX_ITEM = Markup('<li><a href="/posts/{slug}">{title}</a></li>')


def render_post_index(summaries: Iterable[PostSummary]) -> Markup:
    """Render summaries as a ``<ul>`` of post links in the order given.

    Args:
        summaries: Post summaries.

    Returns:
        Markup-safe HTML list with escaped slugs and titles.
    """
    items = [_INDEX_ITEM.format(slug=s.slug, title=s.title) for s in summaries]
    return Markup('<ul class="post-index">') + Markup("").join(items) + Markup("</ul>")


class TemplateRenderer:
    """Renders pages through the site layout.

    Attributes:
        env: Jinja2 environment with autoescaping enabled.
        banner: Banner fragment inserted as-is.
        reload_script: Live reload snippet injected before ``</body>``, if any.
        index_title: Page title used for the index page.
        layout_lists_posts: Whether the layout places the post list itself.
    """

    def __init__(
        self,
        layout_source: str,
        banner_html: str = "",
        not_found_html: str | None = None,
        reload_script: str | None = None,
        index_title: str = "Home",
    ):
        """Compile and validate the layout.

        Args:
            layout_source: Layout template source.
            banner_html: Banner fragment.
            not_found_html: Not-found fragment supporting ``{{ slug }}``.
            reload_script: Snippet injected into every page in development mode.
            index_title: Page title for the index page.

        Raises:
            TemplateError: If a template does not compile or the layout lacks
                a required placeholder.
        """
        self.env = Environment(autoescape=True)
        self.banner = Markup(banner_html)
        self.reload_script = reload_script
        self.index_title = index_title
        self._layout, layout_vars = self._compile(layout_source, "layout", REQUIRED_PLACEHOLDERS)
        self.layout_lists_posts = "posts" in layout_vars
        self._not_found, _ = self._compile(not_found_html or DEFAULT_NOT_FOUND, "not-found page")

    def _compile(self, source: str, name: str, required: Iterable[str] = ()):
        try:
            parsed = self.env.parse(source)
        except TemplateSyntaxError as exc:
            raise TemplateError(
                f"Template syntax error in {name} on line {exc.lineno}: {exc.message}"
            ) from exc
        found = meta.find_undeclared_variables(parsed)
        missing = [key for key in required if key not in found]
        if missing:
            placeholders = ", ".join(f"{{{{ {key} }}}}" for key in missing)
            raise TemplateError(f"The {name} is missing required placeholder(s): {placeholders}")
        return self.env.from_string(source), found

    def _render_layout(self, title: str, content: Markup, summaries: Iterable[PostSummary]) -> str:
        page = self._layout.render(
            title=title,
            content=content,
            banner=self.banner,
            posts=render_post_index(summaries),
        )
        if self.reload_script:
            page = inject_before_body_end(page, self.reload_script)
        return page

    def render_post(self, post: Post, summaries: Iterable[PostSummary] = ()) -> str:
        """Render a post page.

        Args:
            post: Post to render. Its body is trusted HTML.
            summaries: Post summaries for the layout's ``posts`` list.

        Returns:
            Rendered HTML page.
        """
        article = _POST_ARTICLE.format(
            title=post.title,
            date=post.date.isoformat(),
            body=Markup(post.body_html),
        )
        return self._render_layout(post.title, article, summaries)

    def render_index(self, summaries: Iterable[PostSummary], intro_html: str = "") -> str:
        """Render the index page.

        The post list goes into ``content`` after the intro, unless the layout
        places ``{{ posts }}`` itself.

        Args:
            summaries: Post summaries in display order.
            intro_html: Optional trusted fragment shown above the list.

        Returns:
            Rendered HTML page.
        """
        summaries = list(summaries)
        content = Markup(intro_html)
        if not self.layout_lists_posts:
            content += render_post_index(summaries)
        return self._render_layout(self.index_title, content, summaries)

    def render_not_found(self, slug: str = "", summaries: Iterable[PostSummary] = ()) -> str:
        """Render the not-found page, substituting ``{{ slug }}`` (escaped)."""
        body = Markup(self._not_found.render(slug=slug))
        return self._render_layout("Not found", body, summaries)
