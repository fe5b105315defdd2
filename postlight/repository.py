"""Post repository and site snapshots for Postlight.

A PostRepository is an immutable collection of posts built by scanning the
posts directory. A Site bundles a repository with the layout, banner, home and
not-found fragments. The ContentStore holds the current Site and replaces it
wholesale on reload, so a request handler that read a snapshot keeps seeing
either the old or the new content, never a mix.

Key classes:
- PostRepository: Slug lookup and date-ordered listing.
- Site: Immutable snapshot of everything a request needs.
- ContentStore: Atomically swappable reference to the current Site.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from .errors import ContentDirectoryError, ParseError, PostlightError, PostNotFound
from .markdown import render_markdown
from .parser import Post, PostSummary, load_post, split_frontmatter
from .templates import TemplateRenderer
from .utils import is_markdown

logger = logging.getLogger(__name__)

LAYOUT_FILE = "layout.html"
BANNER_FILE = "banner.html"
HOME_FILE = "home.md"
NOT_FOUND_FILE = "not_found.html"


def _index_key(post: Post) -> tuple:
    # newest first, then filename ascending
    return (-post.date.toordinal(), post.source_path.name)


class PostRepository:
    """Immutable collection of posts keyed by slug.

    Attributes:
        directory: Directory the posts were loaded from, if any.
    """

    def __init__(self, posts: Iterable[Post] = (), directory: Path | None = None):
        """Build a repository from posts.

        Posts are registered in the given order; when two share a slug the
        later one replaces the earlier one.

        Args:
            posts: Parsed posts in load order.
            directory: Directory the posts came from.
        """
        self.directory = directory
        by_slug: dict[str, Post] = {}
        for post in posts:
            previous = by_slug.get(post.slug)
            if previous is not None:
                logger.warning(
                    "Duplicate slug %r: %s replaces %s",
                    post.slug,
                    post.source_path.name,
                    previous.source_path.name,
                )
            by_slug[post.slug] = post
        self._posts: Mapping[str, Post] = MappingProxyType(by_slug)
        self._index: tuple[str, ...] = tuple(
            p.slug for p in sorted(by_slug.values(), key=_index_key)
        )

    @classmethod
    def load(cls, directory: Path) -> PostRepository:
        """Scan a directory for Markdown posts and build a repository.

        Only files directly under the directory are considered, in sorted
        filename order. Files that fail to read or parse are logged and
        skipped.

        Args:
            directory: Posts directory.

        Returns:
            A new repository.

        Raises:
            ContentDirectoryError: If the directory itself cannot be read.
        """
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise ContentDirectoryError(
                f"Cannot read posts directory {directory}: {exc}"
            ) from exc

        posts: list[Post] = []
        for path in entries:
            if not is_markdown(path) or not path.is_file():
                continue
            try:
                posts.append(load_post(path))
            except ParseError as exc:
                logger.warning("Skipping post %s", exc)
            except OSError as exc:
                logger.warning("Skipping unreadable post %s: %s", path, exc)
        repository = cls(posts, directory=directory)
        logger.info("Loaded %d posts from %s", len(repository), directory)
        return repository

    def get(self, slug: str) -> Post:
        """Return the post for a slug.

        Raises:
            PostNotFound: If no post has this slug.
        """
        try:
            return self._posts[slug]
        except KeyError:
            raise PostNotFound(slug) from None

    def list(self) -> list[PostSummary]:
        """Return post summaries, newest first, ties broken by filename."""
        return [self._posts[slug].summary() for slug in self._index]

    def __contains__(self, slug: object) -> bool:
        return slug in self._posts

    def __iter__(self) -> Iterator[Post]:
        return (self._posts[slug] for slug in self._index)

    def __len__(self) -> int:
        return len(self._posts)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostRepository({len(self)} posts)"


def _read_optional(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        raise ContentDirectoryError(f"Cannot read {path}: {exc}") from exc


@dataclass(frozen=True)
class Site:
    """Immutable snapshot of the served content.

    Attributes:
        posts: Post repository.
        renderer: Template renderer built from the layout.
        home_html: Rendered home.md fragment shown above the index.
    """

    posts: PostRepository
    renderer: TemplateRenderer
    home_html: str = ""

    @classmethod
    def load(
        cls,
        content_dir: Path,
        posts_dir: str = "posts",
        reload_script: str | None = None,
    ) -> Site:
        """Load layout, fragments and posts from a content directory.

        Args:
            content_dir: Content directory root.
            posts_dir: Name of the posts subdirectory.
            reload_script: Live reload snippet injected into every page.

        Returns:
            A new Site.

        Raises:
            ContentDirectoryError: If the layout or posts directory is unreadable.
            TemplateError: If the layout lacks a required placeholder.
            ParseError: If home.md has malformed front-matter.
        """
        layout = _read_optional(content_dir / LAYOUT_FILE)
        if layout is None:
            raise ContentDirectoryError(f"Missing layout template {content_dir / LAYOUT_FILE}")
        renderer = TemplateRenderer(
            layout,
            banner_html=_read_optional(content_dir / BANNER_FILE) or "",
            not_found_html=_read_optional(content_dir / NOT_FOUND_FILE),
            reload_script=reload_script,
        )
        home_path = content_dir / HOME_FILE
        home_source = _read_optional(home_path)
        if home_source:
            home_source = split_frontmatter(home_source, home_path)[1]
        return cls(
            posts=PostRepository.load(content_dir / posts_dir),
            renderer=renderer,
            home_html=render_markdown(home_source) if home_source else "",
        )

    def render_post(self, slug: str) -> str:
        """Render the page for a slug.

        Raises:
            PostNotFound: If the slug is unknown.
        """
        return self.renderer.render_post(self.posts.get(slug), self.posts.list())

    def render_index(self) -> str:
        return self.renderer.render_index(self.posts.list(), intro_html=self.home_html)

    def render_not_found(self, slug: str = "") -> str:
        return self.renderer.render_not_found(slug, self.posts.list())


class ContentStore:
    """Holds the current Site and swaps it on reload.

    Readers call ``current`` once per request and work with that snapshot.
    Reloads are serialised; the swap itself is a single reference assignment.
    """

    def __init__(self, loader: Callable[[], Site], initial: Site | None = None):
        """Initialize the store.

        Args:
            loader: Callable building a fresh Site.
            initial: Already loaded Site; when omitted the loader runs now and
                its errors propagate to the caller.
        """
        self._loader = loader
        self._reload_lock = threading.Lock()
        self._site = initial if initial is not None else loader()

    @property
    def current(self) -> Site:
        return self._site

    def reload(self) -> bool:
        """Rebuild the Site and swap it in.

        A failed rebuild is logged and the previous snapshot stays in place.

        Returns:
            True if a new snapshot was installed.
        """
        with self._reload_lock:
            logger.info("Reloading content...")
            try:
                site = self._loader()
            except PostlightError as exc:
                logger.error("Failed to reload content: %s", exc)
                return False
            self._site = site
            logger.info("Content reloaded (%d posts)", len(site.posts))
            return True
