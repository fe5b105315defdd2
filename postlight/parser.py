"""Post parsing for Postlight.

A post file is an optional YAML front-matter block delimited by ``---`` lines,
followed by a Markdown body:

    ---
    title: Hello
    date: 2025-01-01
    slug: hello
    ---
    # Body

Key items:
- Post: Frozen dataclass holding one parsed post.
- PostSummary: Named tuple used by the index listing.
- split_frontmatter: Separate the front-matter block from the body.
- parse_post: Build a Post from raw file content.
- load_post: Read a file from disk and parse it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, NamedTuple

import yaml

from .errors import ParseError
from .markdown import render_markdown
from .utils import extract_date_from_name, slugify

FRONTMATTER_RE = re.compile(r"^---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
_OPENING_RE = re.compile(r"^---[ \t]*\r?\n")
DATE_FORMAT = "%Y-%m-%d"


class PostSummary(NamedTuple):
    """Index entry for a post."""

    slug: str
    title: str
    date: date


@dataclass(frozen=True)
class Post:
    """A parsed post.

    Attributes:
        slug: Unique URL identifier.
        title: Display title.
        date: Publication date, used for index ordering.
        body_html: Rendered HTML body.
        source_path: File the post was parsed from.
    """

    slug: str
    title: str
    date: date
    body_html: str
    source_path: Path

    def summary(self) -> PostSummary:
        return PostSummary(self.slug, self.title, self.date)


def split_frontmatter(text: str, source_path: Path) -> tuple[dict[str, Any], str]:
    """Extract YAML front-matter from content.

    Args:
        text: Raw file content.
        source_path: Path of the file, used in error messages.

    Returns:
        Tuple of (front-matter dict, remaining body). Files without a leading
        ``---`` line have an empty front-matter.

    Raises:
        ParseError: If the block is unterminated, is not valid YAML, or is
            not a mapping.
    """
    if not _OPENING_RE.match(text):
        return {}, text
    match = FRONTMATTER_RE.match(text)
    if not match:
        raise ParseError(source_path, "Unterminated front-matter block")
    try:
        data = yaml.safe_load(match.group(1))
    except (yaml.YAMLError, ValueError) as exc:
        # out-of-range timestamps raise ValueError from the constructor
        raise ParseError(source_path, f"Invalid front-matter: {exc}", exc) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError(source_path, "Front-matter must be a mapping of keys to values")
    return data, text[match.end() :]


def _coerce_date(value: Any, source_path: Path) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), DATE_FORMAT).date()
        except ValueError as exc:
            raise ParseError(
                source_path, f"Unparseable date {value!r}, expected YYYY-MM-DD", exc
            ) from exc
    raise ParseError(source_path, f"Unparseable date {value!r}, expected YYYY-MM-DD")


def _fallback_date(source_path: Path) -> date:
    found = extract_date_from_name(source_path.stem)
    if found is not None:
        return found
    try:
        return date.fromtimestamp(source_path.stat().st_mtime)
    except OSError:
        return date.today()


def _text_field(frontmatter: dict[str, Any], key: str) -> str | None:
    value = frontmatter.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_post(raw: bytes | str, source_path: Path) -> Post:
    """Build a Post from raw file content.

    The slug defaults to the slugified filename stem and the title defaults
    to the slug. Without a front-matter date, the filename's date prefix or
    the file's modification date is used.

    Args:
        raw: File content as bytes (decoded as UTF-8) or text.
        source_path: Path of the file the content came from.

    Returns:
        The parsed Post.

    Raises:
        ParseError: If the content is not UTF-8 or its front-matter is malformed.
    """
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ParseError(source_path, "File is not valid UTF-8", exc) from exc
    else:
        text = raw

    frontmatter, body = split_frontmatter(text, source_path)

    slug = _text_field(frontmatter, "slug")
    slug = slugify(slug, strip_date=False) if slug else slugify(source_path.stem)
    title = _text_field(frontmatter, "title") or slug
    if frontmatter.get("date") is not None:
        post_date = _coerce_date(frontmatter["date"], source_path)
    else:
        post_date = _fallback_date(source_path)

    return Post(
        slug=slug,
        title=title,
        date=post_date,
        body_html=render_markdown(body),
        source_path=source_path,
    )


def load_post(path: Path) -> Post:
    """Read a post file and parse it.

    Raises:
        OSError: If the file cannot be read.
        ParseError: If the file content is malformed.
    """
    return parse_post(path.read_bytes(), path)
