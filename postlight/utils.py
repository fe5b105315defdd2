"""Utility functions for Postlight.

This module contains small string and path helpers used throughout the Postlight codebase.

Key functions:
    slugify: Convert filenames to URL slugs.
    extract_date_from_name: Extract date from filename prefix.
    is_markdown: Check if a path is a Markdown file.
    is_editor_temp_file: Check if a path is an editor backup or lock file.
    inject_before_body_end: Insert a snippet before the closing body tag.
"""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path

_DATE_PREFIX_PARTS = 3


def _strip_date_prefix(name: str) -> str:
    parts = name.split("-")
    if len(parts) > _DATE_PREFIX_PARTS and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return name


def slugify(name: str, strip_date: bool = True) -> str:
    """Convert filename (without extension) to slug, dropping date prefix.

    Args:
        name: Filename stem.
        strip_date: Whether to drop a leading YYYY-MM-DD- prefix.

    Returns:
        URL-friendly slug.
    """
    cleaned = _strip_date_prefix(name) if strip_date else name
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def extract_date_from_name(name: str) -> date | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        date object if a valid date prefix is found, None otherwise.

    Examples:
        >>> extract_date_from_name("2024-01-15-hello-world")
        datetime.date(2024, 1, 15)

        >>> extract_date_from_name("hello-world") is None
        True
    """
    parts = name.split("-")
    if len(parts) >= _DATE_PREFIX_PARTS and all(p.isdigit() for p in parts[:3]):
        try:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md extension (case-insensitive).
    """
    return path.suffix.lower() == ".md"


def is_editor_temp_file(path: Path) -> bool:
    """Check if a path is an editor lock or backup file (``.#name``, ``name~``)."""
    name = path.name
    return name.startswith(".#") or name.endswith("~")


def inject_before_body_end(html: str, snippet: str) -> str:
    """Insert a snippet before ``</body>``, or append it when there is no body tag."""
    if "</body>" in html:
        return html.replace("</body>", f"{snippet}</body>", 1)
    return html + snippet
