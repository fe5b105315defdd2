"""Error types for Postlight.

Errors local to one post or one client are contained and logged. Errors that
leave the server without readable content or a usable layout abort startup.

Key classes:
- ParseError: A single post could not be parsed (skipped, not fatal).
- ContentDirectoryError: The content directory cannot be read.
- TemplateError: The layout template is unusable.
- PostNotFound: No post exists for the requested slug.
- WatchError: The file watcher could not be registered.
- BroadcastSendError: A reload message could not be delivered to one client.
"""

from __future__ import annotations

from pathlib import Path


class PostlightError(Exception):
    """Base class for all Postlight errors."""


class ParseError(PostlightError):
    """Error while parsing a post with file context.

    Attributes:
        source_path: Path to the post that failed to parse.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class ContentDirectoryError(PostlightError, OSError):
    """The content directory (or a required file in it) cannot be read."""


class TemplateError(PostlightError):
    """The layout template is malformed or lacks a required placeholder."""


class PostNotFound(PostlightError, LookupError):
    """No post is registered under the requested slug.

    Attributes:
        slug: The slug that was looked up.
    """

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"No post with slug {slug!r}")


class WatchError(PostlightError):
    """The content watcher could not be started."""


class BroadcastSendError(PostlightError):
    """Delivering a reload message to a single client failed."""
