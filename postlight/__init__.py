"""Postlight content server.

This package turns a directory of Markdown posts into rendered HTML pages and
serves them over HTTP. In development mode it watches the content directory and
pushes a live reload signal to connected browsers over a websocket.

The main entry point is the CLI module, which provides commands for scaffolding
a content directory, creating posts and running the server.

Components:
- parser / markdown: Front-matter parsing and Markdown rendering.
- repository: Immutable post repository and the swappable site snapshot.
- templates: Layout rendering for posts, the index and the not-found page.
- watcher: Debounced file watching.
- broadcast: Live reload client registry and fan-out.
- server: HTTP dispatch and websocket wiring.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
