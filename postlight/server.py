"""HTTP server and live reload wiring for Postlight.

Routes:
- ``/``: the post index.
- ``/posts/{slug}``: a post page, or the not-found page with a 404 status.
- ``/static/...``, ``/favicon.ico``, ``/favicon.png``: files from ``content/static``.
- Anything else, directory listings included: the not-found page with a 404.

In development mode a websocket server runs on ``ws_port`` and every page gets
a script that reloads the tab on any message. The content watcher feeds the
LiveReloader, which reloads the content store and then broadcasts.

Key classes:
- ContentServer: Owns the store, broadcaster, watcher and server threads.
- LiveReloader: Turns change notifications into reload + broadcast.
- _RequestHandler: HTTP request handler reading the current site snapshot.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import queue
import threading
import time
from collections.abc import Callable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import unquote, urlsplit

import websockets

from .broadcast import ReloadBroadcaster
from .config import ServerConfig
from .errors import PostNotFound
from .repository import ContentStore, Site
from .watcher import ChangeNotification, ContentWatcher

logger = logging.getLogger(__name__)

RELOAD_SCRIPT_TEMPLATE = """
<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}/ws');
  ws.onmessage = () => location.reload();
}})();
</script>
"""

POSTS_PREFIX = "/posts/"
STATIC_PREFIX = "/static/"
FAVICONS = ("/favicon.ico", "/favicon.png")


class _RequestHandler(SimpleHTTPRequestHandler):
    """Dispatches requests to the current site snapshot or the static directory.

    Attributes:
        store: ContentStore providing the current Site.
    """

    store: ContentStore
    server_version = "Postlight"

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def translate_path(self, path):
        if path.startswith(STATIC_PREFIX):
            path = path[len(STATIC_PREFIX) - 1 :]
        return super().translate_path(path)

    def send_head(self):
        route = urlsplit(self.path).path
        if route in ("/", "/index.html"):
            return self._send_rendered(lambda site: site.render_index())
        if route.startswith(POSTS_PREFIX):
            slug = unquote(route[len(POSTS_PREFIX) :]).strip("/")
            return self._send_post(slug)
        if route.startswith(STATIC_PREFIX) or route in FAVICONS:
            return self._send_static()
        return self._send_not_found()

    def _send_post(self, slug: str):
        site = self.store.current
        if not slug:
            return self._send_not_found(site)
        try:
            html = site.render_post(slug)
        except PostNotFound:
            logger.info("No post for slug %r", slug)
            return self._send_not_found(site, slug)
        except Exception:
            logger.exception("Failed to render post %r", slug)
            self.send_error(500, "Internal server error")
            return None
        return self._send_html(200, html)

    def _send_rendered(self, render: Callable[[Site], str]):
        try:
            html = render(self.store.current)
        except Exception:
            logger.exception("Failed to render %s", self.path)
            self.send_error(500, "Internal server error")
            return None
        return self._send_html(200, html)

    def _send_static(self):
        fs_path = Path(self.translate_path(self.path))
        if not fs_path.is_file():
            return self._send_not_found()
        return super().send_head()

    def _send_not_found(self, site: Site | None = None, slug: str = ""):
        """Serve the not-found page with a 404 status."""
        site = site or self.store.current
        try:
            html = site.render_not_found(slug)
        except Exception:
            logger.exception("Failed to render not-found page")
            self.send_error(404, "File not found")
            return None
        return self._send_html(404, html)

    def _send_html(self, status: int, html: str):
        encoded = html.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(encoded)
        return None


class LiveReloader:
    """Reloads content and notifies clients for each change notification.

    Attributes:
        store: ContentStore to reload.
        broadcaster: ReloadBroadcaster to notify.
        changes: Queue of ChangeNotification objects from the watcher.
    """

    def __init__(self, store: ContentStore, broadcaster: ReloadBroadcaster, changes: queue.Queue):
        self.store = store
        self.broadcaster = broadcaster
        self.changes = changes
        self._thread: threading.Thread | None = None

    def handle_change(self, notification: ChangeNotification) -> bool:
        """Reload the store and broadcast when the reload succeeded.

        Returns:
            True if clients were notified.
        """
        logger.info("Content change detected: %s", ", ".join(notification.paths) or "unknown")
        if not self.store.reload():
            return False
        self.broadcaster.broadcast_reload()
        return True

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name="postlight-live-reload", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread is not None:
            self.changes.put(None)
            self._thread.join()
            self._thread = None

    def _run(self) -> None:
        while True:
            notification = self.changes.get()
            if notification is None:
                return
            try:
                self.handle_change(notification)
            except Exception:
                # keep consuming; the next change gets a fresh reload
                logger.exception("Live reload failed")


class ContentServer:
    """Content server with optional live reload.

    Attributes:
        config: Resolved server configuration.
        store: ContentStore holding the current Site.
        broadcaster: Live reload client registry.
        watcher: Content watcher, development mode only.
        live_reloader: Change consumer, development mode only.
    """

    def __init__(self, config: ServerConfig):
        """Load the initial content.

        Args:
            config: Resolved server configuration.

        Raises:
            ContentDirectoryError: If the content cannot be read.
            TemplateError: If the layout is unusable.
        """
        self.config = config
        self.reload_script = (
            RELOAD_SCRIPT_TEMPLATE.format(ws_port=config.ws_port) if config.development else None
        )
        self.store = ContentStore(self._load_site)
        self._loop = asyncio.new_event_loop()
        self._ws_closed: asyncio.Event | None = None
        self.broadcaster = ReloadBroadcaster(self._loop)
        self._changes: queue.Queue = queue.Queue()
        self.watcher: ContentWatcher | None = None
        self.live_reloader: LiveReloader | None = None
        if config.development:
            self.watcher = ContentWatcher(config.content_dir, self._changes, config.debounce_seconds)
            self.live_reloader = LiveReloader(self.store, self.broadcaster, self._changes)
        self._httpd: ThreadingHTTPServer | None = None

    def _load_site(self) -> Site:
        return Site.load(
            self.config.content_dir,
            posts_dir=self.config.posts_dir,
            reload_script=self.reload_script,
        )

    def make_handler(self):
        handler_cls = type("_RequestHandlerWithStore", (_RequestHandler,), {"store": self.store})
        return functools.partial(handler_cls, directory=str(self.config.static_dir))

    def open(self) -> None:
        """Start the watcher, websocket and HTTP threads.

        Raises:
            WatchError: If development mode is on and the watcher cannot start.
            OSError: If the HTTP port cannot be bound.
        """
        if self.watcher is not None and self.live_reloader is not None:
            self.watcher.start()
            self.live_reloader.start()
            threading.Thread(target=self._start_ws, name="postlight-ws", daemon=True).start()
        self._httpd = ThreadingHTTPServer((self.config.host, self.config.port), self.make_handler())
        threading.Thread(target=self._httpd.serve_forever, name="postlight-http", daemon=True).start()
        logger.info(
            "Serving %s at http://localhost:%d (live reload %s)",
            self.config.content_dir,
            self.config.port,
            "on" if self.config.development else "off",
        )

    def start(self) -> None:  # pragma: no cover - integration path
        self.open()
        self.wait()

    def wait(self) -> None:  # pragma: no cover - integration path
        """Block until interrupted, then shut down."""
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
        if self.live_reloader is not None:
            self.live_reloader.stop()
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        self.broadcaster.close_all()
        if self._ws_closed is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._ws_closed.set)

    def _start_ws(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %d): %s", self.config.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        self._ws_closed = asyncio.Event()
        async with websockets.serve(self.broadcaster.serve_client, self.config.host, self.config.ws_port):
            logger.info("Live reload listening on ws://localhost:%d/ws", self.config.ws_port)
            await self._ws_closed.wait()
