"""Live reload broadcasting for Postlight.

The ReloadBroadcaster keeps the set of connected live reload clients and fans
a reload message out to all of them. The client set is guarded by a lock, so
registration, unregistration and the snapshot taken by a broadcast never
interleave. A client that fails to receive a message is dropped without
affecting delivery to the others.

Key items:
- ClientHandle: Opaque token returned by register().
- ReloadBroadcaster: Client registry and fan-out.
- RELOAD_MESSAGE: Message sent to clients; any message triggers a reload.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

from .errors import BroadcastSendError

logger = logging.getLogger(__name__)

RELOAD_MESSAGE = json.dumps({"type": "reload"})


@dataclass(frozen=True)
class ClientHandle:
    id: int


class ReloadBroadcaster:
    """Registry of live reload clients.

    Clients are objects with an awaitable ``send(message)`` method, such as
    websocket connections.

    Attributes:
        loop: Event loop that owns the client connections, used by
            broadcast_reload() to schedule sends from other threads.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop
        self._clients: dict[ClientHandle, Any] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def register(self, client: Any) -> ClientHandle:
        """Add a client and return its handle."""
        handle = ClientHandle(next(self._ids))
        with self._lock:
            self._clients[handle] = client
        logger.debug("Live reload client %d connected", handle.id)
        return handle

    def unregister(self, handle: ClientHandle) -> None:
        """Remove a client. Unknown or already removed handles are ignored."""
        with self._lock:
            removed = self._clients.pop(handle, None)
        if removed is not None:
            logger.debug("Live reload client %d disconnected", handle.id)

    def close_all(self) -> None:
        """Forget every client without sending them anything."""
        with self._lock:
            self._clients.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._clients

    async def broadcast(self, message: str = RELOAD_MESSAGE) -> int:
        """Send a message to every client registered when the call starts.

        Sends run concurrently. Clients whose send fails are unregistered.

        Args:
            message: Text message to send.

        Returns:
            Number of clients that received the message.
        """
        with self._lock:
            targets = list(self._clients.items())
        results = await asyncio.gather(
            *(self._send(handle, client, message) for handle, client in targets),
            return_exceptions=True,
        )
        delivered = 0
        for (handle, _), result in zip(targets, results):
            if isinstance(result, BroadcastSendError):
                logger.debug("Dropping live reload client: %s", result)
                self.unregister(handle)
            elif isinstance(result, BaseException):
                raise result
            else:
                delivered += 1
        return delivered

    async def _send(self, handle: ClientHandle, client: Any, message: str) -> None:
        try:
            await client.send(message)
        except Exception as exc:
            raise BroadcastSendError(f"client {handle.id}: {exc!r}") from exc

    def broadcast_reload(self) -> Future | None:
        """Schedule a reload broadcast on the client loop. Safe from any thread.

        Returns:
            Future resolving to the number of clients reached, or None when
            no loop is running.
        """
        if self.loop is None or self.loop.is_closed():
            logger.debug("No live reload loop; skipping broadcast")
            return None
        logger.info("Sending reload to %d client(s)", len(self))
        return asyncio.run_coroutine_threadsafe(self.broadcast(RELOAD_MESSAGE), self.loop)

    async def serve_client(self, websocket: Any) -> None:
        """Websocket connection handler: keep the client registered until it closes."""
        handle = self.register(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.unregister(handle)
