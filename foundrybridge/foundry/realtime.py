"""
Socket.IO channel to a FoundryVTT server.

FoundryVTT speaks Socket.IO: the session cookie goes in the connection query
string, the server answers a successful connection with a ``session`` event,
and data requests (``getJoinData``, ``world``) are plain emits whose answer
comes back as the acknowledgement.

RealtimeChannel turns that callback style into awaitables with a timeout.
Each channel wraps exactly one ``socketio.AsyncClient`` and is never reused
after ``close()``; callers open a new channel instead of reconnecting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlencode

import socketio

from foundrybridge.foundry.errors import RealtimeConnectionError

logger = logging.getLogger(__name__)


class RealtimeChannel:
    """
    One Socket.IO connection authenticated with a session cookie.

    Args:
        base_url: Server base URL, e.g. ``http://localhost:30000``
        session_token: Value of the ``session`` cookie
        socket_path: Socket.IO endpoint path on the server

    Example:
        >>> channel = RealtimeChannel("http://localhost:30000", session.token)
        >>> session_data = await channel.open(timeout=15)
        >>> world = await channel.request("world", timeout=15)
        >>> await channel.close()
    """

    def __init__(
        self,
        base_url: str,
        session_token: str,
        socket_path: str = "/socket.io/",
    ):
        self._url = f"{base_url.rstrip('/')}/?{urlencode({'session': session_token})}"
        self._socket_path = socket_path
        self._session_waiter: asyncio.Future | None = None
        self._closed = False

        self._sio = socketio.AsyncClient(reconnection=False)
        self._sio.on("session", self._on_session)

    @property
    def connected(self) -> bool:
        return not self._closed and self._sio.connected

    async def _on_session(self, data: Any = None) -> None:
        waiter = self._session_waiter
        if waiter is not None and not waiter.done():
            waiter.set_result(data)

    async def open(self, timeout: float) -> Any:
        """
        Connect and wait for the server's ``session`` event.

        Args:
            timeout: Seconds allowed for connecting plus the session event

        Returns:
            Payload of the session event (``{"userId": ...}`` when the
            session is authenticated; the user id is null otherwise)

        Raises:
            RealtimeConnectionError: If the Socket.IO connection is refused
            TimeoutError: If the session event does not arrive in time
            RuntimeError: If the channel was already closed
        """
        if self._closed:
            raise RuntimeError("RealtimeChannel cannot be reopened after close()")

        self._session_waiter = asyncio.get_running_loop().create_future()
        try:
            async with asyncio.timeout(timeout):
                try:
                    await self._sio.connect(
                        self._url,
                        transports=["websocket"],
                        socketio_path=self._socket_path,
                        wait_timeout=timeout,
                    )
                except socketio.exceptions.ConnectionError as e:
                    raise RealtimeConnectionError(
                        f"Socket.IO connection failed: {e}", phase="connect", cause=e
                    ) from e
                logger.debug("Socket.IO connected, waiting for session event")
                return await self._session_waiter
        except BaseException:
            await self.close()
            raise
        finally:
            self._session_waiter = None

    async def request(self, event: str, timeout: float) -> Any:
        """
        Emit ``event`` and wait for its acknowledgement.

        Args:
            event: Event name, e.g. ``"world"`` or ``"getJoinData"``
            timeout: Seconds to wait for the acknowledgement

        Returns:
            The acknowledgement payload

        Raises:
            RealtimeConnectionError: If the channel is not connected
            TimeoutError: If no acknowledgement arrives in time
        """
        if not self.connected:
            raise RealtimeConnectionError(
                f"Cannot emit {event!r}: channel is not connected", phase=event
            )
        try:
            return await self._sio.call(event, timeout=timeout)
        except socketio.exceptions.TimeoutError as e:
            raise TimeoutError(f"No response to {event!r} within {timeout:g}s") from e
        except socketio.exceptions.BadNamespaceError as e:
            raise RealtimeConnectionError(
                f"Cannot emit {event!r}: {e}", phase=event, cause=e
            ) from e

    async def close(self) -> None:
        """Disconnect. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._sio.connected:
            await self._sio.disconnect()
        logger.debug("Socket.IO channel closed")
