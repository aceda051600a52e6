"""Client for the web service interface of an industrial robot controller.

Usage:
    async with RwsClient("192.168.125.1") as client:
        result = await client.http_get("/rw/panel/ctrlstate")
        if result.ok and result.response.status == 200:
            state = client.extract_substring(
                result.response.body_text, '<span class="ctrlstate">', "</span>"
            )

        await client.websocket_connect("/poll", "robapi2_subscription")
        while True:
            frame = await client.websocket_receive_frame()
            ...

Transport failures never raise. Every operation returns a result whose
``status`` tells whether the exchange itself worked; an OK HTTP result may
still carry a 4xx/5xx ``response.status`` from the controller.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

import aiohttp

from .digest import DigestAuthenticator, DigestCredentials
from .http import HttpTransport
from .result import HttpResult, WebSocketResult
from .settings import (
    DEFAULT_MAX_FRAME_SIZE,
    DEFAULT_PASSWORD,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    DEFAULT_USER,
    EXTENDED_TIMEOUT,
    ClientSettings,
)
from .ws_client import WebSocketTransport

_LOGGER = logging.getLogger(__name__)


class RwsClient:
    """HTTP and WebSocket access to one controller.

    The HTTP side (session, cookies, credentials, timeout level) and the
    WebSocket side (socket handle) each have their own lock, so one HTTP
    call and one WebSocket read can run at the same time while calls on the
    same side run one after the other. A WebSocket upgrade runs its
    handshake under the HTTP lock and, once that lock is released, takes the
    WebSocket lock to swap in the new socket. No call holds both locks.

    Timeout switching applies to every call that starts after it; a switch
    racing with an in-flight request may or may not affect that request.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        user: str = DEFAULT_USER,
        password: str = DEFAULT_PASSWORD,
        *,
        default_timeout: float = DEFAULT_TIMEOUT,
        extended_timeout: float = EXTENDED_TIMEOUT,
        receive_timeout: float = EXTENDED_TIMEOUT,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
        ping_interval: float | None = None,
        authenticator: DigestAuthenticator | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._http = HttpTransport(
            host,
            port,
            authenticator or DigestAuthenticator(DigestCredentials(user, password)),
            default_timeout=default_timeout,
            extended_timeout=extended_timeout,
            session=session,
        )
        self._websocket = WebSocketTransport(
            host,
            port,
            receive_timeout=receive_timeout,
            max_frame_size=max_frame_size,
            ping_interval=ping_interval,
        )

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs: Any) -> RwsClient:
        """Create a client from :class:`ClientSettings`."""
        return cls(
            settings.host,
            settings.port,
            settings.user,
            settings.password,
            default_timeout=settings.default_timeout,
            extended_timeout=settings.extended_timeout,
            receive_timeout=settings.receive_timeout,
            max_frame_size=settings.max_frame_size,
            ping_interval=settings.ping_interval,
            **kwargs,
        )

    @property
    def http(self) -> HttpTransport:
        return self._http

    @property
    def websocket(self) -> WebSocketTransport:
        return self._websocket

    async def http_get(self, uri: str) -> HttpResult:
        return await self._http.request("GET", uri)

    async def http_post(self, uri: str, content: str = "") -> HttpResult:
        return await self._http.request("POST", uri, content)

    async def http_put(self, uri: str, content: str = "") -> HttpResult:
        return await self._http.request("PUT", uri, content)

    async def http_delete(self, uri: str) -> HttpResult:
        return await self._http.request("DELETE", uri)

    async def use_default_timeout(self) -> None:
        """Go back to the short timeout for subsequent calls."""
        await self._http.use_default_timeout()

    async def use_extended_timeout(self) -> None:
        """Use the long timeout for subsequent calls until switched back."""
        await self._http.use_extended_timeout()

    def websocket_exists(self) -> bool:
        return self._websocket.exists

    async def websocket_connect(self, uri: str, protocol: str) -> HttpResult:
        """Upgrade ``uri`` to a WebSocket speaking ``protocol``.

        Uses the HTTP side's credentials, cookies and current timeout. A
        successful connect replaces any WebSocket held before; the old one is
        not closed.
        """
        async with self._http.lock:
            result, ws = await self._websocket.handshake(
                uri,
                protocol,
                authenticator=self._http.authenticator,
                cookies=self._http.cookies,
                timeout=self._http.timeout,
            )
        # Never wait for the WebSocket lock while holding the HTTP lock.
        if ws is not None:
            await self._websocket.attach(ws, uri)
        return result

    async def websocket_receive_frame(self) -> WebSocketResult:
        """Wait for the next frame on the WebSocket.

        One frame per call; loop over it to follow a subscription. A failed
        read leaves the WebSocket in place, so the next call reads it again;
        reconnecting is up to the caller.
        """
        return await self._websocket.receive_frame()

    @staticmethod
    def extract_substring(whole: str, start_marker: str, end_marker: str) -> str:
        """Return the text between the first ``start_marker`` and the next
        ``end_marker``, or an empty string if either is missing."""
        start = whole.find(start_marker)
        if start == -1:
            return ""
        start += len(start_marker)
        end = whole.find(end_marker, start)
        if end == -1:
            return ""
        return whole[start:end]

    async def close(self) -> None:
        """Close the WebSocket and the HTTP session."""
        await self._websocket.close()
        await self._http.close()
        _LOGGER.debug("Client for %s closed", self._http.host)

    async def __aenter__(self) -> RwsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
