"""WebSocket transport for controller subscriptions."""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    ConnectionClosedError,
    ConnectionClosedOK,
    WebSocketException,
)
from websockets.frames import CloseCode, Opcode
from websockets.http11 import Response

from .cookies import CookieStore
from .digest import DigestAuthenticator, is_digest_challenge
from .errors import (
    RwsClientError,
    RwsConnectionError,
    RwsFrameTooLarge,
    RwsHandshakeError,
    RwsProtocolError,
    RwsTimeout,
)
from .result import FIN, FrameState, HttpResult, Status, WebSocketResult
from .settings import DEFAULT_MAX_FRAME_SIZE, EXTENDED_TIMEOUT
from .ws import connect_websocket

_LOGGER = logging.getLogger(__name__)


def _digest_challenge(response: Response | None) -> str | None:
    if response is None or response.status_code != HTTPStatus.UNAUTHORIZED:
        return None
    challenges = response.headers.get_all("WWW-Authenticate")
    return next((c for c in challenges if is_digest_challenge(c)), None)


def _record_handshake(result: HttpResult, response: Response) -> HttpResult:
    return result.record_http_response(
        response.status_code,
        response.headers.raw_items(),
        (response.body or b"").decode(errors="replace"),
        reason=response.reason_phrase,
    )


class WebSocketTransport:
    """Holds at most one WebSocket and reads it one frame per call.

    The socket and its read are guarded by :attr:`lock`. A socket stays in
    place after a failed read; only :meth:`attach` replaces it. The upgrade
    handshake itself runs outside the lock.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        receive_timeout: float = EXTENDED_TIMEOUT,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
        ping_interval: float | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._receive_timeout = receive_timeout
        self._max_frame_size = max_frame_size
        self._ping_interval = ping_interval
        self._ws: ClientConnection | None = None
        self.lock = asyncio.Lock()

    @property
    def exists(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        uri: str,
        protocol: str,
        *,
        authenticator: DigestAuthenticator,
        cookies: CookieStore,
        timeout: float,
    ) -> HttpResult:
        """Upgrade ``uri`` to a WebSocket and hold on to it.

        Runs :meth:`handshake` and then :meth:`attach`. Callers sharing
        ``authenticator`` and ``cookies`` with an HTTP transport run the two
        steps themselves, the handshake under that transport's lock.
        """
        result, ws = await self.handshake(
            uri, protocol, authenticator=authenticator, cookies=cookies, timeout=timeout
        )
        if ws is not None:
            await self.attach(ws, uri)
        return result

    async def handshake(
        self,
        uri: str,
        protocol: str,
        *,
        authenticator: DigestAuthenticator,
        cookies: CookieStore,
        timeout: float,
    ) -> tuple[HttpResult, ClientConnection | None]:
        """Open a WebSocket on ``uri``, answering one Digest challenge.

        Does not touch the held WebSocket. Returns the new connection, or
        None with the failure recorded in the result.
        """
        result = HttpResult().record_http_request("GET", uri)
        try:
            try:
                ws = await self._open(uri, protocol, cookies, timeout)
            except RwsHandshakeError as err:
                challenge = _digest_challenge(err.response)
                if challenge is None:
                    raise
                _LOGGER.debug("Answering Digest challenge for upgrade of %s", uri)
                authorization = authenticator.authorize(challenge, "GET", uri)
                ws = await self._open(
                    uri, protocol, cookies, timeout, authorization=authorization
                )
        except RwsClientError as err:
            if isinstance(err, RwsHandshakeError) and err.response is not None:
                result = _record_handshake(result, err.response)
            result = result.with_status(err.status, str(err))
            _LOGGER.warning("WebSocket upgrade failed: %s", result.render())
            return result, None

        if ws.response is not None:
            cookies.absorb_all(ws.response.headers.get_all("Set-Cookie"))
            result = _record_handshake(result, ws.response)
        return result.with_status(Status.OK), ws

    async def attach(self, ws: ClientConnection, uri: str) -> None:
        """Hold ``ws`` from now on. A WebSocket held before is not closed."""
        async with self.lock:
            if self._ws is not None:
                _LOGGER.info("Replacing WebSocket connection with %s", uri)
            else:
                _LOGGER.info("WebSocket connected to %s", uri)
            self._ws = ws

    async def _open(
        self,
        uri: str,
        protocol: str,
        cookies: CookieStore,
        timeout: float,
        *,
        authorization: str | None = None,
    ) -> ClientConnection:
        headers: dict[str, str] = {}
        cookie = cookies.to_header_value()
        if cookie:
            headers["Cookie"] = cookie
        if authorization is not None:
            headers["Authorization"] = authorization
        return await connect_websocket(
            self._host,
            self._port,
            path=uri,
            subprotocol=protocol,
            headers=headers,
            max_size=self._max_frame_size,
            ping_interval=self._ping_interval,
            timeout=timeout,
        )

    async def receive_frame(self) -> WebSocketResult:
        """Wait for one frame on the held WebSocket.

        Returns a NO_SOCKET result straight away when no WebSocket was ever
        connected. A close from the controller is reported as a CLOSE frame.
        """
        async with self.lock:
            result = WebSocketResult()
            if self._ws is None:
                return result.with_status(Status.NO_SOCKET)
            try:
                flags, content = await self._read_frame(self._ws)
            except RwsClientError as err:
                if isinstance(err, RwsFrameTooLarge):
                    result = result.record_websocket_frame(
                        0, "", state=FrameState.TOO_LARGE
                    )
                result = result.with_status(err.status, str(err))
                _LOGGER.warning("WebSocket receive failed: %s", result.render())
                return result

            result = result.record_websocket_frame(flags, content)
            _LOGGER.debug("Received WebSocket frame: %s", result.opcode_text())
            return result.with_status(Status.OK)

    async def _read_frame(self, ws: ClientConnection) -> tuple[int, str | bytes]:
        try:
            message = await asyncio.wait_for(ws.recv(), timeout=self._receive_timeout)
        except TimeoutError as err:
            raise RwsTimeout(
                f"No WebSocket frame within {self._receive_timeout:g}s"
            ) from err
        except ConnectionClosedOK as err:
            return FIN | Opcode.CLOSE, err.rcvd.reason if err.rcvd else ""
        except ConnectionClosedError as err:
            codes = {close.code for close in (err.sent, err.rcvd) if close is not None}
            if CloseCode.MESSAGE_TOO_BIG in codes:
                raise RwsFrameTooLarge(
                    f"WebSocket frame larger than {self._max_frame_size} bytes"
                ) from err
            raise RwsConnectionError(f"WebSocket connection lost: {err}") from err
        except WebSocketException as err:
            raise RwsProtocolError(f"WebSocket receive failed: {err}") from err
        except OSError as err:
            raise RwsConnectionError(f"WebSocket receive failed: {err}") from err

        if isinstance(message, str):
            return FIN | Opcode.TEXT, message
        return FIN | Opcode.BINARY, message

    async def close(self) -> None:
        """Close the held WebSocket, if any."""
        async with self.lock:
            if self._ws is not None:
                await self._ws.close()
                self._ws = None
