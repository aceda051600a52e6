"""WebSocket upgrade helper for the controller subscription channel."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
    WebSocketException,
)
from websockets.typing import Subprotocol

from .errors import (
    RwsConnectionError,
    RwsHandshakeError,
    RwsTimeout,
)


async def connect_websocket(
    host: str,
    port: int,
    *,
    path: str,
    subprotocol: str | None = None,
    headers: dict[str, str] | None = None,
    max_size: int | None = None,
    ping_interval: float | None = None,
    timeout: float = 15.0,
) -> ClientConnection:
    """Open a WebSocket to ``path`` on the controller.

    Args:
        host: Target host
        port: Target port
        path: Request target of the upgrade request (path and query)
        subprotocol: Subprotocol offered in ``Sec-WebSocket-Protocol``
        headers: Extra upgrade request headers (cookies, authorization)
        max_size: Largest incoming message accepted, in bytes
        ping_interval: Interval for keepalive pings, None to disable
        timeout: Time allowed for the whole opening handshake

    Raises:
        RwsTimeout: If the handshake does not finish in time.
        RwsHandshakeError: If the controller refuses the upgrade. A refusal
            with an HTTP status carries that response.
        RwsConnectionError: If the connection cannot be established.
    """
    ws_url = f"ws://{host}:{port}{path}"
    try:
        return await asyncio.wait_for(
            websockets.connect(
                ws_url,
                subprotocols=[Subprotocol(subprotocol)] if subprotocol else None,
                additional_headers=headers,
                max_size=max_size,
                ping_interval=ping_interval,
                open_timeout=None,
                close_timeout=5,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise RwsTimeout(f"WebSocket upgrade of {path} timed out") from err
    except InvalidStatus as err:
        raise RwsHandshakeError(
            f"WebSocket upgrade of {path} rejected with HTTP "
            f"{err.response.status_code}",
            err.response,
        ) from err
    except (InvalidHandshake, InvalidURI) as err:
        raise RwsHandshakeError(f"WebSocket upgrade of {path} failed: {err}") from err
    except (OSError, WebSocketException) as err:
        raise RwsConnectionError(
            f"WebSocket connection to {path} failed: {err}"
        ) from err
