"""Authenticated HTTP and WebSocket transport for robot controller web services."""

__version__ = "0.1.0"

from .client import RwsClient
from .cookies import CookieStore
from .digest import (
    DigestAuthenticator,
    DigestChallenge,
    DigestCredentials,
    compute_digest_response,
    parse_challenge,
)
from .errors import (
    RwsClientError,
    RwsConnectionError,
    RwsDigestError,
    RwsFrameTooLarge,
    RwsHandshakeError,
    RwsProtocolError,
    RwsTimeout,
)
from .http import HttpTransport
from .result import (
    FIN,
    FrameState,
    HttpRequestInfo,
    HttpResponseInfo,
    HttpResult,
    Result,
    Status,
    WebSocketFrameInfo,
    WebSocketResult,
)
from .settings import ClientSettings, SettingsError, load_settings
from .ws import connect_websocket
from .ws_client import WebSocketTransport

__all__ = [
    "FIN",
    "ClientSettings",
    "CookieStore",
    "DigestAuthenticator",
    "DigestChallenge",
    "DigestCredentials",
    "FrameState",
    "HttpRequestInfo",
    "HttpResponseInfo",
    "HttpResult",
    "HttpTransport",
    "Result",
    "RwsClient",
    "RwsClientError",
    "RwsConnectionError",
    "RwsDigestError",
    "RwsFrameTooLarge",
    "RwsHandshakeError",
    "RwsProtocolError",
    "RwsTimeout",
    "SettingsError",
    "Status",
    "WebSocketFrameInfo",
    "WebSocketResult",
    "WebSocketTransport",
    "compute_digest_response",
    "connect_websocket",
    "load_settings",
    "parse_challenge",
]
