"""Client error types for robot web service transport failures."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from .result import Status

if TYPE_CHECKING:
    from websockets.http11 import Response


class RwsClientError(Exception):
    """Base error for robot web service transport failures."""

    status: ClassVar[Status] = Status.PROTOCOL_FAILURE


class RwsTimeout(RwsClientError):
    """Timeout while communicating with the controller."""

    status = Status.TIMEOUT_FAILURE


class RwsConnectionError(RwsClientError):
    """Network connection to the controller failed."""

    status = Status.TRANSPORT_FAILURE


class RwsProtocolError(RwsClientError):
    """The exchange happened but did not follow the expected protocol."""

    status = Status.PROTOCOL_FAILURE


class RwsHandshakeError(RwsProtocolError):
    """WebSocket upgrade handshake failed.

    When the controller answered with a non-101 status, ``response`` holds
    that HTTP response.
    """

    def __init__(self, message: str, response: Response | None = None) -> None:
        super().__init__(message)
        self.response = response


class RwsDigestError(RwsProtocolError):
    """Digest challenge could not be parsed or answered."""


class RwsFrameTooLarge(RwsProtocolError):
    """A received WebSocket frame exceeded the configured size bound."""
