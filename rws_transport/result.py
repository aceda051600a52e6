"""Structured outcome of a single HTTP or WebSocket operation.

A result is either an :class:`HttpResult` (plain requests and the WebSocket
upgrade handshake) or a :class:`WebSocketResult` (frame reception). Both
share the :class:`Result` envelope: a general :class:`Status` and, for
failures, an exception message. Results are immutable; the ``record_*``
methods return a copy with the new detail recorded.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Self

from websockets.frames import Opcode

# Frame flag layout: FIN bit in the high nibble, opcode in the low nibble.
FIN = 0x80
OPCODE_MASK = 0x0F


class Status(Enum):
    """General outcome of a transport operation."""

    UNKNOWN = "unknown"
    OK = "ok"
    NO_SOCKET = "no_socket"
    TIMEOUT_FAILURE = "timeout_failure"
    TRANSPORT_FAILURE = "transport_failure"
    PROTOCOL_FAILURE = "protocol_failure"


class FrameState(Enum):
    """How far the assembly of a WebSocket frame got."""

    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    TOO_LARGE = "too_large"


_STATUS_TEXT: dict[Status, str] = {
    Status.UNKNOWN: "Unknown",
    Status.OK: "OK",
    Status.NO_SOCKET: "WebSocket not allocated",
    Status.TIMEOUT_FAILURE: "Timeout failure",
    Status.TRANSPORT_FAILURE: "Transport failure",
    Status.PROTOCOL_FAILURE: "Protocol failure",
}

_OPCODE_TEXT: dict[int, str] = {
    Opcode.CONT: "CONTINUATION",
    Opcode.TEXT: "TEXT",
    Opcode.BINARY: "BINARY",
    Opcode.CLOSE: "CLOSE",
    Opcode.PING: "PING",
    Opcode.PONG: "PONG",
}

UNRECOGNIZED_STATUS = "Unrecognized status"
UNKNOWN_OPCODE = "UNKNOWN"


def _reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def _format_headers(headers: Iterable[tuple[str, str]]) -> str:
    return "\n".join(f"{name}: {value}" for name, value in headers)


@dataclass(frozen=True)
class HttpRequestInfo:
    """What was sent: method, request target and body."""

    method: str = ""
    uri: str = ""
    content: str = ""


@dataclass(frozen=True)
class HttpResponseInfo:
    """What came back. ``status`` stays 0 until a response is recorded."""

    status: int = 0
    reason: str = ""
    header_text: str = ""
    body_text: str = ""

    @property
    def received(self) -> bool:
        return self.status != 0


@dataclass(frozen=True)
class WebSocketFrameInfo:
    """Flags and payload of one received frame."""

    flags: int = 0
    content: str | bytes = ""
    state: FrameState = FrameState.INCOMPLETE

    @property
    def opcode(self) -> int:
        return self.flags & OPCODE_MASK


@dataclass(frozen=True, kw_only=True)
class Result:
    """Status envelope shared by every transport outcome."""

    status: Status = Status.UNKNOWN
    exception_message: str = ""

    def __post_init__(self) -> None:
        if self.status is Status.OK and self.exception_message:
            raise ValueError("An OK result cannot carry an exception message")

    @property
    def ok(self) -> bool:
        return self.status is Status.OK

    def with_status(self, status: Status, exception_message: str = "") -> Self:
        """Return a copy carrying the given status and message."""
        return dataclasses.replace(
            self, status=status, exception_message=exception_message
        )

    def status_text(self) -> str:
        """Human readable name of the general status."""
        return _STATUS_TEXT.get(self.status, UNRECOGNIZED_STATUS)

    def render(self, verbose: bool = False, indent: int = 0) -> str:
        """Text form for logging sinks.

        The short form is a single ``" | "`` separated line. The verbose form
        puts one item per line, prefixed with ``indent`` spaces, with headers
        and payloads nested one more level.
        """
        summary = [f"General status: {self.status_text()}"]
        if self.exception_message:
            summary.append(f"Exception message: {self.exception_message}")
        summary.extend(self._summary_items())
        if not verbose:
            return " | ".join(summary)

        pad = " " * indent
        lines = [pad + item for item in summary]
        for title, block in self._detail_blocks():
            lines.append(f"{pad}{title}:")
            lines.extend(pad * 2 + line for line in block.splitlines())
        return "\n".join(lines)

    def _summary_items(self) -> list[str]:
        return []

    def _detail_blocks(self) -> list[tuple[str, str]]:
        return []

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True, kw_only=True)
class HttpResult(Result):
    """Outcome of an HTTP request or WebSocket upgrade handshake."""

    request: HttpRequestInfo = field(default_factory=HttpRequestInfo)
    response: HttpResponseInfo = field(default_factory=HttpResponseInfo)

    def record_http_request(
        self, method: str, uri: str, content: str = ""
    ) -> HttpResult:
        """Return a copy with the request line and body recorded."""
        return dataclasses.replace(
            self, request=HttpRequestInfo(method=method, uri=uri, content=content)
        )

    def record_http_response(
        self,
        status: int,
        headers: Iterable[tuple[str, str]] = (),
        body: str = "",
        *,
        reason: str | None = None,
    ) -> HttpResult:
        """Return a copy with the response status, headers and body recorded."""
        return dataclasses.replace(
            self,
            response=HttpResponseInfo(
                status=status,
                reason=reason if reason is not None else _reason_phrase(status),
                header_text=_format_headers(headers),
                body_text=body,
            ),
        )

    def _summary_items(self) -> list[str]:
        items = []
        if self.request.method:
            items.append(f"HTTP request: {self.request.method} {self.request.uri}")
        if self.response.received:
            items.append(
                f"HTTP response: {self.response.status} - {self.response.reason}"
            )
        return items

    def _detail_blocks(self) -> list[tuple[str, str]]:
        blocks = []
        if self.request.content:
            blocks.append(("HTTP request content", self.request.content))
        if self.response.header_text:
            blocks.append(("HTTP response header", self.response.header_text))
        if self.response.body_text:
            blocks.append(("HTTP response content", self.response.body_text))
        return blocks


@dataclass(frozen=True, kw_only=True)
class WebSocketResult(Result):
    """Outcome of receiving one WebSocket frame."""

    frame: WebSocketFrameInfo = field(default_factory=WebSocketFrameInfo)

    def record_websocket_frame(
        self,
        flags: int,
        content: str | bytes,
        state: FrameState = FrameState.COMPLETE,
    ) -> WebSocketResult:
        """Return a copy with the received frame recorded."""
        return dataclasses.replace(
            self, frame=WebSocketFrameInfo(flags=flags, content=content, state=state)
        )

    def opcode_text(self) -> str:
        """Human readable name of the frame opcode.

        UNKNOWN when no frame was received.
        """
        if self.frame.state is not FrameState.COMPLETE and not self.frame.content:
            return UNKNOWN_OPCODE
        return _OPCODE_TEXT.get(self.frame.opcode, UNKNOWN_OPCODE)

    def _summary_items(self) -> list[str]:
        if self.frame.state is FrameState.INCOMPLETE and not self.frame.content:
            return []
        return [
            f"WebSocket frame: {self.opcode_text()} ({self.frame.state.value})"
        ]

    def _detail_blocks(self) -> list[tuple[str, str]]:
        content = self.frame.content
        if not content:
            return []
        if isinstance(content, bytes):
            content = content.hex(" ")
        return [("WebSocket frame content", content)]
