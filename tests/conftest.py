"""Pytest configuration and fixtures for rws_transport tests.

The ``controller`` fixture runs an in-process aiohttp application standing in
for the controller web service. It challenges unauthenticated requests with
Digest, verifies answers with its own hash computation and hands out a
session cookie once a request is authenticated.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
import weakref
from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import MagicMock

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import WSCloseCode, WSMsgType, web
from aiohttp.test_utils import TestServer

from rws_transport import DigestAuthenticator, DigestCredentials, RwsClient

USER = "Default User"
PASSWORD = "robotics"
REALM = "validusers@robapi.abb"
NONCE = "dcd98b7102dd2f0e8b11d0f600bfb0c093"
OPAQUE = "5ccc069c403ebaf9f0171e9517f40e41"
CNONCE = "0a4f113b"
SESSION_COOKIE = "-http-session-"
SUBPROTOCOL = "robapi2_subscription"

_PARAM = re.compile(r'(\w+)=("[^"]*"|[^\s,]+)')


def parse_authorization(header: str) -> dict[str, str]:
    """Split a Digest ``Authorization`` value into its parameters."""
    assert header.startswith("Digest ")
    return {key: value.strip('"') for key, value in _PARAM.findall(header[7:])}


def expected_response(params: dict[str, str], method: str) -> str:
    """RFC 2617 MD5 response with qop=auth, computed independently."""

    def md5(text: str) -> str:
        return hashlib.md5(text.encode()).hexdigest()

    ha1 = md5(f"{USER}:{REALM}:{PASSWORD}")
    ha2 = md5(f"{method}:{params['uri']}")
    return md5(
        f"{ha1}:{params['nonce']}:{params['nc']}:{params['cnonce']}:"
        f"{params['qop']}:{ha2}"
    )


def _challenge() -> web.Response:
    return web.Response(
        status=401,
        text="Unauthorized",
        headers={
            "WWW-Authenticate": (
                f'Digest realm="{REALM}", qop="auth", nonce="{NONCE}", '
                f'opaque="{OPAQUE}"'
            )
        },
    )


def _authenticated(request: web.Request) -> bool:
    """Accept a valid session cookie or a valid Digest answer."""
    request.app["requests"].append(
        (request.method, request.path_qs, dict(request.headers))
    )
    if request.cookies.get(SESSION_COOKIE) == "valid":
        return True
    header = request.headers.get("Authorization")
    if header is None:
        return False
    params = parse_authorization(header)
    return (
        params.get("username") == USER
        and params.get("uri") == request.path_qs
        and params.get("response") == expected_response(params, request.method)
    )


async def _echo(request: web.Request) -> web.Response:
    if not _authenticated(request):
        return _challenge()
    body = await request.text()
    response = web.Response(
        text=f"<method>{request.method}</method><content>{body}</content>",
        content_type="application/xhtml+xml",
    )
    response.set_cookie(SESSION_COOKIE, "valid", path="/")
    response.set_cookie("ABBCX", "42", path="/")
    return response


async def _rejected(request: web.Request) -> web.Response:
    if not _authenticated(request):
        return _challenge()
    return web.Response(status=400, text="<error>bad request</error>")


async def _open(request: web.Request) -> web.Response:
    request.app["requests"].append(
        (request.method, request.path_qs, dict(request.headers))
    )
    return web.Response(text=request.headers.get("Cookie", ""))


async def _basic_only(request: web.Request) -> web.Response:
    return web.Response(
        status=401, headers={"WWW-Authenticate": 'Basic realm="controller"'}
    )


async def _bad_digest(request: web.Request) -> web.Response:
    return web.Response(status=401, headers={"WWW-Authenticate": "Digest qop=auth"})


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(float(request.query.get("delay", "0.5")))
    return web.Response(text="done")


async def _subscription(request: web.Request) -> web.StreamResponse:
    if not _authenticated(request):
        return _challenge()
    ws = web.WebSocketResponse(protocols=(SUBPROTOCOL,), autoping=True)
    await ws.prepare(request)
    request.app["sockets"].add(ws)
    await asyncio.sleep(request.app["frame_delay"])
    for frame in request.app["frames"]:
        if isinstance(frame, bytes):
            await ws.send_bytes(frame)
        else:
            await ws.send_str(frame)
    if request.app["close_after_frames"]:
        await ws.close(message=b"bye")
        return ws
    async for msg in ws:
        if msg.type is WSMsgType.CLOSE:
            break
    return ws


async def _close_sockets(app: web.Application) -> None:
    for ws in set(app["sockets"]):
        await ws.close(code=WSCloseCode.GOING_AWAY, message=b"shutdown")


def build_app(**options: Any) -> web.Application:
    app = web.Application()
    app["requests"] = []
    app["sockets"] = weakref.WeakSet()
    app["frames"] = options.get("frames", ["<event>1</event>"])
    app["frame_delay"] = options.get("frame_delay", 0.0)
    app["close_after_frames"] = options.get("close_after_frames", False)
    app.router.add_route("*", "/rw/echo", _echo)
    app.router.add_route("*", "/rw/rejected", _rejected)
    app.router.add_get("/rw/open", _open)
    app.router.add_get("/rw/basic", _basic_only)
    app.router.add_get("/rw/bad-digest", _bad_digest)
    app.router.add_get("/rw/slow", _slow)
    app.router.add_get("/poll", _subscription)
    app.on_shutdown.append(_close_sockets)
    return app


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession that is still open."""
    session = MagicMock(spec=aiohttp.ClientSession)
    session.closed = False
    return session


@pytest.fixture
def app_options() -> dict[str, Any]:
    """Override in a test module to change the controller behavior."""
    return {}


@pytest_asyncio.fixture
async def controller(app_options: dict[str, Any]) -> AsyncIterator[TestServer]:
    server = TestServer(build_app(**app_options))
    await server.start_server()
    yield server
    await server.close()


def make_client(server: TestServer, **kwargs: Any) -> RwsClient:
    kwargs.setdefault("default_timeout", 0.25)
    kwargs.setdefault("extended_timeout", 3.0)
    kwargs.setdefault("receive_timeout", 2.0)
    return RwsClient(
        server.host,
        server.port,
        authenticator=DigestAuthenticator(
            DigestCredentials(USER, PASSWORD), cnonce_factory=lambda: CNONCE
        ),
        **kwargs,
    )


@pytest_asyncio.fixture
async def client(controller: TestServer) -> AsyncIterator[RwsClient]:
    rws = make_client(controller)
    yield rws
    await rws.close()
