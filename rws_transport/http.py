"""HTTP transport for the controller web service.

One persistent ``aiohttp`` session per controller. Every request follows the
same exchange: send, answer a Digest challenge once if the controller asks
for one, store the cookies of the final response.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from http import HTTPStatus

import aiohttp

from .cookies import CookieStore
from .digest import DigestAuthenticator, is_digest_challenge
from .errors import (
    RwsClientError,
    RwsConnectionError,
    RwsProtocolError,
    RwsTimeout,
)
from .result import HttpResult, Status
from .settings import DEFAULT_TIMEOUT, EXTENDED_TIMEOUT

_LOGGER = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class _Reply:
    """Response fields read while the aiohttp response was still open."""

    status: int
    reason: str
    headers: tuple[tuple[str, str], ...]
    body: str
    challenges: tuple[str, ...] = ()
    set_cookies: tuple[str, ...] = ()

    @property
    def digest_challenge(self) -> str | None:
        if self.status != HTTPStatus.UNAUTHORIZED:
            return None
        return next((c for c in self.challenges if is_digest_challenge(c)), None)


class HttpTransport:
    """Digest authenticated HTTP exchange with cookie continuity.

    All state (session, cookies, Digest nonce count, timeout level) is
    guarded by :attr:`lock`. Callers that need that state for their own
    exchange, such as the WebSocket upgrade, hold the lock around it.
    """

    def __init__(
        self,
        host: str,
        port: int,
        authenticator: DigestAuthenticator,
        *,
        default_timeout: float = DEFAULT_TIMEOUT,
        extended_timeout: float = EXTENDED_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._authenticator = authenticator
        self._cookies = CookieStore()
        self._default_timeout = default_timeout
        self._extended_timeout = extended_timeout
        self._timeout = default_timeout
        self._session = session
        self._owns_session = session is None
        self.lock = asyncio.Lock()

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def cookies(self) -> CookieStore:
        return self._cookies

    @property
    def authenticator(self) -> DigestAuthenticator:
        return self._authenticator

    @property
    def timeout(self) -> float:
        """Timeout in seconds applied to every exchange from now on."""
        return self._timeout

    async def use_default_timeout(self) -> None:
        async with self.lock:
            self._timeout = self._default_timeout

    async def use_extended_timeout(self) -> None:
        """Switch to the long timeout, for requests that block on the controller."""
        async with self.lock:
            self._timeout = self._extended_timeout

    def _url(self, uri: str) -> str:
        return f"http://{self._host}:{self._port}{uri}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None and self._session.closed and not self._owns_session:
            raise RwsConnectionError(f"HTTP session for {self._host} is closed")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=1),
                cookie_jar=aiohttp.DummyCookieJar(),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this transport created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def request(self, method: str, uri: str, content: str = "") -> HttpResult:
        """Run one request/response exchange and describe it as a result.

        The result is OK whenever a response arrived, whatever its HTTP
        status. Timeouts and connection or protocol errors are reported in the
        result instead of being raised.
        """
        async with self.lock:
            result = HttpResult().record_http_request(method, uri, content)
            try:
                reply = await self._send(method, uri, content)
                challenge = reply.digest_challenge
                if challenge is not None:
                    _LOGGER.debug("Answering Digest challenge for %s %s", method, uri)
                    authorization = self._authenticator.authorize(
                        challenge, method, uri, content.encode()
                    )
                    reply = await self._send(
                        method, uri, content, authorization=authorization
                    )
            except RwsClientError as err:
                result = result.with_status(err.status, str(err))
                _LOGGER.warning("HTTP exchange failed: %s", result.render())
                return result

            self._cookies.absorb_all(reply.set_cookies)
            return result.record_http_response(
                reply.status, reply.headers, reply.body, reason=reply.reason
            ).with_status(Status.OK)

    async def _send(
        self,
        method: str,
        uri: str,
        content: str,
        *,
        authorization: str | None = None,
    ) -> _Reply:
        headers: dict[str, str] = {}
        cookie = self._cookies.to_header_value()
        if cookie:
            headers["Cookie"] = cookie
        if authorization is not None:
            headers["Authorization"] = authorization
        data: bytes | None = None
        if content:
            headers["Content-Type"] = FORM_CONTENT_TYPE
            data = content.encode()

        _LOGGER.debug("%s %s", method, uri)
        try:
            async with self._get_session().request(
                method,
                self._url(uri),
                data=data,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                allow_redirects=False,
            ) as resp:
                body = await resp.text(errors="replace")
                return _Reply(
                    status=resp.status,
                    reason=resp.reason or "",
                    headers=tuple(resp.headers.items()),
                    body=body,
                    challenges=tuple(resp.headers.getall("WWW-Authenticate", ())),
                    set_cookies=tuple(resp.headers.getall("Set-Cookie", ())),
                )
        except TimeoutError as err:
            raise RwsTimeout(
                f"{method} {uri} timed out after {self._timeout:g}s"
            ) from err
        except (aiohttp.ClientConnectionError, OSError) as err:
            raise RwsConnectionError(f"{method} {uri} failed: {err}") from err
        except aiohttp.ClientError as err:
            raise RwsProtocolError(f"{method} {uri} failed: {err}") from err
