"""HTTP Digest access authentication (RFC 7616 / RFC 2617).

The response computation is a pure function of the challenge, the request
and the credentials. :class:`DigestAuthenticator` adds the only state the
scheme needs: the nonce count for the most recent server nonce.
"""

from __future__ import annotations

import hashlib
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .errors import RwsDigestError

_AUTH_PARAM = re.compile(r'([\w-]+)\s*=\s*("(?:[^"\\]|\\.)*"|[^\s,]+)')

_HASHES: dict[str, Callable[[bytes], Any]] = {
    "MD5": hashlib.md5,
    "SHA-256": hashlib.sha256,
    "SHA-512-256": lambda data: hashlib.new("sha512_256", data),
}


@dataclass(frozen=True)
class DigestCredentials:
    """User name and password for the controller."""

    user: str
    password: str

    def __repr__(self) -> str:
        return f"DigestCredentials(user={self.user!r}, password='***')"


@dataclass(frozen=True)
class DigestChallenge:
    """Parsed ``WWW-Authenticate: Digest`` challenge."""

    realm: str
    nonce: str
    qop: tuple[str, ...] = ()
    algorithm: str = "MD5"
    opaque: str | None = None

    @property
    def session_algorithm(self) -> bool:
        return self.algorithm.upper().endswith("-SESS")

    @property
    def base_algorithm(self) -> str:
        algorithm = self.algorithm.upper()
        return algorithm[: -len("-SESS")] if self.session_algorithm else algorithm


def is_digest_challenge(header: str) -> bool:
    return header.strip()[:7].lower() == "digest "


def parse_challenge(header: str) -> DigestChallenge:
    """Parse a ``WWW-Authenticate`` header value carrying a Digest challenge.

    Raises:
        RwsDigestError: If the value is not a Digest challenge or lacks
            ``realm``/``nonce``.
    """
    if not is_digest_challenge(header):
        raise RwsDigestError(f"Not a Digest challenge: {header!r}")

    params: dict[str, str] = {}
    for key, value in _AUTH_PARAM.findall(header.strip()[7:]):
        if value.startswith('"'):
            value = re.sub(r"\\(.)", r"\1", value[1:-1])
        params[key.lower()] = value

    if "realm" not in params or "nonce" not in params:
        raise RwsDigestError("Digest challenge is missing realm or nonce")

    algorithm = params.get("algorithm", "MD5")
    if algorithm.upper().removesuffix("-SESS") not in _HASHES:
        raise RwsDigestError(f"Unsupported Digest algorithm: {algorithm}")

    qop = tuple(
        option.strip() for option in params.get("qop", "").split(",") if option.strip()
    )
    return DigestChallenge(
        realm=params["realm"],
        nonce=params["nonce"],
        qop=qop,
        algorithm=algorithm,
        opaque=params.get("opaque"),
    )


def _select_qop(challenge: DigestChallenge) -> str | None:
    if not challenge.qop:
        return None
    if "auth" in challenge.qop:
        return "auth"
    if "auth-int" in challenge.qop:
        return "auth-int"
    raise RwsDigestError(f"Unsupported Digest qop: {', '.join(challenge.qop)}")


def compute_digest_response(
    challenge: DigestChallenge,
    credentials: DigestCredentials,
    method: str,
    uri: str,
    *,
    body: bytes = b"",
    nonce_count: int = 1,
    cnonce: str = "",
) -> str:
    """Compute the ``Authorization`` header value for one request."""
    hash_fn = _HASHES[challenge.base_algorithm]

    def digest(*parts: str) -> str:
        return hash_fn(":".join(parts).encode()).hexdigest()

    qop = _select_qop(challenge)
    nc = f"{nonce_count:08x}"

    ha1 = digest(credentials.user, challenge.realm, credentials.password)
    if challenge.session_algorithm:
        ha1 = digest(ha1, challenge.nonce, cnonce)

    if qop == "auth-int":
        ha2 = digest(method, uri, hash_fn(body).hexdigest())
    else:
        ha2 = digest(method, uri)

    if qop is None:
        response = digest(ha1, challenge.nonce, ha2)
    else:
        response = digest(ha1, challenge.nonce, nc, cnonce, qop, ha2)

    fields = [
        f'username="{credentials.user}"',
        f'realm="{challenge.realm}"',
        f'nonce="{challenge.nonce}"',
        f'uri="{uri}"',
        f"algorithm={challenge.algorithm}",
        f'response="{response}"',
    ]
    if challenge.opaque is not None:
        fields.append(f'opaque="{challenge.opaque}"')
    if qop is not None:
        fields.extend([f"qop={qop}", f"nc={nc}", f'cnonce="{cnonce}"'])
    return "Digest " + ", ".join(fields)


def _random_cnonce() -> str:
    return os.urandom(8).hex()


class DigestAuthenticator:
    """Answers Digest challenges with the configured credentials.

    The nonce count restarts at 1 whenever the server hands out a new nonce.
    """

    def __init__(
        self,
        credentials: DigestCredentials,
        *,
        cnonce_factory: Callable[[], str] = _random_cnonce,
    ) -> None:
        self._credentials = credentials
        self._cnonce_factory = cnonce_factory
        self._last_nonce: str | None = None
        self._nonce_count = 0

    @property
    def credentials(self) -> DigestCredentials:
        return self._credentials

    def authorize(
        self, challenge_header: str, method: str, uri: str, body: bytes = b""
    ) -> str:
        """Return the ``Authorization`` value answering ``challenge_header``."""
        challenge = parse_challenge(challenge_header)
        if challenge.nonce != self._last_nonce:
            self._last_nonce = challenge.nonce
            self._nonce_count = 0
        self._nonce_count += 1
        return compute_digest_response(
            challenge,
            self._credentials,
            method,
            uri,
            body=body,
            nonce_count=self._nonce_count,
            cnonce=self._cnonce_factory(),
        )
