"""Single valued cookie jar replayed on every request to the controller."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

# Set-Cookie attributes that never name a cookie of their own.
_ATTRIBUTES = frozenset(
    {
        "comment",
        "domain",
        "expires",
        "httponly",
        "max-age",
        "partitioned",
        "path",
        "priority",
        "samesite",
        "secure",
        "version",
    }
)


class CookieStore:
    """Cookie name to value mapping; the last ``Set-Cookie`` for a name wins."""

    def __init__(self) -> None:
        self._cookies: dict[str, str] = {}

    def absorb(self, set_cookie: str) -> None:
        """Store every ``name=value`` pair found in a ``Set-Cookie`` value.

        The leading pair is always a cookie, whatever its name. In later
        segments attributes such as ``Path`` or ``Expires`` are ignored.
        Segments without a name are skipped.
        """
        for index, segment in enumerate(set_cookie.split(";")):
            name, sep, value = segment.partition("=")
            name = name.strip()
            if not sep or not name:
                continue
            if index > 0 and name.lower() in _ATTRIBUTES:
                continue
            self._cookies[name] = value.strip().strip('"')

    def absorb_all(self, set_cookies: Iterable[str]) -> None:
        for set_cookie in set_cookies:
            self.absorb(set_cookie)

    def to_header_value(self) -> str:
        """Render the stored pairs as a ``Cookie`` request header value."""
        return "; ".join(f"{name}={value}" for name, value in self._cookies.items())

    def get(self, name: str) -> str | None:
        return self._cookies.get(name)

    def clear(self) -> None:
        self._cookies.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

    def __iter__(self) -> Iterator[str]:
        return iter(self._cookies)

    def __len__(self) -> int:
        return len(self._cookies)
