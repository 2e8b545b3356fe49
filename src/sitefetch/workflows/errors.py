"""Error taxonomy for the fetch pipeline.

Every failure a single fetch can produce derives from :class:`ScrapeError`, so
callers that fan out many fetches can capture "one request went wrong" without
also swallowing programming errors. Local write failures stay plain
:class:`OSError`.
"""

from __future__ import annotations

from typing import Any, Optional


class ScrapeError(Exception):
    """Base class for failures of a single fetch or page load."""


class InvalidURL(ScrapeError, ValueError):
    """A URL is malformed or cannot be resolved to an absolute URL."""


class NetworkError(ScrapeError):
    """Transport-level failure (refused, reset, timed out, redirect loop)."""


class HttpStatusError(ScrapeError):
    """The server answered with a status code >= 400."""

    def __init__(self, status_code: int, status_message: str = "", url: Optional[Any] = None) -> None:
        self.status_code = status_code
        self.status_message = status_message or ""
        self.url = url
        detail = f"HTTP {status_code}"
        if self.status_message:
            detail = f"{detail} {self.status_message}"
        if url is not None:
            detail = f"{detail} for {url}"
        super().__init__(detail)


class DecodeError(ScrapeError):
    """A gzip-encoded body could not be decompressed."""


class ParseError(ScrapeError):
    """The HTML parser rejected a body, or an expected element is missing."""


def describe_error(exc: BaseException) -> str:
    """Render an exception as ``"<Name>: <message>"`` for index entries."""

    message = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


__all__ = [
    "ScrapeError",
    "InvalidURL",
    "NetworkError",
    "HttpStatusError",
    "DecodeError",
    "ParseError",
    "describe_error",
]
