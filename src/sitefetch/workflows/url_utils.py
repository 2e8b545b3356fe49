"""URL helpers: referer-relative resolution, Host authority, local filenames."""

from __future__ import annotations

from typing import Optional, Union
from urllib.parse import unquote, urlsplit

from yarl import URL

from .errors import InvalidURL

URLLike = Union[URL, str]


def _coerce(value: URLLike, what: str) -> URL:
    if isinstance(value, URL):
        return value
    try:
        return URL(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise InvalidURL(f"cannot parse {what} {value!r}: {exc}") from exc


def is_absolute(url: URL) -> bool:
    """Return True when ``url`` carries both a scheme and a host."""

    try:
        return bool(url.scheme) and bool(url.host)
    except ValueError:
        return False


def parse_absolute(target: URLLike) -> URL:
    """Parse ``target`` and insist that it is already absolute."""

    url = _coerce(target, "URL")
    if not is_absolute(url):
        raise InvalidURL(f"URL is not absolute: {target!s}")
    return url


def resolve(base: URLLike, ref: Optional[URLLike]) -> URL:
    """Resolve ``ref`` against ``base`` into an absolute URL.

    An absolute ``ref`` is returned parsed as-is and an empty ``ref`` yields
    ``base`` unchanged (fragment included). Anything else follows RFC 3986
    reference resolution: scheme and authority are inherited, relative paths
    are merged with the base directory and query/fragment come from ``ref``.
    """

    base_url = _coerce(base, "base URL")
    ref_text = "" if ref is None else str(ref).strip()
    if not ref_text:
        return parse_absolute(base_url)

    ref_url = _coerce(ref_text, "reference")
    if is_absolute(ref_url):
        return ref_url
    try:
        joined = base_url.join(ref_url)
    except (TypeError, ValueError) as exc:
        raise InvalidURL(f"cannot resolve {ref_text!r} against {base_url}: {exc}") from exc
    if not is_absolute(joined):
        raise InvalidURL(f"{ref_text!r} does not resolve to an absolute URL against {base_url}")
    return joined


def host_header(url: URL) -> str:
    """Return the ``Host`` header value (``host[:port]``) for ``url``."""

    host = url.raw_host or ""
    if ":" in host:
        host = f"[{host}]"
    if url.port is None or url.is_default_port():
        return host
    return f"{host}:{url.port}"


def url_filename(url: URLLike) -> str:
    """Derive a local filename from the last segment of the URL path.

    The segment is percent-decoded; separators that appear after decoding are
    replaced so the name can never escape its target directory.
    """

    if isinstance(url, URL):
        raw_path = url.raw_path
    else:
        raw_path = urlsplit(str(url)).path
    segment = raw_path.rsplit("/", 1)[-1]
    name = unquote(segment).replace("/", "_").replace("\\", "_").strip()
    return name or "index"


__all__ = [
    "URLLike",
    "is_absolute",
    "parse_absolute",
    "resolve",
    "host_header",
    "url_filename",
]
