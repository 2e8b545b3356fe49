"""One request/response cycle: cookies, Host, redirects, gzip, status checks."""

from __future__ import annotations

import logging
import zlib
from dataclasses import dataclass, replace
from typing import Any, AsyncContextManager, List, Optional, Protocol, Tuple

from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL

from .cookies import CookieStore
from .errors import DecodeError, InvalidURL, HttpStatusError, NetworkError
from .fetch_config import (
    CHUNK_SIZE,
    HDR_CONTENT_ENCODING,
    HDR_CONTENT_TYPE,
    HDR_COOKIE,
    HDR_HOST,
    HDR_LOCATION,
    HDR_SET_COOKIE,
    MAX_REDIRECTS,
    REDIRECT_STATUS,
)
from .request_builder import RequestDescriptor
from .url_utils import host_header, resolve

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def open(self, request: RequestDescriptor) -> AsyncContextManager[Any]:
        ...


@dataclass(frozen=True)
class Response:
    """Decoded result of a fetch; ``url`` is the URL actually fetched."""

    status_code: int
    status_message: str
    headers: CIMultiDictProxy
    body: bytes
    url: URL

    @property
    def content_type(self) -> str:
        return (self.headers.get(HDR_CONTENT_TYPE) or "").split(";")[0].strip().lower()

    @property
    def charset(self) -> str:
        for part in (self.headers.get(HDR_CONTENT_TYPE) or "").split(";")[1:]:
            key, _, value = part.partition("=")
            if key.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
        return "utf-8"

    @property
    def text(self) -> str:
        try:
            return self.body.decode(self.charset, "replace")
        except LookupError:
            return self.body.decode("utf-8", "replace")


class HttpExecutor:
    """Execute requests against a transport, sharing one cookie store.

    Redirects (302 only) are followed in a loop while the request allows it,
    up to ``max_redirects`` hops; each hop is a GET reusing the original
    headers. Status codes >= 400 raise :class:`HttpStatusError` without
    reading the body.
    """

    def __init__(
        self,
        transport: Transport,
        cookies: CookieStore,
        *,
        max_redirects: int = MAX_REDIRECTS,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self.transport = transport
        self.cookies = cookies
        self.max_redirects = max_redirects
        self.chunk_size = chunk_size

    async def execute(self, request: RequestDescriptor) -> Response:
        current = request
        hops = 0
        while True:
            response, location = await self._send(current)
            if location is None:
                return response
            if hops >= self.max_redirects:
                raise NetworkError(f"too many redirects (more than {self.max_redirects}) starting at {request.url}")
            hops += 1
            logger.info("[%s] %s redirected to %s", current.method, current.url.path, location)
            current = replace(current, url=location, method="GET", body=None)

    def _prepare_headers(self, request: RequestDescriptor) -> CIMultiDictProxy:
        headers = CIMultiDict(request.headers)
        cookie = self.cookies.header_value(request.url)
        if cookie:
            headers[HDR_COOKIE] = cookie
        headers[HDR_HOST] = host_header(request.url)
        return CIMultiDictProxy(headers)

    async def _send(self, request: RequestDescriptor) -> Tuple[Response, Optional[URL]]:
        """Run one hop; return the response or, for a followable redirect, its target."""

        wire = replace(request, headers=self._prepare_headers(request))
        path = request.url.raw_path_qs
        logger.info("[%s] %s requested", request.method, path)
        async with self.transport.open(wire) as raw:
            status = int(raw.status)
            reason = raw.reason or ""
            headers = CIMultiDictProxy(CIMultiDict(raw.headers))

            set_cookies = headers.getall(HDR_SET_COOKIE, [])
            if set_cookies:
                self.cookies.record(set_cookies, request.url)

            if status >= 400:
                logger.info("[%s] %s -> [%d %s] request failed", request.method, path, status, reason)
                raise HttpStatusError(status, reason, request.url)

            if status == REDIRECT_STATUS and request.allow_redirect:
                location = headers.get(HDR_LOCATION)
                if location:
                    try:
                        target = resolve(request.url, location)
                    except InvalidURL as exc:
                        raise NetworkError(f"bad redirect Location {location!r} from {request.url}") from exc
                    empty = Response(status, reason, headers, b"", request.url)
                    return empty, target
                logger.warning("[%s] %s -> 302 without Location; returning it as-is", request.method, path)

            encoding = (headers.get(HDR_CONTENT_ENCODING) or "").strip().lower()
            if encoding == "gzip":
                body = await self._read_gzip(raw, request.url)
            else:
                body = await self._read_plain(raw)

        logger.info("[%s] %s -> [%d %s] %d", request.method, path, status, reason, len(body))
        return Response(status, reason, headers, body, request.url), None

    async def _read_plain(self, raw: Any) -> bytes:
        chunks: List[bytes] = []
        async for chunk in raw.content.iter_chunked(self.chunk_size):
            chunks.append(chunk)
        return b"".join(chunks)

    async def _read_gzip(self, raw: Any, url: URL) -> bytes:
        decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
        chunks: List[bytes] = []
        try:
            async for chunk in raw.content.iter_chunked(self.chunk_size):
                chunks.append(decompressor.decompress(chunk))
            chunks.append(decompressor.flush())
        except zlib.error as exc:
            raise DecodeError(f"gzip body from {url} is corrupt: {exc}") from exc
        if not decompressor.eof:
            raise DecodeError(f"gzip body from {url} is truncated")
        return b"".join(chunks)


__all__ = ["Transport", "Response", "HttpExecutor"]
