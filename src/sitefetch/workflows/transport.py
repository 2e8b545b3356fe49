"""aiohttp transport with a bounded, process-wide connection pool."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiohttp

from .errors import NetworkError
from .fetch_config import DEFAULT_POOL_SIZE
from .request_builder import RequestDescriptor

logger = logging.getLogger(__name__)


class AiohttpTransport:
    """Send raw requests over one shared aiohttp session.

    The session is created lazily on first use with a ``TCPConnector`` limited
    to ``pool_size`` connections; requests beyond the limit queue inside the
    connector instead of failing. Cookies and gzip decoding are left to the
    executor, so the session runs with a dummy cookie jar and
    ``auto_decompress=False``. Redirects are never followed here.
    """

    def __init__(self, pool_size: int = DEFAULT_POOL_SIZE, timeout: Optional[float] = None) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self._pool_size = pool_size
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def started(self) -> bool:
        return self._session is not None and not self._session.closed

    def set_pool_size(self, size: int) -> int:
        """Change the connection ceiling before the first request; return the old one."""

        if size < 1:
            raise ValueError("pool size must be at least 1")
        if self.started:
            raise RuntimeError("connection pool size can only be changed before the first request")
        previous = self._pool_size
        self._pool_size = size
        logger.info("Changed HTTP pool size from %d to %d", previous, size)
        return previous

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=self._pool_size)
            self._session = aiohttp.ClientSession(
                connector=connector,
                cookie_jar=aiohttp.DummyCookieJar(),
                auto_decompress=False,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    @asynccontextmanager
    async def open(self, request: RequestDescriptor) -> AsyncIterator[Any]:
        """Yield the raw response for ``request``; the connection is released on exit.

        The yielded object exposes ``status``, ``reason``, ``headers`` and
        ``content.iter_chunked(size)``. Transport failures raised while sending
        or while streaming the body surface as :class:`NetworkError`.
        """

        session = self._ensure_session()
        try:
            async with session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body,
                allow_redirects=False,
            ) as response:
                yield response
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"timed out fetching {request.url}") from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise NetworkError(f"{type(exc).__name__} fetching {request.url}: {exc}") from exc

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


__all__ = ["AiohttpTransport", "DEFAULT_POOL_SIZE"]
