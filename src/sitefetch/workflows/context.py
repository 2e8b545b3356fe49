"""Per-run shared state: one transport, one cookie store, one executor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .cookies import CookieStore
from .document import DocumentLoader, Parser, parse_html
from .fetch_config import DEFAULT_POOL_SIZE, MAX_REDIRECTS
from .http_executor import HttpExecutor, Transport
from .request_builder import DEFAULT_BUILDER, RequestBuilder
from .transport import AiohttpTransport


@dataclass
class FetchContext:
    """Everything concurrent fetches of one run share.

    Build it once per traversal (or test) and pass it down; closing the
    context closes the transport's connection pool.
    """

    transport: Transport
    cookies: CookieStore
    builder: RequestBuilder
    executor: HttpExecutor
    loader: DocumentLoader

    @classmethod
    def create(
        cls,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: Optional[float] = None,
        max_redirects: int = MAX_REDIRECTS,
        transport: Optional[Transport] = None,
        cookies: Optional[CookieStore] = None,
        builder: Optional[RequestBuilder] = None,
        parser: Parser = parse_html,
    ) -> "FetchContext":
        transport = transport if transport is not None else AiohttpTransport(pool_size=pool_size, timeout=timeout)
        cookies = cookies if cookies is not None else CookieStore()
        builder = builder or DEFAULT_BUILDER
        executor = HttpExecutor(transport, cookies, max_redirects=max_redirects)
        loader = DocumentLoader(executor, parser=parser, builder=builder)
        return cls(transport=transport, cookies=cookies, builder=builder, executor=executor, loader=loader)

    async def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "FetchContext":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


__all__ = ["FetchContext"]
