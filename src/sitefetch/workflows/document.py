"""Parsed pages: the BeautifulSoup adapter and the loader that feeds it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Protocol

from bs4 import BeautifulSoup  # type: ignore
from yarl import URL

from .errors import ParseError
from .http_executor import HttpExecutor
from .request_builder import DEFAULT_BUILDER, RequestBuilder, RequestDescriptor, build_form_request


class Document(Protocol):
    def links(self, selector: str, attr: str = "href") -> List[str]:
        ...


class HtmlDocument:
    """Selector queries over a parsed HTML page."""

    def __init__(self, soup: BeautifulSoup, url: Optional[URL] = None) -> None:
        self.soup = soup
        self.url = url

    def select(self, selector: str) -> List[Any]:
        try:
            return list(self.soup.select(selector))
        except Exception as exc:  # soupsieve rejects the selector
            raise ParseError(f"invalid selector {selector!r}: {exc}") from exc

    def select_one(self, selector: str) -> Optional[Any]:
        found = self.select(selector)
        return found[0] if found else None

    def links(self, selector: str, attr: str = "href") -> List[str]:
        """Return the ``attr`` value of every element matching ``selector``."""

        values: List[str] = []
        for node in self.select(selector):
            value = node.get(attr)
            if isinstance(value, list):
                value = " ".join(value)
            if value and value.strip():
                values.append(value.strip())
        return values

    @property
    def title(self) -> str:
        node = self.soup.title
        return node.get_text(strip=True) if node else ""


Parser = Callable[[bytes, URL], Document]


def parse_html(body: bytes, url: Optional[URL] = None) -> HtmlDocument:
    try:
        soup = BeautifulSoup(body, "lxml")
    except Exception as exc:
        raise ParseError(f"cannot parse HTML from {url}: {exc}") from exc
    return HtmlDocument(soup, url)


@dataclass(frozen=True)
class LoadedPage:
    """A parsed document together with the URL it was fetched from."""

    document: Any
    url: URL


class DocumentLoader:
    """Fetch a request through the executor and parse the body into a page."""

    def __init__(
        self,
        executor: HttpExecutor,
        parser: Parser = parse_html,
        builder: RequestBuilder = DEFAULT_BUILDER,
    ) -> None:
        self.executor = executor
        self.parser = parser
        self.builder = builder

    async def load(self, request: RequestDescriptor) -> LoadedPage:
        response = await self.executor.execute(request)
        try:
            document = self.parser(response.body, response.url)
        except ParseError:
            raise
        except Exception as exc:
            raise ParseError(f"cannot parse {response.url}: {exc}") from exc
        return LoadedPage(document=document, url=response.url)

    async def submit_form(
        self,
        page: LoadedPage,
        form_selector: str,
        values: Optional[Mapping[str, str]] = None,
    ) -> LoadedPage:
        """Submit the first form matching ``form_selector`` and load the result."""

        select_one = getattr(page.document, "select_one", None)
        form = select_one(form_selector) if select_one is not None else None
        if form is None:
            raise ParseError(f"no form matches {form_selector!r} on {page.url}")
        request = build_form_request(page.url, form, values, self.builder)
        return await self.load(request)


__all__ = [
    "Document",
    "HtmlDocument",
    "LoadedPage",
    "DocumentLoader",
    "parse_html",
]
