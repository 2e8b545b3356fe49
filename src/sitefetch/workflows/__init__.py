"""High-level exports for the sitefetch workflows."""

from .context import FetchContext
from .cookies import CookieEntry, CookieStore
from .document import DocumentLoader, HtmlDocument, LoadedPage, parse_html
from .errors import (
    DecodeError,
    HttpStatusError,
    InvalidURL,
    NetworkError,
    ParseError,
    ScrapeError,
)
from .http_executor import HttpExecutor, Response
from .request_builder import RequestBuilder, RequestDescriptor, build_form_request, build_request
from .transport import AiohttpTransport
from .traversal import IndexEntry, ScrapeConfig, SiteScraper, run_scrape, write_entries
from .url_utils import resolve, url_filename

__all__ = [
    "AiohttpTransport",
    "CookieEntry",
    "CookieStore",
    "DecodeError",
    "DocumentLoader",
    "FetchContext",
    "HtmlDocument",
    "HttpExecutor",
    "HttpStatusError",
    "IndexEntry",
    "InvalidURL",
    "LoadedPage",
    "NetworkError",
    "ParseError",
    "RequestBuilder",
    "RequestDescriptor",
    "Response",
    "ScrapeConfig",
    "ScrapeError",
    "SiteScraper",
    "build_form_request",
    "build_request",
    "parse_html",
    "resolve",
    "run_scrape",
    "url_filename",
    "write_entries",
]
