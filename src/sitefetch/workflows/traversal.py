from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from yarl import URL

from ..core.keys import K_ERROR, K_LOCAL_PATH, K_REFERER, K_STAGE, K_URL, STAGE_CONTENT, STAGE_INDEX, STAGE_PAGE
from .context import FetchContext
from .document import Parser, parse_html
from .errors import ScrapeError, describe_error
from .fetch_config import (
    DEFAULT_CONTENT_SELECTOR,
    DEFAULT_CONTENT_SUFFIX,
    DEFAULT_DATA_DIR,
    DEFAULT_PAGE_SELECTOR,
    DEFAULT_POOL_SIZE,
    DEFAULT_START_URL,
    HDR_ACCEPT_ENCODING,
    MAX_REDIRECTS,
)
from .http_executor import Transport
from .storage import FileStorage, Storage
from .url_utils import resolve, url_filename

logger = logging.getLogger(__name__)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name, "")
    return raw.strip() if raw.strip() else default


def _env_int(name: str, default: int) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


@dataclass
class ScrapeConfig:
    """Configuration for one traversal run."""

    start_url: str = DEFAULT_START_URL
    page_selector: str = DEFAULT_PAGE_SELECTOR
    content_selector: str = DEFAULT_CONTENT_SELECTOR
    data_dir: Path = DEFAULT_DATA_DIR
    content_suffix: str = DEFAULT_CONTENT_SUFFIX
    pool_size: int = DEFAULT_POOL_SIZE
    # Total seconds per request; None disables the deadline.
    timeout: Optional[float] = None
    max_redirects: int = MAX_REDIRECTS

    @classmethod
    def from_env(cls) -> "ScrapeConfig":
        """Defaults overridden by ``SITEFETCH_*`` environment variables."""

        base = cls()
        return cls(
            start_url=_env_str("SITEFETCH_START_URL", base.start_url),
            page_selector=_env_str("SITEFETCH_PAGE_SELECTOR", base.page_selector),
            content_selector=_env_str("SITEFETCH_CONTENT_SELECTOR", base.content_selector),
            data_dir=Path(_env_str("SITEFETCH_DATA_DIR", str(base.data_dir))),
            content_suffix=_env_str("SITEFETCH_CONTENT_SUFFIX", base.content_suffix),
            pool_size=_env_int("SITEFETCH_POOL_SIZE", base.pool_size),
            timeout=_env_float("SITEFETCH_TIMEOUT", base.timeout),
            max_redirects=_env_int("SITEFETCH_MAX_REDIRECTS", base.max_redirects),
        )

    def content_path(self, filename: str) -> Path:
        suffix = self.content_suffix or ""
        if suffix and filename.lower().endswith(suffix.lower()):
            suffix = ""
        return Path(self.data_dir) / f"{filename}{suffix}"


@dataclass(frozen=True)
class IndexEntry:
    """Outcome of one content download, or a placeholder for a failed sub-page."""

    url: str
    referer: str
    local_path: Optional[str] = None
    error: Optional[str] = None
    stage: str = field(default=STAGE_CONTENT)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            K_URL: self.url,
            K_REFERER: self.referer,
            K_LOCAL_PATH: self.local_path,
            K_STAGE: self.stage,
        }
        if self.error:
            payload[K_ERROR] = self.error
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def _format_target(href: str, referer: URL) -> str:
    try:
        return str(resolve(referer, href))
    except ScrapeError:
        return href


def build_summary(entries: Sequence[IndexEntry]) -> Dict[str, int]:
    failed = [entry for entry in entries if not entry.ok]
    return {
        "total": len(entries),
        "ok": len(entries) - len(failed),
        "failed": len(failed),
        "page_failures": sum(1 for entry in failed if entry.stage in (STAGE_INDEX, STAGE_PAGE)),
    }


class SiteScraper:
    """Index page -> sub-pages -> content downloads, all fanned out concurrently.

    Every launched task is awaited before a level returns. Content failures
    land in their IndexEntry; an index page or sub-page that cannot be loaded
    contributes a single placeholder entry instead of aborting the run.
    """

    def __init__(
        self,
        context: FetchContext,
        config: Optional[ScrapeConfig] = None,
        storage: Optional[Storage] = None,
    ) -> None:
        self.context = context
        self.config = config or ScrapeConfig()
        self.storage = storage or FileStorage()

    async def scrape_site(self) -> List[IndexEntry]:
        try:
            request = self.context.builder.build(self.config.start_url)
            index_page = await self.context.loader.load(request)
        except ScrapeError as exc:
            logger.error("Index page load failure for %s: %s", self.config.start_url, exc)
            return [
                IndexEntry(
                    url=self.config.start_url,
                    referer="",
                    error=describe_error(exc),
                    stage=STAGE_INDEX,
                )
            ]
        links = index_page.document.links(self.config.page_selector)
        logger.info("found %d links on %s", len(links), index_page.url)
        if not links:
            return []

        outcomes = await asyncio.gather(
            *(self.scrape_page(href, index_page.url) for href in links),
            return_exceptions=True,
        )
        entries: List[IndexEntry] = []
        for href, outcome in zip(links, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error("Sub-page task for %s crashed: %s", href, outcome)
                entries.append(self._page_failure(href, index_page.url, outcome))
                continue
            entries.extend(outcome)
        return entries

    async def scrape_page(self, href: str, referer: URL) -> List[IndexEntry]:
        """Load one sub-page and download every content link it carries."""

        try:
            request = self.context.builder.build(href, referer)
            page = await self.context.loader.load(request)
            links = page.document.links(self.config.content_selector)
        except ScrapeError as exc:
            logger.warning("Page load failure for %s: %s", href, exc)
            return [self._page_failure(href, referer, exc)]

        logger.info("Sub-page loaded: %s", page.url.path)
        if not links:
            logger.info("No content link for %s", page.url)
            return []

        outcomes = await asyncio.gather(
            *(self.load_content(link, page.url) for link in links),
            return_exceptions=True,
        )
        entries: List[IndexEntry] = []
        for link, outcome in zip(links, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error("Content task for %s crashed: %s", link, outcome)
                outcome = IndexEntry(
                    url=_format_target(link, page.url),
                    referer=str(page.url),
                    error=describe_error(outcome),
                )
            entries.append(outcome)
        return entries

    async def load_content(self, href: str, referer: URL) -> IndexEntry:
        """Download one content link and persist it; never raises for fetch or write failures."""

        referer_text = str(referer)
        try:
            request = self.context.builder.build(href, referer, headers={HDR_ACCEPT_ENCODING: "gzip"})
        except ScrapeError as exc:
            logger.warning("Bad content link %r on %s: %s", href, referer, exc)
            return IndexEntry(url=href, referer=referer_text, error=describe_error(exc))

        url = str(request.url)
        filename = url_filename(request.url)
        path = self.config.content_path(filename)
        try:
            response = await self.context.executor.execute(request)
        except ScrapeError as exc:
            logger.warning("Load failure for %s: %s", url, exc)
            return IndexEntry(url=url, referer=referer_text, error=describe_error(exc))

        logger.info("Saving content to %s", path)
        try:
            self.storage.write(path, response.body)
        except OSError as exc:
            logger.warning("Write failure for %s: %s", filename, exc)
            return IndexEntry(url=url, referer=referer_text, error=describe_error(exc))
        return IndexEntry(url=url, referer=referer_text, local_path=str(path))

    @staticmethod
    def _page_failure(href: str, referer: URL, exc: BaseException) -> IndexEntry:
        return IndexEntry(
            url=_format_target(href, referer),
            referer=str(referer),
            error=describe_error(exc),
            stage=STAGE_PAGE,
        )


async def run_scrape(
    config: Optional[ScrapeConfig] = None,
    *,
    transport: Optional[Transport] = None,
    parser: Parser = parse_html,
    storage: Optional[Storage] = None,
) -> List[IndexEntry]:
    """Run one full traversal with a fresh context and return every index entry."""

    config = config or ScrapeConfig()
    context = FetchContext.create(
        pool_size=config.pool_size,
        timeout=config.timeout,
        max_redirects=config.max_redirects,
        transport=transport,
        parser=parser,
    )
    async with context:
        return await SiteScraper(context, config, storage).scrape_site()


def write_entries(entries: Iterable[IndexEntry], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as fh:
        for entry in entries:
            fh.write(entry.to_json() + "\n")


__all__ = [
    "ScrapeConfig",
    "IndexEntry",
    "SiteScraper",
    "build_summary",
    "run_scrape",
    "write_entries",
]
