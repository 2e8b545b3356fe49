from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .workflows.context import FetchContext
from .workflows.errors import describe_error
from .workflows.http_executor import Response
from .workflows.storage import FileStorage
from .workflows.traversal import ScrapeConfig, build_summary, run_scrape, write_entries

app = typer.Typer(no_args_is_help=True, help="Scrape an index page, its sub-pages and their linked content.")

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )


def _resolve_config(**overrides: Any) -> ScrapeConfig:
    """Environment-derived defaults with explicit CLI values layered on top."""

    base = ScrapeConfig.from_env()
    chosen = {key: value for key, value in overrides.items() if value is not None}
    return replace(base, **chosen)


async def _fetch_one(url: str, referer: Optional[str], allow_redirect: bool, config: ScrapeConfig) -> Response:
    context = FetchContext.create(
        pool_size=config.pool_size,
        timeout=config.timeout,
        max_redirects=config.max_redirects,
    )
    async with context:
        request = context.builder.build(url, referer, allow_redirect=allow_redirect)
        return await context.executor.execute(request)


@app.command("scrape")
def scrape_cmd(
    start_url: Optional[str] = typer.Option(None, "--start-url", help="Index page to start from."),
    page_selector: Optional[str] = typer.Option(None, "--page-selector", help="CSS selector for sub-page links."),
    content_selector: Optional[str] = typer.Option(None, "--content-selector", help="CSS selector for content links."),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Existing directory for downloaded content."),
    suffix: Optional[str] = typer.Option(None, "--suffix", help="Suffix appended to downloaded filenames."),
    pool_size: Optional[int] = typer.Option(None, "--pool-size", min=1, help="Max concurrent connections."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-request deadline in seconds."),
    max_redirects: Optional[int] = typer.Option(None, "--max-redirects", min=0, help="Redirect hops before giving up."),
    output: Optional[Path] = typer.Option(None, "--output", help="Also write entries as JSONL to this file."),
    strict: bool = typer.Option(False, "--strict", help="Exit 2 when any entry carries an error."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level for stderr."),
) -> None:
    """Run the full traversal once and print the index entries as JSON."""
    _configure_logging(log_level)
    config = _resolve_config(
        start_url=start_url,
        page_selector=page_selector,
        content_selector=content_selector,
        data_dir=data_dir,
        content_suffix=suffix,
        pool_size=pool_size,
        timeout=timeout,
        max_redirects=max_redirects,
    )
    try:
        entries = asyncio.run(run_scrape(config))
    except Exception as exc:
        typer.echo(f"Error: {describe_error(exc)}", err=True)
        raise typer.Exit(code=1)

    sys.stdout.write(json.dumps([entry.to_dict() for entry in entries], indent=2, ensure_ascii=False) + "\n")
    if output is not None:
        write_entries(entries, output)
    summary = build_summary(entries)
    logger.info(
        "%d entries: %d ok, %d failed (%d page-level failures)",
        summary["total"],
        summary["ok"],
        summary["failed"],
        summary["page_failures"],
    )
    raise typer.Exit(code=2 if strict and summary["failed"] else 0)


@app.command("get")
def get_url(
    url: str = typer.Argument(..., help="URL to fetch (absolute, or relative to --referer)."),
    referer: Optional[str] = typer.Option(None, "--referer", help="Page the URL is linked from."),
    no_redirect: bool = typer.Option(False, "--no-redirect", help="Return a 302 instead of following it."),
    out: Optional[Path] = typer.Option(None, "--out", help="Save the decoded body to this file."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-request deadline in seconds."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level for stderr."),
) -> None:
    """Fetch a single URL through the pipeline and print a JSON summary."""
    _configure_logging(log_level)
    config = _resolve_config(timeout=timeout)
    try:
        response = asyncio.run(_fetch_one(url, referer, not no_redirect, config))
    except Exception as exc:
        typer.echo(f"Error: {describe_error(exc)}", err=True)
        raise typer.Exit(code=1)

    summary: Dict[str, Any] = {
        "url": str(response.url),
        "status": response.status_code,
        "status_message": response.status_message,
        "content_type": response.content_type,
        "bytes": len(response.body),
        "path": None,
    }
    if out is not None:
        try:
            FileStorage().write(out, response.body)
        except OSError as exc:
            typer.echo(f"Error: {describe_error(exc)}", err=True)
            raise typer.Exit(code=1)
        summary["path"] = str(out)
    sys.stdout.write(json.dumps(summary, ensure_ascii=False) + "\n")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
