import json

from multidict import CIMultiDictProxy, CIMultiDict
from typer.testing import CliRunner
from yarl import URL

from sitefetch import cli
from sitefetch.workflows.errors import HttpStatusError, NetworkError
from sitefetch.workflows.http_executor import Response
from sitefetch.workflows.traversal import IndexEntry

runner = CliRunner()


def _entries():
    return [
        IndexEntry(url="https://example.com/a.pdf", referer="https://example.com/p", local_path="../data/a.pdf"),
        IndexEntry(url="https://example.com/b.pdf", referer="https://example.com/p", error="NetworkError: reset"),
    ]


def test_scrape_prints_entries_as_json(monkeypatch):
    seen = {}

    async def fake_run_scrape(config):
        seen["config"] = config
        return _entries()

    monkeypatch.setattr(cli, "run_scrape", fake_run_scrape)
    monkeypatch.setenv("SITEFETCH_POOL_SIZE", "7")
    result = runner.invoke(cli.app, ["scrape", "--start-url", "https://example.com/", "--content-selector", "a.pdf", "--log-level", "WARNING"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert [item["url"] for item in payload] == ["https://example.com/a.pdf", "https://example.com/b.pdf"]
    assert payload[1]["error"] == "NetworkError: reset"
    config = seen["config"]
    assert config.start_url == "https://example.com/"
    assert config.content_selector == "a.pdf"
    assert config.page_selector == "a.handbook"
    assert config.pool_size == 7


def test_scrape_strict_flags_partial_failure(monkeypatch, tmp_path):
    async def fake_run_scrape(config):
        return _entries()

    monkeypatch.setattr(cli, "run_scrape", fake_run_scrape)
    output = tmp_path / "index.jsonl"
    result = runner.invoke(cli.app, ["scrape", "--strict", "--output", str(output)])

    assert result.exit_code == 2
    assert len(output.read_text(encoding="utf-8").splitlines()) == 2


def test_scrape_reports_fatal_error(monkeypatch):
    async def fake_run_scrape(config):
        raise HttpStatusError(503, "Service Unavailable", "https://example.com/")

    monkeypatch.setattr(cli, "run_scrape", fake_run_scrape)
    result = runner.invoke(cli.app, ["scrape"])

    assert result.exit_code == 1
    assert "HttpStatusError" in result.output


def test_get_prints_summary_and_saves_body(monkeypatch, tmp_path):
    async def fake_fetch_one(url, referer, allow_redirect, config):
        assert allow_redirect is False
        headers = CIMultiDictProxy(CIMultiDict({"Content-Type": "application/pdf"}))
        return Response(200, "OK", headers, b"%PDF", URL(url))

    monkeypatch.setattr(cli, "_fetch_one", fake_fetch_one)
    out = tmp_path / "doc.pdf"
    result = runner.invoke(cli.app, ["get", "https://example.com/doc.pdf", "--no-redirect", "--out", str(out), "--log-level", "WARNING"])

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary["status"] == 200
    assert summary["content_type"] == "application/pdf"
    assert summary["bytes"] == 4
    assert out.read_bytes() == b"%PDF"


def test_get_reports_network_error(monkeypatch):
    async def fake_fetch_one(url, referer, allow_redirect, config):
        raise NetworkError("connection refused")

    monkeypatch.setattr(cli, "_fetch_one", fake_fetch_one)
    result = runner.invoke(cli.app, ["get", "https://example.com/"])

    assert result.exit_code == 1
    assert "connection refused" in result.output


def test_get_reports_invalid_pool_size(monkeypatch):
    monkeypatch.setenv("SITEFETCH_POOL_SIZE", "0")
    result = runner.invoke(cli.app, ["get", "https://example.com/"])

    assert result.exit_code == 1
    assert "ValueError" in result.output
