import asyncio
from urllib.parse import parse_qsl

import pytest
from yarl import URL

from fakes import FakeRawResponse, FakeTransport
from sitefetch.workflows.context import FetchContext
from sitefetch.workflows.document import parse_html
from sitefetch.workflows.errors import ParseError
from sitefetch.workflows.request_builder import build_request

INDEX_HTML = b"""
<html><head><title> Handbooks </title></head><body>
  <a class="handbook" href="/handbooks/one">One</a>
  <a class="handbook" href=" two ">Two</a>
  <a class="handbook">No href</a>
  <a class="other" href="/elsewhere">Else</a>
</body></html>
"""

LOGIN_HTML = b"""
<html><body><form id="login" action="/session" method="post">
<input type="hidden" name="token" value="t0k"><input name="user">
</form></body></html>
"""


def test_parse_html_links_skip_missing_attributes():
    document = parse_html(INDEX_HTML, URL("https://example.com/"))
    assert document.links("a.handbook") == ["/handbooks/one", "two"]
    assert document.title == "Handbooks"
    assert len(document.select("a")) == 4


def test_invalid_selector_is_parse_error():
    document = parse_html(INDEX_HTML)
    with pytest.raises(ParseError):
        document.links("a[")


def test_loader_pairs_document_with_final_url():
    routes = {
        "https://example.com/": FakeRawResponse(status=302, headers=[("Location", "/index")]),
        "https://example.com/index": FakeRawResponse(body=INDEX_HTML),
    }
    context = FetchContext.create(transport=FakeTransport(routes))
    page = asyncio.run(context.loader.load(build_request("https://example.com/")))
    assert page.url == URL("https://example.com/index")
    assert page.document.links("a.other") == ["/elsewhere"]


def test_loader_wraps_parser_failures():
    def broken_parser(body, url):
        raise RuntimeError("boom")

    routes = {"https://example.com/": FakeRawResponse(body=b"<html>")}
    context = FetchContext.create(transport=FakeTransport(routes), parser=broken_parser)
    with pytest.raises(ParseError, match="boom"):
        asyncio.run(context.loader.load(build_request("https://example.com/")))


def test_submit_form_posts_fields_and_parses_result():
    transport = FakeTransport(
        {
            "https://example.com/login": FakeRawResponse(body=LOGIN_HTML),
            "https://example.com/session": FakeRawResponse(
                status=302, headers=[("Set-Cookie", "sid=1; Path=/"), ("Location", "/home")]
            ),
            "https://example.com/home": FakeRawResponse(body=b"<html><title>Home</title></html>"),
        }
    )
    context = FetchContext.create(transport=transport)

    async def scenario():
        login = await context.loader.load(build_request("https://example.com/login"))
        return await context.loader.submit_form(login, "form#login", {"user": "ana"})

    home = asyncio.run(scenario())
    assert home.document.title == "Home"
    post = transport.requests[1]
    assert post.method == "POST"
    assert dict(parse_qsl(post.body.decode())) == {"token": "t0k", "user": "ana"}
    assert transport.requests[2].headers["Cookie"] == "sid=1"


def test_submit_form_without_matching_form():
    transport = FakeTransport({"https://example.com/": FakeRawResponse(body=INDEX_HTML)})
    context = FetchContext.create(transport=transport)

    async def scenario():
        page = await context.loader.load(build_request("https://example.com/"))
        await context.loader.submit_form(page, "form#missing")

    with pytest.raises(ParseError):
        asyncio.run(scenario())
