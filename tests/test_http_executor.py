import asyncio
import gzip

import pytest
from yarl import URL

from fakes import FakeRawResponse, FakeTransport
from sitefetch.workflows.cookies import CookieStore
from sitefetch.workflows.errors import DecodeError, HttpStatusError, NetworkError
from sitefetch.workflows.http_executor import HttpExecutor
from sitefetch.workflows.request_builder import build_request

START = "https://example.com/start"
NEXT = "https://example.com/next"


def _executor(routes, **kwargs):
    transport = FakeTransport(routes)
    return HttpExecutor(transport, CookieStore(), **kwargs), transport


def test_plain_body_is_accumulated_in_order():
    executor, _ = _executor({START: FakeRawResponse(chunks=[b"<html>", b"<body>", b"</html>"])})
    response = asyncio.run(executor.execute(build_request(START)))
    assert response.status_code == 200
    assert response.body == b"<html><body></html>"
    assert response.url == URL(START)


def test_redirect_is_followed_when_allowed():
    routes = {
        START: FakeRawResponse(status=302, reason="Found", headers=[("Location", "/next")]),
        NEXT: FakeRawResponse(body=b"landed"),
    }
    executor, transport = _executor(routes)
    response = asyncio.run(executor.execute(build_request(START)))
    assert [str(r.url) for r in transport.requests] == [START, NEXT]
    assert transport.requests[1].method == "GET"
    assert response.body == b"landed"
    assert response.url == URL(NEXT)
    # the 302 body is never read
    assert routes[START].content.consumed is False


def test_redirect_is_returned_when_not_allowed():
    routes = {
        START: FakeRawResponse(status=302, reason="Found", headers=[("Location", "/next")], body=b"moved"),
        NEXT: FakeRawResponse(body=b"landed"),
    }
    executor, transport = _executor(routes)
    response = asyncio.run(executor.execute(build_request(START, allow_redirect=False)))
    assert len(transport.requests) == 1
    assert response.status_code == 302
    assert response.body == b"moved"
    assert response.url == URL(START)


def test_redirect_hop_reuses_headers_and_drops_body():
    routes = {
        START: FakeRawResponse(status=302, headers=[("Location", NEXT)]),
        NEXT: FakeRawResponse(body=b"ok"),
    }
    executor, transport = _executor(routes)
    request = build_request(START, method="POST", body=b"a=1", headers={"X-Trace": "abc"})
    asyncio.run(executor.execute(request))
    hop = transport.requests[1]
    assert hop.method == "GET"
    assert hop.body is None
    assert hop.headers["X-Trace"] == "abc"


def test_redirect_loop_is_capped():
    loop = FakeRawResponse(status=302, headers=[("Location", START)])
    executor, transport = _executor({START: lambda request: loop}, max_redirects=3)
    with pytest.raises(NetworkError, match="too many redirects"):
        asyncio.run(executor.execute(build_request(START)))
    assert len(transport.requests) == 4


def test_gzip_body_is_decoded():
    payload = gzip.compress(b"hello")
    executor, _ = _executor(
        {START: FakeRawResponse(headers=[("Content-Encoding", "gzip")], chunks=[payload[:5], payload[5:]])}
    )
    response = asyncio.run(executor.execute(build_request(START)))
    assert response.body == b"hello"
    assert response.text == "hello"


def test_truncated_gzip_raises_decode_error():
    payload = gzip.compress(b"hello world" * 20)
    executor, _ = _executor({START: FakeRawResponse(headers=[("Content-Encoding", "gzip")], body=payload[:-12])})
    with pytest.raises(DecodeError):
        asyncio.run(executor.execute(build_request(START)))


def test_corrupt_gzip_raises_decode_error():
    executor, _ = _executor({START: FakeRawResponse(headers=[("Content-Encoding", "gzip")], body=b"not gzip at all")})
    with pytest.raises(DecodeError):
        asyncio.run(executor.execute(build_request(START)))


def test_error_status_raises_without_reading_body():
    missing = FakeRawResponse(status=404, reason="Not Found", body=b"nope")
    executor, _ = _executor({START: missing})
    with pytest.raises(HttpStatusError) as info:
        asyncio.run(executor.execute(build_request(START)))
    assert info.value.status_code == 404
    assert info.value.status_message == "Not Found"
    assert missing.content.consumed is False


def test_network_error_propagates():
    executor, _ = _executor({START: NetworkError("connection reset")})
    with pytest.raises(NetworkError, match="reset"):
        asyncio.run(executor.execute(build_request(START)))


def test_cookies_and_host_are_attached():
    routes = {
        START: FakeRawResponse(status=302, headers=[("Set-Cookie", "sid=abc; Path=/"), ("Location", "/next")]),
        NEXT: FakeRawResponse(headers=[("Set-Cookie", "a=1; Path=/"), ("Set-Cookie", "b=2; Path=/")], body=b"ok"),
    }
    executor, transport = _executor(routes)
    asyncio.run(executor.execute(build_request(START)))
    first, second = transport.requests
    assert "Cookie" not in first.headers
    assert first.headers["Host"] == "example.com"
    assert second.headers["Cookie"] == "sid=abc"
    names = sorted(c.name for c in executor.cookies.cookies_for(URL(NEXT)))
    assert names == ["a", "b", "sid"]


def test_cookies_recorded_even_on_error_status():
    executor, _ = _executor({START: FakeRawResponse(status=403, headers=[("Set-Cookie", "seen=1; Path=/")])})
    with pytest.raises(HttpStatusError):
        asyncio.run(executor.execute(build_request(START)))
    assert executor.cookies.header_value(URL(START)) == "seen=1"


def test_charset_is_honoured_for_text():
    body = "café".encode("latin-1")
    executor, _ = _executor({START: FakeRawResponse(headers=[("Content-Type", "text/html; charset=ISO-8859-1")], body=body)})
    response = asyncio.run(executor.execute(build_request(START)))
    assert response.content_type == "text/html"
    assert response.text == "café"
