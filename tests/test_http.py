"""Test the request reader and response writer used by the guard."""
import asyncio

from csrfguard.request import Request
from csrfguard.response import Response, cookie_header


def _receiver(*chunks):
    events = [{"type": "http.request", "body": c, "more_body": i < len(chunks) - 1} for i, c in enumerate(chunks)]
    events.append({"type": "http.disconnect"})

    async def receive():
        return events.pop(0)
    return receive


def _scope(method="POST", headers=()):
    return {
        "type": "http", "method": method, "path": "/x", "scheme": "https",
        "headers": [(k.encode(), v.encode()) for k, v in headers],
        "server": ("testserver", 443),
    }


def test_headers_and_cookies():
    """Repeated Cookie headers are merged; names are case-insensitive."""
    req = Request(_scope("get", [("Cookie", "a=1"), ("cookie", "b=2"), ("X-Thing", "v"), ("x-thing", "w")]), None)
    assert req.method == "GET"
    assert req.cookies == {"a": "1", "b": "2"}
    assert req.headers["x-thing"] == "v, w"
    assert req.host == "testserver:443"


def test_broken_cookie_header_is_ignored():
    req = Request(_scope(headers=[("cookie", 'a="unterminated')]), None)
    assert isinstance(req.cookies, dict)


def test_form_body_is_parsed_and_replayed():
    """The guard reads the body; the app downstream still gets all of it."""
    async def run():
        scope = _scope(headers=[("content-type", "application/x-www-form-urlencoded")])
        req = Request(scope, _receiver(b"csrf_token=a%2Bb&name=", b"x&tag=1&tag=2"))
        await req.load_body()
        assert req.form == {"csrf_token": "a+b", "name": "x", "tag": ["1", "2"]}

        receive = req.replay_receive()
        first = await receive()
        assert first == {"type": "http.request", "body": b"csrf_token=a%2Bb&name=x&tag=1&tag=2", "more_body": False}
        assert (await receive())["type"] == "http.disconnect"
    asyncio.run(run())


def test_non_form_body_is_not_parsed():
    async def run():
        req = Request(_scope(headers=[("content-type", "application/json")]), _receiver(b'{"a": 1}'))
        assert req.replay_receive() is req._receive
        await req.load_body()
        assert req.body_loaded and req.form == {}
    asyncio.run(run())


def test_multipart_fields_are_parsed_and_files_skipped():
    body = (
        b"--XyZ\r\n"
        b'Content-Disposition: form-data; name="csrf_token"\r\n\r\n'
        b"tok\r\n"
        b"--XyZ\r\n"
        b'Content-Disposition: form-data; name="upload"; filename="a.txt"\r\n'
        b"Content-Type: text/plain\r\n\r\n"
        b"file contents\r\n"
        b"--XyZ\r\n"
        b'Content-Disposition: form-data; name="tag"\r\n\r\n'
        b"1\r\n"
        b"--XyZ\r\n"
        b'Content-Disposition: form-data; name="tag"\r\n\r\n'
        b"2\r\n"
        b"--XyZ--\r\n"
    )

    async def run():
        scope = _scope(headers=[("content-type", "multipart/form-data; boundary=XyZ")])
        req = Request(scope, _receiver(body[:40], body[40:]))
        assert req.is_form
        await req.load_body()
        assert req.form == {"csrf_token": "tok", "tag": ["1", "2"]}
        assert (await req.replay_receive()())["body"] == body
    asyncio.run(run())


def test_broken_multipart_gives_empty_form():
    async def run():
        scope = _scope(headers=[("content-type", "multipart/form-data")])
        req = Request(scope, _receiver(b"--nope\r\nnot a part"))
        await req.load_body()
        assert req.form == {}
    asyncio.run(run())


def test_body_over_limit_is_not_parsed_but_fully_replayed():
    """Reading stops past the limit; downstream still sees every byte."""
    async def run():
        scope = _scope(headers=[("content-type", "application/x-www-form-urlencoded")])
        req = Request(scope, _receiver(b"csrf_token=abc&", b"name=" + b"x" * 50, b"&tail=1"))
        await req.load_body(limit=20)
        assert req.form == {}
        assert req.body_truncated

        receive = req.replay_receive()
        first = await receive()
        assert first == {"type": "http.request", "body": b"csrf_token=abc&name=" + b"x" * 50, "more_body": True}
        rest = await receive()
        assert (rest["body"], rest["more_body"]) == (b"&tail=1", False)
    asyncio.run(run())


def test_body_within_limit_is_parsed():
    async def run():
        scope = _scope(headers=[("content-type", "application/x-www-form-urlencoded")])
        req = Request(scope, _receiver(b"csrf_token=abc"))
        await req.load_body(limit=14)
        assert req.form == {"csrf_token": "abc"}
        assert not req.body_truncated
    asyncio.run(run())


def test_response_writes_cookies_and_skips_head_body():
    sent = []

    async def send(message):
        sent.append(message)

    resp = Response.text("hello", 201)
    resp.set_cookie("sid", "abc", secure=False, samesite="Strict")
    asyncio.run(resp({"method": "HEAD"}, None, send))
    start, body = sent
    assert start["status"] == 201
    cookies = [v.decode() for k, v in start["headers"] if k == b"set-cookie"]
    assert len(cookies) == 1
    assert set(cookies[0].split("; ")) == {"sid=abc", "Path=/", "HttpOnly", "SameSite=Strict"}
    assert body["body"] == b""


def test_cookie_header_attributes():
    h = cookie_header("_csrf", "v", domain="example.com", max_age=10, samesite="None")
    parts = h.decode().split("; ")
    assert parts[0] == "_csrf=v"
    assert set(parts[1:]) == {"Domain=example.com", "Max-Age=10", "Path=/", "Secure", "HttpOnly", "SameSite=None"}
