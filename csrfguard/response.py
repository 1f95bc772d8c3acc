# csrfguard/response.py
from __future__ import annotations
from http import cookies as http_cookies


def cookie_header(name, value, *, http_only=True, samesite="Lax", path="/",
                  domain=None, max_age=None, secure=True) -> bytes:
    """Render a single Set-Cookie header value."""
    jar = http_cookies.SimpleCookie()
    jar[name] = value
    morsel = jar[name]
    morsel["path"] = path
    if samesite: morsel["samesite"] = samesite
    if domain: morsel["domain"] = domain
    if http_only: morsel["httponly"] = True
    if secure: morsel["secure"] = True
    if max_age is not None: morsel["max-age"] = str(max_age)
    return morsel.OutputString().encode()


class Response:
    def __init__(self, body=b"", status=200, headers=None, content_type="text/html; charset=utf-8"):
        self.body = body if isinstance(body, bytes) else body.encode()
        self.status = status
        self.headers = headers or [(b"content-type", content_type.encode())]
        self._cookies: list[bytes] = []

    def set_cookie(self, name, value, **attrs):
        self._cookies.append(cookie_header(name, value, **attrs))

    async def __call__(self, scope, receive, send):
        headers = list(self.headers)
        for c in self._cookies:
            headers.append((b"set-cookie", c))
        await send({"type": "http.response.start", "status": self.status, "headers": headers})
        body = b"" if scope.get("method") == "HEAD" else self.body
        await send({"type": "http.response.body", "body": body})

    @classmethod
    def html(cls, text, status=200):       return cls(text, status)
    @classmethod
    def text(cls, text, status=200):       return cls(text, status, content_type="text/plain; charset=utf-8")
    @classmethod
    def redirect(cls, location, status=303):
        return cls(b"", status, headers=[(b"location", location.encode())])
