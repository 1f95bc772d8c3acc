# csrfguard/request.py
from __future__ import annotations
from urllib.parse import parse_qs
from http import cookies as http_cookies

from python_multipart import create_form_parser
from python_multipart.exceptions import FormParserError

from ._log import log

FORM_URLENCODED = "application/x-www-form-urlencoded"
FORM_MULTIPART = "multipart/form-data"


def _collect(pairs) -> dict:
    """[(k, v), ...] -> {k: v} with repeated keys as lists, like parse_qs."""
    out: dict = {}
    for k, v in pairs:
        if k in out:
            prev = out[k]
            out[k] = prev + [v] if isinstance(prev, list) else [prev, v]
        else:
            out[k] = v
    return out


class Request:
    """
    Read-only view of an ASGI http scope.
    - headers are lower-cased, repeated headers joined with ", "
    - cookies come from the Cookie header
    - form is filled by load_body() for urlencoded and multipart bodies
      (multipart file parts are skipped)
    """
    def __init__(self, scope, receive):
        self.scope = scope
        self._receive = receive
        self.method = scope["method"].upper()
        self.path = scope.get("path", "/")
        self.scheme = scope.get("scheme", "http")
        self._body = None
        self._more_body = False
        self.form = {}

        self.headers: dict[str, str] = {}
        for k, v in scope.get("headers", []):
            name = k.decode("latin-1").lower()
            value = v.decode("latin-1")
            if name in self.headers:
                sep = "; " if name == "cookie" else ", "
                self.headers[name] = self.headers[name] + sep + value
            else:
                self.headers[name] = value

        self.cookies = {}
        if "cookie" in self.headers:
            jar = http_cookies.SimpleCookie()
            try:
                jar.load(self.headers["cookie"])
            except http_cookies.CookieError:
                jar = http_cookies.SimpleCookie()
            self.cookies = {n: morsel.value for n, morsel in jar.items()}

    @property
    def host(self) -> str:
        """Host the client addressed, falling back to the server tuple."""
        if self.headers.get("host"):
            return self.headers["host"]
        server = self.scope.get("server")
        if server:
            host, port = server
            return f"{host}:{port}" if port else host
        return ""

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def is_form(self) -> bool:
        ct = self.content_type.lower()
        return FORM_URLENCODED in ct or FORM_MULTIPART in ct

    @property
    def body_loaded(self) -> bool:
        return self._body is not None

    @property
    def body_truncated(self) -> bool:
        """True when load_body() stopped at its limit with body still unread."""
        return self._more_body

    async def load_body(self, limit: int | None = None):
        """
        Buffer the request body and parse it as a form.
        With a limit, reading stops once more than `limit` bytes arrived;
        the form stays empty and replay_receive() hands the rest through.
        """
        if self._body is not None:
            return
        chunks = []
        size = 0
        while True:
            event = await self._receive()
            if event["type"] == "http.request":
                if event.get("body"):
                    chunks.append(event["body"])
                    size += len(event["body"])
                if not event.get("more_body"):
                    break
                if limit is not None and size > limit:
                    self._more_body = True
                    break
            elif event["type"] == "http.disconnect":
                break
        self._body = b"".join(chunks)
        if limit is not None and size > limit:
            log(f"form body over {limit} bytes, not parsed")
            return
        self.form = self._parse_form()

    def _parse_form(self) -> dict:
        ct = self.content_type.lower()
        if FORM_URLENCODED in ct:
            return {
                k: (v[0] if len(v) == 1 else v)
                for k, v in parse_qs(self._body.decode("utf-8", "replace")).items()
            }
        if FORM_MULTIPART in ct:
            return self._parse_multipart()
        return {}

    def _parse_multipart(self) -> dict:
        fields = []

        def on_field(field):
            value = field.value or b""
            name = field.field_name or b""
            fields.append((name.decode("utf-8", "replace"), value.decode("utf-8", "replace")))

        def on_file(file):
            file.close()

        try:
            parser = create_form_parser({"Content-Type": self.content_type}, on_field, on_file)
            parser.write(self._body)
            parser.finalize()
        except (FormParserError, ValueError) as exc:
            log(f"multipart body not parsed: {exc}")
            return {}
        return _collect(fields)

    def replay_receive(self):
        """
        A receive callable for the downstream app: hands back the buffered
        body once, then defers to the real receive (for the unread rest of
        a truncated body, or http.disconnect).
        """
        if self._body is None:
            return self._receive
        pending = [{"type": "http.request", "body": self._body, "more_body": self._more_body}]

        async def receive():
            if pending:
                return pending.pop()
            return await self._receive()
        return receive
