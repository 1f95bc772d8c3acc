# csrfguard/guard.py
"""
CSRF protection as ASGI middleware.

    app = protect(key)(app)

Safe methods (GET, HEAD, OPTIONS, TRACE) pass through. Every other method
needs a token issued for the session's base secret, sent in the form field
(first) or the header (second). Tokens are masked per issuance, so any
number of them verify against the same secret at once.

Handlers get a token with `csrfguard.context.token(scope)` or, in
templates, `csrfguard.render.template_field(scope)`.
"""
from __future__ import annotations
import inspect

from ._log import log
from .context import TokenContext, attach
from .errors import Reason
from .options import Options, normalize_origin
from .request import Request
from .response import Response
from .securecookie import SecretCodec
from .store import TokenStore

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})

FORBIDDEN_BODY = "Forbidden - CSRF token invalid"


def default_failure_handler(request, reason):
    # static body: never names the failed check
    return Response.text(FORBIDDEN_BODY, 403)


class CSRFGuard:
    def __init__(self, app, options: Options):
        self.app = app
        self.options = options
        self.codec = SecretCodec(options.key, options.encryption_key, max_age=options.max_age)
        self.error_handler = options.error_handler or default_failure_handler

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        request = Request(scope, receive)
        store = TokenStore(self.codec, self.options)
        store.load(request.cookies.get(self.options.cookie_name))
        ctx = attach(scope, store, self.options.context_key)
        send = self._wrap_send(send, store)

        if request.method in SAFE_METHODS or ctx.skip_check:
            return await self.app(scope, receive, send)

        reason = await self.check(request, ctx)
        if reason is not None:
            ctx.reason = reason
            log(f"csrf rejected {request.method} {request.path}: {reason.value}")
            return await self._reject(request, reason, send)

        return await self.app(scope, request.replay_receive(), send)

    async def check(self, request: Request, ctx: TokenContext) -> Reason | None:
        """Run the unsafe-method checks in order. None means verified."""
        store = ctx.store
        if store.is_new:
            # no valid cookie came in, so no token can match
            return Reason.SECRET_MISSING

        if not self.origin_allowed(request):
            return Reason.ORIGIN_MISMATCH

        candidate = await self.extract_token(request)
        if not candidate:
            return Reason.TOKEN_MISSING

        return store.verify(candidate)

    def origin_allowed(self, request: Request) -> bool:
        if not self.options.trusted_origins:
            return True
        declared = request.headers.get("origin") or request.headers.get("referer")
        if not declared:
            return True
        origin = normalize_origin(declared)
        if origin is None:
            return False
        if origin == normalize_origin(f"{request.scheme}://{request.host}"):
            return True
        return self.options.origin_trusted(origin)

    async def extract_token(self, request: Request) -> str:
        if request.is_form:
            await request.load_body(limit=self.options.max_form_size)
            value = request.form.get(self.options.field_name)
            if isinstance(value, list):
                value = value[0] if value else ""
            if value:
                return value
        return request.headers.get(self.options.header_name.lower(), "")

    async def _reject(self, request: Request, reason: Reason, send):
        result = self.error_handler(request, reason)
        if inspect.isawaitable(result):
            result = await result
        await result(request.scope, request.replay_receive(), send)

    def _wrap_send(self, send, store: TokenStore):
        async def wrapped(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers") or [])
                headers.append((b"vary", b"Cookie"))
                cookie = store.cookie_header()
                if cookie is not None:
                    headers.append((b"set-cookie", cookie))
                message = {**message, "headers": headers}
            await send(message)
        return wrapped


def protect(key: bytes, **options):
    """
    Decorator-style constructor:

        CSRF = protect(b"32-byte-long-auth-key...........")
        app = CSRF(app)
    """
    opts = Options(key=key, **options)
    def wrap(app):
        return CSRFGuard(app, opts)
    return wrap
