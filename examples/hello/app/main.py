"""
Demo: a tiny ASGI app behind the guard.

    export CSRFGUARD_KEY=$(csrfguard gensecret)
    export CSRFGUARD_SECURE=0          # plain http on localhost
    cd examples/hello && csrfguard dev
"""
import inspect

from csrfguard.context import regenerate, token
from csrfguard.guard import CSRFGuard
from csrfguard.options import Options
from csrfguard.render import render_req
from csrfguard.request import Request
from csrfguard.response import Response

def home(req):
    return render_req(req, "index.html", message=None)

async def submit(req):
    # the guard already verified the token; the body is replayed to us
    await req.load_body()
    return render_req(req, "index.html", message=f"Thanks, {req.form.get('name', 'stranger')}!")

async def login(req):
    # privilege change: rotate so tokens from before login stop working
    regenerate(req.scope)
    return Response.redirect("/")

def api_token(req):
    # for script clients: read the header, send it back as X-CSRF-Token
    tok = token(req.scope)
    return Response(b"{}", 200, headers=[
        (b"content-type", b"application/json"),
        (b"x-csrf-token", tok.encode()),
    ])

ROUTES = {
    ("GET", "/"): home,
    ("POST", "/submit"): submit,
    ("POST", "/login"): login,
    ("GET", "/api/token"): api_token,
}

async def routes(scope, receive, send):
    if scope["type"] != "http":
        return
    req = Request(scope, receive)
    handler = ROUTES.get((req.method, req.path))
    if handler is None:
        return await Response.text("Not Found", 404)(scope, receive, send)
    result = handler(req)
    if inspect.isawaitable(result):
        result = await result
    return await result(scope, receive, send)

app = CSRFGuard(routes, Options.from_env())
