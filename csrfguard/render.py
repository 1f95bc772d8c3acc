from __future__ import annotations
import os
from pathlib import Path
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from .context import get_context
from .options import DEFAULT_CONTEXT_KEY
from .response import Response

# Name templates use for the hidden field: {{ csrf_field }}
TEMPLATE_TAG = "csrf_field"

_jinja_env = None
_views_path = None

def _resolve_views_path() -> Path:
    """Prefer ./app/views, then ./views. Allow override via CSRFGUARD_VIEWS."""
    if os.getenv("CSRFGUARD_VIEWS"):
        return Path(os.getenv("CSRFGUARD_VIEWS")).resolve()
    base = Path(os.getenv("CSRFGUARD_BASE", Path.cwd()))
    for candidate in (base / "app" / "views", base / "views"):
        if candidate.exists():
            return candidate.resolve()
    return (base / "app" / "views").resolve()

def _env() -> Environment:
    global _jinja_env, _views_path
    if _jinja_env is None:
        _views_path = _resolve_views_path()
        _jinja_env = Environment(
            loader=FileSystemLoader(str(_views_path)),
            autoescape=select_autoescape(["html", "xml"]),
            auto_reload=True,
            enable_async=False,
        )
    return _jinja_env

def _scope(req):
    return getattr(req, "scope", req)


def template_field(req, key: str = DEFAULT_CONTEXT_KEY) -> Markup:
    """Hidden <input> carrying a fresh masked token."""
    ctx = get_context(_scope(req), key)
    return Markup('<input type="hidden" name="{}" value="{}">').format(ctx.field_name, ctx.token())

def template_context(req, key: str = DEFAULT_CONTEXT_KEY) -> dict:
    return {TEMPLATE_TAG: template_field(req, key)}


def render(template: str, **ctx) -> Response:
    """Plain render: no csrf context needed. Good for static pages."""
    html = _env().get_template(template).render(**ctx)
    return Response.html(html)

def render_req(req, template: str, context_key: str = DEFAULT_CONTEXT_KEY, **ctx) -> Response:
    """
    Render with request context. Exposes to the template:
    - `csrf_field`: hidden input for forms
    - `csrf_token`: raw masked token, e.g. for a <meta> tag read by scripts
    """
    scope = _scope(req)
    extra = template_context(scope, context_key)
    extra["csrf_token"] = get_context(scope, context_key).token()
    html = _env().get_template(template).render(**extra, **ctx)
    return Response.html(html)
