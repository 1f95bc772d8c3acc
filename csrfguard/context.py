# csrfguard/context.py
"""
The per-request entry the guard puts into the ASGI scope, plus the helpers
handlers and templates use to read it:

    token(scope)              fresh masked token for forms/headers/JSON
    failure_reason(scope)     Reason the request was rejected, inside a failure handler
    regenerate(scope)         rotate the secret (e.g. after login)
    unsafe_skip_check(scope)  exempt this request; call before the guard runs
"""
from __future__ import annotations
from dataclasses import dataclass

from .errors import Reason
from .options import DEFAULT_CONTEXT_KEY
from .store import TokenStore


@dataclass
class TokenContext:
    store: TokenStore | None = None
    skip_check: bool = False
    reason: Reason | None = None

    @property
    def field_name(self) -> str:
        return self._bound().options.field_name

    @property
    def header_name(self) -> str:
        return self._bound().options.header_name

    def token(self) -> str:
        return self._bound().masked_token()

    def _bound(self) -> TokenStore:
        if self.store is None:
            raise RuntimeError("csrf context is not attached yet; is the app wrapped by CSRFGuard?")
        return self.store


def attach(scope, store: TokenStore, key: str = DEFAULT_CONTEXT_KEY) -> TokenContext:
    """Bind *store* to the request. A request may only be bound once."""
    ctx = scope.get(key)
    if ctx is None:
        ctx = TokenContext()
        scope[key] = ctx
    elif not isinstance(ctx, TokenContext):
        raise RuntimeError(f"scope[{key!r}] is already used by something else")
    if ctx.store is not None:
        raise RuntimeError(f"csrf context {key!r} is already attached to this request")
    ctx.store = store
    return ctx

def get_context(scope, key: str = DEFAULT_CONTEXT_KEY) -> TokenContext:
    ctx = scope.get(key)
    if not isinstance(ctx, TokenContext) or ctx.store is None:
        raise RuntimeError(f"no csrf context under {key!r}; is the app wrapped by CSRFGuard?")
    return ctx


def token(scope, key: str = DEFAULT_CONTEXT_KEY) -> str:
    return get_context(scope, key).token()

def failure_reason(scope, key: str = DEFAULT_CONTEXT_KEY) -> Reason | None:
    ctx = scope.get(key)
    return ctx.reason if isinstance(ctx, TokenContext) else None

def regenerate(scope, key: str = DEFAULT_CONTEXT_KEY) -> None:
    get_context(scope, key).store.regenerate()

def unsafe_skip_check(scope, key: str = DEFAULT_CONTEXT_KEY) -> None:
    """
    Exempt this request from token checks. Must run in middleware placed
    *outside* the guard; for API clients that authenticate by other means.
    """
    ctx = scope.get(key)
    if ctx is None:
        ctx = TokenContext()
        scope[key] = ctx
    ctx.skip_check = True
