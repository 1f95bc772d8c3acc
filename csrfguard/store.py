# csrfguard/store.py
"""
Per-request owner of the base secret.

    NO_SECRET --load()--> SECRET_LOADED --masked_token()--> TOKEN_ISSUED

load() decodes the cookie; when there is none, or it fails to decode, a
fresh secret is minted and the store turns dirty so the guard writes the
cookie on the way out. A reused secret never rewrites the cookie.
"""
from __future__ import annotations
import enum, hmac

from ._log import log
from .errors import DecodeError, Reason, TokenFormatError
from .mask import TOKEN_LENGTH, decode_token, encode_token, generate_random_bytes, mask, unmask
from .options import Options
from .response import cookie_header
from .securecookie import SecretCodec


class State(enum.Enum):
    NO_SECRET = "no secret"
    SECRET_LOADED = "secret loaded"
    TOKEN_ISSUED = "token issued"


class TokenStore:
    def __init__(self, codec: SecretCodec, options: Options):
        self.codec = codec
        self.options = options
        self.state = State.NO_SECRET
        self.is_new = False
        self.dirty = False
        self._secret: bytes | None = None

    @property
    def secret(self) -> bytes:
        if self._secret is None:
            raise RuntimeError("TokenStore.load() has not been called")
        return self._secret

    def load(self, cookie_value: str | None) -> bytes:
        secret = None
        if cookie_value:
            try:
                secret = self.codec.decode(self.options.cookie_name, cookie_value)
            except DecodeError as exc:
                log("csrf cookie rejected:", exc)
            else:
                if len(secret) != TOKEN_LENGTH:
                    log(f"csrf cookie holds {len(secret)} bytes, expected {TOKEN_LENGTH}")
                    secret = None

        if secret is None:
            secret = generate_random_bytes(TOKEN_LENGTH)
            self.is_new = True
            self.dirty = True
            log("minted new csrf secret")
        self._secret = secret
        self.state = State.SECRET_LOADED
        return secret

    def masked_token(self) -> str:
        """A fresh masked token for the current secret; differs on every call."""
        token = encode_token(mask(self.secret))
        self.state = State.TOKEN_ISSUED
        return token

    def regenerate(self) -> None:
        """Rotate the secret. Tokens issued before this call stop verifying."""
        self._secret = generate_random_bytes(TOKEN_LENGTH)
        self.dirty = True
        self.state = State.SECRET_LOADED
        log("rotated csrf secret")

    def verify(self, candidate: str) -> Reason | None:
        try:
            issued = unmask(decode_token(candidate))
        except TokenFormatError as exc:
            log("csrf token malformed:", exc)
            return Reason.TOKEN_MALFORMED
        if not hmac.compare_digest(issued, self.secret):
            return Reason.TOKEN_MISMATCH
        return None

    # ---- Cookie -----------------------------------------------------------------
    def _cookie(self, value: str, max_age: int) -> bytes:
        o = self.options
        return cookie_header(
            o.cookie_name, value,
            http_only=o.http_only, samesite=o.same_site.value, path=o.path,
            domain=o.domain, max_age=max_age, secure=o.secure,
        )

    def cookie_header(self) -> bytes | None:
        if not self.dirty:
            return None
        # max_age=0 means a browser-session cookie
        return self._cookie(self.codec.encode(self.options.cookie_name, self.secret), self.options.max_age or None)

    def clear_cookie_header(self) -> bytes:
        return self._cookie("", 0)
