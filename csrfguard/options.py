# csrfguard/options.py
from __future__ import annotations
import base64, binascii, enum, os
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urlsplit

from .errors import ConfigError

KEY_LENGTH = 32
DEFAULT_MAX_AGE = 12 * 3600
DEFAULT_CONTEXT_KEY = "csrfguard"
DEFAULT_MAX_FORM_SIZE = 10 << 20   # bytes of form body read before giving up on the field


class SameSite(enum.Enum):
    STRICT = "Strict"
    LAX = "Lax"
    NONE = "None"


# ---- Origins ------------------------------------------------------------------
_DEFAULT_PORTS = {"http": "80", "https": "443"}

def normalize_origin(value: str) -> tuple[str | None, str] | None:
    """
    'https://Example.com:443/path' -> ('https', 'example.com')
    'example.com'                  -> (None, 'example.com')   (any scheme)
    Returns None for values that carry no host (e.g. 'null').
    """
    value = value.strip()
    if "://" not in value:
        host = value.lower().rstrip("/")
        return (None, host) if host and host != "null" else None
    parts = urlsplit(value)
    if not parts.hostname:
        return None
    scheme = parts.scheme.lower()
    host = parts.hostname.lower()
    try:
        port = parts.port
    except ValueError:
        return None
    if port is not None and str(port) != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return (scheme, host)


# ---- Env helpers ----------------------------------------------------------------
def _env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")

def decode_key(text: str) -> bytes:
    """Decode a url-safe base64 key, as printed by `csrfguard gensecret`."""
    text = text.strip()
    try:
        return base64.urlsafe_b64decode((text + "=" * (-len(text) % 4)).encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise ConfigError("key is not valid url-safe base64") from exc


# ---- Options ------------------------------------------------------------------
# (request, reason) -> ASGI response callable, or an awaitable of one
FailureHandler = Callable[..., Any]

@dataclass(frozen=True)
class Options:
    key: bytes
    encryption_key: bytes | None = None
    cookie_name: str = "_csrf"
    domain: str | None = None
    path: str = "/"
    max_age: int = DEFAULT_MAX_AGE
    secure: bool = True
    http_only: bool = True
    same_site: SameSite = SameSite.LAX
    field_name: str = "csrf_token"
    header_name: str = "X-CSRF-Token"
    max_form_size: int = DEFAULT_MAX_FORM_SIZE
    trusted_origins: frozenset = field(default_factory=frozenset)
    error_handler: FailureHandler | None = None
    context_key: str = DEFAULT_CONTEXT_KEY

    def __post_init__(self):
        if not isinstance(self.key, (bytes, bytearray)) or len(self.key) != KEY_LENGTH:
            raise ConfigError(f"key must be exactly {KEY_LENGTH} bytes")
        if self.encryption_key is not None and len(self.encryption_key) not in (16, 24, 32):
            raise ConfigError("encryption_key must be 16, 24 or 32 bytes")
        if not self.cookie_name or not self.field_name or not self.header_name:
            raise ConfigError("cookie_name, field_name and header_name must be non-empty")
        if self.max_form_size <= 0:
            raise ConfigError("max_form_size must be > 0")
        if self.max_age < 0:
            raise ConfigError("max_age must be >= 0")

        same_site = self.same_site
        if isinstance(same_site, str):
            try:
                same_site = SameSite(same_site.capitalize())
            except ValueError:
                raise ConfigError(f"unknown same_site policy: {self.same_site!r}") from None
            object.__setattr__(self, "same_site", same_site)
        if same_site is SameSite.NONE and not self.secure:
            raise ConfigError("same_site=None requires secure=True")

        origins = set()
        for o in self.trusted_origins:
            norm = normalize_origin(o)
            if norm is None:
                raise ConfigError(f"invalid trusted origin: {o!r}")
            origins.add(norm)
        object.__setattr__(self, "trusted_origins", frozenset(origins))
        object.__setattr__(self, "key", bytes(self.key))

    @classmethod
    def from_env(cls, **overrides) -> "Options":
        """
        Build options from CSRFGUARD_* environment variables.
        Keyword arguments win over the environment.
        """
        kw: dict[str, Any] = {}
        if os.getenv("CSRFGUARD_KEY"):
            kw["key"] = decode_key(os.environ["CSRFGUARD_KEY"])
        if os.getenv("CSRFGUARD_ENCRYPTION_KEY"):
            kw["encryption_key"] = decode_key(os.environ["CSRFGUARD_ENCRYPTION_KEY"])
        if os.getenv("CSRFGUARD_COOKIE_NAME"):
            kw["cookie_name"] = os.environ["CSRFGUARD_COOKIE_NAME"]
        kw["secure"] = _env_bool("CSRFGUARD_SECURE", True)
        origins = os.getenv("CSRFGUARD_TRUSTED_ORIGINS", "")
        kw["trusted_origins"] = frozenset(o.strip() for o in origins.split(",") if o.strip())
        kw.update(overrides)
        if "key" not in kw:
            raise ConfigError("CSRFGUARD_KEY is not set (generate one with: csrfguard gensecret)")
        return cls(**kw)

    def origin_trusted(self, origin: tuple[str | None, str]) -> bool:
        scheme, host = origin
        return (scheme, host) in self.trusted_origins or (None, host) in self.trusted_origins
