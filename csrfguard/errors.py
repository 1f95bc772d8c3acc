# csrfguard/errors.py
from __future__ import annotations
import enum


class Reason(enum.Enum):
    """Why a request was rejected. Handed to the failure handler."""
    SECRET_MISSING = "secret missing"
    ORIGIN_MISMATCH = "origin mismatch"
    TOKEN_MISSING = "token missing"
    TOKEN_MALFORMED = "token malformed"
    TOKEN_MISMATCH = "token mismatch"


class CSRFError(Exception):
    pass

class EntropyError(CSRFError):
    """No secure random bytes available. Aborts the request."""

class DecodeError(CSRFError):
    """Cookie envelope is tampered, expired or malformed."""

class TokenFormatError(CSRFError):
    """Submitted token cannot be decoded or has the wrong length."""

class ConfigError(CSRFError, ValueError):
    pass
