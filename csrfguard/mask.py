# csrfguard/mask.py
"""
One-time-pad masking of the base secret.

Every issued token is `pad ++ (pad XOR secret)` with a fresh pad, so the
bytes on the wire change on each issuance while the secret stays fixed.
"""
from __future__ import annotations
import base64, binascii, secrets

from .errors import EntropyError, TokenFormatError

TOKEN_LENGTH = 32
MASKED_LENGTH = TOKEN_LENGTH * 2


def generate_random_bytes(n: int) -> bytes:
    try:
        b = secrets.token_bytes(n)
    except (OSError, NotImplementedError) as exc:
        raise EntropyError(f"could not read {n} random bytes") from exc
    if len(b) != n:
        raise EntropyError(f"short read: wanted {n} random bytes, got {len(b)}")
    return b

def generate_pad() -> bytes:
    return generate_random_bytes(TOKEN_LENGTH)

def xor_bytes(a: bytes, b: bytes) -> bytes:
    if len(a) != len(b):
        raise ValueError("xor_bytes() needs equal lengths")
    return bytes(x ^ y for x, y in zip(a, b))


def mask(secret: bytes, pad: bytes | None = None) -> bytes:
    """Return the 64 raw bytes of a masked token for *secret*."""
    if len(secret) != TOKEN_LENGTH:
        raise ValueError(f"secret must be {TOKEN_LENGTH} bytes")
    if pad is None:
        pad = generate_pad()
    elif len(pad) != TOKEN_LENGTH:
        raise ValueError(f"pad must be {TOKEN_LENGTH} bytes")
    return pad + xor_bytes(pad, secret)

def unmask(masked: bytes) -> bytes:
    if len(masked) != MASKED_LENGTH:
        raise TokenFormatError(f"masked token must be {MASKED_LENGTH} bytes, got {len(masked)}")
    pad, body = masked[:TOKEN_LENGTH], masked[TOKEN_LENGTH:]
    return xor_bytes(pad, body)


# ---- Text form --------------------------------------------------------------
def encode_token(raw: bytes) -> str:
    return base64.b64encode(raw).decode()

def decode_token(text: str) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise TokenFormatError("token is not valid base64") from exc
