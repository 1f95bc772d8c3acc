# csrfguard/securecookie.py
"""
Authenticated cookie values.

Layout (before the outer url-safe base64, padding stripped):

    <unix-ts>|<b64 payload><32-byte HMAC-SHA256>

The MAC covers `name|ts|payload`, so a value issued for one cookie name is
not accepted under another. With a block key the payload is
`nonce ++ AES-GCM(value)`.
"""
from __future__ import annotations
import base64, binascii, hashlib, hmac, time

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecodeError
from .mask import generate_random_bytes

MAC_SIZE = 32
NONCE_SIZE = 12       # 96-bit nonce for GCM
MAX_CLOCK_SKEW = 60   # seconds a timestamp may sit in the future

def _b64e(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).decode().rstrip("=")

def _b64d(s: str) -> bytes:
    """Inverse of _b64e. Text _b64e would not have written is rejected."""
    raw = base64.b64decode((s + "=" * (-len(s) % 4)).encode("ascii"), altchars=b"-_", validate=True)
    if _b64e(raw) != s:
        raise ValueError("non-canonical base64")
    return raw


class SecretCodec:
    def __init__(self, hash_key: bytes, block_key: bytes | None = None, *,
                 max_age: int = 12 * 3600, max_length: int = 4096, clock=time.time):
        if not hash_key:
            raise ValueError("hash_key is required")
        if block_key is not None and len(block_key) not in (16, 24, 32):
            raise ValueError("block_key must be 16, 24 or 32 bytes")
        self._hash_key = bytes(hash_key)
        self._cipher = AESGCM(bytes(block_key)) if block_key else None
        self.max_age = max_age
        self.max_length = max_length
        self._clock = clock

    def _sign(self, name: str, body: bytes) -> bytes:
        return hmac.new(self._hash_key, name.encode() + b"|" + body, hashlib.sha256).digest()

    def _encrypt(self, value: bytes) -> bytes:
        nonce = generate_random_bytes(NONCE_SIZE)
        return nonce + self._cipher.encrypt(nonce, value, None)

    def _decrypt(self, blob: bytes) -> bytes:
        if len(blob) <= NONCE_SIZE:
            raise DecodeError("encrypted payload too short")
        try:
            return self._cipher.decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], None)
        except InvalidTag as exc:
            raise DecodeError("could not decrypt value") from exc

    def encode(self, name: str, value: bytes) -> str:
        payload = self._encrypt(value) if self._cipher else value
        ts = int(self._clock())
        body = f"{ts}|{_b64e(payload)}".encode()
        out = _b64e(body + self._sign(name, body))
        if self.max_length and len(out) > self.max_length:
            raise ValueError("encoded value exceeds max_length")
        return out

    def decode(self, name: str, value: str) -> bytes:
        if not value:
            raise DecodeError("empty value")
        if self.max_length and len(value) > self.max_length:
            raise DecodeError("value is too long")
        try:
            blob = _b64d(value)
        except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
            raise DecodeError("value is not valid base64") from exc
        if len(blob) <= MAC_SIZE:
            raise DecodeError("value is truncated")

        body, mac = blob[:-MAC_SIZE], blob[-MAC_SIZE:]
        if not hmac.compare_digest(mac, self._sign(name, body)):
            raise DecodeError("the value is not valid")

        try:
            ts_s, payload_s = body.decode("ascii").split("|", 1)
            ts = int(ts_s)
            payload = _b64d(payload_s)
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise DecodeError("value is malformed") from exc

        now = int(self._clock())
        if self.max_age and ts < now - self.max_age:
            raise DecodeError("timestamp expired")
        if ts > now + MAX_CLOCK_SKEW:
            raise DecodeError("timestamp is in the future")

        return self._decrypt(payload) if self._cipher else payload
