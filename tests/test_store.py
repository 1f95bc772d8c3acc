"""Test the per-request secret lifecycle."""
import pytest

from csrfguard.errors import Reason
from csrfguard.mask import decode_token, encode_token, mask, unmask
from csrfguard.options import Options
from csrfguard.securecookie import SecretCodec
from csrfguard.store import State, TokenStore

KEY = b"k" * 32


def _store(**opts):
    options = Options(key=KEY, **opts)
    return TokenStore(SecretCodec(options.key, options.encryption_key, max_age=options.max_age), options)


def _cookie_value(store):
    """The envelope the store would write, without cookie attributes."""
    header = store.cookie_header().decode()
    return header.split(";", 1)[0].split("=", 1)[1]


def test_mint_when_no_cookie():
    store = _store()
    assert store.state is State.NO_SECRET
    secret = store.load(None)
    assert len(secret) == 32
    assert store.state is State.SECRET_LOADED
    assert store.is_new and store.dirty
    assert store.cookie_header() is not None


def test_existing_cookie_is_reused_without_rewrite():
    first = _store()
    secret = first.load(None)
    value = _cookie_value(first)

    second = _store()
    assert second.load(value) == secret
    assert not second.is_new
    assert not second.dirty
    assert second.cookie_header() is None


def test_invalid_cookie_mints_fresh_secret():
    """Decode failure means 'no secret', never 'some other secret'."""
    first = _store()
    secret = first.load(None)
    value = _cookie_value(first)
    i = len(value) // 2
    tampered = value[:i] + ("A" if value[i] != "A" else "B") + value[i + 1:]

    second = _store()
    assert second.load(tampered) != secret
    assert second.is_new and second.dirty


def test_wrong_sized_payload_is_ignored():
    store = _store()
    value = store.codec.encode("_csrf", b"too short")
    store.load(value)
    assert store.is_new


def test_masked_tokens_differ_but_share_secret():
    store = _store()
    secret = store.load(None)
    t1, t2 = store.masked_token(), store.masked_token()
    assert t1 != t2
    assert unmask(decode_token(t1)) == unmask(decode_token(t2)) == secret
    assert store.state is State.TOKEN_ISSUED
    assert store.verify(t1) is None
    assert store.verify(t2) is None


def test_verify_reasons():
    store = _store()
    store.load(None)
    assert store.verify("garbage!") is Reason.TOKEN_MALFORMED
    assert store.verify(encode_token(b"x" * 32)) is Reason.TOKEN_MALFORMED
    assert store.verify(encode_token(mask(b"\x01" * 32))) is Reason.TOKEN_MISMATCH


def test_regenerate_twice_invalidates_older_tokens():
    store = _store()
    store.load(None)
    before = store.masked_token()
    store.regenerate()
    middle = store.masked_token()
    store.regenerate()
    after = store.masked_token()

    assert store.verify(before) is Reason.TOKEN_MISMATCH
    assert store.verify(middle) is Reason.TOKEN_MISMATCH
    assert store.verify(after) is None
    assert store.dirty


def test_regenerate_marks_reused_secret_dirty():
    first = _store()
    first.load(None)
    second = _store()
    second.load(_cookie_value(first))
    assert second.cookie_header() is None
    second.regenerate()
    assert second.cookie_header() is not None


def test_cookie_attributes():
    store = _store(domain="example.com", path="/app", same_site="Strict", http_only=False)
    store.load(None)
    header = store.cookie_header().decode()
    assert header.startswith("_csrf=")
    assert "Domain=example.com" in header
    assert "Path=/app" in header
    assert "Max-Age=43200" in header
    assert "SameSite=Strict" in header
    assert "Secure" in header
    assert "HttpOnly" not in header


def test_session_cookie_when_max_age_zero():
    store = _store(max_age=0)
    store.load(None)
    assert "Max-Age" not in store.cookie_header().decode()


def test_clear_cookie_header():
    store = _store()
    store.load(None)
    header = store.clear_cookie_header().decode()
    assert header.startswith('_csrf="";') or header.startswith("_csrf=;")
    assert "Max-Age=0" in header


def test_secret_before_load():
    with pytest.raises(RuntimeError):
        _store().secret
