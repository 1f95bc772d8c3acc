import os, sys, datetime


def enabled() -> bool:
    """Read on every call so CSRFGUARD_DEBUG can be flipped at runtime."""
    return os.getenv("CSRFGUARD_DEBUG") == "1"


def log(*args):
    """Rejections, minted secrets and unparsed bodies, on stderr."""
    if not enabled():
        return
    ts = datetime.datetime.now().strftime("%H:%M:%S")
    print(f"[csrfguard {ts}]", *args, file=sys.stderr, flush=True)
