# csrfguard/cli.py
from __future__ import annotations

import argparse
import os
import secrets
from typing import Optional

from csrfguard.options import KEY_LENGTH


# ---------- KEYS ---------------------------------------------------------------

def cmd_gensecret() -> int:
    """Print a url-safe base64 key suitable for CSRFGUARD_KEY."""
    print(secrets.token_urlsafe(KEY_LENGTH))
    return 0


# ---------- DEV ----------------------------------------------------------------

def cmd_dev(app_ref: str, host: str, port: int, reload: bool, show_info: bool = True) -> int:
    """Serve `app_ref` from the current directory, e.g. examples/hello."""
    import uvicorn  # type: ignore

    if not os.getenv("CSRFGUARD_KEY"):
        print("CSRFGUARD_KEY is not set; generate one with: csrfguard gensecret")
        return 2

    cwd = os.getcwd()
    os.environ.setdefault("CSRFGUARD_BASE", cwd)  # render.py looks for views here
    if show_info:
        print(f"csrfguard dev: {app_ref} on http://{host}:{port}")

    uvicorn.run(app_ref, host=host, port=port, reload=reload, reload_dirs=[cwd], app_dir=cwd)
    return 0


def cmd_version() -> int:
    """Print the current csrfguard version."""
    import importlib.metadata
    try:
        version = importlib.metadata.version("csrfguard")
        print(f"csrfguard {version}")
    except importlib.metadata.PackageNotFoundError:
        print("csrfguard (development version)")
    return 0


# ---------- MAIN --------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="csrfguard", description="csrfguard CLI")
    p.add_argument("--version", action="store_true", help="Show version and exit")

    sub = p.add_subparsers(dest="cmd", required=False)

    p_dev = sub.add_parser("dev", help="Serve an ASGI app wrapped with the guard")
    p_dev.add_argument("--app", default="app.main:app", help="ASGI app path, e.g. app.main:app")
    p_dev.add_argument("--host", default="127.0.0.1")
    p_dev.add_argument("--port", type=int, default=8000)
    p_dev.add_argument("--reload", action="store_true", default=True)
    p_dev.add_argument("--no-reload", dest="reload", action="store_false")
    p_dev.add_argument("--quiet", dest="show_info", action="store_false", help="Hide boot info")

    sub.add_parser("gensecret", help="Generate a random CSRFGUARD_KEY")

    args = p.parse_args(argv)

    if args.version:
        return cmd_version()

    if args.cmd == "dev":
        return cmd_dev(args.app, args.host, args.port, args.reload, args.show_info)
    if args.cmd == "gensecret":
        return cmd_gensecret()

    p.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
