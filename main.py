#!/usr/bin/env python3
"""
UserGate -- user accounts and signed, server-side sessions.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000
  python main.py serve --reload
  python main.py gen-key

Environment variables (see core/config.py for the full list):
  SECRET_KEY        Token signing key, at least 32 characters. Required unless DEBUG=true.
  DEBUG             true = auto-generate SECRET_KEY (sessions die on restart).
  USER_DB_URL       SQLAlchemy URL for the user database.
  SESSION_BACKEND   "memory" (default) or "sqlite".
"""

import argparse
import secrets
import sys


def _gen_key(args: argparse.Namespace) -> int:
    """Print a fresh signing key suitable for SECRET_KEY."""
    print(secrets.token_hex(args.bytes))
    return 0


def _serve(args: argparse.Namespace) -> int:
    """Run the API under uvicorn.

    Imported lazily: settings validation (SECRET_KEY) should only run for
    the command that needs it, not for gen-key.
    """
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usergate",
        description="User accounts and signed, server-side sessions.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    gen_key = sub.add_parser("gen-key", help="Print a new random SECRET_KEY")
    gen_key.add_argument("--bytes", type=int, default=32, help="Random bytes before hex encoding (default: 32)")
    gen_key.set_defaults(func=_gen_key)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if getattr(args, "bytes", 32) < 16:
        print("  [!] --bytes must be at least 16 (SECRET_KEY needs 32+ characters).")
        return 2
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
