#!/usr/bin/env python3
"""
Social App auth service -- registration, login, bearer tokens, password reset.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py init-db

Environment variables (or .env):
  SECRET_KEY     Token signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL (default: sqlite:///socialapp_auth.db)
  SMTP_USER      SMTP login. When unset, emails are logged instead of sent.
  SMTP_PASSWORD  SMTP password.
"""

import argparse
import sys

from pydantic import ValidationError


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from core.config import get_settings

    # Fail here with a readable message rather than inside uvicorn's import of the app.
    get_settings()
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _init_db(args: argparse.Namespace) -> int:
    """Create the schema and seed interest groups, then report what exists."""
    from auth.store import UserStore
    from core.config import get_settings

    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        groups = store.list_interest_groups()
        print(f"Database ready: {store.count_users()} user(s), {len(groups)} interest group(s).")
    finally:
        store.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="socialapp-auth",
        description="Social App credential issuance and session authentication service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py serve --port 8080 --reload
  DEBUG=true python main.py init-db
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(handler=_serve)

    init_db = sub.add_parser("init-db", help="Create tables and seed interest groups")
    init_db.set_defaults(handler=_init_db)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        return args.handler(args)
    except ValidationError as e:
        # Settings rejected the environment (missing or short SECRET_KEY, bad port, ...)
        print(f"  [!] Invalid configuration:\n{e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
