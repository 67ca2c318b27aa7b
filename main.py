#!/usr/bin/env python3
"""
ModelGate -- Authentication and project access control in front of an
external analysis engine.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py init-db

Environment variables (or .env):
  DATABASE_URL           SQLAlchemy URL (default: sqlite file beside this script)
  ACCESS_TOKEN_SECRET    Signing secret for access tokens (>= 32 chars)
  REFRESH_TOKEN_SECRET   Signing secret for refresh tokens (>= 32 chars, must differ)
  PEER_ADDRESS           Base URL of the analysis engine
  DEBUG=true             Generate missing secrets for local development
"""

import argparse
import logging
import sys

from pydantic import ValidationError

from core.config import get_settings
from db.engine import create_db_engine, init_schema
from db.errors import StorageError

logger = logging.getLogger("modelgate.cli")


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def _cmd_init_db(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    try:
        init_schema(engine)
    except StorageError as e:
        print(f"  [!] Could not create schema: {e.message}")
        return 1
    finally:
        engine.dispose()
    print("  Schema ready.")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="modelgate",
        description="Token, session and project access gateway for an analysis engine.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  python main.py serve
  DEBUG=true python main.py serve --reload
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server with uvicorn")
    serve.add_argument("--host", default=None, help="Listen address (default: HOST setting)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT setting)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=_cmd_serve)

    init_db = subparsers.add_parser("init-db", help="Create any missing tables and exit")
    init_db.set_defaults(func=_cmd_init_db)

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    try:
        code = args.func(args)
    except ValidationError as e:
        # Settings refused to build, e.g. a missing or short signing secret.
        print(f"  [!] Invalid configuration:\n{e}")
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
