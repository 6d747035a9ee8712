#!/usr/bin/env python3
"""
SessionGate -- token-based authentication service.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py purge
  python main.py create-user --name admin --email admin@example.com --role admin

Environment variables:
  JWT_SECRET_KEY   Signing secret, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL     SQLAlchemy URL. Defaults to a SQLite file under auth/.
  See core/config.py for the full list.
"""

import argparse
import getpass
import logging
import sys

from pydantic import ValidationError

from api.models import RegisterRequest
from auth.errors import AuthError
from auth.janitor import TokenJanitor
from auth.models import User
from auth.passwords import hash_password
from auth.roles import ROLE_USER, valid_roles
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _purge(args: argparse.Namespace) -> int:
    """Delete expired and revoked refresh tokens once and report the counts."""
    settings = get_settings()
    engine = create_store_engine(settings.database_url)
    try:
        report = TokenJanitor(RefreshTokenStore(engine=engine)).run_once()
    finally:
        engine.dispose()
    print(f"  Purged {report.expired_deleted} expired and {report.revoked_deleted} revoked refresh token(s).")
    return 0


def _create_user(args: argparse.Namespace) -> int:
    """Create an account directly in the user directory (no session is issued)."""
    password = args.password or getpass.getpass("Password: ")
    try:
        fields = RegisterRequest(name=args.name, email=args.email, password=password)
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"])
            print(f"  [!] {field}: {err['msg']}")
        return 2

    settings = get_settings()
    users = UserStore(db_url=settings.database_url)
    try:
        if users.exists_by_email(fields.email) or users.exists_by_name(fields.name):
            print(f"  [!] A user with email '{fields.email}' or name '{fields.name}' already exists.")
            return 1
        user_id = users.create_user(
            User(
                name=fields.name,
                email=fields.email,
                role=args.role,
                hashed_password=hash_password(fields.password),
            )
        )
    except AuthError as e:
        print(f"  [!] Could not create user: {e.message}")
        return 1
    finally:
        users.close()
    print(f"  Created {args.role} '{fields.name}' (id={user_id}).")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="sessiongate",
        description="Token-based authentication service and maintenance commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py purge
  python main.py create-user --name admin --email admin@example.com --role admin
  JWT_SECRET_KEY=... DATABASE_URL=sqlite:////var/lib/sessiongate.db python main.py serve
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on source changes (development)")
    serve.set_defaults(func=_serve)

    purge = sub.add_parser("purge", help="Delete expired and revoked refresh tokens now")
    purge.set_defaults(func=_purge)

    create = sub.add_parser("create-user", help="Create a user account, e.g. the first admin")
    create.add_argument("--name", required=True, help="Display name, 2-10 letters or digits")
    create.add_argument("--email", required=True, help="Login email")
    create.add_argument("--password", help="Password (prompted for if omitted)")
    create.add_argument("--role", choices=valid_roles(), default=ROLE_USER, help="Role (default: user)")
    create.set_defaults(func=_create_user)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
