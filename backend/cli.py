#!/usr/bin/env python3
"""
Storefront CLI - administrative tasks that have no HTTP endpoint.

    python cli.py create-admin --email admin@shop.com --password ...
    python cli.py purge-tokens
    python cli.py serve
"""

import argparse
import asyncio
import os
import sys
from typing import Optional

# Allow running as a script from any directory
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


class Colors:
    """ANSI colors for terminal"""

    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    BLUE = "\033[94m"


def info(msg):
    print(f"{Colors.BLUE}[INFO]{Colors.RESET} {msg}")


def success(msg):
    print(f"{Colors.GREEN}[OK]{Colors.RESET} {msg}")


def error(msg):
    print(f"{Colors.RED}[ERROR]{Colors.RESET} {msg}", file=sys.stderr)


async def create_admin(
    email: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
    database=None,
) -> tuple[int, bool]:
    """
    Create an admin account, or promote and re-activate an existing one.

    Returns (user_id, created).
    """
    from db.database import database as default_database
    from models.user import User, UserType
    from services.passwords import hash_password_async
    from services.stores import UserStore, normalize_email

    database = database or default_database
    await database.init()

    async with database.sessionmaker() as db:
        users = UserStore(db)
        user = await users.get_by_email(email)
        created = user is None
        password_hash = await hash_password_async(password)

        if created:
            user = User(
                email=normalize_email(email),
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                user_type=UserType.ADMIN,
                is_active=True,
            )
            await users.add(user)
        else:
            user.password_hash = password_hash
            user.user_type = UserType.ADMIN
            user.is_active = True
            if first_name:
                user.first_name = first_name
            if last_name:
                user.last_name = last_name
            await users.flush()

        await users.commit()
        return user.id, created


async def purge_tokens(database=None) -> int:
    from db.database import database as default_database
    from services.cleanup import purge_expired_tokens

    database = database or default_database
    await database.init()
    return await purge_expired_tokens(database)


async def _run_and_dispose(coro):
    from db.database import database

    try:
        return await coro
    finally:
        await database.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront", description="Storefront administration")
    commands = parser.add_subparsers(dest="command", required=True)

    admin = commands.add_parser("create-admin", help="Create or promote an admin account")
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True)
    admin.add_argument("--first-name", default="")
    admin.add_argument("--last-name", default="")

    commands.add_parser("purge-tokens", help="Delete expired and revoked refresh tokens")

    serve = commands.add_parser("serve", help="Run the API server")
    serve.add_argument("--reload", action="store_true")

    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "create-admin":
        if len(args.password) < 8:
            error("Password must be at least 8 characters")
            return 1
        user_id, created = asyncio.run(
            _run_and_dispose(create_admin(args.email, args.password, args.first_name, args.last_name))
        )
        success(f"Admin {'created' if created else 'updated'}: id={user_id} email={args.email.strip().lower()}")
        return 0

    if args.command == "purge-tokens":
        removed = asyncio.run(_run_and_dispose(purge_tokens()))
        success(f"Removed {removed} expired refresh token(s)")
        return 0

    if args.command == "serve":
        import uvicorn

        from config import get_settings

        settings = get_settings()
        info(f"Starting API on {settings.HOST}:{settings.PORT}")
        uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=args.reload)
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
