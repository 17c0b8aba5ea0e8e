"""
Seed Official User

Creates an official account, the only role allowed to approve or reject
certificate applications. There is no API for granting the role.

Usage:
    python scripts/seed_official.py --username registrar --full-name "District Registrar" \
        --email registrar@example.gov --mobile 9000000000

The password is read from OFFICIAL_PASSWORD or prompted for.
"""

import argparse
import asyncio
import getpass
import os
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from certportal.core.database import async_session_maker, close_db
from certportal.core.security import hash_password
from certportal.modules.users.models import UserRole
from certportal.modules.users.repository import UserRepository


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an official account.")
    parser.add_argument("--username", required=True)
    parser.add_argument("--full-name", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--mobile", required=True)
    parser.add_argument("--national-id", default="000000000000")
    parser.add_argument("--address", default="District Administration Office")
    return parser.parse_args()


async def seed_official(args: argparse.Namespace, password: str) -> None:
    """Create the official if the username is free."""
    async with async_session_maker() as db:
        users = UserRepository(db)

        existing = await users.get_by_username(args.username)
        if existing:
            print(f"User already exists: {args.username}")
            print(f"  ID: {existing.id}")
            print(f"  Role: {existing.role.value}")
            return

        official = await users.create(
            username=args.username,
            password_hash=hash_password(password),
            full_name=args.full_name,
            email=args.email,
            mobile=args.mobile,
            national_id=args.national_id,
            address=args.address,
            role=UserRole.OFFICIAL,
        )
        await db.commit()

        print("Official created successfully!")
        print(f"  Username: {official.username}")
        print(f"  ID: {official.id}")
        print(f"  Role: {official.role.value}")


async def main(args: argparse.Namespace, password: str) -> None:
    try:
        await seed_official(args, password)
    finally:
        await close_db()


if __name__ == "__main__":
    arguments = _parse_args()
    secret = os.environ.get("OFFICIAL_PASSWORD") or getpass.getpass("Password: ")
    if len(secret) < 6:
        sys.exit("Password must be at least 6 characters.")
    asyncio.run(main(arguments, secret))
