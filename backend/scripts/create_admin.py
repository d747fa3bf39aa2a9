#!/usr/bin/env python3
"""
Create an admin (or superadmin) account for the HushRyd API.

    python scripts/create_admin.py admin@hushryd.com admin --role superadmin
"""

import argparse
import asyncio
import sys
from getpass import getpass

from fastapi import HTTPException

from hushryd.core.logging import setup_logging
from hushryd.db.session import SessionLocal, engine
from hushryd.schemas.user import UserCreate
from hushryd.services.auth_service import register_user


async def create_admin(email: str, username: str, password: str, role: str) -> int:
    async with SessionLocal() as db:
        try:
            user = await register_user(
                db, UserCreate(email=email, username=username, password=password), role=role
            )
        except HTTPException as e:
            print(f"Could not create {role}: {e.detail}", file=sys.stderr)
            return 1
    await engine.dispose()
    print(f"Created {role} {user.email} ({user.id})")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("email")
    parser.add_argument("username")
    parser.add_argument("--role", choices=["admin", "superadmin"], default="admin")
    args = parser.parse_args()

    password = getpass("Password: ")
    if password != getpass("Confirm password: "):
        print("Passwords do not match", file=sys.stderr)
        return 1

    setup_logging()
    return asyncio.run(create_admin(args.email, args.username, password, args.role))


if __name__ == "__main__":
    sys.exit(main())
