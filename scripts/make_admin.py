#!/usr/bin/env python3
"""
Promote a user to an elevated role

Usage:
    python scripts/make_admin.py user@example.com
    python scripts/make_admin.py user@example.com --role moderator
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from common.auth import UserService, UserRole
from common.database import get_database, close_database_connections
from common.exceptions import NotFoundError


async def make_admin(email: str, role: UserRole) -> bool:
    """Set the role on the user with this email"""
    print(f"🔐 Setting role '{role.value}' for {email}")
    print("=" * 50)

    try:
        db = await get_database()
        service = UserService(db)
        user = await service.set_role(email, role)
        print(f"\n✅ {user['email']} is now {user['role']}")
        return True
    except NotFoundError:
        print(f"\n❌ No user found with email {email}")
        return False
    finally:
        await close_database_connections()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Promote a Zenly user")
    parser.add_argument("email", help="email address of an existing account")
    parser.add_argument(
        "--role",
        choices=[role.value for role in UserRole],
        default=UserRole.ADMIN.value,
        help="role to assign (default: admin)"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    ok = asyncio.run(make_admin(args.email, UserRole(args.role)))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
