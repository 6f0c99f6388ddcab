"""
Database seeding script for development users.

Creates one EMPLOYEE, one FINANCE_AREA and one FINANCE_REGIONAL user and
prints a bearer token for each. Run this script after the database is set up.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from travel_backend.app.core.jwt import create_access_token
from travel_backend.app.db.session import AsyncSessionLocal
from travel_backend.app.models.enums import UserRole
from travel_backend.app.models.user import User

SEED_USERS = [
    {"name": "Budi Santoso", "email": "employee@travel.local", "role": UserRole.EMPLOYEE, "area_code": "JKT"},
    {"name": "Andi Finance", "email": "finance.area@travel.local", "role": UserRole.FINANCE_AREA, "area_code": "JKT"},
    {"name": "Rina Regional", "email": "finance.regional@travel.local", "role": UserRole.FINANCE_REGIONAL, "area_code": None},
]


async def seed_users(session_factory=AsyncSessionLocal) -> dict:
    """
    Seed the development users. Existing emails are left untouched.

    Returns a mapping of email to bearer token.
    """
    tokens = {}
    async with session_factory() as db:
        print("🌱 Starting user seeding...")

        for data in SEED_USERS:
            result = await db.execute(select(User).where(User.email == data["email"]))
            user = result.scalar_one_or_none()

            if user:
                print(f"ℹ️  {data['email']} already exists, skipping")
            else:
                user = User(is_active=True, **data)
                db.add(user)
                await db.flush()
                print(f"✅ Created {data['role'].value} user ({data['email']})")

            tokens[user.email] = create_access_token(
                {"sub": user.email, "user_id": user.id, "role": user.role.value}
            )

        await db.commit()

    print("\n🎉 User seeding completed successfully!")
    print("\nBearer tokens:")
    for email, token in tokens.items():
        print(f"  - {email}: {token}")
    return tokens


if __name__ == "__main__":
    asyncio.run(seed_users())
