"""
seed_users.py
─────────────
Creates the default teacher and student accounts with bcrypt-hashed
passwords. Run after the migration:

    python seed_users.py

Safe to run again: accounts that already exist are left untouched.
Change SEED_* values in .env, or edit the defaults below.
"""
import asyncio
import os
from dotenv import load_dotenv

load_dotenv()

# ── Change these in .env or edit here ────────────────────────────────
DEFAULT_PASSWORD = os.getenv("SEED_PASSWORD", "123456")

SEED_ACCOUNTS = [
    {
        "username": os.getenv("SEED_TEACHER_USERNAME", "teacher1"),
        "role": "teacher",
        "real_name": "Default Teacher",
    },
    {
        "username": os.getenv("SEED_STUDENT_USERNAME", "student1"),
        "role": "student",
        "real_name": "Default Student",
        "student_no": "S0001",
        "class_name": "Class 1",
    },
]
# ─────────────────────────────────────────────────────────────────────


async def seed():
    from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
    from sqlalchemy import select
    from oralpractice.core.security import hash_password
    from oralpractice.models.user import User, UserRole

    engine  = create_async_engine(os.environ["DATABASE_URL"], echo=False)
    Session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    created = []
    async with Session() as db:
        for account in SEED_ACCOUNTS:
            existing = (await db.execute(
                select(User).where(User.username == account["username"])
            )).scalar_one_or_none()

            if existing:
                print(f"⚠️  {account['username']} already exists, skipped")
                continue

            user = User(
                username=account["username"],
                password_hash=hash_password(DEFAULT_PASSWORD),
                role=UserRole(account["role"]),
                real_name=account["real_name"],
                student_no=account.get("student_no"),
                class_name=account.get("class_name"),
            )
            db.add(user)
            created.append(user)

        await db.commit()

    await engine.dispose()

    for user in created:
        print(f"✅  Created {user.role.value:<8} {user.username} (id {user.id})")

    print()
    print("🔑  Login endpoint : POST /api/auth/login")
    print(f'    Body           : {{"username": "teacher1", "password": "{DEFAULT_PASSWORD}"}}')
    print()
    print("⚠️   Change the default passwords before going live!")


if __name__ == "__main__":
    asyncio.run(seed())
