"""
Seed script — populates the database with a demo library for development.

Run with:
    python -m openbookcorner.db.seed
"""

import asyncio

from sqlalchemy import func, select

from openbookcorner.core.config import settings
from openbookcorner.db.session import AsyncSessionLocal
from openbookcorner.models.book import Book
from openbookcorner.models.library import Library
from openbookcorner.models.user import User, UserRole

SEED_LIBRARY = {"name": "Demo Office", "slug": "demo-office"}

SEED_USERS = [
    {
        "email": "admin@demo-office.example.com",
        "name": "Jane Admin",
        "role": UserRole.LIBRARY_ADMIN,
    },
    {
        "email": "reader@demo-office.example.com",
        "name": "John Reader",
        "role": UserRole.READER,
    },
]

SEED_BOOKS = [
    {"title": "The Pragmatic Programmer", "author": "David Thomas", "isbn": "9780135957059", "quantity": 2},
    {"title": "Clean Code", "author": "Robert C. Martin", "isbn": "9780132350884", "quantity": 1},
    {"title": "Designing Data-Intensive Applications", "author": "Martin Kleppmann", "isbn": "9781449373320", "quantity": 2},
    {"title": "Thinking, Fast and Slow", "author": "Daniel Kahneman", "isbn": "9780374533557", "quantity": 1},
    {"title": "Sapiens", "author": "Yuval Noah Harari", "isbn": "9780062316097", "quantity": 1},
    {"title": "Dune", "author": "Frank Herbert", "isbn": "9780441013593", "quantity": 1},
    {"title": "The Mythical Man-Month", "author": "Frederick P. Brooks Jr.", "isbn": "9780201835953", "quantity": 1},
    {"title": "Refactoring", "author": "Martin Fowler", "isbn": "9780134757599", "quantity": 1},
]


async def seed() -> None:
    async with AsyncSessionLocal() as session:
        # Skip if already seeded
        user_count = await session.scalar(select(func.count()).select_from(User))
        if user_count and user_count > 0:
            print(f"Database already seeded ({user_count} users found). Skipping.")
            return

        super_admin = User(
            email=settings.SUPER_ADMIN_EMAIL.lower(),
            name="Super Admin",
            role=UserRole.SUPER_ADMIN,
        )
        library = Library(**SEED_LIBRARY)
        session.add_all([super_admin, library])
        await session.flush()

        users = [User(library_id=library.id, **data) for data in SEED_USERS]
        session.add_all(users)

        books = [
            Book(library_id=library.id, available_quantity=data["quantity"], **data)
            for data in SEED_BOOKS
        ]
        session.add_all(books)

        await session.commit()
        print(
            f"Seeded library {library.slug!r} with {len(users)} users and {len(books)} books; "
            f"super admin is {super_admin.email}."
        )


if __name__ == "__main__":
    asyncio.run(seed())
