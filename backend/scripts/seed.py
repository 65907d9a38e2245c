"""
Seed development data

Creates an admin, a regular user and one submitted sample project owned by
the user. Safe to re-run: rows are matched on email / business name and
left untouched when present.

Usage (from backend/):
  python -m scripts.seed
  python -m scripts.seed --print-tokens   # also print bearer tokens for both users
"""

import asyncio
import argparse
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from auth import create_access_token
from database import get_db_context
from models import User, UserRole, ProjectForm, ProjectStatus, WebsiteType
from services.pricing import estimate
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_USERS = [
    {"external_id": "admin_clerk_id", "email": "admin@example.com", "first_name": "Admin",
     "last_name": "User", "role": UserRole.ADMIN},
    {"external_id": "user_clerk_id", "email": "user@example.com", "first_name": "John",
     "last_name": "Doe", "role": UserRole.USER},
]

SAMPLE_PROJECT = {
    "business_name": "Sample Business",
    "industry": "Technology",
    "website_type": WebsiteType.BUSINESS,
    "features": ["Responsive Design", "SEO Optimization", "Contact Forms"],
    "number_of_pages": 5,
    "budget": 3000,
}


async def _upsert_user(db, fields: dict) -> dict:
    existing = await db.users.find_one({"email": fields["email"]}, {"_id": 0})
    if existing:
        logger.info("User %s already exists (user_id=%s)", fields["email"], existing["user_id"])
        return existing
    user = User(**fields)
    doc = user.model_dump(mode="json")
    doc["created_at"] = user.created_at
    await db.users.insert_one(doc)
    doc.pop("_id", None)
    logger.info("Created %s user %s", user.role.value, user.email)
    return doc


async def seed(db) -> dict:
    """Insert seed rows that are missing. Returns the admin, user and project."""
    admin = await _upsert_user(db, SEED_USERS[0])
    user = await _upsert_user(db, SEED_USERS[1])

    project = await db.project_forms.find_one(
        {"user_id": user["user_id"], "business_name": SAMPLE_PROJECT["business_name"]}, {"_id": 0}
    )
    if project:
        logger.info("Sample project already exists (project_id=%s)", project["project_id"])
    else:
        form = ProjectForm(
            user_id=user["user_id"],
            deadline=(datetime.now(timezone.utc) + timedelta(days=30)).date(),
            estimated_cost=estimate(
                SAMPLE_PROJECT["number_of_pages"], SAMPLE_PROJECT["features"], SAMPLE_PROJECT["website_type"]
            ),
            status=ProjectStatus.SUBMITTED,
            **SAMPLE_PROJECT,
        )
        project = form.to_document()
        await db.project_forms.insert_one(project)
        project.pop("_id", None)
        logger.info("Created sample project %s (estimate=%s)", form.project_id, form.estimated_cost)

    return {"admin": admin, "user": user, "project": project}


async def _run(print_tokens: bool) -> None:
    async with get_db_context() as db:
        seeded = await seed(db)
    if print_tokens:
        for key in ("admin", "user"):
            row = seeded[key]
            token = create_access_token({"sub": row["external_id"], "email": row["email"]})
            print(f"{key}: Bearer {token}")


def main():
    parser = argparse.ArgumentParser(description="Seed development data")
    parser.add_argument("--print-tokens", action="store_true", help="Print bearer tokens for the seeded users")
    args = parser.parse_args()
    asyncio.run(_run(args.print_tokens))
    return 0


if __name__ == "__main__":
    sys.exit(main())
