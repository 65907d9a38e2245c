"""User provisioning - local User record for each provider identity.

Created on the first authenticated request; looked up by provider id first,
then by email (linking the provider id to a pre-seeded row). Never deleted.
"""
import os
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Set
from pymongo.errors import DuplicateKeyError
from models import User, UserRole, AuditAction
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)


def _admin_emails() -> Set[str]:
    """ADMIN_EMAILS: comma separated; these identities are created as ADMIN."""
    raw = (os.getenv("ADMIN_EMAILS") or "").strip()
    return {e.strip().lower() for e in raw.split(",") if e.strip()}


class UserService:

    def __init__(self, db):
        self.db = db

    async def get_by_external_id(self, external_id: str) -> Optional[Dict]:
        return await self.db.users.find_one({"external_id": external_id}, {"_id": 0})

    async def get_or_create(self, identity: Dict) -> Dict:
        """Return the User for a verified identity, creating it on first sight."""
        user = await self.get_by_external_id(identity["external_id"])
        if user:
            return user

        email = identity["email"]
        user = await self.db.users.find_one({"email": email}, {"_id": 0})
        if user:
            # Seeded or pre-provider row: attach the provider id
            await self.db.users.update_one(
                {"user_id": user["user_id"]},
                {"$set": {"external_id": identity["external_id"]}},
            )
            user["external_id"] = identity["external_id"]
            logger.info(f"Linked external identity to user {user['user_id']}")
            return user

        role = UserRole.ADMIN if email in _admin_emails() else UserRole.USER
        new_user = User(
            external_id=identity["external_id"],
            email=email,
            first_name=identity.get("first_name"),
            last_name=identity.get("last_name"),
            role=role,
            created_at=datetime.now(timezone.utc),
        )
        doc = new_user.model_dump(mode="json")
        doc["created_at"] = new_user.created_at
        try:
            await self.db.users.insert_one(doc)
        except DuplicateKeyError:
            # Concurrent first request for the same identity won the insert
            existing = await self.get_by_external_id(identity["external_id"])
            if existing:
                return existing
            raise

        doc.pop("_id", None)
        await create_audit_log(
            self.db,
            action=AuditAction.USER_CREATED,
            actor_id=new_user.user_id,
            actor_role=role,
            resource_type="user",
            resource_id=new_user.user_id,
            metadata={"email": email},
        )
        logger.info(f"Created user {new_user.user_id} role={role.value}")
        return doc
