from fastapi import Request, Depends
from typing import Optional
import logging
from auth import decode_access_token, identity_from_claims
from models import UserRole
from database import get_database
from services.user_service import UserService
from utils.errors import Unauthorized, Forbidden

logger = logging.getLogger(__name__)

async def get_current_user(request: Request) -> Optional[dict]:
    """Extract and validate the provider session token. Returns its claims or None."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    token = auth_header.split(" ", 1)[1].strip()
    return decode_access_token(token)

async def require_auth(request: Request, db=Depends(get_database)) -> dict:
    """Require valid authentication. Returns the local User (created on first request)."""
    claims = await get_current_user(request)
    if not claims:
        raise Unauthorized()

    identity = identity_from_claims(claims)
    if not identity:
        logger.warning("Session token missing sub/email claims")
        raise Unauthorized()

    return await UserService(db).get_or_create(identity)

async def require_admin(user: dict = Depends(require_auth)) -> dict:
    """Require admin role."""
    if user.get("role") != UserRole.ADMIN.value:
        raise Forbidden("Insufficient permissions")
    return user

async def client_route_guard(user: dict = Depends(require_auth)) -> dict:
    """Guard for client routes - any authenticated user."""
    return user

async def admin_route_guard(user: dict = Depends(require_admin)) -> dict:
    """Guard for admin routes."""
    return user
