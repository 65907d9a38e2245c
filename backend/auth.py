"""Session token verification for the hosted identity provider.

The provider signs a JWT per session; we only verify it and read the
identity claims. Configure AUTH_JWT_SECRET (HS*) or AUTH_JWT_PUBLIC_KEY (RS*).
Without either, every token is rejected unless ENVIRONMENT=development.
"""
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
import os
import logging

logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "dev-only-session-secret"
JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
JWT_ISSUER = os.getenv("AUTH_JWT_ISSUER") or None
JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE") or None
JWT_EXPIRATION_HOURS = int(os.getenv("AUTH_JWT_EXPIRATION_HOURS", "24"))

def get_jwt_key() -> Optional[str]:
    """Configured verification key, the dev secret in development, else None."""
    key = (os.getenv("AUTH_JWT_PUBLIC_KEY") or os.getenv("AUTH_JWT_SECRET") or "").strip()
    if key:
        return key
    if (os.getenv("ENVIRONMENT") or "").strip().lower() == "development":
        return DEV_JWT_SECRET
    return None

def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed session token (local development, seed data and tests)."""
    key = get_jwt_key()
    if not key:
        raise RuntimeError("AUTH_JWT_SECRET is not set")

    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRATION_HOURS)

    to_encode.update({"exp": expire})
    if JWT_ISSUER:
        to_encode.setdefault("iss", JWT_ISSUER)
    if JWT_AUDIENCE:
        to_encode.setdefault("aud", JWT_AUDIENCE)
    return jwt.encode(to_encode, key, algorithm=JWT_ALGORITHM)

def decode_access_token(token: str) -> Optional[Dict]:
    """Decode and validate a session token. None when invalid, expired or no key is configured."""
    key = get_jwt_key()
    if not key:
        logger.error("AUTH_JWT_SECRET / AUTH_JWT_PUBLIC_KEY not set - rejecting session token")
        return None
    try:
        return jwt.decode(
            token,
            key,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
            audience=JWT_AUDIENCE,
            options={"verify_aud": JWT_AUDIENCE is not None},
        )
    except JWTError as e:
        logger.info(f"Rejected session token: {e}")
        return None

def identity_from_claims(claims: Dict) -> Optional[Dict]:
    """Normalise provider claims to {external_id, email, first_name, last_name}."""
    external_id = claims.get("sub")
    email = claims.get("email") or claims.get("email_address")
    if not external_id or not email:
        return None
    return {
        "external_id": external_id,
        "email": email.strip().lower(),
        "first_name": claims.get("first_name") or claims.get("given_name"),
        "last_name": claims.get("last_name") or claims.get("family_name"),
    }
