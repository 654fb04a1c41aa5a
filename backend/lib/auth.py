"""
Authentication utilities for JWT validation
"""
import logging
import os
from typing import Optional

from fastapi import Depends, HTTPException, Header
from jose import JWTError, jwt
from dotenv import load_dotenv

from .supabase_client import get_supabase_client

load_dotenv()
load_dotenv('../.env')

logger = logging.getLogger(__name__)

# Supabase signs access tokens with the project JWT secret
JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
JWT_ALGORITHM = "HS256"
MONITORING_ROLES = ("teacher", "admin")

DEMO_USER = {
    "id": "demo-teacher",
    "email": "teacher@edupulse.local",
    "role": "teacher",
    "full_name": "Demo Teacher",
    "profile": {},
}


def _auth_disabled() -> bool:
    return os.getenv("AUTH_DISABLED", "false").lower() == "true"


def _decode_local(token: str) -> Optional[dict]:
    """Verify the token signature locally when the JWT secret is known."""
    if not JWT_SECRET:
        return None
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], options={"verify_aud": False})
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


async def get_current_user(authorization: Optional[str] = Header(None)):
    """
    Validate JWT token and return user info

    Args:
        authorization: Bearer token from Authorization header

    Returns:
        dict: User information including id, email, role

    Raises:
        HTTPException: If token is invalid or user not found
    """
    if _auth_disabled():
        return DEMO_USER

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = authorization.replace("Bearer ", "")

    try:
        claims = _decode_local(token)
        supabase = get_supabase_client()

        if claims and claims.get("sub"):
            user_id = claims["sub"]
            email = claims.get("email")
        else:
            user_response = supabase.auth.get_user(token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user_id = user_response.user.id
            email = user_response.user.email

        profile_response = supabase.table('profiles').select('*').eq('id', user_id).single().execute()

        if not profile_response.data:
            raise HTTPException(status_code=404, detail="User profile not found")

        profile = profile_response.data

        return {
            "id": user_id,
            "email": email,
            "role": profile.get("role", "student"),
            "full_name": profile.get("full_name"),
            "profile": profile
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.warning(f"⚠️ [Auth] Could not validate credentials: {e}")
        raise HTTPException(status_code=401, detail="Could not validate credentials")


async def require_teacher(user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency allowing only teachers (and admins) to run topic monitoring

    Raises:
        HTTPException: If user is not a teacher
    """
    if user.get("role") not in MONITORING_ROLES:
        raise HTTPException(status_code=403, detail="Teacher access required")
    return user
