"""
FastAPI dependencies.
"""

import logging
from typing import Any, Dict

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from prospect_intel.database import get_supabase_service

logger = logging.getLogger(__name__)

# Security scheme for Supabase JWT bearer tokens
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Dict[str, Any]:
    """
    Resolve the bearer token into the caller's claims.

    Returns a dict with at least ``sub`` (the user id) and ``email``.

    Raises:
        401: If the token is invalid or expired
    """
    token = credentials.credentials
    try:
        response = get_supabase_service().auth.get_user(token)
    except Exception as e:
        logger.warning(f"[AUTH] Token validation failed: {e}")
        response = None

    user = getattr(response, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"sub": user.id, "email": user.email}
