"""
verify.py
---------
Purpose:
    Bearer token verification for protected routes.

Notes:
    - Tokens are HS256 JWTs signed with JWT_SECRET by the account service.
    - User tokens carry the user id in `id` (`sub` is accepted as well).
    - Admin tokens additionally carry `role: "admin"` and must match a row
      in the admins table.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from safewatch.config import settings
from safewatch.db.helpers import DatabaseError
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.repositories.user_repository import user_repository

logger = get_logger(__name__)

_security = HTTPBearer(auto_error=False)


def verify_jwt(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": True},
        )
    except jwt.PyJWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is not valid",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> dict:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token, authorization denied",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_jwt(credentials.credentials)


def claims_user_id(claims: dict) -> str:
    user_id = claims.get("id") or claims.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token: missing user ID"
        )
    return str(user_id)


async def admin_dependency(claims: dict = Depends(auth_dependency)) -> dict:
    """Require an admin token that still maps to an existing admin account."""
    if claims.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized as admin")

    admin_id = claims_user_id(claims)
    try:
        admin = await user_repository.get_admin(admin_id)
    except DatabaseError as e:
        logger.error("Admin lookup failed", admin_id=admin_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error"
        ) from e

    if not admin or admin.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized as admin")

    return claims
