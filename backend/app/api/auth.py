"""
Bearer token verification and role checks.

Tokens are issued by the identity provider; this service only verifies
them. Roles are always read from `user_roles`, never from token claims.
"""

from typing import Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from backend.app.config import AUTH_JWT_ALGORITHM, AUTH_JWT_AUDIENCE, AUTH_JWT_SECRET
from backend.app.db.session import get_db
from backend.app.services.admin_service import AdminService

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_user_id(token: str) -> str:
    """
    Verify a bearer token and return its subject.

    Raises:
        HTTPException: 401 if the token is invalid or has no subject
    """
    options = {} if AUTH_JWT_AUDIENCE else {"verify_aud": False}
    try:
        payload = jwt.decode(
            token,
            AUTH_JWT_SECRET,
            algorithms=[AUTH_JWT_ALGORITHM],
            audience=AUTH_JWT_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.info("token_rejected", error=str(e))
        raise _credentials_exception("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise _credentials_exception("Invalid token")
    return str(user_id)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise _credentials_exception("Missing or invalid authorization header")
    return decode_user_id(credentials.credentials)


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Caller id when a valid token is sent, None when no token is sent."""
    if credentials is None:
        return None
    return decode_user_id(credentials.credentials)


async def require_admin(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> str:
    if not AdminService(db).is_admin(user_id):
        logger.warning("admin_required", user_id=user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required for this operation",
        )
    return user_id
