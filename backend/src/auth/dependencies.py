# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Provides dependency injection functions for admin authentication and for
extracting single-use management tokens from customer requests.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import TokenExpired, TokenInvalid
from services.jwt_service import jwt_service, AdminTokenPayload
from models import User

logger = logging.getLogger(__name__)


class UserContext:
    """Authenticated admin context extracted from a JWT token."""

    def __init__(self, user_id: int, email: str, role: str, name: Optional[str] = None):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.name = name

    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"UserContext(user_id={self.user_id}, email='{self.email}', role='{self.role}')"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[AdminTokenPayload]:
    """Extract and validate the admin JWT payload, if any."""
    if not credentials:
        return None

    try:
        return jwt_service.verify_access_token(credentials.credentials)
    except (TokenExpired, TokenInvalid) as e:
        logger.debug(f"Rejected admin token: {e.message}")
        return None


def get_current_user(
    payload: Optional[AdminTokenPayload] = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    user = db.query(User).filter(
        User.id == int(payload.sub),
        User.email == payload.email
    ).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return UserContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        name=user.full_name,
    )


def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require admin role."""
    if not user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user


def get_management_token(
    token: Optional[str] = Query(None, description="Management token from the booking link"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    Management token from the link's query string or a bearer header.

    Validation happens in BookingService so expiry and reuse map to
    distinct errors.
    """
    if token:
        return token
    if credentials:
        return credentials.credentials
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Management token not provided"
    )
