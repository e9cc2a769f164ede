"""
Admin account bootstrap and password login.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from core.constants import ROLE_ADMIN
from core.exceptions import TokenInvalid
from models import User
from services.jwt_service import AdminTokenPayload, jwt_service
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class AdminAuthService:
    """Service class for admin authentication."""

    @staticmethod
    def ensure_admin_account(db: Session, email: str, password: str) -> Optional[User]:
        """
        Create the admin account from configuration if no admin exists yet.

        Returns:
            The created admin, or None when nothing was created
        """
        if not email or not password:
            return None

        existing_admin = db.query(User).filter(User.role == ROLE_ADMIN).first()
        if existing_admin is not None:
            return None

        email = email.strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            user = User(email=email)
            db.add(user)
        user.role = ROLE_ADMIN
        user.password_hash = jwt_service.hash_password(password)
        db.commit()
        db.refresh(user)
        logger.info(f"Bootstrapped admin account {user.id}")
        return user

    @staticmethod
    def login(db: Session, email: str, password: str) -> tuple[User, str]:
        """
        Check admin credentials and issue an access token.

        Raises:
            TokenInvalid: If the credentials are wrong (same error for unknown emails)
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if (
            user is None
            or not user.is_admin
            or not user.password_hash
            or not jwt_service.verify_password(password, user.password_hash)
        ):
            logger.warning("Failed admin login attempt")
            raise TokenInvalid("Invalid email or password")

        user.last_login_at = utc_now()
        db.commit()

        token = jwt_service.create_access_token(AdminTokenPayload(
            sub=str(user.id),
            email=user.email,
            role=user.role,
        ))
        logger.info(f"Admin {user.id} logged in")
        return user, token
