"""
JWT Service for admin access, code verification and booking management tokens.

Provides token creation and validation plus the bcrypt and SHA-256 hashing
used for passwords, one-time codes and single-use token lookup.
"""

import bcrypt
import jwt
import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Type, TypeVar
from pydantic import BaseModel, ValidationError

from core.config import JWT_SECRET_KEY, JWT_ACCESS_TOKEN_EXPIRE_MINUTES, OTP_HASH_ROUNDS
from core.constants import (
    MANAGEMENT_TOKEN_EXPIRE_MINUTES, TOKEN_PURPOSE_ADMIN, TOKEN_PURPOSE_MANAGEMENT,
    TOKEN_PURPOSE_VERIFICATION, VERIFICATION_TOKEN_EXPIRE_MINUTES,
)
from core.exceptions import TokenExpired, TokenInvalid
from utils.datetime_utils import utc_now


class AdminTokenPayload(BaseModel):
    """Payload structure for admin access tokens."""
    sub: str  # User id
    email: str
    role: str
    purpose: str = TOKEN_PURPOSE_ADMIN
    iat: Optional[int] = None  # Set by JWT service
    exp: Optional[int] = None  # Set by JWT service


class VerificationTokenPayload(BaseModel):
    """Issued after a correct one-time code; authorizes one step of a booking attempt."""
    email: str
    scope: str  # Code purpose: "booking" or "manage"
    session_key: str
    jti: str
    purpose: str = TOKEN_PURPOSE_VERIFICATION
    iat: Optional[int] = None
    exp: Optional[int] = None


class ManagementTokenPayload(BaseModel):
    """Single-use capability to view, reschedule or cancel one booking."""
    booking_id: int
    email_hash: str
    jti: str
    purpose: str = TOKEN_PURPOSE_MANAGEMENT
    iat: Optional[int] = None
    exp: Optional[int] = None


PayloadT = TypeVar("PayloadT", bound=BaseModel)


class JWTService:
    """Service for JWT token and hashing operations."""

    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    @classmethod
    def _encode(cls, claims: Dict[str, Any], lifetime: timedelta, now: Optional[datetime] = None) -> str:
        issued_at = now or utc_now()
        to_encode = dict(claims)
        to_encode.update({
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + lifetime).timestamp()),
        })
        return jwt.encode(to_encode, cls._get_secret_key(), algorithm=cls.ALGORITHM)

    @classmethod
    def _decode(
        cls,
        token: str,
        model: Type[PayloadT],
        purpose: str,
        now: Optional[datetime] = None
    ) -> PayloadT:
        """
        Verify signature, purpose and expiry of a token.

        Expiry is compared against ``now`` so callers and tests share one clock.

        Raises:
            TokenExpired: If the token is past its expiry
            TokenInvalid: If the signature, structure or purpose is wrong
        """
        try:
            claims = jwt.decode(
                token,
                cls._get_secret_key(),
                algorithms=[cls.ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "require": ["exp", "iat"]},
            )
        except jwt.InvalidTokenError as e:
            raise TokenInvalid(f"Invalid token: {e}")

        if claims.get("purpose") != purpose:
            raise TokenInvalid("Token was issued for a different purpose")

        try:
            payload = model(**claims)
        except ValidationError:
            raise TokenInvalid("Token claims are malformed")

        current = now or utc_now()
        if payload.exp is None or payload.exp <= int(current.timestamp()):  # type: ignore[attr-defined]
            raise TokenExpired("Token has expired")
        return payload

    @classmethod
    def create_access_token(cls, payload: AdminTokenPayload, now: Optional[datetime] = None) -> str:
        """Create an admin access token."""
        claims = payload.model_dump(exclude={"iat", "exp"})
        return cls._encode(claims, timedelta(minutes=cls.ACCESS_TOKEN_EXPIRE_MINUTES), now)

    @classmethod
    def verify_access_token(cls, token: str, now: Optional[datetime] = None) -> AdminTokenPayload:
        """Verify and decode an admin access token."""
        return cls._decode(token, AdminTokenPayload, TOKEN_PURPOSE_ADMIN, now)

    @classmethod
    def create_verification_token(
        cls,
        email: str,
        scope: str,
        session_key: str,
        now: Optional[datetime] = None
    ) -> tuple[str, VerificationTokenPayload]:
        """
        Create a short-lived verification token bound to (email, scope) and a session.

        Returns:
            tuple: (token, payload) so the caller can remember the jti
        """
        payload = VerificationTokenPayload(
            email=email,
            scope=scope,
            session_key=session_key,
            jti=secrets.token_hex(16),
        )
        token = cls._encode(
            payload.model_dump(exclude={"iat", "exp"}),
            timedelta(minutes=VERIFICATION_TOKEN_EXPIRE_MINUTES),
            now,
        )
        return token, payload

    @classmethod
    def verify_verification_token(cls, token: str, now: Optional[datetime] = None) -> VerificationTokenPayload:
        return cls._decode(token, VerificationTokenPayload, TOKEN_PURPOSE_VERIFICATION, now)

    @classmethod
    def create_management_token(
        cls,
        booking_id: int,
        email: str,
        now: Optional[datetime] = None
    ) -> tuple[str, datetime]:
        """
        Create a management token for one booking.

        Returns:
            tuple: (token, expires_at)
        """
        issued_at = now or utc_now()
        payload = ManagementTokenPayload(
            booking_id=booking_id,
            email_hash=cls.hash_email(email),
            jti=secrets.token_hex(16),
        )
        lifetime = timedelta(minutes=MANAGEMENT_TOKEN_EXPIRE_MINUTES)
        token = cls._encode(payload.model_dump(exclude={"iat", "exp"}), lifetime, issued_at)
        return token, issued_at + lifetime

    @classmethod
    def verify_management_token(cls, token: str, now: Optional[datetime] = None) -> ManagementTokenPayload:
        return cls._decode(token, ManagementTokenPayload, TOKEN_PURPOSE_MANAGEMENT, now)

    @classmethod
    def hash_email(cls, email: str) -> str:
        """SHA-256 of the normalised email, so tokens do not carry addresses."""
        return hashlib.sha256(email.strip().lower().encode('utf-8')).hexdigest()

    @classmethod
    def get_token_sha256_hash(cls, token: str) -> str:
        """
        Get SHA-256 hash of a token for O(1) lookup.

        Returns:
            str: SHA-256 hash in hex format
        """
        return hashlib.sha256(token.encode('utf-8')).hexdigest()

    @classmethod
    def hash_password(cls, password: str) -> str:
        """Create a bcrypt hash of a password."""
        # First hash with SHA-256 to ensure input is within bcrypt's 72-byte limit
        digest = hashlib.sha256(password.encode('utf-8')).digest()
        return bcrypt.hashpw(digest, bcrypt.gensalt()).decode('utf-8')

    @classmethod
    def verify_password(cls, password: str, hashed_password: str) -> bool:
        """Verify a password against its bcrypt hash."""
        try:
            digest = hashlib.sha256(password.encode('utf-8')).digest()
            return bcrypt.checkpw(digest, hashed_password.encode('utf-8'))
        except ValueError:
            # Malformed stored hash
            return False

    @classmethod
    def hash_code(cls, code: str) -> str:
        """Create a bcrypt hash of a one-time code."""
        return bcrypt.hashpw(code.encode('utf-8'), bcrypt.gensalt(rounds=OTP_HASH_ROUNDS)).decode('utf-8')

    @classmethod
    def verify_code(cls, code: str, hashed_code: str) -> bool:
        try:
            return bcrypt.checkpw(code.encode('utf-8'), hashed_code.encode('utf-8'))
        except ValueError:
            return False

    @classmethod
    def _get_secret_key(cls) -> str:
        """Get the JWT secret key."""
        return JWT_SECRET_KEY


# Global instance
jwt_service = JWTService()
