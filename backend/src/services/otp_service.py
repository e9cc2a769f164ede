"""
One-time code issuance and verification.

At most one live code exists per (email, purpose). Codes are bcrypt-hashed
at rest and expire at an absolute instant checked at the point of use.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.constants import CODE_PURPOSES, OTP_CODE_EXPIRE_MINUTES, OTP_CODE_LENGTH, OTP_MAX_ATTEMPTS
from core.exceptions import InvalidCode, InvalidConfiguration, TokenExpired
from models import OneTimeCode
from services.jwt_service import jwt_service
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class OTPService:
    """Service for one-time code operations."""

    @staticmethod
    def generate_code() -> str:
        """Random zero-padded numeric code."""
        return str(secrets.randbelow(10 ** OTP_CODE_LENGTH)).zfill(OTP_CODE_LENGTH)

    @staticmethod
    def issue_code(
        db: Session,
        email: str,
        purpose: str,
        now: Optional[datetime] = None
    ) -> tuple[OneTimeCode, str]:
        """
        Issue a fresh code, replacing any earlier one for the same (email, purpose).

        Returns:
            tuple: (stored record, plaintext code to deliver)

        Raises:
            InvalidConfiguration: If the purpose is unknown
        """
        if purpose not in CODE_PURPOSES:
            raise InvalidConfiguration(f"Unknown code purpose: {purpose}")
        if now is None:
            now = utc_now()
        email = normalize_email(email)

        previous = db.query(OneTimeCode).filter(
            OneTimeCode.email == email,
            OneTimeCode.purpose == purpose
        ).first()
        if previous is not None:
            # Deleted through the session; the new row may reuse its primary key
            db.delete(previous)
            db.flush()

        code = OTPService.generate_code()
        record = OneTimeCode(
            email=email,
            purpose=purpose,
            code_hash=jwt_service.hash_code(code),
            expires_at=now + timedelta(minutes=OTP_CODE_EXPIRE_MINUTES),
            attempts=0,
            created_at=now,
        )
        db.add(record)
        db.commit()
        db.refresh(record)

        logger.info(f"Issued {purpose} code {record.id}, expires at {record.expires_at.isoformat()}")
        return record, code

    @staticmethod
    def invalidate_code(db: Session, email: str, purpose: str) -> None:
        """Delete the code for (email, purpose), if any."""
        record = db.query(OneTimeCode).filter(
            OneTimeCode.email == normalize_email(email),
            OneTimeCode.purpose == purpose
        ).first()
        if record is not None:
            db.delete(record)
            db.commit()
            logger.info(f"Invalidated {purpose} code")

    @staticmethod
    def verify_code(
        db: Session,
        email: str,
        purpose: str,
        code: str,
        now: Optional[datetime] = None
    ) -> OneTimeCode:
        """
        Consume a code.

        Raises:
            TokenExpired: If no code is live for (email, purpose): never issued,
                already used, expired, or exhausted
            InvalidCode: If the digits are wrong; ``remaining_attempts`` tells
                the caller whether another try is allowed
        """
        if now is None:
            now = utc_now()

        record = db.query(OneTimeCode).filter(
            OneTimeCode.email == normalize_email(email),
            OneTimeCode.purpose == purpose
        ).first()

        if record is None or not record.is_live(now):
            raise TokenExpired("Verification code has expired or was already used; request a new one")

        if not jwt_service.verify_code(code.strip(), record.code_hash):
            record.attempts += 1
            remaining = max(OTP_MAX_ATTEMPTS - record.attempts, 0)
            if remaining == 0:
                record.mark_used(now)
                logger.warning(f"Code {record.id} invalidated after {record.attempts} wrong attempts")
            db.commit()
            raise InvalidCode("Verification code is incorrect", remaining_attempts=remaining)

        record.mark_used(now)
        db.commit()
        logger.info(f"Verified {purpose} code {record.id}")
        return record

    @staticmethod
    def purge_stale_codes(db: Session, now: Optional[datetime] = None) -> int:
        """Delete expired and used codes. Returns the number removed."""
        if now is None:
            now = utc_now()
        deleted = db.query(OneTimeCode).filter(
            or_(OneTimeCode.expires_at <= now, OneTimeCode.used_at.isnot(None))
        ).delete(synchronize_session=False)
        db.commit()
        return deleted
