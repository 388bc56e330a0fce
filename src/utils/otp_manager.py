"""OTP issuing and verification.

Codes are 6-digit numeric strings, unique among live records at the time
they are generated, mailed to the address and stored for
``OTP_TTL_SECONDS``. The SQL store has no TTL index, so expired rows are
ignored by every read and purged on each issue.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
from core.clock import Clock, utc_now
from core.exceptions import (
    AlreadyRegisteredError,
    InternalError,
    InvalidInputError,
    OtpExpiredError,
    OtpInvalidError,
)
from models.otp import OtpModel
from models.user import UserModel
from utils.mail_sender import MailSender
from utils.mail_templates import verification_email

logger = logging.getLogger(__name__)


class OtpManager:
    """Issues and verifies signup OTPs."""

    def __init__(self, db: Session, mail_sender: MailSender, clock: Clock = utc_now):
        """Initialize OtpManager.

        Args:
            db: SQLAlchemy Session.
            mail_sender: Delivers the verification mail.
            clock: Source of the current UTC time.
        """
        self.db = db
        self.mail_sender = mail_sender
        self.clock = clock

    def generate_code(self) -> str:
        """Draw a uniformly random numeric code of ``OTP_LENGTH`` digits."""
        return "".join(secrets.choice("0123456789") for _ in range(config.OTP_LENGTH))

    def _is_live_code(self, code: str) -> bool:
        return (
            self.db.query(OtpModel.id)
            .filter(OtpModel.otp == code, OtpModel.expires_at > self.clock())
            .first()
            is not None
        )

    def generate_unique_code(self) -> str:
        """Generate a code that no live OTP record currently holds.

        Returns:
            A fresh code.

        Raises:
            InternalError: If no unused code was found within
                ``OTP_MAX_GENERATION_ATTEMPTS`` draws.
        """
        for _ in range(config.OTP_MAX_GENERATION_ATTEMPTS):
            code = self.generate_code()
            if not self._is_live_code(code):
                return code
        logger.error(
            "No unique OTP after %d attempts", config.OTP_MAX_GENERATION_ATTEMPTS
        )
        raise InternalError("Unable to send OTP")

    def purge_expired(self) -> int:
        """Delete OTP records past their expiry.

        Returns:
            Number of rows deleted.
        """
        removed = (
            self.db.query(OtpModel)
            .filter(OtpModel.expires_at <= self.clock())
            .delete(synchronize_session=False)
        )
        if removed:
            logger.debug("Purged %d expired OTP records", removed)
        return removed

    def request_otp(self, email: Optional[str]) -> None:
        """Issue an OTP for an email that is not yet registered.

        The code is mailed before it is stored. If delivery fails nothing is
        persisted and the error propagates, so an address never holds a code
        its owner could not have received.

        Args:
            email: Target address.

        Raises:
            InvalidInputError: If the email is missing.
            AlreadyRegisteredError: If a user already owns the email.
            MailDeliveryError: If the verification mail could not be sent.
            InternalError: If the store rejects the write.
        """
        if not email or not email.strip():
            raise InvalidInputError("Email is required")

        if self.db.query(UserModel.user_id).filter(UserModel.email == email).first():
            logger.warning("OTP requested for registered email %s", email)
            raise AlreadyRegisteredError()

        try:
            self.purge_expired()
            code = self.generate_unique_code()
            now = self.clock()

            self.mail_sender.send(
                email,
                f"Verification Email from {config.PLATFORM_NAME}",
                verification_email(code, config.OTP_TTL_SECONDS),
            )

            self.db.add(
                OtpModel(
                    email=email,
                    otp=code,
                    created_at=now,
                    expires_at=now + timedelta(seconds=config.OTP_TTL_SECONDS),
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to store OTP for %s", email)
            raise InternalError("Unable to send OTP") from e
        except Exception:
            self.db.rollback()
            raise

        logger.info("OTP issued for %s", email)

    def latest_live_otp(self, email: str) -> Optional[OtpModel]:
        """Return the most recently created live OTP record for an email."""
        return (
            self.db.query(OtpModel)
            .filter(OtpModel.email == email, OtpModel.expires_at > self.clock())
            .order_by(OtpModel.created_at.desc(), OtpModel.id.desc())
            .first()
        )

    def verify_otp(self, email: str, code: str) -> OtpModel:
        """Check a code against the newest live OTP for the email.

        Args:
            email: Address the code was sent to.
            code: Code presented by the client.

        Returns:
            The matching OTP record.

        Raises:
            OtpExpiredError: If no live OTP exists for the email, including
                one already consumed when ``OTP_SINGLE_USE`` is on.
            OtpInvalidError: If the code does not match.
        """
        record = self.latest_live_otp(email)
        if record is None or (config.OTP_SINGLE_USE and record.consumed_at is not None):
            raise OtpExpiredError()
        if not secrets.compare_digest(record.otp.encode("utf-8"), code.encode("utf-8")):
            raise OtpInvalidError()
        return record

    def mark_consumed(self, record: OtpModel) -> bool:
        """Mark an OTP as used, unless another request got there first.

        Does not commit; the caller commits together with its own writes.

        Returns:
            True if this call consumed the record.
        """
        updated = (
            self.db.query(OtpModel)
            .filter(OtpModel.id == record.id, OtpModel.consumed_at.is_(None))
            .update({OtpModel.consumed_at: self.clock()}, synchronize_session=False)
        )
        return updated == 1
