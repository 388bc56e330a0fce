"""Account registration.

Signup moves through ValidatingInput, CheckingUniqueness, VerifyingOtp,
Hashing, Persisting and Done. Any check can end it in Rejected.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

import config
from core.exceptions import (
    AlreadyRegisteredError,
    AuthServiceError,
    InvalidInputError,
    OtpExpiredError,
    PasswordMismatchError,
)
from schemas.user import Profile, Role, SignupRequest, User
from utils.mail_sender import MailSender
from utils.mail_templates import welcome_email
from utils.otp_manager import OtpManager
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


class RegistrationState(str, Enum):
    VALIDATING_INPUT = "ValidatingInput"
    CHECKING_UNIQUENESS = "CheckingUniqueness"
    VERIFYING_OTP = "VerifyingOtp"
    HASHING = "Hashing"
    PERSISTING = "Persisting"
    DONE = "Done"
    REJECTED = "Rejected"


def _parse_role(value: Optional[str]) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise InvalidInputError(
            f"Invalid account type: {value}. Must be one of "
            f"{', '.join(role.value for role in Role)}."
        )


class RegistrationManager:
    """Runs the signup state machine for one request."""

    def __init__(
        self,
        user_manager: UserManager,
        otp_manager: OtpManager,
        mail_sender: MailSender,
    ):
        self.user_manager = user_manager
        self.otp_manager = otp_manager
        self.mail_sender = mail_sender
        self.state = RegistrationState.VALIDATING_INPUT

    def _enter(self, state: RegistrationState) -> None:
        logger.debug("Registration %s -> %s", self.state.value, state.value)
        self.state = state

    def register(self, req: SignupRequest) -> Tuple[User, Profile]:
        """Register a new user after verifying the signup OTP.

        No server-side restriction is placed on which role may be chosen.

        Args:
            req: Signup payload.

        Returns:
            Tuple of the created User and its Profile.

        Raises:
            InvalidInputError: If a field is missing or the role is unknown.
            PasswordMismatchError: If password and confirmation differ.
            AlreadyRegisteredError: If the email is already registered.
            OtpExpiredError: If no live OTP exists for the email.
            OtpInvalidError: If the OTP does not match.
        """
        self.state = RegistrationState.VALIDATING_INPUT
        try:
            user, profile = self._run(req)
        except AuthServiceError as e:
            logger.warning(
                "Registration rejected in %s for %s: %s",
                self.state.value,
                req.email,
                e.error_code,
            )
            # Drop an uncommitted OTP consumption
            self.user_manager.db.rollback()
            self._enter(RegistrationState.REJECTED)
            raise

        # Welcome mail failure must not undo the signup
        self.mail_sender.send_best_effort(
            user.email,
            f"Welcome to {config.PLATFORM_NAME}",
            welcome_email(user.first_name),
        )
        return user, profile

    def _run(self, req: SignupRequest) -> Tuple[User, Profile]:
        fields = (
            req.first_name,
            req.last_name,
            req.email,
            req.password,
            req.confirm_password,
            req.account_type,
            req.otp,
        )
        if any(value is None or not value.strip() for value in fields):
            raise InvalidInputError("All fields are required")
        if req.password != req.confirm_password:
            raise PasswordMismatchError()
        role = _parse_role(req.account_type)

        self._enter(RegistrationState.CHECKING_UNIQUENESS)
        if self.user_manager.get_user_by_email(req.email) is not None:
            raise AlreadyRegisteredError()

        self._enter(RegistrationState.VERIFYING_OTP)
        record = self.otp_manager.verify_otp(req.email, req.otp)

        self._enter(RegistrationState.HASHING)
        password_hash = self.user_manager.hash_password(req.password)

        # The consumed mark is committed with the user row or rolled back with it
        self._enter(RegistrationState.PERSISTING)
        if config.OTP_SINGLE_USE and not self.otp_manager.mark_consumed(record):
            # A concurrent signup consumed it after verification
            raise OtpExpiredError()
        user, profile = self.user_manager.create_user(
            first_name=req.first_name.strip(),
            last_name=req.last_name.strip(),
            email=req.email,
            password_hash=password_hash,
            role=role,
        )

        self._enter(RegistrationState.DONE)
        logger.info("Registered %s as %s", user.email, role.value)
        return user, profile
