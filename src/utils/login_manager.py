"""Credential login and session management.

A successful login mints a signed session token and stores it on the user
record, replacing any earlier one. One active session per user.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import config
from core.clock import Clock, utc_now
from core.exceptions import (
    InvalidCredentialsError,
    InvalidInputError,
    PasswordMismatchError,
    UserNotFoundError,
)
from core.security import create_access_token
from schemas.user import Identity, User
from utils.mail_sender import MailSender
from utils.mail_templates import password_updated_email
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    user: User
    token: str
    expires_at: datetime


def _missing(*values: Optional[str]) -> bool:
    return any(value is None or value == "" for value in values)


class LoginManager:
    """Authenticates users and manages their session token."""

    def __init__(
        self,
        user_manager: UserManager,
        mail_sender: MailSender,
        clock: Clock = utc_now,
    ):
        self.user_manager = user_manager
        self.mail_sender = mail_sender
        self.clock = clock

    def login(self, email: Optional[str], password: Optional[str]) -> LoginResult:
        """Verify credentials and issue a session token.

        Args:
            email: Account email.
            password: Plain text password.

        Returns:
            LoginResult with the user, the token and its expiry.

        Raises:
            InvalidInputError: If either field is missing.
            InvalidCredentialsError: If the email is unknown or the password
                is wrong. Both cases raise the same error.
        """
        if _missing(email, password):
            raise InvalidInputError("Email and password are required")

        user = self.user_manager.get_user_by_email(email)
        if user is None or not self.user_manager.verify_password(password, user.password_hash):
            logger.warning("Failed login for %s", email)
            raise InvalidCredentialsError()

        now = self.clock()
        lifetime = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_access_token(
            Identity(user_id=user.user_id, email=user.email, role=user.role),
            expires_delta=lifetime,
            now=now,
        )
        user = self.user_manager.set_session_token(user.user_id, token)
        logger.info("User %s logged in", user.email)
        return LoginResult(user=user, token=token, expires_at=now + lifetime)

    def logout(self, user_id: str) -> None:
        """Forget the stored session token of a user."""
        self.user_manager.set_session_token(user_id, None)
        logger.info("User %s logged out", user_id)

    def change_password(
        self,
        user_id: str,
        old_password: Optional[str],
        new_password: Optional[str],
        confirm_password: Optional[str],
    ) -> User:
        """Change the password of an authenticated user.

        Also drops any pending reset token, since it was issued for the old
        password.

        Raises:
            InvalidInputError: If a field is missing.
            PasswordMismatchError: If new password and confirmation differ.
            InvalidCredentialsError: If the old password is wrong.
            UserNotFoundError: If the user no longer exists.
        """
        if _missing(old_password, new_password, confirm_password):
            raise InvalidInputError("All fields are required")
        if new_password != confirm_password:
            raise PasswordMismatchError()

        user = self.user_manager.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        if not self.user_manager.verify_password(old_password, user.password_hash):
            logger.warning("Wrong current password on password change for %s", user.email)
            raise InvalidCredentialsError("The current password is incorrect")

        user = self.user_manager.update_fields(
            user_id,
            password_hash=self.user_manager.hash_password(new_password),
            reset_password_token=None,
            reset_password_expires=None,
        )
        logger.info("Password changed for %s", user.email)

        self.mail_sender.send_best_effort(
            user.email,
            "Password Updated Successfully",
            password_updated_email(user.email, f"{user.first_name} {user.last_name}"),
        )
        return user
