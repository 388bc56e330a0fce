"""Password reset flow.

Phase one stores a random token with an absolute expiry on the user and
mails a link carrying it. Phase two exchanges the token for a new password.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

import config
from core.clock import Clock, as_utc, utc_now
from core.exceptions import (
    InvalidInputError,
    InvalidTokenError,
    PasswordMismatchError,
    TokenExpiredError,
    UserNotFoundError,
)
from utils.mail_sender import MailSender
from utils.mail_templates import password_updated_email, reset_password_email
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


def build_reset_link(token: str) -> str:
    return f"{config.CLIENT_URL}/reset-password/{token}"


class PasswordResetManager:
    """Issues and redeems password reset tokens."""

    def __init__(
        self,
        user_manager: UserManager,
        mail_sender: MailSender,
        clock: Clock = utc_now,
    ):
        self.user_manager = user_manager
        self.mail_sender = mail_sender
        self.clock = clock

    def request_reset(self, email: Optional[str], name: Optional[str] = None) -> None:
        """Issue a reset token and mail the reset link.

        Unknown emails are reported as not found. Unlike login, this reveals
        whether an account exists.

        Args:
            email: Account email.
            name: Name used to greet the user in the mail.

        Raises:
            InvalidInputError: If the email is missing.
            UserNotFoundError: If no user has the email.
            MailDeliveryError: If the link could not be mailed.
        """
        if not email:
            raise InvalidInputError("Email is required")

        user = self.user_manager.get_user_by_email(email)
        if user is None:
            logger.warning("Password reset requested for unknown email %s", email)
            raise UserNotFoundError(email)

        token = secrets.token_hex(config.RESET_TOKEN_BYTES)
        expires_at = self.clock() + timedelta(seconds=config.RESET_TOKEN_TTL_SECONDS)
        self.user_manager.set_reset_token(user.user_id, token, expires_at)

        self.mail_sender.send(
            user.email,
            f"Reset Password Link from {config.PLATFORM_NAME}",
            reset_password_email(
                build_reset_link(token),
                name or user.first_name,
                config.RESET_TOKEN_TTL_SECONDS,
            ),
        )
        logger.info("Password reset link sent to %s", user.email)

    def reset_password(
        self,
        token: Optional[str],
        new_password: Optional[str],
        confirm_password: Optional[str],
    ) -> None:
        """Set a new password using a reset token.

        The password write, the clearing of the token and the revocation of
        the stored session token are one conditional update on the record
        holding the token.

        Args:
            token: Reset token from the link.
            new_password: New password.
            confirm_password: Confirmation of the new password.

        Raises:
            InvalidInputError: If a field is missing.
            PasswordMismatchError: If new password and confirmation differ.
            InvalidTokenError: If no user holds the token, including a token
                that was already used.
            TokenExpiredError: If the token is past its expiry.
        """
        if not token or not new_password or not confirm_password:
            raise InvalidInputError("All fields are required")
        if new_password != confirm_password:
            raise PasswordMismatchError()

        user = self.user_manager.get_user_by_reset_token(token)
        if user is None:
            raise InvalidTokenError()

        expires_at = as_utc(user.reset_password_expires)
        if expires_at is None or expires_at < self.clock():
            logger.warning("Expired reset token presented for %s", user.email)
            raise TokenExpiredError()

        password_hash = self.user_manager.hash_password(new_password)
        if not self.user_manager.consume_reset_token(user.user_id, token, password_hash):
            # Used, replaced or expired since it was read above
            raise InvalidTokenError()
        logger.info("Password reset completed for %s", user.email)

        self.mail_sender.send_best_effort(
            user.email,
            "Password Updated Successfully",
            password_updated_email(user.email, f"{user.first_name} {user.last_name}"),
        )
