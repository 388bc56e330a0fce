"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes.
Managers are built per request around the request-scoped DB session.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.clock import Clock, utc_now
from core.database import get_db
from utils import login_manager
from utils import mail_sender
from utils import otp_manager
from utils import password_reset_manager
from utils import registration_manager
from utils import user_manager

# Singleton for the mail backend
_mail_sender_instance: mail_sender.MailSender = None


def get_clock() -> Clock:
    """Get the clock used for expiry decisions.

    Returns:
        Callable returning the current UTC time.
    """
    return utc_now


def get_mail_sender() -> mail_sender.MailSender:
    """Get the configured MailSender singleton.

    Returns:
        MailSender instance (singleton).
    """
    global _mail_sender_instance
    if _mail_sender_instance is None:
        _mail_sender_instance = mail_sender.build_mail_sender()
    return _mail_sender_instance


def get_user_manager(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.
        clock: Current time source.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db, clock=clock)


def get_otp_manager(
    db: Session = Depends(get_db),
    sender: mail_sender.MailSender = Depends(get_mail_sender),
    clock: Clock = Depends(get_clock),
) -> otp_manager.OtpManager:
    """Get OtpManager instance with request-scoped DB session."""
    return otp_manager.OtpManager(db, sender, clock=clock)


def get_registration_manager(
    users: user_manager.UserManager = Depends(get_user_manager),
    otps: otp_manager.OtpManager = Depends(get_otp_manager),
    sender: mail_sender.MailSender = Depends(get_mail_sender),
) -> registration_manager.RegistrationManager:
    """Get RegistrationManager instance for one signup request."""
    return registration_manager.RegistrationManager(users, otps, sender)


def get_login_manager(
    users: user_manager.UserManager = Depends(get_user_manager),
    sender: mail_sender.MailSender = Depends(get_mail_sender),
    clock: Clock = Depends(get_clock),
) -> login_manager.LoginManager:
    """Get LoginManager instance."""
    return login_manager.LoginManager(users, sender, clock=clock)


def get_password_reset_manager(
    users: user_manager.UserManager = Depends(get_user_manager),
    sender: mail_sender.MailSender = Depends(get_mail_sender),
    clock: Clock = Depends(get_clock),
) -> password_reset_manager.PasswordResetManager:
    """Get PasswordResetManager instance."""
    return password_reset_manager.PasswordResetManager(users, sender, clock=clock)


# Type aliases for dependency injection
MailSenderDep = Annotated[mail_sender.MailSender, Depends(get_mail_sender)]
UserManagerDep = Annotated[user_manager.UserManager, Depends(get_user_manager)]
OtpManagerDep = Annotated[otp_manager.OtpManager, Depends(get_otp_manager)]
RegistrationManagerDep = Annotated[
    registration_manager.RegistrationManager, Depends(get_registration_manager)
]
LoginManagerDep = Annotated[login_manager.LoginManager, Depends(get_login_manager)]
PasswordResetManagerDep = Annotated[
    password_reset_manager.PasswordResetManager,
    Depends(get_password_reset_manager),
]
