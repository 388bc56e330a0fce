"""User management utilities.

This module is the Credential Store: user lookup by email, id or reset
token, password hashing, user creation and single-record field updates.
"""

import logging
import secrets
from datetime import datetime
from typing import Optional, Tuple
from urllib.parse import quote

import bcrypt
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import config
from core.clock import Clock, utc_now
from core.exceptions import AlreadyRegisteredError, InternalError, UserNotFoundError
from models.profile import ProfileModel
from models.user import UserModel
from schemas.user import Profile, Role, User
from utils.converters import model_to_profile, model_to_user

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72

AVATAR_URL = "https://api.dicebear.com/5.x/initials/svg?seed={seed}"


def _password_bytes(password) -> bytes:
    if isinstance(password, str):
        password = password.encode("utf-8")
    return password[:BCRYPT_MAX_BYTES]


class UserManager:
    """Manages user data persistence and operations using SQLAlchemy."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
            clock: Source of the current UTC time.
        """
        self.db = db
        self.clock = clock

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
        return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        if not hashed_password:
            return False
        try:
            return bcrypt.checkpw(
                _password_bytes(plain_password), hashed_password.encode("utf-8")
            )
        except ValueError:
            # Stored value is not a bcrypt hash
            logger.error("Stored password hash has an invalid format")
            return False

    def create_user(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password_hash: str,
        role: Role,
    ) -> Tuple[User, Profile]:
        """Create a new user together with an empty profile.

        Profile and user are written in one transaction; if the user insert
        fails the profile is rolled back with it.

        Args:
            first_name: First name.
            last_name: Last name.
            email: Email address, the unique account key.
            password_hash: Bcrypt hash from ``hash_password``.
            role: Account role.

        Returns:
            Tuple of the created User and Profile.

        Raises:
            AlreadyRegisteredError: If the email is already registered.
            InternalError: If the store rejects the write.
        """
        if self.get_user_by_email(email) is not None:
            raise AlreadyRegisteredError()

        profile = ProfileModel(profile_id=secrets.token_hex(12))
        model = UserModel(
            user_id=secrets.token_hex(12),
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=password_hash,
            role=role.value,
            active=True,
            approved=role != Role.INSTRUCTOR,
            image=AVATAR_URL.format(seed=quote(f"{first_name} {last_name}")),
            profile_id=profile.profile_id,
            created_at=self.clock(),
        )

        try:
            self.db.add(profile)
            self.db.flush()
            self.db.add(model)
            self.db.commit()
        except IntegrityError as e:
            # Two signups for one email raced past the lookup above
            self.db.rollback()
            if "email" in str(e).lower() or "unique" in str(e).lower():
                raise AlreadyRegisteredError() from e
            raise InternalError("Unable to create user") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to create user %s", email)
            raise InternalError("Unable to create user") from e

        self.db.refresh(model)
        self.db.refresh(profile)
        logger.info("Created user: %s (%s)", email, role.value)
        return model_to_user(model), model_to_profile(profile)

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email.

        Args:
            email: Email to look up. Matching is exact.

        Returns:
            User object if found, None otherwise.
        """
        model = self.db.query(UserModel).filter(UserModel.email == email).first()
        if model:
            return model_to_user(model)
        return None

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by user ID.

        Args:
            user_id: User ID to look up.

        Returns:
            User object if found, None otherwise.
        """
        model = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if model:
            return model_to_user(model)
        return None

    def get_user_by_reset_token(self, token: str) -> Optional[User]:
        """Get the user holding a password reset token."""
        model = (
            self.db.query(UserModel)
            .filter(UserModel.reset_password_token == token)
            .first()
        )
        if model:
            return model_to_user(model)
        return None

    def update_fields(self, user_id: str, **fields) -> User:
        """Update columns of a single user record.

        Args:
            user_id: User to update.
            **fields: Column values to set.

        Returns:
            The updated User.

        Raises:
            UserNotFoundError: If the user does not exist.
            InternalError: If the store rejects the write.
        """
        model = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if not model:
            raise UserNotFoundError(user_id)
        for name, value in fields.items():
            setattr(model, name, value)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to update user %s", user_id)
            raise InternalError("Unable to update user") from e
        self.db.refresh(model)
        return model_to_user(model)

    def set_session_token(self, user_id: str, token: Optional[str]) -> User:
        """Store the current session token, replacing any previous one."""
        return self.update_fields(user_id, token=token)

    def set_reset_token(self, user_id: str, token: str, expires_at: datetime) -> User:
        return self.update_fields(
            user_id, reset_password_token=token, reset_password_expires=expires_at
        )

    def consume_reset_token(self, user_id: str, token: str, password_hash: str) -> bool:
        """Rotate the password if the reset token is still held and unexpired.

        The token match, the expiry check, the password write and the
        clearing of the token happen in one conditional UPDATE, so of two
        concurrent resets with the same token only one succeeds.

        Args:
            user_id: User the token was issued to.
            token: Presented reset token.
            password_hash: New bcrypt hash.

        Returns:
            True if this call rotated the password, False if the token was
            already used, replaced or expired.
        """
        statement = (
            update(UserModel)
            .where(
                UserModel.user_id == user_id,
                UserModel.reset_password_token == token,
                UserModel.reset_password_expires >= self.clock(),
            )
            .values(
                password_hash=password_hash,
                reset_password_token=None,
                reset_password_expires=None,
                token=None,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(statement)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to reset password for user %s", user_id)
            raise InternalError("Unable to update password") from e
        return result.rowcount == 1
